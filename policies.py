"""
Reward policies

Pure decisions over a user document and the current time. Nothing here touches
the database; claims.py applies the outcome with a conditional update.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Dict, Any

import config
from errors import ConflictError, NotFoundError, ValidationError
from schemas import GAME_IDS

REWARD_URIS = {game_id: f"ipfs://{game_id}-nft" for game_id in GAME_IDS}


@dataclass(frozen=True)
class DailyAward:
    points: int
    new_streak: int


@dataclass(frozen=True)
class ReferralAward:
    points: int
    referrer: str


@dataclass(frozen=True)
class GameOutcome:
    points_delta: int
    reward_uri: Optional[str] = None


def isoformat_utc(dt: datetime) -> str:
    """ISO-8601 with an explicit UTC offset; stored datetimes are naive UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def next_daily_claim_at(last_claim_at: datetime) -> datetime:
    return last_claim_at + config.DAILY_COOLDOWN


def evaluate_daily(user: Dict[str, Any], now: datetime) -> DailyAward:
    last = user.get("last_daily_claim_at")
    if last is not None:
        elapsed = now - last
        if elapsed < config.DAILY_COOLDOWN:
            raise ConflictError("Daily claim already used", next_claim_at=isoformat_utc(next_daily_claim_at(last)))
        if elapsed <= config.STREAK_WINDOW:
            return DailyAward(points=config.DAILY_REWARD_POINTS, new_streak=user.get("streak", 0) + 1)
    return DailyAward(points=config.DAILY_REWARD_POINTS, new_streak=1)


def find_ref_claim(user: Dict[str, Any], referrer: str) -> Optional[Dict[str, Any]]:
    referrer = referrer.lower()
    for claim in user.get("ref_claims") or []:
        if claim.get("referrer", "").lower() == referrer:
            return claim
    return None


def check_not_self_referral(address: str, referrer: str) -> None:
    if address.lower() == referrer.lower():
        raise ValidationError("Cannot claim referral from yourself")


def evaluate_referral(user: Optional[Dict[str, Any]], referrer: str, referrer_exists: bool) -> ReferralAward:
    if user is None:
        raise NotFoundError("User not found")
    check_not_self_referral(user["address"], referrer)
    if not referrer_exists:
        raise NotFoundError("Referrer not found")
    existing = find_ref_claim(user, referrer)
    if existing:
        raise ConflictError("Referral already claimed from this address", claimed_at=isoformat_utc(existing["at"]))
    return ReferralAward(points=config.REFERRAL_REWARD_POINTS, referrer=referrer.lower())


def evaluate_game_result(game_id: str, result: str) -> GameOutcome:
    if result == "win":
        return GameOutcome(points_delta=config.WIN_POINTS, reward_uri=REWARD_URIS[game_id])
    if result == "draw":
        return GameOutcome(points_delta=config.DRAW_POINTS)
    if result == "loss":
        return GameOutcome(points_delta=config.LOSS_POINTS)
    raise ValueError(f"Unknown result: {result}")
