"""
Signed user operations

Each function authenticates the signed message first, then applies the matching
policy to the stored user with one conditional update so that concurrent
requests for the same address can't both collect a reward.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from pymongo.errors import DuplicateKeyError

import auth
from database import (
    create_document,
    find_one,
    get_documents,
    increment_field,
    modify_document,
    update_document,
    utcnow,
)
from errors import ConflictError, NotFoundError
from policies import (
    check_not_self_referral,
    evaluate_daily,
    evaluate_game_result,
    evaluate_referral,
)
from schemas import (
    AuthRequest,
    DailyClaimRequest,
    GameResult,
    GameResultRequest,
    ReferralClaimRequest,
    User,
    default_username,
)

logger = logging.getLogger(__name__)

USERS = "user"
GAME_RESULTS = "gameresult"


def to_millis(dt: datetime) -> int:
    return int(dt.replace(tzinfo=timezone.utc).timestamp() * 1000)


def _profile(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc.pop("id", None)
    return doc


def _require_user(address: str) -> Dict[str, Any]:
    user = find_one(USERS, {"address": address})
    if not user:
        raise NotFoundError("User not found")
    return user


def get_profile(address: str) -> Dict[str, Any]:
    return _profile(_require_user(address.lower()))


def authenticate_or_create_user(req: AuthRequest, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    auth.authenticate(req.address, req.signature, req.message, auth.AUTH, now_ms=to_millis(now))
    address = req.address

    existing = find_one(USERS, {"address": address})
    if existing:
        changes = {"username": req.username} if req.username else {}
        return {"success": True, "user": _profile(update_document(USERS, {"address": address}, changes, now=now))}

    user = User(address=address, username=req.username or default_username(address))
    try:
        create_document(USERS, user, now=now)
        logger.info(f"Created user {address}")
    except DuplicateKeyError:
        # created by a concurrent auth request for the same wallet
        logger.info(f"User {address} already created concurrently")
    return {"success": True, "user": _profile(_require_user(address))}


def claim_daily(req: DailyClaimRequest, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    auth.authenticate(req.address, req.signature, req.message, auth.DAILY, now_ms=to_millis(now))
    address = req.address

    user = _require_user(address)
    award = evaluate_daily(user, now)
    updated = modify_document(
        USERS,
        {"address": address, "last_daily_claim_at": user.get("last_daily_claim_at")},
        {
            "$set": {"last_daily_claim_at": now, "streak": award.new_streak},
            "$inc": {"points": award.points},
        },
        now=now,
    )
    if updated is None:
        logger.warning(f"Daily claim for {address} lost a concurrent update")
        evaluate_daily(_require_user(address), now)
        raise ConflictError("Daily claim already used")

    logger.info(f"Daily claim for {address}: +{award.points} points, streak {award.new_streak}")
    return {
        "success": True,
        "message": f"Daily claim successful! +{award.points} points",
        "points_earned": award.points,
        "new_streak": award.new_streak,
        "user": _profile(updated),
    }


def claim_referral(req: ReferralClaimRequest, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    auth.authenticate(req.address, req.signature, req.message, auth.REFERRAL, now_ms=to_millis(now), referrer=req.referrer)
    address, referrer = req.address, req.referrer
    check_not_self_referral(address, referrer)

    user = find_one(USERS, {"address": address})
    referrer_exists = user is not None and find_one(USERS, {"address": referrer}) is not None
    award = evaluate_referral(user, referrer, referrer_exists)

    updated = modify_document(
        USERS,
        {"address": address, "ref_claims.referrer": {"$ne": referrer}},
        {
            "$push": {"ref_claims": {"referrer": referrer, "at": now}},
            "$inc": {"points": award.points},
        },
        now=now,
    )
    if updated is None:
        logger.warning(f"Referral claim {address} from {referrer} lost a concurrent update")
        evaluate_referral(_require_user(address), referrer, True)
        raise ConflictError("Referral already claimed from this address")

    logger.info(f"Referral claim for {address} from {referrer}: +{award.points} points")
    return {
        "success": True,
        "message": f"Referral claim successful! +{award.points} points from {referrer}",
        "points_earned": award.points,
        "referrer": referrer,
        "user": _profile(updated),
    }


def submit_game_result(req: GameResultRequest, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    auth.authenticate(
        req.address, req.signature, req.message, auth.GAME,
        now_ms=to_millis(now), game_id=req.game_id, result=req.result,
    )
    address = req.address
    outcome = evaluate_game_result(req.game_id, req.result)

    # points land before the record is stored; "$ne" lets only one concurrent win add the badge
    updated, nft_earned = None, None
    if outcome.reward_uri:
        updated = increment_field(
            USERS,
            {"address": address, "nfts": {"$ne": outcome.reward_uri}},
            {"points": outcome.points_delta},
            add_to_set={"nfts": outcome.reward_uri},
            now=now,
        )
        if updated is not None:
            nft_earned = outcome.reward_uri
    if updated is None:
        updated = increment_field(USERS, {"address": address}, {"points": outcome.points_delta}, now=now)
    if updated is None:
        raise NotFoundError("User not found")

    record = GameResult(
        address=address,
        game_id=req.game_id,
        result=req.result,
        bet_amount=req.bet_amount,
        tx_hash=req.tx_hash,
        points_delta=outcome.points_delta,
        reward_uri=outcome.reward_uri,
    )
    record_id = create_document(GAME_RESULTS, record, now=now)

    logger.info(f"Game result for {address}: {req.game_id} {req.result}, +{outcome.points_delta} points")
    return {
        "success": True,
        "game_result": {"id": record_id, **record.model_dump(), "created_at": now},
        "points_earned": outcome.points_delta,
        "nft_earned": nft_earned,
        "user": _profile(updated),
    }


def game_history(address: str, limit: int = 20):
    """Newest-first play history for one wallet."""
    return get_documents(GAME_RESULTS, {"address": address.lower()}, limit=limit, sort=[("created_at", -1)])
