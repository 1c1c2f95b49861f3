"""
RockChain Arcade Schemas

Each stored class corresponds to a MongoDB collection (lowercased class name).
Request payloads follow at the bottom.
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal
from datetime import datetime

ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"

GAME_IDS = ("rps", "coin", "dice", "guess", "tictactoe", "blackjack", "memory", "2048", "reaction", "scramble")
GameId = Literal["rps", "coin", "dice", "guess", "tictactoe", "blackjack", "memory", "2048", "reaction", "scramble"]
Result = Literal["win", "loss", "draw"]


def default_username(address: str) -> str:
    return f"Player_{address[-6:]}"


class RefClaim(BaseModel):
    referrer: str = Field(..., pattern=ADDRESS_PATTERN)
    at: datetime


class User(BaseModel):
    address: str = Field(..., pattern=ADDRESS_PATTERN, description="Lowercased wallet address, natural key")
    username: str = Field(..., min_length=1, max_length=50)
    points: int = Field(0, ge=0)
    nfts: List[str] = Field(default_factory=list, description="Reward URIs in the order they were earned")
    streak: int = Field(0, ge=0, description="Consecutive daily claims")
    rank: int = Field(0, description="Display cache, not authoritative")
    avatar: Optional[str] = None
    last_daily_claim_at: Optional[datetime] = None
    ref_claims: List[RefClaim] = Field(default_factory=list)

    @field_validator("address")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.lower()


class GameResult(BaseModel):
    address: str = Field(..., pattern=ADDRESS_PATTERN)
    game_id: GameId
    result: Result
    bet_amount: Optional[str] = Field(None, description="External-chain amount, opaque")
    tx_hash: Optional[str] = Field(None, description="External transaction reference, opaque")
    points_delta: int
    reward_uri: Optional[str] = None


# -------- Requests --------

class SignedRequest(BaseModel):
    address: str = Field(..., pattern=ADDRESS_PATTERN)
    signature: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1, max_length=256)

    @field_validator("address")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.lower()


class AuthRequest(SignedRequest):
    username: Optional[str] = Field(None, min_length=1, max_length=50)


class DailyClaimRequest(SignedRequest):
    pass


class ReferralClaimRequest(SignedRequest):
    referrer: str = Field(..., pattern=ADDRESS_PATTERN)

    @field_validator("referrer")
    @classmethod
    def _lower_referrer(cls, v: str) -> str:
        return v.lower()


class GameResultRequest(SignedRequest):
    game_id: GameId
    result: Result
    bet_amount: Optional[str] = Field(None, pattern=r"^\d+(\.\d+)?$", max_length=78)
    tx_hash: Optional[str] = Field(None, max_length=100)
