import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, APIRouter, Path, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from typing import Optional

import config
import database
from claims import (
    authenticate_or_create_user,
    claim_daily,
    claim_referral,
    game_history,
    get_profile,
    submit_game_result,
)
from errors import ArcadeError
from leaderboard import get_leaderboard
from policies import REWARD_URIS
from schemas import ADDRESS_PATTERN, AuthRequest, DailyClaimRequest, GameResultRequest, ReferralClaimRequest

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        database.ensure_indexes()
    except PyMongoError:
        logger.exception("Could not create indexes, continuing without them")
    yield


app = FastAPI(title="RockChain Arcade API", version="1.0.0", lifespan=lifespan)
api_router = APIRouter(prefix="/api")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -------- Errors --------
@app.exception_handler(ArcadeError)
async def arcade_error_handler(request: Request, exc: ArcadeError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
    return JSONResponse(status_code=422, content={"error": "Invalid request", "details": details})


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/")
def root():
    return {"name": "RockChain Arcade", "status": "ok"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
        "database_name": config.DATABASE_NAME or "❌ Not Set",
        "collections": []
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Connected"
            response["collections"] = database.db.list_collection_names()[:10]
    except PyMongoError as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"
    return response


# -------- Users --------
@api_router.post("/user/upsert")
def upsert_user(payload: AuthRequest):
    return authenticate_or_create_user(payload)


@api_router.get("/user/{address}")
def get_user(address: str = Path(..., pattern=ADDRESS_PATTERN)):
    return {"success": True, "user": get_profile(address)}


@api_router.get("/user/{address}/games")
def get_user_games(address: str = Path(..., pattern=ADDRESS_PATTERN), limit: int = Query(20, ge=1, le=100)):
    return {"success": True, "games": game_history(address, limit)}


# -------- Claims --------
@api_router.post("/claim/daily")
def daily_claim(payload: DailyClaimRequest):
    return claim_daily(payload)


@api_router.post("/claim/referral")
def referral_claim(payload: ReferralClaimRequest):
    return claim_referral(payload)


# -------- Games --------
GAMES = [
    {"key": "rps", "name": "Rock Paper Scissors", "description": "Beat the house in one throw"},
    {"key": "coin", "name": "Coin Flip", "description": "Call heads or tails"},
    {"key": "dice", "name": "Dice Roll", "description": "Roll higher than the house"},
    {"key": "guess", "name": "Guess the Number", "description": "Find the number in as few tries as you can"},
    {"key": "tictactoe", "name": "Tic Tac Toe", "description": "Three in a row against the computer"},
    {"key": "blackjack", "name": "Blackjack", "description": "Get closer to 21 than the dealer"},
    {"key": "memory", "name": "Memory Match", "description": "Pair up every card"},
    {"key": "2048", "name": "2048", "description": "Slide tiles until you reach 2048"},
    {"key": "reaction", "name": "Reaction Time", "description": "Click the moment the screen changes"},
    {"key": "scramble", "name": "Word Scramble", "description": "Unscramble the word before time runs out"},
]


@api_router.get("/games")
def list_games():
    return [{**g, "reward_uri": REWARD_URIS[g["key"]]} for g in GAMES]


@api_router.post("/game/result")
def game_result(payload: GameResultRequest):
    return submit_game_result(payload)


# -------- Leaderboard --------
@api_router.get("/leaderboard/top")
def leaderboard_top(user_address: Optional[str] = None):
    return get_leaderboard(user_address)


# -------- Schema Info --------
@app.get("/schema")
def schema_info():
    # Expose schema names for admin tools
    return {"collections": ["user", "gameresult"]}


app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
