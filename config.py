"""
Runtime configuration

Everything tunable lives here and is read from the environment (or a .env file).
Reward amounts and time windows are policy knobs, not control flow.
"""

import os
import logging
from datetime import timedelta
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# -------- Database --------
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")
MONGO_TIMEOUT_MS = int(os.getenv("MONGO_TIMEOUT_MS", 5000))

# -------- Signed messages --------
APP_NAME = os.getenv("APP_NAME", "RockChain")
FRESHNESS_WINDOW_MS = int(os.getenv("FRESHNESS_WINDOW_MS", 5 * 60 * 1000))
# how far ahead of the server clock a client timestamp may be
CLOCK_SKEW_TOLERANCE_MS = int(os.getenv("CLOCK_SKEW_TOLERANCE_MS", 30 * 1000))

# -------- Rewards --------
DAILY_REWARD_POINTS = int(os.getenv("DAILY_REWARD_POINTS", 5))
REFERRAL_REWARD_POINTS = int(os.getenv("REFERRAL_REWARD_POINTS", 10))
WIN_POINTS = int(os.getenv("WIN_POINTS", 10))
DRAW_POINTS = int(os.getenv("DRAW_POINTS", 2))
LOSS_POINTS = int(os.getenv("LOSS_POINTS", 0))

DAILY_COOLDOWN = timedelta(hours=int(os.getenv("DAILY_COOLDOWN_HOURS", 24)))
STREAK_WINDOW = timedelta(hours=int(os.getenv("STREAK_WINDOW_HOURS", 48)))

LEADERBOARD_SIZE = int(os.getenv("LEADERBOARD_SIZE", 10))

# -------- HTTP --------
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
PORT = int(os.getenv("PORT", 8000))

# -------- Logging --------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
