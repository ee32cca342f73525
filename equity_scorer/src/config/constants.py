"""
Constants and configuration loaded from environment variables
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Project root is the directory holding the equity_scorer package
CONFIG_DIR = Path(__file__).parent
PROJECT_ROOT = CONFIG_DIR.parents[2]

# Load environment variables from .env file in project root
env_path = PROJECT_ROOT / ".env"
load_dotenv(dotenv_path=env_path, override=True)


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


# ---------------------------------------------------------------------------
# Market data providers
# ---------------------------------------------------------------------------

ALPACA_API_KEY: Optional[str] = os.getenv("ALPACA_API_KEY", "")
ALPACA_API_SECRET: Optional[str] = os.getenv("ALPACA_API_SECRET", "")
ALPACA_DATA_URL = os.getenv("ALPACA_DATA_URL", "https://data.alpaca.markets")
ALPACA_FEED = os.getenv("ALPACA_FEED", "iex")
PROVIDER_TIMEOUT_SECONDS = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "10"))

# Candidates are tried in this order; the first that returns a complete
# snapshot wins
DATA_SOURCE_ORDER: List[str] = _env_list("DATA_SOURCE_ORDER", "alpaca,yahoo")

# Trailing window of daily bars used for indicators (1y covers SMA200)
HISTORY_PERIOD = os.getenv("HISTORY_PERIOD", "1y")

# ---------------------------------------------------------------------------
# Crawler
# ---------------------------------------------------------------------------

BATCH_SIZE = int(os.getenv("BATCH_SIZE", "5"))
RATE_LIMIT_DELAY_SECONDS = float(os.getenv("RATE_LIMIT_DELAY_SECONDS", "2"))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3"))
RETRY_DELAY_SECONDS = float(os.getenv("RETRY_DELAY_SECONDS", "5"))
STALENESS_HOURS = float(os.getenv("STALENESS_HOURS", "24"))
RUN_DEADLINE_SECONDS = float(os.getenv("RUN_DEADLINE_SECONDS", "0"))  # 0 disables

# ---------------------------------------------------------------------------
# Cache TTLs (seconds)
# ---------------------------------------------------------------------------

QUOTE_TTL_SECONDS = int(os.getenv("QUOTE_TTL_SECONDS", "900"))
FUNDAMENTALS_TTL_SECONDS = int(os.getenv("FUNDAMENTALS_TTL_SECONDS", "86400"))
HISTORY_TTL_SECONDS = int(os.getenv("HISTORY_TTL_SECONDS", "3600"))
SCORE_TTL_SECONDS = int(os.getenv("SCORE_TTL_SECONDS", "3600"))
UNIVERSE_TTL_SECONDS = int(os.getenv("UNIVERSE_TTL_SECONDS", "172800"))
CACHE_MAX_ENTRIES = int(os.getenv("CACHE_MAX_ENTRIES", "5000"))

# ---------------------------------------------------------------------------
# Symbol universe
# ---------------------------------------------------------------------------

SP500_CONSTITUENTS_URL = os.getenv(
    "SP500_CONSTITUENTS_URL",
    "https://raw.githubusercontent.com/datasets/s-and-p-500-companies/master/data/constituents.csv",
)

# ---------------------------------------------------------------------------
# DynamoDB
# ---------------------------------------------------------------------------

SCORES_TABLE_NAME = os.getenv("SCORES_TABLE_NAME", "EquityScores")
UNIVERSE_TABLE_NAME = os.getenv("UNIVERSE_TABLE_NAME", "EquityUniverseBackup")

AWS_ACCESS_KEY_ID = os.getenv("AWS_ACCESS_KEY_ID", "")
AWS_SECRET_ACCESS_KEY = os.getenv("AWS_SECRET_ACCESS_KEY", "")
AWS_DEFAULT_REGION = os.getenv("AWS_DEFAULT_REGION", "us-east-1")
DYNAMODB_ENDPOINT_URL: Optional[str] = os.getenv("DYNAMODB_ENDPOINT_URL") or None

# ---------------------------------------------------------------------------
# Logging / environment
# ---------------------------------------------------------------------------

LOG_LEVEL: str = os.getenv("LOG_LEVEL", os.getenv("EQUITY_SCORER_LOG_LEVEL", "INFO")).upper()
ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development").lower()
