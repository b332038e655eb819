"""
TagTune - Configuration
All settings loaded from environment variables with sensible defaults.

The service runs against one of two interchangeable stores: an embedded
SQLite database (``DB_PATH``) or a process-local in-memory store used for
development and demos (``USE_MOCK_DATA=true`` or an empty ``DB_PATH``).
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
_ = load_dotenv()

# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------
APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
APP_PORT = int(os.getenv("APP_PORT", "3001"))
APP_ENV = os.getenv("APP_ENV", "development")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
DEBUG = os.getenv("DEBUG", "true").lower() == "true"
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")

if APP_ENV == "production" and SECRET_KEY == "change-me-in-production":
    raise RuntimeError(
        "SECRET_KEY must be changed from the default value in production. "
        "Set the SECRET_KEY environment variable to a random secret."
    )

# Comma-separated list of allowed CORS origins ("*" allows any)
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

# ---------------------------------------------------------------------------
# Authentication (signed bearer tokens)
# ---------------------------------------------------------------------------
# Token lifetime in seconds (default 30 days)
TOKEN_MAX_AGE = int(os.getenv("TOKEN_MAX_AGE", str(60 * 60 * 24 * 30)))

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = BASE_DIR.parent

# Empty DB_PATH means "no database configured" and selects the memory store.
_DB_PATH_RAW = os.getenv("DB_PATH", str(PROJECT_ROOT / "data" / "tagtune.db"))
DB_PATH = Path(_DB_PATH_RAW) if _DB_PATH_RAW else None

USE_MOCK_DATA = os.getenv("USE_MOCK_DATA", "false").lower() == "true" or DB_PATH is None

# Seed the demo user / songs / tags at startup.  Defaults to on for the
# memory store so the app is usable out of the box.
SEED_DEMO_DATA = (
    os.getenv("SEED_DEMO_DATA", "true" if USE_MOCK_DATA else "false").lower()
    == "true"
)

# ---------------------------------------------------------------------------
# Logging (stdout only)
# ---------------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# ---------------------------------------------------------------------------
# Library / tag defaults
# ---------------------------------------------------------------------------
DEFAULT_TAG_COLOR = os.getenv("DEFAULT_TAG_COLOR", "#3B82F6")
MAX_TAG_NAME_LENGTH = 100

DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "50"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "500"))

# Placeholders substituted for missing fields of imported songs
UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"

