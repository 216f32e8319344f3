import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
ROOT_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=ROOT_DIR / ".env")

PORT = int(os.getenv("PORT", "3000"))

# Storage
DATA_DIR = Path(os.getenv("DATA_DIR", str(ROOT_DIR / "data")))
DATABASE_PATH = os.getenv("DATABASE_PATH", str(DATA_DIR / "chavrus.db"))
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATABASE_PATH}")
# One-time import source from the pre-database version of the board
LEGACY_POSTS_JSON = os.getenv("LEGACY_POSTS_JSON", str(DATA_DIR / "posts.json"))

DB_LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
DB_SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# Post lifecycle
ALLOWED_DURATIONS = (7, 14, 30)
DEFAULT_DURATION_DAYS = 30

# Rate limits: (limit, window seconds)
CREATE_POST_LIMIT = int(os.getenv("CREATE_POST_LIMIT", "8"))
RESPOND_POST_LIMIT = int(os.getenv("RESPOND_POST_LIMIT", "20"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "600"))

VALIDATION_STRICT = "strict"
VALIDATION_LENIENT = "lenient"


# Values below are read at call time so operators can rotate them without a
# restart and tests can monkeypatch the environment.


def get_base_url(request=None) -> str:
    """Public base URL used for manage links"""
    base_url = os.getenv("BASE_URL", "").strip()
    if base_url:
        return base_url.rstrip("/")
    if request is not None:
        return str(request.base_url).rstrip("/")
    return f"http://localhost:{PORT}"


def get_owner_delete_key() -> str:
    return os.getenv("OWNER_DELETE_KEY", "").strip()


def get_validation_policy() -> str:
    """strict rejects bad format/duration values, lenient substitutes defaults"""
    policy = os.getenv("VALIDATION_POLICY", VALIDATION_STRICT).strip().lower()
    if policy not in (VALIDATION_STRICT, VALIDATION_LENIENT):
        return VALIDATION_STRICT
    return policy


def is_rate_limit_enabled() -> bool:
    return os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"


def get_rate_limit_backend() -> str:
    return os.getenv("RATE_LIMIT_BACKEND", "memory").strip().lower()


def get_smtp_settings() -> dict:
    return {
        "host": os.getenv("SMTP_HOST", "").strip(),
        "port": int(os.getenv("SMTP_PORT", "587") or 587),
        "user": os.getenv("SMTP_USER", "").strip(),
        "password": os.getenv("SMTP_PASS", ""),
        "secure": os.getenv("SMTP_SECURE", "false").lower() == "true",
        "from_address": os.getenv("RELAY_FROM_EMAIL", "").strip()
        or os.getenv("SMTP_USER", "").strip(),
    }
