import os

from dotenv import load_dotenv

# Loads .env from the project root
load_dotenv()


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./menu_cache.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

# Storage backend for tenant menu records: "sql" or "memory"
MENU_REPOSITORY = os.getenv("MENU_REPOSITORY", "sql").strip().lower()

# External fetch collaborator
MENU_FETCH_PROVIDER = os.getenv("MENU_FETCH_PROVIDER", "http").strip().lower()
MENU_FETCH_ENDPOINT = os.getenv("MENU_FETCH_ENDPOINT", "http://localhost:8081/scrape").strip()
MENU_FETCH_TIMEOUT_SECONDS = float(os.getenv("MENU_FETCH_TIMEOUT_SECONDS", "30"))
MENU_FETCH_MAX_WORKERS = int(os.getenv("MENU_FETCH_MAX_WORKERS", "16"))
MENU_FETCH_API_KEY = os.getenv("MENU_FETCH_API_KEY", "").strip()

# Freshness policy
MENU_STALE_AFTER_HOURS = float(os.getenv("MENU_STALE_AFTER_HOURS", "24"))
MENU_CACHE_HIT_WINDOW_HOURS = float(os.getenv("MENU_CACHE_HIT_WINDOW_HOURS", "1"))
SCRAPING_HISTORY_LIMIT = int(os.getenv("SCRAPING_HISTORY_LIMIT", "10"))

AUTO_CREATE_SQLITE_SCHEMA = _env_flag("AUTO_CREATE_SQLITE_SCHEMA", "1")
