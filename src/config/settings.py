"""
Configuration settings for the Case Tracker backend
"""

import os
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Environment configuration
ENV = os.getenv("ENV", "PROD")  # PROD or QA
PORT = int(os.getenv("PORT", 8080))

# Local cache store
CACHE_BACKEND = os.getenv("CACHE_BACKEND", "json")  # json or postgres
DATA_PATH = os.getenv("DATA_PATH", os.path.join(os.getcwd(), "data", "store.json"))
DATABASE_URL = os.getenv("DATABASE_URL")
AUTOSAVE_DEBOUNCE_SECONDS = float(os.getenv("AUTOSAVE_DEBOUNCE_SECONDS", 0.5))

# Lifecycle engine
EXPIRING_SOON_DAYS = int(os.getenv("EXPIRING_SOON_DAYS", 15))
DEFAULT_DETENTION_DAYS = int(os.getenv("DEFAULT_DETENTION_DAYS", 30))

# Remote backup (Supabase)
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
BACKUP_TABLE = os.getenv("BACKUP_TABLE", "user_backups")
REMOTE_TIMEOUT_SECONDS = float(os.getenv("REMOTE_TIMEOUT_SECONDS", 15))

# Authentication
ENABLE_AUTH = _env_bool("ENABLE_AUTH", "true")
LOCAL_USER_ID = os.getenv("LOCAL_USER_ID", "local-user")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "authenticated")

logger.info(f"Environment: {ENV}")
logger.info(f"Cache backend: {CACHE_BACKEND}")

# Validate required environment variables
if CACHE_BACKEND not in ("json", "postgres"):
    raise ValueError(f"Unsupported CACHE_BACKEND: {CACHE_BACKEND}")
if CACHE_BACKEND == "postgres" and not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required when CACHE_BACKEND=postgres")
if not SUPABASE_URL or not SUPABASE_ANON_KEY:
    logger.warning("SUPABASE_URL/SUPABASE_ANON_KEY not set - cloud backup will not be available")
if ENABLE_AUTH and not SUPABASE_JWT_SECRET:
    logger.warning("SUPABASE_JWT_SECRET not set - authenticated requests will be rejected")

# CORS settings
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,app://.").split(",")
    if origin.strip()
]
