import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# SQLite is fine for local runs; production points this at Postgres
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./dealdesk.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Frontend base URL, used for CORS defaults
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Scheduler wall-clock triggers (UTC hours)
DEAL_REMINDER_HOUR = int(os.getenv("DEAL_REMINDER_HOUR", "9"))
POST_VALIDITY_REMINDER_HOUR = int(os.getenv("POST_VALIDITY_REMINDER_HOUR", "10"))

# Cache TTLs (seconds)
USER_CACHE_TTL = int(os.getenv("USER_CACHE_TTL", "300"))
POST_LIST_CACHE_PAGES = int(os.getenv("POST_LIST_CACHE_PAGES", "10"))
