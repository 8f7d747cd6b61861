import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# "development", "production" or "test"
APP_ENV = os.getenv("APP_ENV", "development").strip().lower()

# Supabase Postgres connection string (Settings → Database → Connection string)
DATABASE_URL = os.getenv("DATABASE_URL")

# Database pool settings
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
DB_LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
DB_SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))

# JWT Configuration
JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    import warnings

    warnings.warn(
        "JWT_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    JWT_SECRET = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "1440"))

# Midtrans Core API Configuration
MIDTRANS_SERVER_KEY = os.getenv("MIDTRANS_SERVER_KEY")
MIDTRANS_CLIENT_KEY = os.getenv("MIDTRANS_CLIENT_KEY")
MIDTRANS_IS_PRODUCTION = os.getenv("MIDTRANS_IS_PRODUCTION", "false").lower() == "true"
# Signature checks are on whenever a server key is configured, unless explicitly disabled
MIDTRANS_VERIFY_SIGNATURE = (
    os.getenv("MIDTRANS_VERIFY_SIGNATURE", "true").lower() == "true" and bool(MIDTRANS_SERVER_KEY)
)
MIDTRANS_TIMEOUT_SECONDS = float(os.getenv("MIDTRANS_TIMEOUT_SECONDS", "30"))

# Frontend base URL for payment redirects (GoPay deeplink callback)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# CORS
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", FRONTEND_URL).split(",")

# Business rules
SERVICE_TIMEZONE = os.getenv("SERVICE_TIMEZONE", "Asia/Jakarta")
DEFAULT_PLATFORM_FEE = int(os.getenv("DEFAULT_PLATFORM_FEE", "10000"))


def is_production() -> bool:
    return APP_ENV == "production"


def validate_env() -> list[str]:
    """
    Check the settings the service cannot run correctly without.

    Returns:
        List of human-readable problems, empty when configuration is usable
    """
    problems = []
    if not DATABASE_URL:
        problems.append("DATABASE_URL is required")
    if not os.getenv("JWT_SECRET"):
        problems.append("JWT_SECRET is required")
    elif len(JWT_SECRET) < 32:
        problems.append("JWT_SECRET must be at least 32 characters long")
    if not MIDTRANS_SERVER_KEY:
        problems.append("MIDTRANS_SERVER_KEY is required for payment processing")
    if APP_ENV not in {"development", "production", "test"}:
        problems.append("APP_ENV must be one of: development, production, test")
    return problems
