# cashbook_backend/config.py
import os
from datetime import timedelta


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Defaults read from the environment; create_app(test_config) overrides them."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-me")
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-jwt-key-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(
        hours=int(os.environ.get("JWT_EXPIRES_HOURS", 24))
    )

    DB_PATH = os.environ.get(
        "DB_PATH",
        os.path.join(os.path.dirname(__file__), "..", "data", "cashbook.db"),
    )

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # OTP
    OTP_LENGTH = int(os.environ.get("OTP_LENGTH", 6))
    OTP_TTL_MINUTES = int(os.environ.get("OTP_TTL_MINUTES", 5))
    OTP_MAX_ATTEMPTS = int(os.environ.get("OTP_MAX_ATTEMPTS", 5))

    # Rate limiting (Flask-Limiter reads the RATELIMIT_* keys itself)
    AUTH_RATE_LIMIT = os.environ.get("AUTH_RATE_LIMIT", "10 per minute")
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_ENABLED = _env_bool("RATELIMIT_ENABLED", True)

    # Transactions
    ENFORCE_CATEGORIES = _env_bool("ENFORCE_CATEGORIES", False)
    MAX_AMOUNT = 10000000
    MAX_PAGE_SIZE = 1000

    # OTP delivery
    MAIL_SERVER = os.environ.get("MAIL_SERVER")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", 587))
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
    MAIL_SENDER = os.environ.get("MAIL_SENDER", "no-reply@dailycashbook.com")

    SMS_API_URL = os.environ.get("SMS_API_URL")
    SMS_API_USERID = os.environ.get("SMS_API_USERID")
    SMS_API_PASSWORD = os.environ.get("SMS_API_PASSWORD")
    SMS_API_SENDERID = os.environ.get("SMS_API_SENDERID")
