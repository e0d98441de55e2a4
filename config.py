# backend/config.py
import os
from datetime import timedelta


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-jwt-secret-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "mysql+pymysql://root:@localhost/fitchain"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # 🔐 JWT config
    JWT_TOKEN_LOCATION = ["headers"]     # where to look for tokens
    JWT_HEADER_NAME = "Authorization"    # header name
    JWT_HEADER_TYPE = "Bearer"           # expected prefix
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=7)

    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")

    # show exception text in 500 responses (never in production)
    EXPOSE_ERROR_DETAILS = _env_bool("EXPOSE_ERROR_DETAILS")

    # AI food analysis
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash")
    GEMINI_BASE_URL = os.environ.get(
        "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
    )

    # World ID
    WORLD_ID_APP_ID = os.environ.get("WORLD_ID_APP_ID", "")
    WORLD_ID_ACTION = os.environ.get("WORLD_ID_ACTION", "verify-human")
    WORLD_ID_BASE_URL = os.environ.get(
        "WORLD_ID_BASE_URL", "https://developer.worldcoin.org/api/v2/verify"
    )

    UPSTREAM_TIMEOUT_SECONDS = float(os.environ.get("UPSTREAM_TIMEOUT_SECONDS", "20"))

    # fixed-window limits, keyed by client IP
    ANALYZE_RATE_LIMIT = int(os.environ.get("ANALYZE_RATE_LIMIT", "10"))
    ANALYZE_RATE_WINDOW_SECONDS = int(os.environ.get("ANALYZE_RATE_WINDOW_SECONDS", "60"))
    VERIFY_RATE_LIMIT = int(os.environ.get("VERIFY_RATE_LIMIT", "5"))
    VERIFY_RATE_WINDOW_SECONDS = int(os.environ.get("VERIFY_RATE_WINDOW_SECONDS", "900"))

    # used when a meal stake is created and no window is configured
    DEFAULT_MEAL_WINDOW_HOURS = int(os.environ.get("DEFAULT_MEAL_WINDOW_HOURS", "2"))

    # largest side (px) of images sent to the food recognition service
    ANALYZE_MAX_IMAGE_SIDE = int(os.environ.get("ANALYZE_MAX_IMAGE_SIDE", "1024"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-for-hs256"
    EXPOSE_ERROR_DETAILS = True
    GEMINI_API_KEY = "test-gemini-key"
    WORLD_ID_APP_ID = "app_staging_test"
