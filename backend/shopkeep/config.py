# backend/shopkeep/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shopkeep.sqlite3 unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///shopkeep.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SHOPKEEP_ENV = os.environ.get("SHOPKEEP_ENV", "development")
    SHOPKEEP_VERSION = "1.0.0"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Comma separated list of browser origins allowed to call the API
    CORS_ORIGINS = os.environ.get(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    )

    SESSION_TTL_HOURS = _int_env("SESSION_TTL_HOURS", 24)

    # bcrypt cost factor; tests lower it
    BCRYPT_ROUNDS = _int_env("BCRYPT_ROUNDS", 12)

    # Defaults applied when a product is created without inventory settings
    DEFAULT_REORDER_LEVEL = _int_env("DEFAULT_REORDER_LEVEL", 10)
    DEFAULT_MAX_STOCK_LEVEL = _int_env("DEFAULT_MAX_STOCK_LEVEL", 100)
    DEFAULT_LOCATION = os.environ.get("DEFAULT_LOCATION", "Main Store")
