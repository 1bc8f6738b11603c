# backend/cspace/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return int(value)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Signing secret for session, refresh and kiosk tokens (falls back to SECRET_KEY)
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY") or SECRET_KEY
    JWT_ALGORITHM = "HS256"

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///cspace.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session lifecycle
    SESSION_TOKEN_TTL_SECONDS = _int_env("SESSION_TOKEN_TTL_SECONDS", 60 * 60)  # 1 hour
    REFRESH_TOKEN_TTL_SECONDS = _int_env("REFRESH_TOKEN_TTL_SECONDS", 7 * 24 * 60 * 60)  # 7 days
    REFRESH_REUSE_GRACE_SECONDS = _int_env("REFRESH_REUSE_GRACE_SECONDS", 30)
    SESSION_COOKIE_SECURE = os.environ.get("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # Operator PIN lockout
    PIN_MAX_ATTEMPTS = _int_env("PIN_MAX_ATTEMPTS", 5)
    PIN_FAILURE_WINDOW_SECONDS = _int_env("PIN_FAILURE_WINDOW_SECONDS", 15 * 60)
    PIN_LOCKOUT_SECONDS = _int_env("PIN_LOCKOUT_SECONDS", 5 * 60)
    PIN_LOCKOUT_BACKEND = os.environ.get("PIN_LOCKOUT_BACKEND", "memory")  # "memory" or "database"

    # bcrypt cost factors
    BCRYPT_ROUNDS = _int_env("BCRYPT_ROUNDS", 12)
    PIN_BCRYPT_ROUNDS = _int_env("PIN_BCRYPT_ROUNDS", 10)

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
