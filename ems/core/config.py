"""
Centralised application settings loaded from environment / .env file.

Uses pydantic-settings so every value can be overridden via env vars
or the .env file at the project root.
"""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings

_DEFAULT_SECRET = "CHANGE-ME-TO-A-RANDOM-64-CHAR-HEX-STRING-IN-PRODUCTION"


class Settings(BaseSettings):
    # ── Project ──────────────────────────────────────────────────────
    PROJECT_NAME: str = "EMS Reservations"
    VERSION: str = "1.0.0"
    API_V1_PREFIX: str = "/api/v1"

    # ── Database (async SQLite via aiosqlite) ────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./ems.db"

    # ── JWT ──────────────────────────────────────────────────────────
    SECRET_KEY: str = _DEFAULT_SECRET
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    COOKIE_SECURE: bool = False  # Set True in HTTPS production
    BCRYPT_ROUNDS: int = 12

    # ── Rate limiting ────────────────────────────────────────────────
    RATE_LIMIT_ENABLED: bool = True
    LOGIN_RATE_LIMIT: str = "5/minute"
    REFRESH_RATE_LIMIT: str = "10/minute"

    # ── CORS ─────────────────────────────────────────────────────────
    CORS_ORIGINS: list[str] = ["*"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors(cls, v: object) -> list[str]:
        if isinstance(v, str) and not v.lstrip().startswith("["):
            return [o.strip() for o in v.split(",") if o.strip()]
        return v  # type: ignore[return-value]

    # ── Logging ──────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"

    # ── Root master (seeded on every startup, idempotent) ────────────
    ROOT_MASTER_ID: int = 1
    ROOT_MASTER_USERNAME: str = "master"
    ROOT_MASTER_PASSWORD: str = "master1234"

    # ── Access policy ────────────────────────────────────────────────
    # Deployments disagree on these two rules; pick one per installation.
    MASTER_CAN_MANAGE_RESERVATIONS: bool = False
    ADMIN_CREATION_RESTRICTED_TO_ROOT_MASTER: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
    }


settings = Settings()

if settings.SECRET_KEY == _DEFAULT_SECRET:
    import logging

    logging.getLogger("ems.core.config").warning(
        "You are running with the default INSECURE secret key! "
        "Update SECRET_KEY in your .env file."
    )
