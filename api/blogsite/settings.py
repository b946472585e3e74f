"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# "PRODUCTION" turns on Secure cookies
DEPLOY_MODE: str = os.getenv("DEPLOY_MODE", "DEVELOPMENT").upper()
IS_PRODUCTION: bool = DEPLOY_MODE == "PRODUCTION"

# Session token (JWT carried in an HTTP-only cookie)
SESSION_COOKIE_NAME: str = os.getenv("SESSION_COOKIE_NAME", "token")
SESSION_TOKEN_EXPIRE_DAYS: int = _int_env("SESSION_TOKEN_EXPIRE_DAYS", 7)

# Maximum size for a single uploaded image (cover or avatar), bytes.
# Configured via .env: MAX_IMAGE_UPLOAD_BYTES=5242880  (5 MiB)
MAX_IMAGE_UPLOAD_BYTES: int = _int_env("MAX_IMAGE_UPLOAD_BYTES", 5 * 1024 * 1024)

# Comma-separated list of allowed browser origins
CORS_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

RUN_MIGRATIONS: bool = _bool_env("RUN_MIGRATIONS", True)
