from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

_DATA_DIR_ENV = "DATA_DIR"
_UPLOAD_DIR_ENV = "UPLOAD_DIR"
_AUTH_SECRET_ENV = "AUTH_SECRET"
_TOKEN_TTL_ENV = "TOKEN_TTL_SECONDS"
_MAX_UPLOAD_BYTES_ENV = "MAX_UPLOAD_BYTES"
_ADMIN_EMAIL_ENV = "ADMIN_EMAIL"
_ADMIN_PASSWORD_ENV = "ADMIN_PASSWORD"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_TOKEN_TTL_SECONDS = 12 * 60 * 60
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration read from the environment."""

    data_dir: Optional[str]
    upload_dir: Optional[str]
    auth_secret: str
    token_ttl_seconds: int
    max_upload_bytes: int
    admin_email: Optional[str]
    admin_password: Optional[str]
    log_level: str


def _env(name: str) -> Optional[str]:
    """Return the stripped value of ``name``, or ``None`` when unset or blank."""
    raw = os.getenv(name)
    if raw is None:
        return None
    return raw.strip() or None


def _path_env(name: str, default: str) -> Optional[str]:
    # An explicitly blank path switches the store to memory.
    if os.getenv(name) is None:
        return default
    return _env(name)


def _int_env(name: str, default: int) -> int:
    text = _env(name)
    if text is None:
        return default
    try:
        number = int(text)
    except ValueError:
        return default
    return number if number > 0 else default


@lru_cache
def get_settings() -> Settings:
    return Settings(
        data_dir=_path_env(_DATA_DIR_ENV, "./tmp/data"),
        upload_dir=_path_env(_UPLOAD_DIR_ENV, "./tmp/uploads"),
        auth_secret=_env(_AUTH_SECRET_ENV) or "change-me",
        token_ttl_seconds=_int_env(_TOKEN_TTL_ENV, DEFAULT_TOKEN_TTL_SECONDS),
        max_upload_bytes=_int_env(_MAX_UPLOAD_BYTES_ENV, DEFAULT_MAX_UPLOAD_BYTES),
        admin_email=_env(_ADMIN_EMAIL_ENV),
        admin_password=_env(_ADMIN_PASSWORD_ENV),
        log_level=(_env(_LOG_LEVEL_ENV) or "INFO").upper(),
    )
