"""
settings.py

Runtime configuration for the Project Management Service.

Configuration via environment variables:
    PMS_HOST=127.0.0.1
    PMS_PORT=8000
    PMS_RELOAD=false
    PMS_LOG_LEVEL=info
    PMS_CORS_ORIGINS=http://localhost:5173,http://localhost:3000
    PMS_BACKEND_URL=http://localhost:3000/api     (optional remote backend)
    PMS_BACKEND_TOKEN=<bearer token for the backend>
    PMS_BACKEND_TIMEOUT=10
    PMS_SEED_DEMO_DATA=true

Usage:
    from settings import get_settings

    settings = get_settings()
    if settings.backend_url:
        ...
"""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

ENV_PREFIX = "PMS_"

# Bootstrap manager seeded at startup so the API is usable out of the box.
# The bearer token for local testing is this UUID.
DEFAULT_MANAGER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    value = _env(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring invalid %s%s=%r, using %s", ENV_PREFIX, name, value, default)
        return default


def _env_float(name: str, default: float) -> float:
    value = _env(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring invalid %s%s=%r, using %s", ENV_PREFIX, name, value, default)
        return default


@dataclass(frozen=True)
class Settings:
    host: str = "127.0.0.1"
    port: int = 8000
    reload: bool = False
    log_level: str = "info"
    cors_origins: Tuple[str, ...] = ("*",)

    # Remote backend the gateway delegates to; None keeps everything in memory.
    backend_url: Optional[str] = None
    backend_token: Optional[str] = None
    backend_timeout: float = 10.0

    seed_demo_data: bool = True
    manager_id: uuid.UUID = field(default=DEFAULT_MANAGER_ID)

    @classmethod
    def from_env(cls) -> "Settings":
        origins = _env("CORS_ORIGINS")
        return cls(
            host=_env("HOST", cls.host),
            port=_env_int("PORT", cls.port),
            reload=_env_bool("RELOAD", cls.reload),
            log_level=(_env("LOG_LEVEL", cls.log_level) or cls.log_level).lower(),
            cors_origins=(
                tuple(o.strip() for o in origins.split(",") if o.strip())
                if origins else cls.cors_origins
            ),
            backend_url=(_env("BACKEND_URL") or "").rstrip("/") or None,
            backend_token=_env("BACKEND_TOKEN") or None,
            backend_timeout=_env_float("BACKEND_TIMEOUT", cls.backend_timeout),
            seed_demo_data=_env_bool("SEED_DEMO_DATA", cls.seed_demo_data),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
