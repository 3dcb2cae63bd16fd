"""Environment configuration, read once at import into ``SETTINGS``.

The store backend is not a setting of its own: it follows from which
connection URL is present (DATABASE_URL wins over REDIS_URL; neither
means the in-memory store).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]
StoreBackend = Literal["memory", "postgres", "redis"]

_APP_ENVS = ("dev", "test", "prod")
_LOG_LEVELS = ("debug", "info", "warning", "error")
_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _choice(name: str, default: str, allowed: tuple[str, ...]) -> str:
    value = _env(name, default).lower()
    if value not in allowed:
        raise ValueError(f"{name} must be {'|'.join(allowed)} (got {value!r})")
    return value


def _flag(name: str, default: str) -> bool:
    raw = _env(name, default)
    if raw.lower() in _TRUE:
        return True
    if raw.lower() in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


def _integer(name: str, default: str, *, minimum: int | None = None) -> int:
    raw = _env(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if minimum is not None and value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {raw!r})")
    return value


def _positive_seconds(name: str, default: str) -> float:
    raw = _env(name, default)
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {raw!r})") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive (got {raw!r})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    store_timeout_seconds: float = 5.0
    # Max operations in one atomic multi-write; one is kept for the ledger entry
    bulk_write_limit: int = 400
    qr_schema_version: int = 1

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    @property
    def store_backend(self) -> StoreBackend:
        if self.database_url:
            return "postgres"
        if self.redis_url:
            return "redis"
        return "memory"


def load_settings() -> Settings:
    """Build Settings from the environment; ValueError names the bad variable."""
    return Settings(  # type: ignore[arg-type]
        app_env=_choice("APP_ENV", "dev", _APP_ENVS),
        log_level=_choice("LOG_LEVEL", "info", _LOG_LEVELS),
        log_json=_flag("LOG_JSON", "false"),
        port=_integer("PORT", "8000"),
        database_url=_env("DATABASE_URL") or None,
        redis_url=_env("REDIS_URL") or None,
        store_timeout_seconds=_positive_seconds("STORE_TIMEOUT_SECONDS", "5"),
        bulk_write_limit=_integer("BULK_WRITE_LIMIT", "400", minimum=2),
        qr_schema_version=_integer("QR_SCHEMA_VERSION", "1", minimum=1),
    )


SETTINGS = load_settings()
