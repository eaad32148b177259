"""Application configuration utilities for the transfer service."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import os
from pathlib import Path
from typing import Any

from soma.logging import get_logger

logger = get_logger(__name__)

DEFAULT_APP_PORT = 8080
DEFAULT_DATABASE_URL = "sqlite:///./soma.db"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_SOURCE_CATALOG_BASE_URL = "https://music.yandex.ru"
DEFAULT_SOURCE_CATALOG_TIMEOUT_MS = 10_000
DEFAULT_SPOTIFY_REQUEST_TIMEOUT_S = 10
DEFAULT_TRANSFER_BATCH_DELAY_MS = 200
DEFAULT_TRANSFER_MAX_CONCURRENCY = 4
DEFAULT_TRANSFER_HANDLE_TTL_SEC = 3600

_RUNTIME_ENV_CACHE: dict[str, str] | None = None


def _load_env_file(path: Path) -> dict[str, str]:
    try:
        contents = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    env_values: dict[str, str] = {}
    for line in contents.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        key, sep, value = stripped.partition("=")
        if not sep:
            continue
        env_values[key.strip()] = value.strip().strip('"').strip("'")
    return env_values


def load_runtime_env(
    *,
    env_file: str | os.PathLike[str] | None = None,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Load runtime environment values applying .env before explicit environment."""

    env: dict[str, str] = {}
    source = dict(base_env or os.environ)

    path = Path(env_file) if env_file is not None else Path(".env")
    if path.exists() and path.is_file():
        env.update(_load_env_file(path))

    env.update({key: str(value) for key, value in source.items() if value is not None})
    return env


def get_runtime_env() -> Mapping[str, str]:
    """Return the cached runtime environment mapping."""

    global _RUNTIME_ENV_CACHE
    if _RUNTIME_ENV_CACHE is None:
        _RUNTIME_ENV_CACHE = load_runtime_env()
    return _RUNTIME_ENV_CACHE


def override_runtime_env(runtime_env: Mapping[str, str] | None) -> None:
    """Override the cached runtime environment (primarily for testing)."""

    global _RUNTIME_ENV_CACHE
    if runtime_env is None:
        _RUNTIME_ENV_CACHE = None
    else:
        _RUNTIME_ENV_CACHE = dict(runtime_env)


def get_env(name: str, default: str | None = None) -> str | None:
    """Return an environment variable honoring ENV > .env > defaults."""

    env = get_runtime_env()
    return env.get(name, default)


def _env_value(env: Mapping[str, Any], key: str) -> str | None:
    value = env.get(key)
    if value is None:
        return None
    return str(value)


def _coerce_int(value: Any, *, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _bounded_int(
    value: Any,
    *,
    default: int,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    resolved = _coerce_int(value, default=default)
    if minimum is not None:
        resolved = max(minimum, resolved)
    if maximum is not None:
        resolved = min(maximum, resolved)
    return resolved


def resolve_app_port(env: Mapping[str, Any] | None = None) -> int:
    """Return the configured application port constrained to valid TCP ranges."""

    runtime_env: Mapping[str, Any] = env or get_runtime_env()
    raw_value = _env_value(runtime_env, "APP_PORT")
    port = _bounded_int(raw_value, default=DEFAULT_APP_PORT, minimum=1, maximum=65535)
    if raw_value is not None and str(port) != raw_value.strip():
        logger.warning(
            "APP_PORT value %r is invalid or out of range; using %s.",
            raw_value,
            port,
        )
    return port


@dataclass(slots=True)
class LoggingConfig:
    level: str


@dataclass(slots=True)
class DatabaseConfig:
    url: str


@dataclass(slots=True)
class SourceCatalogConfig:
    base_url: str
    timeout_ms: int


@dataclass(slots=True)
class SpotifyConfig:
    request_timeout_s: int


@dataclass(slots=True)
class TransferConfig:
    batch_delay_ms: int
    max_concurrency: int
    handle_ttl_seconds: int


@dataclass(slots=True)
class AppConfig:
    logging: LoggingConfig
    database: DatabaseConfig
    source_catalog: SourceCatalogConfig
    spotify: SpotifyConfig
    transfer: TransferConfig


def load_config(runtime_env: Mapping[str, Any] | None = None) -> AppConfig:
    """Build the application configuration from the runtime environment."""

    env = runtime_env or get_runtime_env()

    database_url = (_env_value(env, "DATABASE_URL") or "").strip() or DEFAULT_DATABASE_URL
    log_level = (_env_value(env, "LOG_LEVEL") or "").strip() or DEFAULT_LOG_LEVEL

    source_catalog = SourceCatalogConfig(
        base_url=(
            (_env_value(env, "SOURCE_CATALOG_BASE_URL") or "").strip()
            or DEFAULT_SOURCE_CATALOG_BASE_URL
        ).rstrip("/"),
        timeout_ms=_bounded_int(
            _env_value(env, "SOURCE_CATALOG_TIMEOUT_MS"),
            default=DEFAULT_SOURCE_CATALOG_TIMEOUT_MS,
            minimum=100,
        ),
    )

    spotify = SpotifyConfig(
        request_timeout_s=_bounded_int(
            _env_value(env, "SPOTIFY_REQUEST_TIMEOUT_S"),
            default=DEFAULT_SPOTIFY_REQUEST_TIMEOUT_S,
            minimum=1,
        ),
    )

    transfer = TransferConfig(
        batch_delay_ms=_bounded_int(
            _env_value(env, "TRANSFER_BATCH_DELAY_MS"),
            default=DEFAULT_TRANSFER_BATCH_DELAY_MS,
            minimum=0,
        ),
        max_concurrency=_bounded_int(
            _env_value(env, "TRANSFER_MAX_CONCURRENCY"),
            default=DEFAULT_TRANSFER_MAX_CONCURRENCY,
            minimum=1,
            maximum=64,
        ),
        handle_ttl_seconds=_bounded_int(
            _env_value(env, "TRANSFER_HANDLE_TTL_SEC"),
            default=DEFAULT_TRANSFER_HANDLE_TTL_SEC,
            minimum=1,
        ),
    )

    return AppConfig(
        logging=LoggingConfig(level=log_level),
        database=DatabaseConfig(url=database_url),
        source_catalog=source_catalog,
        spotify=spotify,
        transfer=transfer,
    )


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "SourceCatalogConfig",
    "SpotifyConfig",
    "TransferConfig",
    "get_env",
    "get_runtime_env",
    "load_config",
    "load_runtime_env",
    "override_runtime_env",
    "resolve_app_port",
]
