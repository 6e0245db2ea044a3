"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re

from ingressmgr.models.config import (
    APIConfig,
    ControllerConfig,
    IngressManagerConfig,
    LogConfig,
    WatchConfig,
)

_DNS_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"INGRESSMGR_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def _validate_namespace(value: str) -> str:
    if value and (len(value) > 63 or not _DNS_LABEL.match(value)):
        raise ValueError(f"Invalid namespace: {value}")
    return value


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> IngressManagerConfig:
    """Load configuration from INGRESSMGR_* environment variables."""
    backoff_base = _env_float("BACKOFF_BASE_SECONDS", 0.005, min_val=0.001)
    backoff_max = _env_float("BACKOFF_MAX_SECONDS", 1000.0, min_val=backoff_base)
    return IngressManagerConfig(
        controller=ControllerConfig(
            watch_namespace=_validate_namespace(_env("WATCH_NAMESPACE", "")),
            max_concurrent_reconciles=_env_int("MAX_CONCURRENT_RECONCILES", 4, min_val=1, max_val=64),
            backoff_base_seconds=backoff_base,
            backoff_max_seconds=backoff_max,
            reconcile_timeout_seconds=_env_float("RECONCILE_TIMEOUT_SECONDS", 0.0, min_val=0.0),
        ),
        watch=WatchConfig(
            timeout_seconds=_env_int("WATCH_TIMEOUT_SECONDS", 300, min_val=30, max_val=3600),
            reconnect_max_seconds=_env_float("WATCH_RECONNECT_MAX_SECONDS", 30.0, min_val=1.0),
        ),
        api=APIConfig(
            enabled=_env_bool("API_ENABLED", True),
            port=_env_int("API_PORT", 8081, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
