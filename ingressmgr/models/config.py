"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ControllerConfig:
    """Work queue and worker pool configuration."""

    watch_namespace: str = ""  # empty means all namespaces
    max_concurrent_reconciles: int = 4
    backoff_base_seconds: float = 0.005
    backoff_max_seconds: float = 1000.0
    reconcile_timeout_seconds: float = 0.0  # 0 disables the per-pass timeout


@dataclass
class WatchConfig:
    """Watch stream configuration."""

    timeout_seconds: int = 300
    reconnect_max_seconds: float = 30.0


@dataclass
class APIConfig:
    """Health/metrics HTTP endpoint configuration."""

    enabled: bool = True
    port: int = 8081


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class IngressManagerConfig:
    """Top-level ingress-manager configuration."""

    controller: ControllerConfig = field(default_factory=ControllerConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
