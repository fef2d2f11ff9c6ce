"""SDK configuration."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class NvgaugeConfig:
    """Immutable SDK configuration."""

    service_name: str
    endpoint: str | None = None
    environment: str = "development"
    sample_interval_ms: int = 15000
    average_window_s: float = 10.0
    prometheus_port: int | None = None
    api_key: str | None = None
    insecure: bool = True
