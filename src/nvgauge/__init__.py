"""nvgauge: GPU telemetry snapshots from NVML, exported as metrics."""

from __future__ import annotations

from nvgauge._collector import AVERAGE_WINDOW_S, MetricsCollector, open_session
from nvgauge._collector import collect_metrics as _collect_metrics
from nvgauge._errors import (
    UNSUPPORTED_SENSOR_MARKER,
    NvgaugeError,
    QueryError,
    SessionError,
    is_unsupported_sensor_error,
)
from nvgauge._sdk import init, shutdown
from nvgauge._source import (
    MemoryInfo,
    MockTelemetrySource,
    TelemetrySource,
    UtilizationRates,
    create_source,
)
from nvgauge._source_nvml import NvmlSource
from nvgauge._types import Device, Metrics

__version__ = "0.1.0"

__all__ = [
    "AVERAGE_WINDOW_S",
    "UNSUPPORTED_SENSOR_MARKER",
    "Device",
    "MemoryInfo",
    "Metrics",
    "MetricsCollector",
    "MockTelemetrySource",
    "NvgaugeError",
    "NvmlSource",
    "QueryError",
    "SessionError",
    "TelemetrySource",
    "UtilizationRates",
    "__version__",
    "collect_metrics",
    "create_source",
    "init",
    "is_unsupported_sensor_error",
    "open_session",
    "shutdown",
]


def collect_metrics(
    source: TelemetrySource | None = None,
    *,
    average_window_s: float = AVERAGE_WINDOW_S,
) -> Metrics:
    """Take one snapshot of every GPU.

    Usage::

        metrics = nvgauge.collect_metrics()
        for device in metrics.devices:
            print(device.name, device.temperature)

    Raises SessionError if the driver cannot be opened and QueryError if any
    required reading fails.
    """
    if source is None:
        source = NvmlSource()
    return _collect_metrics(source, average_window_s=average_window_s)
