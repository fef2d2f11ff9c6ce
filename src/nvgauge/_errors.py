"""Error kinds raised by telemetry sources and the collector."""

from __future__ import annotations

# Message NVML reports for NVML_ERROR_NOT_SUPPORTED.
UNSUPPORTED_SENSOR_MARKER = "Not Supported"


class NvgaugeError(Exception):
    """Base class for all nvgauge errors."""


class SessionError(NvgaugeError):
    """The management session could not be opened."""


class QueryError(NvgaugeError):
    """A driver, device or sensor query failed."""


def is_unsupported_sensor_error(exc: BaseException) -> bool:
    """Return True if ``exc`` means the sensor does not exist on this device."""
    return UNSUPPORTED_SENSOR_MARKER in str(exc)


__all__ = [
    "UNSUPPORTED_SENSOR_MARKER",
    "NvgaugeError",
    "QueryError",
    "SessionError",
    "is_unsupported_sensor_error",
]
