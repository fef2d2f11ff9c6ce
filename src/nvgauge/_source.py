"""Telemetry source protocol, the test double, and the source factory."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, NamedTuple, Protocol, runtime_checkable

from nvgauge._errors import QueryError, SessionError, UNSUPPORTED_SENSOR_MARKER

logger = logging.getLogger("nvgauge.source")


class MemoryInfo(NamedTuple):
    total: int
    used: int


class UtilizationRates(NamedTuple):
    gpu: int
    memory: int


@runtime_checkable
class TelemetrySource(Protocol):
    """Structural protocol for a device management binding.

    Device handles are opaque and only valid between ``initialize`` and
    ``shutdown``. Every query raises ``QueryError`` on failure.
    """

    def initialize(self) -> None: ...

    def shutdown(self) -> None: ...

    def driver_version(self) -> str: ...

    def device_count(self) -> int: ...

    def device_handle(self, index: int) -> Any: ...

    def uuid(self, handle: Any) -> str: ...

    def name(self, handle: Any) -> str: ...

    def minor_number(self, handle: Any) -> int: ...

    def temperature(self, handle: Any) -> int: ...

    def instant_power_usage(self, handle: Any) -> int: ...

    def average_power_usage(self, handle: Any, window_s: float) -> int: ...

    def fan_speed(self, handle: Any) -> int: ...

    def memory_info(self, handle: Any) -> MemoryInfo: ...

    def utilization_rates(self, handle: Any) -> UtilizationRates: ...

    def average_gpu_utilization(self, handle: Any, window_s: float) -> int: ...


@dataclass(frozen=True)
class _MockReadings:
    uuid: str
    name: str
    minor_number: int
    temperature: int
    instant_power_usage: int
    average_power_usage: int
    fan_speed: int
    memory_info: MemoryInfo
    utilization_rates: UtilizationRates
    average_gpu_utilization: int


class MockTelemetrySource:
    """Test-only source that simulates NVML without hardware.

    ``failures`` maps ``(device_index, reading)`` to the error that reading
    raises; session-level reads (``driver_version``, ``device_count``) use
    ``None`` as the index. ``fan_speed_unsupported_from`` makes the fan speed
    read fail with the driver's "Not Supported" message for that device index
    and every later one.
    """

    def __init__(
        self,
        *,
        num_devices: int = 2,
        version: str = "535.104.05",
        init_error: SessionError | None = None,
        failures: dict[tuple[int | None, str], Exception] | None = None,
        fan_speed_unsupported_from: int | None = None,
    ) -> None:
        self.version = version
        self._init_error = init_error
        self._failures = dict(failures or {})
        self._fan_speed_unsupported_from = fan_speed_unsupported_from
        self._open = False

        self.initialize_calls = 0
        self.shutdown_calls = 0
        self.calls: list[tuple[str, int | None]] = []

        self._devices = [
            _MockReadings(
                uuid=f"GPU-{i:04d}",
                name="NVIDIA H100 80GB HBM3",
                minor_number=i,
                temperature=62 + i,
                instant_power_usage=250_000 + i * 10_000,
                average_power_usage=240_000 + i * 10_000,
                fan_speed=35 + i,
                memory_info=MemoryInfo(total=85_899_345_920, used=42_949_672_960 + i * 1024**3),
                utilization_rates=UtilizationRates(gpu=85 + i, memory=40 + i),
                average_gpu_utilization=80 + i,
            )
            for i in range(num_devices)
        ]

    def initialize(self) -> None:
        self.initialize_calls += 1
        if self._init_error is not None:
            raise self._init_error
        self._open = True

    def shutdown(self) -> None:
        self.shutdown_calls += 1
        self._open = False

    def calls_for(self, reading: str) -> list[int | None]:
        """Device indexes on which ``reading`` was attempted, in order."""
        return [index for name, index in self.calls if name == reading]

    def _check(self, reading: str, index: int | None) -> None:
        self.calls.append((reading, index))
        if not self._open:
            raise QueryError("Uninitialized")
        error = self._failures.get((index, reading))
        if error is not None:
            raise error

    def _read(self, reading: str, handle: int) -> Any:
        self._check(reading, handle)
        return getattr(self._devices[handle], reading)

    def driver_version(self) -> str:
        self._check("driver_version", None)
        return self.version

    def device_count(self) -> int:
        self._check("device_count", None)
        return len(self._devices)

    def device_handle(self, index: int) -> int:
        self._check("device_handle", index)
        if not 0 <= index < len(self._devices):
            raise QueryError("Invalid Argument")
        return index

    def uuid(self, handle: int) -> str:
        return self._read("uuid", handle)

    def name(self, handle: int) -> str:
        return self._read("name", handle)

    def minor_number(self, handle: int) -> int:
        return self._read("minor_number", handle)

    def temperature(self, handle: int) -> int:
        return self._read("temperature", handle)

    def instant_power_usage(self, handle: int) -> int:
        return self._read("instant_power_usage", handle)

    def average_power_usage(self, handle: int, window_s: float) -> int:
        return self._read("average_power_usage", handle)

    def fan_speed(self, handle: int) -> int:
        value = self._read("fan_speed", handle)
        cutoff = self._fan_speed_unsupported_from
        if cutoff is not None and handle >= cutoff:
            raise QueryError(UNSUPPORTED_SENSOR_MARKER)
        return value

    def memory_info(self, handle: int) -> MemoryInfo:
        return self._read("memory_info", handle)

    def utilization_rates(self, handle: int) -> UtilizationRates:
        return self._read("utilization_rates", handle)

    def average_gpu_utilization(self, handle: int, window_s: float) -> int:
        return self._read("average_gpu_utilization", handle)


def create_source() -> TelemetrySource | None:
    """Factory: returns an NVML-backed source if pynvml is available, else None."""
    from nvgauge import _source_nvml

    if not _source_nvml._HAS_PYNVML:
        logger.info("pynvml not available, GPU sampling disabled")
        return None
    return _source_nvml.NvmlSource()
