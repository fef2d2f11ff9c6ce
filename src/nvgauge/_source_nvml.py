"""NVIDIA telemetry source backed by pynvml."""

from __future__ import annotations

import logging
import time
import warnings
from collections.abc import Callable
from typing import Any, TypeVar

from nvgauge._errors import QueryError, SessionError
from nvgauge._source import MemoryInfo, UtilizationRates

logger = logging.getLogger("nvgauge.source.nvml")

# pynvml is optional; NvmlSource.initialize() reports its absence.
warnings.filterwarnings("ignore", category=FutureWarning, message=".*pynvml.*deprecated.*")
try:
    import pynvml

    _HAS_PYNVML = True
except ImportError:
    pynvml = None  # type: ignore[assignment,unused-ignore]
    _HAS_PYNVML = False

_T = TypeVar("_T")

# nvmlValueType_t -> field of the nvmlValue_t union
_SAMPLE_FIELDS: dict[str, str] = {
    "NVML_VALUE_TYPE_DOUBLE": "dVal",
    "NVML_VALUE_TYPE_UNSIGNED_INT": "uiVal",
    "NVML_VALUE_TYPE_UNSIGNED_LONG": "ulVal",
    "NVML_VALUE_TYPE_UNSIGNED_LONG_LONG": "ullVal",
    "NVML_VALUE_TYPE_SIGNED_LONG_LONG": "sllVal",
}


def _query(fn: Callable[..., _T], *args: Any) -> _T:
    """Call an NVML function, translating NVMLError into QueryError."""
    assert pynvml is not None
    try:
        return fn(*args)
    except pynvml.NVMLError as exc:
        raise QueryError(str(exc)) from exc


def _sample_value(value_type: int, value: Any) -> float:
    assert pynvml is not None
    for const_name, attr in _SAMPLE_FIELDS.items():
        if getattr(pynvml, const_name, None) == value_type:
            return getattr(value, attr)
    return value.uiVal


class NvmlSource:
    """NVIDIA GPU telemetry using pynvml.

    Units are the driver's: milliwatts, bytes, degrees Celsius, percent.
    """

    vendor = "NVIDIA"

    def initialize(self) -> None:
        if not _HAS_PYNVML:
            raise SessionError("pynvml is not installed")
        assert pynvml is not None
        try:
            pynvml.nvmlInit()
        except pynvml.NVMLError as exc:
            raise SessionError(str(exc)) from exc

    def shutdown(self) -> None:
        assert pynvml is not None
        try:
            pynvml.nvmlShutdown()
        except pynvml.NVMLError:
            logger.debug("nvmlShutdown failed", exc_info=True)

    def driver_version(self) -> str:
        assert pynvml is not None
        return _query(pynvml.nvmlSystemGetDriverVersion)

    def device_count(self) -> int:
        assert pynvml is not None
        return _query(pynvml.nvmlDeviceGetCount)

    def device_handle(self, index: int) -> Any:
        assert pynvml is not None
        return _query(pynvml.nvmlDeviceGetHandleByIndex, index)

    def uuid(self, handle: Any) -> str:
        assert pynvml is not None
        return _query(pynvml.nvmlDeviceGetUUID, handle)

    def name(self, handle: Any) -> str:
        assert pynvml is not None
        return _query(pynvml.nvmlDeviceGetName, handle)

    def minor_number(self, handle: Any) -> int:
        assert pynvml is not None
        return _query(pynvml.nvmlDeviceGetMinorNumber, handle)

    def temperature(self, handle: Any) -> int:
        assert pynvml is not None
        return _query(pynvml.nvmlDeviceGetTemperature, handle, pynvml.NVML_TEMPERATURE_GPU)

    def instant_power_usage(self, handle: Any) -> int:
        assert pynvml is not None
        return _query(pynvml.nvmlDeviceGetPowerUsage, handle)

    def average_power_usage(self, handle: Any, window_s: float) -> int:
        assert pynvml is not None
        return self._average(handle, pynvml.NVML_TOTAL_POWER_SAMPLES, window_s)

    def fan_speed(self, handle: Any) -> int:
        assert pynvml is not None
        return _query(pynvml.nvmlDeviceGetFanSpeed, handle)

    def memory_info(self, handle: Any) -> MemoryInfo:
        assert pynvml is not None
        mem = _query(pynvml.nvmlDeviceGetMemoryInfo, handle)
        return MemoryInfo(total=mem.total, used=mem.used)

    def utilization_rates(self, handle: Any) -> UtilizationRates:
        assert pynvml is not None
        util = _query(pynvml.nvmlDeviceGetUtilizationRates, handle)
        return UtilizationRates(gpu=util.gpu, memory=util.memory)

    def average_gpu_utilization(self, handle: Any, window_s: float) -> int:
        assert pynvml is not None
        return self._average(handle, pynvml.NVML_GPU_UTILIZATION_SAMPLES, window_s)

    def _average(self, handle: Any, sampling_type: int, window_s: float) -> int:
        """Integer mean of the driver's samples newer than now - window_s."""
        assert pynvml is not None
        last_seen_us = int((time.time() - window_s) * 1_000_000)
        value_type, samples = _query(
            pynvml.nvmlDeviceGetSamples, handle, sampling_type, last_seen_us
        )
        if not samples:
            return 0
        total = sum(_sample_value(value_type, s.sampleValue) for s in samples)
        return int(total // len(samples))
