"""Snapshot types: the Metrics root and its per-GPU Device records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Device:
    """Immutable readings for one GPU.

    Identity fields are strings; every gauge is a float regardless of the
    driver's native integer width.
    """

    index: str
    minor_number: str
    name: str
    uuid: str
    temperature: float
    power_usage: float
    power_usage_average: float
    fan_speed: float
    memory_total: float
    memory_used: float
    utilization_memory: float
    utilization_gpu: float
    utilization_gpu_average: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "minorNumber": self.minor_number,
            "name": self.name,
            "uuid": self.uuid,
            "temperature": self.temperature,
            "powerUsage": self.power_usage,
            "powerUsageAverage": self.power_usage_average,
            "fanSpeed": self.fan_speed,
            "memoryTotal": self.memory_total,
            "memoryUsed": self.memory_used,
            "utilizationMemory": self.utilization_memory,
            "utilizationGpu": self.utilization_gpu,
            "utilizationGpuAverage": self.utilization_gpu_average,
        }


@dataclass(frozen=True)
class Metrics:
    """Immutable snapshot produced by one collection call.

    ``devices`` is ordered by enumeration index.
    """

    version: str
    devices: tuple[Device, ...] = field(default_factory=tuple)

    def as_dict(self) -> dict[str, Any]:
        """Render with the stable transport field names."""
        return {
            "version": self.version,
            "devices": [d.as_dict() for d in self.devices],
        }
