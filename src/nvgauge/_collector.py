"""Metrics collection: one NVML session per call, all-or-nothing snapshots."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from nvgauge._errors import QueryError, is_unsupported_sensor_error
from nvgauge._source import TelemetrySource
from nvgauge._types import Device, Metrics

logger = logging.getLogger("nvgauge.collector")

AVERAGE_WINDOW_S = 10.0

# The driver session is process-wide; never hold two at once.
_session_lock = threading.Lock()


@contextmanager
def open_session(source: TelemetrySource) -> Iterator[TelemetrySource]:
    """Hold an initialized session on ``source`` for the ``with`` body.

    ``shutdown`` runs exactly once after a successful ``initialize``, however
    the body exits. A failed ``initialize`` propagates with nothing to release.
    """
    with _session_lock:
        source.initialize()
        try:
            yield source
        finally:
            source.shutdown()


def collect_metrics(
    source: TelemetrySource,
    *,
    average_window_s: float = AVERAGE_WINDOW_S,
) -> Metrics:
    """Read every device on ``source`` into a fresh Metrics snapshot.

    Any failed query aborts the call with the source's error, except a fan
    speed read the driver reports as not supported: that device and every
    later one in this call get a fan speed of 0 and no further fan reads.
    """
    with open_session(source):
        version = source.driver_version()
        count = source.device_count()

        fan_speed_valid = True
        devices: list[Device] = []
        for index in range(count):
            handle = source.device_handle(index)

            uuid = source.uuid(handle)
            name = source.name(handle)
            minor_number = source.minor_number(handle)

            temperature = source.temperature(handle)
            power_usage = source.instant_power_usage(handle)
            power_usage_average = source.average_power_usage(handle, average_window_s)

            # Some boards have no fan, e.g. Tesla T4 and Tesla P100-SXM2.
            fan_speed = 0
            if fan_speed_valid:
                try:
                    fan_speed = source.fan_speed(handle)
                except QueryError as exc:
                    if not is_unsupported_sensor_error(exc):
                        raise
                    logger.info(
                        "Failed to get fan speed of device %d, skipping fan speed "
                        "for the remaining devices: %s",
                        index, exc,
                    )
                    fan_speed_valid = False

            memory = source.memory_info(handle)
            utilization = source.utilization_rates(handle)
            utilization_gpu_average = source.average_gpu_utilization(handle, average_window_s)

            devices.append(Device(
                index=str(index),
                minor_number=str(minor_number),
                name=name,
                uuid=uuid,
                temperature=float(temperature),
                power_usage=float(power_usage),
                power_usage_average=float(power_usage_average),
                fan_speed=float(fan_speed),
                memory_total=float(memory.total),
                memory_used=float(memory.used),
                utilization_memory=float(utilization.memory),
                utilization_gpu=float(utilization.gpu),
                utilization_gpu_average=float(utilization_gpu_average),
            ))

    return Metrics(version=version, devices=tuple(devices))


class MetricsCollector:
    """Binds a source and averaging window into a zero-argument collect()."""

    def __init__(
        self,
        source: TelemetrySource,
        *,
        average_window_s: float = AVERAGE_WINDOW_S,
    ) -> None:
        self.source = source
        self.average_window_s = average_window_s

    def collect(self) -> Metrics:
        return collect_metrics(self.source, average_window_s=self.average_window_s)

    __call__ = collect
