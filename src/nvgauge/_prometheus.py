"""Prometheus exposition: a scrape-time collector over collect_metrics()."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any

from prometheus_client import CollectorRegistry, generate_latest, start_http_server
from prometheus_client.core import GaugeMetricFamily, InfoMetricFamily, Metric

from nvgauge._errors import NvgaugeError
from nvgauge._types import Metrics

logger = logging.getLogger("nvgauge.prometheus")

NAMESPACE = "nvidia_gpu"
DEVICE_LABELS = ["index", "minor_number", "name", "uuid"]

# (metric suffix, help text, Device attribute)
_DEVICE_GAUGES: tuple[tuple[str, str, str], ...] = (
    ("temperature_celsius", "GPU core temperature in degrees Celsius", "temperature"),
    ("power_usage_milliwatts", "Instantaneous power draw in milliwatts", "power_usage"),
    ("power_usage_average_milliwatts", "Averaged power draw in milliwatts", "power_usage_average"),
    ("fanspeed_percent", "Fan speed as a percent of maximum, 0 without a fan", "fan_speed"),
    ("memory_total_bytes", "Total framebuffer memory in bytes", "memory_total"),
    ("memory_used_bytes", "Used framebuffer memory in bytes", "memory_used"),
    ("utilization_memory_percent", "Memory controller utilization percent", "utilization_memory"),
    ("utilization_gpu_percent", "GPU utilization percent", "utilization_gpu"),
    ("utilization_gpu_average_percent", "Averaged GPU utilization percent", "utilization_gpu_average"),
)


class GPUMetricsCollector:
    """Custom prometheus_client collector; every scrape takes a fresh snapshot."""

    def __init__(self, collect: Callable[[], Metrics]) -> None:
        self._collect = collect

    def collect(self) -> Iterator[Metric]:
        up = GaugeMetricFamily(f"{NAMESPACE}_up", "Whether the last GPU metrics collection succeeded")
        try:
            metrics = self._collect()
        except NvgaugeError:
            logger.error("GPU metrics collection failed", exc_info=True)
            up.add_metric([], 0)
            yield up
            return

        up.add_metric([], 1)
        yield up
        yield InfoMetricFamily(
            f"{NAMESPACE}_driver", "NVIDIA driver version", value={"version": metrics.version}
        )

        num_devices = GaugeMetricFamily(f"{NAMESPACE}_num_devices", "Number of GPU devices")
        num_devices.add_metric([], len(metrics.devices))
        yield num_devices

        for suffix, documentation, field_name in _DEVICE_GAUGES:
            family = GaugeMetricFamily(f"{NAMESPACE}_{suffix}", documentation, labels=DEVICE_LABELS)
            for device in metrics.devices:
                family.add_metric(
                    [device.index, device.minor_number, device.name, device.uuid],
                    getattr(device, field_name),
                )
            yield family


def make_registry(collector: GPUMetricsCollector) -> CollectorRegistry:
    registry = CollectorRegistry()
    registry.register(collector)  # type: ignore[arg-type]
    return registry


def render_latest(collector: GPUMetricsCollector) -> str:
    """Render one scrape in the Prometheus text exposition format."""
    return generate_latest(make_registry(collector)).decode("utf-8")


def start_server(collector: GPUMetricsCollector, port: int, addr: str = "0.0.0.0") -> Any:
    """Serve /metrics on ``addr:port``; returns the HTTP server."""
    server, _thread = start_http_server(port, addr=addr, registry=make_registry(collector))
    logger.info("Serving GPU metrics on %s:%d", addr, port)
    return server
