"""OTLP gRPC exporter: converts Metrics snapshots to protobuf and ships them."""

from __future__ import annotations

import logging
import platform
import time
from typing import TYPE_CHECKING

import grpc
from opentelemetry.proto.collector.metrics.v1.metrics_service_pb2 import (
    ExportMetricsServiceRequest,
)
from opentelemetry.proto.collector.metrics.v1.metrics_service_pb2_grpc import (
    MetricsServiceStub,
)
from opentelemetry.proto.common.v1.common_pb2 import (
    AnyValue,
    InstrumentationScope,
    KeyValue,
)
from opentelemetry.proto.metrics.v1.metrics_pb2 import (
    Gauge,
    Metric,
    NumberDataPoint,
    ResourceMetrics,
    ScopeMetrics,
)
from opentelemetry.proto.resource.v1.resource_pb2 import Resource

if TYPE_CHECKING:
    from nvgauge._types import Device, Metrics

logger = logging.getLogger("nvgauge.exporter")

SDK_NAME = "nvgauge"
SDK_VERSION = "0.1.0"

# (metric name, unit, description, Device attribute)
_GAUGES: tuple[tuple[str, str, str, str], ...] = (
    ("gpu.temperature", "Cel", "GPU core temperature", "temperature"),
    ("gpu.power.usage", "mW", "Instantaneous power draw", "power_usage"),
    ("gpu.power.usage.average", "mW", "Power draw averaged over the sampling window", "power_usage_average"),
    ("gpu.fan.speed", "%", "Fan speed, 0 when the board has no fan", "fan_speed"),
    ("gpu.memory.total", "By", "Total framebuffer memory", "memory_total"),
    ("gpu.memory.used", "By", "Used framebuffer memory", "memory_used"),
    ("gpu.utilization.memory", "%", "Memory controller utilization", "utilization_memory"),
    ("gpu.utilization.gpu", "%", "GPU utilization", "utilization_gpu"),
    ("gpu.utilization.gpu.average", "%", "GPU utilization averaged over the sampling window", "utilization_gpu_average"),
)


def _make_attribute(key: str, value: str | int | float | bool) -> KeyValue:
    """Convert a Python key-value pair to an OTLP KeyValue protobuf."""
    if isinstance(value, bool):
        av = AnyValue(bool_value=value)
    elif isinstance(value, int):
        av = AnyValue(int_value=value)
    elif isinstance(value, float):
        av = AnyValue(double_value=value)
    else:
        av = AnyValue(string_value=str(value))
    return KeyValue(key=key, value=av)


def _device_attributes(device: Device) -> list[KeyValue]:
    return [
        _make_attribute("gpu.index", device.index),
        _make_attribute("gpu.minor_number", device.minor_number),
        _make_attribute("gpu.name", device.name),
        _make_attribute("gpu.uuid", device.uuid),
    ]


def _metrics_to_otlp(metrics: Metrics, time_unix_nano: int) -> list[Metric]:
    """One gauge per Device field, one data point per device."""
    attrs = [_device_attributes(d) for d in metrics.devices]
    result: list[Metric] = []
    for name, unit, description, field_name in _GAUGES:
        points = [
            NumberDataPoint(
                attributes=device_attrs,
                time_unix_nano=time_unix_nano,
                as_double=getattr(device, field_name),
            )
            for device, device_attrs in zip(metrics.devices, attrs)
        ]
        result.append(Metric(
            name=name,
            unit=unit,
            description=description,
            gauge=Gauge(data_points=points),
        ))
    return result


def _build_export_request(
    metrics: Metrics,
    service_name: str,
    environment: str,
    *,
    time_unix_nano: int | None = None,
) -> ExportMetricsServiceRequest:
    """Build an ExportMetricsServiceRequest from one Metrics snapshot."""
    if time_unix_nano is None:
        time_unix_nano = time.time_ns()

    resource_attrs = [
        _make_attribute("service.name", service_name),
        _make_attribute("deployment.environment", environment),
        _make_attribute("host.name", platform.node()),
        _make_attribute("telemetry.sdk.name", SDK_NAME),
        _make_attribute("telemetry.sdk.version", SDK_VERSION),
        _make_attribute("gpu.driver.version", metrics.version),
    ]

    resource = Resource(attributes=resource_attrs)
    scope = InstrumentationScope(name=SDK_NAME, version=SDK_VERSION)

    scope_metrics = ScopeMetrics(scope=scope, metrics=_metrics_to_otlp(metrics, time_unix_nano))
    resource_metrics = ResourceMetrics(resource=resource, scope_metrics=[scope_metrics])

    return ExportMetricsServiceRequest(resource_metrics=[resource_metrics])


class MetricsExporter:
    """Exports Metrics snapshots over gRPC using the OTLP metrics protocol.

    Designed as a MetricsHandler for PeriodicSampler. Failures are logged
    but never raised.
    """

    def __init__(
        self,
        endpoint: str,
        service_name: str,
        environment: str,
        *,
        insecure: bool = True,
        timeout_s: float = 10.0,
        api_key: str | None = None,
    ) -> None:
        self._service_name = service_name
        self._environment = environment
        self._timeout_s = timeout_s
        self._metadata: list[tuple[str, str]] | None = None
        if api_key is not None:
            self._metadata = [("authorization", f"Bearer {api_key}")]

        if insecure:
            self._channel = grpc.insecure_channel(endpoint)
        else:
            self._channel = grpc.secure_channel(endpoint, grpc.ssl_channel_credentials())

        self._stub = MetricsServiceStub(self._channel)  # type: ignore[no-untyped-call]

    def export(self, metrics: Metrics) -> None:
        """Export one snapshot. Logs and swallows all errors."""
        try:
            request = _build_export_request(
                metrics, self._service_name, self._environment
            )
            self._stub.Export(request, timeout=self._timeout_s, metadata=self._metadata)
        except Exception:  # noqa: BLE001
            logger.debug("Failed to export metrics for %d devices", len(metrics.devices), exc_info=True)

    def shutdown(self) -> None:
        """Close the gRPC channel."""
        try:
            self._channel.close()
        except Exception:  # noqa: BLE001
            logger.debug("Failed to close gRPC channel", exc_info=True)
