"""SDK singleton: wires source, sampler, and exporters together."""

from __future__ import annotations

import atexit
from typing import Any

from nvgauge._collector import MetricsCollector
from nvgauge._config import NvgaugeConfig
from nvgauge._exporter import MetricsExporter
from nvgauge._prometheus import GPUMetricsCollector, start_server
from nvgauge._sampler import PeriodicSampler
from nvgauge._source import TelemetrySource, create_source

_sdk_instance: _NvgaugeSDK | None = None


class _NvgaugeSDK:
    """Internal SDK singleton. Not part of the public API."""

    def __init__(self, config: NvgaugeConfig, source: TelemetrySource | None = None) -> None:
        self.config = config
        self._source = source
        self._collector: MetricsCollector | None = None
        self._sampler: PeriodicSampler | None = None
        self._exporter: MetricsExporter | None = None
        self._http_server: Any = None

    def start(self) -> None:
        """Start sampling and whichever exporters the config enables."""
        if self._source is None:
            self._source = create_source()
        if self._source is None:
            return
        self._collector = MetricsCollector(
            self._source, average_window_s=self.config.average_window_s
        )

        if self.config.endpoint is not None:
            self._exporter = MetricsExporter(
                endpoint=self.config.endpoint,
                service_name=self.config.service_name,
                environment=self.config.environment,
                insecure=self.config.insecure,
                api_key=self.config.api_key,
            )
            self._sampler = PeriodicSampler(
                self._collector.collect,
                interval_ms=self.config.sample_interval_ms,
                handler=self._exporter.export,
            )
            self._sampler.start()

        if self.config.prometheus_port is not None:
            self._http_server = start_server(
                GPUMetricsCollector(self._collector.collect),
                self.config.prometheus_port,
            )

    def shutdown(self) -> None:
        """Stop sampling and release resources."""
        if self._sampler is not None:
            self._sampler.stop()
            self._sampler = None
        if self._exporter is not None:
            self._exporter.shutdown()
            self._exporter = None
        if self._http_server is not None:
            self._http_server.shutdown()
            self._http_server.server_close()
            self._http_server = None
        self._collector = None


def init(
    *,
    service_name: str,
    endpoint: str | None = None,
    environment: str = "development",
    sample_interval_ms: int = 15000,
    average_window_s: float = 10.0,
    prometheus_port: int | None = None,
    api_key: str | None = None,
    insecure: bool = True,
    source: TelemetrySource | None = None,
) -> None:
    """Initialize the nvgauge SDK.

    ``source`` defaults to the NVML binding; when it is unavailable the SDK
    stays initialized but does not sample.
    """
    global _sdk_instance  # noqa: PLW0603

    if _sdk_instance is not None:
        _sdk_instance.shutdown()

    config = NvgaugeConfig(
        service_name=service_name,
        endpoint=endpoint,
        environment=environment,
        sample_interval_ms=sample_interval_ms,
        average_window_s=average_window_s,
        prometheus_port=prometheus_port,
        api_key=api_key,
        insecure=insecure,
    )
    _sdk_instance = _NvgaugeSDK(config, source=source)
    _sdk_instance.start()
    atexit.register(shutdown)


def shutdown() -> None:
    """Shut down the SDK."""
    global _sdk_instance  # noqa: PLW0603
    if _sdk_instance is not None:
        _sdk_instance.shutdown()
        _sdk_instance = None
