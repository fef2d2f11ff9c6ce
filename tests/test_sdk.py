"""Tests for _sdk module."""

import urllib.request

import pytest

import nvgauge
import nvgauge._sdk as sdk_mod
import nvgauge._source_nvml as nvml_mod
from nvgauge._source import MockTelemetrySource


def setup_function() -> None:
    """Reset SDK state before each test."""
    sdk_mod._sdk_instance = None


def test_init_creates_sdk() -> None:
    nvgauge.init(service_name="test", source=MockTelemetrySource())
    assert sdk_mod._sdk_instance is not None
    assert sdk_mod._sdk_instance.config.service_name == "test"
    nvgauge.shutdown()


def test_shutdown_clears_sdk() -> None:
    nvgauge.init(service_name="test", source=MockTelemetrySource())
    nvgauge.shutdown()
    assert sdk_mod._sdk_instance is None


def test_reinit_shuts_down_previous() -> None:
    nvgauge.init(service_name="first", endpoint="localhost:4317", source=MockTelemetrySource())
    first = sdk_mod._sdk_instance
    assert first is not None
    assert first._sampler is not None
    nvgauge.init(service_name="second", source=MockTelemetrySource())
    assert sdk_mod._sdk_instance is not first
    assert first._sampler is None
    assert sdk_mod._sdk_instance is not None
    assert sdk_mod._sdk_instance.config.service_name == "second"
    nvgauge.shutdown()


def test_no_endpoint_no_sampler() -> None:
    nvgauge.init(service_name="test", source=MockTelemetrySource())
    assert sdk_mod._sdk_instance is not None
    assert sdk_mod._sdk_instance._sampler is None
    assert sdk_mod._sdk_instance._exporter is None
    nvgauge.shutdown()


def test_endpoint_starts_sampler() -> None:
    nvgauge.init(
        service_name="test",
        endpoint="localhost:1",
        sample_interval_ms=60000,
        source=MockTelemetrySource(),
    )
    sdk = sdk_mod._sdk_instance
    assert sdk is not None
    assert sdk._exporter is not None
    assert sdk._sampler is not None
    assert sdk._sampler.is_running
    nvgauge.shutdown()


def test_without_source_sampling_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(nvml_mod, "_HAS_PYNVML", False)
    nvgauge.init(service_name="test", endpoint="localhost:4317", prometheus_port=0)
    sdk = sdk_mod._sdk_instance
    assert sdk is not None
    assert sdk._collector is None
    assert sdk._sampler is None
    assert sdk._http_server is None
    nvgauge.shutdown()


def test_prometheus_port_serves_metrics() -> None:
    nvgauge.init(service_name="test", prometheus_port=0, source=MockTelemetrySource(num_devices=2))
    sdk = sdk_mod._sdk_instance
    assert sdk is not None
    try:
        port = sdk._http_server.server_address[1]
        with urllib.request.urlopen(f"http://127.0.0.1:{port}/metrics", timeout=5) as resp:
            body = resp.read().decode("utf-8")
        assert "nvidia_gpu_num_devices 2.0" in body
    finally:
        nvgauge.shutdown()


def test_collect_metrics_with_explicit_source() -> None:
    metrics = nvgauge.collect_metrics(MockTelemetrySource(num_devices=2))
    assert [d.index for d in metrics.devices] == ["0", "1"]


def test_collect_metrics_default_source_without_pynvml(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(nvml_mod, "_HAS_PYNVML", False)
    with pytest.raises(nvgauge.SessionError):
        nvgauge.collect_metrics()


def test_insecure_false_uses_secure_channel(monkeypatch: pytest.MonkeyPatch) -> None:
    import grpc

    import nvgauge._exporter as exporter_mod

    secure_calls: list[str] = []

    def fake_secure_channel(endpoint: str, credentials: object) -> grpc.Channel:
        secure_calls.append(endpoint)
        return grpc.insecure_channel(endpoint)

    monkeypatch.setattr(exporter_mod.grpc, "secure_channel", fake_secure_channel)
    nvgauge.init(
        service_name="test",
        endpoint="collector.example:4317",
        insecure=False,
        sample_interval_ms=60000,
        source=MockTelemetrySource(),
    )
    sdk = sdk_mod._sdk_instance
    assert sdk is not None
    try:
        assert sdk.config.insecure is False
        assert sdk._exporter is not None
        assert secure_calls == ["collector.example:4317"]
    finally:
        nvgauge.shutdown()


def test_insecure_default_uses_insecure_channel(monkeypatch: pytest.MonkeyPatch) -> None:
    import nvgauge._exporter as exporter_mod

    def fail_secure_channel(endpoint: str, credentials: object) -> None:
        raise AssertionError("secure channel not expected")

    monkeypatch.setattr(exporter_mod.grpc, "secure_channel", fail_secure_channel)
    nvgauge.init(service_name="test", endpoint="localhost:4317", source=MockTelemetrySource())
    try:
        assert sdk_mod._sdk_instance is not None
        assert sdk_mod._sdk_instance.config.insecure is True
    finally:
        nvgauge.shutdown()
