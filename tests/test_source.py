"""Tests for the telemetry source protocol, the mock source, and the factory."""

from __future__ import annotations

import pytest

from nvgauge._errors import QueryError, SessionError
from nvgauge._source import (
    MemoryInfo,
    MockTelemetrySource,
    TelemetrySource,
    UtilizationRates,
    create_source,
)
from nvgauge._source_nvml import NvmlSource


class TestProtocol:
    def test_mock_satisfies_protocol(self) -> None:
        assert isinstance(MockTelemetrySource(), TelemetrySource)

    def test_nvml_satisfies_protocol(self) -> None:
        assert isinstance(NvmlSource(), TelemetrySource)

    def test_incomplete_source_rejected(self) -> None:
        class _NoFanSpeed:
            def initialize(self) -> None:
                pass

            def shutdown(self) -> None:
                pass

        assert not isinstance(_NoFanSpeed(), TelemetrySource)


class TestMockSource:
    def test_reads_require_session(self) -> None:
        source = MockTelemetrySource()
        with pytest.raises(QueryError, match="Uninitialized"):
            source.device_count()

    def test_enumeration(self) -> None:
        source = MockTelemetrySource(num_devices=3)
        source.initialize()
        assert source.device_count() == 3
        assert source.device_handle(2) == 2
        source.shutdown()

    def test_out_of_range_handle(self) -> None:
        source = MockTelemetrySource(num_devices=1)
        source.initialize()
        with pytest.raises(QueryError, match="Invalid Argument"):
            source.device_handle(1)

    def test_pair_readings(self) -> None:
        source = MockTelemetrySource(num_devices=1)
        source.initialize()
        handle = source.device_handle(0)
        mem = source.memory_info(handle)
        util = source.utilization_rates(handle)
        assert isinstance(mem, MemoryInfo)
        assert isinstance(util, UtilizationRates)
        assert mem.total > mem.used > 0
        assert util.gpu == 85
        assert util.memory == 40

    def test_init_error(self) -> None:
        source = MockTelemetrySource(init_error=SessionError("Driver Not Loaded"))
        with pytest.raises(SessionError):
            source.initialize()
        assert source.initialize_calls == 1

    def test_injected_failure(self) -> None:
        source = MockTelemetrySource(failures={(0, "temperature"): QueryError("Timeout")})
        source.initialize()
        with pytest.raises(QueryError, match="Timeout"):
            source.temperature(0)
        assert source.temperature(1) == 63

    def test_fan_speed_unsupported_from(self) -> None:
        source = MockTelemetrySource(num_devices=3, fan_speed_unsupported_from=1)
        source.initialize()
        assert source.fan_speed(0) == 35
        with pytest.raises(QueryError, match="Not Supported"):
            source.fan_speed(1)
        with pytest.raises(QueryError, match="Not Supported"):
            source.fan_speed(2)

    def test_calls_recorded(self) -> None:
        source = MockTelemetrySource(num_devices=2)
        source.initialize()
        source.driver_version()
        source.fan_speed(1)
        assert source.calls == [("driver_version", None), ("fan_speed", 1)]
        assert source.calls_for("fan_speed") == [1]


class TestCreateSource:
    def test_no_pynvml_returns_none(self, monkeypatch: pytest.MonkeyPatch) -> None:
        import nvgauge._source_nvml as nvml_mod

        monkeypatch.setattr(nvml_mod, "_HAS_PYNVML", False)
        assert create_source() is None

    def test_pynvml_returns_nvml_source(self, monkeypatch: pytest.MonkeyPatch) -> None:
        import nvgauge._source_nvml as nvml_mod

        monkeypatch.setattr(nvml_mod, "_HAS_PYNVML", True)
        assert isinstance(create_source(), NvmlSource)
