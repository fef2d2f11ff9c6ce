#!/usr/bin/env python3
"""Collection overhead benchmark.

Measures the pure-Python cost, excluding driver time, of:
  1. collect_metrics()   (session scoping + per-device reads + snapshot build)
  2. render_latest()     (one Prometheus scrape over a fresh snapshot)
  3. _build_export_request()  (Metrics -> OTLP protobuf)

Usage:
    python benchmarks/bench_overhead.py
"""

from __future__ import annotations

import time

from nvgauge._collector import MetricsCollector, collect_metrics
from nvgauge._exporter import _build_export_request
from nvgauge._prometheus import GPUMetricsCollector, render_latest
from nvgauge._source import MockTelemetrySource


def bench_collect(num_devices: int = 8, iterations: int = 20_000) -> float:
    """Benchmark: one full collection over the mock source."""
    source = MockTelemetrySource(num_devices=num_devices)

    # Warmup
    for _ in range(200):
        collect_metrics(source)
        source.calls.clear()

    start = time.perf_counter_ns()
    for _ in range(iterations):
        collect_metrics(source)
        source.calls.clear()
    elapsed = time.perf_counter_ns() - start

    return elapsed / iterations


def bench_scrape(num_devices: int = 8, iterations: int = 5_000) -> float:
    """Benchmark: collection plus Prometheus text rendering."""
    source = MockTelemetrySource(num_devices=num_devices)
    collector = GPUMetricsCollector(MetricsCollector(source).collect)

    for _ in range(100):
        render_latest(collector)
        source.calls.clear()

    start = time.perf_counter_ns()
    for _ in range(iterations):
        render_latest(collector)
        source.calls.clear()
    elapsed = time.perf_counter_ns() - start

    return elapsed / iterations


def bench_otlp_request(num_devices: int = 8, iterations: int = 5_000) -> float:
    """Benchmark: protobuf request construction only."""
    metrics = collect_metrics(MockTelemetrySource(num_devices=num_devices))

    for _ in range(100):
        _build_export_request(metrics, "bench", "dev")

    start = time.perf_counter_ns()
    for _ in range(iterations):
        _build_export_request(metrics, "bench", "dev")
    elapsed = time.perf_counter_ns() - start

    return elapsed / iterations


def main() -> None:
    print("=" * 60)
    print("nvgauge collection overhead (8 mock devices)")
    print("=" * 60)

    results = [
        ("collect_metrics()", bench_collect()),
        ("Prometheus scrape", bench_scrape()),
        ("OTLP request build", bench_otlp_request()),
    ]
    for label, ns in results:
        print(f"  {label:<24} {ns / 1000:>10.1f} us/call")


if __name__ == "__main__":
    main()
