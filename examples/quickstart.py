"""nvgauge Quick Start: take one snapshot of every GPU and print it."""

import json
import logging

import nvgauge

logging.basicConfig(level=logging.INFO)

# 1. One collection call = one NVML session
try:
    metrics = nvgauge.collect_metrics()
except nvgauge.NvgaugeError as exc:
    raise SystemExit(f"GPU metrics unavailable: {exc}")

# 2. Typed access
print(f"Driver {metrics.version}, {len(metrics.devices)} device(s)")
for device in metrics.devices:
    print(
        f"  [{device.index}] {device.name}: {device.temperature:.0f}C, "
        f"{device.power_usage / 1000:.1f}W, fan {device.fan_speed:.0f}%, "
        f"util {device.utilization_gpu:.0f}%"
    )

# 3. Stable transport field names, e.g. for a log sink
print(json.dumps(metrics.as_dict(), indent=2))
