"""Push GPU metrics to an OTLP collector every 15 seconds."""

import logging
import time

import nvgauge

logging.basicConfig(level=logging.INFO)

nvgauge.init(
    service_name="gpu-node",
    endpoint="localhost:4317",
    environment="development",
    sample_interval_ms=15000,
)

try:
    while True:
        time.sleep(60)
except KeyboardInterrupt:
    pass
finally:
    nvgauge.shutdown()
