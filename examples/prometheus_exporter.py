"""Serve GPU metrics for Prometheus at http://localhost:9445/metrics."""

import logging
import signal

import nvgauge

logging.basicConfig(level=logging.INFO)

# Every scrape opens its own NVML session; concurrent scrapes are serialized.
nvgauge.init(service_name="gpu-node", prometheus_port=9445)

try:
    signal.pause()
except KeyboardInterrupt:
    pass
finally:
    nvgauge.shutdown()
