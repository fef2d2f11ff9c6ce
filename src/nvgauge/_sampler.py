"""Background sampler that collects a snapshot once per tick."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from nvgauge._errors import NvgaugeError
from nvgauge._types import Metrics

logger = logging.getLogger("nvgauge.sampler")

MetricsHandler = Callable[[Metrics], None]
CollectFn = Callable[[], Metrics]


def _noop_handler(metrics: Metrics) -> None:
    """Default handler that discards snapshots."""


class PeriodicSampler:
    """Daemon thread that calls ``collect`` every interval, never overlapping.

    A failed collection is logged and retried on the next tick.
    """

    def __init__(
        self,
        collect: CollectFn,
        *,
        interval_ms: int = 15000,
        handler: MetricsHandler = _noop_handler,
    ) -> None:
        self._collect = collect
        self._interval_s = interval_ms / 1000.0
        self._handler = handler
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_metrics: Metrics | None = None

    def start(self) -> None:
        """Start the sampling loop."""
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="nvgauge-sampler")
        self._thread.start()

    def stop(self) -> None:
        """Signal stop and wait for an in-flight sample to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None

    def _run(self) -> None:
        while not self._stop_event.wait(timeout=self._interval_s):
            self.sample_once()

    def sample_once(self) -> Metrics | None:
        """Collect one snapshot and hand it to the handler."""
        try:
            metrics = self._collect()
        except NvgaugeError:
            logger.warning("GPU metrics collection failed", exc_info=True)
            return None
        except Exception:  # noqa: BLE001
            logger.warning("Unexpected error during GPU metrics collection", exc_info=True)
            return None
        self._last_metrics = metrics
        try:
            self._handler(metrics)
        except Exception:  # noqa: BLE001
            logger.debug("Metrics handler failed", exc_info=True)
        return metrics

    @property
    def last_metrics(self) -> Metrics | None:
        """Most recent successful snapshot."""
        return self._last_metrics

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
