"""
Ingestion Throttle
==================
Rate control for the inbound telemetry stream.

A sample is admitted only when at least ``min_interval`` seconds have passed
since the previously admitted one; everything in between is dropped, never
queued. Admitted samples are handed to every registered consumer in
registration order before ``offer`` returns.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from bridge.domain.telemetry import TelemetrySample

logger = logging.getLogger(__name__)

TelemetryConsumer = Callable[[TelemetrySample], None]


class IngestionThrottle:
    def __init__(self, min_interval: float, *, clock: Callable[[], float] = time.monotonic):
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")
        self.min_interval = float(min_interval)
        self._clock = clock
        self._lock = threading.Lock()
        self._last_admitted: float | None = None
        self._consumers: list[TelemetryConsumer] = []
        self.admitted = 0
        self.dropped = 0

    def add_consumer(self, consumer: TelemetryConsumer) -> None:
        with self._lock:
            self._consumers.append(consumer)

    def admit(self, sample: TelemetrySample) -> bool:
        """Decide whether ``sample`` passes. The first sample always does."""
        now = self._clock()
        with self._lock:
            if self._last_admitted is not None and now - self._last_admitted < self.min_interval:
                self.dropped += 1
                return False
            self._last_admitted = now
            self.admitted += 1
            return True

    def offer(self, sample: TelemetrySample) -> bool:
        """Admit ``sample`` and, if kept, deliver it to every consumer."""
        if not self.admit(sample):
            logger.debug("Telemetry throttled (min_interval=%ss)", self.min_interval)
            return False

        with self._lock:
            consumers = list(self._consumers)
        for consumer in consumers:
            try:
                consumer(sample)
            except Exception as e:
                logger.error("Telemetry consumer %r failed: %s", consumer, e, exc_info=True)
        return True

    def stats(self) -> dict:
        with self._lock:
            return {
                "min_interval": self.min_interval,
                "admitted": self.admitted,
                "dropped": self.dropped,
            }
