from __future__ import annotations

import threading
from collections import deque

from bridge.domain.telemetry import TelemetrySample


class TelemetryHistory:
    """Bounded ring of the most recent admitted samples, oldest first."""

    def __init__(self, maxlen: int = 100):
        self._samples: deque[TelemetrySample] = deque(maxlen=max(1, maxlen))
        self._lock = threading.Lock()

    @property
    def maxlen(self) -> int:
        return self._samples.maxlen or 0

    def record(self, sample: TelemetrySample) -> None:
        with self._lock:
            self._samples.append(sample)

    def latest(self) -> TelemetrySample | None:
        with self._lock:
            return self._samples[-1] if self._samples else None

    def recent(self, limit: int | None = None) -> list[TelemetrySample]:
        with self._lock:
            samples = list(self._samples)
        if limit is not None:
            if limit <= 0:
                return []
            samples = samples[-limit:]
        return samples

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)
