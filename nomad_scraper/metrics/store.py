"""Lock-guarded mapping from task group name to its latest JobStatusSample.

The poll thread is the only writer; the metrics runtime reads through
snapshot(). Every operation is one short critical section over a single
threading.Lock and the lock is never held while calling out (network,
emission, logging of large payloads). Atomicity is per key: a reader may see
some groups from the current cycle and others from the previous one.
"""
from __future__ import annotations

import threading
import time
from collections.abc import Callable

from .transform import JobStatusSample


class SharedStatusStore:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._samples: dict[str, JobStatusSample] = {}
        self._last_seen: dict[str, float] = {}
        self._clock = clock

    def upsert(self, group: str, sample: JobStatusSample) -> None:
        now = self._clock()
        with self._lock:
            self._samples[group] = sample
            self._last_seen[group] = now

    def touch(self, group: str) -> bool:
        """Mark a known group as still reported without changing its sample."""
        now = self._clock()
        with self._lock:
            if group not in self._samples:
                return False
            self._last_seen[group] = now
            return True

    def snapshot(self) -> dict[str, JobStatusSample]:
        """Point-in-time copy; callers may iterate it without holding the lock."""
        with self._lock:
            return dict(self._samples)

    def get(self, group: str) -> JobStatusSample | None:
        with self._lock:
            return self._samples.get(group)

    def evict_older_than(self, max_age: float, now: float | None = None) -> list[str]:
        """Drop groups whose last upsert is older than max_age seconds.

        Returns the evicted names. A non-positive max_age is a no-op (retain).
        """
        if max_age <= 0:
            return []
        cutoff = (self._clock() if now is None else now) - max_age
        with self._lock:
            stale = [g for g, seen in self._last_seen.items() if seen < cutoff]
            for g in stale:
                del self._samples[g]
                del self._last_seen[g]
        return stale

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()
            self._last_seen.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

__all__ = ["SharedStatusStore"]
