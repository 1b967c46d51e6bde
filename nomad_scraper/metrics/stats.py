"""Poll loop counters shared between the poll thread and the stats collector."""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class PollStatsSnapshot:
    cycles: int
    failures_by_kind: dict[str, int]
    consecutive_failures: int
    last_success_ts: float
    last_error: str | None


@dataclass(slots=True)
class PollStats:
    cycles: int = 0
    failures_by_kind: dict[str, int] = field(default_factory=dict)
    consecutive_failures: int = 0
    last_success_ts: float = 0.0
    last_error: str | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_success(self, now: float | None = None) -> None:
        with self._lock:
            self.cycles += 1
            self.consecutive_failures = 0
            self.last_success_ts = time.time() if now is None else now
            self.last_error = None

    def record_failure(self, kind: str, error: str) -> int:
        """Count a failed cycle; returns the consecutive failure streak."""
        with self._lock:
            self.failures_by_kind[kind] = self.failures_by_kind.get(kind, 0) + 1
            self.consecutive_failures += 1
            self.last_error = error
            return self.consecutive_failures

    @property
    def failures(self) -> int:
        with self._lock:
            return sum(self.failures_by_kind.values())

    def snapshot(self) -> PollStatsSnapshot:
        with self._lock:
            return PollStatsSnapshot(
                cycles=self.cycles,
                failures_by_kind=dict(self.failures_by_kind),
                consecutive_failures=self.consecutive_failures,
                last_success_ts=self.last_success_ts,
                last_error=self.last_error,
            )

__all__ = ["PollStats", "PollStatsSnapshot"]
