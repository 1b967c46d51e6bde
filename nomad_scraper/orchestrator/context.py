"""Runtime context container for the scraper.

Centralizes the objects shared by the poll loop, the shutdown coordinator and
the entrypoint so they are passed explicitly instead of living in module
globals.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from nomad_scraper.metrics.stats import PollStats
from nomad_scraper.metrics.store import SharedStatusStore
from nomad_scraper.metrics.transform import ZeroDesiredPolicy

if TYPE_CHECKING:  # pragma: no cover
    from nomad_scraper.providers.nomad_client import PollCycleResult


class StatusFetcher(Protocol):
    def fetch_statuses(self) -> PollCycleResult: ...


@dataclass(slots=True)
class RuntimeContext:
    fetcher: StatusFetcher
    store: SharedStatusStore = field(default_factory=SharedStatusStore)
    stats: PollStats = field(default_factory=PollStats)
    zero_policy: ZeroDesiredPolicy = ZeroDesiredPolicy.ZERO
    stale_ttl: float = 0.0
    # Broadcast cancellation; set by the shutdown coordinator or a fatal poll failure
    cancel: threading.Event = field(default_factory=threading.Event)
    start_time: float = field(default_factory=time.time)
    cycle_count: int = 0
    # Error that terminated the loop (fatal failure policy), if any
    fatal_error: BaseException | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancel.is_set()

__all__ = ["RuntimeContext", "StatusFetcher"]
