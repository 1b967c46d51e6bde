"""Pull-side metric callback.

The metrics runtime (prometheus_client exposition thread, periodic push and
debug readers) calls JobStatusCollector.collect() on its own schedule. Each
call snapshots the SharedStatusStore and emits one sample per group for each
of the three job gauges. The snapshot is taken before any family is built so
the store lock is never held during emission.

`observe()` is the pure snapshot -> observations step, usable without
prometheus_client (tests, debug rendering).
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from prometheus_client.registry import Collector

from nomad_scraper.utils.exceptions import ConfigError

from .stats import PollStats
from .store import SharedStatusStore

JOB_UP = "nomad_job_up"
JOB_DOWN = "nomad_job_down"
JOB_STATUS_RATIO = "nomad_job_status_ratio"

_DESCRIPTIONS = {
    JOB_UP: "Healthy allocation count for each nomad task group",
    JOB_DOWN: "Unhealthy allocation count for each nomad task group",
    JOB_STATUS_RATIO: "The ratio of working relative to expected count for each nomad job",
}

# "job" and "instance" are attached by the scraping side
_RESERVED_LABEL_KEYS = frozenset({"job", "instance"})


def is_reserved_label_key(key: str) -> bool:
    return not key or key in _RESERVED_LABEL_KEYS or key.startswith("__")


@dataclass(frozen=True, slots=True)
class Observation:
    instrument: str
    value: float
    labels: dict[str, str]


def observe(store: SharedStatusStore, label_key: str = "nomad_job") -> list[Observation]:
    """Snapshot the store and return every observation for this collection tick."""
    out: list[Observation] = []
    for group, sample in sorted(store.snapshot().items()):
        labels = {label_key: group}
        out.append(Observation(JOB_UP, float(sample.up), labels))
        out.append(Observation(JOB_DOWN, float(sample.down), labels))
        out.append(Observation(JOB_STATUS_RATIO, sample.up_ratio, labels))
    return out


class JobStatusCollector(Collector):
    """prometheus_client custom collector exposing the three job gauges."""

    def __init__(self, store: SharedStatusStore, label_key: str = "nomad_job") -> None:
        if is_reserved_label_key(label_key):
            raise ConfigError(f"label key {label_key!r} collides with a reserved label")
        self._store = store
        self._label_key = label_key

    def _families(self) -> dict[str, GaugeMetricFamily]:
        return {
            name: GaugeMetricFamily(name, doc, labels=[self._label_key])
            for name, doc in _DESCRIPTIONS.items()
        }

    def describe(self) -> Iterator[GaugeMetricFamily]:
        # Names only; keeps registration from triggering a collection
        yield from self._families().values()

    def collect(self) -> Iterator[GaugeMetricFamily]:
        families = self._families()
        for obs in observe(self._store, self._label_key):
            families[obs.instrument].add_metric([obs.labels[self._label_key]], obs.value)
        yield from families.values()


class ScraperStatsCollector(Collector):
    """Self-observability for the poll loop."""

    def __init__(self, stats: PollStats, store: SharedStatusStore) -> None:
        self._stats = stats
        self._store = store

    def describe(self) -> Iterator[CounterMetricFamily | GaugeMetricFamily]:
        yield CounterMetricFamily("nomad_scraper_poll_cycles", "Completed Nomad poll cycles")
        yield CounterMetricFamily("nomad_scraper_poll_failures", "Failed Nomad poll cycles", labels=["kind"])
        yield GaugeMetricFamily("nomad_scraper_last_success_timestamp_seconds",
                                "Unix time of the last successful poll cycle")
        yield GaugeMetricFamily("nomad_scraper_tracked_groups", "Task groups currently published")

    def collect(self) -> Iterator[CounterMetricFamily | GaugeMetricFamily]:
        snap = self._stats.snapshot()
        yield CounterMetricFamily("nomad_scraper_poll_cycles", "Completed Nomad poll cycles",
                                  value=snap.cycles)
        failures = CounterMetricFamily("nomad_scraper_poll_failures", "Failed Nomad poll cycles",
                                       labels=["kind"])
        for kind, count in sorted(snap.failures_by_kind.items()):
            failures.add_metric([kind], count)
        yield failures
        yield GaugeMetricFamily("nomad_scraper_last_success_timestamp_seconds",
                                "Unix time of the last successful poll cycle",
                                value=snap.last_success_ts)
        yield GaugeMetricFamily("nomad_scraper_tracked_groups", "Task groups currently published",
                                value=len(self._store))

__all__ = [
    "JOB_UP", "JOB_DOWN", "JOB_STATUS_RATIO",
    "Observation", "observe", "is_reserved_label_key",
    "JobStatusCollector", "ScraperStatsCollector",
]
