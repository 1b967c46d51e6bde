from __future__ import annotations

import logging
import os
import signal
import threading
import time

import pytest
from prometheus_client import CollectorRegistry

from nomad_scraper.metrics.observer import JobStatusCollector
from nomad_scraper.metrics.pipeline import MetricsPipeline, PeriodicReader
from nomad_scraper.metrics.store import SharedStatusStore
from nomad_scraper.metrics.transform import JobStatusSample
from nomad_scraper.orchestrator.shutdown import ShutdownCoordinator
from nomad_scraper.utils.exceptions import PipelineError, SignalRegistrationError

from _helpers import RecordingPipeline


def _poller(cancel: threading.Event, events: list[str], linger: float = 0.0) -> threading.Thread:
    def _run():
        cancel.wait()
        time.sleep(linger)
        events.append("poller-exit")

    t = threading.Thread(target=_run, daemon=True)
    t.start()
    return t


def test_drain_joins_poller_then_flushes_then_shuts_down():
    cancel = threading.Event()
    pipeline = RecordingPipeline()
    poller = _poller(cancel, pipeline.events, linger=0.05)
    coordinator = ShutdownCoordinator(cancel, pipeline, signals=())
    assert coordinator.drain(poller) is True
    assert pipeline.events == ["poller-exit", "flush", "shutdown"]
    assert cancel.is_set()
    assert coordinator.drained.is_set()


def test_drain_is_idempotent():
    pipeline = RecordingPipeline()
    coordinator = ShutdownCoordinator(threading.Event(), pipeline, signals=())
    coordinator.drain()
    assert coordinator.drain() is True
    assert pipeline.events == ["flush", "shutdown"]


def test_drain_does_not_wait_forever_for_stuck_poller():
    cancel = threading.Event()
    stuck = threading.Event()
    poller = threading.Thread(target=stuck.wait, daemon=True)
    poller.start()
    pipeline = RecordingPipeline()
    coordinator = ShutdownCoordinator(cancel, pipeline, signals=(), join_timeout=0.1)
    try:
        coordinator.drain(poller)
    finally:
        stuck.set()
    assert pipeline.events == ["flush", "shutdown"]


def test_flush_failure_still_shuts_down():
    pipeline = RecordingPipeline(fail_flush=PipelineError("flush failed for: periodic-pushgateway"))
    coordinator = ShutdownCoordinator(threading.Event(), pipeline, signals=())
    assert coordinator.drain() is False
    assert pipeline.events == ["flush", "shutdown"]


def test_signal_broadcasts_cancellation_and_handlers_are_restored():
    previous = signal.getsignal(signal.SIGUSR1)
    cancel = threading.Event()
    coordinator = ShutdownCoordinator(cancel, RecordingPipeline(), signals=(signal.SIGUSR1,))
    assert coordinator.install() is True
    os.kill(os.getpid(), signal.SIGUSR1)
    assert cancel.wait(2)
    assert coordinator.interrupted.is_set()
    coordinator.drain()
    assert signal.getsignal(signal.SIGUSR1) == previous


def test_repeat_signal_during_shutdown_is_ignored(caplog):
    cancel = threading.Event()
    pipeline = RecordingPipeline()
    coordinator = ShutdownCoordinator(cancel, pipeline, signals=())
    coordinator.request_shutdown("signal SIGINT")
    with caplog.at_level(logging.WARNING, logger="nomad_scraper.orchestrator.shutdown"):
        coordinator.request_shutdown("signal SIGINT")
    assert "already in progress" in caplog.text
    coordinator.drain()
    assert pipeline.events == ["flush", "shutdown"]


def test_registration_failure_cancels_immediately():
    cancel = threading.Event()
    coordinator = ShutdownCoordinator(cancel, RecordingPipeline(), signals=(signal.SIGUSR2,))
    result = {}
    # signal.signal only works on the main thread
    t = threading.Thread(target=lambda: result.setdefault("ok", coordinator.install()))
    t.start()
    t.join(timeout=2)
    assert result["ok"] is False
    assert isinstance(coordinator.registration_error, SignalRegistrationError)
    assert cancel.is_set()


def test_wait_returns_when_poller_exits():
    cancel = threading.Event()
    coordinator = ShutdownCoordinator(cancel, RecordingPipeline(), signals=())
    poller = threading.Thread(target=lambda: None)
    poller.start()
    poller.join()
    start = time.time()
    coordinator.wait(poller, tick=0.05)
    assert time.time() - start < 1.0


@pytest.mark.parametrize("preset", [True, False])
def test_wait_returns_on_cancel(preset):
    cancel = threading.Event()
    if preset:
        cancel.set()
    else:
        threading.Timer(0.05, cancel.set).start()
    coordinator = ShutdownCoordinator(cancel, RecordingPipeline(), signals=())
    coordinator.wait(tick=0.05)
    assert cancel.is_set()


class _SnapshotExporter:
    name = "snapshot"

    def __init__(self) -> None:
        self.exports: list[dict[str, float | None]] = []

    def export(self, registry):
        self.exports.append({
            group: registry.get_sample_value("nomad_job_up", {"nomad_job": group}) for group in ("web", "api")
        })


def test_drain_flushes_store_samples_to_exporter():
    store = SharedStatusStore()
    cancel = threading.Event()
    exporter = _SnapshotExporter()
    pipeline = MetricsPipeline(CollectorRegistry())
    pipeline.register(JobStatusCollector(store))
    pipeline.add_reader(PeriodicReader(exporter, interval=3600))
    pipeline.start()

    def _poll():
        store.upsert("web", JobStatusSample(4, 0, 1.0))
        store.upsert("api", JobStatusSample(1, 1, 0.5))
        cancel.wait()

    poller = threading.Thread(target=_poll, daemon=True)
    poller.start()
    coordinator = ShutdownCoordinator(cancel, pipeline, signals=())
    coordinator.request_shutdown("signal SIGTERM")
    assert coordinator.drain(poller) is True
    assert exporter.exports == [{"web": 4.0, "api": 1.0}]
    assert pipeline.closed
    assert not poller.is_alive()
