"""Interrupt handling and ordered flush-then-close of the metrics pipeline.

Sequence on SIGINT/SIGTERM:

  1. the handler sets `interrupted` and broadcasts cancellation (the poll
     loop exits at its next wait or loop head),
  2. the main thread, blocked in wait(), wakes up and calls drain(),
  3. drain() joins the poller (bounded), force-flushes every reader, shuts
     the pipeline down, then restores the previous signal handlers.

Signals arriving while draining are logged and ignored, so a second Ctrl-C
cannot kill the process before the flush has completed. If the handlers
cannot be installed at all (e.g. not on the main thread) cancellation is
signalled right away so the poller never runs unmonitored.
"""
from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterable
from types import FrameType
from typing import Any, Protocol

from nomad_scraper.utils.exceptions import PipelineError, SignalRegistrationError

logger = logging.getLogger(__name__)

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class FlushablePipeline(Protocol):
    def force_flush(self) -> None: ...

    def shutdown(self) -> None: ...


class ShutdownCoordinator:
    def __init__(self, cancel: threading.Event, pipeline: FlushablePipeline, *,
                 signals: Iterable[int] = DEFAULT_SIGNALS, join_timeout: float = 5.0) -> None:
        self.cancel = cancel
        self.pipeline = pipeline
        self.join_timeout = join_timeout
        self.interrupted = threading.Event()
        self.drained = threading.Event()
        self.registration_error: SignalRegistrationError | None = None
        self._signals = tuple(signals)
        self._previous: dict[int, Any] = {}
        self._draining = False
        self._lock = threading.RLock()  # re-entered when a signal lands mid-drain

    def install(self) -> bool:
        """Register handlers; on failure signal cancellation and return False."""
        try:
            for sig in self._signals:
                self._previous[sig] = signal.signal(sig, self._on_signal)
        except (ValueError, OSError) as e:
            self.registration_error = SignalRegistrationError(f"Unable to listen for shutdown signal: {e}")
            logger.error("%s. Ending.", self.registration_error)
            self._restore_handlers()
            self.cancel.set()
            return False
        return True

    def _on_signal(self, signum: int, frame: FrameType | None) -> None:
        self.request_shutdown(f"signal {signal.Signals(signum).name}")

    def request_shutdown(self, reason: str = "requested") -> None:
        with self._lock:
            if self._draining or self.interrupted.is_set():
                logger.warning("Shutdown already in progress (%s); waiting for metrics flush", reason)
                return
            self.interrupted.set()
        logger.info("Received %s, initiating graceful shutdown", reason)
        self.cancel.set()

    def wait(self, poller: threading.Thread | None = None, tick: float = 0.5) -> None:
        """Block until cancellation is broadcast or the poller thread exits."""
        while not self.cancel.is_set():
            if poller is not None and not poller.is_alive():
                break
            self.cancel.wait(tick)

    def drain(self, poller: threading.Thread | None = None) -> bool:
        """Cancel, flush, close. Returns False when the flush was incomplete."""
        with self._lock:
            if self.drained.is_set():
                return True
            self._draining = True
        self.cancel.set()
        if poller is not None and poller is not threading.current_thread():
            poller.join(self.join_timeout)
            if poller.is_alive():
                logger.warning("Poller thread still busy after %.1fs; flushing anyway", self.join_timeout)
        flushed = True
        try:
            logger.info("Flushing metrics.")
            self.pipeline.force_flush()
        except PipelineError as e:
            logger.error("Metrics flush incomplete: %s", e)
            flushed = False
        logger.info("Shutting it down.")
        self.pipeline.shutdown()
        self._restore_handlers()
        self.drained.set()
        return flushed

    def _restore_handlers(self) -> None:
        for sig, previous in self._previous.items():
            try:
                signal.signal(sig, previous if previous is not None else signal.SIG_DFL)
            except (ValueError, OSError):
                logger.debug("Could not restore handler for %s", sig, exc_info=True)
        self._previous.clear()

__all__ = ["ShutdownCoordinator", "FlushablePipeline", "DEFAULT_SIGNALS"]
