"""Cancellable periodic poll loop.

Each iteration races the poll interval against the context's cancellation
event (threading.Event.wait(timeout)); cancellation always wins, so a loop
that is sleeping exits without starting another fetch. Fetch failures are
handed to a FailurePolicy which decides between skipping the cycle and
terminating the loop.
"""
from __future__ import annotations

import abc
import enum
import logging
from collections.abc import Callable

from nomad_scraper.utils.exceptions import FetchError

from .context import RuntimeContext

logger = logging.getLogger(__name__)


class LoopState(str, enum.Enum):
    RUNNING = "running"
    CANCELLED = "cancelled"
    FAILED = "failed"


class FailurePolicy(abc.ABC):
    """Decides whether the loop keeps going after a failed cycle."""

    name = "base"

    @abc.abstractmethod
    def should_continue(self, error: FetchError, consecutive: int) -> bool: ...


class SkipCyclePolicy(FailurePolicy):
    """Log and skip the failed cycle; give up after `max_consecutive` failures in a row (0 = never)."""

    name = "skip"

    def __init__(self, max_consecutive: int = 0) -> None:
        self.max_consecutive = max_consecutive

    def should_continue(self, error: FetchError, consecutive: int) -> bool:
        if self.max_consecutive and consecutive >= self.max_consecutive:
            return False
        return True


class FailFastPolicy(FailurePolicy):
    """Any failed fetch terminates the loop."""

    name = "fatal"

    def should_continue(self, error: FetchError, consecutive: int) -> bool:
        return False


def build_failure_policy(name: str, max_consecutive: int = 0) -> FailurePolicy:
    if name == "fatal":
        return FailFastPolicy()
    if name == "skip":
        return SkipCyclePolicy(max_consecutive)
    raise ValueError(f"unknown failure policy {name!r}")


def _attempt(ctx: RuntimeContext, cycle_fn: Callable[[RuntimeContext], object],
             failure_policy: FailurePolicy) -> bool:
    """Run one cycle; return False when the loop must stop."""
    try:
        cycle_fn(ctx)
    except FetchError as e:
        consecutive = ctx.stats.record_failure(e.kind, str(e))
        if failure_policy.should_continue(e, consecutive):
            logger.warning("Poll cycle failed (%s, %d in a row); skipping: %s", e.kind, consecutive, e)
            return True
        logger.error("Unable to fetch statuses from %s (%d consecutive failure(s)): %s",
                     e.url or "nomad", consecutive, e)
        ctx.fatal_error = e
        return False
    ctx.stats.record_success()
    return True


def run_poll_loop(ctx: RuntimeContext, *, cycle_fn: Callable[[RuntimeContext], object],
                  interval: float, failure_policy: FailurePolicy | None = None,
                  run_immediately: bool = False) -> LoopState:
    """Run until ctx.cancel is set or the failure policy gives up.

    The first cycle runs after one interval unless `run_immediately` is set.
    On FAILED the cancellation event is set so every other waiter wakes up.
    """
    policy = failure_policy if failure_policy is not None else SkipCyclePolicy()
    logger.info("Starting poll loop interval=%ss policy=%s", interval, policy.name)
    state = LoopState.RUNNING
    try:
        if run_immediately and not ctx.cancel.is_set():
            if not _attempt(ctx, cycle_fn, policy):
                state = LoopState.FAILED
        while state is LoopState.RUNNING:
            if ctx.cancel.wait(interval):
                state = LoopState.CANCELLED
                break
            if ctx.cancel.is_set():  # cancelled just as the interval elapsed
                state = LoopState.CANCELLED
                break
            if not _attempt(ctx, cycle_fn, policy):
                state = LoopState.FAILED
    finally:
        if state is LoopState.FAILED:
            ctx.cancel.set()
        logger.info("Poll loop terminated state=%s cycles=%d", state.value, ctx.cycle_count)
    return state

__all__ = [
    "LoopState",
    "FailurePolicy",
    "SkipCyclePolicy",
    "FailFastPolicy",
    "build_failure_policy",
    "run_poll_loop",
]
