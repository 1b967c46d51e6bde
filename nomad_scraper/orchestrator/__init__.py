"""Orchestration package: poll cycle, poll loop and shutdown coordination."""

from __future__ import annotations

from .context import RuntimeContext
from .cycle import run_cycle
from .loop import FailFastPolicy, FailurePolicy, LoopState, SkipCyclePolicy, build_failure_policy, run_poll_loop
from .shutdown import ShutdownCoordinator

__all__ = [
    "RuntimeContext",
    "run_cycle",
    "run_poll_loop",
    "LoopState",
    "FailurePolicy",
    "SkipCyclePolicy",
    "FailFastPolicy",
    "build_failure_policy",
    "ShutdownCoordinator",
]
