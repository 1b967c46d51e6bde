"""Raw Nomad scale status -> published measures.

Pure functions; no I/O, no locking. The up-ratio for a group whose Desired
count is zero is decided by ZeroDesiredPolicy rather than left to float
division semantics.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from nomad_scraper.providers.models import JobScaleStatus


class ZeroDesiredPolicy(str, Enum):
    ZERO = "zero"   # publish 0.0
    NAN = "nan"     # publish NaN (rendered as NaN by the exposition format)
    SKIP = "skip"   # do not publish / update the group this cycle


@dataclass(frozen=True, slots=True)
class JobStatusSample:
    up: int
    down: int
    up_ratio: float


def up_ratio(healthy: int, desired: int, zero_policy: ZeroDesiredPolicy = ZeroDesiredPolicy.ZERO) -> float | None:
    if desired == 0:
        if zero_policy is ZeroDesiredPolicy.SKIP:
            return None
        if zero_policy is ZeroDesiredPolicy.NAN:
            return math.nan
        return 0.0
    return healthy / desired


def to_sample(status: JobScaleStatus,
              zero_policy: ZeroDesiredPolicy = ZeroDesiredPolicy.ZERO) -> JobStatusSample | None:
    """Return the sample for one task group, or None when the policy skips it."""
    ratio = up_ratio(status.healthy, status.desired, zero_policy)
    if ratio is None:
        return None
    return JobStatusSample(up=status.healthy, down=status.unhealthy, up_ratio=ratio)

__all__ = ["ZeroDesiredPolicy", "JobStatusSample", "up_ratio", "to_sample"]
