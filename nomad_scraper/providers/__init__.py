"""Nomad HTTP API access: wire models and the status fetcher."""
from __future__ import annotations

from .models import JobListEntry, JobScale, JobScaleStatus
from .nomad_client import NomadClient, PollCycleResult

__all__ = ["NomadClient", "PollCycleResult", "JobListEntry", "JobScale", "JobScaleStatus"]
