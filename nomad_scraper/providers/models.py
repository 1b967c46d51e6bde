"""Typed views of the Nomad API payloads consumed by the scraper.

Only the fields the scraper relies on are modelled. Parsing is strict about
those fields (missing keys, wrong types and negative counts raise
SchemaError) and ignores everything else Nomad returns.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from nomad_scraper.utils.exceptions import SchemaError

_STATUS_FIELDS = ("Desired", "Healthy", "Placed", "Running", "Unhealthy")


def _count(payload: Mapping[str, Any], key: str, where: str) -> int:
    if key not in payload:
        raise SchemaError(f"{where}: missing field {key!r}")
    value = payload[key]
    # bool is an int subclass; Nomad never sends booleans for counts
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaError(f"{where}: field {key!r} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise SchemaError(f"{where}: field {key!r} must be non-negative, got {value}")
    return value


@dataclass(frozen=True, slots=True)
class JobListEntry:
    name: str

    @classmethod
    def from_payload(cls, payload: Any) -> JobListEntry:
        if not isinstance(payload, Mapping):
            raise SchemaError(f"job list entry must be an object, got {type(payload).__name__}")
        name = payload.get("Name")
        if not isinstance(name, str) or not name:
            raise SchemaError("job list entry: field 'Name' must be a non-empty string")
        return cls(name=name)


@dataclass(frozen=True, slots=True)
class JobScaleStatus:
    desired: int
    healthy: int
    placed: int
    running: int
    unhealthy: int

    @classmethod
    def from_payload(cls, payload: Any, where: str = "task group") -> JobScaleStatus:
        if not isinstance(payload, Mapping):
            raise SchemaError(f"{where}: status must be an object, got {type(payload).__name__}")
        desired, healthy, placed, running, unhealthy = (_count(payload, f, where) for f in _STATUS_FIELDS)
        return cls(desired=desired, healthy=healthy, placed=placed, running=running, unhealthy=unhealthy)


@dataclass(frozen=True, slots=True)
class JobScale:
    task_groups: dict[str, JobScaleStatus]

    @classmethod
    def from_payload(cls, payload: Any, job_name: str = "") -> JobScale:
        if not isinstance(payload, Mapping):
            raise SchemaError(f"job {job_name!r} scale: body must be an object, got {type(payload).__name__}")
        groups = payload.get("TaskGroups")
        if not isinstance(groups, Mapping):
            raise SchemaError(f"job {job_name!r} scale: field 'TaskGroups' must be an object")
        return cls(task_groups={
            str(name): JobScaleStatus.from_payload(status, where=f"job {job_name!r} group {name!r}")
            for name, status in groups.items()
        })


def parse_job_list(payload: Any) -> list[JobListEntry]:
    if not isinstance(payload, list):
        raise SchemaError(f"job list must be an array, got {type(payload).__name__}")
    return [JobListEntry.from_payload(item) for item in payload]

__all__ = ["JobListEntry", "JobScale", "JobScaleStatus", "parse_job_list"]
