"""Status fetcher for the Nomad HTTP API.

One poll is an N+1 request pattern:

    GET {base}/v1/jobs                -> [{"Name": ...}, ...]
    GET {base}/v1/job/{name}/scale    -> {"TaskGroups": {group: {Desired, Healthy, ...}}}

and returns a flat, ordered list of (group name, status) pairs. Any transport
failure, non-2xx status or schema mismatch aborts the whole fetch with a
FetchError so a cycle never yields partial results. There is no retry.
"""
from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import requests

from nomad_scraper.utils.exceptions import SchemaError, TransportError

from .models import JobListEntry, JobScale, JobScaleStatus, parse_job_list

logger = logging.getLogger(__name__)

PollCycleResult = list[tuple[str, JobScaleStatus]]


class NomadClient:
    """Thin requests-based client for the two endpoints the scraper needs."""

    def __init__(self, base_url: str, *, session: requests.Session | None = None,
                 timeout: float | None = None) -> None:
        self.base_url = base_url.rstrip('/') + '/'
        self.timeout = timeout
        self._session = session if session is not None else requests.Session()
        self._owns_session = session is None

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> NomadClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _url(self, path: str) -> str:
        return self.base_url + path.lstrip('/')

    def _get_json(self, path: str) -> Any:
        url = self._url(path)
        try:
            resp = self._session.get(url, timeout=self.timeout)
        except requests.Timeout as e:
            raise TransportError(f"timeout after {self.timeout}s fetching {url}", url=url) from e
        except requests.RequestException as e:
            raise TransportError(f"request to {url} failed: {e}", url=url) from e
        if not 200 <= resp.status_code < 300:
            raise TransportError(
                f"GET {url} returned HTTP {resp.status_code}", url=url, status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise SchemaError(f"GET {url} returned a non-JSON body", url=url) from e

    def list_jobs(self) -> list[JobListEntry]:
        payload = self._get_json('v1/jobs')
        try:
            return parse_job_list(payload)
        except SchemaError as e:
            e.url = self._url('v1/jobs')
            raise

    def job_scale(self, job_name: str) -> JobScale:
        path = f"v1/job/{quote(job_name, safe='')}/scale"
        payload = self._get_json(path)
        try:
            return JobScale.from_payload(payload, job_name=job_name)
        except SchemaError as e:
            e.url = self._url(path)
            raise

    def fetch_statuses(self) -> PollCycleResult:
        """Return (group name, status) for every task group of every job."""
        statuses: PollCycleResult = []
        for entry in self.list_jobs():
            logger.debug("Looking up status for %s..", entry.name)
            scale = self.job_scale(entry.name)
            statuses.extend(scale.task_groups.items())
        return statuses

__all__ = ["NomadClient", "PollCycleResult"]
