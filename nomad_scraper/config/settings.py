"""Scraper settings & environment bootstrap.

Single-pass environment hydration object so the rest of the code never reads
os.environ directly. CLI flags (see nomad_scraper.cli) are applied on top via
ScraperSettings.with_overrides().

Environment:
  NOMAD_URL                                 Base URL of the Nomad HTTP API (default http://localhost:4646)
  NOMAD_POLL_INTERVAL                       How often to query Nomad (default 60s)
  NOMAD_SCRAPER_DEBUG=1                     Dump published metrics to stdout on every export tick
  NOMAD_SCRAPER_METRICS_HOST/PORT           Prometheus exposition endpoint (port 0 disables)
  NOMAD_SCRAPER_PUSHGATEWAY_URL             Enable periodic push to a Pushgateway
  OTEL_EXPORTER_OTLP_ENDPOINT               Enable OTLP/HTTP export to this collector (e.g. http://localhost:4318)
  OTEL_SERVICE_NAME                         service.name resource attribute (default nomad-scraper)
  NOMAD_SCRAPER_EXPORT_INTERVAL             Period of push/OTLP/debug readers (default 60s)
  NOMAD_SCRAPER_REQUEST_TIMEOUT             Per-request timeout for Nomad calls (unset = none)
  NOMAD_SCRAPER_FAILURE_POLICY              skip | fatal (default skip)
  NOMAD_SCRAPER_MAX_CONSECUTIVE_FAILURES    Abort after N consecutive failed cycles (0 = never)
  NOMAD_SCRAPER_ZERO_DESIRED                zero | nan | skip ratio policy when Desired == 0
  NOMAD_SCRAPER_STALE_TTL                   Evict groups unseen for this long (0 = retain)
  NOMAD_SCRAPER_LABEL_KEY                   Label carrying the group name (default nomad_job)
  NOMAD_SCRAPER_RUN_IMMEDIATELY=1           Poll once at startup instead of after the first interval
  NOMAD_SCRAPER_LOG_LEVEL / LOG_FILE        Logging configuration
"""
from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from dotenv import load_dotenv

from nomad_scraper.metrics.observer import is_reserved_label_key
from nomad_scraper.metrics.transform import ZeroDesiredPolicy
from nomad_scraper.utils.env_flags import is_truthy_env
from nomad_scraper.utils.exceptions import ConfigError

from .durations import parse_duration

logger = logging.getLogger(__name__)

FAILURE_POLICIES = ("skip", "fatal")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_NOMAD_URL = "http://localhost:4646"
DEFAULT_METRICS_HOST = "0.0.0.0"
DEFAULT_PUSH_JOB = "nomad-scraper"
DEFAULT_LABEL_KEY = "nomad_job"
DEFAULT_SERVICE_NAME = "nomad-scraper"

__all__ = ["ScraperSettings", "load_settings", "FAILURE_POLICIES"]


@dataclass(slots=True)
class ScraperSettings:
    nomad_url: str = DEFAULT_NOMAD_URL
    poll_interval: float = 60.0
    debug: bool = False

    # Metrics pipeline
    metrics_host: str = DEFAULT_METRICS_HOST
    metrics_port: int = 9464
    pushgateway_url: str | None = None
    export_interval: float = 60.0
    push_job_name: str = DEFAULT_PUSH_JOB
    otlp_endpoint: str | None = None
    service_name: str = DEFAULT_SERVICE_NAME

    # Poll behavior
    request_timeout: float | None = None
    failure_policy: str = "skip"
    max_consecutive_failures: int = 0
    zero_desired: ZeroDesiredPolicy = ZeroDesiredPolicy.ZERO
    stale_ttl: float = 0.0
    label_key: str = DEFAULT_LABEL_KEY
    run_immediately: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    # Raw env snapshot (debug / diagnostics)
    _env_snapshot: dict[str, str] = field(default_factory=dict, repr=False)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> ScraperSettings:
        e = env if env is not None else os.environ

        def _str(name: str, default: str | None = None) -> str | None:
            raw = e.get(name)
            if raw is None or not raw.strip():
                return default
            return raw.strip()

        def _int(name: str, default: int) -> int:
            raw = _str(name)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError as exc:
                raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc

        def _duration(name: str, default: float | None) -> float | None:
            raw = _str(name)
            if raw is None:
                return default
            return parse_duration(raw)

        zero_raw = (_str('NOMAD_SCRAPER_ZERO_DESIRED', 'zero') or 'zero').lower()
        try:
            zero_desired = ZeroDesiredPolicy(zero_raw)
        except ValueError as exc:
            raise ConfigError(f"NOMAD_SCRAPER_ZERO_DESIRED must be one of zero/nan/skip, got {zero_raw!r}") from exc

        return cls(
            nomad_url=_str("NOMAD_URL", DEFAULT_NOMAD_URL) or DEFAULT_NOMAD_URL,
            poll_interval=_duration('NOMAD_POLL_INTERVAL', 60.0) or 0.0,
            debug=is_truthy_env('NOMAD_SCRAPER_DEBUG', env=e),
            metrics_host=_str('NOMAD_SCRAPER_METRICS_HOST', DEFAULT_METRICS_HOST) or DEFAULT_METRICS_HOST,
            metrics_port=_int('NOMAD_SCRAPER_METRICS_PORT', 9464),
            pushgateway_url=_str('NOMAD_SCRAPER_PUSHGATEWAY_URL'),
            export_interval=_duration('NOMAD_SCRAPER_EXPORT_INTERVAL', 60.0) or 0.0,
            push_job_name=_str('NOMAD_SCRAPER_PUSH_JOB', DEFAULT_PUSH_JOB) or DEFAULT_PUSH_JOB,
            otlp_endpoint=_str('OTEL_EXPORTER_OTLP_ENDPOINT'),
            service_name=_str('OTEL_SERVICE_NAME', DEFAULT_SERVICE_NAME) or DEFAULT_SERVICE_NAME,
            request_timeout=_duration('NOMAD_SCRAPER_REQUEST_TIMEOUT', None),
            failure_policy=(_str('NOMAD_SCRAPER_FAILURE_POLICY', 'skip') or 'skip').lower(),
            max_consecutive_failures=_int('NOMAD_SCRAPER_MAX_CONSECUTIVE_FAILURES', 0),
            zero_desired=zero_desired,
            stale_ttl=_duration('NOMAD_SCRAPER_STALE_TTL', 0.0) or 0.0,
            label_key=_str('NOMAD_SCRAPER_LABEL_KEY', DEFAULT_LABEL_KEY) or DEFAULT_LABEL_KEY,
            run_immediately=is_truthy_env('NOMAD_SCRAPER_RUN_IMMEDIATELY', env=e),
            log_level=(_str('NOMAD_SCRAPER_LOG_LEVEL', 'INFO') or 'INFO').upper(),
            log_file=_str('NOMAD_SCRAPER_LOG_FILE'),
            _env_snapshot={k: v for k, v in e.items() if k.startswith(('NOMAD_SCRAPER_', 'NOMAD_URL', 'NOMAD_POLL', 'OTEL_'))},
        )

    def with_overrides(self, **overrides: Any) -> ScraperSettings:
        """Return a copy with every non-None override applied."""
        applied = {k: v for k, v in overrides.items() if v is not None}
        unknown = set(applied) - {f.name for f in dataclasses.fields(self)}
        if unknown:
            raise ConfigError(f"unknown settings: {', '.join(sorted(unknown))}")
        return dataclasses.replace(self, **applied)

    def validate(self) -> ScraperSettings:
        """Raise ConfigError listing every invalid value; return self when valid."""
        errors: list[str] = []
        parsed = urlparse(self.nomad_url)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            errors.append(f"nomad_url must be an http(s) URL, got {self.nomad_url!r}")
        if self.otlp_endpoint is not None:
            otlp = urlparse(self.otlp_endpoint)
            if otlp.scheme not in ('http', 'https') or not otlp.netloc:
                errors.append(f"otlp_endpoint must be an http(s) URL, got {self.otlp_endpoint!r}")
        if not self.service_name:
            errors.append("service_name must not be empty")
        if self.poll_interval <= 0:
            errors.append(f"poll_interval must be > 0, got {self.poll_interval}")
        if self.export_interval <= 0:
            errors.append(f"export_interval must be > 0, got {self.export_interval}")
        if not (0 <= self.metrics_port <= 65535):
            errors.append(f"metrics_port must be between 0 and 65535, got {self.metrics_port}")
        if self.request_timeout is not None and self.request_timeout <= 0:
            errors.append(f"request_timeout must be > 0 when set, got {self.request_timeout}")
        if self.failure_policy not in FAILURE_POLICIES:
            errors.append(f"failure_policy must be one of {FAILURE_POLICIES}, got {self.failure_policy!r}")
        if self.max_consecutive_failures < 0:
            errors.append(f"max_consecutive_failures must be >= 0, got {self.max_consecutive_failures}")
        if self.stale_ttl < 0:
            errors.append(f"stale_ttl must be >= 0, got {self.stale_ttl}")
        if is_reserved_label_key(self.label_key):
            errors.append(f"label_key {self.label_key!r} collides with a reserved label")
        if self.log_level not in LOG_LEVELS:
            errors.append(f"log_level must be one of {LOG_LEVELS}, got {self.log_level!r}")
        if errors:
            raise ConfigError("Configuration errors:\n  " + "\n  ".join(errors))
        return self


def load_settings(env_file: str | None = None, env: Mapping[str, str] | None = None) -> ScraperSettings:
    """Load an optional .env file into the process env, then hydrate settings.

    Existing environment variables win over .env entries.
    """
    if env is None:
        loaded = load_dotenv(env_file, override=False) if env_file else load_dotenv(override=False)
        if loaded:
            logger.debug("Loaded environment overrides from %s", env_file or '.env')
    return ScraperSettings.from_env(env)
