"""Scraper exception hierarchy.

A small exception tree for categorizing failures: configuration problems,
orchestrator fetch failures (transport vs. schema), signal installation and
metrics pipeline lifecycle errors. Callers route on these types; the poll
loop hands FetchError instances to its failure policy.
"""
from __future__ import annotations


class ScraperError(Exception):
    """Base class for all scraper exceptions."""


class ConfigError(ScraperError):
    """Configuration-related issues (invalid values, reserved label keys)."""


class FetchError(ScraperError):
    """A poll of the Nomad API failed; no samples from the cycle are usable."""

    kind = "fetch"

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class TransportError(FetchError):
    """Network failure, timeout or non-success HTTP status."""

    kind = "transport"

    def __init__(self, message: str, *, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message, url=url)
        self.status_code = status_code


class SchemaError(FetchError):
    """Response body is not JSON or does not match the expected shape."""

    kind = "schema"


class SignalRegistrationError(ScraperError):
    """The interrupt listener could not be installed."""


class PipelineError(ScraperError):
    """Metrics pipeline flush/shutdown failure."""


__all__ = [
    "ScraperError",
    "ConfigError",
    "FetchError",
    "TransportError",
    "SchemaError",
    "SignalRegistrationError",
    "PipelineError",
]
