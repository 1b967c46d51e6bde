# Utils module for the Nomad metrics scraper
from .env_flags import is_truthy, is_truthy_env
from .exceptions import (
    ConfigError,
    FetchError,
    PipelineError,
    SchemaError,
    ScraperError,
    SignalRegistrationError,
    TransportError,
)

__all__ = [
    "is_truthy", "is_truthy_env",
    "ScraperError", "ConfigError", "FetchError", "TransportError", "SchemaError",
    "SignalRegistrationError", "PipelineError",
]
