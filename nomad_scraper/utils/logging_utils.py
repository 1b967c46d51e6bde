"""Unified logging utilities for the Nomad metrics scraper."""
from __future__ import annotations

import json
import logging
import os
import sys

from .env_flags import is_truthy_env

DEFAULT_FORMAT = '%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s'

SUPPRESSED_LOGGERS = [
    'urllib3', 'requests',
]


class JsonFormatter(logging.Formatter):
    """One JSON object per record; used when NOMAD_SCRAPER_JSON_LOGS=1."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            'ts': record.created,
            'level': record.levelname,
            'logger': record.name,
            'thread': record.threadName,
            'msg': record.getMessage(),
        }
        if record.exc_info:
            payload['exc_info'] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_logging(level: str = 'INFO', log_file: str | None = None, fmt: str = DEFAULT_FORMAT,
                  json_console: bool | None = None) -> logging.Logger:
    """Configure root logging.

    Console handler writes to stderr so the debug metric dump on stdout stays
    machine-readable. JSON console output is enabled by `json_console` or the
    NOMAD_SCRAPER_JSON_LOGS env flag.

    File handler (if enabled) always uses DEFAULT_FORMAT for diagnostics.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(log_level)
    # Remove existing handlers to avoid duplication on re-init
    for h in root.handlers[:]:
        root.removeHandler(h)
        h.flush()
        h.close()

    if json_console is None:
        json_console = is_truthy_env('NOMAD_SCRAPER_JSON_LOGS')

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(log_level)
    if json_console:
        console.setFormatter(JsonFormatter())
    else:
        console.setFormatter(logging.Formatter(fmt))
    root.addHandler(console)

    if log_file:
        try:
            parent = os.path.dirname(log_file)
            if parent:
                os.makedirs(parent, exist_ok=True)
            fh = logging.FileHandler(log_file, encoding='utf-8')
            fh.setLevel(log_level)
            fh.setFormatter(logging.Formatter(DEFAULT_FORMAT))
            root.addHandler(fh)
        except OSError as e:
            root.error("Failed to create log file handler for %s: %s", log_file, e)

    for name in SUPPRESSED_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root

__all__ = ["setup_logging", "JsonFormatter", "DEFAULT_FORMAT"]
