"""Environment flag helpers.

Interprets environment variables as boolean feature flags using the canonical
truthy set {"1","true","yes","on"} (case-insensitive).

Usage:
    from nomad_scraper.utils.env_flags import is_truthy_env
    if is_truthy_env('NOMAD_SCRAPER_DEBUG'):
        ...
"""
from __future__ import annotations

import os
from collections.abc import Mapping

TRUTHY_SET: set[str] = {"1","true","yes","on"}

def is_truthy(value: str | None) -> bool:
    if not value:
        return False
    return value.strip().lower() in TRUTHY_SET

def is_truthy_env(name: str, default: str | None = None, env: Mapping[str, str] | None = None) -> bool:
    source = env if env is not None else os.environ
    return is_truthy(source.get(name, default or ''))

__all__ = [
    'TRUTHY_SET',
    'is_truthy',
    'is_truthy_env',
]
