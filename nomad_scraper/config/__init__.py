"""Configuration surface: env-hydrated settings plus duration parsing."""
from __future__ import annotations

from .durations import format_duration, parse_duration
from .settings import ScraperSettings, load_settings

__all__ = ["ScraperSettings", "load_settings", "parse_duration", "format_duration"]
