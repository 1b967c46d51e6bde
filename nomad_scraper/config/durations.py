"""Human-friendly duration parsing ("60s", "1m30s", "500ms", "2h").

Bare numbers are taken as seconds so plain env values like ``30`` keep
working.
"""
from __future__ import annotations

import re

from nomad_scraper.utils.exceptions import ConfigError

_UNIT_SECONDS: dict[str, float] = {
    'ms': 0.001,
    's': 1.0, 'sec': 1.0, 'secs': 1.0,
    'm': 60.0, 'min': 60.0, 'mins': 60.0,
    'h': 3600.0, 'hr': 3600.0, 'hrs': 3600.0,
    'd': 86400.0,
}
_PART_RE = re.compile(r'(\d+(?:\.\d+)?)\s*([a-z]+)')


def parse_duration(raw: str | float | int) -> float:
    """Return the duration in seconds; raise ConfigError when unparseable or negative."""
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        if raw < 0:
            raise ConfigError(f"duration must be >= 0, got {raw!r}")
        return float(raw)
    text = str(raw).strip().lower()
    if not text:
        raise ConfigError("empty duration")
    try:
        value = float(text)
    except ValueError:
        pass
    else:
        if value < 0:
            raise ConfigError(f"duration must be >= 0, got {raw!r}")
        return value
    total = 0.0
    pos = 0
    for m in _PART_RE.finditer(text):
        if text[pos:m.start()].strip():
            raise ConfigError(f"invalid duration {raw!r}")
        unit = m.group(2)
        if unit not in _UNIT_SECONDS:
            raise ConfigError(f"unknown duration unit {unit!r} in {raw!r}")
        total += float(m.group(1)) * _UNIT_SECONDS[unit]
        pos = m.end()
    if pos == 0 or text[pos:].strip():
        raise ConfigError(f"invalid duration {raw!r}")
    return total


def format_duration(seconds: float) -> str:
    """Compact rendering used in startup logs (e.g. 90 -> '1m30s')."""
    if seconds < 1:
        return f"{int(round(seconds * 1000))}ms"
    whole = int(seconds)
    parts: list[str] = []
    for unit, size in (('h', 3600), ('m', 60)):
        if whole >= size:
            parts.append(f"{whole // size}{unit}")
            whole %= size
    frac = seconds - int(seconds)
    if whole or frac or not parts:
        parts.append(f"{whole + frac:g}s")
    return ''.join(parts)

__all__ = ["parse_duration", "format_duration"]
