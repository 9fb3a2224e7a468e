"""Environment variable parsing for the supervisor and the sync utilities.

Settings arrive as ``PLEX_FAILOVER_*`` / ``PLEX_DB_SYNC_*`` variables, the same
names the Unraid user scripts export.  An unset or blank variable always means
"use the default".  A value that cannot be understood raises
:class:`ConfigError` when ``strict`` (the default); otherwise a warning is
logged and the default is used.
"""

from __future__ import annotations

import logging
import os
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Accepted spellings, matched after strip() + lower()
BOOL_WORDS: dict[str, bool] = {
    "1": True,
    "true": True,
    "yes": True,
    "on": True,
    "0": False,
    "false": False,
    "no": False,
    "off": False,
}


class ConfigError(Exception):
    """Raised when a configuration value is invalid."""


def _read(name: str) -> str | None:
    """Stripped value of *name*, or None when unset or blank."""
    value = os.environ.get(name, "").strip()
    return value or None


def _reject(name: str, raw: str, default: T, reason: str, *, strict: bool) -> T:
    if strict:
        raise ConfigError(f"{reason} for {name}: {raw!r}")
    logger.warning("%s for %s: %r; falling back to %r", reason.capitalize(), name, raw, default)
    return default


def parse_bool(name: str, default: bool = False, *, strict: bool = True) -> bool:
    """Read a flag such as ``DEBUG`` or ``DRY_RUN`` (``1/0 true/false yes/no on/off``)."""
    raw = _read(name)
    if raw is None:
        return default
    value = BOOL_WORDS.get(raw.lower())
    if value is None:
        return _reject(name, raw, default, "invalid boolean value", strict=strict)
    return value


def parse_int(
    name: str,
    default: int | None = None,
    *,
    min_value: int | None = None,
    strict: bool = True,
) -> int | None:
    """Read an integer, optionally bounded below.

    In non-strict mode a value under *min_value* is clamped up to it rather
    than replaced by *default*.
    """
    raw = _read(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return _reject(name, raw, default, "invalid integer", strict=strict)
    if min_value is None or value >= min_value:
        return value
    return _reject(name, raw, min_value, f"value below minimum {min_value}", strict=strict)


def parse_float(name: str, default: float | None = None, *, strict: bool = True) -> float | None:
    raw = _read(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return _reject(name, raw, default, "invalid number", strict=strict)


def parse_str(name: str, default: str) -> str:
    raw = _read(name)
    return default if raw is None else raw


def parse_csv(name: str, default: list[str] | None = None) -> list[str]:
    """Read a comma-separated list (log paths, error signatures, excludes).

    Items are trimmed and blanks dropped.  Unset returns a fresh copy of
    *default* so callers may mutate the result.
    """
    raw = _read(name)
    if raw is None:
        return list(default) if default else []
    items = (part.strip() for part in raw.split(","))
    return [item for item in items if item]


def parse_enum(
    name: str,
    allowed: set[str],
    default: str | None = None,
    *,
    strict: bool = True,
) -> str | None:
    """Read one of *allowed*, case-insensitively, returning its canonical spelling."""
    raw = _read(name)
    if raw is None:
        return default
    for choice in allowed:
        if choice.lower() == raw.lower():
            return choice
    return _reject(name, raw, default, f"value not in allowed {sorted(allowed)}", strict=strict)
