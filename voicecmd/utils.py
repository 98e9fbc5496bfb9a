"""
Shared parsing helpers for environment-driven configuration

Provides:
- Env-style conversions with fallback defaults (parse_bool, parse_int, parse_float)
- Optional-string trimming
- Topic segment sanitization for MQTT topic bases

None of these raise on malformed input; bad values fall back to the default.
"""

from __future__ import annotations

import re

_TOPIC_UNSAFE_RE = re.compile(r"[^a-z0-9_-]+")


def parse_bool(value: str | None, default: bool = False) -> bool:
    """Interpret env-style booleans."""
    if value is None:
        return default
    stripped = value.strip().lower()
    if not stripped:
        return default
    return stripped in {"1", "true", "yes", "on"}


def parse_int(value: str | None, default: int) -> int:
    """Best-effort int parser with fallback."""
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_float(value: str | None, default: float) -> float:
    """Best-effort float parser with fallback."""
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def strip_or_none(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def sanitize_topic_segment(value: str) -> str:
    """Lowercase a hostname-like value and replace anything MQTT-unfriendly with ``_``."""
    cleaned = _TOPIC_UNSAFE_RE.sub("_", value.strip().lower())
    return cleaned.strip("_") or "device"
