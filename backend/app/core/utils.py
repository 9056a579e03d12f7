# app/core/utils.py
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

_DURATION_RE = re.compile(
    r"^(?P<value>-?(?:\d+)?\.?\d+) *(?P<unit>"
    r"milliseconds?|msecs?|ms|seconds?|secs?|s|minutes?|mins?|m|"
    r"hours?|hrs?|h|days?|d|weeks?|w|years?|yrs?|y)?$",
    re.IGNORECASE,
)

_UNIT_MS = {
    "ms": 1,
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
    "w": 7 * 24 * 60 * 60 * 1000,
    "y": 365.25 * 24 * 60 * 60 * 1000,
}


def _unit_key(unit: str) -> str:
    unit = unit.lower()
    if unit.startswith("ms") or unit.startswith("mil"):
        return "ms"
    if unit.startswith("mi") or unit == "m":
        return "m"
    return unit[0]


def parse_duration(value: str) -> timedelta:
    """Parse a human duration such as "15m", "7d", "2 hours" or "500" (milliseconds)."""
    if not isinstance(value, str):
        raise ValueError(f"Invalid duration string: {value!r}")
    match = _DURATION_RE.match(value.strip())
    if not match or len(value.strip()) > 100:
        raise ValueError(f"Invalid duration string: {value!r}")

    amount = float(match.group("value"))
    unit = match.group("unit")
    factor = _UNIT_MS[_unit_key(unit)] if unit else 1
    return timedelta(milliseconds=amount * factor)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def format_megabytes(size: int) -> str:
    mb = size / (1024 * 1024)
    return str(int(mb)) if mb == int(mb) else str(mb)
