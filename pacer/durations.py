"""Human-readable duration parsing for rulebook intervals."""

from __future__ import annotations

import re

from pacer.errors import DurationError

_UNIT_MS = {
    "ms": 1,
    "millisecond": 1,
    "s": 1000,
    "sec": 1000,
    "second": 1000,
    "m": 60_000,
    "min": 60_000,
    "minute": 60_000,
    "h": 3_600_000,
    "hr": 3_600_000,
    "hour": 3_600_000,
    "d": 86_400_000,
    "day": 86_400_000,
    "w": 604_800_000,
    "week": 604_800_000,
}

_TOKEN = re.compile(r"\s*(\d+(?:\.\d+)?|\.\d+)\s*([a-z]*)\s*,?", re.IGNORECASE)


def _unit_ms(unit: str) -> int | None:
    unit = unit.lower()
    if unit in _UNIT_MS:
        return _UNIT_MS[unit]
    if unit.endswith("s") and unit[:-1] in _UNIT_MS:
        return _UNIT_MS[unit[:-1]]
    return None


def parse_duration(value: str | int | float) -> int:
    """Convert a duration such as ``"30m"``, ``"1h30m"`` or ``"2 days"`` to milliseconds.

    Bare numbers are milliseconds. Components are summed, so ``"1h 15m"``
    is 75 minutes.
    """
    if isinstance(value, bool):
        raise DurationError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise DurationError(f"Duration must not be negative: {value!r}")
        return int(value)
    if not isinstance(value, str) or not value.strip():
        raise DurationError(f"Invalid duration: {value!r}")

    text = value.strip()
    total = 0.0
    pos = 0
    while pos < len(text):
        match = _TOKEN.match(text, pos)
        if not match or match.end() == pos:
            raise DurationError(f"Invalid duration: {value!r}")
        amount, unit = match.groups()
        factor = _unit_ms(unit) if unit else 1
        if factor is None:
            raise DurationError(f"Unknown duration unit {unit!r} in {value!r}")
        total += float(amount) * factor
        pos = match.end()

    return int(round(total))
