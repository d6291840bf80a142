# SPDX-License-Identifier: MIT OR Apache-2.0
# SPDX-FileCopyrightText: The Assignment Bot Contributors

"""Human readable durations ("3 Days", "<1 Hour", "90m") and timestamps."""

import re
from datetime import datetime, timedelta, timezone

from .errors import InvalidDurationError

SECOND = 1000
MINUTE = SECOND * 60
HOUR = MINUTE * 60
DAY = HOUR * 24
WEEK = DAY * 7
YEAR = DAY * 365.25

UNITS = {
    "ms": 1, "msec": 1, "msecs": 1, "millisecond": 1, "milliseconds": 1,
    "s": SECOND, "sec": SECOND, "secs": SECOND, "second": SECOND, "seconds": SECOND,
    "m": MINUTE, "min": MINUTE, "mins": MINUTE, "minute": MINUTE, "minutes": MINUTE,
    "h": HOUR, "hr": HOUR, "hrs": HOUR, "hour": HOUR, "hours": HOUR,
    "d": DAY, "day": DAY, "days": DAY,
    "w": WEEK, "week": WEEK, "weeks": WEEK,
    "y": YEAR, "yr": YEAR, "yrs": YEAR, "year": YEAR, "years": YEAR,
}

DURATION_PATTERN = re.compile(r"^(-?\d*\.?\d+)\s*([a-z]*)$", re.IGNORECASE)


def parse_duration(value: str) -> int:
    """
    Parse a duration string into milliseconds.

    A bare number is read as milliseconds. A leading "<" (as used in
    "Time: <1 Hour" style labels) is ignored.

    Raises InvalidDurationError for unparseable or non-positive input.
    """
    if not isinstance(value, str):
        raise InvalidDurationError(f"Invalid time value: {value!r}")

    text = value.strip().lstrip("<").strip()
    match = DURATION_PATTERN.match(text)
    if not match:
        raise InvalidDurationError(f"Invalid time value: {value!r}")

    amount, unit = match.groups()
    multiplier = UNITS.get(unit.lower() if unit else "ms")
    if multiplier is None:
        raise InvalidDurationError(f"Unknown time unit in {value!r}")

    milliseconds = round(float(amount) * multiplier)
    if milliseconds <= 0:
        raise InvalidDurationError(f"Time value must be positive: {value!r}")
    return milliseconds


def duration_to_timedelta(value: str) -> timedelta:
    return timedelta(milliseconds=parse_duration(value))


def parse_timestamp(value: str) -> datetime:
    """Parse a GitHub ISO 8601 timestamp into an aware UTC datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
