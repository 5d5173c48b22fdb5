"""
Datetime Utility Functions

Centralized datetime parsing and conversion for Azure DevOps payloads and
exporter configuration.

Handles common patterns:
- Azure DevOps ISO timestamps with 'Z' suffix and 7-digit fractions
- The "not happened yet" zero sentinel (0001-01-01T00:00:00)
- Conversion to Prometheus sample values (seconds since epoch)
- Human duration strings used in configuration ("30s", "30m", "48h")
"""

import re
from datetime import UTC, datetime, timedelta

# Azure DevOps reports unset dates as the minimum .NET DateTime
ZERO_SENTINEL_PREFIX = "0001-01-01"

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

_FRACTION_PATTERN = re.compile(r"\.(\d+)")
_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_ado_timestamp(timestamp_str: str | None) -> datetime | None:
    """
    Parse Azure DevOps ISO timestamp to a timezone-aware datetime.

    Azure DevOps returns timestamps in ISO format with 'Z' suffix indicating UTC,
    sometimes with 7 fractional digits:
    Example: "2026-02-10T10:00:00Z" or "2026-02-10T10:00:00.1234567Z"

    Args:
        timestamp_str: ISO timestamp string, or None

    Returns:
        datetime object in UTC, or None if input is empty or the zero sentinel

    Raises:
        ValueError: If timestamp format is invalid or cannot be parsed

    Examples:
        >>> parse_ado_timestamp("2026-02-10T10:00:00Z")
        datetime.datetime(2026, 2, 10, 10, 0, tzinfo=datetime.timezone.utc)

        >>> parse_ado_timestamp("0001-01-01T00:00:00")
        None
    """
    if not timestamp_str:
        return None

    if not isinstance(timestamp_str, str):
        raise ValueError(f"Timestamp must be a string, got {type(timestamp_str)}")

    if timestamp_str.startswith(ZERO_SENTINEL_PREFIX):
        return None

    try:
        # Replace 'Z' with '+00:00' for ISO format compatibility
        normalized = timestamp_str.replace("Z", "+00:00")
        # fromisoformat only accepts up to microseconds
        normalized = _FRACTION_PATTERN.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), normalized, count=1)
        parsed = datetime.fromisoformat(normalized)
    except (ValueError, AttributeError) as e:
        raise ValueError(f"Invalid timestamp format: {timestamp_str}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)

    return parsed


def is_set(moment: datetime | None) -> bool:
    """Return True when moment is a real point in time after the Unix epoch."""
    if moment is None:
        return False
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment > EPOCH


def to_epoch_seconds(moment: datetime) -> float:
    """
    Convert a datetime to float seconds since the Unix epoch.

    Naive datetimes are treated as UTC.

    Examples:
        >>> to_epoch_seconds(datetime(1970, 1, 1, 0, 1, tzinfo=UTC))
        60.0
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.timestamp()


def parse_duration(value: str | int | float) -> timedelta:
    """
    Parse a configuration duration into a timedelta.

    Accepts plain seconds or a number with one unit suffix (s, m, h, d).

    Args:
        value: Duration such as "30s", "30m", "48h", "2d" or 90

    Returns:
        Parsed duration

    Raises:
        ValueError: If the value is negative or cannot be parsed

    Examples:
        >>> parse_duration("48h")
        datetime.timedelta(days=2)
    """
    if isinstance(value, int | float):
        seconds = float(value)
    else:
        match = _DURATION_PATTERN.match(value.lower()) if isinstance(value, str) else None
        if not match:
            raise ValueError(f"Invalid duration: {value!r}")
        seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2)]

    if seconds < 0:
        raise ValueError(f"Duration must not be negative: {value!r}")

    return timedelta(seconds=seconds)


def format_ado_timestamp(moment: datetime) -> str:
    """Render a datetime as the ISO 8601 UTC form Azure DevOps query parameters accept."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
