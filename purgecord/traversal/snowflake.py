"""
Conversions between Discord snowflake IDs and dates.
"""

import re
from datetime import datetime, timezone
from typing import Optional, cast

import dateparser  # type: ignore[import-untyped]

from purgecord.utils.logging import get_logger

logger = get_logger(__name__)

# 2015-01-01T00:00:00Z in milliseconds
DISCORD_EPOCH_MS = 1420070400000
DISCORD_EPOCH = datetime.fromtimestamp(DISCORD_EPOCH_MS / 1000, tz=timezone.utc)

SNOWFLAKE_PATTERN = re.compile(r"^\d{17,19}$")


def date_to_snowflake(date: datetime) -> str:
    """
    Convert a datetime to the smallest snowflake created at that instant.

    Naive datetimes are taken as UTC.

    Args:
        date: Datetime to convert

    Returns:
        Snowflake ID as a string
    """
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)
    timestamp_ms = int(date.timestamp() * 1000)
    return str((timestamp_ms - DISCORD_EPOCH_MS) << 22)


def snowflake_to_date(snowflake: str) -> datetime:
    """
    Extract the creation time encoded in a snowflake.

    Args:
        snowflake: Snowflake ID as a numeric string

    Returns:
        Timezone-aware UTC datetime

    Raises:
        ValueError: If the snowflake is not a numeric string
    """
    if not snowflake or not str(snowflake).isdigit():
        raise ValueError(f"Invalid snowflake: {snowflake!r} must be a numeric string")

    timestamp_ms = (int(snowflake) >> 22) + DISCORD_EPOCH_MS
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def is_valid_snowflake(value: object) -> bool:
    return isinstance(value, str) and bool(SNOWFLAKE_PATTERN.match(value))


def earlier_id(first: Optional[str], second: Optional[str]) -> Optional[str]:
    """Return the smaller of two optional snowflakes."""
    if first is None:
        return second
    if second is None:
        return first
    return first if int(first) < int(second) else second


def later_id(first: Optional[str], second: Optional[str]) -> Optional[str]:
    """Return the larger of two optional snowflakes."""
    if first is None:
        return second
    if second is None:
        return first
    return first if int(first) > int(second) else second


def parse_date_bound(date_string: str, reference_date: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parse a user supplied date such as "2021-12-31" or "2 years ago".

    Args:
        date_string: Free-form date text
        reference_date: Base for relative dates (defaults to now)

    Returns:
        Timezone-aware datetime, or None if the text cannot be parsed
    """
    if not date_string or not date_string.strip():
        logger.warning("Empty date string provided")
        return None

    parsed = dateparser.parse(
        date_string.strip(),
        settings={
            "RELATIVE_BASE": reference_date or datetime.now(),
            "PREFER_DATES_FROM": "past",
            "RETURN_AS_TIMEZONE_AWARE": True,
            "TO_TIMEZONE": "UTC",
        },
    )
    if parsed is None:
        logger.warning(f"Could not parse date string: '{date_string}'")
        return None

    logger.debug(f"Parsed '{date_string}' as {parsed}")
    return cast(datetime, parsed)
