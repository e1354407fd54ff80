"""
Helper Utilities Module
Common value parsing and collection helpers used across the application.
"""

import re
from datetime import datetime
from typing import Any, List, Optional

from dateutil import parser as date_parser


DEFAULT_WINDOW_DAYS = 30

# Year, month and day must all be present
_FULL_DATE = re.compile(r"^\d{4}-?\d{2}-?\d{2}(?:$|[^\d])")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a timestamp string to a naive Python datetime.

    Timezone-aware inputs are kept as wall-clock time in their own offset,
    since the store's TIMESTAMP columns carry no zone.

    Args:
        value: ISO 8601 timestamp with a full calendar date

    Returns:
        datetime object, or None for an empty value

    Raises:
        ValueError: If the string is not an ISO 8601 timestamp with a full date
    """
    if value is None or value.strip() == '':
        return None

    value = value.strip()
    if not _FULL_DATE.match(value):
        raise ValueError(f"invalid timestamp {value!r}")

    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, OverflowError) as e:
        raise ValueError(f"invalid timestamp {value!r}") from e

    return parsed.replace(tzinfo=None)


def parse_int(value: Optional[str]) -> Optional[int]:
    """Parse an integer column value; empty means None."""
    if value is None or value.strip() == '':
        return None
    try:
        return int(value.strip())
    except ValueError as e:
        raise ValueError(f"invalid integer {value!r}") from e


def parse_float(value: Optional[str]) -> Optional[float]:
    """Parse a float column value; empty means None."""
    if value is None or value.strip() == '':
        return None
    try:
        return float(value.strip())
    except ValueError as e:
        raise ValueError(f"invalid number {value!r}") from e


def parse_days(raw: Optional[str], default: int = DEFAULT_WINDOW_DAYS) -> int:
    """
    Parse the ``days`` query parameter.

    Non-numeric or missing input falls back to the default. Range checks are
    left to the query layer.

    Args:
        raw: Raw query string value
        default: Window used when the value is missing or not a number

    Returns:
        Number of days
    """
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def chunk_list(lst: List[Any], chunk_size: int) -> List[List[Any]]:
    """
    Split a list into chunks of specified size.

    Args:
        lst: List to chunk
        chunk_size: Size of each chunk

    Returns:
        List of chunks
    """
    return [lst[i:i + chunk_size] for i in range(0, len(lst), chunk_size)]
