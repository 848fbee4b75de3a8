"""
Helper Utilities Module
Common utility functions used across the sync engine.
"""

import unicodedata
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from dateutil import parser as date_parser


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (the storage convention for all tables)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_today() -> date:
    """Current UTC calendar date."""
    return utc_now().date()


def parse_datetime(dt_string: Optional[str]) -> Optional[datetime]:
    """
    Parse an upstream datetime string to a Python datetime.

    Args:
        dt_string: ISO 8601 datetime string

    Returns:
        datetime object or None if parsing fails
    """
    if not dt_string:
        return None

    try:
        return date_parser.parse(dt_string)
    except (ValueError, TypeError, OverflowError):
        return None


def to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """
    Parse a date or datetime string to its calendar date.

    The date portion is taken as written, without shifting to UTC,
    so '2024-03-01T23:30:00+01:00' is 2024-03-01.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    parsed = parse_datetime(value)
    return parsed.date() if parsed else None


def format_date(value: date) -> str:
    """Format a date as YYYY-MM-DD."""
    return value.strftime('%Y-%m-%d')


def build_date_windows(start: date, end: date, window_days: int) -> List[Tuple[date, date]]:
    """
    Split an inclusive date range into consecutive fixed-size windows.

    Each window spans window_days calendar days, the last one is capped at end.

    Args:
        start: First day of the range
        end: Last day of the range (inclusive)
        window_days: Days per window

    Returns:
        List of (window_start, window_end) tuples
    """
    if window_days < 1:
        raise ValueError("window_days must be at least 1")

    windows = []
    window_start = start

    while window_start <= end:
        window_end = min(window_start + timedelta(days=window_days - 1), end)
        windows.append((window_start, window_end))
        window_start = window_end + timedelta(days=1)

    return windows


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


def first_present(data: Dict, *keys, default=None) -> Any:
    """
    Return the value of the first key present (and not None) in data.

    Used to probe the differently-cased field names the two upstream sources use.
    """
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def external_id_of(raw: Dict) -> str:
    """Upstream primary key of a raw record (id / Id / ID)."""
    value = first_present(raw, 'id', 'Id', 'ID')
    if value is None:
        raise ValueError(f"Record has no id field: {sorted(raw.keys())[:10]}")
    return str(value)


def strip_diacritics(text: str) -> str:
    """Remove accents: 'Zoë Müller' -> 'Zoe Muller'."""
    normalized = unicodedata.normalize('NFKD', text)
    return ''.join(c for c in normalized if not unicodedata.combining(c))


def display_name_from_email(email: str) -> str:
    """
    Derive a display name from an email local part.

    'jane.doe@example.com' -> 'Jane Doe'; local parts without a dot are returned as-is.
    """
    local_part = email.split('@')[0]
    if '.' not in local_part:
        return local_part
    return ' '.join(part[:1].upper() + part[1:] for part in local_part.split('.') if part)


def email_local_part_from_name(name: str) -> Optional[str]:
    """
    Derive a candidate email local part from a display name.

    Uses first and last name only, lower-cased and without diacritics:
    'José María García' -> 'jose.garcia'.
    """
    if not name:
        return None

    tokens = [
        ''.join(c for c in token if c.isalnum() or c == '-')
        for token in strip_diacritics(name).lower().split()
    ]
    tokens = [t for t in tokens if t]

    if not tokens:
        return None
    if len(tokens) == 1:
        return tokens[0]
    return f"{tokens[0]}.{tokens[-1]}"
