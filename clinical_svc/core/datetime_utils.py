"""
UTC-first datetime utilities.

- All datetimes are processed as timezone-aware UTC
- Naive datetimes are assumed to already be UTC
- SQLite stores datetimes as fixed-width ISO 8601 TEXT so that string
  comparison in SQL matches chronological order

Usage:
    from core.datetime_utils import utc_now, to_utc, to_db_string

    now = utc_now()
    stored = to_db_string(now)  # "2024-01-15T05:00:00.000000Z"
"""
from datetime import date, datetime, timezone
from typing import Union

# Fixed width (always six fractional digits) keeps TEXT ordering chronological
DB_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


# =============================================================================
# CORE UTILITIES
# =============================================================================

def utc_now() -> datetime:
    """
    Get current datetime in UTC with timezone info.

    Returns:
        datetime: Current time as timezone-aware datetime in UTC.
    """
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Get the current calendar date in UTC."""
    return utc_now().date()


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    - If datetime is naive (no timezone), assumes it's already UTC
    - If datetime has timezone, converts to UTC

    Args:
        dt: A datetime object (naive or timezone-aware).

    Returns:
        datetime: Timezone-aware datetime in UTC.

    Example:
        >>> from datetime import timedelta
        >>> ist = timezone(timedelta(hours=5, minutes=30))
        >>> to_utc(datetime(2024, 1, 15, 16, 0, tzinfo=ist)).hour
        10
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# =============================================================================
# PARSING
# =============================================================================

def parse_datetime(value: Union[str, datetime]) -> datetime:
    """
    Parse a datetime value to UTC datetime.

    Accepts datetime objects and ISO 8601 strings (with or without
    timezone, 'Z' suffix allowed).

    Raises:
        ValueError: If the value cannot be parsed.
    """
    if isinstance(value, datetime):
        return to_utc(value)

    if not isinstance(value, str):
        raise ValueError(f"Expected datetime or string, got {type(value).__name__}")

    value = value.strip()
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'

    try:
        return to_utc(datetime.fromisoformat(value))
    except ValueError:
        raise ValueError(f"Cannot parse datetime: '{value}'") from None


# =============================================================================
# DATABASE HELPERS
# =============================================================================

def to_db_string(dt: datetime) -> str:
    """
    Convert datetime to the fixed-width string stored in SQLite.

    Args:
        dt: Datetime to convert.

    Returns:
        str: e.g. "2024-01-15T10:30:00.000000Z"
    """
    return to_utc(dt).strftime(DB_DATETIME_FORMAT)

