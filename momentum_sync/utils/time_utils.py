"""
PURPOSE: Time helpers shared by the state merger and the sheet reconciler.
"""

from datetime import datetime, timezone
from typing import Optional

# Timestamp layout used for sheet cells, matching the original sheet columns
SHEET_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_utc_now() -> datetime:
    """
    PURPOSE: Return the current UTC time as a timezone-aware datetime object.

    Returns:
        datetime: Current UTC time with timezone info.
    """
    return datetime.now(timezone.utc)


def storage_now() -> datetime:
    """
    PURPOSE: Return the current UTC time as a naive datetime for DB columns.

    The securities table stores naive UTC timestamps (SQLite has no zone type),
    so every write goes through this helper to keep values comparable.

    Returns:
        datetime: Current UTC time without tzinfo.
    """
    return get_utc_now().replace(tzinfo=None)


def format_sheet_timestamp(value: Optional[datetime]) -> str:
    """
    PURPOSE: Render a stored timestamp for a spreadsheet cell.

    Args:
        value: Naive UTC datetime or None.

    Returns:
        str: "YYYY-MM-DD HH:MM:SS", or "" when value is None.
    """
    if value is None:
        return ""
    return value.strftime(SHEET_TIMESTAMP_FORMAT)
