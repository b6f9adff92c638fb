"""
Timestamp helpers for timeline queries and cross-backend transfer.

Partial dates typed by an investigator are expanded to full timestamps, and
timestamp values read from a native TIMESTAMP column are rendered back into
the single textual shape the rest of the store uses.
"""

import calendar
import datetime
import re
from typing import Any, Optional

# Textual shape shared by both backends
DB_DATETIME_FORMAT = '%Y-%m-%d %H:%M:%S'

# Values outside this window are ingestion sentinels, not real timestamps
SENTINEL_LOWER_BOUND = '1970-01-01'
SENTINEL_UPPER_BOUND = '2100-01-01'

_YEAR_RE = re.compile(r'^\d{4}$')
_YEAR_MONTH_RE = re.compile(r'^\d{4}-\d{2}$')
_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
_TIMESTAMP_RE = re.compile(r'^\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2}')


def normalize_date(value: str, is_end: bool = False) -> str:
    """
    Expand a partial date to a full 'YYYY-MM-DD HH:MM:SS' timestamp.
    
    Args:
        value: '2025', '2025-02', '2025-02-15' or a full timestamp
        is_end: Expand to the end of the period instead of its start
        
    Returns:
        str: Expanded timestamp; full timestamps and unrecognized values are
        returned trimmed but otherwise unchanged
    """
    value = value.strip()
    if not value or ' ' in value:
        return value

    if _YEAR_RE.match(value):
        return f"{value}-12-31 23:59:59" if is_end else f"{value}-01-01 00:00:00"

    if _YEAR_MONTH_RE.match(value):
        if not is_end:
            return f"{value}-01 00:00:00"
        year, month = int(value[:4]), int(value[5:7])
        if not 1 <= month <= 12:
            return value
        last_day = calendar.monthrange(year, month)[1]
        return f"{value}-{last_day:02d} 23:59:59"

    if _DATE_RE.match(value):
        return f"{value} 23:59:59" if is_end else f"{value} 00:00:00"

    return value


def is_valid_timestamp(value: Optional[str]) -> bool:
    """Whether a string can be stored in a native TIMESTAMP column."""
    if not value or not _TIMESTAMP_RE.match(value):
        return False
    # Year 0000 is out of range for PostgreSQL TIMESTAMP
    return value[:4] != '0000'


def format_db_datetime(value: Any) -> Optional[str]:
    """
    Render a datetime value read from the database as text.
    
    Args:
        value: datetime, date, string or None
        
    Returns:
        str: 'YYYY-MM-DD HH:MM:SS', the string unchanged, or None
    """
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        return value.strftime(DB_DATETIME_FORMAT)
    if isinstance(value, datetime.date):
        return value.strftime('%Y-%m-%d') + ' 00:00:00'
    return str(value)
