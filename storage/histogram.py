"""
Adaptive time bucketing for the timeline histogram.

The bucket granularity is chosen from the filtered date span: one calendar
day gives hourly buckets, one month or one year gives daily buckets, and
anything spanning several years gives monthly buckets.
"""

from typing import Optional

from dialects.base import Dialect
from models.event import EVENT_TABLE

HOURLY = '%Y-%m-%d %H:00:00'
DAILY = '%Y-%m-%d'
MONTHLY = '%Y-%m'


def choose_bucket_format(min_date: str, max_date: str) -> str:
    """
    Pick the strftime pattern for the span between two timestamps.

    Args:
        min_date: Earliest timestamp as 'YYYY-MM-DD HH:MM:SS'
        max_date: Latest timestamp as 'YYYY-MM-DD HH:MM:SS'
    """
    if len(min_date) < 10 or len(max_date) < 10:
        return HOURLY
    if min_date[:10] == max_date[:10]:
        return HOURLY
    if min_date[:7] == max_date[:7]:
        return DAILY
    if min_date[:4] == max_date[:4]:
        return DAILY
    return MONTHLY


def _with_where(sql: str, where_clause: Optional[str]) -> str:
    if where_clause:
        return f"{sql} {where_clause}"
    return sql


def range_sql(dialect: Dialect, where_clause: Optional[str] = None) -> str:
    """Min/max timestamp text of the rows selected by ``where_clause``."""
    return _with_where(
        f"SELECT COALESCE({dialect.date_text_sql('MIN(datetime)')}, ''), "
        f"COALESCE({dialect.date_text_sql('MAX(datetime)')}, '') FROM {EVENT_TABLE}",
        where_clause,
    )


def bucket_sql(dialect: Dialect, bucket_format: str, where_clause: Optional[str] = None) -> str:
    """Grouped count query labelling each row with its bucket."""
    bucket_expr = dialect.date_format_sql('datetime', bucket_format)
    sql = _with_where(
        f"SELECT {bucket_expr} as bucket, COUNT(*) as cnt FROM {EVENT_TABLE}",
        where_clause,
    )
    return sql + " GROUP BY bucket ORDER BY bucket"
