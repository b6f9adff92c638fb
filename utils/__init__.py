"""
Utility functions and helpers for the timeline store.
Includes error handling, logging setup, timestamp and connection string helpers.
"""

from .error_handler import (
    ErrorHandler,
    configure_logging,
    level_from_name,
    error_context,
    log_execution
)
from .time_utils import normalize_date, is_valid_timestamp, format_db_datetime
from .conn_utils import mask_conn_str, build_postgres_conninfo

__all__ = [
    'ErrorHandler',
    'configure_logging',
    'level_from_name',
    'error_context',
    'log_execution',
    'normalize_date',
    'is_valid_timestamp',
    'format_db_datetime',
    'mask_conn_str',
    'build_postgres_conninfo'
]
