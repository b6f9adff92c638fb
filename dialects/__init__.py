"""
SQL dialects for the supported database engines.
"""

from .base import Dialect
from .sqlite import SQLiteDialect
from .postgres import PostgresDialect, pg_quote_column, RESERVED_COLUMNS


def get_dialect(driver: str) -> Dialect:
    """
    Return a dialect instance for a driver name.
    
    Raises:
        ValueError: If the driver is not supported
    """
    if driver == SQLiteDialect.name:
        return SQLiteDialect()
    if driver == PostgresDialect.name:
        return PostgresDialect()
    raise ValueError(f"unsupported database driver: {driver}")


__all__ = [
    'Dialect',
    'SQLiteDialect',
    'PostgresDialect',
    'pg_quote_column',
    'RESERVED_COLUMNS',
    'get_dialect'
]
