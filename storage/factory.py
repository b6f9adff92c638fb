"""
Store factory: open or create a timeline store for a driver name.
"""

import logging
from typing import Optional, Sequence

from config.store_config import StoreConfig

from .postgres_store import PostgresStore
from .sql_store import SQLStore
from .sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)

DRIVERS = ('sqlite', 'postgres')


def _store_class(driver: str):
    if driver == 'sqlite':
        return SQLiteStore
    if driver == 'postgres':
        return PostgresStore
    raise ValueError(f"unsupported database driver: {driver}")


def _apply_config(store: SQLStore, config: Optional[StoreConfig]) -> SQLStore:
    if config is not None:
        store.progress_interval = config.get_progress_interval()
    return store


def open_store(driver: str, target: str, config: Optional[StoreConfig] = None) -> SQLStore:
    """
    Open an existing timeline database.

    Args:
        driver: 'sqlite' or 'postgres'
        target: File path for SQLite, connection string for PostgreSQL
        config: Optional configuration supplying the progress interval

    Raises:
        ValueError: If the driver is not supported
        DatabaseConnectionError: If the database cannot be opened
    """
    store_class = _store_class(driver)
    logger.debug(f"Opening {driver} store")
    return _apply_config(store_class.open(target), config)


def create_store(driver: str, target: str, index_fields: Optional[Sequence[str]] = None,
                 config: Optional[StoreConfig] = None) -> SQLStore:
    """
    Create a timeline database with its full schema.

    Args:
        driver: 'sqlite' or 'postgres'
        target: File path for SQLite, connection string for PostgreSQL
        index_fields: Columns to index; None uses the configured (or default) set
        config: Optional configuration

    Raises:
        ValueError: If the driver is not supported
        SchemaError: If the schema could not be created
    """
    store_class = _store_class(driver)
    if index_fields is None and config is not None:
        index_fields = config.get_index_fields()
    logger.debug(f"Creating {driver} store")
    return _apply_config(store_class.create(target, index_fields), config)
