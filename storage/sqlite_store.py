"""
SQLite backend for the timeline store.
Stores timestamps as text and identifies rows by the implicit rowid.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator, Optional, Sequence

from dialects.sqlite import SQLiteDialect
from models.event import EVENT_TABLE, Event

from .sql_store import SQLStore
from .store import DatabaseConnectionError

logger = logging.getLogger(__name__)


class SQLiteStore(SQLStore):
    """
    Timeline store in a single SQLite file.

    Use ``SQLiteStore.open`` for an existing database and
    ``SQLiteStore.create`` to build a new one.
    """

    driver = 'sqlite'
    driver_error = sqlite3.Error

    # Applied to every connection
    PRAGMAS = {
        'journal_mode': 'WAL',
        'synchronous': 'NORMAL',
        'cache_size': -64000,  # 64MB cache
        'temp_store': 'MEMORY',
        'busy_timeout': 30000,
    }

    @classmethod
    def _connect(cls, path: str) -> sqlite3.Connection:
        try:
            # Autocommit mode; _transaction issues BEGIN explicitly so DDL is
            # covered as well
            connection = sqlite3.connect(path, isolation_level=None)
        except sqlite3.Error as e:
            raise DatabaseConnectionError(f"opening database {path}: {e}") from e
        cursor = connection.cursor()
        for pragma, value in cls.PRAGMAS.items():
            try:
                cursor.execute(f"PRAGMA {pragma} = {value}")
            except sqlite3.Error as e:
                logger.warning(f"Failed to apply PRAGMA {pragma}: {e}")
        cursor.close()
        return connection

    @classmethod
    def open(cls, path: str) -> 'SQLiteStore':
        """
        Open an existing timeline database and apply pending migrations.

        Raises:
            DatabaseConnectionError: If the file is missing or holds no event table
        """
        if not os.path.exists(path):
            raise DatabaseConnectionError(f"database file not found: {path}")

        store = cls(path, SQLiteDialect(), cls._connect(path))
        try:
            row = store._fetchone(
                "SELECT COUNT(*) FROM sqlite_master WHERE type='table' AND name=?",
                [EVENT_TABLE],
            )
        except sqlite3.Error as e:
            store.close()
            raise DatabaseConnectionError(f"opening database {path}: {e}") from e
        if not row or not row[0]:
            store.close()
            raise DatabaseConnectionError(f"not a timeline database: {path}")

        store.migrate()
        store.logger.info(f"Opened database: {path}")
        return store

    @classmethod
    def create(cls, path: str, index_fields: Optional[Sequence[str]] = None) -> 'SQLiteStore':
        """
        Create a new timeline database with its full schema.

        Args:
            path: Database file path
            index_fields: Columns to index (None selects the default set)
        """
        store = cls(path, SQLiteDialect(), cls._connect(path))
        try:
            store._create_schema(index_fields)
        except Exception:
            store.close()
            raise
        return store

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        self._require_open()
        cursor = self.conn.cursor()
        cursor.execute('BEGIN')
        try:
            yield cursor
        except BaseException:
            self.conn.rollback()
            raise
        else:
            self.conn.commit()
        finally:
            cursor.close()

    def _decode_event(self, row: Sequence[Any]) -> Event:
        event = Event.from_row(row)
        # DATETIME has NUMERIC affinity, so bare years come back as integers
        if event.datetime is not None and not isinstance(event.datetime, str):
            event.datetime = str(event.datetime)
        return event
