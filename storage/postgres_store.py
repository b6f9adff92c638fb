"""
PostgreSQL backend for the timeline store.

Rows are identified by a SERIAL ``id`` and timestamps use a native TIMESTAMP
column. Values that SQLite accepts but PostgreSQL rejects are sanitized on the
way in: NUL bytes are stripped from text, and timestamps that are empty,
malformed or in year 0000 become NULL. Every substitution is logged.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple

import psycopg

from dialects.postgres import PostgresDialect
from models.event import INSERT_FIELDS, INTEGER_FIELDS, Event
from utils.conn_utils import mask_conn_str
from utils.time_utils import format_db_datetime, is_valid_timestamp

from .sql_store import TOGGLE_BOOKMARK, SQLStore
from .store import DatabaseConnectionError, ProgressCallback, StoreError

logger = logging.getLogger(__name__)


def pg_sanitize_string(value: Any) -> Any:
    """Strip NUL bytes, which PostgreSQL rejects in UTF-8 text."""
    if isinstance(value, str) and '\x00' in value:
        return value.replace('\x00', '')
    return value


def pg_sanitize_datetime(value: Any) -> Optional[str]:
    """Return a timestamp PostgreSQL can store, or None (SQL NULL)."""
    if value is None:
        return None
    value = pg_sanitize_string(str(value))
    if not is_valid_timestamp(value):
        return None
    return value


def sanitize_event_row(event: Event) -> Tuple[Tuple[Any, ...], List[str]]:
    """
    Encode an event for INSERT into PostgreSQL.

    Returns:
        The row in INSERT_FIELDS order and the names of the columns whose
        values were changed
    """
    changed = []
    row = []
    for name, value in zip(INSERT_FIELDS, event.to_insert_row()):
        if name == 'datetime':
            clean = pg_sanitize_datetime(value)
            if clean != value and value not in (None, ''):
                changed.append(name)
        elif name in INTEGER_FIELDS:
            clean = value
        else:
            clean = pg_sanitize_string(value)
            if clean != value:
                changed.append(name)
        row.append(clean)
    return tuple(row), changed


class PostgresStore(SQLStore):
    """
    Timeline store in a PostgreSQL database.

    The connection runs in autocommit mode with ``psycopg.RawCursor`` so the
    dialect's ``$N`` placeholders reach the server unchanged; multi-statement
    work goes through ``connection.transaction()``.
    """

    driver = 'postgres'
    driver_error = psycopg.Error

    def __init__(self, target: str, dialect: PostgresDialect, connection: Any):
        super().__init__(target, dialect, connection)
        self._sanitized = 0

    @classmethod
    def _connect(cls, conninfo: str) -> psycopg.Connection:
        try:
            return psycopg.connect(conninfo, autocommit=True, cursor_factory=psycopg.RawCursor)
        except psycopg.Error as e:
            raise DatabaseConnectionError(
                f"connecting to PostgreSQL {mask_conn_str(conninfo)}: {e}"
            ) from e

    @classmethod
    def open(cls, conninfo: str) -> 'PostgresStore':
        """Connect to an existing timeline database and apply pending migrations."""
        store = cls(conninfo, PostgresDialect(), cls._connect(conninfo))
        store.migrate()
        store.logger.info(f"Connected to PostgreSQL: {store.path}")
        return store

    @classmethod
    def create(cls, conninfo: str, index_fields: Optional[Sequence[str]] = None) -> 'PostgresStore':
        """Connect and create the full timeline schema."""
        store = cls(conninfo, PostgresDialect(), cls._connect(conninfo))
        try:
            store._create_schema(index_fields)
        except Exception:
            store.close()
            raise
        return store

    @property
    def path(self) -> str:
        return mask_conn_str(self._target)

    @contextmanager
    def _transaction(self) -> Iterator[psycopg.RawCursor]:
        self._require_open()
        with self.conn.transaction():
            with self.conn.cursor() as cursor:
                yield cursor

    # Encoding

    def _encode_event(self, event: Event) -> Tuple[Any, ...]:
        row, changed = sanitize_event_row(event)
        if changed:
            self._sanitized += 1
            logger.debug(f"Sanitized {', '.join(changed)} of event {event.id}")
        return row

    def _encode_value(self, field: str, value: Any) -> Any:
        if field == 'datetime':
            return pg_sanitize_datetime(value)
        return pg_sanitize_string(value)

    def _encode_note_datetime(self, value: str) -> Any:
        clean = pg_sanitize_datetime(value)
        if clean is None and value:
            logger.warning(f"Examiner note timestamp {value!r} is not valid for PostgreSQL; storing NULL")
        return clean

    def _report_sanitized(self) -> None:
        if self._sanitized:
            logger.warning(
                f"{self._sanitized} event(s) had values PostgreSQL cannot store "
                "(NUL bytes or invalid timestamps); they were stripped or set to NULL"
            )
        self._sanitized = 0

    def insert_event(self, event: Event) -> None:
        self._sanitized = 0
        try:
            super().insert_event(event)
        finally:
            self._report_sanitized()

    def insert_events(self, events: Iterable[Event],
                      on_progress: Optional[ProgressCallback] = None) -> int:
        self._sanitized = 0
        try:
            return super().insert_events(events, on_progress)
        finally:
            self._report_sanitized()

    # Decoding

    def _decode_event(self, row: Sequence[Any]) -> Event:
        event = Event.from_row(row)
        event.datetime = format_db_datetime(event.datetime)
        return event

    def _decode_value(self, field: str, value: Any) -> Any:
        if field == 'datetime':
            return format_db_datetime(value)
        return value

    def _insert_returning_id(self, cursor: Any, sql: str, args: Sequence[Any]) -> int:
        row = self._run(cursor, sql, args).fetchone()
        return int(row[0])

    def _toggle_flag(self, table: str, id_column: str, row_id: int) -> int:
        sql = (
            f"UPDATE {table} SET {TOGGLE_BOOKMARK} "
            f"WHERE {id_column} = {self.dialect.placeholder(1)} RETURNING bookmark"
        )
        with self._operation(f"toggling bookmark on {table} {row_id}"):
            row = self._fetchone(sql, [row_id])
        if row is None:
            raise StoreError(f"toggling bookmark: no row {row_id} in {table}")
        return int(row[0] or 0)
