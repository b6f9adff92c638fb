"""
Shared DB-API implementation of the Store contract.

Both backends speak DB-API 2 and differ only in what their Dialect renders,
how a transaction is opened, and how values are encoded on the way in and
decoded on the way out. Everything else lives here once.
"""

import logging
from abc import abstractmethod
from contextlib import closing, contextmanager
from typing import (
    Any, ContextManager, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Type
)

from dialects.base import Dialect
from models.event import (
    DEFAULT_INDEX_FIELDS,
    EVENT_TABLE,
    METADATA_FIELDS,
    Event,
    InvalidFieldError,
    is_valid_field,
    metadata_table_name,
    validate_field,
)
from models.records import ExaminerNote, SavedQuery, TimelineBucket
from utils.error_handler import log_execution
from utils.time_utils import SENTINEL_LOWER_BOUND, SENTINEL_UPPER_BOUND

from .histogram import bucket_sql, choose_bucket_format, range_sql
from .index_manager import IndexManager
from .store import (
    BatchInsertError,
    ProgressCallback,
    SchemaError,
    Store,
    StoreError,
)

NOTES_TABLE = 'examiner_notes'

# Keeps IN (...) lists below SQLite's bound-variable limit
ID_CHUNK_SIZE = 500

SENTINEL_FILTER = (
    f"datetime > '{SENTINEL_LOWER_BOUND}' AND datetime < '{SENTINEL_UPPER_BOUND}'"
)

TOGGLE_BOOKMARK = "bookmark = CASE WHEN bookmark = 1 THEN 0 ELSE 1 END"


def split_tags(value: Optional[str]) -> List[str]:
    """Split a comma-joined tag string into trimmed, non-empty tokens."""
    if not value:
        return []
    return [token.strip() for token in value.split(',') if token.strip()]


def _chunks(ids: Sequence[int], size: int = ID_CHUNK_SIZE) -> Iterator[List[int]]:
    ids = list(ids)
    for start in range(0, len(ids), size):
        yield ids[start:start + size]


class SQLStore(Store):
    """
    Store backed by a single DB-API connection.

    Subclasses supply the connection, the driver's base exception class and
    the ``_transaction`` context manager.

    Attributes:
        dialect: Dialect used for every statement
        progress_interval: Rows between progress callbacks in insert_events
    """

    driver_error: Type[Exception] = Exception
    progress_interval = 10000

    def __init__(self, target: str, dialect: Dialect, connection: Any):
        self._target = target
        self.dialect = dialect
        self.conn = connection
        self.index_manager = IndexManager(dialect)
        self.logger = logging.getLogger(self.__class__.__name__)

    # Connection plumbing

    @abstractmethod
    def _transaction(self) -> ContextManager[Any]:
        """Context manager yielding a cursor inside one transaction."""

    def _require_open(self) -> None:
        if self.conn is None:
            raise StoreError(f"database is closed: {self.path}")

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        """Wrap driver errors in StoreError naming the failed operation."""
        self._require_open()
        try:
            yield
        except self.driver_error as e:
            self.logger.error(f"Error {name}: {e}")
            raise StoreError(f"{name}: {e}") from e

    def _run(self, cursor: Any, sql: str, args: Optional[Sequence[Any]] = None) -> Any:
        self.logger.debug(f"SQL: {sql} ARGS: {list(args) if args else []}")
        if args:
            cursor.execute(sql, tuple(args))
        else:
            cursor.execute(sql)
        return cursor

    def _fetchall(self, sql: str, args: Optional[Sequence[Any]] = None) -> List[Tuple[Any, ...]]:
        with closing(self.conn.cursor()) as cursor:
            return list(self._run(cursor, sql, args).fetchall())

    def _fetchone(self, sql: str, args: Optional[Sequence[Any]] = None) -> Optional[Tuple[Any, ...]]:
        with closing(self.conn.cursor()) as cursor:
            return self._run(cursor, sql, args).fetchone()

    def _execute(self, sql: str, args: Optional[Sequence[Any]] = None) -> int:
        with closing(self.conn.cursor()) as cursor:
            return self._run(cursor, sql, args).rowcount

    def _placeholders(self, count: int, start: int = 1) -> str:
        return self.dialect.placeholders(count, start)

    # Encoding hooks

    def _encode_event(self, event: Event) -> Tuple[Any, ...]:
        return event.to_insert_row()

    def _encode_value(self, field: str, value: Any) -> Any:
        return value

    def _encode_note_datetime(self, value: str) -> Any:
        return value

    def _decode_event(self, row: Sequence[Any]) -> Event:
        return Event.from_row(row)

    def _decode_value(self, field: str, value: Any) -> Any:
        return value

    def _insert_returning_id(self, cursor: Any, sql: str, args: Sequence[Any]) -> int:
        self._run(cursor, sql, args)
        return int(cursor.lastrowid)

    # Lifecycle

    @property
    def path(self) -> str:
        return self._target

    def close(self) -> None:
        if self.conn is None:
            return
        try:
            self.conn.close()
            self.logger.info(f"Closed database: {self.path}")
        finally:
            self.conn = None

    def _create_schema(self, index_fields: Optional[Sequence[str]] = None) -> None:
        """Create every table and the requested indexes in one transaction."""
        if index_fields is None:
            index_fields = DEFAULT_INDEX_FIELDS
        for field in index_fields:
            validate_field(field)

        d = self.dialect
        try:
            with self._transaction() as cursor:
                self._run(cursor, d.create_table_sql())
                for field in METADATA_FIELDS:
                    self._run(cursor, d.create_metadata_table_sql(metadata_table_name(field), field))
                self._run(cursor, d.create_tags_table_sql())
                self._run(cursor, d.create_saved_query_table_sql())
                self._run(cursor, d.create_disk_table_sql())
                self._run(cursor, d.insert_default_disk_sql())
                self._run(cursor, d.create_examiner_notes_table_sql())
                self.index_manager.create_indexes(cursor, index_fields)
        except self.driver_error as e:
            self.logger.error(f"Schema creation failed for {self.path}: {e}")
            raise SchemaError(f"creating schema: {e}") from e
        self.logger.info(f"Created schema in {self.path} (indexes: {', '.join(index_fields)})")

    def migrate(self) -> None:
        if self.conn is None:
            return
        d = self.dialect
        try:
            row = self._fetchone(d.schema_check_column_sql(EVENT_TABLE, 'bookmark'))
            if not row or not row[0]:
                self._execute(f"ALTER TABLE {EVENT_TABLE} ADD COLUMN bookmark INT DEFAULT 0")
                self.logger.info("Added bookmark column to event table")
            self._execute(d.create_examiner_notes_table_sql())
        except self.driver_error as e:
            self.logger.warning(f"Migration skipped for {self.path}: {e}")

    # Event CRUD

    def insert_event(self, event: Event) -> None:
        with self._operation("inserting event"):
            self._execute(self.dialect.insert_event_sql(), self._encode_event(event))

    def insert_events(self, events: Iterable[Event],
                      on_progress: Optional[ProgressCallback] = None) -> int:
        self._require_open()
        sql = self.dialect.insert_event_sql()
        inserted = 0
        try:
            with self._transaction() as cursor:
                for event in events:
                    cursor.execute(sql, self._encode_event(event))
                    inserted += 1
                    if on_progress is not None and inserted % self.progress_interval == 0:
                        on_progress(inserted)
        except Exception as e:
            # Failures from the driver or from the event source
            self.logger.error(f"Batch insert rolled back after {inserted} rows: {e}")
            raise BatchInsertError(
                f"inserting event {inserted + 1}: {e}", inserted
            ) from e
        self.logger.info(f"Inserted {inserted} events into {self.path}")
        return inserted

    def _order_clause(self, order_by: str) -> str:
        if not order_by:
            return ''
        if not (is_valid_field(order_by) or order_by == self.dialect.id_column()):
            raise InvalidFieldError(f"invalid order by field: {order_by}")
        return f" ORDER BY {self.dialect.quote_column(order_by)}"

    def query_events(self, where: str = '', args: Optional[Sequence[Any]] = None,
                     order_by: str = '', limit: int = 0, offset: int = 0) -> List[Event]:
        sql = f"SELECT {self.dialect.select_columns()} FROM {EVENT_TABLE}"
        if where:
            sql += f" WHERE {where}"
        sql += self._order_clause(order_by)
        if limit > 0:
            sql += f" LIMIT {int(limit)}"
            if offset > 0:
                sql += f" OFFSET {int(offset)}"
        return self.execute_query(sql, args)

    def count_events(self, where: str = '', args: Optional[Sequence[Any]] = None) -> int:
        sql = f"SELECT COUNT({self.dialect.id_column()}) FROM {EVENT_TABLE}"
        if where:
            sql += f" WHERE {where}"
        return self.execute_count_query(sql, args)

    def execute_query(self, sql: str, args: Optional[Sequence[Any]] = None) -> List[Event]:
        with self._operation("querying events"):
            rows = self._fetchall(sql, args)
        return [self._decode_event(row) for row in rows]

    def execute_count_query(self, sql: str, args: Optional[Sequence[Any]] = None) -> int:
        with self._operation("counting events"):
            row = self._fetchone(sql, args)
        return int(row[0]) if row and row[0] is not None else 0

    def update_event(self, event_id: int, fields: Dict[str, Any]) -> None:
        for name in fields:
            validate_field(name)
        if not fields:
            return

        d = self.dialect
        assignments = []
        args = []
        for i, (name, value) in enumerate(fields.items(), start=1):
            assignments.append(f"{d.quote_column(name)} = {d.placeholder(i)}")
            args.append(self._encode_value(name, value))
        args.append(event_id)
        sql = (
            f"UPDATE {EVENT_TABLE} SET {', '.join(assignments)} "
            f"WHERE {d.id_column()} = {d.placeholder(len(args))}"
        )
        with self._operation(f"updating event {event_id}"):
            self._execute(sql, args)

    def _toggle_flag(self, table: str, id_column: str, row_id: int) -> int:
        d = self.dialect
        with self._operation(f"toggling bookmark on {table} {row_id}"):
            with self._transaction() as cursor:
                self._run(
                    cursor,
                    f"UPDATE {table} SET {TOGGLE_BOOKMARK} "
                    f"WHERE {id_column} = {d.placeholder(1)}",
                    [row_id],
                )
                row = self._run(
                    cursor,
                    f"SELECT bookmark FROM {table} WHERE {id_column} = {d.placeholder(1)}",
                    [row_id],
                ).fetchone()
        if row is None:
            raise StoreError(f"toggling bookmark: no row {row_id} in {table}")
        return int(row[0] or 0)

    def toggle_bookmark(self, event_id: int) -> int:
        return self._toggle_flag(EVENT_TABLE, self.dialect.id_column(), event_id)

    # Bulk mutation

    def _bulk_set(self, table: str, id_column: str, column: str,
                  ids: Sequence[int], value: Any, operation: str) -> None:
        if not ids:
            return
        d = self.dialect
        with self._operation(operation):
            with self._transaction() as cursor:
                for chunk in _chunks(ids):
                    sql = (
                        f"UPDATE {table} SET {d.quote_column(column)} = {d.placeholder(1)} "
                        f"WHERE {id_column} IN ({self._placeholders(len(chunk), 2)})"
                    )
                    self._run(cursor, sql, [value] + chunk)

    def bulk_update_color(self, event_ids: Sequence[int], color: str) -> None:
        self._bulk_set(EVENT_TABLE, self.dialect.id_column(), 'color',
                       event_ids, self._encode_value('color', color), "bulk updating color")

    def bulk_set_bookmark(self, event_ids: Sequence[int], value: int) -> None:
        self._bulk_set(EVENT_TABLE, self.dialect.id_column(), 'bookmark',
                       event_ids, int(value), "bulk setting bookmark")

    def bulk_add_tag(self, event_ids: Sequence[int], tag: str) -> None:
        tag = self._encode_value('tag', tag.strip())
        if not event_ids or not tag:
            return
        d = self.dialect
        id_col = d.id_column()
        with self._operation("bulk adding tag"):
            with self._transaction() as cursor:
                for chunk in _chunks(event_ids):
                    rows = self._run(
                        cursor,
                        f"SELECT {id_col}, tag FROM {EVENT_TABLE} "
                        f"WHERE {id_col} IN ({self._placeholders(len(chunk))})",
                        chunk,
                    ).fetchall()
                    for row_id, current in rows:
                        tokens = split_tags(current)
                        if tag in tokens:
                            continue
                        self._run(
                            cursor,
                            f"UPDATE {EVENT_TABLE} SET tag = {d.placeholder(1)} "
                            f"WHERE {id_col} = {d.placeholder(2)}",
                            [','.join(tokens + [tag]), row_id],
                        )

    # Metadata and filters

    def get_distinct_values(self, field: str) -> Dict[str, int]:
        validate_field(field)
        col = self.dialect.quote_column(field)
        sql = (
            f"SELECT {col}, COUNT(*) FROM {EVENT_TABLE} "
            f"WHERE {col} IS NOT NULL GROUP BY {col}"
        )
        with self._operation(f"getting distinct values of {field}"):
            rows = self._fetchall(sql)
        values: Dict[str, int] = {}
        for value, count in rows:
            value = self._decode_value(field, value)
            if value is None or value == '':
                continue
            values[str(value)] = values.get(str(value), 0) + int(count)
        return values

    def get_distinct_tags(self) -> List[str]:
        with self._operation("getting distinct tags"):
            rows = self._fetchall(
                f"SELECT DISTINCT tag FROM {EVENT_TABLE} WHERE tag IS NOT NULL AND tag <> ''"
            )
        tags = set()
        for (value,) in rows:
            tags.update(split_tags(value))
        return sorted(tags)

    def get_min_max_date(self) -> Tuple[str, str]:
        with self._operation("getting date range"):
            row = self._fetchone(range_sql(self.dialect, f"WHERE {SENTINEL_FILTER}"))
        if not row:
            return '', ''
        return str(row[0] or ''), str(row[1] or '')

    def get_timeline_histogram(self, where_clause: str = '',
                               args: Optional[Sequence[Any]] = None) -> List[TimelineBucket]:
        with self._operation("getting histogram date range"):
            row = self._fetchone(range_sql(self.dialect, where_clause), args)
        min_date = str(row[0] or '') if row else ''
        max_date = str(row[1] or '') if row else ''
        if not min_date or not max_date:
            return []

        bucket_format = choose_bucket_format(min_date, max_date)
        self.logger.debug(f"Histogram {min_date} .. {max_date} using buckets {bucket_format}")
        with self._operation("running histogram query"):
            rows = self._fetchall(bucket_sql(self.dialect, bucket_format, where_clause), args)
        return [TimelineBucket(str(label), int(count)) for label, count in rows if label is not None]

    @log_execution()
    def update_metadata(self) -> None:
        """Rebuild every frequency table and the tags table in one transaction."""
        d = self.dialect
        with self._operation("updating metadata"):
            with self._transaction() as cursor:
                for field in METADATA_FIELDS:
                    table = metadata_table_name(field)
                    col = d.quote_column(field)
                    self._run(cursor, f"DELETE FROM {table}")
                    self._run(
                        cursor,
                        f"INSERT INTO {table} ({col}, frequency) "
                        f"SELECT {col}, COUNT({col}) FROM {EVENT_TABLE} "
                        f"WHERE {col} <> '' GROUP BY {col}",
                    )

                self._run(cursor, "DELETE FROM l2t_tags")
                # Read every tag string before inserting; PostgreSQL cannot
                # interleave a pending result with new statements on one cursor
                raw_tags = self._run(
                    cursor,
                    f"SELECT DISTINCT tag FROM {EVENT_TABLE} WHERE tag <> ''",
                ).fetchall()
                seen = set()
                for (value,) in raw_tags:
                    for tag in split_tags(value):
                        if tag in seen:
                            continue
                        seen.add(tag)
                        self._run(cursor, f"INSERT INTO l2t_tags (tag) VALUES ({d.placeholder(1)})", [tag])
        self.logger.info(f"Metadata updated for {self.path}")

    def get_metadata(self, field: str) -> Dict[str, int]:
        """Frequencies stored by the last update_metadata() for one column."""
        if field not in METADATA_FIELDS:
            raise InvalidFieldError(f"no metadata table for field: {field}")
        col = self.dialect.quote_column(field)
        with self._operation(f"reading metadata for {field}"):
            rows = self._fetchall(f"SELECT {col}, frequency FROM {metadata_table_name(field)}")
        return {str(value): int(count) for value, count in rows}

    @log_execution()
    def rebuild_indexes(self, fields: Sequence[str]) -> None:
        for field in fields:
            validate_field(field)
        with self._operation("rebuilding indexes"):
            with self._transaction() as cursor:
                self.index_manager.rebuild(cursor, fields)

    def get_index_names(self) -> List[str]:
        with self._operation("listing indexes"):
            with closing(self.conn.cursor()) as cursor:
                return self.index_manager.list_indexes(cursor)

    # Saved queries

    def get_saved_queries(self) -> List[SavedQuery]:
        with self._operation("getting saved queries"):
            rows = self._fetchall("SELECT name, query FROM l2t_saved_query ORDER BY name")
        return [SavedQuery(name, query) for name, query in rows]

    def save_query(self, name: str, query: str) -> None:
        d = self.dialect
        with self._operation(f"saving query {name}"):
            self._execute(
                f"INSERT INTO l2t_saved_query (name, query) VALUES ({d.placeholder(1)}, {d.placeholder(2)})",
                [name, query],
            )

    def delete_query(self, name: str) -> None:
        with self._operation(f"deleting query {name}"):
            self._execute(
                f"DELETE FROM l2t_saved_query WHERE name = {self.dialect.placeholder(1)}",
                [name],
            )

    # Examiner notes

    def insert_examiner_note(self, datetime: str, desc: str, tag: str = '',
                             color: str = '') -> int:
        args = [
            self._encode_note_datetime(datetime),
            self._encode_value('desc', desc),
            self._encode_value('tag', tag),
            self._encode_value('color', color),
        ]
        with self._operation("inserting examiner note"):
            with self._transaction() as cursor:
                note_id = self._insert_returning_id(
                    cursor, self.dialect.insert_examiner_note_sql(), args
                )
        self.logger.info(f"Examiner note {note_id} added")
        return note_id

    def delete_examiner_note(self, note_id: int) -> None:
        with self._operation(f"deleting examiner note {note_id}"):
            self._execute(
                f"DELETE FROM {NOTES_TABLE} WHERE id = {self.dialect.placeholder(1)}",
                [note_id],
            )

    def toggle_examiner_note_bookmark(self, note_id: int) -> int:
        return self._toggle_flag(NOTES_TABLE, 'id', note_id)

    def update_examiner_note_color(self, note_id: int, color: str) -> None:
        self.bulk_update_examiner_note_color([note_id], color)

    def bulk_update_examiner_note_color(self, note_ids: Sequence[int], color: str) -> None:
        self._bulk_set(NOTES_TABLE, 'id', 'color', note_ids,
                       self._encode_value('color', color), "bulk updating examiner note color")

    def bulk_set_examiner_note_bookmark(self, note_ids: Sequence[int], value: int) -> None:
        self._bulk_set(NOTES_TABLE, 'id', 'bookmark', note_ids, int(value),
                       "bulk setting examiner note bookmark")

    def get_examiner_notes(self) -> List[ExaminerNote]:
        d = self.dialect
        sql = (
            f"SELECT id, {d.date_text_sql('datetime')}, {d.quote_column('desc')}, "
            f"tag, color, bookmark FROM {NOTES_TABLE} ORDER BY datetime, id"
        )
        with self._operation("getting examiner notes"):
            rows = self._fetchall(sql)
        return [
            ExaminerNote(
                id=int(note_id),
                datetime=None if dt is None else str(dt),
                desc=desc,
                tag=tag,
                color=color,
                bookmark=int(bookmark or 0),
            )
            for note_id, dt, desc, tag, color, bookmark in rows
        ]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.path!r})"
