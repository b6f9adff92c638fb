"""
Timeline Service
Request-level operations on an open timeline store: filtered and advanced
search, histograms, bulk edits routed by identifier sign, examiner notes,
CSV export/import and transfer of a SQLite database into PostgreSQL.

Examiner notes share the event grid through their identifiers: an event id
is positive, and a note with internal id ``n`` is presented as ``-n``.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from dialects.base import Dialect
from models.event import SEARCH_FIELDS, Event
from models.records import DBInfo, SavedQuery, TimelineBucket
from query.builder import DEFAULT_PAGE_SIZE, Query, RawQuery
from query.predicate import Logic, Operator, Predicate, combine, parse_operator, simple
from query.reserved_words import quote_postgres_reserved_words
from utils.time_utils import normalize_date

from .csv_io import read_events_csv, write_events_csv
from .factory import create_store
from .sql_store import SENTINEL_FILTER, SQLStore
from .store import NoDatabaseOpenError, ProgressCallback, StoreError

logger = logging.getLogger(__name__)

# Large enough to read a whole database in one page
UNLIMITED_PAGE_SIZE = 999999999

# Operators whose datetime value is a point in time; LIKE values stay as typed
DATE_COMPARISON_OPERATORS = frozenset({
    Operator.EQUAL,
    Operator.NOT_EQUAL,
    Operator.GREATER_OR_EQUAL,
    Operator.LESS_OR_EQUAL,
})


@dataclass
class FilterSpec:
    """One user filter row: column, operator string and value."""
    field: str
    operator: str
    value: str


@dataclass
class QueryRequest:
    """
    A filter panel state.

    Attributes:
        filters: Column filters combined with ``logic``
        logic: 'AND' or 'OR'
        search_text: Free text matched with LIKE across the search columns
        bookmark_only: Restrict to bookmarked events
        order_by: Order column (empty for none)
        page: 1-based page
        page_size: Rows per page (<= 0 selects the default)
    """
    filters: List[FilterSpec] = field(default_factory=list)
    logic: str = 'AND'
    search_text: str = ''
    bookmark_only: bool = False
    order_by: str = ''
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE


@dataclass
class QueryResponse:
    events: List[Event]
    total_count: int
    page: int
    page_size: int


@dataclass
class TransferResult:
    """Rows copied by push_to_postgres."""
    events: int
    notes: int

    def message(self) -> str:
        msg = f"Pushed {self.events} events to PostgreSQL"
        if self.notes:
            msg += f" ({self.notes} examiner notes)"
        return msg


def split_ids(ids: Sequence[int]) -> Tuple[List[int], List[int]]:
    """
    Separate grid identifiers into event ids and internal note ids.

    Positive ids are events. Negative ids are examiner notes and come back
    negated to their positive internal form. Zero is never a valid id and is
    dropped.
    """
    events: List[int] = []
    notes: List[int] = []
    for value in ids:
        if value > 0:
            events.append(value)
        elif value < 0:
            notes.append(-value)
    return events, notes


def _note_id(display_id: int) -> int:
    if display_id >= 0:
        raise ValueError(f"expected a negative examiner note ID, got {display_id}")
    return -display_id


def build_request_predicates(request: QueryRequest) -> List[Predicate]:
    """
    Translate a request into top-level predicates.

    Unknown operators and columns are skipped. Partial dates compared against
    the datetime column are expanded, to the end of the period for '<='.
    """
    predicates: List[Predicate] = []
    for filter_spec in request.filters:
        op = parse_operator(filter_spec.operator)
        if op is None:
            logger.debug(f"Skipping filter with unsupported operator: {filter_spec.operator}")
            continue
        value: Any = filter_spec.value
        if filter_spec.field == 'datetime' and op in DATE_COMPARISON_OPERATORS:
            value = normalize_date(str(value), op == Operator.LESS_OR_EQUAL)
        predicate = simple(filter_spec.field, op, value)
        if predicate is not None:
            predicates.append(predicate)

    if request.search_text:
        search = combine(
            [simple(name, Operator.LIKE, request.search_text) for name in SEARCH_FIELDS],
            Logic.OR,
        )
        if search is not None:
            predicates.append(search)

    if request.bookmark_only:
        predicates.append(simple('bookmark', Operator.EQUAL, 1))
    return predicates


class TimelineService:
    """
    Operations on the currently open store.

    Attributes:
        store: Open store, or None
    """

    def __init__(self, store: Optional[SQLStore] = None):
        self.store = store
        self.logger = logging.getLogger(self.__class__.__name__)

    # Lifecycle

    @property
    def driver(self) -> str:
        return self.store.driver if self.store is not None else ''

    @property
    def dialect(self) -> Dialect:
        return self._require_store().dialect

    def _require_store(self) -> SQLStore:
        if self.store is None:
            raise NoDatabaseOpenError("no database open")
        return self.store

    def attach(self, store: SQLStore) -> DBInfo:
        """Replace the current store (closing it) and summarise the new one."""
        self.close()
        self.store = store
        self.logger.info(f"Database opened: {store.path}")
        return self.get_db_info()

    def close(self) -> None:
        if self.store is not None:
            self.store.close()
            self.store = None

    def get_db_info(self) -> DBInfo:
        store = self._require_store()
        count = store.count_events()
        try:
            min_date, max_date = store.get_min_max_date()
        except StoreError as e:
            self.logger.warning(f"Could not read date range: {e}")
            min_date, max_date = '', ''
        return DBInfo(store.path, store.driver, count, min_date, max_date)

    # Searching

    def build_query(self, request: QueryRequest) -> Query:
        page_size = request.page_size if request.page_size > 0 else DEFAULT_PAGE_SIZE
        q = Query(self.dialect, page_size)
        q.set_logic(request.logic if request.logic == 'OR' else Logic.AND)
        for predicate in build_request_predicates(request):
            q.add_predicate(predicate)
        if request.order_by:
            q.order_by(request.order_by)
        q.set_page(max(request.page, 1))
        return q

    def query_events(self, request: QueryRequest) -> QueryResponse:
        store = self._require_store()
        q = self.build_query(request)
        sql, args = q.build()
        count_sql, count_args = q.build_count()

        total = store.execute_count_query(count_sql, count_args)
        events = store.execute_query(sql, args)
        return QueryResponse(events, total, q.page, q.page_size)

    def advanced_search(self, where: str, page: int = 1,
                        page_size: int = DEFAULT_PAGE_SIZE) -> QueryResponse:
        """
        Run a user-typed WHERE fragment, ordered by datetime.

        The fragment is not parameterized. On PostgreSQL the reserved column
        names are quoted automatically.
        """
        store = self._require_store()
        if page_size <= 0:
            page_size = DEFAULT_PAGE_SIZE
        if store.driver == 'postgres':
            where = quote_postgres_reserved_words(where)

        q = RawQuery(self.dialect, where, page_size)
        q.set_page(max(page, 1))
        q.order_by('datetime')
        sql, args = q.build()
        count_sql, count_args = q.build_count()

        total = store.execute_count_query(count_sql, count_args)
        events = store.execute_query(sql, args)
        return QueryResponse(events, total, q.page, q.page_size)

    def histogram_where(self, request: QueryRequest) -> Tuple[str, List[Any]]:
        """
        WHERE clause (with keyword) for the histogram of a request.

        Sentinel timestamps are always excluded; the request's predicates are
        joined with the request's logic and ANDed onto that.
        """
        logic = Logic.OR if request.logic == 'OR' else Logic.AND
        tree = combine(build_request_predicates(request), logic)
        if tree is None:
            return f"WHERE {SENTINEL_FILTER}", []
        where, args = tree.where_clause(self.dialect, 1)
        return f"WHERE {SENTINEL_FILTER} AND ({where})", args

    def get_timeline_histogram(self, request: QueryRequest) -> List[TimelineBucket]:
        store = self._require_store()
        where, args = self.histogram_where(request)
        return store.get_timeline_histogram(where, args)

    def get_distinct_values(self, field_name: str) -> Dict[str, int]:
        return self._require_store().get_distinct_values(field_name)

    def get_tags(self) -> List[str]:
        return self._require_store().get_distinct_tags()

    # Editing

    def update_event_fields(self, event_id: int, fields: Dict[str, Any]) -> None:
        if event_id < 0:
            raise ValueError(
                "cannot update examiner note fields via update_event_fields; use the note methods"
            )
        self._require_store().update_event(event_id, fields)

    def toggle_bookmark(self, grid_id: int) -> int:
        store = self._require_store()
        if grid_id < 0:
            return store.toggle_examiner_note_bookmark(-grid_id)
        return store.toggle_bookmark(grid_id)

    def bulk_update_color(self, ids: Sequence[int], color: str) -> None:
        store = self._require_store()
        events, notes = split_ids(ids)
        if events:
            store.bulk_update_color(events, color)
        if notes:
            store.bulk_update_examiner_note_color(notes, color)
        self.logger.info(
            f"Bulk color update: {len(events)} events, {len(notes)} examiner notes, color={color}"
        )

    def bulk_add_tag(self, ids: Sequence[int], tag: str) -> None:
        """Append a tag to events. Examiner note tags are immutable and skipped."""
        store = self._require_store()
        events, _ = split_ids(ids)
        if events:
            store.bulk_add_tag(events, tag)
        self.logger.info(f"Bulk tag add: {len(events)} events, tag={tag}")

    def bulk_set_bookmark(self, ids: Sequence[int], value: int) -> None:
        store = self._require_store()
        events, notes = split_ids(ids)
        if events:
            store.bulk_set_bookmark(events, value)
        if notes:
            store.bulk_set_examiner_note_bookmark(notes, value)
        self.logger.info(
            f"Bulk bookmark: {len(events)} events, {len(notes)} examiner notes, value={value}"
        )

    # Examiner notes

    def add_examiner_note(self, datetime: str, description: str) -> int:
        """Create a note and return its (negative) grid id."""
        note_id = self._require_store().insert_examiner_note(datetime, description, '', '')
        return -note_id

    def delete_examiner_note(self, grid_id: int) -> None:
        self._require_store().delete_examiner_note(_note_id(grid_id))
        self.logger.info(f"Examiner note deleted (ID {grid_id})")

    def update_examiner_note_color(self, grid_id: int, color: str) -> None:
        self._require_store().update_examiner_note_color(_note_id(grid_id), color)

    def toggle_examiner_note_bookmark(self, grid_id: int) -> int:
        return self._require_store().toggle_examiner_note_bookmark(_note_id(grid_id))

    def get_examiner_notes(self) -> List[Event]:
        """Examiner notes as grid rows carrying negative ids."""
        return [note.as_event() for note in self._require_store().get_examiner_notes()]

    # Saved queries

    def get_saved_queries(self) -> List[SavedQuery]:
        return self._require_store().get_saved_queries()

    def save_query(self, name: str, query: str) -> None:
        """
        Save a named query.

        Raises:
            ValueError: If the name is blank or already taken
        """
        store = self._require_store()
        name = name.strip()
        if not name:
            raise ValueError("saved query name must not be empty")
        if any(saved.name == name for saved in store.get_saved_queries()):
            raise ValueError(f"a saved query named {name!r} already exists")
        store.save_query(name, query)

    def delete_saved_query(self, name: str) -> None:
        self._require_store().delete_query(name)

    # Import, export and transfer

    def export_csv(self, path: str, request: Optional[QueryRequest] = None) -> int:
        """Export every event matching a request (all events by default)."""
        store = self._require_store()
        request = replace(request or QueryRequest(order_by='datetime'),
                          page=1, page_size=UNLIMITED_PAGE_SIZE)
        q = self.build_query(request)
        sql, args = q.build()
        events = store.execute_query(sql, args)
        with open(path, 'w', newline='', encoding='utf-8') as f:
            count = write_events_csv(f, events)
        self.logger.info(f"Exported {count} events to {path}")
        return count

    def import_csv(self, path: str, on_progress: Optional[ProgressCallback] = None,
                   update_metadata: bool = True) -> int:
        """Load a canonical-column CSV in one transaction."""
        store = self._require_store()
        start = time.monotonic()
        with open(path, 'r', newline='', encoding='utf-8') as f:
            inserted = store.insert_events(read_events_csv(f), on_progress)
        if update_metadata:
            store.update_metadata()
        self.logger.info(f"Imported {inserted} events from {path} in {time.monotonic() - start:.2f}s")
        return inserted

    def push_to_postgres(self, conninfo: str,
                         on_progress: Optional[Callable[[str, int, int], None]] = None,
                         index_fields: Optional[Sequence[str]] = None) -> TransferResult:
        """
        Copy the open SQLite database into a new PostgreSQL schema.

        Args:
            conninfo: PostgreSQL connection string
            on_progress: Called as (phase, count, total)
            index_fields: Columns to index on the target

        Raises:
            StoreError: If no SQLite database is open, it is empty, or the
                transfer fails
        """
        store = self._require_store()
        if store.driver != 'sqlite':
            raise StoreError("no SQLite database is open")

        def report(phase: str, count: int, total: int) -> None:
            if on_progress is not None:
                on_progress(phase, count, total)

        start = time.monotonic()
        source_count = store.count_events()
        if source_count == 0:
            raise StoreError("SQLite database has no events to push")

        q = Query(store.dialect, UNLIMITED_PAGE_SIZE)
        q.order_by('datetime')
        sql, args = q.build()
        report('reading', 0, source_count)
        events = store.execute_query(sql, args)
        if not events:
            raise StoreError(
                f"query returned 0 events from SQLite (expected {source_count})"
            )
        total = len(events)
        report('reading', total, source_count)

        target = create_store('postgres', conninfo, index_fields)
        try:
            self.logger.info(f"Push to PostgreSQL started: {target.path}")
            inserted = target.insert_events(
                events, lambda count: report('inserting', count, total)
            )
            report('inserting', inserted, total)

            notes_inserted = 0
            for note in store.get_examiner_notes():
                try:
                    target.insert_examiner_note(note.datetime or '', note.desc or '',
                                                note.tag or '', note.color or '')
                except StoreError as e:
                    self.logger.error(f"Failed to push examiner note {note.id}: {e}")
                    continue
                notes_inserted += 1

            report('metadata', 0, 0)
            target.update_metadata()
        finally:
            target.close()

        result = TransferResult(inserted, notes_inserted)
        report('done', inserted, total)
        self.logger.info(
            f"Push complete: {inserted} events + {notes_inserted} notes "
            f"in {time.monotonic() - start:.2f}s"
        )
        return result
