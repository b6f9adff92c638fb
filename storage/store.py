"""
Store interface for the timeline database.

Every operation the application needs is captured by the Store ABC so callers
depend on the capability contract rather than a concrete engine. The SQLite
and PostgreSQL stores both implement it.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from models.event import Event
from models.records import ExaminerNote, SavedQuery, TimelineBucket

ProgressCallback = Callable[[int], None]


class StoreError(Exception):
    """Base class for store failures. The message names the failing operation."""
    pass


class DatabaseConnectionError(StoreError):
    """Raised when a database cannot be opened or connected to."""
    pass


class SchemaError(StoreError):
    """Raised when schema creation fails; the schema is rolled back."""
    pass


class NoDatabaseOpenError(StoreError):
    """Raised when an operation needs an open store and there is none."""
    pass


class BatchInsertError(StoreError):
    """
    Raised when a batch insert fails and is rolled back.

    Attributes:
        inserted: Rows staged successfully before the failing row
    """

    def __init__(self, message: str, inserted: int):
        super().__init__(message)
        self.inserted = inserted


class Store(ABC):
    """
    Capability contract shared by all timeline database backends.

    Identifiers are backend row ids. Examiner-note methods take the positive
    internal note id; the negated presentation id is handled by callers.
    """

    driver = ''

    # Lifecycle

    @abstractmethod
    def close(self) -> None:
        """Release the connection. Safe to call more than once."""

    @property
    @abstractmethod
    def path(self) -> str:
        """File path or masked connection string of the database."""

    def __enter__(self) -> 'Store':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    # Event CRUD

    @abstractmethod
    def insert_event(self, event: Event) -> None:
        pass

    @abstractmethod
    def insert_events(self, events: Iterable[Event],
                      on_progress: Optional[ProgressCallback] = None) -> int:
        """
        Insert events in a single transaction.

        Returns:
            int: Number of rows inserted

        Raises:
            BatchInsertError: If any row fails; nothing is committed
        """

    @abstractmethod
    def query_events(self, where: str = '', args: Optional[Sequence[Any]] = None,
                     order_by: str = '', limit: int = 0, offset: int = 0) -> List[Event]:
        """Scan events matching a WHERE fragment (given without the keyword)."""

    @abstractmethod
    def count_events(self, where: str = '', args: Optional[Sequence[Any]] = None) -> int:
        pass

    @abstractmethod
    def update_event(self, event_id: int, fields: Dict[str, Any]) -> None:
        """
        Update columns of one event.

        Raises:
            InvalidFieldError: If any key is not a known column
        """

    @abstractmethod
    def toggle_bookmark(self, event_id: int) -> int:
        """Flip the bookmark flag and return the new value."""

    # Pre-built queries

    @abstractmethod
    def execute_query(self, sql: str, args: Optional[Sequence[Any]] = None) -> List[Event]:
        """Run SQL produced by Query.build() and decode its rows."""

    @abstractmethod
    def execute_count_query(self, sql: str, args: Optional[Sequence[Any]] = None) -> int:
        """Run SQL produced by Query.build_count()."""

    # Bulk mutation

    @abstractmethod
    def bulk_update_color(self, event_ids: Sequence[int], color: str) -> None:
        pass

    @abstractmethod
    def bulk_add_tag(self, event_ids: Sequence[int], tag: str) -> None:
        pass

    @abstractmethod
    def bulk_set_bookmark(self, event_ids: Sequence[int], value: int) -> None:
        pass

    # Metadata and filters

    @abstractmethod
    def get_distinct_values(self, field: str) -> Dict[str, int]:
        pass

    @abstractmethod
    def get_distinct_tags(self) -> List[str]:
        pass

    @abstractmethod
    def get_min_max_date(self) -> Tuple[str, str]:
        pass

    @abstractmethod
    def get_timeline_histogram(self, where_clause: str = '',
                               args: Optional[Sequence[Any]] = None) -> List[TimelineBucket]:
        """Bucket matching events; ``where_clause`` includes the WHERE keyword."""

    # Saved queries

    @abstractmethod
    def get_saved_queries(self) -> List[SavedQuery]:
        pass

    @abstractmethod
    def save_query(self, name: str, query: str) -> None:
        pass

    @abstractmethod
    def delete_query(self, name: str) -> None:
        pass

    # Examiner notes

    @abstractmethod
    def insert_examiner_note(self, datetime: str, desc: str, tag: str = '',
                             color: str = '') -> int:
        pass

    @abstractmethod
    def delete_examiner_note(self, note_id: int) -> None:
        pass

    @abstractmethod
    def toggle_examiner_note_bookmark(self, note_id: int) -> int:
        pass

    @abstractmethod
    def update_examiner_note_color(self, note_id: int, color: str) -> None:
        pass

    @abstractmethod
    def bulk_update_examiner_note_color(self, note_ids: Sequence[int], color: str) -> None:
        pass

    @abstractmethod
    def bulk_set_examiner_note_bookmark(self, note_ids: Sequence[int], value: int) -> None:
        pass

    @abstractmethod
    def get_examiner_notes(self) -> List[ExaminerNote]:
        pass

    # Schema and maintenance

    @abstractmethod
    def update_metadata(self) -> None:
        pass

    @abstractmethod
    def rebuild_indexes(self, fields: Sequence[str]) -> None:
        pass

    @abstractmethod
    def get_index_names(self) -> List[str]:
        pass

    @abstractmethod
    def migrate(self) -> None:
        """Apply additive migrations. Failures are logged, never raised."""
