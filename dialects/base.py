"""
SQL dialect strategy for the Timeline Store.

A Dialect captures every syntactic difference between the supported engines:
parameter placeholders, the row-identity column, reserved-word quoting,
date-range and date-bucketing fragments, and the DDL for every table. Dialects
hold no state; one instance is chosen per store and reused for every query.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from models.event import EVENT_TABLE, FIELDS, INSERT_FIELDS


class Dialect(ABC):
    """Abstract base for engine-specific SQL builders."""

    name = ''

    @abstractmethod
    def placeholder(self, index: int) -> str:
        """Parameter marker for the 1-based positional argument ``index``."""

    @abstractmethod
    def id_column(self) -> str:
        """Name of the row-identity column of the event table."""

    @abstractmethod
    def quote_column(self, name: str) -> str:
        """Quote a column name if it collides with a reserved word."""

    @abstractmethod
    def date_between_sql(self, first_index: int, second_index: int) -> str:
        """Inclusive date-range test against two positional arguments."""

    @abstractmethod
    def date_format_sql(self, column: str, pattern: str) -> str:
        """
        Truncate a date column to a bucket label.
        
        Args:
            column: Column expression
            pattern: One of the strftime patterns used for histogram buckets
        """

    @abstractmethod
    def date_text_sql(self, column: str) -> str:
        """Render a date column as 'YYYY-MM-DD HH:MM:SS' text."""

    @abstractmethod
    def schema_check_column_sql(self, table: str, column: str) -> str:
        """Query returning a nonzero count iff ``table.column`` exists."""

    @abstractmethod
    def list_indexes_sql(self) -> str:
        """Query returning the names of indexes on the event table."""

    @abstractmethod
    def datetime_type(self) -> str:
        """Column type used for timestamps."""

    @abstractmethod
    def id_column_definition(self) -> str:
        """Leading column definition of the event table, or empty."""

    @abstractmethod
    def create_examiner_notes_table_sql(self) -> str:
        pass

    @abstractmethod
    def insert_examiner_note_sql(self) -> str:
        pass

    def placeholders(self, count: int, start: int = 1) -> str:
        """Comma-separated markers for ``count`` consecutive arguments."""
        return ', '.join(self.placeholder(i) for i in range(start, start + count))

    def column_list(self, names: Optional[List[str]] = None) -> str:
        if names is None:
            names = FIELDS
        return ', '.join(self.quote_column(name) for name in names)

    def select_columns(self) -> str:
        """Identity column followed by every known column in fixed order."""
        return f"{self.id_column()}, {self.column_list()}"

    def create_table_sql(self) -> str:
        id_definition = self.id_column_definition()
        prefix = f"{id_definition},\n    " if id_definition else ''
        return (
            f"CREATE TABLE IF NOT EXISTS {EVENT_TABLE} (\n    {prefix}"
            f"timezone TEXT, MACB TEXT, source TEXT, sourcetype TEXT,\n    "
            f"type TEXT, {self.quote_column('user')} TEXT, host TEXT, "
            f"{self.quote_column('desc')} TEXT, filename TEXT,\n    "
            f"inode TEXT, notes TEXT, format TEXT, extra TEXT,\n    "
            f"datetime {self.datetime_type()}, reportnotes TEXT, inreport TEXT,\n    "
            f"tag TEXT, color TEXT, {self.quote_column('offset')} INT, store_number INT,\n    "
            f"store_index INT, vss_store_number INT, URL TEXT,\n    "
            f"record_number TEXT, event_identifier TEXT, event_type TEXT,\n    "
            f"source_name TEXT, user_sid TEXT, computer_name TEXT,\n    "
            f"bookmark INT DEFAULT 0\n)"
        )

    def create_metadata_table_sql(self, table_name: str, column_name: str) -> str:
        return (
            f"CREATE TABLE IF NOT EXISTS {table_name} "
            f"({self.quote_column(column_name)} TEXT, frequency INT)"
        )

    def create_tags_table_sql(self) -> str:
        return "CREATE TABLE IF NOT EXISTS l2t_tags (tag TEXT)"

    def create_saved_query_table_sql(self) -> str:
        return "CREATE TABLE IF NOT EXISTS l2t_saved_query (name TEXT, query TEXT)"

    def create_disk_table_sql(self) -> str:
        return (
            "CREATE TABLE IF NOT EXISTS l2t_disk (\n    "
            "disk_type INT, mount_path TEXT, dd_path TEXT,\n    "
            "dd_offset TEXT, storage_file TEXT, export_path TEXT\n)"
        )

    def insert_default_disk_sql(self) -> str:
        return (
            "INSERT INTO l2t_disk "
            "(disk_type, mount_path, dd_path, dd_offset, storage_file, export_path) "
            "VALUES (0, '', '', '', '', '')"
        )

    def create_index_sql(self, index_name: str, table_name: str, column: str) -> str:
        return (
            f"CREATE INDEX IF NOT EXISTS {index_name} "
            f"ON {table_name} ({self.quote_column(column)})"
        )

    def drop_index_sql(self, index_name: str) -> str:
        return f"DROP INDEX IF EXISTS {index_name}"

    def insert_event_sql(self) -> str:
        """Parameterized single-row INSERT with 30 columns in fixed order."""
        return (
            f"INSERT INTO {EVENT_TABLE} ({self.column_list(INSERT_FIELDS)}) "
            f"VALUES ({self.placeholders(len(INSERT_FIELDS))})"
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
