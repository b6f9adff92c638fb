"""SQLite dialect: '?' placeholders, implicit rowid, text timestamps."""

from models.event import EVENT_TABLE

from .base import Dialect


class SQLiteDialect(Dialect):

    name = 'sqlite'

    def placeholder(self, index: int) -> str:
        return '?'

    def id_column(self) -> str:
        return 'rowid'

    def quote_column(self, name: str) -> str:
        return name

    def date_between_sql(self, first_index: int, second_index: int) -> str:
        return "(datetime BETWEEN datetime(?) AND datetime(?))"

    def date_format_sql(self, column: str, pattern: str) -> str:
        return f"strftime('{pattern}', {column})"

    def date_text_sql(self, column: str) -> str:
        return column

    def schema_check_column_sql(self, table: str, column: str) -> str:
        return f"SELECT COUNT(*) FROM pragma_table_info('{table}') WHERE name='{column}'"

    def list_indexes_sql(self) -> str:
        return (
            "SELECT name FROM sqlite_master "
            f"WHERE type='index' AND tbl_name='{EVENT_TABLE}' ORDER BY name"
        )

    def datetime_type(self) -> str:
        return 'DATETIME'

    def id_column_definition(self) -> str:
        return ''

    def create_examiner_notes_table_sql(self) -> str:
        # AUTOINCREMENT keeps deleted note ids from being handed out again
        return (
            "CREATE TABLE IF NOT EXISTS examiner_notes (\n    "
            "id INTEGER PRIMARY KEY AUTOINCREMENT,\n    "
            "datetime DATETIME, desc TEXT, tag TEXT, color TEXT,\n    "
            "bookmark INT DEFAULT 0\n)"
        )

    def insert_examiner_note_sql(self) -> str:
        return (
            "INSERT INTO examiner_notes (datetime, desc, tag, color) "
            "VALUES (?, ?, ?, ?)"
        )
