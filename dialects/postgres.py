"""
PostgreSQL dialect.

Uses numbered ``$N`` placeholders, a SERIAL ``id`` column and a native
TIMESTAMP column, and double-quotes the columns whose names are reserved
words in PostgreSQL.
"""

from models.event import EVENT_TABLE

from .base import Dialect

RESERVED_COLUMNS = frozenset({'user', 'desc', 'offset'})

# strftime patterns used for histogram buckets mapped to to_char patterns
STRFTIME_TO_POSTGRES = {
    '%Y-%m-%d %H:00:00': 'YYYY-MM-DD HH24:00:00',
    '%Y-%m-%d': 'YYYY-MM-DD',
    '%Y-%m': 'YYYY-MM',
}


def pg_quote_column(name: str) -> str:
    """Wrap a reserved-word column name in double quotes."""
    if name in RESERVED_COLUMNS:
        return f'"{name}"'
    return name


class PostgresDialect(Dialect):

    name = 'postgres'

    def placeholder(self, index: int) -> str:
        return f"${index}"

    def id_column(self) -> str:
        return 'id'

    def quote_column(self, name: str) -> str:
        return pg_quote_column(name)

    def date_between_sql(self, first_index: int, second_index: int) -> str:
        return (
            f"(datetime BETWEEN {self.placeholder(first_index)} "
            f"AND {self.placeholder(second_index)})"
        )

    def date_format_sql(self, column: str, pattern: str) -> str:
        pg_pattern = STRFTIME_TO_POSTGRES.get(pattern, pattern)
        return f"to_char({column}, '{pg_pattern}')"

    def date_text_sql(self, column: str) -> str:
        return f"to_char({column}, 'YYYY-MM-DD HH24:MI:SS')"

    def schema_check_column_sql(self, table: str, column: str) -> str:
        return (
            "SELECT COUNT(*) FROM information_schema.columns "
            f"WHERE table_name='{table}' AND column_name='{column}'"
        )

    def list_indexes_sql(self) -> str:
        return (
            "SELECT indexname FROM pg_indexes "
            f"WHERE tablename='{EVENT_TABLE}' ORDER BY indexname"
        )

    def datetime_type(self) -> str:
        return 'TIMESTAMP'

    def id_column_definition(self) -> str:
        return 'id SERIAL PRIMARY KEY'

    def create_examiner_notes_table_sql(self) -> str:
        return (
            "CREATE TABLE IF NOT EXISTS examiner_notes (\n    "
            "id SERIAL PRIMARY KEY,\n    "
            'datetime TIMESTAMP, "desc" TEXT, tag TEXT, color TEXT,\n    '
            "bookmark INT DEFAULT 0\n)"
        )

    def insert_examiner_note_sql(self) -> str:
        return (
            'INSERT INTO examiner_notes (datetime, "desc", tag, color) '
            "VALUES ($1, $2, $3, $4) RETURNING id"
        )
