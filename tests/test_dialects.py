"""
Tests for the SQLite and PostgreSQL dialects.
"""

import pytest

from dialects import PostgresDialect, SQLiteDialect, get_dialect
from dialects.postgres import pg_quote_column


def test_get_dialect():
    assert isinstance(get_dialect('sqlite'), SQLiteDialect)
    assert isinstance(get_dialect('postgres'), PostgresDialect)
    with pytest.raises(ValueError):
        get_dialect('mysql')


def test_placeholders():
    assert SQLiteDialect().placeholder(7) == '?'
    assert PostgresDialect().placeholder(7) == '$7'
    assert SQLiteDialect().placeholders(3) == '?, ?, ?'
    assert PostgresDialect().placeholders(3, start=2) == '$2, $3, $4'


def test_id_column():
    assert SQLiteDialect().id_column() == 'rowid'
    assert PostgresDialect().id_column() == 'id'


def test_reserved_column_quoting():
    pg = PostgresDialect()
    assert pg.quote_column('desc') == '"desc"'
    assert pg.quote_column('user') == '"user"'
    assert pg.quote_column('offset') == '"offset"'
    assert pg.quote_column('host') == 'host'
    assert pg_quote_column('source') == 'source'
    assert SQLiteDialect().quote_column('desc') == 'desc'


def test_date_between():
    assert SQLiteDialect().date_between_sql(1, 2) == "(datetime BETWEEN datetime(?) AND datetime(?))"
    assert PostgresDialect().date_between_sql(3, 4) == "(datetime BETWEEN $3 AND $4)"


def test_date_format_translates_bucket_patterns():
    assert SQLiteDialect().date_format_sql('datetime', '%Y-%m') == "strftime('%Y-%m', datetime)"
    pg = PostgresDialect()
    assert pg.date_format_sql('datetime', '%Y-%m-%d %H:00:00') == "to_char(datetime, 'YYYY-MM-DD HH24:00:00')"
    assert pg.date_format_sql('datetime', '%Y-%m-%d') == "to_char(datetime, 'YYYY-MM-DD')"
    assert pg.date_format_sql('datetime', '%Y-%m') == "to_char(datetime, 'YYYY-MM')"


def test_create_table_has_identity_and_bookmark():
    sqlite_sql = SQLiteDialect().create_table_sql()
    pg_sql = PostgresDialect().create_table_sql()

    assert 'id SERIAL PRIMARY KEY' in pg_sql
    assert 'SERIAL' not in sqlite_sql
    assert 'datetime DATETIME' in sqlite_sql
    assert 'datetime TIMESTAMP' in pg_sql
    assert '"desc" TEXT' in pg_sql
    assert 'bookmark INT DEFAULT 0' in sqlite_sql


def test_insert_event_sql_has_30_positions():
    sql = PostgresDialect().insert_event_sql()
    assert '$30' in sql
    assert '$31' not in sql
    assert SQLiteDialect().insert_event_sql().count('?') == 30


def test_examiner_note_insert():
    assert 'RETURNING id' in PostgresDialect().insert_examiner_note_sql()
    assert 'RETURNING' not in SQLiteDialect().insert_examiner_note_sql()
    assert 'AUTOINCREMENT' in SQLiteDialect().create_examiner_notes_table_sql()


def test_index_ddl():
    pg = PostgresDialect()
    assert pg.create_index_sql('user_idx', 'log2timeline', 'user') == \
        'CREATE INDEX IF NOT EXISTS user_idx ON log2timeline ("user")'
    assert pg.drop_index_sql('user_idx') == 'DROP INDEX IF EXISTS user_idx'


def test_schema_check_column():
    assert "pragma_table_info('log2timeline')" in SQLiteDialect().schema_check_column_sql('log2timeline', 'bookmark')
    assert "column_name='bookmark'" in PostgresDialect().schema_check_column_sql('log2timeline', 'bookmark')
