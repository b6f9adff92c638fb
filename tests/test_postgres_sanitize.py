"""
Tests for the value sanitization applied before PostgreSQL inserts.
"""

import datetime

from models.event import INSERT_FIELDS
from storage.postgres_store import pg_sanitize_datetime, pg_sanitize_string, sanitize_event_row
from utils.time_utils import format_db_datetime


def test_strip_nul_bytes():
    assert pg_sanitize_string('abc\x00def') == 'abcdef'
    assert pg_sanitize_string('clean') == 'clean'
    assert pg_sanitize_string(None) is None
    assert pg_sanitize_string(42) == 42


def test_sanitize_datetime():
    assert pg_sanitize_datetime('2024-03-05 10:15:00') == '2024-03-05 10:15:00'
    assert pg_sanitize_datetime('0000-00-00 00:00:00') is None
    assert pg_sanitize_datetime('not a date') is None
    assert pg_sanitize_datetime('') is None
    assert pg_sanitize_datetime(None) is None


def test_sanitize_event_row_reports_changes(event_factory):
    event = event_factory(desc='bad\x00text', datetime='0000-00-00 00:00:00', offset=12)
    row, changed = sanitize_event_row(event)

    assert len(row) == len(INSERT_FIELDS)
    assert row[INSERT_FIELDS.index('desc')] == 'badtext'
    assert row[INSERT_FIELDS.index('datetime')] is None
    assert row[INSERT_FIELDS.index('offset')] == 12
    assert sorted(changed) == ['datetime', 'desc']


def test_sanitize_clean_event_unchanged(event_factory):
    event = event_factory()
    row, changed = sanitize_event_row(event)
    assert row == event.to_insert_row()
    assert changed == []


def test_missing_datetime_is_not_reported(event_factory):
    _, changed = sanitize_event_row(event_factory(datetime=None))
    assert changed == []


def test_format_native_timestamps():
    assert format_db_datetime(datetime.datetime(2024, 3, 5, 10, 15, 1)) == '2024-03-05 10:15:01'
    assert format_db_datetime(datetime.date(2024, 3, 5)) == '2024-03-05 00:00:00'
    assert format_db_datetime(None) is None
