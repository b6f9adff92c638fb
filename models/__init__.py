"""
Data model for the timeline store.
Provides the canonical event record, its column table and supporting records.
"""

from .event import (
    Column,
    COLUMNS,
    FIELDS,
    COLUMN_ATTRS,
    INTEGER_FIELDS,
    INSERT_FIELDS,
    DEFAULT_INDEX_FIELDS,
    METADATA_FIELDS,
    SEARCH_FIELDS,
    EVENT_TABLE,
    Event,
    InvalidFieldError,
    is_valid_field,
    validate_field,
    metadata_table_name,
    index_name
)
from .records import ExaminerNote, SavedQuery, TimelineBucket, DBInfo

__all__ = [
    'Column',
    'COLUMNS',
    'FIELDS',
    'COLUMN_ATTRS',
    'INTEGER_FIELDS',
    'INSERT_FIELDS',
    'DEFAULT_INDEX_FIELDS',
    'METADATA_FIELDS',
    'SEARCH_FIELDS',
    'EVENT_TABLE',
    'Event',
    'InvalidFieldError',
    'is_valid_field',
    'validate_field',
    'metadata_table_name',
    'index_name',
    'ExaminerNote',
    'SavedQuery',
    'TimelineBucket',
    'DBInfo'
]
