"""
Event Model for the Timeline Store
Defines the canonical timeline event record and the column table that drives
field validation, SELECT/INSERT column order and row decoding.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence, Tuple


class InvalidFieldError(ValueError):
    """Raised when a column name is not part of the known-column whitelist."""
    pass


@dataclass(frozen=True)
class Column:
    """
    Describes one column of the log2timeline table.
    
    Attributes:
        name: Column name as it appears in SQL
        attr: Attribute name on the Event dataclass
        integer: Whether the column holds an integer value
    """
    name: str
    attr: str
    integer: bool = False


# Column order used by every SELECT and by row decoding
COLUMNS: Tuple[Column, ...] = (
    Column('datetime', 'datetime'),
    Column('timezone', 'timezone'),
    Column('MACB', 'macb'),
    Column('source', 'source'),
    Column('sourcetype', 'sourcetype'),
    Column('type', 'type'),
    Column('user', 'user'),
    Column('host', 'host'),
    Column('desc', 'desc'),
    Column('filename', 'filename'),
    Column('inode', 'inode'),
    Column('notes', 'notes'),
    Column('format', 'format'),
    Column('extra', 'extra'),
    Column('reportnotes', 'reportnotes'),
    Column('inreport', 'inreport'),
    Column('tag', 'tag'),
    Column('color', 'color'),
    Column('offset', 'offset', integer=True),
    Column('store_number', 'store_number', integer=True),
    Column('store_index', 'store_index', integer=True),
    Column('vss_store_number', 'vss_store_number', integer=True),
    Column('URL', 'url'),
    Column('record_number', 'record_number'),
    Column('event_identifier', 'event_identifier'),
    Column('event_type', 'event_type'),
    Column('source_name', 'source_name'),
    Column('user_sid', 'user_sid'),
    Column('computer_name', 'computer_name'),
    Column('bookmark', 'bookmark', integer=True),
)

FIELDS: List[str] = [column.name for column in COLUMNS]

COLUMN_ATTRS: Dict[str, str] = {column.name: column.attr for column in COLUMNS}

INTEGER_FIELDS = frozenset(column.name for column in COLUMNS if column.integer)

# Fixed 30-position order of the single-row INSERT
INSERT_FIELDS: List[str] = [
    'timezone', 'MACB', 'source', 'sourcetype', 'type', 'user', 'host',
    'desc', 'filename', 'inode', 'notes', 'format', 'extra', 'datetime',
    'reportnotes', 'inreport', 'tag', 'color', 'offset', 'store_number',
    'store_index', 'vss_store_number', 'URL', 'record_number',
    'event_identifier', 'event_type', 'source_name', 'user_sid',
    'computer_name', 'bookmark',
]

DEFAULT_INDEX_FIELDS: List[str] = [
    'host', 'user', 'source', 'sourcetype', 'type', 'datetime', 'color',
]

METADATA_FIELDS: List[str] = [
    'sourcetype', 'source', 'user', 'host', 'MACB', 'color', 'type',
    'record_number',
]

SEARCH_FIELDS: List[str] = [
    'desc', 'filename', 'source', 'sourcetype', 'type', 'user', 'host',
    'extra', 'tag', 'URL', 'source_name', 'computer_name', 'format', 'notes',
]

EVENT_TABLE = 'log2timeline'


def is_valid_field(name: str) -> bool:
    """Check whether a column name belongs to the known-column whitelist."""
    return name in COLUMN_ATTRS


def validate_field(name: str) -> str:
    """
    Return the column name unchanged, or raise if it is not whitelisted.
    
    Raises:
        InvalidFieldError: If the name is not a known column
    """
    if not is_valid_field(name):
        raise InvalidFieldError(f"invalid field name: {name}")
    return name


def metadata_table_name(field_name: str) -> str:
    """Name of the denormalized frequency table for a column."""
    return f"l2t_{field_name}s"


def index_name(field_name: str) -> str:
    """Name of the per-column index for a column."""
    return f"{field_name}_idx"


@dataclass
class Event:
    """
    Canonical timeline event.
    
    Every descriptive field is optional because the PostgreSQL backend returns
    true NULLs for unset columns. Attribute names follow the column table
    (MACB is exposed as ``macb`` and URL as ``url``).
    
    Attributes:
        id: Backend-assigned identifier (rowid on SQLite, id on PostgreSQL)
        bookmark: Bookmark flag, 0 or 1
    """
    id: Optional[int] = None
    datetime: Optional[str] = None
    timezone: Optional[str] = None
    macb: Optional[str] = None
    source: Optional[str] = None
    sourcetype: Optional[str] = None
    type: Optional[str] = None
    user: Optional[str] = None
    host: Optional[str] = None
    desc: Optional[str] = None
    filename: Optional[str] = None
    inode: Optional[str] = None
    notes: Optional[str] = None
    format: Optional[str] = None
    extra: Optional[str] = None
    reportnotes: Optional[str] = None
    inreport: Optional[str] = None
    tag: Optional[str] = None
    color: Optional[str] = None
    offset: Optional[int] = None
    store_number: Optional[int] = None
    store_index: Optional[int] = None
    vss_store_number: Optional[int] = None
    url: Optional[str] = None
    record_number: Optional[str] = None
    event_identifier: Optional[str] = None
    event_type: Optional[str] = None
    source_name: Optional[str] = None
    user_sid: Optional[str] = None
    computer_name: Optional[str] = None
    bookmark: int = 0

    def get(self, column_name: str) -> Any:
        """Read a value by its SQL column name."""
        return getattr(self, COLUMN_ATTRS[validate_field(column_name)])

    def to_insert_row(self) -> Tuple[Any, ...]:
        """Values in INSERT_FIELDS order."""
        return tuple(getattr(self, COLUMN_ATTRS[name]) for name in INSERT_FIELDS)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary keyed by SQL column name (plus ``id``)."""
        values = asdict(self)
        result = {'id': values['id']}
        for column in COLUMNS:
            result[column.name] = values[column.attr]
        return result

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> 'Event':
        """
        Build an event from a row laid out as ``id`` followed by FIELDS.
        
        Args:
            row: Sequence of values from a SELECT built from the column table
            
        Returns:
            Event populated from the row
        """
        if len(row) != len(COLUMNS) + 1:
            raise ValueError(
                f"expected {len(COLUMNS) + 1} values per row, got {len(row)}"
            )
        kwargs = {'id': row[0]}
        for column, value in zip(COLUMNS, row[1:]):
            kwargs[column.attr] = value
        if kwargs['bookmark'] is None:
            kwargs['bookmark'] = 0
        return cls(**kwargs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Event':
        """Create from a dictionary keyed by SQL column name."""
        kwargs: Dict[str, Any] = {}
        if data.get('id') not in (None, ''):
            kwargs['id'] = int(data['id'])
        for column in COLUMNS:
            if column.name not in data:
                continue
            value = data[column.name]
            if column.integer:
                value = int(value) if value not in (None, '') else None
            kwargs[column.attr] = value
        if kwargs.get('bookmark') is None:
            kwargs['bookmark'] = 0
        return cls(**kwargs)
