"""
Storage layer for the timeline store.
Provides the Store contract, the SQLite and PostgreSQL backends, the store
factory and the request-level TimelineService.
"""

from .store import (
    Store,
    StoreError,
    DatabaseConnectionError,
    SchemaError,
    NoDatabaseOpenError,
    BatchInsertError
)
from .sql_store import SQLStore, split_tags
from .sqlite_store import SQLiteStore
from .postgres_store import (
    PostgresStore,
    pg_sanitize_string,
    pg_sanitize_datetime,
    sanitize_event_row
)
from .histogram import choose_bucket_format, HOURLY, DAILY, MONTHLY
from .index_manager import IndexManager
from .factory import open_store, create_store, DRIVERS
from .timeline_service import (
    TimelineService,
    FilterSpec,
    QueryRequest,
    QueryResponse,
    TransferResult,
    split_ids
)

__all__ = [
    'Store',
    'StoreError',
    'DatabaseConnectionError',
    'SchemaError',
    'NoDatabaseOpenError',
    'BatchInsertError',
    'SQLStore',
    'split_tags',
    'SQLiteStore',
    'PostgresStore',
    'pg_sanitize_string',
    'pg_sanitize_datetime',
    'sanitize_event_row',
    'choose_bucket_format',
    'HOURLY',
    'DAILY',
    'MONTHLY',
    'IndexManager',
    'open_store',
    'create_store',
    'DRIVERS',
    'TimelineService',
    'FilterSpec',
    'QueryRequest',
    'QueryResponse',
    'TransferResult',
    'split_ids'
]
