"""
Index Manager for the timeline event table.
Creates, drops and lists the per-column ``<field>_idx`` indexes.
"""

import logging
from typing import Any, List, Sequence

from dialects.base import Dialect
from models.event import EVENT_TABLE, FIELDS, index_name, validate_field


class IndexManager:
    """
    Manages per-column indexes on the event table.

    Methods take a DB-API cursor so index changes join the caller's
    transaction.
    """

    def __init__(self, dialect: Dialect):
        """
        Args:
            dialect: Dialect used to render index DDL
        """
        self.dialect = dialect
        self.logger = logging.getLogger(self.__class__.__name__)

    def create_indexes(self, cursor: Any, fields: Sequence[str]) -> List[str]:
        """
        Create an index for each field if it does not already exist.

        Returns:
            List of index names created or verified

        Raises:
            InvalidFieldError: If a field is not a known column
        """
        names = []
        for field in fields:
            validate_field(field)
            name = index_name(field)
            cursor.execute(self.dialect.create_index_sql(name, EVENT_TABLE, field))
            self.logger.debug(f"Ensured index: {name}")
            names.append(name)
        return names

    def drop_indexes(self, cursor: Any, fields: Sequence[str] = FIELDS) -> None:
        """Drop the index of every listed field, ignoring ones that are absent."""
        for field in fields:
            cursor.execute(self.dialect.drop_index_sql(index_name(field)))

    def rebuild(self, cursor: Any, fields: Sequence[str]) -> List[str]:
        """
        Drop every possible per-column index, then index ``fields``.

        Raises:
            InvalidFieldError: Before anything is dropped, if a field is unknown
        """
        for field in fields:
            validate_field(field)
        self.drop_indexes(cursor)
        names = self.create_indexes(cursor, fields)
        self.logger.info(f"Rebuilt indexes: {', '.join(names) or 'none'}")
        return names

    def list_indexes(self, cursor: Any) -> List[str]:
        """Names of the per-column indexes currently on the event table."""
        cursor.execute(self.dialect.list_indexes_sql())
        return [row[0] for row in cursor.fetchall() if str(row[0]).endswith('_idx')]
