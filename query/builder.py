"""
Query builder for the Timeline Store.
Renders a list of predicates, ordering and pagination into SQL plus a
positional argument list through the Dialect the query was built with.
"""

import logging
from typing import Any, List, Optional, Tuple, Union

from dialects.base import Dialect
from models.event import EVENT_TABLE, is_valid_field

from .predicate import Logic, Predicate, combine, parse_logic

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


class Query:
    """
    Filtered, ordered and paginated scan of the event table.
    
    Attributes:
        dialect: Dialect used for placeholders and column quoting
        predicates: Top-level predicates, joined with ``logic``
        logic: Logic applied across the top-level predicates
        page_size: Rows per page; 0 disables LIMIT/OFFSET
        page: 1-based page number
    """

    def __init__(self, dialect: Dialect, page_size: int = DEFAULT_PAGE_SIZE):
        self.dialect = dialect
        self.predicates: List[Predicate] = []
        self.logic = Logic.AND
        self.page_size = page_size
        self.page = 1
        self._order_by = ''

    @property
    def order_column(self) -> str:
        return self._order_by

    def add_predicate(self, predicate: Optional[Predicate]) -> None:
        if predicate is not None:
            self.predicates.append(predicate)

    def remove_predicate(self, predicate: Predicate) -> bool:
        """Remove this exact predicate object. Returns whether it was found."""
        for i, existing in enumerate(self.predicates):
            if existing is predicate:
                del self.predicates[i]
                return True
        return False

    def clear_predicates(self) -> None:
        self.predicates = []

    def set_logic(self, logic: Union[str, Logic]) -> None:
        self.logic = parse_logic(logic)

    def order_by(self, column: str) -> None:
        """
        Set the ORDER BY column; an empty string clears ordering.
        
        Raises:
            ValueError: If the column is neither a known field nor the id column.
                The previous ordering is kept.
        """
        if column and not (is_valid_field(column) or column == self.dialect.id_column()):
            raise ValueError(f"invalid order by field: {column}")
        self._order_by = column

    def set_page(self, page: int) -> None:
        """Select a 1-based page; values below 1 are ignored."""
        if page < 1:
            logger.debug(f"Ignoring invalid page number {page}")
            return
        self.page = page

    def where_clause(self) -> Tuple[str, List[Any]]:
        """Rendered predicate tree without the WHERE keyword."""
        tree = combine(self.predicates, self.logic)
        if tree is None:
            return '', []
        return tree.where_clause(self.dialect, 1)

    def _tail(self) -> str:
        sql = ''
        if self._order_by:
            sql += f" ORDER BY {self.dialect.quote_column(self._order_by)}"
        if self.page_size > 0:
            offset = self.page_size * (self.page - 1)
            sql += f" LIMIT {self.page_size} OFFSET {offset}"
        return sql

    def build(self) -> Tuple[str, List[Any]]:
        """SQL and arguments for one page of matching events."""
        where, args = self.where_clause()
        sql = f"SELECT {self.dialect.select_columns()} FROM {EVENT_TABLE}"
        if where:
            sql += f" WHERE {where}"
        return sql + self._tail(), args

    def build_count(self) -> Tuple[str, List[Any]]:
        """SQL and arguments counting every matching event."""
        where, args = self.where_clause()
        sql = f"SELECT COUNT({self.dialect.id_column()}) FROM {EVENT_TABLE}"
        if where:
            sql += f" WHERE {where}"
        return sql, args


class RawQuery(Query):
    """
    Query whose WHERE clause is a caller-supplied fragment used verbatim.
    
    The fragment is neither validated nor parameterized. It exists for
    user-typed advanced searches; apply ``quote_postgres_reserved_words``
    beforehand when targeting PostgreSQL.
    """

    def __init__(self, dialect: Dialect, where: str, page_size: int = DEFAULT_PAGE_SIZE):
        super().__init__(dialect, page_size)
        self.raw_where = where.strip()

    def where_clause(self) -> Tuple[str, List[Any]]:
        return self.raw_where, []
