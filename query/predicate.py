"""
Predicate algebra for building injection-safe WHERE clauses.

Predicates form a closed set of node types: a simple comparison against a
whitelisted column, an inclusive date range, and a binary composite joining
two predicates with AND/OR. Rendering is delegated to the active Dialect and
threads a running placeholder index so the argument list always lines up
with the placeholder numbering.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional, Set, Tuple, Union

from dialects.base import Dialect
from models.event import is_valid_field

logger = logging.getLogger(__name__)


class Operator(str, Enum):
    EQUAL = '='
    NOT_EQUAL = '!='
    LIKE = 'LIKE'
    NOT_LIKE = 'NOT LIKE'
    GREATER_OR_EQUAL = '>='
    LESS_OR_EQUAL = '<='


class Logic(str, Enum):
    AND = 'AND'
    OR = 'OR'


# (sql, args, next placeholder index)
Rendered = Tuple[str, List[Any], int]


def parse_operator(value: Union[str, Operator]) -> Optional[Operator]:
    """Map an operator string to an Operator, or None if unsupported."""
    if isinstance(value, Operator):
        return value
    try:
        return Operator(str(value).strip().upper())
    except ValueError:
        return None


def parse_logic(value: Union[str, Logic]) -> Logic:
    """
    Map a logic string to a Logic value.
    
    Raises:
        ValueError: If the value is neither AND nor OR
    """
    if isinstance(value, Logic):
        return value
    return Logic(str(value).strip().upper())


class Predicate:
    """Base class for predicate nodes. Compared by identity."""

    def render(self, dialect: Dialect, index: int = 1) -> Rendered:
        raise NotImplementedError

    def where_clause(self, dialect: Dialect, index: int = 1) -> Tuple[str, List[Any]]:
        sql, args, _ = self.render(dialect, index)
        return sql, args

    def fields(self) -> Set[str]:
        """Columns referenced anywhere in this predicate."""
        return set()


@dataclass(eq=False)
class SimplePredicate(Predicate):
    field: str
    operator: Operator
    value: Any

    def render(self, dialect: Dialect, index: int = 1) -> Rendered:
        sql = (
            f"({dialect.quote_column(self.field)} {self.operator.value} "
            f"{dialect.placeholder(index)})"
        )
        return sql, [self.value], index + 1

    def fields(self) -> Set[str]:
        return {self.field}


@dataclass(eq=False)
class DateRangePredicate(Predicate):
    start: str
    end: str

    def render(self, dialect: Dialect, index: int = 1) -> Rendered:
        return dialect.date_between_sql(index, index + 1), [self.start, self.end], index + 2

    def fields(self) -> Set[str]:
        return {'datetime'}


@dataclass(eq=False)
class CompositePredicate(Predicate):
    left: Optional[Predicate]
    right: Optional[Predicate]
    logic: Logic = Logic.AND

    def render(self, dialect: Dialect, index: int = 1) -> Rendered:
        left_sql, left_args, index = _render_optional(self.left, dialect, index)
        right_sql, right_args, index = _render_optional(self.right, dialect, index)

        if not left_sql:
            return right_sql, right_args, index
        if not right_sql:
            return left_sql, left_args, index
        return f"({left_sql} {self.logic.value} {right_sql})", left_args + right_args, index

    def fields(self) -> Set[str]:
        result: Set[str] = set()
        for child in (self.left, self.right):
            if child is not None:
                result |= child.fields()
        return result


def _render_optional(predicate: Optional[Predicate], dialect: Dialect, index: int) -> Rendered:
    if predicate is None:
        return '', [], index
    return predicate.render(dialect, index)


def simple(field: str, operator: Union[str, Operator], value: Any) -> Optional[SimplePredicate]:
    """
    Build a comparison predicate.
    
    LIKE and NOT LIKE values are wrapped in '%' wildcards; other operators use
    the value verbatim.
    
    Args:
        field: Column name, must be in the known-column whitelist
        operator: One of =, !=, LIKE, NOT LIKE, >=, <=
        value: Comparison value
        
    Returns:
        The predicate, or None if the field or operator is not allowed
    """
    if not is_valid_field(field):
        logger.debug(f"Rejected predicate on unknown field: {field}")
        return None
    op = parse_operator(operator)
    if op is None:
        logger.debug(f"Rejected predicate with unsupported operator: {operator}")
        return None
    if op in (Operator.LIKE, Operator.NOT_LIKE):
        value = f"%{value}%"
    return SimplePredicate(field, op, value)


def date_range(start: str, end: str) -> DateRangePredicate:
    """Inclusive BETWEEN predicate on the datetime column."""
    return DateRangePredicate(start, end)


def combine(predicates: Iterable[Optional[Predicate]],
            logic: Union[str, Logic] = Logic.AND) -> Optional[Predicate]:
    """
    Fold predicates into a left-associative chain sharing one logic operator.
    
    None entries are dropped first. An empty list gives None and a single
    predicate is returned unchanged, so [p1, p2, p3] becomes
    ((p1 LOGIC p2) LOGIC p3).
    """
    logic = parse_logic(logic)
    present = [p for p in predicates if p is not None]
    if not present:
        return None
    result = present[0]
    for predicate in present[1:]:
        result = CompositePredicate(result, predicate, logic)
    return result
