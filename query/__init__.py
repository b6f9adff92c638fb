"""
Predicate algebra and query builder for the timeline store.
"""

from .predicate import (
    Operator,
    Logic,
    Predicate,
    SimplePredicate,
    DateRangePredicate,
    CompositePredicate,
    simple,
    date_range,
    combine,
    parse_operator,
    parse_logic
)
from .builder import Query, RawQuery, DEFAULT_PAGE_SIZE
from .reserved_words import quote_postgres_reserved_words

__all__ = [
    'Operator',
    'Logic',
    'Predicate',
    'SimplePredicate',
    'DateRangePredicate',
    'CompositePredicate',
    'simple',
    'date_range',
    'combine',
    'parse_operator',
    'parse_logic',
    'Query',
    'RawQuery',
    'DEFAULT_PAGE_SIZE',
    'quote_postgres_reserved_words'
]
