"""
Tests for the predicate algebra, the query builder and reserved-word quoting.
"""

import pytest

from dialects import PostgresDialect, SQLiteDialect
from query import (
    CompositePredicate,
    Logic,
    Operator,
    Query,
    RawQuery,
    combine,
    date_range,
    parse_logic,
    parse_operator,
    quote_postgres_reserved_words,
    simple,
)


@pytest.fixture
def sqlite():
    return SQLiteDialect()


@pytest.fixture
def pg():
    return PostgresDialect()


class TestPredicates:

    def test_simple_equal(self, sqlite):
        predicate = simple('source', '=', 'FILE')
        assert predicate.where_clause(sqlite) == ('(source = ?)', ['FILE'])

    def test_like_wraps_value(self, sqlite):
        predicate = simple('desc', Operator.LIKE, 'notepad')
        assert predicate.where_clause(sqlite) == ('(desc LIKE ?)', ['%notepad%'])

    def test_not_like_wraps_value(self, pg):
        predicate = simple('user', 'not like', 'adm')
        assert predicate.where_clause(pg) == ('("user" NOT LIKE $1)', ['%adm%'])

    def test_unknown_field_rejected(self):
        assert simple('nope', '=', 'x') is None
        assert simple('source; DROP TABLE log2timeline', '=', 'x') is None

    def test_unknown_operator_rejected(self):
        assert simple('source', '<>', 'x') is None

    def test_date_range(self, sqlite, pg):
        predicate = date_range('2024-01-01 00:00:00', '2024-01-31 23:59:59')
        sql, args = predicate.where_clause(sqlite)
        assert sql == '(datetime BETWEEN datetime(?) AND datetime(?))'
        assert args == ['2024-01-01 00:00:00', '2024-01-31 23:59:59']
        assert predicate.where_clause(pg, 4)[0] == '(datetime BETWEEN $4 AND $5)'

    def test_combine_and_or(self, sqlite):
        p1 = simple('source', '=', 'FILE')
        p2 = simple('host', '=', 'WKS01')
        assert combine([p1, p2]).where_clause(sqlite) == (
            '((source = ?) AND (host = ?))', ['FILE', 'WKS01']
        )
        assert combine([p1, p2], 'OR').where_clause(sqlite)[0] == '((source = ?) OR (host = ?))'

    def test_combine_three_is_left_associative(self, sqlite):
        p1 = simple('source', '=', 'FILE')
        p2 = simple('host', '=', 'WKS01')
        p3 = simple('user', '=', 'alice')
        sql, args = combine([p1, p2, p3]).where_clause(sqlite)
        assert sql == '(((source = ?) AND (host = ?)) AND (user = ?))'
        assert args == ['FILE', 'WKS01', 'alice']

    def test_combine_degenerate(self, sqlite):
        p1 = simple('source', '=', 'FILE')
        assert combine([]) is None
        assert combine([None, None]) is None
        assert combine([None, p1]) is p1

    def test_composite_with_missing_side(self, sqlite):
        p1 = simple('source', '=', 'FILE')
        assert CompositePredicate(p1, None).where_clause(sqlite) == ('(source = ?)', ['FILE'])
        assert CompositePredicate(None, None).where_clause(sqlite) == ('', [])

    def test_postgres_numbering_runs_through_tree(self, pg):
        tree = combine([
            simple('source', '=', 'FILE'),
            date_range('2024-01-01 00:00:00', '2024-12-31 23:59:59'),
            simple('desc', 'LIKE', 'x'),
        ])
        sql, args = tree.where_clause(pg)
        assert sql == '(((source = $1) AND (datetime BETWEEN $2 AND $3)) AND ("desc" LIKE $4))'
        assert len(args) == 4

    def test_fields(self):
        tree = combine([simple('source', '=', 'FILE'), date_range('a', 'b')], Logic.OR)
        assert tree.fields() == {'source', 'datetime'}

    def test_parse_helpers(self):
        assert parse_operator(' like ') is Operator.LIKE
        assert parse_operator('>=') is Operator.GREATER_OR_EQUAL
        assert parse_operator('~') is None
        assert parse_logic('or') is Logic.OR
        with pytest.raises(ValueError):
            parse_logic('XOR')


class TestQuery:

    def test_build_without_predicates(self, sqlite):
        sql, args = Query(sqlite).build()
        assert sql.startswith('SELECT rowid, datetime, timezone, MACB, ')
        assert sql.endswith(' FROM log2timeline LIMIT 1000 OFFSET 0')
        assert 'WHERE' not in sql
        assert args == []

    def test_pagination(self, sqlite):
        q = Query(sqlite, page_size=50)
        q.set_page(3)
        assert q.build()[0].endswith(' LIMIT 50 OFFSET 100')

    def test_set_page_ignores_invalid(self, sqlite):
        q = Query(sqlite)
        q.set_page(2)
        q.set_page(0)
        q.set_page(-4)
        assert q.page == 2

    def test_page_size_zero_disables_limit(self, sqlite):
        assert 'LIMIT' not in Query(sqlite, page_size=0).build()[0]

    def test_order_by(self, pg):
        q = Query(pg)
        q.order_by('desc')
        assert ' ORDER BY "desc" LIMIT' in q.build()[0]
        q.order_by('id')
        assert q.order_column == 'id'

    def test_order_by_invalid_keeps_previous(self, sqlite):
        q = Query(sqlite)
        q.order_by('datetime')
        with pytest.raises(ValueError):
            q.order_by('datetime; DROP TABLE log2timeline')
        assert q.order_column == 'datetime'
        q.order_by('')
        assert 'ORDER BY' not in q.build()[0]

    def test_where_and_count(self, sqlite):
        q = Query(sqlite)
        q.add_predicate(simple('source', '=', 'FILE'))
        q.add_predicate(simple('host', '=', 'WKS01'))
        q.add_predicate(None)
        q.order_by('datetime')

        sql, args = q.build()
        assert ' WHERE ((source = ?) AND (host = ?)) ORDER BY datetime LIMIT 1000 OFFSET 0' in sql
        assert args == ['FILE', 'WKS01']

        count_sql, count_args = q.build_count()
        assert count_sql == 'SELECT COUNT(rowid) FROM log2timeline WHERE ((source = ?) AND (host = ?))'
        assert count_args == ['FILE', 'WKS01']

    def test_logic_or(self, sqlite):
        q = Query(sqlite)
        q.set_logic('OR')
        q.add_predicate(simple('source', '=', 'FILE'))
        q.add_predicate(simple('source', '=', 'REG'))
        assert q.where_clause()[0] == '((source = ?) OR (source = ?))'

    def test_remove_predicate_by_identity(self, sqlite):
        q = Query(sqlite)
        p1 = simple('source', '=', 'FILE')
        p2 = simple('source', '=', 'FILE')
        q.add_predicate(p1)
        q.add_predicate(p2)
        assert q.remove_predicate(p2) is True
        assert q.predicates == [p1] and q.predicates[0] is p1
        assert q.remove_predicate(p2) is False
        q.clear_predicates()
        assert q.where_clause() == ('', [])

    def test_raw_query(self, sqlite):
        q = RawQuery(sqlite, "  source = 'FILE'  ", page_size=10)
        q.order_by('datetime')
        q.set_page(2)
        sql, args = q.build()
        assert sql.endswith(" WHERE source = 'FILE' ORDER BY datetime LIMIT 10 OFFSET 10")
        assert args == []
        assert q.build_count() == ("SELECT COUNT(rowid) FROM log2timeline WHERE source = 'FILE'", [])


class TestReservedWords:

    def test_quotes_outside_literals(self):
        where = "desc LIKE '%user desc%' AND user = 'bob' OR offset > 5"
        assert quote_postgres_reserved_words(where) == \
            "\"desc\" LIKE '%user desc%' AND \"user\" = 'bob' OR \"offset\" > 5"

    def test_case_insensitive_and_word_bounded(self):
        assert quote_postgres_reserved_words("DESC = 'x' AND username = 'y'") == \
            "\"desc\" = 'x' AND username = 'y'"
        assert quote_postgres_reserved_words("user_sid = 'S-1'") == "user_sid = 'S-1'"

    def test_already_quoted_left_alone(self):
        assert quote_postgres_reserved_words('"desc" = \'a\'') == '"desc" = \'a\''
