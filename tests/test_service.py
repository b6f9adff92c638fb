"""
Tests for the request-level TimelineService.
"""

import pytest

from storage import BatchInsertError, NoDatabaseOpenError, SQLiteStore, StoreError
from storage.timeline_service import (
    FilterSpec,
    QueryRequest,
    TimelineService,
    TransferResult,
    build_request_predicates,
    split_ids,
)


def test_split_ids():
    assert split_ids([3, -2, 0, 7, -9]) == ([3, 7], [2, 9])
    assert split_ids([]) == ([], [])


def test_no_database_open():
    service = TimelineService()
    assert service.driver == ''
    with pytest.raises(NoDatabaseOpenError):
        service.get_db_info()


def test_db_info(service):
    info = service.get_db_info()
    assert info.driver == 'sqlite'
    assert info.event_count == 3
    assert info.min_date == '2024-03-05 10:15:00'
    assert info.max_date == '2024-03-05 12:45:00'


def test_query_events_with_filters(service):
    request = QueryRequest(filters=[FilterSpec('source', '=', 'FILE')], order_by='datetime')
    response = service.query_events(request)
    assert response.total_count == 2
    assert [e.desc for e in response.events] == ['created report.docx', 'opened notepad']


def test_query_events_or_logic(service):
    request = QueryRequest(
        filters=[FilterSpec('user', '=', 'bob'), FilterSpec('source', '=', 'REG')],
        logic='OR',
    )
    assert service.query_events(request).total_count == 2


def test_query_events_partial_dates(service):
    request = QueryRequest(filters=[
        FilterSpec('datetime', '>=', '2024-03-05'),
        FilterSpec('datetime', '<=', '2024-03'),
    ])
    assert service.query_events(request).total_count == 3

    request = QueryRequest(filters=[FilterSpec('datetime', '<=', '2024-03-04')])
    assert service.query_events(request).total_count == 0


def test_datetime_like_keeps_partial_value(service):
    request = QueryRequest(filters=[FilterSpec('datetime', 'LIKE', '2024-03-05 11')])
    predicates = build_request_predicates(request)
    assert predicates[0].value == '%2024-03-05 11%'
    assert service.query_events(request).total_count == 1

    request = QueryRequest(filters=[FilterSpec('datetime', 'NOT LIKE', '2024-03')])
    assert service.query_events(request).total_count == 0


def test_unknown_operators_and_fields_skipped(service):
    request = QueryRequest(filters=[
        FilterSpec('source', 'BETWEEN', 'FILE'),
        FilterSpec('bogus', '=', 'x'),
    ])
    assert build_request_predicates(request) == []
    assert service.query_events(request).total_count == 3


def test_search_text_and_bookmarks(service):
    response = service.query_events(QueryRequest(search_text='report.docx'))
    assert response.total_count == 1

    event_id = response.events[0].id
    service.toggle_bookmark(event_id)
    bookmarked = service.query_events(QueryRequest(bookmark_only=True))
    assert [e.id for e in bookmarked.events] == [event_id]


def test_pagination(service):
    response = service.query_events(QueryRequest(order_by='datetime', page=2, page_size=2))
    assert response.total_count == 3
    assert [e.desc for e in response.events] == ['Run key modified']


def test_advanced_search(service):
    response = service.advanced_search("source = 'REG' OR user = 'bob'")
    assert response.total_count == 2
    assert [e.desc for e in response.events] == ['opened notepad', 'Run key modified']


def test_advanced_search_bad_sql(service):
    with pytest.raises(StoreError):
        service.advanced_search('source = = ')


def test_histogram_where(service):
    where, args = service.histogram_where(QueryRequest())
    assert where == "WHERE datetime > '1970-01-01' AND datetime < '2100-01-01'"
    assert args == []

    request = QueryRequest(filters=[FilterSpec('desc', 'LIKE', 'note')])
    where, args = service.histogram_where(request)
    assert where.endswith(" AND ((desc LIKE ?))")
    assert args == ['%note%']


def test_histogram(service):
    buckets = service.get_timeline_histogram(
        QueryRequest(filters=[FilterSpec('source', '=', 'FILE')])
    )
    assert [(b.timestamp, b.count) for b in buckets] == [
        ('2024-03-05 10:00:00', 1),
        ('2024-03-05 11:00:00', 1),
    ]


def test_update_event_fields_rejects_notes(service):
    with pytest.raises(ValueError):
        service.update_event_fields(-1, {'color': 'RED'})


def test_notes_use_negative_ids(service):
    grid_id = service.add_examiner_note('2024-03-05 09:00:00', 'Suspect logged on')
    assert grid_id < 0

    notes = service.get_examiner_notes()
    assert [n.id for n in notes] == [grid_id]
    assert notes[0].desc == 'Suspect logged on'

    assert service.toggle_bookmark(grid_id) == 1
    service.update_examiner_note_color(grid_id, 'RED')
    assert service.get_examiner_notes()[0].color == 'RED'

    with pytest.raises(ValueError):
        service.delete_examiner_note(abs(grid_id))
    service.delete_examiner_note(grid_id)
    assert service.get_examiner_notes() == []


def test_bulk_operations_route_by_sign(service):
    event_ids = [e.id for e in service.store.query_events(order_by='datetime')]
    note_id = service.add_examiner_note('2024-03-05 09:00:00', 'note')

    service.bulk_update_color(event_ids[:1] + [note_id, 0], 'BLUE')
    service.bulk_set_bookmark([event_ids[1], note_id], 1)
    service.bulk_add_tag(event_ids[:1] + [note_id], 'review')

    events = service.store.query_events(order_by='datetime')
    assert [e.color for e in events] == ['BLUE', '', '']
    assert [e.bookmark for e in events] == [0, 1, 0]
    assert events[0].tag == 'review'

    note = service.get_examiner_notes()[0]
    assert note.color == 'BLUE'
    assert note.bookmark == 1
    assert note.tag == ''


def test_saved_queries(service):
    service.save_query('registry', '{"source": "REG"}')
    with pytest.raises(ValueError):
        service.save_query('registry', '{}')
    with pytest.raises(ValueError):
        service.save_query('  ', '{}')
    assert [q.name for q in service.get_saved_queries()] == ['registry']
    service.delete_saved_query('registry')
    assert service.get_saved_queries() == []


def test_distinct_values_and_tags(service):
    assert service.get_distinct_values('source') == {'FILE': 2, 'REG': 1}
    assert service.get_tags() == ['persistence']


def test_export_and_import_csv(service, tmp_path):
    csv_path = str(tmp_path / 'export.csv')
    request = QueryRequest(filters=[FilterSpec('source', '=', 'FILE')], page_size=1)
    assert service.export_csv(csv_path, request) == 2
    assert request.page_size == 1

    target = TimelineService(SQLiteStore.create(str(tmp_path / 'copy.db')))
    try:
        assert target.import_csv(csv_path) == 2
        events = target.store.query_events(order_by='datetime')
        assert [e.desc for e in events] == ['created report.docx', 'opened notepad']
        assert events[0].macb == 'M...'
        assert events[0].offset == 0
        assert target.store.get_metadata('source') == {'FILE': 2}
    finally:
        target.close()


def test_import_csv_rejects_unknown_header(service, tmp_path):
    csv_path = tmp_path / 'bad.csv'
    csv_path.write_text('a,b\n1,2\n', encoding='utf-8')
    with pytest.raises(ValueError):
        service.import_csv(str(csv_path))


def test_import_csv_bad_integer_rolls_back(service, tmp_path):
    csv_path = tmp_path / 'bad.csv'
    csv_path.write_text('desc,offset\nok,1\nbad,abc\n', encoding='utf-8')
    with pytest.raises(BatchInsertError) as info:
        service.import_csv(str(csv_path))
    assert 'line 3' in str(info.value)
    assert info.value.inserted == 1
    assert isinstance(info.value.__cause__, ValueError)
    assert service.store.count_events() == 3


def test_push_requires_sqlite_source():
    with pytest.raises(NoDatabaseOpenError):
        TimelineService().push_to_postgres('postgres://localhost/cases')


def test_push_refuses_empty_database(store):
    service = TimelineService(store)
    with pytest.raises(StoreError):
        service.push_to_postgres('postgres://localhost/cases')


def test_transfer_result_message():
    assert TransferResult(10, 0).message() == 'Pushed 10 events to PostgreSQL'
    assert TransferResult(10, 2).message() == 'Pushed 10 events to PostgreSQL (2 examiner notes)'


def test_attach_replaces_store(service, tmp_path):
    old = service.store
    info = service.attach(SQLiteStore.create(str(tmp_path / 'other.db')))
    assert old.conn is None
    assert info.event_count == 0
