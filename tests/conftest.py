"""
Shared fixtures for the timeline store tests.
"""

import pytest

from models.event import Event
from storage.sqlite_store import SQLiteStore
from storage.timeline_service import TimelineService


def make_event(**overrides):
    values = dict(
        datetime='2024-03-05 10:15:00',
        timezone='UTC',
        macb='M...',
        source='FILE',
        sourcetype='NTFS $MFT',
        type='Modification Time',
        user='alice',
        host='WKS01',
        desc='C:/Windows/notepad.exe',
        filename='notepad.exe',
        inode='1234',
        notes='',
        format='mft',
        extra='',
        reportnotes='',
        inreport='',
        tag='',
        color='',
        offset=0,
        store_number=0,
        store_index=0,
        vss_store_number=0,
        url='',
        record_number='1',
        event_identifier='',
        event_type='',
        source_name='',
        user_sid='',
        computer_name='WKS01',
    )
    values.update(overrides)
    return Event(**values)


@pytest.fixture
def event_factory():
    return make_event


@pytest.fixture
def sample_events():
    return [
        make_event(datetime='2024-03-05 10:15:00', source='FILE', desc='created report.docx'),
        make_event(datetime='2024-03-05 11:30:00', source='FILE', user='bob', desc='opened notepad'),
        make_event(datetime='2024-03-05 12:45:00', source='REG', sourcetype='Registry Key',
                   desc='Run key modified', tag='persistence'),
    ]


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / 'timeline.db')


@pytest.fixture
def store(db_path):
    store = SQLiteStore.create(db_path)
    yield store
    store.close()


@pytest.fixture
def seeded_store(store, sample_events):
    store.insert_events(sample_events)
    return store


@pytest.fixture
def service(seeded_store):
    service = TimelineService(seeded_store)
    yield service
    service.close()
