"""
Tests for the JSON store configuration.
"""

import json

import pytest

from config import StoreConfig
from models.event import DEFAULT_INDEX_FIELDS


def test_defaults_without_file():
    config = StoreConfig()
    assert config.get_page_size() == 1000
    assert config.get_progress_interval() == 10000
    assert config.get_index_fields() == DEFAULT_INDEX_FIELDS
    assert config.get_postgres_settings()['port'] == '5432'
    assert config.get_log_level() == 'INFO'
    assert config.get_log_file() is None


def test_save_and_reload(tmp_path):
    path = str(tmp_path / 'nested' / 'config.json')
    config = StoreConfig(path)
    config.set_page_size(250)
    config.set_index_fields(['source', 'host'])

    reloaded = StoreConfig(path)
    assert reloaded.get_page_size() == 250
    assert reloaded.get_index_fields() == ['source', 'host']


def test_password_never_written(tmp_path):
    path = tmp_path / 'config.json'
    config = StoreConfig(str(path))
    config.set_postgres_settings(host='db', password='s3cret')
    data = json.loads(path.read_text(encoding='utf-8'))
    assert data['postgres']['host'] == 'db'
    assert 'password' not in data['postgres']


def test_password_in_file_is_ignored(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({'postgres': {'user': 'analyst', 'password': 'x'}}), encoding='utf-8')
    settings = StoreConfig(str(path)).get_postgres_settings()
    assert settings['user'] == 'analyst'
    assert 'password' not in settings


def test_invalid_json_falls_back_to_defaults(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text('{not json', encoding='utf-8')
    assert StoreConfig(str(path)).get_page_size() == 1000


def test_unrelated_sections_preserved(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({'viewer': {'theme': 'dark'}}), encoding='utf-8')
    StoreConfig(str(path)).set_page_size(10)
    data = json.loads(path.read_text(encoding='utf-8'))
    assert data['viewer'] == {'theme': 'dark'}
    assert data['database']['page_size'] == 10


def test_invalid_settings_rejected():
    config = StoreConfig()
    with pytest.raises(ValueError):
        config.set_page_size(0)
    with pytest.raises(ValueError):
        config.set_index_fields(['source', 'bogus'])


def test_unknown_index_fields_in_file_dropped(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({'database': {'index_fields': ['host', 'bogus']}}), encoding='utf-8')
    assert StoreConfig(str(path)).get_index_fields() == ['host']


def test_logging_persisted_only_on_request(tmp_path):
    path = tmp_path / 'config.json'
    config = StoreConfig(str(path))
    config.set_logging(level='debug')
    assert config.get_log_level() == 'DEBUG'
    assert not path.exists()

    config.set_logging(persist=True)
    assert json.loads(path.read_text(encoding='utf-8'))['logging']['level'] == 'DEBUG'


def test_reset_to_defaults(tmp_path):
    config = StoreConfig(str(tmp_path / 'config.json'))
    config.set_page_size(10)
    config.reset_to_defaults('database')
    assert config.get_page_size() == 1000
    with pytest.raises(ValueError):
        config.reset_to_defaults('nope')
