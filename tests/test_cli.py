"""
End-to-end tests of the timeline-store command line on SQLite files.
"""

import json
import logging

import pytest

import timeline_cli


@pytest.fixture
def cli(tmp_path):
    db = str(tmp_path / 'case.db')
    config = str(tmp_path / 'config.json')

    def run(*args):
        return timeline_cli.main(['--db', db, '--config', config, '--log-level', 'WARNING', *args])

    yield run

    # Console handlers installed by main() point at this test's captured stderr
    root = logging.getLogger()
    for handler in list(root.handlers):
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)


@pytest.fixture
def events_csv(tmp_path):
    path = tmp_path / 'events.csv'
    path.write_text(
        'datetime,source,host,user,desc,offset\n'
        '2024-03-05 10:15:00,FILE,WKS01,alice,created report.docx,0\n'
        '2024-03-05 11:30:00,REG,WKS01,bob,Run key modified,0\n',
        encoding='utf-8',
    )
    return str(path)


def test_create_import_and_query(cli, events_csv, capsys):
    assert cli('create') == 0
    assert cli('import', events_csv) == 0
    capsys.readouterr()

    assert cli('query', '-f', 'source', '=', 'REG', '--json') == 0
    events = json.loads(capsys.readouterr().out)
    assert [e['desc'] for e in events] == ['Run key modified']

    assert cli('info') == 0
    out = capsys.readouterr().out
    assert 'Events    2' in out
    assert '2024-03-05 10:15:00 .. 2024-03-05 11:30:00' in out


def test_search_and_values(cli, events_csv, capsys):
    cli('create')
    cli('import', events_csv)
    capsys.readouterr()

    assert cli('search', "user = 'alice'") == 0
    assert 'created report.docx' in capsys.readouterr().out

    assert cli('values', 'source') == 0
    out = capsys.readouterr().out
    assert 'FILE' in out and 'REG' in out


def test_notes_and_bookmarks(cli, events_csv, capsys):
    cli('create')
    cli('import', events_csv)
    assert cli('note-add', '2024-03-05 09:00:00', 'Analyst note') == 0
    capsys.readouterr()

    assert cli('bookmark', '-1') == 0
    assert '-1: bookmark=1' in capsys.readouterr().out

    assert cli('notes', '--json') == 0
    notes = json.loads(capsys.readouterr().out)
    assert notes[0]['id'] == -1
    assert notes[0]['bookmark'] == 1

    assert cli('note-delete', '-1') == 0
    cli('notes', '--json')
    assert json.loads(capsys.readouterr().out) == []


def test_export(cli, events_csv, tmp_path):
    cli('create')
    cli('import', events_csv)
    output = tmp_path / 'out.csv'
    assert cli('export', str(output), '-f', 'source', '=', 'FILE') == 0
    lines = output.read_text(encoding='utf-8').splitlines()
    assert len(lines) == 2
    assert lines[0].startswith('datetime,timezone,MACB,')


def test_missing_database_reports_error(cli, capsys):
    assert cli('info') == 1
    assert 'database file not found' in capsys.readouterr().err


def test_invalid_field_reports_error(cli, capsys):
    cli('create')
    assert cli('values', 'nope') == 1
    assert 'invalid field name' in capsys.readouterr().err


def test_failed_command_is_logged(cli, caplog):
    with caplog.at_level(logging.ERROR):
        assert cli('info') == 1
    assert "Command 'info' failed" in caplog.text


def test_config_command(cli, tmp_path, capsys):
    config_path = tmp_path / 'config.json'
    assert cli('config', '--page-size', '250', '--index', 'source', 'host',
               '--pg-host', 'db', '--pg-dbname', 'cases') == 0
    shown = json.loads(capsys.readouterr().out)
    assert shown['database']['page_size'] == 250

    saved = json.loads(config_path.read_text(encoding='utf-8'))
    assert saved['database']['index_fields'] == ['source', 'host']
    assert saved['postgres']['host'] == 'db'
    assert saved['postgres']['dbname'] == 'cases'

    assert cli('config', '--reset', 'database') == 0
    saved = json.loads(config_path.read_text(encoding='utf-8'))
    assert saved['database']['page_size'] == 1000
    assert saved['postgres']['host'] == 'db'


def test_config_logging_persisted_on_request(cli, tmp_path, capsys):
    config_path = tmp_path / 'config.json'
    assert cli('config', '--default-log-level', 'debug') == 0
    assert '--persist-logging' in capsys.readouterr().out
    assert not config_path.exists()

    assert cli('config', '--default-log-level', 'error', '--persist-logging') == 0
    saved = json.loads(config_path.read_text(encoding='utf-8'))
    assert saved['logging']['level'] == 'ERROR'
    assert saved['logging']['persist'] is True


def test_config_rejects_bad_values(cli, capsys):
    assert cli('config', '--page-size', '0') == 1
    assert 'page size must be positive' in capsys.readouterr().err
    assert cli('config', '--default-log-level', 'loud') == 1
    assert 'unknown log level' in capsys.readouterr().err
