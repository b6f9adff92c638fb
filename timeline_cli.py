#!/usr/bin/env python3
"""
timeline_cli.py

Command-line front end for the timeline store.
- Works on a SQLite file (--db) or a PostgreSQL database (--pg)
- Filtered, full-text and advanced (raw WHERE) search
- Histogram, metadata refresh, index rebuild, bulk edits, examiner notes
- CSV export/import and transfer of a SQLite database into PostgreSQL
- Stored preferences in a JSON configuration file
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

import colorama
from colorama import Fore, Style
from tqdm import tqdm

from config.store_config import StoreConfig
from models.event import Event
from storage.factory import create_store, open_store
from storage.store import StoreError
from storage.timeline_service import FilterSpec, QueryRequest, TimelineService
from utils.conn_utils import build_postgres_conninfo, mask_conn_str
from utils.error_handler import configure_logging, level_from_name

COLOR_SUCCESS = Fore.GREEN
COLOR_WARNING = Fore.YELLOW
COLOR_ERROR = Fore.RED
COLOR_INFO = Fore.CYAN
COLOR_HEADER = Fore.MAGENTA + Style.BRIGHT
COLOR_RESET = Style.RESET_ALL

DEFAULT_CONFIG_FILE = 'timeline_store.json'

GRID_COLUMNS = ['datetime', 'MACB', 'source', 'sourcetype', 'host', 'user', 'desc']

logger = logging.getLogger('timeline_cli')


def _print_events(events: List[Event], as_json: bool) -> None:
    if as_json:
        print(json.dumps([event.to_dict() for event in events], indent=2, default=str))
        return
    for event in events:
        flag = '*' if event.bookmark else ' '
        values = [str(event.get(name) or '') for name in GRID_COLUMNS]
        print(f"{flag}{COLOR_INFO}{event.id:>8}{COLOR_RESET} | " + ' | '.join(values))


def _request_from_args(args: argparse.Namespace) -> QueryRequest:
    filters = [FilterSpec(field, op, value) for field, op, value in (args.filter or [])]
    return QueryRequest(
        filters=filters,
        logic=args.logic,
        search_text=args.search_text or '',
        bookmark_only=args.bookmarked,
        order_by=getattr(args, 'order_by', '') or '',
        page=getattr(args, 'page', 1),
        page_size=getattr(args, 'page_size', 0),
    )


def _open_service(args: argparse.Namespace, config: StoreConfig) -> TimelineService:
    if args.pg:
        store = open_store('postgres', args.pg, config)
    elif args.db:
        store = open_store('sqlite', args.db, config)
    else:
        raise StoreError("no database given; use --db PATH or --pg CONNINFO")
    return TimelineService(store)


def _progress_bar(desc: str, total: Optional[int] = None) -> tqdm:
    return tqdm(total=total, unit='events', desc=desc, unit_scale=True, file=sys.stderr)


# Command handlers

def cmd_create(args, config):
    if args.pg:
        store = create_store('postgres', args.pg, args.index or None, config)
    else:
        store = create_store('sqlite', args.db, args.index or None, config)
    with store:
        print(f"{COLOR_SUCCESS}Created timeline database: {store.path}{COLOR_RESET}")


def cmd_config(args, config):
    if args.reset:
        config.reset_to_defaults(None if args.reset == 'all' else args.reset)
    if args.page_size is not None:
        config.set_page_size(args.page_size)
    if args.index:
        config.set_index_fields(args.index)

    postgres = {
        key: value for key, value in (
            ('host', args.pg_host),
            ('port', args.pg_port),
            ('dbname', args.pg_dbname),
            ('user', args.pg_user),
            ('sslmode', args.pg_sslmode),
        ) if value
    }
    if postgres:
        config.set_postgres_settings(**postgres)

    if args.default_log_level or args.default_log_file or args.persist_logging is not None:
        if args.default_log_level:
            level_from_name(args.default_log_level)
        config.set_logging(args.default_log_level, args.default_log_file, args.persist_logging)
        if not config.get_log_persist():
            print(f"{COLOR_WARNING}Logging preferences are saved only with --persist-logging{COLOR_RESET}")

    print(json.dumps(config.config, indent=2))


def cmd_info(service, args):
    info = service.get_db_info()
    print(f"{COLOR_HEADER}Database{COLOR_RESET}  {info.path} ({info.driver})")
    print(f"Events    {info.event_count}")
    print(f"Range     {info.min_date or '-'} .. {info.max_date or '-'}")
    print(f"Indexes   {', '.join(service.store.get_index_names()) or '-'}")


def cmd_import(service, args):
    with _progress_bar('Importing') as pbar:
        state = {'last': 0}

        def on_progress(count):
            pbar.update(count - state['last'])
            state['last'] = count

        inserted = service.import_csv(args.csv, on_progress)
        pbar.update(inserted - state['last'])
    print(f"{COLOR_SUCCESS}Imported {inserted} events from {args.csv}{COLOR_RESET}")


def cmd_query(service, args):
    response = service.query_events(_request_from_args(args))
    _print_events(response.events, args.json)
    if not args.json:
        print(f"{COLOR_INFO}Page {response.page} ({len(response.events)} of "
              f"{response.total_count} events){COLOR_RESET}")


def cmd_search(service, args):
    response = service.advanced_search(args.where, args.page, args.page_size)
    _print_events(response.events, args.json)
    if not args.json:
        print(f"{COLOR_INFO}Page {response.page} ({len(response.events)} of "
              f"{response.total_count} events){COLOR_RESET}")


def cmd_histogram(service, args):
    buckets = service.get_timeline_histogram(_request_from_args(args))
    if not buckets:
        print(f"{COLOR_WARNING}No events in range{COLOR_RESET}")
        return
    peak = max(bucket.count for bucket in buckets)
    for bucket in buckets:
        bar = '#' * max(1, round(40 * bucket.count / peak))
        print(f"{bucket.timestamp:<20} {bucket.count:>8} {bar}")


def cmd_values(service, args):
    values = service.get_distinct_values(args.field)
    for value, count in sorted(values.items(), key=lambda item: (-item[1], item[0])):
        print(f"{count:>8}  {value}")


def cmd_tags(service, args):
    for tag in service.get_tags():
        print(tag)


def cmd_metadata(service, args):
    service.store.update_metadata()
    print(f"{COLOR_SUCCESS}Metadata refreshed{COLOR_RESET}")


def cmd_reindex(service, args):
    service.store.rebuild_indexes(args.fields)
    print(f"{COLOR_SUCCESS}Indexes rebuilt: {', '.join(service.store.get_index_names()) or '-'}{COLOR_RESET}")


def cmd_color(service, args):
    service.bulk_update_color(args.ids, args.color)


def cmd_tag(service, args):
    service.bulk_add_tag(args.ids, args.tag)


def cmd_bookmark(service, args):
    if args.value is None:
        for grid_id in args.ids:
            value = service.toggle_bookmark(grid_id)
            print(f"{grid_id}: bookmark={value}")
    else:
        service.bulk_set_bookmark(args.ids, args.value)


def cmd_note_add(service, args):
    grid_id = service.add_examiner_note(args.datetime, args.description)
    print(f"{COLOR_SUCCESS}Examiner note added with ID {grid_id}{COLOR_RESET}")


def cmd_note_delete(service, args):
    service.delete_examiner_note(args.id)


def cmd_notes(service, args):
    _print_events(service.get_examiner_notes(), args.json)


def cmd_saved(service, args):
    for saved in service.get_saved_queries():
        print(f"{COLOR_INFO}{saved.name}{COLOR_RESET}: {saved.query}")


def cmd_save_query(service, args):
    service.save_query(args.name, args.query)


def cmd_delete_query(service, args):
    service.delete_saved_query(args.name)


def cmd_export(service, args):
    request = _request_from_args(args)
    request.order_by = 'datetime'
    count = service.export_csv(args.output, request)
    print(f"{COLOR_SUCCESS}Exported {count} events to {args.output}{COLOR_RESET}")


def cmd_push(service, args, config):
    settings = config.get_postgres_settings()
    conninfo = args.conninfo or build_postgres_conninfo(
        host=args.host or settings['host'],
        port=args.port or settings['port'],
        dbname=args.dbname or settings['dbname'],
        user=args.user or settings['user'],
        password=args.password or '',
        sslmode=args.sslmode or settings['sslmode'],
    )
    print(f"{COLOR_INFO}Pushing to {mask_conn_str(conninfo)}{COLOR_RESET}")

    bars = {}

    def on_progress(phase, count, total):
        if phase != 'inserting':
            logger.info(f"{phase}: {count}/{total}")
            return
        bar = bars.get(phase)
        if bar is None:
            bar = bars[phase] = _progress_bar('Inserting', total)
        bar.update(count - bar.n)

    try:
        result = service.push_to_postgres(conninfo, on_progress)
    finally:
        for bar in bars.values():
            bar.close()
    print(f"{COLOR_SUCCESS}{result.message()}{COLOR_RESET}")


def _add_filter_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--filter', '-f', nargs=3, action='append',
                        metavar=('FIELD', 'OP', 'VALUE'),
                        help="Column filter, e.g. -f source = FILE (repeatable)")
    parser.add_argument('--logic', choices=['AND', 'OR'], default='AND',
                        help="How filters are combined")
    parser.add_argument('--text', dest='search_text', help="Full-text search")
    parser.add_argument('--bookmarked', action='store_true', help="Only bookmarked events")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Query and maintain forensic timeline databases")
    parser.add_argument('--db', help="SQLite database file")
    parser.add_argument('--pg', help="PostgreSQL connection string")
    parser.add_argument('--config', default=DEFAULT_CONFIG_FILE, help="Configuration file")
    parser.add_argument('--log-level', help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument('--log-file', help="Also write log records to this file")

    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('create', help="Create a new timeline database")
    p.add_argument('--index', nargs='*', help="Columns to index (default set if omitted)")

    p = sub.add_parser('config', help="Show or change stored preferences")
    p.add_argument('--page-size', type=int, help="Default rows per page")
    p.add_argument('--index', nargs='+', metavar='FIELD', help="Default index columns")
    p.add_argument('--pg-host')
    p.add_argument('--pg-port')
    p.add_argument('--pg-dbname')
    p.add_argument('--pg-user')
    p.add_argument('--pg-sslmode')
    p.add_argument('--default-log-level', help="Log level used when --log-level is not given")
    p.add_argument('--default-log-file', help="Log file used when --log-file is not given")
    p.add_argument('--persist-logging', dest='persist_logging', action='store_true', default=None,
                   help="Remember the logging preferences")
    p.add_argument('--no-persist-logging', dest='persist_logging', action='store_false')
    p.add_argument('--reset', nargs='?', const='all',
                   choices=['all', 'database', 'postgres', 'logging'],
                   help="Restore defaults for one section (or all)")

    sub.add_parser('info', help="Show database summary")

    p = sub.add_parser('import', help="Load events from a canonical-column CSV")
    p.add_argument('csv')

    for name, help_text in (('query', "Filtered search"), ('histogram', "Event counts over time")):
        p = sub.add_parser(name, help=help_text)
        _add_filter_options(p)
        if name == 'query':
            p.add_argument('--order-by', default='datetime')
            p.add_argument('--page', type=int, default=1)
            p.add_argument('--page-size', type=int, default=0)
            p.add_argument('--json', action='store_true')

    p = sub.add_parser('search', help="Advanced search with a raw WHERE clause")
    p.add_argument('where')
    p.add_argument('--page', type=int, default=1)
    p.add_argument('--page-size', type=int, default=0)
    p.add_argument('--json', action='store_true')

    p = sub.add_parser('values', help="Distinct values of a column with counts")
    p.add_argument('field')

    sub.add_parser('tags', help="List distinct tags")
    sub.add_parser('metadata', help="Refresh the frequency and tag tables")

    p = sub.add_parser('reindex', help="Replace the per-column indexes")
    p.add_argument('fields', nargs='*')

    p = sub.add_parser('color', help="Set the color of events/notes")
    p.add_argument('color')
    p.add_argument('ids', type=int, nargs='+')

    p = sub.add_parser('tag', help="Append a tag to events")
    p.add_argument('tag')
    p.add_argument('ids', type=int, nargs='+')

    p = sub.add_parser('bookmark', help="Toggle, or set with --value, bookmarks")
    p.add_argument('ids', type=int, nargs='+')
    p.add_argument('--value', type=int, choices=[0, 1])

    p = sub.add_parser('note-add', help="Add an examiner note")
    p.add_argument('datetime')
    p.add_argument('description')

    p = sub.add_parser('note-delete', help="Delete an examiner note by its (negative) ID")
    p.add_argument('id', type=int)

    p = sub.add_parser('notes', help="List examiner notes")
    p.add_argument('--json', action='store_true')

    sub.add_parser('saved', help="List saved queries")

    p = sub.add_parser('save-query', help="Save a named query")
    p.add_argument('name')
    p.add_argument('query')

    p = sub.add_parser('delete-query', help="Delete a saved query")
    p.add_argument('name')

    p = sub.add_parser('export', help="Export matching events to CSV")
    p.add_argument('output')
    _add_filter_options(p)

    p = sub.add_parser('push', help="Copy the SQLite database into PostgreSQL")
    p.add_argument('--conninfo', help="Full PostgreSQL connection string")
    p.add_argument('--host')
    p.add_argument('--port')
    p.add_argument('--dbname')
    p.add_argument('--user')
    p.add_argument('--password')
    p.add_argument('--sslmode')

    return parser


COMMANDS = {
    'info': cmd_info,
    'import': cmd_import,
    'query': cmd_query,
    'search': cmd_search,
    'histogram': cmd_histogram,
    'values': cmd_values,
    'tags': cmd_tags,
    'metadata': cmd_metadata,
    'reindex': cmd_reindex,
    'color': cmd_color,
    'tag': cmd_tag,
    'bookmark': cmd_bookmark,
    'note-add': cmd_note_add,
    'note-delete': cmd_note_delete,
    'notes': cmd_notes,
    'saved': cmd_saved,
    'save-query': cmd_save_query,
    'delete-query': cmd_delete_query,
    'export': cmd_export,
}


def main(argv: Optional[List[str]] = None) -> int:
    colorama.init()
    parser = build_parser()
    args = parser.parse_args(argv)

    config = StoreConfig(args.config)
    error_handler = configure_logging(
        args.log_level or config.get_log_level(),
        args.log_file or config.get_log_file(),
    )

    if args.command == 'create' and not (args.db or args.pg):
        parser.error("create needs --db PATH or --pg CONNINFO")
    if args.command != 'config' and getattr(args, 'page_size', None) == 0:
        args.page_size = config.get_page_size()

    try:
        with error_handler.error_context(StoreError, f"Command '{args.command}' failed"):
            if args.command == 'create':
                cmd_create(args, config)
                return 0
            if args.command == 'config':
                cmd_config(args, config)
                return 0

            service = _open_service(args, config)
            try:
                if args.command == 'push':
                    cmd_push(service, args, config)
                else:
                    COMMANDS[args.command](service, args)
            finally:
                service.close()
    except (StoreError, ValueError) as e:
        print(f"{COLOR_ERROR}Error: {e}{COLOR_RESET}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
