"""
Canonical-column CSV export and import.

The header row is the column table itself, so an export can be loaded back
into either backend unchanged.
"""

import csv
import logging
from typing import Iterable, Iterator, List, TextIO

from models.event import FIELDS, Event

logger = logging.getLogger(__name__)


def write_events_csv(stream: TextIO, events: Iterable[Event]) -> int:
    """Write events with a FIELDS header. Returns the number of rows written."""
    writer = csv.writer(stream)
    writer.writerow(FIELDS)
    count = 0
    for event in events:
        values = event.to_dict()
        writer.writerow(['' if values[name] is None else values[name] for name in FIELDS])
        count += 1
    return count


def read_events_csv(stream: TextIO) -> Iterator[Event]:
    """
    Read events from a CSV whose header names canonical columns.

    Unknown header names are ignored; missing columns stay unset. The header
    is checked before this returns; rows are read lazily.

    Raises:
        ValueError: If the file has no header or no known column. Iterating
            raises ValueError naming the line when an integer column holds
            a non-numeric value.
    """
    reader = csv.DictReader(stream)
    if not reader.fieldnames:
        raise ValueError("CSV file has no header row")
    known = [name for name in reader.fieldnames if name in FIELDS]
    if not known:
        raise ValueError("CSV header does not name any known column")
    unknown = sorted(set(reader.fieldnames) - set(known) - {'id'})
    if unknown:
        logger.warning(f"Ignoring unknown CSV columns: {', '.join(unknown)}")
    return _read_rows(reader, known)


def _read_rows(reader: csv.DictReader, known: List[str]) -> Iterator[Event]:
    for line_number, row in enumerate(reader, start=2):
        data = {name: row[name] for name in known}
        try:
            yield Event.from_dict(data)
        except ValueError as e:
            raise ValueError(f"line {line_number}: {e}") from e
