"""
Supporting records for the Timeline Store: examiner notes, saved queries,
histogram buckets and database summaries.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from .event import Event


@dataclass
class ExaminerNote:
    """
    Investigator-authored timeline entry stored in the examiner_notes table.
    
    The stored ``id`` is always positive. Callers working on the shared event
    grid see it as ``-id`` (see ``display_id``).
    
    Attributes:
        id: Positive internal identifier
        datetime: Timestamp of the note (immutable after creation)
        desc: Description (immutable after creation)
        tag: Tag (immutable after creation)
        color: Highlight color
        bookmark: Bookmark flag, 0 or 1
    """
    id: int
    datetime: Optional[str] = None
    desc: Optional[str] = None
    tag: Optional[str] = None
    color: Optional[str] = None
    bookmark: int = 0

    @property
    def display_id(self) -> int:
        return -self.id

    def as_event(self) -> Event:
        """Present the note as a grid row carrying the negated identifier."""
        return Event(
            id=self.display_id,
            datetime=self.datetime,
            desc=self.desc,
            tag=self.tag,
            color=self.color,
            bookmark=self.bookmark,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SavedQuery:
    """A named, opaque serialized filter description."""
    name: str
    query: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TimelineBucket:
    """Histogram bucket: a timestamp label and the number of events in it."""
    timestamp: str
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DBInfo:
    """
    Summary of an open database.
    
    Attributes:
        path: Database file path or masked connection string
        driver: Backend name ('sqlite' or 'postgres')
        event_count: Number of rows in the event table
        min_date: Earliest real timestamp, or empty string
        max_date: Latest real timestamp, or empty string
    """
    path: str
    driver: str
    event_count: int
    min_date: str = ''
    max_date: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
