"""Room-booking timetable ingestion.

Scrapes per-room HTML timetables from the university room-booking system,
classifies each booked cell into structured entries and stores every run as
an isolated SQLite generation for read-only consumers.
"""

from timetable_ingest.cells import classify, split_blocks
from timetable_ingest.dates import resolve_next_occurrence
from timetable_ingest.lecturers import extract_names
from timetable_ingest.models import Building, Room, ScrapeStats, TimetableEntry
from timetable_ingest.orchestrator import RunState, ScrapeOrchestrator
from timetable_ingest.pages.timetable import parse_room_timetable
from timetable_ingest.queries import TimetableReader
from timetable_ingest.session import TimetableClient
from timetable_ingest.store import TimetableStore

__all__ = [
    "Building",
    "Room",
    "RunState",
    "ScrapeOrchestrator",
    "ScrapeStats",
    "TimetableClient",
    "TimetableEntry",
    "TimetableReader",
    "TimetableStore",
    "classify",
    "extract_names",
    "parse_room_timetable",
    "resolve_next_occurrence",
    "split_blocks",
]
