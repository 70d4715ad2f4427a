"""Read-only queries over a finished generation.

Downstream consumers (room and lecturer timetables, free-room checks,
calendar feeds) read events.db through TimetableReader. Every query opens
its own read-only connection, so it never blocks, or is blocked by, the
orchestrator's writer. Until a run has completed the store is reported as
not ready; nothing here ever triggers a scrape.
"""

import sqlite3
from collections.abc import Iterator
from contextlib import closing, contextmanager
from datetime import datetime
from pathlib import Path

from timetable_ingest.cache import CoalescingCache
from timetable_ingest.dates import WEEKDAYS
from timetable_ingest.errors import StoreNotReadyError
from timetable_ingest.models import Building, TimetableEntry

NOT_READY_MESSAGE = "Database not available. Run overnight scrape first."


def _row_to_entry(row: sqlite3.Row, lecturer: str | None = None) -> TimetableEntry:
    return TimetableEntry(
        room_name=row["room_name"],
        day=row["day"],
        start=datetime.fromisoformat(row["start_time"]),
        end=datetime.fromisoformat(row["end_time"]),
        time=row["time_display"] or "",
        module=row["module_raw"] or "",
        lecturer=lecturer if lecturer is not None else (row["lecturer_raw"] or ""),
        group=row["group_type"] or "",
        session_type=row["session_type"] or "",
        row_index=row["row_index"] or 0,
        slot_index=row["slot_index"] or 0,
    )


class TimetableReader:
    """Read-only access to an events database."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        if not self.db_path.exists():
            raise StoreNotReadyError(NOT_READY_MESSAGE)
        uri = f"{self.db_path.resolve().as_uri()}?mode=ro"
        with closing(sqlite3.connect(uri, uri=True)) as conn:
            conn.row_factory = sqlite3.Row
            yield conn

    def is_ready(self) -> bool:
        """True once a run has completed against this database."""
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT value FROM scrape_metadata WHERE key = 'scrape_completed'"
                ).fetchone()
        except (StoreNotReadyError, sqlite3.DatabaseError):
            return False
        return row is not None

    @contextmanager
    def _ready(self) -> Iterator[sqlite3.Connection]:
        if not self.is_ready():
            raise StoreNotReadyError(NOT_READY_MESSAGE)
        with self._connect() as conn:
            yield conn

    def metadata(self) -> dict[str, str]:
        with self._ready() as conn:
            rows = conn.execute("SELECT key, value FROM scrape_metadata").fetchall()
        return {row["key"]: row["value"] for row in rows}

    def room_timetable(self, room_name: str) -> list[TimetableEntry]:
        with self._ready() as conn:
            rows = conn.execute(
                "SELECT * FROM events WHERE room_name = ? ORDER BY start_time ASC",
                (room_name,),
            ).fetchall()
        return [_row_to_entry(row) for row in rows]

    def building_timetables(self, building_code: str) -> dict[str, list[TimetableEntry]]:
        """Entries per room for one building, rooms in name order."""
        with self._ready() as conn:
            rows = conn.execute(
                """
                SELECT * FROM events WHERE building_code = ?
                ORDER BY room_name, start_time ASC
                """,
                (building_code,),
            ).fetchall()
        result: dict[str, list[TimetableEntry]] = {}
        for row in rows:
            result.setdefault(row["room_name"], []).append(_row_to_entry(row))
        return result

    def scraped_rooms(self, building_code: str | None = None) -> list[tuple[str, str]]:
        """(room_name, building_code) for every successfully scraped room."""
        sql = "SELECT room_name, building_code FROM scrape_log WHERE status = 'success'"
        params: tuple = ()
        if building_code is not None:
            sql += " AND building_code = ?"
            params = (building_code,)
        with self._ready() as conn:
            rows = conn.execute(sql + " ORDER BY room_name", params).fetchall()
        return [(row["room_name"], row["building_code"]) for row in rows]

    def lecturer_names(self) -> list[str]:
        with self._ready() as conn:
            rows = conn.execute("SELECT name FROM lecturers ORDER BY name ASC").fetchall()
        return [row["name"] for row in rows]

    def lecturer_timetable(self, name: str) -> list[TimetableEntry] | None:
        """Entries for one lecturer (case-insensitive); None if unknown."""
        with self._ready() as conn:
            lecturer = conn.execute(
                "SELECT id, name FROM lecturers WHERE name_lower = ?", (name.lower(),)
            ).fetchone()
            if lecturer is None:
                return None
            rows = conn.execute(
                """
                SELECT e.* FROM events e
                JOIN event_lecturers el ON e.id = el.event_id
                WHERE el.lecturer_id = ?
                ORDER BY e.start_time ASC
                """,
                (lecturer["id"],),
            ).fetchall()
        return [_row_to_entry(row, lecturer=lecturer["name"]) for row in rows]

    def all_lecturers(self) -> dict[str, list[TimetableEntry]]:
        """Every lecturer with their entries, keyed by display name."""
        with self._ready() as conn:
            rows = conn.execute(
                """
                SELECT l.name AS lecturer_name, e.*
                FROM lecturers l
                JOIN event_lecturers el ON l.id = el.lecturer_id
                JOIN events e ON e.id = el.event_id
                ORDER BY l.name, e.start_time ASC
                """
            ).fetchall()
        result: dict[str, list[TimetableEntry]] = {}
        for row in rows:
            name = row["lecturer_name"]
            result.setdefault(name, []).append(_row_to_entry(row, lecturer=name))
        return result

    def is_room_free(self, room_name: str, at: datetime) -> bool:
        """True if no booking of the room covers the time of day of `at`.

        Entries are pinned to their weekday's next occurrence, so only
        entries on the same weekday as `at` are compared, by time of day.
        """
        return not any(_covers(entry, at) for entry in self.room_timetable(room_name))

    def available_rooms(self, building: Building, at: datetime) -> list[str]:
        """Scraped rooms of a building with no booking covering `at`."""
        timetables = self.building_timetables(building.code)
        return [
            room_name
            for room_name, _ in self.scraped_rooms(building.code)
            if not any(_covers(entry, at) for entry in timetables.get(room_name, []))
        ]


def _covers(entry: TimetableEntry, at: datetime) -> bool:
    if entry.day != WEEKDAYS[(at.weekday() + 1) % 7]:
        return False
    moment = at.replace(second=0, microsecond=0).time()
    return entry.start.time() <= moment < entry.end.time()


class LecturerIndex:
    """all_lecturers() behind a CoalescingCache."""

    def __init__(self, reader: TimetableReader, ttl_seconds: float) -> None:
        self.reader = reader
        self._cache: CoalescingCache[dict[str, list[TimetableEntry]]] = CoalescingCache(
            reader.all_lecturers, ttl_seconds
        )

    def lecturers(self) -> dict[str, list[TimetableEntry]]:
        return self._cache.get()

    def timetable(self, name: str) -> list[TimetableEntry] | None:
        key = name.lower()
        for display, entries in self.lecturers().items():
            if display.lower() == key:
                return entries
        return None

    def refresh(self) -> None:
        self._cache.invalidate()
