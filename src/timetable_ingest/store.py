"""SQLite event store for one scrape generation.

Each run writes a fresh events.db; the previous file is archived by renaming
it, never merged into or overwritten. Tables:

    events           one row per booking, unique on (room, start, end, module)
    lecturers        one row per person, unique on the lower-cased name
    event_lecturers  many-to-many link between the two
    scrape_log       one row per room, the source of truth for remaining work
    scrape_metadata  key/value run facts, last writer wins

The orchestrator holds the only writer connection. WAL journaling keeps
read-only consumers (see queries.py) unblocked while a run is writing.
"""

import os
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from timetable_ingest.cells import parse_module
from timetable_ingest.errors import StoreBusyError
from timetable_ingest.lecturers import extract_names
from timetable_ingest.logging import get_logger
from timetable_ingest.models import (
    Room,
    RoomStatus,
    RoomWriteResult,
    ScrapeLogEntry,
    TimetableEntry,
)

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS events (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    room_name       TEXT NOT NULL,
    building_code   TEXT NOT NULL,
    day             TEXT NOT NULL,
    start_time      TEXT NOT NULL,
    end_time        TEXT NOT NULL,
    time_display    TEXT,
    module_code     TEXT,
    module_name     TEXT,
    module_raw      TEXT,
    lecturer_raw    TEXT,
    group_type      TEXT,
    session_type    TEXT,
    slot_index      INTEGER,
    row_index       INTEGER,
    scraped_at      TEXT NOT NULL,
    UNIQUE(room_name, start_time, end_time, module_raw)
);

CREATE TABLE IF NOT EXISTS lecturers (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    name            TEXT NOT NULL,
    name_lower      TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS event_lecturers (
    event_id        INTEGER NOT NULL REFERENCES events(id) ON DELETE CASCADE,
    lecturer_id     INTEGER NOT NULL REFERENCES lecturers(id) ON DELETE CASCADE,
    PRIMARY KEY(event_id, lecturer_id)
);

CREATE TABLE IF NOT EXISTS scrape_log (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    room_name       TEXT NOT NULL UNIQUE,
    building_code   TEXT NOT NULL,
    room_url        TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'pending'
                    CHECK(status IN ('pending', 'success', 'failed')),
    attempts        INTEGER NOT NULL DEFAULT 0,
    last_attempt    TEXT,
    error_message   TEXT,
    events_found    INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS scrape_metadata (
    key             TEXT PRIMARY KEY,
    value           TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_room ON events(room_name);
CREATE INDEX IF NOT EXISTS idx_events_building ON events(building_code);
CREATE INDEX IF NOT EXISTS idx_events_module_code ON events(module_code);
CREATE INDEX IF NOT EXISTS idx_events_start ON events(start_time);
CREATE INDEX IF NOT EXISTS idx_scrape_log_status ON scrape_log(status);
"""

# Retry a write that found the database locked, then give up loudly
_retry_busy = retry(
    stop=stop_after_attempt(3),
    wait=wait_fixed(0.5),
    retry=retry_if_exception_type(StoreBusyError),
    reraise=True,
)


def _is_locked(exc: sqlite3.OperationalError) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def archive_name(db_path: Path, day: date) -> Path:
    """First free archive path for db_path: events_YYYY_MM_DD[_N].db."""
    stem = f"{db_path.stem}_{day.strftime('%Y_%m_%d')}"
    candidate = db_path.with_name(f"{stem}{db_path.suffix}")
    n = 1
    while candidate.exists():
        candidate = db_path.with_name(f"{stem}_{n}{db_path.suffix}")
        n += 1
    return candidate


class TimetableStore:
    """Writer side of the events database.

    Open with open() (or use as a context manager) after archive() and
    before any write.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def archive(self) -> Path | None:
        """Rename the current database out of the way.

        The archive is named after the day the old file was last written.
        Existing archives are never replaced; a numeric suffix is added
        instead.

        Returns:
            The archive path, or None when there was nothing to archive.
        """
        if self._conn is not None:
            raise RuntimeError("close the store before archiving it")
        if not self.db_path.exists():
            return None

        # Taken before the checkpoint, which touches the main file
        wal = Path(f"{self.db_path}-wal")
        mtimes = [p.stat().st_mtime for p in (self.db_path, wal) if p.exists()]
        modified = date.fromtimestamp(max(mtimes))

        # Fold the WAL back into the main file so the archive is self-contained
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
        finally:
            conn.close()

        target = archive_name(self.db_path, modified)
        os.rename(self.db_path, target)
        for sidecar in ("-wal", "-shm"):
            src = Path(f"{self.db_path}{sidecar}")
            if src.exists():
                os.rename(src, Path(f"{target}{sidecar}"))

        logger.info("store_archived", source=str(self.db_path), archive=str(target))
        return target

    def open(self) -> "TimetableStore":
        """Open the writer connection and create the schema if missing."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            # Explicit transactions only
            self._conn = sqlite3.connect(self.db_path, isolation_level=None)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.execute("PRAGMA busy_timeout = 5000")
            self._conn.executescript(SCHEMA)
            logger.debug("store_opened", path=str(self.db_path))
        return self

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "TimetableStore":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("store is not open")
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """BEGIN IMMEDIATE ... COMMIT, rolled back on any exception."""
        conn = self.conn
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.OperationalError as e:
            if _is_locked(e):
                raise StoreBusyError(str(e)) from e
            raise
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")

    # ------------------------------------------------------------------
    # Scrape log
    # ------------------------------------------------------------------

    @_retry_busy
    def seed_rooms(self, rooms: Iterable[Room]) -> int:
        """Add a pending scrape_log row for every room not yet listed."""
        added = 0
        with self.transaction() as conn:
            for room in rooms:
                cur = conn.execute(
                    """
                    INSERT OR IGNORE INTO scrape_log (room_name, building_code, room_url, status)
                    VALUES (?, ?, ?, 'pending')
                    """,
                    (room.name, room.building_code, room.url),
                )
                added += cur.rowcount
        return added

    def eligible_rooms(self, max_attempts: int) -> list[ScrapeLogEntry]:
        """Rooms still owed an attempt: pending or failed, below the bound."""
        rows = self.conn.execute(
            """
            SELECT * FROM scrape_log
            WHERE status IN ('pending', 'failed') AND attempts < ?
            ORDER BY attempts ASC, id ASC
            """,
            (max_attempts,),
        ).fetchall()
        return [_log_entry(row) for row in rows]

    def log_entries(self) -> list[ScrapeLogEntry]:
        rows = self.conn.execute("SELECT * FROM scrape_log ORDER BY id").fetchall()
        return [_log_entry(row) for row in rows]

    def log_entry(self, room_name: str) -> ScrapeLogEntry | None:
        row = self.conn.execute(
            "SELECT * FROM scrape_log WHERE room_name = ?", (room_name,)
        ).fetchone()
        return _log_entry(row) if row else None

    @_retry_busy
    def record_failure(
        self,
        room_name: str,
        error: str,
        max_attempts: int,
        attempted_at: datetime | None = None,
    ) -> RoomStatus:
        """Count a failed attempt; the room fails for good once the bound is hit."""
        attempted_at = attempted_at or datetime.now()
        with self.transaction() as conn:
            row = conn.execute(
                "SELECT attempts FROM scrape_log WHERE room_name = ?", (room_name,)
            ).fetchone()
            if row is None:
                raise KeyError(f"room {room_name!r} is not in scrape_log")
            attempts = row["attempts"] + 1
            status = RoomStatus.after_attempt(attempts, succeeded=False, max_attempts=max_attempts)
            conn.execute(
                """
                UPDATE scrape_log
                SET status = ?, attempts = ?, last_attempt = ?, error_message = ?, events_found = 0
                WHERE room_name = ?
                """,
                (status.value, attempts, attempted_at.isoformat(), error, room_name),
            )
        return status

    # ------------------------------------------------------------------
    # Events and lecturers
    # ------------------------------------------------------------------

    @_retry_busy
    def record_success(
        self,
        room: Room,
        entries: list[TimetableEntry],
        scraped_at: datetime | None = None,
    ) -> RoomWriteResult:
        """Insert a room's entries and mark it done, all in one transaction.

        Re-inserting an identical entry is a no-op, as is re-linking a
        lecturer to an event.
        """
        scraped_at = scraped_at or datetime.now()
        stamp = scraped_at.isoformat()
        inserted = 0
        lecturer_keys: set[str] = set()

        with self.transaction() as conn:
            for entry in entries:
                event_id, created = self._insert_event(conn, room, entry, stamp)
                inserted += created
                for name in extract_names(entry.lecturer):
                    lecturer_id = self._lecturer_id(conn, name)
                    conn.execute(
                        "INSERT OR IGNORE INTO event_lecturers (event_id, lecturer_id) VALUES (?, ?)",
                        (event_id, lecturer_id),
                    )
                    lecturer_keys.add(name.lower())

            conn.execute(
                """
                UPDATE scrape_log
                SET status = ?, attempts = attempts + 1, last_attempt = ?,
                    error_message = NULL, events_found = ?
                WHERE room_name = ?
                """,
                (RoomStatus.SUCCESS.value, stamp, len(entries), room.name),
            )

        return RoomWriteResult(
            events_found=len(entries),
            events_inserted=inserted,
            lecturer_keys=lecturer_keys,
        )

    def _insert_event(
        self, conn: sqlite3.Connection, room: Room, entry: TimetableEntry, stamp: str
    ) -> tuple[int, bool]:
        module_code, module_name = parse_module(entry.module)
        cur = conn.execute(
            """
            INSERT OR IGNORE INTO events (
                room_name, building_code, day, start_time, end_time, time_display,
                module_code, module_name, module_raw, lecturer_raw, group_type,
                session_type, slot_index, row_index, scraped_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.room_name,
                room.building_code,
                entry.day,
                entry.start_string,
                entry.end_string,
                entry.time,
                module_code,
                module_name,
                entry.module,
                entry.lecturer,
                entry.group,
                entry.session_type,
                entry.slot_index,
                entry.row_index,
                stamp,
            ),
        )
        if cur.rowcount:
            return cur.lastrowid, True

        row = conn.execute(
            """
            SELECT id FROM events
            WHERE room_name = ? AND start_time = ? AND end_time = ? AND module_raw = ?
            """,
            (entry.room_name, entry.start_string, entry.end_string, entry.module),
        ).fetchone()
        return row["id"], False

    def _lecturer_id(self, conn: sqlite3.Connection, name: str) -> int:
        key = name.lower()
        conn.execute(
            "INSERT OR IGNORE INTO lecturers (name, name_lower) VALUES (?, ?)", (name, key)
        )
        return conn.execute(
            "SELECT id FROM lecturers WHERE name_lower = ?", (key,)
        ).fetchone()["id"]

    def count(self, table: str) -> int:
        if table not in {"events", "lecturers", "event_lecturers", "scrape_log"}:
            raise ValueError(f"unknown table {table!r}")
        return self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @_retry_busy
    def set_metadata(self, key: str, value: object) -> None:
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO scrape_metadata (key, value) VALUES (?, ?)",
                (key, str(value)),
            )

    def metadata(self) -> dict[str, str]:
        rows = self.conn.execute("SELECT key, value FROM scrape_metadata").fetchall()
        return {row["key"]: row["value"] for row in rows}


def _log_entry(row: sqlite3.Row) -> ScrapeLogEntry:
    return ScrapeLogEntry(
        room_name=row["room_name"],
        building_code=row["building_code"],
        room_url=row["room_url"],
        status=RoomStatus(row["status"]),
        attempts=row["attempts"],
        last_attempt=row["last_attempt"],
        error_message=row["error_message"],
        events_found=row["events_found"],
    )
