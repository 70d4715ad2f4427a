"""Pydantic models for timetable data.

All data structures use Pydantic v2 for validation, serialization, and type safety.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from timetable_ingest.dates import WEEKDAYS

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S"


class Room(BaseModel):
    """A bookable room as listed by the external room loader."""

    model_config = ConfigDict(frozen=True)

    building_code: str  # "CM"
    name: str  # "CM017"
    url: str  # Room timetable page on the booking site


class Building(BaseModel):
    """A campus building as listed by the external building loader."""

    model_config = ConfigDict(frozen=True)

    name: str
    latitude: float
    longitude: float
    address: str
    code: str  # Upper-case building code, matches Room.building_code


class TimetableEntry(BaseModel):
    """One booking extracted from a timetable cell.

    Transient: produced per parse, only its event projection is persisted.
    The raw labels are kept exactly as they appeared in the cell.
    """

    room_name: str
    day: str  # Canonical weekday name, e.g. "Wednesday"
    start: datetime
    end: datetime
    time: str  # "09:00 - 10:00" as printed
    module: str  # "CO2401 - Software Development (Full Yr at Preston)"
    lecturer: str = ""
    group: str = ""  # "Practical (On Campus)"
    session_type: str = ""  # "Practical"
    row_index: int = 0  # Provenance only
    slot_index: int = 0  # Provenance only

    @model_validator(mode="after")
    def _check_invariants(self) -> "TimetableEntry":
        if self.day not in WEEKDAYS:
            raise ValueError(f"day must be a canonical weekday name, got {self.day!r}")
        if self.start >= self.end:
            raise ValueError(f"start {self.start} is not before end {self.end}")
        return self

    @property
    def start_string(self) -> str:
        return self.start.strftime(ISO_FORMAT)

    @property
    def end_string(self) -> str:
        return self.end.strftime(ISO_FORMAT)


class RoomStatus(str, Enum):
    """Per-room scrape state stored in scrape_log."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

    @classmethod
    def after_attempt(cls, attempts: int, succeeded: bool, max_attempts: int) -> "RoomStatus":
        """State a room moves to once its attempts-th attempt has finished.

        pending -> success on success; pending -> pending while attempts
        remain; pending -> failed once the bound is reached.
        """
        if succeeded:
            return cls.SUCCESS
        if attempts >= max_attempts:
            return cls.FAILED
        return cls.PENDING

    @property
    def is_terminal(self) -> bool:
        return self is not RoomStatus.PENDING


class ScrapeLogEntry(BaseModel):
    """One scrape_log row: the progress of a single room in this generation."""

    room_name: str
    building_code: str
    room_url: str
    status: RoomStatus = RoomStatus.PENDING
    attempts: int = 0
    last_attempt: str | None = None
    error_message: str | None = None
    events_found: int = 0


class RoomWriteResult(BaseModel):
    """What one successful room transaction changed in the store."""

    events_found: int
    events_inserted: int
    lecturer_keys: set[str] = Field(default_factory=set)


class ScrapeStats(BaseModel):
    """Aggregate counters for a run."""

    total: int = 0
    success: int = 0
    failed: int = 0
    events_inserted: int = 0
    lecturers_found: int = 0


class RunPhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RunStatus(BaseModel):
    """Read-only snapshot of the orchestrator's run state."""

    model_config = ConfigDict(frozen=True)

    state: RunPhase = RunPhase.IDLE
    started_at: str | None = None
    completed_at: str | None = None
    stats: ScrapeStats | None = None
    error: str | None = None

    @property
    def is_running(self) -> bool:
        return self.state is RunPhase.RUNNING
