"""Shared fixtures: HTML page builders, a temporary store and a scripted client."""

from collections.abc import Callable
from datetime import date

import pytest

from timetable_ingest.config import IngestConfig
from timetable_ingest.errors import FetchError
from timetable_ingest.models import Room, TimetableEntry
from timetable_ingest.pages.timetable import parse_room_timetable
from timetable_ingest.store import TimetableStore

# Tuesday
TODAY = date(2025, 11, 25)

CO2401_CELL = (
    "09:00 - 10:00<br>CO2401 - Software Development (Full Yr at Preston)"
    "<br>King, John<br>Practical (On Campus)"
)

CLASH_CELL = (
    "Clashing Events - Please Contact your school<br><br>"
    "10:00 - 13:00<br>BM4046 - Data Analytics Applied (BLK)<br>"
    "C &amp; T Building - CM017 - PC Lab  (C&amp;T Building)<br>"
    "Lecture (On Campus) (Group: Full_Group)<br><br>"
    "10:00 - 13:00<br>BM4040 - Data Power Deci-Making (BLK)<br>"
    "C &amp; T Building - CM017 - PC Lab  (C&amp;T Building)<br>"
    "Dimitriadou, Athanasia<br>Lecture (On Campus) (Group: Full_Group)"
)

Cell = tuple[str, str]  # (class attribute, inner HTML)


def _cells_html(cells: list[Cell]) -> str:
    return "".join(f'<td class="{cls}">{inner}</td>' for cls, inner in cells)


def _legacy_page(rows: list[tuple[str, list[Cell]]]) -> str:
    body = "".join(
        f'<tr><td class="TimeTableRowHeader">{day}</td>{_cells_html(cells)}</tr>'
        for day, cells in rows
    )
    return (
        "<html><body><table class='TimeTableTable'>"
        "<tr><th>Day</th><th>09:00</th><th>10:00</th><th>11:00</th></tr>"
        f"{body}</table></body></html>"
    )


def _current_page(rows: list[tuple[str, list[Cell]]]) -> str:
    body = "".join(
        f'<tr><th class="TimeTableRowHeader">{day}</th>{_cells_html(cells)}</tr>'
        for day, cells in rows
    )
    return (
        "<html><body><table class='TimeTableTable'>"
        "<tr><th></th><th>09:00</th><th>10:00</th><th>11:00</th></tr>"
        f"{body}</table></body></html>"
    )


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def legacy_page() -> Callable[[list[tuple[str, list[Cell]]]], str]:
    return _legacy_page


@pytest.fixture
def current_page() -> Callable[[list[tuple[str, list[Cell]]]], str]:
    return _current_page


@pytest.fixture
def room_page() -> str:
    """CM017: one ordinary booking on Wednesday and a clash on Friday."""
    return _legacy_page(
        [
            ("Wed", [("TimeTableEvent", CO2401_CELL), ("scan_closed", "")]),
            ("Fri", [("scan_closed", ""), ("TimeTableClash", CLASH_CELL)]),
        ]
    )


@pytest.fixture
def config(tmp_path) -> IngestConfig:
    return IngestConfig(
        data_dir=str(tmp_path / "data"),
        request_delay_seconds=3.0,
        retry_backoff_seconds=6.0,
        max_attempts=3,
        _env_file=None,
    )


@pytest.fixture
def store(config) -> TimetableStore:
    s = TimetableStore(config.db_path)
    yield s
    s.close()


@pytest.fixture
def rooms() -> list[Room]:
    return [
        Room(building_code="CM", name="CM017", url="http://timetable.test/CM/CM017"),
        Room(building_code="CM", name="CM019", url="http://timetable.test/CM/CM019"),
    ]


class ScriptedClient:
    """Stands in for TimetableClient.

    Each room gets a queue of outcomes, consumed one per attempt: an
    exception instance is raised, a string is parsed as page HTML. Rooms
    with an exhausted queue repeat their last outcome.
    """

    def __init__(self, outcomes: dict[str, list], today: date = TODAY) -> None:
        self.outcomes = {name: list(queue) for name, queue in outcomes.items()}
        self.today = today
        self.calls: list[str] = []

    def scrape_room(self, room: Room) -> list[TimetableEntry]:
        self.calls.append(room.name)
        queue = self.outcomes.get(room.name) or ["<html></html>"]
        outcome = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(outcome, Exception):
            raise outcome
        return parse_room_timetable(outcome, room.name, today=self.today)


@pytest.fixture
def scripted_client() -> Callable[[dict[str, list]], ScriptedClient]:
    return ScriptedClient


@pytest.fixture
def fetch_error() -> Callable[[str], FetchError]:
    def make(url: str = "http://timetable.test/CM/CM017", status: int = 503) -> FetchError:
        return FetchError(f"Failed to fetch {url}: Status {status}", url=url, status_code=status)

    return make


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()
