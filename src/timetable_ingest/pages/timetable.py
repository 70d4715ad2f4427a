"""Room timetable page parser.

Turns one room's timetable HTML into TimetableEntry models.

DOM structure (both layouts share the table and the cell markup):
  table.TimeTableTable
    tr -> one row per weekday
      legacy:  td (abbreviated day, "Mon") + td per slot
      current: th.TimeTableRowHeader ("Monday" or "Monday 20/10/2025")
               + td per slot
    td.TimeTableEvent / td.TimeTableCurrentEvent / td.scan_open -> booking
    td.TimeTableClash -> several bookings behind a "Clashing Events" banner

Booking cell content is plain text separated by <br>:
  "09:00 - 10:00<br>CO2401 - Software Development<br>King, John<br>Practical (On Campus)"

The two layouts only differ in where the row's weekday lives, so layout
detection picks a day reader and everything downstream is shared.
"""

from collections.abc import Callable
from datetime import date, datetime
from enum import Enum

from bs4 import BeautifulSoup, Tag

from timetable_ingest.cells import classify, parse_time_range, split_blocks
from timetable_ingest.dates import canonical_weekday, resolve_next_occurrence
from timetable_ingest.logging import get_logger
from timetable_ingest.models import TimetableEntry

log = get_logger(__name__)

SCHEDULE_TABLE = "table.TimeTableTable"
ROW_HEADER_CLASSES: frozenset[str] = frozenset(
    {"TimeTableRowHeader", "TimeTableCurrentRowHeader"}
)
BOOKED_CELL_CLASSES: frozenset[str] = frozenset(
    {"scan_open", "TimeTableEvent", "TimeTableCurrentEvent", "TimeTableClash"}
)
CLASH_CELL_CLASS = "TimeTableClash"


class Layout(str, Enum):
    """Source layouts published by the booking site over time."""

    LEGACY = "legacy"  # abbreviated day in the first column
    CURRENT = "current"  # full day name in a row-header th


def _cell_classes(cell: Tag) -> set[str]:
    # bs4 already splits multi-valued class attributes into a list
    value = cell.get("class") or []
    if isinstance(value, str):
        value = value.split()
    return set(value)


def is_booked_cell(cell: Tag) -> bool:
    return bool(_cell_classes(cell) & BOOKED_CELL_CLASSES)


def is_clash_cell(cell: Tag) -> bool:
    return CLASH_CELL_CLASS in _cell_classes(cell)


def detect_layout(table: Tag) -> Layout:
    """CURRENT when the table carries a weekday row-header th, else LEGACY."""
    for th in table.find_all("th"):
        if _cell_classes(th) & ROW_HEADER_CLASSES:
            return Layout.CURRENT
    return Layout.LEGACY


def _legacy_row_day(row: Tag) -> str | None:
    cells = row.find_all("td", recursive=False)
    if not cells:
        return None
    return canonical_weekday(cells[0].get_text(strip=True))


def _current_row_day(row: Tag) -> str | None:
    header = row.find("th", recursive=False)
    if header is None:
        return None
    return canonical_weekday(header.get_text(" ", strip=True))


ROW_DAY_READERS: dict[Layout, Callable[[Tag], str | None]] = {
    Layout.LEGACY: _legacy_row_day,
    Layout.CURRENT: _current_row_day,
}


def cell_text(cell: Tag) -> str:
    """Cell text with <br> turned into newlines and whitespace tidied per line."""
    for br in cell.find_all("br"):
        br.replace_with("\n")
    text = cell.get_text().replace("\xa0", " ")
    lines = (" ".join(line.split()) for line in text.split("\n"))
    return "\n".join(lines).strip()


def parse_room_timetable(
    html: str, room_name: str, today: date | None = None
) -> list[TimetableEntry]:
    """Parse one room's timetable page.

    Args:
        html: Page HTML as fetched from the booking site.
        room_name: Room the page belongs to (copied onto every entry).
        today: Anchor for weekday-to-date resolution (defaults to today).

    Returns:
        Entries in page order. Blocks missing a time or module, and blocks
        whose times cannot be turned into a valid range, are logged and
        skipped.
    """
    soup = BeautifulSoup(html, "html.parser")
    table = soup.select_one(SCHEDULE_TABLE)
    if table is None:
        log.warning("timetable_table_missing", room=room_name)
        return []

    layout = detect_layout(table)
    read_day = ROW_DAY_READERS[layout]

    entries: list[TimetableEntry] = []
    for row_idx, row in enumerate(table.find_all("tr")):
        columns = row.find_all("td", recursive=False)
        if not columns:
            continue

        day = read_day(row)
        if day is None:
            continue
        day_date = resolve_next_occurrence(day, today)

        for col_idx, cell in enumerate(columns):
            if not is_booked_cell(cell):
                continue
            text = cell_text(cell)
            if not text:
                continue

            for block in split_blocks(text, is_clash_cell(cell)):
                if len(block) < 2:
                    continue
                entry = _entry_from_block(
                    block, room_name, day, day_date, row_idx + 1, col_idx
                )
                if entry is not None:
                    entries.append(entry)

    log.debug(
        "timetable_parsed",
        room=room_name,
        layout=layout.value,
        entries=len(entries),
    )
    return entries


def _entry_from_block(
    block: list[str],
    room_name: str,
    day: str,
    day_date: date,
    row_index: int,
    slot_index: int,
) -> TimetableEntry | None:
    fields = classify(block)
    if not fields.is_complete:
        log.warning(
            "block_skipped",
            reason="missing_time_or_module",
            room=room_name,
            day=day,
            lines=block,
        )
        return None

    times = parse_time_range(fields.time)
    if times is None:
        log.warning(
            "block_skipped", reason="invalid_time", room=room_name, day=day, time=fields.time
        )
        return None

    start = datetime.combine(day_date, times[0])
    end = datetime.combine(day_date, times[1])
    if start >= end:
        log.warning(
            "block_skipped", reason="empty_time_range", room=room_name, day=day, time=fields.time
        )
        return None

    return TimetableEntry(
        room_name=room_name,
        day=day,
        start=start,
        end=end,
        time=fields.time,
        module=fields.module,
        lecturer=fields.lecturer or "",
        group=fields.group or "",
        session_type=fields.session_type or "",
        row_index=row_index,
        slot_index=slot_index,
    )
