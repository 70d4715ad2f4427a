"""Weekday handling for timetable rows.

The booking site prints weekdays only ("Mon", or "Monday 20/10/2025"), never
the date an entry is for. Every row is therefore pinned to the next calendar
occurrence of its weekday, counting today when today matches.
"""

import re
from datetime import date, timedelta

from timetable_ingest.errors import InvalidWeekdayError

# Canonical names, Sunday first
WEEKDAYS: tuple[str, ...] = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

DAY_ABBREVIATIONS: dict[str, str] = {
    "mon": "Monday",
    "tue": "Tuesday",
    "wed": "Wednesday",
    "thu": "Thursday",
    "fri": "Friday",
    "sat": "Saturday",
    "sun": "Sunday",
}

_LEADING_WORD_RE = re.compile(r"^\s*([A-Za-z]+)")


def canonical_weekday(text: str) -> str | None:
    """Map a row-header label to a canonical weekday name.

    Accepts "Mon", "Monday", "MONDAY" and date-suffixed labels such as
    "Monday 20/10/2025". Returns None for anything else (time header rows,
    spacer rows, legends).
    """
    if not text:
        return None
    match = _LEADING_WORD_RE.match(text)
    if not match:
        return None
    word = match.group(1).lower()
    for name in WEEKDAYS:
        if word == name.lower():
            return name
    return DAY_ABBREVIATIONS.get(word)


def resolve_next_occurrence(weekday_name: str, today: date | None = None) -> date:
    """Return the next date falling on weekday_name.

    If today is already that weekday, today is returned, so the result is
    always within [today, today + 6 days].

    Raises:
        InvalidWeekdayError: weekday_name is not an exact canonical name.
    """
    if weekday_name not in WEEKDAYS:
        raise InvalidWeekdayError(f"Invalid day name: {weekday_name!r}")

    today = today or date.today()
    # date.weekday() is Monday=0; WEEKDAYS is Sunday=0
    today_index = (today.weekday() + 1) % 7
    offset = (WEEKDAYS.index(weekday_name) - today_index) % 7
    return today + timedelta(days=offset)
