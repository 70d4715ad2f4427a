"""Field classification for timetable cell text.

A booked cell is a handful of free-text lines with no fixed order, e.g.:

    09:00 - 10:00
    CO2401 - Software Development (Full Yr at Preston)
    King, John
    Practical (On Campus)

Clash cells pack several such blocks behind a "Clashing Events" banner, each
block opening with its own time range.

Classification is a priority-ordered table of (field, predicate) rules. For
each line the first rule whose field is still empty and whose predicate
matches claims the line. Unmatched lines fall back to the module field while
it is empty. Nothing here raises on malformed text; fields that cannot be
found stay None.
"""

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import time

TIME_RANGE_RE = re.compile(r"^(\d{1,2}):(\d{2})\s*-\s*(\d{1,2}):(\d{2})$")
MODULE_RE = re.compile(r"^[A-Z]{2,4}\d{3,6}[A-Z]?\s*[-–:]", re.IGNORECASE)
MODULE_PREFIX_RE = re.compile(r"^[A-Z]{2,4}\d{3,6}", re.IGNORECASE)
MODULE_PARTS_RE = re.compile(r"^([A-Z]{2,4}\d{3,6}[A-Z]?)\s*[-–:]\s*(.+)$", re.IGNORECASE)
GROUP_PAREN_RE = re.compile(r"\(Group:[^)]*\)", re.IGNORECASE)
DELIVERY_SUFFIX_RE = re.compile(r"\((On\s*Campus|Online|Hybrid)\)\s*$", re.IGNORECASE)
COMMA_NAME_RE = re.compile(r"^[A-Za-z'-]+,\s*[A-Za-z'-]+")
USERNAME_RE = re.compile(r"^[A-Z]+[a-z]+[A-Za-z]*$")
CLASH_BANNER_RE = re.compile(r"clashing events", re.IGNORECASE)

# Session keyword pattern -> canonical spelling
SESSION_KEYWORDS: tuple[tuple[str, str], ...] = (
    (r"Lecture", "Lecture"),
    (r"Practical", "Practical"),
    (r"Seminar", "Seminar"),
    (r"Workshop", "Workshop"),
    (r"Tutorial", "Tutorial"),
    (r"Lab", "Lab"),
    (r"Placement", "Placement"),
    (r"Project", "Project"),
    (r"Exam", "Exam"),
    (r"Assessment", "Assessment"),
    (r"Drop[\s-]?in", "Drop-in"),
    (r"Non[\s-]?Teaching", "Non-Teaching"),
)
_SESSION_START_RES = tuple(
    (re.compile(rf"^{pattern}", re.IGNORECASE), name) for pattern, name in SESSION_KEYWORDS
)
# Words a username-shaped line may not start with
_NOT_A_USERNAME_RE = re.compile(
    r"^(Lecture|Practical|Seminar|Workshop|Tutorial|Lab|Placement|Project|Exam"
    r"|Assessment|Online|Hybrid)",
    re.IGNORECASE,
)


@dataclass
class CellFields:
    """Fields recovered from one block of cell text."""

    time: str | None = None
    module: str | None = None
    lecturer: str | None = None
    session_type: str | None = None
    group: str | None = None

    @property
    def is_complete(self) -> bool:
        """A block is usable once both its time and its module are known."""
        return bool(self.time and self.module)


@dataclass(frozen=True)
class FieldRule:
    field: str
    matches: Callable[[str], bool]
    name: str


def is_time_range(line: str) -> bool:
    return TIME_RANGE_RE.match(line) is not None


def is_module_line(line: str) -> bool:
    return MODULE_RE.match(line) is not None


def has_group_parenthetical(line: str) -> bool:
    return GROUP_PAREN_RE.search(line) is not None


def session_keyword(line: str) -> str | None:
    """Canonical session type if the line starts with a session keyword."""
    for pattern, name in _SESSION_START_RES:
        if pattern.match(line):
            return name
    return None


def starts_with_session_keyword(line: str) -> bool:
    return session_keyword(line) is not None


def has_delivery_suffix(line: str) -> bool:
    return DELIVERY_SUFFIX_RE.search(line) is not None


def is_comma_name(line: str) -> bool:
    return (
        "," in line
        and COMMA_NAME_RE.match(line) is not None
        and not line[:1].isdigit()
        and MODULE_PREFIX_RE.match(line) is None
    )


def is_username(line: str) -> bool:
    return (
        4 <= len(line) <= 30
        and USERNAME_RE.match(line) is not None
        and _NOT_A_USERNAME_RE.match(line) is None
    )


# Order is policy: earlier rules win. Module comes straight after time so a
# code-prefixed line is never mistaken for a group or a lecturer.
CLASSIFICATION_RULES: tuple[FieldRule, ...] = (
    FieldRule("time", is_time_range, "time_range"),
    FieldRule("module", is_module_line, "module_code"),
    FieldRule("group", has_group_parenthetical, "group_parenthetical"),
    FieldRule("group", starts_with_session_keyword, "session_keyword"),
    FieldRule("group", has_delivery_suffix, "delivery_mode"),
    FieldRule("lecturer", is_comma_name, "last_first_name"),
    FieldRule("lecturer", is_username, "username"),
)


def classify(lines: Iterable[str], rules: Iterable[FieldRule] = CLASSIFICATION_RULES) -> CellFields:
    """Classify the lines of one block into time/module/lecturer/group fields.

    Args:
        lines: Trimmed, non-empty lines of a single booking block.
        rules: Ordered classification table (overridable for new layouts).

    Returns:
        CellFields with every field that could be identified.
    """
    rules = tuple(rules)
    fields = CellFields()
    for raw in lines:
        line = raw.strip() if isinstance(raw, str) else ""
        if not line:
            continue

        matched = False
        for rule in rules:
            if getattr(fields, rule.field) is not None:
                continue
            if rule.matches(line):
                setattr(fields, rule.field, line)
                if rule.field == "group":
                    fields.session_type = session_keyword(line)
                matched = True
                break

        # Best effort: the first unexplained line is most likely the module
        if not matched and fields.module is None:
            fields.module = line

    return fields


def split_blocks(cell_text: str, is_clash: bool) -> list[list[str]]:
    """Split a cell's text into per-booking line groups.

    Non-clash cells give a single group. In clash cells every time-range
    line opens a new group and the "Clashing Events" banner is dropped.
    Callers discard groups shorter than two lines.
    """
    lines = [line.strip() for line in (cell_text or "").split("\n")]
    lines = [line for line in lines if line]

    if not is_clash:
        return [lines]

    blocks: list[list[str]] = []
    current: list[str] = []
    for line in lines:
        if CLASH_BANNER_RE.search(line):
            continue
        if is_time_range(line):
            if current:
                blocks.append(current)
            current = [line]
        elif current:
            current.append(line)
    if current:
        blocks.append(current)
    return blocks


def parse_time_range(label: str) -> tuple[time, time] | None:
    """Parse "9:00 - 10:30" into (09:00, 10:30); None if malformed."""
    match = TIME_RANGE_RE.match((label or "").strip())
    if not match:
        return None
    h1, m1, h2, m2 = (int(part) for part in match.groups())
    try:
        return time(h1, m1), time(h2, m2)
    except ValueError:
        return None


def parse_module(module_raw: str | None) -> tuple[str | None, str | None]:
    """Split "EL4011 - Artificial Intelligence" into ("EL4011", "Artificial Intelligence").

    Strings without a leading module code keep the whole text as the name.
    """
    if not module_raw or not module_raw.strip():
        return None, None

    match = MODULE_PARTS_RE.match(module_raw.strip())
    if match:
        return match.group(1).upper(), match.group(2).strip()
    return None, module_raw.strip()
