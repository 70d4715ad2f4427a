"""Lecturer name extraction and normalisation.

Raw lecturer fields hold anything from "King, John" to
"SMITH, JOHN / Doe, Jane (Module Lead)" or "TBC". extract_names() splits a
field into individual people and normalises each so the same person found
in different cells and rooms collapses to one lookup key.
"""

import re

# Candidates containing one of these as a whole word, or its plural, are not people
EXCLUSION_KEYWORDS: tuple[str, ...] = (
    "tbc",
    "vacant",
    "available",
    "not set",
    "week",
    "term",
    "session",
    "module",
    "lecture",
    "lecturer",
    "tutor",
    "group",
    "slot",
    "enc.",
    "cc",
)
_EXCLUSION_RE = re.compile(
    "|".join(
        r"\b" + re.escape(keyword) + (r"s?\b" if keyword[-1].isalnum() else "")
        for keyword in EXCLUSION_KEYWORDS
    ),
    re.IGNORECASE,
)

_PARENTHETICAL_RE = re.compile(r"\(.*?\)")
_SEPARATOR_RE = re.compile(r"\s*(?:/|&amp;|&|\band\b|;)\s*", re.IGNORECASE)
_LEADING_DASH_RE = re.compile(r"^[-–—]+")
_TRAILING_DASH_RE = re.compile(r"[-–—]+$")
_ROLE_PREFIX_RE = re.compile(r"^(?:Lecturer|Tutor)\b:?\s*", re.IGNORECASE)
_TITLE_CASE_RE = re.compile(r"(^|[\s,.'’-])([a-z])")

MIN_NAME_LENGTH = 3
MAX_NAME_LENGTH = 80


def _fix_comma_spacing(name: str) -> str:
    return re.sub(r"\s*,\s*", ", ", name)


def title_case_segment(segment: str) -> str:
    """Title-case a name segment: "o'brien-smith" -> "O'Brien-Smith"."""
    return _TITLE_CASE_RE.sub(
        lambda m: m.group(1) + m.group(2).upper(), segment.lower()
    )


def normalise_name(name: str) -> str:
    """Normalise one lecturer name.

    Mixed-case names are trusted and only get their comma spacing fixed
    ("McDonald ,Ronald" -> "McDonald, Ronald"). Uniform-case names are
    title-cased segment by segment ("SMITH, JOHN" -> "Smith, John").
    """
    trimmed = name.strip()
    has_mixed_case = any(c.islower() for c in trimmed) and any(c.isupper() for c in trimmed)
    if has_mixed_case:
        return _fix_comma_spacing(trimmed)

    segments = (title_case_segment(segment.strip()) for segment in trimmed.split(","))
    return re.sub(r"\s+,", ",", ", ".join(segments))


def _is_person(candidate: str) -> bool:
    if any(c.isdigit() for c in candidate):
        return False
    if not re.search(r"[A-Za-z]", candidate):
        return False
    # Bare tokens without a comma or space are codes/usernames, not names
    if not re.search(r"[,\s]", candidate):
        return False
    if _EXCLUSION_RE.search(candidate):
        return False
    return True


def extract_names(raw: str | None) -> list[str]:
    """Extract normalised lecturer names from a raw lecturer field.

    Returns names in first-seen order with case-insensitive duplicates
    removed; an empty list when nothing in the field looks like a person.
    """
    if not raw:
        return []

    compact = " ".join(_PARENTHETICAL_RE.sub(" ", raw).split())
    if not compact:
        return []

    names: dict[str, str] = {}
    for candidate in _SEPARATOR_RE.split(compact):
        cleaned = _LEADING_DASH_RE.sub("", candidate)
        cleaned = _TRAILING_DASH_RE.sub("", cleaned)
        cleaned = _ROLE_PREFIX_RE.sub("", cleaned.strip())
        cleaned = _fix_comma_spacing(cleaned).strip()
        if not cleaned or not _is_person(cleaned):
            continue

        name = normalise_name(cleaned)
        if not MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH:
            continue
        names.setdefault(name.lower(), name)

    return list(names.values())
