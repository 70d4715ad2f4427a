"""Tests for models.py – entry invariants and the room status machine."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from timetable_ingest.models import RoomStatus, RunPhase, RunStatus, TimetableEntry


def _entry(**overrides) -> TimetableEntry:
    fields = dict(
        room_name="CM017",
        day="Wednesday",
        start=datetime(2025, 11, 26, 9, 0),
        end=datetime(2025, 11, 26, 10, 0),
        time="09:00 - 10:00",
        module="CO2401 - Software Development",
    )
    fields.update(overrides)
    return TimetableEntry(**fields)


class TestTimetableEntry:
    def test_defaults_and_strings(self):
        entry = _entry()
        assert entry.lecturer == ""
        assert entry.group == ""
        assert entry.start_string == "2025-11-26T09:00:00"
        assert entry.end_string == "2025-11-26T10:00:00"

    @pytest.mark.parametrize("day", ["Wed", "wednesday", "Funday"])
    def test_day_must_be_canonical(self, day):
        with pytest.raises(ValidationError):
            _entry(day=day)

    @pytest.mark.parametrize("end", [datetime(2025, 11, 26, 9, 0), datetime(2025, 11, 26, 8, 0)])
    def test_start_before_end(self, end):
        with pytest.raises(ValidationError):
            _entry(end=end)


class TestRoomStatus:
    @pytest.mark.parametrize(
        "attempts,succeeded,expected",
        [
            (1, True, RoomStatus.SUCCESS),
            (3, True, RoomStatus.SUCCESS),
            (1, False, RoomStatus.PENDING),
            (2, False, RoomStatus.PENDING),
            (3, False, RoomStatus.FAILED),
            (4, False, RoomStatus.FAILED),
        ],
    )
    def test_after_attempt(self, attempts, succeeded, expected):
        assert RoomStatus.after_attempt(attempts, succeeded, max_attempts=3) is expected

    def test_single_attempt_bound(self):
        assert RoomStatus.after_attempt(1, False, max_attempts=1) is RoomStatus.FAILED

    def test_terminal(self):
        assert not RoomStatus.PENDING.is_terminal
        assert RoomStatus.SUCCESS.is_terminal
        assert RoomStatus.FAILED.is_terminal

    def test_stored_values(self):
        assert [s.value for s in RoomStatus] == ["pending", "success", "failed"]


class TestRunStatus:
    def test_idle_by_default(self):
        status = RunStatus()
        assert status.state is RunPhase.IDLE
        assert not status.is_running

    def test_frozen(self):
        with pytest.raises(ValidationError):
            RunStatus().state = RunPhase.RUNNING
