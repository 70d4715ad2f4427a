"""Tests for lecturers.py – splitting raw lecturer fields into people."""

import pytest

from timetable_ingest.lecturers import extract_names, normalise_name, title_case_segment


class TestExtractNames:
    def test_single_name(self):
        assert extract_names("King, John") == ["King, John"]

    @pytest.mark.parametrize(
        "raw",
        [
            "Smith, John & Doe, Jane",
            "Smith, John &amp; Doe, Jane",
            "Smith, John / Doe, Jane",
            "Smith, John; Doe, Jane",
            "Smith, John and Doe, Jane",
        ],
    )
    def test_separators(self, raw):
        assert extract_names(raw) == ["Smith, John", "Doe, Jane"]

    def test_parentheticals_dropped_and_case_normalised(self):
        assert extract_names("SMITH, JOHN / Doe, Jane (Module Lead)") == ["Smith, John", "Doe, Jane"]

    def test_case_insensitive_duplicates_keep_first(self):
        assert extract_names("Smith, John / SMITH, JOHN / smith, john") == ["Smith, John"]

    def test_role_prefix_and_dashes(self):
        assert extract_names("Lecturer: Jones, Sam / - Patel, Priya -") == ["Jones, Sam", "Patel, Priya"]

    @pytest.mark.parametrize(
        "raw",
        [
            "TBC",
            "Staff TBC",
            "Room 101",
            "Admin",
            "Module Team",
            "Vacant Post",
            "Not Set",
            "Week 4 Session",
            "Sessions, Various",
            "Groups, All",
            "Weeks, Teaching",
            "Modules, Team",
            "Slots, Open",
            "Lectures, Guest",
            "",
            None,
            "   ",
            "()",
        ],
    )
    def test_not_people(self, raw):
        assert extract_names(raw) == []

    def test_mixed_field_keeps_only_people(self):
        assert extract_names("King, John / TBC / Room 101") == ["King, John"]

    def test_plural_keyword_dropped_from_mixed_field(self):
        assert extract_names("Smith, John / Lectures, Guest") == ["Smith, John"]

    @pytest.mark.parametrize("raw", ["Lecturers, Guest", "Tutors, Visiting"])
    def test_role_words_are_not_stripped_from_longer_words(self, raw):
        names = extract_names(raw)
        assert all(not name.startswith("s,") for name in names)
        assert names == []

    def test_role_prefix_without_colon(self):
        assert extract_names("Tutor Patel, Priya") == ["Patel, Priya"]

    @pytest.mark.parametrize("raw", ["McCarthy, Sean", "Weekes, Anna", "Termini, Luca"])
    def test_keywords_only_match_whole_words(self, raw):
        assert extract_names(raw) == [raw]

    def test_length_bounds(self):
        assert extract_names("A B") == ["A B"]
        assert extract_names("Smith, " + "a" * 80) == []


class TestNormaliseName:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("SMITH, JOHN", "Smith, John"),
            ("smith, john", "Smith, John"),
            ("o'brien-smith, mary", "O'Brien-Smith, Mary"),
            ("McDonald ,Ronald", "McDonald, Ronald"),
            ("  King,   John ", "King, John"),
            ("DE LA CRUZ, ANA", "De La Cruz, Ana"),
        ],
    )
    def test_normalise(self, raw, expected):
        assert normalise_name(raw) == expected

    def test_mixed_case_trusted(self):
        assert normalise_name("McDonald, RONALD") == "McDonald, RONALD"

    def test_title_case_segment(self):
        assert title_case_segment("o'neil-ward") == "O'Neil-Ward"
