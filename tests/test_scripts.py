"""Tests for the overnight_scrape room list reader."""

from overnight_scrape import read_rooms


class TestReadRooms:
    def test_reads_rows_and_skips_header(self, tmp_path):
        path = tmp_path / "rooms.csv"
        path.write_text(
            "Building Code,Room Name,Room URL\n"
            "CM, CM017 ,http://timetable.test/CM/CM017\n"
            "EB,EB101,http://timetable.test/EB/EB101\n",
            encoding="utf-8",
        )
        rooms = read_rooms(path)

        assert [(r.building_code, r.name) for r in rooms] == [("CM", "CM017"), ("EB", "EB101")]
        assert rooms[1].url == "http://timetable.test/EB/EB101"

    def test_short_and_blank_rows_ignored(self, tmp_path):
        path = tmp_path / "rooms.csv"
        path.write_text(
            "Building Code,Room Name,Room URL\nCM,CM017\n\nCM,,http://x\n",
            encoding="utf-8",
        )
        assert read_rooms(path) == []

    def test_header_only(self, tmp_path):
        path = tmp_path / "rooms.csv"
        path.write_text("Building Code,Room Name,Room URL\n", encoding="utf-8")
        assert read_rooms(path) == []
