"""Tests for config.py – defaults and TIMETABLE_* overrides."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from timetable_ingest.config import IngestConfig


class TestIngestConfig:
    def test_defaults(self, monkeypatch):
        for name in ("TIMETABLE_MAX_ATTEMPTS", "TIMETABLE_DATA_DIR", "TIMETABLE_REQUEST_DELAY_SECONDS"):
            monkeypatch.delenv(name, raising=False)
        config = IngestConfig(_env_file=None)

        assert config.request_delay_seconds == 3.0
        assert config.retry_backoff_seconds == 6.0
        assert config.max_attempts == 3
        assert config.db_path == Path("data") / "events.db"
        assert "Mozilla/5.0" in config.user_agent

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("TIMETABLE_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("TIMETABLE_DATA_DIR", "/var/lib/timetable")
        monkeypatch.setenv("TIMETABLE_REQUEST_DELAY_SECONDS", "0.5")
        config = IngestConfig(_env_file=None)

        assert config.max_attempts == 5
        assert config.request_delay_seconds == 0.5
        assert config.db_path == Path("/var/lib/timetable/events.db")

    def test_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TIMETABLE_LOG_LEVEL", raising=False)
        env = tmp_path / ".env"
        env.write_text("TIMETABLE_LOG_LEVEL=DEBUG\n")
        assert IngestConfig(_env_file=env).log_level == "DEBUG"

    @pytest.mark.parametrize("field,value", [("max_attempts", 0), ("request_delay_seconds", -1)])
    def test_rejects_invalid(self, field, value):
        with pytest.raises(ValidationError):
            IngestConfig(_env_file=None, **{field: value})
