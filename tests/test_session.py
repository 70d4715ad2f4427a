"""Tests for session.py – fetch outcomes mapped onto the error hierarchy."""

import pytest
import requests

from timetable_ingest.config import DEFAULT_USER_AGENT
from timetable_ingest.errors import FetchError, RateLimitError, TransientError
from timetable_ingest.session import TimetableClient

URL = "http://timetable.test/CM/CM017"


def _response(status: int, body: str = "") -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = body.encode("utf-8")
    resp.encoding = "utf-8"
    resp.url = URL
    return resp


class FakeSession(requests.Session):
    """requests.Session that answers from a canned outcome."""

    def __init__(self, outcome) -> None:
        super().__init__()
        self.outcome = outcome
        self.requests: list[tuple[str, float]] = []

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs.get("timeout")))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class TestFetch:
    def test_ok_returns_body(self, config):
        session = FakeSession(_response(200, "<html>ok</html>"))
        client = TimetableClient(config, session=session)

        assert client.fetch(URL) == "<html>ok</html>"
        assert session.requests == [(URL, config.request_timeout_seconds)]

    @pytest.mark.parametrize("status", [301, 404, 500, 503])
    def test_non_2xx_is_fetch_error(self, config, status):
        client = TimetableClient(config, session=FakeSession(_response(status)))

        with pytest.raises(FetchError) as excinfo:
            client.fetch(URL)

        assert str(excinfo.value) == f"Failed to fetch {URL}: Status {status}"
        assert excinfo.value.status_code == status
        assert excinfo.value.url == URL
        assert not isinstance(excinfo.value, RateLimitError)

    def test_429_is_rate_limit(self, config):
        client = TimetableClient(config, session=FakeSession(_response(429)))
        with pytest.raises(RateLimitError) as excinfo:
            client.fetch(URL)
        assert excinfo.value.status_code == 429

    @pytest.mark.parametrize(
        "exc", [requests.ConnectionError("refused"), requests.Timeout("read timed out")]
    )
    def test_network_errors_are_transient(self, config, exc):
        client = TimetableClient(config, session=FakeSession(exc))
        with pytest.raises(TransientError) as excinfo:
            client.fetch(URL)
        assert isinstance(excinfo.value, FetchError)
        assert excinfo.value.status_code is None
        assert excinfo.value.__cause__ is exc


class TestClient:
    def test_browser_headers(self, config):
        session = FakeSession(_response(200))
        TimetableClient(config, session=session)

        assert session.headers["User-Agent"] == DEFAULT_USER_AGENT
        assert session.headers["Accept-Language"] == "en-US,en;q=0.9"
        assert session.headers["Accept"].startswith("text/html")

    def test_custom_user_agent(self, config):
        cfg = config.model_copy(update={"user_agent": "timetable-bot/1.0"})
        session = FakeSession(_response(200))
        TimetableClient(cfg, session=session)
        assert session.headers["User-Agent"] == "timetable-bot/1.0"

    def test_scrape_room_parses_page(self, config, rooms, room_page, today):
        client = TimetableClient(config, session=FakeSession(_response(200, room_page)))
        entries = client.scrape_room(rooms[0], today=today)

        assert len(entries) == 3
        assert {e.room_name for e in entries} == {"CM017"}

    def test_context_manager_closes_session(self, config):
        closed = []
        session = FakeSession(_response(200))
        session.close = lambda: closed.append(True)

        with TimetableClient(config, session=session):
            pass

        assert closed == [True]
