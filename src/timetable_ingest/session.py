"""HTTP session for the room-booking site.

TimetableClient owns one requests.Session with browser-like headers, so the
site serves the same markup a visitor would see. A failed fetch is reported
as FetchError; the orchestrator turns that into a retry on a later pass.
"""

from datetime import date

import requests

from timetable_ingest.config import IngestConfig, get_config
from timetable_ingest.errors import FetchError, RateLimitError
from timetable_ingest.logging import get_logger
from timetable_ingest.models import Room, TimetableEntry
from timetable_ingest.pages.timetable import parse_room_timetable

logger = get_logger(__name__)

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


class TimetableClient:
    """Fetches and parses room timetable pages."""

    def __init__(
        self,
        config: IngestConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize TimetableClient.

        Args:
            config: Ingestion settings (timeout, User-Agent). Defaults to get_config().
            session: Pre-built requests session, mainly for tests.
        """
        self.config = config or get_config()
        self.session = session or requests.Session()
        self.session.headers.update(BROWSER_HEADERS)
        self.session.headers["User-Agent"] = self.config.user_agent

    def fetch(self, url: str) -> str:
        """Fetch a timetable page.

        Raises:
            RateLimitError: The site answered 429.
            FetchError: Network error or any other non-2xx status.
        """
        try:
            resp = self.session.get(url, timeout=self.config.request_timeout_seconds)
        except requests.RequestException as e:
            logger.warning("fetch_error", url=url, error=str(e), type=type(e).__name__)
            raise FetchError(f"Failed to fetch {url}: {e}", url=url) from e

        if resp.status_code == 429:
            raise RateLimitError(
                f"Failed to fetch {url}: Status 429", url=url, status_code=429
            )
        if not 200 <= resp.status_code < 300:
            raise FetchError(
                f"Failed to fetch {url}: Status {resp.status_code}",
                url=url,
                status_code=resp.status_code,
            )

        logger.debug("fetch_ok", url=url, status=resp.status_code, size=len(resp.text))
        return resp.text

    def scrape_room(self, room: Room, today: date | None = None) -> list[TimetableEntry]:
        """Fetch and parse one room's timetable."""
        html = self.fetch(room.url)
        return parse_room_timetable(html, room.name, today=today)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "TimetableClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
