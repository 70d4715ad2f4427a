"""Error hierarchy for timetable scraping and the event store.

Scraping errors are split into transient failures (retry the room on a later
pass) and permanent failures (retrying cannot help). Store errors are kept
apart: they describe the SQLite generation rather than the upstream site.

Example usage with the orchestrator:
    try:
        entries = client.scrape_room(room)
    except ScrapingError as exc:
        store.record_failure(room.name, str(exc), max_attempts)
"""


class ScrapingError(Exception):
    """Base exception for all scraping errors."""

    pass


class TransientError(ScrapingError):
    """Temporary failure that may succeed on retry.

    Examples: network timeouts, 503 Service Unavailable.
    """

    pass


class FetchError(TransientError):
    """A room timetable page could not be fetched.

    Raised for network errors and for any non-2xx response.
    """

    def __init__(self, message: str, url: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class RateLimitError(FetchError):
    """The booking site answered 429 Too Many Requests."""

    pass


class PermanentError(ScrapingError):
    """Failure that won't succeed on retry."""

    pass


class InvalidWeekdayError(PermanentError, ValueError):
    """A weekday label is not one of the seven canonical English names."""

    pass


class ScrapeInProgressError(Exception):
    """A run was requested while another run still owns the store."""

    pass


class StoreError(Exception):
    """Base exception for event store errors."""

    pass


class StoreBusyError(StoreError):
    """SQLite reported the database as locked; the write can be retried."""

    pass


class StoreNotReadyError(StoreError):
    """No scrape run has completed yet, so there is nothing to query."""

    pass
