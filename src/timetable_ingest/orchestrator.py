"""Scrape orchestration: room list in, one consistent database generation out.

Per-room state lives in scrape_log and follows a small state machine
(see RoomStatus.after_attempt):

    pending --success--> success
    pending --failure--> pending   (attempts < max_attempts)
    pending --failure--> failed    (attempts >= max_attempts)

A run makes passes over every room still owed an attempt, strictly one
request at a time with a fixed delay between requests and a longer backoff
before each retry pass, until no room is eligible. Because progress is only
ever read from scrape_log, a crashed run can be resumed without redoing
finished rooms.
"""

import threading
import time
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Protocol

from timetable_ingest.config import IngestConfig, get_config
from timetable_ingest.errors import ScrapeInProgressError, ScrapingError
from timetable_ingest.logging import bound_run_context, get_logger
from timetable_ingest.models import (
    Room,
    RoomStatus,
    RunPhase,
    RunStatus,
    ScrapeLogEntry,
    ScrapeStats,
    TimetableEntry,
)
from timetable_ingest.store import TimetableStore

logger = get_logger(__name__)


class RoomScraper(Protocol):
    def scrape_room(self, room: Room) -> list[TimetableEntry]: ...


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class RunState:
    """Progress of the current (or last) run, owned by one orchestrator.

    Writers are the orchestrator only; anyone may call snapshot().
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._status = RunStatus()

    def snapshot(self) -> RunStatus:
        with self._lock:
            return self._status

    def begin(self) -> None:
        with self._lock:
            if self._status.is_running:
                raise ScrapeInProgressError("Scrape already in progress")
            self._status = RunStatus(state=RunPhase.RUNNING, started_at=_now_iso())

    def update(self, stats: ScrapeStats) -> None:
        with self._lock:
            self._status = self._status.model_copy(update={"stats": stats.model_copy()})

    def finish(self, stats: ScrapeStats) -> None:
        with self._lock:
            self._status = self._status.model_copy(
                update={
                    "state": RunPhase.COMPLETED,
                    "completed_at": _now_iso(),
                    "stats": stats.model_copy(),
                }
            )

    def fail(self, error: str) -> None:
        with self._lock:
            self._status = self._status.model_copy(
                update={"state": RunPhase.FAILED, "completed_at": _now_iso(), "error": error}
            )


class ScrapeOrchestrator:
    """Drives the scraper across a room list and persists every outcome."""

    def __init__(
        self,
        store: TimetableStore,
        client: RoomScraper,
        config: IngestConfig | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        run_state: RunState | None = None,
        on_progress: Callable[[ScrapeStats], None] | None = None,
    ) -> None:
        self.store = store
        self.client = client
        self.config = config or get_config()
        self.sleep = sleep
        self.run_state = run_state or RunState()
        self.on_progress = on_progress

    def status(self) -> RunStatus:
        return self.run_state.snapshot()

    def run(self, rooms: Iterable[Room], *, resume: bool = False) -> ScrapeStats:
        """Scrape every room into a database generation.

        Args:
            rooms: Room list from the external loader.
            resume: Continue the generation already on disk instead of
                archiving it and starting a fresh one.

        Returns:
            Final run statistics.

        Raises:
            ScrapeInProgressError: This orchestrator is already running.
        """
        rooms = list(rooms)
        self.run_state.begin()
        try:
            with bound_run_context() as run_id:
                stats = self._run(rooms, resume=resume, run_id=run_id)
        except Exception as e:
            logger.exception("scrape_run_failed", error=str(e))
            self.run_state.fail(str(e))
            raise
        finally:
            self.store.close()

        self.run_state.finish(stats)
        return stats

    def _run(self, rooms: list[Room], *, resume: bool, run_id: str) -> ScrapeStats:
        cfg = self.config
        logger.info(
            "scrape_run_started",
            rooms=len(rooms),
            resume=resume,
            delay_seconds=cfg.request_delay_seconds,
            max_attempts=cfg.max_attempts,
        )

        if not resume:
            self.store.close()
            self.store.archive()
        self.store.open()

        self.store.seed_rooms(rooms)
        log_entries = self.store.log_entries()
        if not resume or "scrape_started" not in self.store.metadata():
            self.store.set_metadata("scrape_started", _now_iso())
        self.store.set_metadata("run_id", run_id)

        stats = ScrapeStats(
            total=len(log_entries),
            success=sum(e.status is RoomStatus.SUCCESS for e in log_entries),
            failed=sum(e.status is RoomStatus.FAILED for e in log_entries),
        )
        self.run_state.update(stats)

        pending = self.store.eligible_rooms(cfg.max_attempts)
        pass_number = 1
        while pending:
            logger.info("scrape_pass_started", pass_number=pass_number, rooms=len(pending))
            for i, entry in enumerate(pending):
                self._attempt(entry, stats)
                if i < len(pending) - 1:
                    self.sleep(cfg.request_delay_seconds)

            pending = self.store.eligible_rooms(cfg.max_attempts)
            if pending:
                logger.info("scrape_retry_pass_scheduled", rooms=len(pending))
                self.sleep(cfg.retry_backoff_seconds)
                pass_number += 1

        stats.lecturers_found = self.store.count("lecturers")
        self.store.set_metadata("scrape_completed", _now_iso())
        self.store.set_metadata("total_events", self.store.count("events"))
        self.store.set_metadata("total_lecturers", stats.lecturers_found)
        self.store.set_metadata("rooms_success", stats.success)
        self.store.set_metadata("rooms_failed", stats.failed)

        logger.info(
            "scrape_run_completed",
            rooms_total=stats.total,
            rooms_success=stats.success,
            rooms_failed=stats.failed,
            events_inserted=stats.events_inserted,
            lecturers_found=stats.lecturers_found,
        )
        return stats

    def _attempt(self, entry: ScrapeLogEntry, stats: ScrapeStats) -> RoomStatus:
        room = Room(building_code=entry.building_code, name=entry.room_name, url=entry.room_url)
        attempt = entry.attempts + 1
        # Only possible on resume with a raised max_attempts
        was_failed = entry.status is RoomStatus.FAILED
        progress = f"{stats.success + stats.failed + 1}/{stats.total}"

        try:
            entries = self.client.scrape_room(room)
        except ScrapingError as e:
            status = self.store.record_failure(room.name, str(e), self.config.max_attempts)
            stats.failed += (status is RoomStatus.FAILED) - was_failed
            if status is RoomStatus.FAILED:
                logger.warning(
                    "room_scrape_failed",
                    room=room.name,
                    attempt=attempt,
                    progress=progress,
                    error=str(e),
                )
            else:
                logger.info(
                    "room_scrape_retry_later",
                    room=room.name,
                    attempt=attempt,
                    progress=progress,
                    error=str(e),
                )
            self._report(stats)
            return status

        result = self.store.record_success(room, entries)
        stats.success += 1
        if was_failed:
            stats.failed -= 1
        stats.events_inserted += result.events_inserted
        logger.info(
            "room_scrape_succeeded",
            room=room.name,
            attempt=attempt,
            progress=progress,
            events=result.events_found,
        )
        self._report(stats)
        return RoomStatus.SUCCESS

    def _report(self, stats: ScrapeStats) -> None:
        self.run_state.update(stats)
        if self.on_progress is not None:
            self.on_progress(stats.model_copy())
