"""Slowly scrape every room timetable into a fresh events database.

The previous events.db is archived (renamed) first, so every run is an
isolated generation. Rooms are fetched one at a time with a pause between
requests; rooms that fail are retried on later passes up to the attempt
bound.

Run with:  python scripts/overnight_scrape.py
Resume:    python scripts/overnight_scrape.py --resume
Fast:      python scripts/overnight_scrape.py --delay 0.1

Exit codes:
  0 = run completed (some rooms may still have failed, see scrape_log)
  1 = fatal error (message on stderr)
"""

import argparse
import csv
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

from timetable_ingest.config import get_config  # noqa: E402
from timetable_ingest.logging import configure_from, get_logger  # noqa: E402
from timetable_ingest.models import Room  # noqa: E402
from timetable_ingest.orchestrator import ScrapeOrchestrator  # noqa: E402
from timetable_ingest.session import TimetableClient  # noqa: E402
from timetable_ingest.store import TimetableStore  # noqa: E402

log = get_logger("overnight_scrape")


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Scrape all room timetables into SQLite.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--rooms",
        type=str,
        default=None,
        help="Room list CSV (default: TIMETABLE_ROOMS_CSV or out/rooms_grouped.csv).",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Seconds between requests (default: TIMETABLE_REQUEST_DELAY_SECONDS).",
    )
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Continue the generation on disk instead of archiving it.",
    )
    return parser.parse_args()


def read_rooms(path: Path) -> list[Room]:
    """Read 'Building Code, Room Name, Room URL' rows (header skipped)."""
    with path.open(newline="", encoding="utf-8") as fh:
        reader = csv.reader(fh)
        next(reader, None)
        return [
            Room(building_code=row[0].strip(), name=row[1].strip(), url=row[2].strip())
            for row in reader
            if len(row) >= 3 and row[1].strip()
        ]


def main() -> int:
    args = _parse_args()
    config = get_config()
    if args.delay is not None:
        config = config.model_copy(
            update={"request_delay_seconds": args.delay, "retry_backoff_seconds": args.delay * 2}
        )
    configure_from(config)

    rooms_path = Path(args.rooms or config.rooms_csv)
    try:
        rooms = read_rooms(rooms_path)
    except OSError as e:
        print(f"Cannot read room list {rooms_path}: {e}", file=sys.stderr)
        return 1
    log.info("rooms_loaded", count=len(rooms))

    store = TimetableStore(config.db_path)
    with TimetableClient(config) as client:
        orchestrator = ScrapeOrchestrator(store, client, config)
        try:
            stats = orchestrator.run(rooms, resume=args.resume)
        except Exception as e:
            print(f"Fatal error: {e}", file=sys.stderr)
            return 1

    print(
        f"Rooms scraped: {stats.success}/{stats.total}  failed: {stats.failed}  "
        f"events: {stats.events_inserted}  lecturers: {stats.lecturers_found}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
