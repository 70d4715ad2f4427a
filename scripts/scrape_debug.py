"""Save raw HTML and parsed entries for a few rooms, for parser debugging.

Does not touch events.db. Output:
    data/debug/html/<room>.html
    data/debug/parsed/<room>.json

Run with:  python scripts/scrape_debug.py
Building:  python scripts/scrape_debug.py --building CM --max-rooms 5
"""

import argparse
import json
import re
import sys
import time
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

from timetable_ingest.config import get_config  # noqa: E402
from timetable_ingest.errors import ScrapingError  # noqa: E402
from timetable_ingest.logging import setup_logging  # noqa: E402
from timetable_ingest.pages.timetable import parse_room_timetable  # noqa: E402
from timetable_ingest.session import TimetableClient  # noqa: E402

sys.path.insert(0, str(Path(__file__).resolve().parent))
from overnight_scrape import read_rooms  # noqa: E402

DEBUG_DIR = Path("data/debug")


def _log(msg: str) -> None:
    """Write diagnostic messages to stderr."""
    print(msg, file=sys.stderr)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dump raw and parsed timetables for a few rooms.")
    parser.add_argument("--building", type=str, default="CM", help="Building code (default: CM).")
    parser.add_argument("--max-rooms", type=int, default=10, help="Rooms to fetch (default: 10).")
    parser.add_argument("--delay", type=float, default=1.0, help="Seconds between requests.")
    parser.add_argument("--rooms", type=str, default=None, help="Room list CSV.")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    config = get_config()
    setup_logging(json_output=False, log_level=config.log_level)

    html_dir = DEBUG_DIR / "html"
    parsed_dir = DEBUG_DIR / "parsed"
    html_dir.mkdir(parents=True, exist_ok=True)
    parsed_dir.mkdir(parents=True, exist_ok=True)

    rooms = [
        r for r in read_rooms(Path(args.rooms or config.rooms_csv))
        if r.building_code == args.building
    ][: args.max_rooms]
    _log(f"Fetching {len(rooms)} {args.building} rooms into {DEBUG_DIR}")

    total = 0
    with TimetableClient(config) as client:
        for i, room in enumerate(rooms):
            safe_name = re.sub(r"[^A-Za-z0-9]", "_", room.name)
            try:
                html = client.fetch(room.url)
            except ScrapingError as e:
                _log(f"[{i + 1}/{len(rooms)}] {room.name}: {e}")
                continue

            (html_dir / f"{safe_name}.html").write_text(html, encoding="utf-8")
            entries = parse_room_timetable(html, room.name)
            (parsed_dir / f"{safe_name}.json").write_text(
                json.dumps([e.model_dump(mode="json") for e in entries], indent=2),
                encoding="utf-8",
            )
            total += len(entries)
            _log(f"[{i + 1}/{len(rooms)}] {room.name}: {len(entries)} entries")

            if i < len(rooms) - 1:
                time.sleep(args.delay)

    _log(f"Done: {total} entries")
    return 0


if __name__ == "__main__":
    sys.exit(main())
