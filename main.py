"""
Floorball Calendar
------------------
This script downloads the Czech Floorball Federation XML feed, picks out the
matches of the configured team, and writes two `.ics` files that can be
imported into Google Calendar, Apple Calendar or any other calendar app.

Outputs:
✅ calendar.ics       - the serialized calendar as-is
✅ calendar-full.ics  - the same events with explicit calendar headers
                        (name, timezone, METHOD:PUBLISH) for static hosting

Configuration comes from environment variables, see `config.py`.
`FEED_URL` is required and contains the access key, keep it out of git.

Usage:
1. export FEED_URL='https://data.ceskyflorbal.cz/data/?key=...&format=XML'
2. Run: `python main.py`
3. Import or publish the generated `.ics` files
"""

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from config import ON_EMPTY_CHOICES, Settings
from errors import CalendarError
from helpers import build_calendar_from_feed, wrap_full_calendar

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate ICS files from the floorball XML feed")
    parser.add_argument("--output-dir", "-o", default=".", help="Directory for the .ics files (default: .)")
    parser.add_argument("--on-empty", choices=ON_EMPTY_CHOICES, help="What to do when the feed has no matches")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    if settings is None:
        settings = Settings.from_env()

    print("Starting ICS generation...")
    try:
        ics_content = build_calendar_from_feed(settings, on_empty=args.on_empty)
    except CalendarError as e:
        logger.error("Failed to generate ICS content: %s", e)
        print(f"❌ Failed to generate ICS content: {e}")
        return 1
    except Exception as e:
        logger.exception("Unexpected error")
        print(f"❌ Error: {str(e)}")
        return 1

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    calendar_path = output_dir / "calendar.ics"
    calendar_path.write_text(ics_content, encoding="utf-8")
    print(f"✅ ICS file created: {calendar_path}")

    full_path = output_dir / "calendar-full.ics"
    full_path.write_text(wrap_full_calendar(ics_content, settings), encoding="utf-8")
    print(f"✅ Full ICS file created: {full_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
