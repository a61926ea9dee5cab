import hashlib
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from ics import Calendar, Event, Organizer

from config import ON_EMPTY_PLACEHOLDER, Settings, check_on_empty
from errors import EmptyResultError, ExtractionError, SerializationError
from feed import ATTRIBUTE_KEY, TEXT_KEY, fetch_feed, parse_feed

logger = logging.getLogger(__name__)

SHAPE_STRUCTURED = "structured"
SHAPE_ENCODED = "encoded"

# Date/time field pairs of structured match records, highest priority first
DATETIME_FIELD_PAIRS = [
    ("match_datetime", "match_time"),
    ("date", "time"),
    ("match_date", "match_time"),
    ("start_date", "start_time"),
    ("game_date", "game_time"),
]

DATETIME_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y %H:%M",
]

# e.g. "3XM5-A0082025-09-14 09:30:00119247009:30:0090FAT PIPE Traverza43072"
TIMESTAMP_RE = re.compile(r"(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})")
# "<team name><numeric id>", e.g. "FAT PIPE Traverza43072"
OPPONENT_RE = re.compile(r"([A-Za-z\s]+?)(\d{5,})")

ENCODED_TEXT_KEYS = (TEXT_KEY, ATTRIBUTE_KEY, "text", "value", "data")


@dataclass(frozen=True)
class MatchRecord:
    """One match, independent of the feed shape it came from."""

    start: datetime
    opponent: Optional[str] = None
    venue: Optional[str] = None
    home_team: Optional[str] = None
    away_team: Optional[str] = None
    shape: str = SHAPE_STRUCTURED


@dataclass(frozen=True)
class CalendarEvent:
    start: datetime
    duration_minutes: int
    title: str
    description: str
    location: str
    organizer_name: str
    organizer_email: str
    uid: str
    status: str = "CONFIRMED"
    busy_status: str = "BUSY"


# ---------- FEED SHAPES ----------

def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _locate_matches(doc: Any) -> Optional[List[Any]]:
    """``<matches><match>...</match></matches>``"""
    if not isinstance(doc, Mapping):
        return None
    matches = doc.get("matches")
    if isinstance(matches, Mapping) and "match" in matches:
        return _as_list(matches["match"])
    return None


def _locate_data_events(doc: Any) -> Optional[List[Any]]:
    """``<data><event>...</event></data>``"""
    if not isinstance(doc, Mapping):
        return None
    data = doc.get("data")
    if isinstance(data, Mapping) and "event" in data:
        return _as_list(data["event"])
    return None


def _locate_bare_events(doc: Any) -> Optional[List[Any]]:
    """``doc.event``, ``doc.events`` or a bare list of records."""
    if isinstance(doc, list):
        return doc
    if not isinstance(doc, Mapping):
        return None
    if "event" in doc:
        return _as_list(doc["event"])
    if "events" in doc:
        events = doc["events"]
        if isinstance(events, Mapping) and "event" in events:
            return _as_list(events["event"])
        return _as_list(events)
    return None


# ---------- STRUCTURED RECORDS ----------

def _field_text(record: Mapping[str, Any], key: str) -> Optional[str]:
    value = record.get(key)
    if isinstance(value, Mapping):
        value = value.get(TEXT_KEY)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_match_datetime(value: str) -> datetime:
    """Parse a combined date-time string, raising ValueError if no layout fits."""
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ValueError(f"Unrecognised date-time {value!r}")


def resolve_start(record: Mapping[str, Any]) -> datetime:
    """Find the first usable date/time field pair and parse it."""
    for date_key, time_key in DATETIME_FIELD_PAIRS:
        date_value = _field_text(record, date_key)
        time_value = _field_text(record, time_key)
        if date_value is None:
            continue
        if " " in date_value:
            # Date field already carries the time
            combined = date_value
        elif time_value is not None:
            combined = f"{date_value} {time_value}"
        else:
            continue
        try:
            return parse_match_datetime(combined)
        except ValueError as exc:
            raise ExtractionError(f"Invalid {date_key}/{time_key}: {exc}") from exc
    raise ExtractionError("No date/time fields found")


def extract_structured(record: Any, team_name: str) -> Optional[MatchRecord]:
    """Turn one ``<match>`` into a MatchRecord, or None if our team is not playing."""
    if not isinstance(record, Mapping):
        raise ExtractionError(f"Expected a match mapping, got {type(record).__name__}")

    home = _field_text(record, "home_team")
    away = _field_text(record, "away_team")
    if not any(team and team_name in team for team in (home, away)):
        return None

    start = resolve_start(record)
    if home and team_name in home:
        opponent = away
    else:
        opponent = home

    return MatchRecord(
        start=start,
        opponent=opponent,
        venue=_field_text(record, "arena_name"),
        home_team=home,
        away_team=away,
        shape=SHAPE_STRUCTURED,
    )


# ---------- ENCODED RECORDS ----------

def _encoded_text(record: Any) -> Optional[str]:
    if isinstance(record, str):
        return record
    if isinstance(record, Mapping):
        for key in ENCODED_TEXT_KEYS:
            value = record.get(key)
            if isinstance(value, str):
                return value
    return None


def extract_encoded(record: Any, team_name: str = "") -> MatchRecord:
    """Pull the start time and opponent out of a single opaque event string.

    The first ``YYYY-MM-DD HH:MM:SS`` substring is the kick-off. The text up to
    the next timestamp is searched for letters followed by a 5+ digit id, which
    is how the feed glues the opposing team's name to its club number.
    """
    text = _encoded_text(record)
    if not text:
        raise ExtractionError("Event carries no text")

    parts = TIMESTAMP_RE.split(text)
    if len(parts) < 2:
        raise ExtractionError("No YYYY-MM-DD HH:MM:SS timestamp in event")

    date_part, time_part = parts[1].split(" ")
    year, month, day = (int(p) for p in date_part.split("-"))
    hour, minute = (int(p) for p in time_part.split(":")[:2])
    try:
        start = datetime(year, month, day, hour, minute)
    except ValueError as exc:
        raise ExtractionError(f"Invalid timestamp {parts[1]!r}: {exc}") from exc

    opponent = None
    team_match = OPPONENT_RE.search(parts[2] if len(parts) > 2 else "")
    if team_match:
        opponent = team_match.group(1).strip() or None

    return MatchRecord(start=start, opponent=opponent, shape=SHAPE_ENCODED)


RecordExtractor = Callable[[Any, str], Optional[MatchRecord]]

SHAPES: Sequence[Tuple[str, Callable[[Any], Optional[List[Any]]], RecordExtractor]] = (
    ("matches.match", _locate_matches, extract_structured),
    ("data.event", _locate_data_events, extract_encoded),
    ("event(s)", _locate_bare_events, extract_encoded),
)


def extract_matches(doc: Any, team_name: str) -> List[MatchRecord]:
    """Extract every match of ``team_name`` from a normalised feed document.

    Returns an empty list if the document has none of the known shapes.
    Records that fail to parse are logged and skipped.
    """
    for shape_name, locate, extract in SHAPES:
        records = locate(doc)
        if records is None:
            continue

        logger.info("Feed shape %s with %d records", shape_name, len(records))
        matches = []
        for index, record in enumerate(records):
            try:
                match = extract(record, team_name)
            except ExtractionError as exc:
                logger.warning("Skipping record %d: %s", index, exc)
                continue
            if match is not None:
                matches.append(match)
        return matches

    logger.warning("No known record structure found in feed")
    return []


# ---------- CALENDAR ----------

def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "calendar"


def build_event(match: MatchRecord, settings: Settings) -> CalendarEvent:
    name = settings.calendar_name

    if match.shape == SHAPE_STRUCTURED:
        if match.home_team and match.away_team:
            title = f"{match.home_team} vs {match.away_team}"
        else:
            title = f"{name} Match"
        description = title
        if match.venue:
            description += f"\nVenue: {match.venue}"
    elif match.opponent:
        title = f"{name} vs {match.opponent}"
        description = f"Floorball match: {match.opponent}"
    else:
        title = name
        description = ""

    start = match.start.replace(tzinfo=ZoneInfo(settings.timezone))
    uid = hashlib.md5(f"{start.isoformat()}-{title}".encode("utf-8")).hexdigest()

    return CalendarEvent(
        start=start,
        duration_minutes=settings.event_duration_minutes,
        title=title,
        description=description,
        location=match.venue or settings.default_location,
        organizer_name=name,
        organizer_email=settings.organizer_email,
        uid=f"{uid}@{slugify(name)}-calendar",
    )


def build_events(matches: Sequence[MatchRecord], settings: Settings) -> List[CalendarEvent]:
    return [build_event(match, settings) for match in matches]


def serialize_events(events: Sequence[CalendarEvent]) -> str:
    """Serialize the whole batch in one go; any failure fails the batch."""
    try:
        cal = Calendar()
        for item in events:
            event = Event(
                name=item.title,
                begin=item.start,
                duration=timedelta(minutes=item.duration_minutes),
                uid=item.uid,
                description=item.description,
                location=item.location,
                status=item.status,
                transparent=item.busy_status != "BUSY",
                organizer=Organizer(email=item.organizer_email, common_name=item.organizer_name),
            )
            cal.events.add(event)
        return cal.serialize()
    except Exception as exc:
        raise SerializationError(f"Could not serialize {len(events)} events: {exc}") from exc


def placeholder_match(settings: Settings, now: Optional[datetime] = None) -> MatchRecord:
    """Sample match for tomorrow 18:00, used when the feed yields nothing."""
    if now is None:
        now = datetime.now(ZoneInfo(settings.timezone))
    tomorrow = (now + timedelta(days=1)).replace(tzinfo=None)
    return MatchRecord(
        start=tomorrow.replace(hour=18, minute=0, second=0, microsecond=0),
        home_team=settings.calendar_name,
        shape=SHAPE_STRUCTURED,
    )


def generate_ics(
    matches: Sequence[MatchRecord],
    settings: Settings,
    on_empty: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Generate ICS text from extracted matches, applying the empty-feed policy."""
    on_empty = check_on_empty(on_empty or settings.on_empty)

    if not matches:
        if on_empty != ON_EMPTY_PLACEHOLDER:
            raise EmptyResultError("No events found in feed")
        logger.warning("No events found in feed, inserting a sample entry")
        matches = [placeholder_match(settings, now)]

    return serialize_events(build_events(matches, settings))


VEVENT_RE = re.compile(r"BEGIN:VEVENT.*?END:VEVENT", re.S)


def wrap_full_calendar(ics_text: str, settings: Settings) -> str:
    """Re-wrap the serialized events with explicit calendar-level headers."""
    text = ics_text.replace("\r\n", "\n")
    events = [m.group(0).replace("\n", "\r\n") for m in VEVENT_RE.finditer(text)]
    header = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:-//{settings.calendar_name}//Floorball Calendar//EN",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{settings.calendar_name}",
        f"X-WR-CALDESC:{settings.calendar_description}",
        f"X-WR-TIMEZONE:{settings.timezone}",
    ]
    footer = ["END:VCALENDAR"]
    return "\r\n".join(header + events + footer) + "\r\n"


def build_calendar_from_feed(
    settings: Settings,
    on_empty: Optional[str] = None,
    fetch: Callable[[Settings], str] = fetch_feed,
) -> str:
    """Fetch, parse, extract and serialize: one complete generation run."""
    doc = parse_feed(fetch(settings))
    matches = extract_matches(doc, settings.team_name)
    logger.info("Found %d events for %s", len(matches), settings.team_name)
    return generate_ics(matches, settings, on_empty=on_empty)
