"""Runtime settings, read from environment variables."""
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

ON_EMPTY_PROPAGATE = "propagate-empty"
ON_EMPTY_PLACEHOLDER = "insert-placeholder"
ON_EMPTY_CHOICES = (ON_EMPTY_PROPAGATE, ON_EMPTY_PLACEHOLDER)


@dataclass(frozen=True)
class Settings:
    """Everything the fetcher, extractor, builder and server need to know."""

    feed_url: str = ""
    calendar_name: str = "SKV C"
    calendar_description: str = "SKV C Floorball Team Calendar"
    timezone: str = "Europe/Prague"
    team_name: str = "TJ Sokol Královské Vinohrady C"
    event_duration_minutes: int = 90
    refresh_interval_hours: int = 6
    stale_after_minutes: int = 60
    request_timeout: int = 10
    user_agent: str = "SKV-C-Calendar/1.0"
    default_location: str = "Floorball Arena"
    organizer_email: str = "noreply@skv-calendar.com"
    on_empty: str = ON_EMPTY_PROPAGATE
    port: int = 3000

    def __post_init__(self):
        check_on_empty(self.on_empty)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()

        def text(name: str, default: str) -> str:
            value = env.get(name, "").strip()
            return value or default

        def number(name: str, default: int) -> int:
            raw = env.get(name, "").strip()
            if not raw:
                return default
            try:
                value = int(raw)
            except ValueError:
                value = 0
            if value <= 0:
                logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
                return default
            return value

        return cls(
            feed_url=text("FEED_URL", defaults.feed_url),
            calendar_name=text("CALENDAR_NAME", defaults.calendar_name),
            calendar_description=text("CALENDAR_DESCRIPTION", defaults.calendar_description),
            timezone=text("CALENDAR_TIMEZONE", defaults.timezone),
            team_name=text("TEAM_NAME", defaults.team_name),
            event_duration_minutes=number("EVENT_DURATION_MINUTES", defaults.event_duration_minutes),
            refresh_interval_hours=number("REFRESH_INTERVAL_HOURS", defaults.refresh_interval_hours),
            stale_after_minutes=number("STALE_AFTER_MINUTES", defaults.stale_after_minutes),
            request_timeout=number("REQUEST_TIMEOUT", defaults.request_timeout),
            user_agent=text("USER_AGENT", defaults.user_agent),
            default_location=text("DEFAULT_LOCATION", defaults.default_location),
            organizer_email=text("ORGANIZER_EMAIL", defaults.organizer_email),
            on_empty=text("ON_EMPTY", defaults.on_empty),
            port=number("PORT", defaults.port),
        )


def check_on_empty(value: str) -> str:
    if value not in ON_EMPTY_CHOICES:
        raise ValueError(f"on_empty must be one of {', '.join(ON_EMPTY_CHOICES)}, got {value!r}")
    return value
