"""Error types raised while turning the floorball feed into a calendar."""
from typing import Optional


class CalendarError(Exception):
    """Base class for every failure of the feed → ICS pipeline."""


class FetchError(CalendarError):
    """The feed could not be downloaded (network, timeout or non-2xx)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(CalendarError):
    """The feed body is not well-formed XML."""


class ExtractionError(CalendarError):
    """A single feed record could not be turned into a match."""


class SerializationError(CalendarError):
    """The ICS library failed to serialize the batch of events."""


class EmptyResultError(CalendarError):
    """No events were produced and the caller asked to propagate that."""
