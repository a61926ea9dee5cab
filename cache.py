"""In-memory ICS cache shared by the HTTP handlers and the refresh job."""
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from errors import CalendarError

logger = logging.getLogger(__name__)


class _Flight:
    """One running refresh that late callers can wait on."""

    def __init__(self):
        self.done = threading.Event()
        self.result: Optional[str] = None
        self.error: Optional[BaseException] = None


class CalendarCache:
    """Cached ICS text plus the time it was produced.

    Only one refresh runs at a time: callers arriving while a refresh is in
    progress wait for it and get its result (or its error).
    """

    def __init__(
        self,
        refresh_fn: Callable[[], str],
        stale_after: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.refresh_fn = refresh_fn
        self.stale_after = stale_after
        self.clock = clock
        self.blob: Optional[str] = None
        self.last_refresh: Optional[datetime] = None
        self._lock = threading.Lock()
        self._flight: Optional[_Flight] = None

    @property
    def has_data(self) -> bool:
        return bool(self.blob)

    @property
    def refreshing(self) -> bool:
        return self._flight is not None

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        if not self.blob or self.last_refresh is None:
            return True
        now = now or self.clock()
        return now - self.last_refresh > self.stale_after

    def refresh(self) -> str:
        with self._lock:
            flight = self._flight
            leader = flight is None
            if leader:
                flight = self._flight = _Flight()

        if not leader:
            logger.debug("Refresh already in progress, waiting for it")
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.result

        try:
            blob = self.refresh_fn()
            self.blob = blob
            self.last_refresh = self.clock()
            flight.result = blob
            logger.info("ICS cache updated at %s", self.last_refresh.isoformat())
            return blob
        except BaseException as exc:
            flight.error = exc
            raise
        finally:
            with self._lock:
                self._flight = None
            flight.done.set()

    def refresh_quietly(self) -> bool:
        """Refresh for the scheduler; keep the previous blob on failure."""
        try:
            self.refresh()
        except CalendarError as exc:
            logger.error("Error updating cached ICS: %s", exc)
            return False
        return True

    def get_fresh(self) -> Optional[str]:
        """Return the cached ICS, refreshing first if it is missing or stale."""
        if self.is_stale():
            self.refresh_quietly()
        return self.blob
