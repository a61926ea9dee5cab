import threading
import time
import pytest
from datetime import datetime, timedelta
from cache import CalendarCache
from errors import FetchError


class Clock:
    def __init__(self):
        self.now = datetime(2025, 9, 1, 12, 0)

    def __call__(self):
        return self.now


def test_empty_cache_refreshes_before_serving():
    calls = []

    def refresh():
        calls.append(1)
        return "ICS"

    cache = CalendarCache(refresh, clock=Clock())
    assert cache.last_refresh is None
    assert cache.is_stale()

    assert cache.get_fresh() == "ICS"
    assert len(calls) == 1


def test_fresh_cache_is_reused_until_stale():
    clock = Clock()
    calls = []

    def refresh():
        calls.append(1)
        return f"ICS {len(calls)}"

    cache = CalendarCache(refresh, stale_after=timedelta(hours=1), clock=clock)

    assert cache.get_fresh() == "ICS 1"
    clock.now += timedelta(minutes=59)
    assert cache.get_fresh() == "ICS 1"
    clock.now += timedelta(minutes=2)
    assert cache.get_fresh() == "ICS 2"
    assert cache.last_refresh == clock.now


def test_failed_refresh_keeps_previous_calendar():
    clock = Clock()
    results = iter(["ICS"])

    def refresh():
        try:
            return next(results)
        except StopIteration:
            raise FetchError("feed down", status_code=502)

    cache = CalendarCache(refresh, clock=clock)
    cache.refresh()
    refreshed_at = cache.last_refresh

    clock.now += timedelta(hours=2)
    assert cache.refresh_quietly() is False
    assert cache.get_fresh() == "ICS"
    assert cache.last_refresh == refreshed_at


def test_failed_refresh_without_data_serves_nothing():
    def refresh():
        raise FetchError("feed down")

    cache = CalendarCache(refresh, clock=Clock())

    assert cache.get_fresh() is None
    assert not cache.has_data


def test_refresh_errors_propagate_to_direct_callers():
    def refresh():
        raise FetchError("feed down")

    cache = CalendarCache(refresh, clock=Clock())

    with pytest.raises(FetchError):
        cache.refresh()
    assert not cache.refreshing


def test_concurrent_refreshes_share_one_fetch():
    calls = []
    gate = threading.Event()

    def slow_refresh():
        calls.append(1)
        gate.wait(5)
        return "ICS"

    cache = CalendarCache(slow_refresh, clock=Clock())
    results = []
    threads = [threading.Thread(target=lambda: results.append(cache.refresh())) for _ in range(3)]

    threads[0].start()
    while not calls:
        time.sleep(0.01)
    for thread in threads[1:]:
        thread.start()
    time.sleep(0.1)
    gate.set()
    for thread in threads:
        thread.join(5)

    assert len(calls) == 1
    assert results == ["ICS", "ICS", "ICS"]
