import pytest
import requests
import feed
from config import Settings
from errors import FetchError, ParseError
from feed import fetch_feed, parse_feed

SETTINGS = Settings(feed_url="https://data.example.test/data/?key=secret&format=XML")


class FakeResponse:
    def __init__(self, text="", status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


def test_parse_feed_follows_xml2js_layout():
    xml = """<?xml version="1.0" encoding="UTF-8"?>
<data>
  <event>3XM5-A0082025-09-14 09:30:00FAT PIPE Traverza43072</event>
  <event id="2">2025-09-21 10:00:00Tatran12345</event>
  <info/>
</data>"""

    doc = parse_feed(xml)

    assert doc == {"data": {
        "event": [
            "3XM5-A0082025-09-14 09:30:00FAT PIPE Traverza43072",
            {"$": {"id": "2"}, "_": "2025-09-21 10:00:00Tatran12345"},
        ],
        "info": "",
    }}


def test_parse_feed_keeps_single_children_scalar():
    doc = parse_feed("<matches><match><home_team>A</home_team><date>2025-09-14</date></match></matches>")

    assert doc == {"matches": {"match": {"home_team": "A", "date": "2025-09-14"}}}


def test_parse_feed_drops_namespaces():
    doc = parse_feed('<x:data xmlns:x="urn:feed"><x:event>e</x:event></x:data>')

    assert doc == {"data": {"event": "e"}}


def test_parse_feed_rejects_malformed_xml():
    with pytest.raises(ParseError):
        parse_feed("<data><event>")


def test_fetch_feed_sends_user_agent_and_timeout(monkeypatch):
    calls = []

    def fake_get(url, headers=None, timeout=None):
        calls.append((url, headers, timeout))
        return FakeResponse("<data/>")

    monkeypatch.setattr(feed.requests, "get", fake_get)

    assert fetch_feed(SETTINGS) == "<data/>"
    assert calls == [(SETTINGS.feed_url, {"User-Agent": "SKV-C-Calendar/1.0"}, 10)]


def test_fetch_feed_maps_http_errors(monkeypatch):
    monkeypatch.setattr(feed.requests, "get", lambda *args, **kwargs: FakeResponse("nope", 503))

    with pytest.raises(FetchError) as excinfo:
        fetch_feed(SETTINGS)

    assert excinfo.value.status_code == 503


def test_fetch_feed_maps_timeouts(monkeypatch):
    def timeout(*args, **kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(feed.requests, "get", timeout)

    with pytest.raises(FetchError) as excinfo:
        fetch_feed(SETTINGS)

    assert excinfo.value.status_code is None


def test_fetch_feed_requires_url():
    with pytest.raises(FetchError):
        fetch_feed(Settings())


def test_fetch_feed_does_not_log_access_key(monkeypatch, caplog):
    monkeypatch.setattr(feed.requests, "get", lambda *args, **kwargs: FakeResponse("x", 500))

    with caplog.at_level("INFO"), pytest.raises(FetchError):
        fetch_feed(SETTINGS)

    assert "data.example.test" in caplog.text
    assert "secret" not in caplog.text
