import pytest
from config import ON_EMPTY_PLACEHOLDER, Settings


def test_defaults():
    settings = Settings.from_env({})

    assert settings.feed_url == ""
    assert settings.calendar_name == "SKV C"
    assert settings.timezone == "Europe/Prague"
    assert settings.team_name == "TJ Sokol Královské Vinohrady C"
    assert settings.event_duration_minutes == 90
    assert settings.refresh_interval_hours == 6
    assert settings.stale_after_minutes == 60


def test_environment_overrides():
    settings = Settings.from_env({
        "FEED_URL": "https://example.test/?key=abc",
        "CALENDAR_NAME": "SKV B",
        "EVENT_DURATION_MINUTES": "60",
        "ON_EMPTY": ON_EMPTY_PLACEHOLDER,
        "PORT": "8080",
    })

    assert settings.feed_url == "https://example.test/?key=abc"
    assert settings.calendar_name == "SKV B"
    assert settings.event_duration_minutes == 60
    assert settings.on_empty == ON_EMPTY_PLACEHOLDER
    assert settings.port == 8080


def test_invalid_number_falls_back_to_default():
    assert Settings.from_env({"REFRESH_INTERVAL_HOURS": "often"}).refresh_interval_hours == 6


def test_unknown_on_empty_policy_is_rejected():
    with pytest.raises(ValueError):
        Settings.from_env({"ON_EMPTY": "sometimes"})


@pytest.mark.parametrize("name, field, default", [
    ("STALE_AFTER_MINUTES", "stale_after_minutes", 60),
    ("REQUEST_TIMEOUT", "request_timeout", 10),
    ("REFRESH_INTERVAL_HOURS", "refresh_interval_hours", 6),
])
@pytest.mark.parametrize("raw", ["0", "-5"])
def test_non_positive_numbers_fall_back_to_default(name, field, default, raw):
    assert getattr(Settings.from_env({name: raw}), field) == default
