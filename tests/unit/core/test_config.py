"""Unit tests for Settings validation."""

from datetime import timedelta

from pydantic import ValidationError
import pytest

from educonnect.core.config import Settings, get_settings, is_running_tests


def test_defaults():
    """Defaults favour immediate cancellation rules and a local SQLite store."""
    config = Settings(_env_file=None)

    assert config.db_retry_max_attempts == 3
    assert config.provider_cancellation_min_notice == timedelta(0)
    assert config.requester_cancellation_min_notice == timedelta(0)
    assert config.notification_max_workers == 4


def test_log_level_is_normalized():
    """Lower-case and WARN spellings are accepted."""
    assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"
    assert Settings(_env_file=None, log_level="warn").log_level == "WARNING"


def test_invalid_log_level_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, log_level="chatty")


def test_meeting_link_base_url_trailing_slash_stripped():
    """Meeting references are built as base/booking_id without a double slash."""
    config = Settings(_env_file=None, meeting_link_base_url="https://meet.example.com/s/")

    assert config.meeting_link_base_url == "https://meet.example.com/s"


def test_negative_notice_rejected():
    """A negative notice period would allow cancelling sessions already underway."""
    with pytest.raises(ValidationError):
        Settings(_env_file=None, provider_cancellation_min_notice_minutes=-5)


def test_notice_minutes_exposed_as_timedelta():
    config = Settings(_env_file=None, requester_cancellation_min_notice_minutes=90)

    assert config.requester_cancellation_min_notice == timedelta(minutes=90)


def test_environment_variables_are_read(monkeypatch):
    """Field names map to environment variables case-insensitively."""
    monkeypatch.setenv("DB_RETRY_MAX_ATTEMPTS", "5")

    assert Settings(_env_file=None).db_retry_max_attempts == 5


def test_sqlite_detection():
    assert Settings(_env_file=None, database_url="sqlite:///x.db").is_sqlite
    assert not Settings(_env_file=None, database_url="postgresql://u@h/db").is_sqlite


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_is_running_tests_under_pytest():
    assert is_running_tests()
