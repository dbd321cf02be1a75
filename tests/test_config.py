"""Tests for towel_tracker.config — environment parsing."""

import pytest

from towel_tracker.config import Settings, _require


def _settings(**overrides):
    fields = dict(TELEGRAM_BOT_TOKEN="t", WEB_JWT_SECRET="s")
    fields.update(overrides)
    return Settings(**fields)


def test_allowed_user_ids_parsed_from_csv():
    assert _settings(ALLOWED_USER_IDS="1, 2,,3").ALLOWED_USER_IDS == [1, 2, 3]


def test_empty_allowlist():
    assert _settings(ALLOWED_USER_IDS="").ALLOWED_USER_IDS == []


def test_notify_hour_clamped():
    assert _settings(DEFAULT_NOTIFY_HOUR="30").DEFAULT_NOTIFY_HOUR == 23
    assert _settings(DEFAULT_NOTIFY_HOUR="-1").DEFAULT_NOTIFY_HOUR == 0


def test_threshold_at_least_one():
    assert _settings(DEFAULT_THRESHOLD_DAYS="0").DEFAULT_THRESHOLD_DAYS == 1


def test_defaults():
    s = _settings()
    assert s.STORAGE_PROVIDER == "sheets"
    assert s.MAGIC_LINK_TTL_SECONDS == 900
    assert s.SESSION_TTL_SECONDS == 7 * 24 * 60 * 60
    assert s.REMINDER_INTERVAL_MINUTES == 60


def test_require_exits_on_missing(monkeypatch):
    monkeypatch.delenv("SOME_MISSING_KEY", raising=False)
    with pytest.raises(SystemExit):
        _require("SOME_MISSING_KEY")


def test_require_rejects_placeholder(monkeypatch):
    monkeypatch.setenv("SOME_KEY", "your-token-here")
    with pytest.raises(SystemExit):
        _require("SOME_KEY")
