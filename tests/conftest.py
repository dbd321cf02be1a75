"""Shared test fixtures and configuration.

Sets up fake environment variables so towel_tracker.config doesn't sys.exit(),
and provides common fixtures like an in-memory spreadsheet and a fake clock.
"""

import os

# Patch env vars BEFORE any towel_tracker imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:fake-token-for-tests")
os.environ.setdefault("WEB_JWT_SECRET", "test-secret-that-is-long-enough-for-hs256-keys")
os.environ.setdefault("STORAGE_PROVIDER", "memory")
os.environ.setdefault("ALLOWED_USER_IDS", "")
os.environ.setdefault("PUBLIC_URL", "")
os.environ.setdefault("TELEGRAM_WEBHOOK_SECRET", "")

from datetime import datetime, timedelta, timezone

import pytest


class FakeClock:
    """A settable clock; call it like ``utc_now``."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    """Return an InMemorySheetStore with the header row of every sheet."""
    from towel_tracker.adapters.memory_sheets import InMemorySheetStore
    from towel_tracker.data.db import SHEET_HEADERS
    return InMemorySheetStore({name: [header] for name, header in SHEET_HEADERS.items()})


@pytest.fixture
def registry(store, clock):
    """Return a SlotRegistry over the in-memory store and the fake clock."""
    from towel_tracker.core.slot_registry import SlotRegistry
    return SlotRegistry(store, clock=clock, default_threshold_days=3)


@pytest.fixture
def user_db(store):
    """Return a UserDB with UTC / 10:00 defaults."""
    from towel_tracker.data.db import UserDB
    return UserDB(store, default_tz="UTC", default_hour=10)
