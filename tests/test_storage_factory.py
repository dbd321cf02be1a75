"""Tests for towel_tracker.adapters.storage_factory — provider selection."""

from unittest.mock import patch

import pytest

from towel_tracker.adapters.memory_sheets import InMemorySheetStore
from towel_tracker.adapters.storage_factory import create_storage_adapter


def test_memory_provider_is_seeded_with_headers():
    with patch("towel_tracker.adapters.storage_factory.settings") as mock_settings:
        mock_settings.STORAGE_PROVIDER = "memory"
        store = create_storage_adapter()
    assert isinstance(store, InMemorySheetStore)
    assert store.get_values("slots!A1:F1") == [
        ["id", "name", "group_id", "room", "threshold_days", "last_change_at"],
    ]
    assert store.get_values("users!A2:C") == []


def test_sheets_provider():
    with patch("towel_tracker.adapters.storage_factory.settings") as mock_settings:
        mock_settings.STORAGE_PROVIDER = "Sheets"
        mock_settings.SPREADSHEET_ID = "sheet-123"
        store = create_storage_adapter()
    from towel_tracker.adapters.google_sheets import GoogleSheetsStore

    assert isinstance(store, GoogleSheetsStore)


def test_unknown_provider():
    with patch("towel_tracker.adapters.storage_factory.settings") as mock_settings:
        mock_settings.STORAGE_PROVIDER = "excel"
        with pytest.raises(ValueError, match="Unknown STORAGE_PROVIDER"):
            create_storage_adapter()
