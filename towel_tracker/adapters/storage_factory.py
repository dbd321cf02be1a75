"""Storage adapter factory — creates the right adapter based on config."""

from __future__ import annotations

from towel_tracker.config import settings
from towel_tracker.ports.storage_port import TabularStore


def create_storage_adapter() -> TabularStore:
    """Return the storage adapter matching the STORAGE_PROVIDER setting."""
    provider = settings.STORAGE_PROVIDER.lower()

    if provider == "sheets":
        from towel_tracker.adapters.google_sheets import GoogleSheetsStore

        return GoogleSheetsStore(spreadsheet_id=settings.SPREADSHEET_ID)

    if provider == "memory":
        from towel_tracker.adapters.memory_sheets import InMemorySheetStore
        from towel_tracker.data.db import SHEET_HEADERS

        return InMemorySheetStore({name: [header] for name, header in SHEET_HEADERS.items()})

    raise ValueError(f"Unknown STORAGE_PROVIDER: {provider!r}")
