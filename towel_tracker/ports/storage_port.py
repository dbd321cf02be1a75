"""Storage port — abstract interface over a spreadsheet-like tabular store.

Ranges use A1 notation (``slots!A2:F``). Row numbers are 1-based sheet
positions; row 1 of every sheet is a header.
"""

from __future__ import annotations

from typing import Protocol


class StorageError(Exception):
    """Raised when any storage provider operation fails."""


class TabularStore(Protocol):
    """Abstract tabular storage used by the repositories in towel_tracker.data.db."""

    def get_values(self, range_a1: str) -> list[list[str]]: ...

    def append_rows(self, range_a1: str, rows: list[list[str]]) -> None: ...

    def batch_update(self, updates: list[tuple[str, list[list[str]]]]) -> None: ...

    def delete_row(self, sheet: str, row_number: int) -> None: ...
