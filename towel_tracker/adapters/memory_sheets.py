"""In-memory tabular store — implements TabularStore over Python lists.

Mirrors the parts of Google Sheets value semantics the repositories rely on:
trailing empty cells are trimmed on read, appends land after the last
non-empty row, and deleting a row shifts everything below it up.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from towel_tracker.ports.storage_port import StorageError

logger = logging.getLogger(__name__)

_RANGE_RE = re.compile(
    r"^(?P<sheet>[^!]+)!(?P<c1>[A-Z]+)(?P<r1>\d*)(?::(?P<c2>[A-Z]+)(?P<r2>\d*))?$"
)


@dataclass
class A1Range:
    sheet: str
    first_col: int             # 0-based
    last_col: int              # 0-based, inclusive
    first_row: int             # 1-based
    last_row: int | None       # 1-based, inclusive; None = open-ended


def _col_index(letters: str) -> int:
    idx = 0
    for ch in letters:
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx - 1


def parse_range(range_a1: str) -> A1Range:
    """Parse ``sheet!A2:F`` style ranges. Raises StorageError on anything else."""
    m = _RANGE_RE.match(range_a1)
    if m is None:
        raise StorageError(f"Unsupported range: {range_a1!r}")
    c1 = _col_index(m["c1"])
    c2 = _col_index(m["c2"]) if m["c2"] else c1
    r1 = int(m["r1"]) if m["r1"] else 1
    if m["c2"] is None:
        r2 = r1 if m["r1"] else None
    else:
        r2 = int(m["r2"]) if m["r2"] else None
    return A1Range(sheet=m["sheet"], first_col=c1, last_col=c2, first_row=r1, last_row=r2)


def _trim(row: list[str]) -> list[str]:
    out = list(row)
    while out and out[-1] == "":
        out.pop()
    return out


class InMemorySheetStore:
    """List-backed implementation of TabularStore."""

    def __init__(self, sheets: dict[str, list[list[str]]] | None = None) -> None:
        self._sheets: dict[str, list[list[str]]] = {
            name: [list(r) for r in rows] for name, rows in (sheets or {}).items()
        }

    def _sheet(self, name: str) -> list[list[str]]:
        return self._sheets.setdefault(name, [])

    def get_values(self, range_a1: str) -> list[list[str]]:
        rng = parse_range(range_a1)
        rows = self._sheet(rng.sheet)
        end = len(rows) if rng.last_row is None else min(rng.last_row, len(rows))
        out = [
            _trim([str(c) for c in rows[i][rng.first_col:rng.last_col + 1]])
            for i in range(rng.first_row - 1, end)
        ]
        while out and not out[-1]:
            out.pop()
        return out

    def append_rows(self, range_a1: str, rows: list[list[str]]) -> None:
        rng = parse_range(range_a1)
        sheet = self._sheet(rng.sheet)
        while sheet and not _trim(sheet[-1]):
            sheet.pop()
        for row in rows:
            sheet.append([""] * rng.first_col + [str(c) for c in row])
        logger.debug("Appended %d row(s) to %s", len(rows), rng.sheet)

    def batch_update(self, updates: list[tuple[str, list[list[str]]]]) -> None:
        for range_a1, values in updates:
            rng = parse_range(range_a1)
            sheet = self._sheet(rng.sheet)
            for offset, row in enumerate(values):
                r = rng.first_row - 1 + offset
                while len(sheet) <= r:
                    sheet.append([])
                target = sheet[r]
                for c_off, value in enumerate(row):
                    c = rng.first_col + c_off
                    while len(target) <= c:
                        target.append("")
                    target[c] = str(value)

    def delete_row(self, sheet: str, row_number: int) -> None:
        rows = self._sheet(sheet)
        if row_number < 1 or row_number > len(rows):
            raise StorageError(f"Row {row_number} out of range in sheet {sheet!r}")
        del rows[row_number - 1]

    def dump(self, sheet: str) -> list[list[str]]:
        """Return a copy of a whole sheet (header included)."""
        return [list(r) for r in self._sheet(sheet)]
