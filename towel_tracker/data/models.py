"""
Towel Tracker — Data Models.

Slots, users and group memberships live as rows in a spreadsheet. These
dataclasses are the decoded, typed form of those rows; the row codecs in
towel_tracker.data.db are the only place that touches raw cells.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field


@dataclass
class Slot:
    """A towel-replacement point.

    ``group_id`` is either ``"tg:<actor id>"``, a custom group key, or (for
    rows written before groups existed) a bare numeric actor id.
    """

    id: str
    name: str
    group_id: str
    room: str                  # may be empty
    threshold_days: int        # always >= 1 once written
    last_change_at: str        # ISO-8601, kept raw so bad values degrade to age 0


@dataclass
class Freshness:
    """Derived display state for a slot at a given moment."""

    age_days: int
    score: float
    status: str                # "OK" | "WARN" | "EXPIRED"


@dataclass
class SlotView:
    """A slot annotated with its freshness, as returned by listings."""

    slot: Slot
    freshness: Freshness

    @property
    def id(self) -> str:
        return self.slot.id

    @property
    def name(self) -> str:
        return self.slot.name

    @property
    def room(self) -> str:
        return self.slot.room

    @property
    def score(self) -> float:
        return self.freshness.score

    @property
    def status(self) -> str:
        return self.freshness.status

    def to_dict(self) -> dict:
        out = asdict(self.slot)
        out["ageDays"] = self.freshness.age_days
        out["score"] = self.freshness.score
        out["status"] = self.freshness.status
        return out


@dataclass
class SlotPatch:
    """Partial update for a slot. ``None`` means "leave unchanged"."""

    room: str | None = None
    threshold_days: int | None = None

    def is_empty(self) -> bool:
        return self.room is None and self.threshold_days is None

    def to_note(self) -> str:
        """JSON of the fields that are set, for the audit trail."""
        return json.dumps({k: v for k, v in asdict(self).items() if v is not None})


@dataclass
class User:
    """Notification preferences of an actor (a Telegram chat)."""

    actor_id: int
    timezone: str
    notify_hour: int


@dataclass
class GroupMembership:
    group_id: str
    actor_id: int


@dataclass
class Event:
    """Append-only audit record for slot mutations."""

    timestamp: str
    slot_id: str
    action: str                # CREATE | REFRESH | UPDATE | DELETE
    actor_id: str              # empty for system context
    note: str = field(default="")
