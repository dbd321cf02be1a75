"""Slot registry — create, list, refresh, update and delete slots.

Composes the storage repositories, the access resolver and the freshness
calculator. Every mutation appends one audit event per affected slot.

There is no locking: two refreshes racing on the same slot end as "last write
wins" on the timestamp cell.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import replace
from datetime import datetime
from typing import Callable

from towel_tracker.core.access import AccessResolver, has_access
from towel_tracker.core.errors import ForbiddenError, SlotNotFoundError, SlotValidationError
from towel_tracker.core.freshness import compute_freshness, format_timestamp, utc_now
from towel_tracker.data.db import EventLog, GroupDB, SlotDB
from towel_tracker.data.models import Event, Slot, SlotPatch, SlotView
from towel_tracker.ports.storage_port import TabularStore

logger = logging.getLogger(__name__)

ACTION_CREATE = "CREATE"
ACTION_REFRESH = "REFRESH"
ACTION_UPDATE = "UPDATE"
ACTION_DELETE = "DELETE"

_ID_LENGTH = 26
_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(n: int) -> str:
    out = ""
    while n:
        n, rem = divmod(n, 36)
        out = _BASE36[rem] + out
    return out or "0"


def new_slot_id(now: datetime) -> str:
    """Time-ordered prefix (base36 epoch millis) plus a random base36 tail."""
    prefix = _to_base36(int(now.timestamp() * 1000))
    tail = "".join(secrets.choice(_BASE36) for _ in range(_ID_LENGTH - len(prefix)))
    return prefix + tail


def normalize_threshold(value: object) -> int:
    """Coerce a threshold to an int >= 1. Non-numbers are a validation error."""
    if isinstance(value, bool):
        raise SlotValidationError("threshold_days must be a number")
    try:
        days = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError, OverflowError):
        raise SlotValidationError(f"threshold_days must be a number, got {value!r}") from None
    return max(1, days)


class SlotRegistry:
    """CRUD over slots, filtered by group access."""

    def __init__(
        self,
        store: TabularStore,
        clock: Callable[[], datetime] = utc_now,
        default_threshold_days: int = 3,
    ) -> None:
        self._slots = SlotDB(store)
        self._events = EventLog(store)
        self.access = AccessResolver(GroupDB(store))
        self._clock = clock
        self._default_threshold = default_threshold_days

    # -- helpers ------------------------------------------------------------

    def _view(self, slot: Slot, now: datetime) -> SlotView:
        return SlotView(slot=slot, freshness=compute_freshness(slot.threshold_days, slot.last_change_at, now))

    def _load(self, slot_id: str) -> tuple[int, Slot]:
        found = self._slots.get_slot(slot_id)
        if found is None:
            raise SlotNotFoundError(slot_id)
        return found

    def _check_access(self, slot: Slot, actor_id: int | None) -> None:
        if actor_id is None:
            return
        groups = self.access.resolve_groups(actor_id)
        if not has_access(slot, actor_id, groups):
            logger.warning("Actor %d denied access to slot %s", actor_id, slot.id)
            raise ForbiddenError(slot.id, actor_id)

    def _log(self, events: list[tuple[str, str, str]], actor_id: int | None, now: datetime) -> None:
        ts = format_timestamp(now)
        actor = "" if actor_id is None else str(actor_id)
        self._events.append([
            Event(timestamp=ts, slot_id=slot_id, action=action, actor_id=actor, note=note)
            for slot_id, action, note in events
        ])

    # -- queries ------------------------------------------------------------

    def list_slots(self, actor_id: int | None = None) -> list[SlotView]:
        """Slots visible to ``actor_id`` (all of them for None), with freshness."""
        now = self._clock()
        slots = self._slots.list_all()
        if actor_id is not None:
            groups = self.access.resolve_groups(actor_id)
            slots = [s for s in slots if has_access(s, actor_id, groups)]
        return [self._view(s, now) for s in slots]

    # -- mutations ----------------------------------------------------------

    def create_slot(
        self,
        name: str,
        owner_id: int,
        room: str = "",
        threshold_days: object = None,
    ) -> SlotView:
        """Create a slot in the owner's primary group, stamped "just changed"."""
        name = (name or "").strip()
        if not name:
            raise SlotValidationError("name is required")
        threshold = normalize_threshold(
            self._default_threshold if threshold_days is None else threshold_days
        )

        now = self._clock()
        slot = Slot(
            id=new_slot_id(now),
            name=name,
            group_id=self.access.primary_group(owner_id),
            room=(room or "").strip(),
            threshold_days=threshold,
            last_change_at=format_timestamp(now),
        )
        self._slots.add_slot(slot)
        self._log([(slot.id, ACTION_CREATE, name)], owner_id, now)
        return self._view(slot, now)

    def refresh_slot(self, slot_id: str, actor_id: int | None = None) -> Slot:
        """Mark a slot as just replaced."""
        row, slot = self._load(slot_id)
        self._check_access(slot, actor_id)

        now = self._clock()
        ts = format_timestamp(now)
        self._slots.set_last_change([row], ts)
        self._log([(slot.id, ACTION_REFRESH, "")], actor_id, now)
        logger.info("Slot %s refreshed by %s", slot.id, actor_id)
        return replace(slot, last_change_at=ts)

    def refresh_room(self, actor_id: int, room: str) -> int:
        """Refresh every slot visible to ``actor_id`` whose room is exactly ``room``."""
        room = (room or "").strip()
        if not room:
            raise SlotValidationError("room is required")

        groups = self.access.resolve_groups(actor_id)
        targets = [
            (row, slot) for row, slot in self._slots.list_rows()
            if has_access(slot, actor_id, groups) and slot.room == room
        ]
        if not targets:
            return 0

        now = self._clock()
        self._slots.set_last_change([row for row, _ in targets], format_timestamp(now))
        self._log([(slot.id, ACTION_REFRESH, f"room:{room}") for _, slot in targets], actor_id, now)
        logger.info("Room '%s' refreshed by %d: %d slot(s)", room, actor_id, len(targets))
        return len(targets)

    def update_slot(self, slot_id: str, patch: SlotPatch, actor_id: int | None = None) -> Slot:
        """Apply the fields present in ``patch`` (room and/or threshold)."""
        if patch.is_empty():
            raise SlotValidationError("nothing to update")
        normalized = SlotPatch(
            room=None if patch.room is None else patch.room.strip(),
            threshold_days=(
                None if patch.threshold_days is None
                else normalize_threshold(patch.threshold_days)
            ),
        )

        row, slot = self._load(slot_id)
        self._check_access(slot, actor_id)

        self._slots.apply_patch(row, normalized)
        now = self._clock()
        self._log([(slot.id, ACTION_UPDATE, normalized.to_note())], actor_id, now)
        logger.info("Slot %s updated by %s: %s", slot.id, actor_id, normalized.to_note())
        return replace(
            slot,
            room=slot.room if normalized.room is None else normalized.room,
            threshold_days=(
                slot.threshold_days if normalized.threshold_days is None
                else normalized.threshold_days
            ),
        )

    def delete_slot(self, slot_id: str, actor_id: int | None = None) -> Slot:
        """Remove the slot row."""
        row, slot = self._load(slot_id)
        self._check_access(slot, actor_id)

        self._slots.delete_row(row)
        self._log([(slot.id, ACTION_DELETE, slot.name)], actor_id, self._clock())
        logger.info("Slot %s '%s' deleted by %s", slot.id, slot.name, actor_id)
        return slot
