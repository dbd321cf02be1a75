"""
Towel Tracker — Spreadsheet repositories.

Every table is a sheet whose first row is a header. Rows are addressed by
their 1-based sheet position, which is assumed stable between a read and the
write that follows it within one operation.

Raw rows are decoded explicitly: a row with missing cells or unparsable
numbers is a RowDecodeError, never a silently defaulted record.
"""

from __future__ import annotations

import logging

from towel_tracker.data.models import Event, GroupMembership, Slot, SlotPatch, User
from towel_tracker.ports.storage_port import TabularStore

logger = logging.getLogger(__name__)

SLOTS = "slots"
USERS = "users"
GROUPS = "groups"
EVENTS = "events"

SHEET_HEADERS: dict[str, list[str]] = {
    SLOTS: ["id", "name", "group_id", "room", "threshold_days", "last_change_at"],
    USERS: ["tg_user_id", "tz", "notify_hour"],
    GROUPS: ["group_id", "tg_user_id"],
    EVENTS: ["ts", "slot_id", "action", "actor", "note"],
}

_FIRST_DATA_ROW = 2


class RowDecodeError(ValueError):
    """A sheet row does not have the shape of the record it should hold."""


def _cell(row: list[str], idx: int) -> str:
    return str(row[idx]).strip() if idx < len(row) else ""


def _int_cell(row: list[str], idx: int, what: str) -> int:
    raw = _cell(row, idx)
    try:
        return int(raw)
    except ValueError:
        raise RowDecodeError(f"{what} is not an integer: {raw!r}") from None


def decode_slot_row(row: list[str]) -> Slot:
    if len(row) < 6:
        raise RowDecodeError(f"slot row has {len(row)} cells, expected 6")
    slot_id, name, group_id = _cell(row, 0), _cell(row, 1), _cell(row, 2)
    if not slot_id or not name or not group_id:
        raise RowDecodeError("slot row is missing id, name or group_id")
    return Slot(
        id=slot_id,
        name=name,
        group_id=group_id,
        room=_cell(row, 3),
        threshold_days=_int_cell(row, 4, "threshold_days"),
        last_change_at=_cell(row, 5),
    )


def encode_slot_row(slot: Slot) -> list[str]:
    return [
        slot.id, slot.name, slot.group_id, slot.room,
        str(slot.threshold_days), slot.last_change_at,
    ]


def decode_user_row(row: list[str]) -> User:
    if len(row) < 3:
        raise RowDecodeError(f"user row has {len(row)} cells, expected 3")
    tz = _cell(row, 1)
    if not tz:
        raise RowDecodeError("user row has an empty timezone")
    return User(
        actor_id=_int_cell(row, 0, "tg_user_id"),
        timezone=tz,
        notify_hour=_int_cell(row, 2, "notify_hour"),
    )


def decode_group_row(row: list[str]) -> GroupMembership:
    if len(row) < 2 or not _cell(row, 0):
        raise RowDecodeError("group row needs group_id and tg_user_id")
    return GroupMembership(group_id=_cell(row, 0), actor_id=_int_cell(row, 1, "tg_user_id"))


def _find_row(store: TabularStore, sheet: str, key: str) -> int | None:
    """Return the sheet row number whose column A equals ``key``."""
    rows = store.get_values(f"{sheet}!A{_FIRST_DATA_ROW}:A")
    for offset, row in enumerate(rows):
        if _cell(row, 0) == key:
            return _FIRST_DATA_ROW + offset
    return None


class SlotDB:
    """Slots sheet: ``id | name | group_id | room | threshold_days | last_change_at``."""

    def __init__(self, store: TabularStore) -> None:
        self._store = store

    def list_rows(self) -> list[tuple[int, Slot]]:
        """Decode every slot row, skipping (and logging) malformed ones."""
        rows = self._store.get_values(f"{SLOTS}!A{_FIRST_DATA_ROW}:F")
        out: list[tuple[int, Slot]] = []
        for offset, row in enumerate(rows):
            row_number = _FIRST_DATA_ROW + offset
            if not row:
                continue
            try:
                out.append((row_number, decode_slot_row(row)))
            except RowDecodeError as exc:
                logger.warning("Skipping malformed slot row %d: %s", row_number, exc)
        return out

    def list_all(self) -> list[Slot]:
        return [slot for _, slot in self.list_rows()]

    def get_slot(self, slot_id: str) -> tuple[int, Slot] | None:
        """Return ``(row_number, slot)``, or None if the id is absent or its row is malformed."""
        rows = self._store.get_values(f"{SLOTS}!A{_FIRST_DATA_ROW}:F")
        for offset, row in enumerate(rows):
            if _cell(row, 0) != slot_id:
                continue
            row_number = _FIRST_DATA_ROW + offset
            try:
                return row_number, decode_slot_row(row)
            except RowDecodeError as exc:
                # listings skip this row, so lookups treat it as absent too
                logger.warning("Malformed slot row %d for %s: %s", row_number, slot_id, exc)
                return None
        return None

    def add_slot(self, slot: Slot) -> None:
        self._store.append_rows(f"{SLOTS}!A:F", [encode_slot_row(slot)])
        logger.info("Slot added: %s '%s' in group %s", slot.id, slot.name, slot.group_id)

    def set_last_change(self, row_numbers: list[int], timestamp: str) -> None:
        """Write one timestamp into column F of every given row in one batch."""
        updates = [(f"{SLOTS}!F{r}:F{r}", [[timestamp]]) for r in row_numbers]
        if updates:
            self._store.batch_update(updates)

    def apply_patch(self, row_number: int, patch: SlotPatch) -> None:
        updates: list[tuple[str, list[list[str]]]] = []
        if patch.room is not None:
            updates.append((f"{SLOTS}!D{row_number}:D{row_number}", [[patch.room]]))
        if patch.threshold_days is not None:
            updates.append(
                (f"{SLOTS}!E{row_number}:E{row_number}", [[str(patch.threshold_days)]])
            )
        if updates:
            self._store.batch_update(updates)

    def delete_row(self, row_number: int) -> None:
        self._store.delete_row(SLOTS, row_number)


class UserDB:
    """Users sheet: ``tg_user_id | tz | notify_hour``."""

    def __init__(self, store: TabularStore, default_tz: str, default_hour: int) -> None:
        self._store = store
        self._default_tz = default_tz
        self._default_hour = default_hour

    def _default_row(self, actor_id: int, tz: str | None, hour: int | None) -> list[str]:
        return [
            str(actor_id),
            tz or self._default_tz,
            str(hour if hour is not None else self._default_hour),
        ]

    def ensure_user(self, actor_id: int) -> bool:
        """Register the actor with default preferences. Returns True if created."""
        if _find_row(self._store, USERS, str(actor_id)) is not None:
            return False
        self._store.append_rows(f"{USERS}!A:C", [self._default_row(actor_id, None, None)])
        logger.info("User registered: %d", actor_id)
        return True

    def upsert_user(
        self, actor_id: int, timezone: str | None = None, notify_hour: int | None = None,
    ) -> None:
        """Patch only the given preferences, inserting the user if missing."""
        row_number = _find_row(self._store, USERS, str(actor_id))
        if row_number is None:
            self._store.append_rows(
                f"{USERS}!A:C", [self._default_row(actor_id, timezone, notify_hour)],
            )
            logger.info("User registered via preferences: %d", actor_id)
            return

        updates: list[tuple[str, list[list[str]]]] = []
        if timezone is not None:
            updates.append((f"{USERS}!B{row_number}:B{row_number}", [[timezone]]))
        if notify_hour is not None:
            updates.append((f"{USERS}!C{row_number}:C{row_number}", [[str(notify_hour)]]))
        if updates:
            self._store.batch_update(updates)
            logger.info("Preferences updated for user %d", actor_id)

    def get_user(self, actor_id: int) -> User | None:
        for user in self.list_users():
            if user.actor_id == actor_id:
                return user
        return None

    def list_users(self) -> list[User]:
        rows = self._store.get_values(f"{USERS}!A{_FIRST_DATA_ROW}:C")
        users: list[User] = []
        for offset, row in enumerate(rows):
            if not row:
                continue
            try:
                users.append(decode_user_row(row))
            except RowDecodeError as exc:
                logger.warning("Skipping malformed user row %d: %s", _FIRST_DATA_ROW + offset, exc)
        return users


class GroupDB:
    """Groups sheet: one ``group_id | tg_user_id`` row per membership."""

    def __init__(self, store: TabularStore) -> None:
        self._store = store

    def list_memberships(self) -> list[GroupMembership]:
        rows = self._store.get_values(f"{GROUPS}!A{_FIRST_DATA_ROW}:B")
        out: list[GroupMembership] = []
        for offset, row in enumerate(rows):
            if not row:
                continue
            try:
                out.append(decode_group_row(row))
            except RowDecodeError as exc:
                logger.warning("Skipping malformed group row %d: %s", _FIRST_DATA_ROW + offset, exc)
        return out

    def groups_for(self, actor_id: int) -> list[str]:
        """Group ids the actor belongs to, in sheet order, without duplicates."""
        seen: list[str] = []
        for m in self.list_memberships():
            if m.actor_id == actor_id and m.group_id not in seen:
                seen.append(m.group_id)
        return seen

    def members_of(self, group_id: str) -> list[int]:
        return [m.actor_id for m in self.list_memberships() if m.group_id == group_id]

    def add_member(self, group_id: str, actor_id: int) -> None:
        self._store.append_rows(f"{GROUPS}!A:B", [[group_id, str(actor_id)]])
        logger.info("Actor %d joined group %s", actor_id, group_id)


class EventLog:
    """Events sheet: write-only audit trail."""

    def __init__(self, store: TabularStore) -> None:
        self._store = store

    def append(self, events: list[Event]) -> None:
        if not events:
            return
        rows = [[e.timestamp, e.slot_id, e.action, e.actor_id, e.note] for e in events]
        self._store.append_rows(f"{EVENTS}!A:E", rows)
