"""Access resolver — who may see and change which slots.

Slots belong to groups, not to people. Everyone who shares a group (room-mates
sharing a bathroom, say) sees and refreshes the same slots.
"""

from __future__ import annotations

import logging

from towel_tracker.data.db import GroupDB
from towel_tracker.data.models import Slot

logger = logging.getLogger(__name__)


def self_group(actor_id: int) -> str:
    """The personal group every actor gets on first contact."""
    return f"tg:{actor_id}"


def has_access(slot: Slot, actor_id: int | None, groups: list[str] | set[str]) -> bool:
    """Check whether ``actor_id`` may act on ``slot``.

    ``actor_id=None`` is the system context (cron, internal listings) and is
    always allowed. Rows written before groups existed store the owner's bare
    numeric id in ``group_id``; those still match their owner.
    """
    if actor_id is None:
        return True
    if slot.group_id in groups:
        return True
    # TODO: drop once every legacy numeric group_id row has been rewritten to "tg:<id>"
    try:
        return int(slot.group_id) == actor_id
    except ValueError:
        return False


class AccessResolver:
    """Resolves group memberships from the groups sheet."""

    def __init__(self, group_db: GroupDB) -> None:
        self._groups = group_db

    def resolve_groups(self, actor_id: int, ensure_default: bool = False) -> list[str]:
        """Groups of ``actor_id`` in membership order.

        With no memberships the self-group is returned; it is persisted only
        when ``ensure_default`` is set.
        """
        groups = self._groups.groups_for(actor_id)
        if groups:
            return groups
        fallback = self_group(actor_id)
        if ensure_default:
            self._groups.add_member(fallback, actor_id)
            logger.info("Default group %s created for actor %d", fallback, actor_id)
        return [fallback]

    def primary_group(self, actor_id: int) -> str:
        """The group new slots of ``actor_id`` are filed under."""
        return self.resolve_groups(actor_id, ensure_default=True)[0]

    def add_member(self, group_id: str, actor_id: int) -> bool:
        """Add ``actor_id`` to ``group_id``. Returns False if already a member."""
        if actor_id in self._groups.members_of(group_id):
            return False
        self._groups.add_member(group_id, actor_id)
        return True
