"""Domain errors raised by the slot registry and access checks.

The web and bot layers map each class to its own user-visible outcome;
none of them is ever raised for an invalid token (that is just "no identity").
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for towel tracker domain errors."""


class SlotNotFoundError(TrackerError):
    """The referenced slot id is not present in storage."""

    def __init__(self, slot_id: str) -> None:
        super().__init__(f"Slot {slot_id} not found")
        self.slot_id = slot_id


class ForbiddenError(TrackerError):
    """The actor has no group membership covering the slot."""

    def __init__(self, slot_id: str, actor_id: int) -> None:
        super().__init__(f"Actor {actor_id} may not modify slot {slot_id}")
        self.slot_id = slot_id
        self.actor_id = actor_id


class SlotValidationError(TrackerError):
    """A required field is missing or a value is unusable after normalization."""
