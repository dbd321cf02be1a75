"""Notification port — abstract interface for sending chat messages with optional buttons.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Protocol

# One keyboard row: (label, payload). Payloads starting with "http" are URLs,
# anything else is opaque callback data.
ButtonRow = list[tuple[str, str]]


class NotificationPort(Protocol):
    """Abstract notification interface used by core modules."""

    async def send_message(
        self, user_id: int, text: str, buttons: list[ButtonRow] | None = None,
    ) -> None: ...
