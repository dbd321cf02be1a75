"""
Towel Tracker — Hourly reminders.

Runs once an hour (job queue in polling mode, ``/__cron`` in webhook mode).
Each user is reminded at their own ``notify_hour`` in their own timezone
about the slots that are overdue (age >= threshold).

This module is provider-agnostic: it depends on NotificationPort, not on a
specific messaging implementation.
"""

from __future__ import annotations

import html
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from towel_tracker.core.freshness import is_overdue, status_emoji

if TYPE_CHECKING:
    from towel_tracker.core.slot_registry import SlotRegistry
    from towel_tracker.data.db import UserDB
    from towel_tracker.data.models import SlotView, User
    from towel_tracker.ports.notification_port import ButtonRow, NotificationPort

logger = logging.getLogger(__name__)

MAX_BUTTONS = 6


def local_hour(moment: datetime, tz_name: str) -> int:
    """Hour of ``moment`` in ``tz_name``; unknown zones fall back to UTC."""
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using UTC", tz_name)
        tz = timezone.utc
    return moment.astimezone(tz).hour


def shorten(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit - 1] + "…"


def overdue_slots(views: list[SlotView]) -> list[SlotView]:
    """Overdue slots, most stale (lowest score) first."""
    due = [v for v in views if is_overdue(v.freshness.age_days, v.slot.threshold_days)]
    return sorted(due, key=lambda v: v.score)


def format_reminder(views: list[SlotView]) -> tuple[str, list[ButtonRow]]:
    """Build the reminder text and one refresh button per slot (max 6)."""
    lines = [
        f"{status_emoji(v.status)} {html.escape(v.name)} — "
        f"{v.freshness.age_days} d (threshold {v.slot.threshold_days})"
        for v in views
    ]
    buttons = [
        [(f"🔄 {shorten(v.name, 18)}", f"refresh:{v.id}")]
        for v in views[:MAX_BUTTONS]
    ]
    return "Reminder:\n" + "\n".join(lines), buttons


async def _remind_user(
    user: User, registry: SlotRegistry, notifier: NotificationPort,
) -> bool:
    due = overdue_slots(registry.list_slots(user.actor_id))
    if not due:
        return False
    text, buttons = format_reminder(due)
    await notifier.send_message(user.actor_id, text, buttons)
    return True


async def send_reminders(
    notifier: NotificationPort,
    registry: SlotRegistry,
    user_db: UserDB,
    now: datetime | None = None,
) -> int:
    """Remind every user whose local hour matches their notify hour.

    Returns the number of reminders sent. A failure for one user is logged
    and the loop moves on.
    """
    now = now or datetime.now(timezone.utc)
    sent = 0
    for user in user_db.list_users():
        if local_hour(now, user.timezone) != user.notify_hour:
            continue
        try:
            if await _remind_user(user, registry, notifier):
                sent += 1
                logger.info("Reminder sent to user %d", user.actor_id)
        except Exception as exc:
            logger.error("Failed to send reminder to %d: %s", user.actor_id, exc)
    return sent
