"""Tests for towel_tracker.core.reminders — hourly overdue notifications."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from towel_tracker.core.reminders import (
    MAX_BUTTONS,
    format_reminder,
    local_hour,
    overdue_slots,
    send_reminders,
    shorten,
)

OWNER = 1001


class TestHelpers:
    def test_local_hour_in_zone(self):
        moment = datetime(2024, 3, 1, 7, 0, tzinfo=timezone.utc)
        assert local_hour(moment, "Europe/Moscow") == 10

    def test_unknown_zone_falls_back_to_utc(self):
        moment = datetime(2024, 3, 1, 7, 0, tzinfo=timezone.utc)
        assert local_hour(moment, "Mars/Olympus") == 7

    def test_shorten(self):
        assert shorten("short", 18) == "short"
        assert shorten("a" * 20, 18) == "a" * 17 + "…"


class TestFormatting:
    def test_overdue_excludes_fresh_slots(self, registry, clock):
        registry.create_slot("Slow", OWNER, threshold_days=4)
        registry.create_slot("Fast", OWNER, threshold_days=2)
        registry.create_slot("Fresh", OWNER, threshold_days=30)
        clock.advance(days=4)
        due = overdue_slots(registry.list_slots(OWNER))
        assert [v.name for v in due] == ["Slow", "Fast"]

    def test_reminder_text_and_buttons(self, registry, clock):
        views = [registry.create_slot(f"Towel {i}", OWNER, threshold_days=1) for i in range(8)]
        text, buttons = format_reminder(views)
        assert text.startswith("Reminder:\n")
        assert text.count("\n") == 8
        assert len(buttons) == MAX_BUTTONS
        assert buttons[0] == [("🔄 Towel 0", f"refresh:{views[0].id}")]

    def test_names_are_html_escaped(self, registry):
        view = registry.create_slot("<b>Towel</b>", OWNER)
        text, _ = format_reminder([view])
        assert "&lt;b&gt;Towel&lt;/b&gt;" in text


class TestSendReminders:
    @pytest.mark.asyncio
    async def test_reminds_at_notify_hour(self, registry, user_db, clock):
        user_db.ensure_user(OWNER)
        registry.create_slot("Towel", OWNER, threshold_days=3)
        clock.advance(days=3, hours=1)  # 10:00 UTC, age 3
        notifier = AsyncMock()

        sent = await send_reminders(notifier, registry, user_db, now=clock.now)

        assert sent == 1
        chat_id, text, buttons = notifier.send_message.call_args.args
        assert chat_id == OWNER
        assert "Towel" in text
        assert buttons[0][0][1].startswith("refresh:")

    @pytest.mark.asyncio
    async def test_skips_other_hours(self, registry, user_db, clock):
        user_db.ensure_user(OWNER)
        registry.create_slot("Towel", OWNER, threshold_days=1)
        clock.advance(days=3)  # 09:00 UTC
        notifier = AsyncMock()
        assert await send_reminders(notifier, registry, user_db, now=clock.now) == 0
        notifier.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_nothing_overdue_sends_nothing(self, registry, user_db, clock):
        user_db.ensure_user(OWNER)
        registry.create_slot("Towel", OWNER, threshold_days=6)
        clock.advance(days=5, hours=1)  # EXPIRED tier, but not yet overdue
        notifier = AsyncMock()
        assert await send_reminders(notifier, registry, user_db, now=clock.now) == 0

    @pytest.mark.asyncio
    async def test_user_timezone_respected(self, registry, user_db, clock):
        user_db.upsert_user(OWNER, timezone="Asia/Tokyo", notify_hour=19)
        registry.create_slot("Towel", OWNER, threshold_days=1)
        clock.advance(days=1, hours=1)  # 10:00 UTC is 19:00 in Tokyo
        notifier = AsyncMock()
        assert await send_reminders(notifier, registry, user_db, now=clock.now) == 1

    @pytest.mark.asyncio
    async def test_failure_for_one_user_does_not_stop_others(self, registry, user_db, clock):
        user_db.ensure_user(1)
        user_db.ensure_user(2)
        registry.create_slot("A", 1, threshold_days=1)
        registry.create_slot("B", 2, threshold_days=1)
        clock.advance(days=1, hours=1)
        notifier = AsyncMock()
        notifier.send_message.side_effect = [RuntimeError("blocked by user"), None]

        sent = await send_reminders(notifier, registry, user_db, now=clock.now)

        assert sent == 1
        assert notifier.send_message.call_count == 2
