"""Telegram notification adapter — implements NotificationPort.

Wraps a telegram.Bot instance to satisfy the NotificationPort protocol.
"""

from __future__ import annotations

import logging

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, LinkPreviewOptions
from telegram.constants import ParseMode

from towel_tracker.ports.notification_port import ButtonRow

logger = logging.getLogger(__name__)

NO_PREVIEW = LinkPreviewOptions(is_disabled=True)


def build_keyboard(buttons: list[ButtonRow] | None) -> InlineKeyboardMarkup | None:
    """Rows of ``(label, payload)``; payloads starting with http become URL buttons."""
    if not buttons:
        return None
    return InlineKeyboardMarkup([
        [
            InlineKeyboardButton(label, url=payload)
            if payload.startswith(("http://", "https://"))
            else InlineKeyboardButton(label, callback_data=payload)
            for label, payload in row
        ]
        for row in buttons
    ])


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_message(
        self, user_id: int, text: str, buttons: list[ButtonRow] | None = None,
    ) -> None:
        await self._bot.send_message(
            chat_id=user_id,
            text=text,
            parse_mode=ParseMode.HTML,
            reply_markup=build_keyboard(buttons),
            link_preview_options=NO_PREVIEW,
        )
