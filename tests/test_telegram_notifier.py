"""Tests for towel_tracker.adapters.telegram_notifier — keyboard building and sending."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram.constants import ParseMode

from towel_tracker.adapters.telegram_notifier import NO_PREVIEW, TelegramNotifier, build_keyboard


def test_no_buttons_no_keyboard():
    assert build_keyboard(None) is None
    assert build_keyboard([]) is None


def test_url_and_callback_buttons():
    markup = build_keyboard([
        [("🔄 Towel", "refresh:abc"), ("3d", "setth:abc:3")],
        [("🌐 Web panel", "https://towels.example/login?token=x")],
    ])
    first, second = markup.inline_keyboard
    assert first[0].callback_data == "refresh:abc"
    assert first[1].callback_data == "setth:abc:3"
    assert second[0].url == "https://towels.example/login?token=x"
    assert second[0].callback_data is None


@pytest.mark.asyncio
async def test_send_message_uses_html_without_previews():
    bot = MagicMock()
    bot.send_message = AsyncMock()
    await TelegramNotifier(bot).send_message(42, "<b>hi</b>", [[("ok", "ui:list")]])
    kwargs = bot.send_message.call_args.kwargs
    assert kwargs["chat_id"] == 42
    assert kwargs["parse_mode"] == ParseMode.HTML
    assert kwargs["link_preview_options"] is NO_PREVIEW
    assert kwargs["reply_markup"].inline_keyboard[0][0].callback_data == "ui:list"
