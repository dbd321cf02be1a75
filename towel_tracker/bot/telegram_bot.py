"""
Towel Tracker — Telegram Bot.

The bot is the main way in: it registers users, creates and refreshes slots,
stores reminder preferences and hands out magic links to the web panel.

Every slot mutation passes the chat id as the acting identity, so group
access rules apply here exactly as they do on the web API.
"""

from __future__ import annotations

import html
import logging
import re
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from towel_tracker.config import settings
from towel_tracker.core.errors import ForbiddenError, SlotNotFoundError, SlotValidationError
from towel_tracker.core.freshness import status_emoji
from towel_tracker.core.reminders import MAX_BUTTONS, shorten
from towel_tracker.core.tokens import build_magic_link
from towel_tracker.data.models import SlotPatch
from towel_tracker.ports.storage_port import StorageError

if TYPE_CHECKING:
    from towel_tracker.core.slot_registry import SlotRegistry
    from towel_tracker.data.db import UserDB
    from towel_tracker.ports.notification_port import ButtonRow, NotificationPort
    from towel_tracker.ports.storage_port import TabularStore

logger = logging.getLogger(__name__)

DASHBOARD_LINK_TTL_SECONDS = 45 * 60
THRESHOLD_CHOICES = (1, 2, 3, 5)

_ADD_RE = re.compile(r"^(?P<name>.+?)\s*\|\s*(?P<days>\d{1,3})(?:\s*\|\s*(?P<room>.+))?$")

_SHEET_HINT = (
    "Couldn't read the spreadsheet. Give the service account Editor access "
    "to the Google Sheet."
)


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores users outside ALLOWED_USER_IDS.

    An empty allowlist means the bot is open to everyone; access to slots is
    then governed by group membership alone. Every served chat is registered
    as a user on first contact so that reminders reach it.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        allowed = settings.ALLOWED_USER_IDS
        user = update.effective_user
        if allowed and (user is None or user.id not in allowed):
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        _register_chat(update, context)
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _register_chat(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    chat = update.effective_chat
    if chat is None:
        return
    try:
        _user_db(context).ensure_user(chat.id)
    except StorageError as exc:
        logger.error("Registering user %d failed: %s", chat.id, exc)


def _registry(context: ContextTypes.DEFAULT_TYPE) -> SlotRegistry:
    return context.bot_data["registry"]


def _user_db(context: ContextTypes.DEFAULT_TYPE) -> UserDB:
    return context.bot_data["user_db"]


def _notifier(context: ContextTypes.DEFAULT_TYPE) -> NotificationPort:
    return context.bot_data["notifier"]


def _command_arg(text: str | None) -> str:
    """Everything after the command word, stripped."""
    return (text or "").strip().partition(" ")[2].strip()


def parse_add_command(arg: str) -> tuple[str, int, str] | None:
    """Parse ``Name | Days`` or ``Name | Days | Room``. Returns None on bad input."""
    m = _ADD_RE.match(arg.strip())
    if m is None:
        return None
    return m["name"].strip(), int(m["days"]), (m["room"] or "").strip()


def format_slot_list(registry: SlotRegistry, actor_id: int) -> tuple[str, list[ButtonRow]]:
    """Listing text sorted by score (stalest first) plus per-slot buttons."""
    views = sorted(registry.list_slots(actor_id), key=lambda v: v.score)
    if not views:
        return "No slots yet. Create one: <code>/add Name | Days</code>", []

    lines = [
        f"{status_emoji(v.status)} {html.escape(v.name)} — "
        f"{v.freshness.age_days} d / threshold {v.slot.threshold_days} • {round(v.score)}%"
        for v in views
    ]
    buttons: list[ButtonRow] = [
        [(f"🔄 {shorten(v.name, 18)}", f"refresh:{v.id}")]
        + [(f"{d}d", f"setth:{v.id}:{d}") for d in THRESHOLD_CHOICES]
        for v in views[:MAX_BUTTONS]
    ]
    return "\n".join(lines), buttons


async def _send_list(chat_id: int, context: ContextTypes.DEFAULT_TYPE) -> None:
    notifier = _notifier(context)
    try:
        text, buttons = format_slot_list(_registry(context), chat_id)
    except StorageError as exc:
        logger.error("Listing slots for %d failed: %s", chat_id, exc)
        await notifier.send_message(chat_id, _SHEET_HINT)
        return
    await notifier.send_message(chat_id, text, buttons)


def _magic_link(actor_id: int, ttl_seconds: int) -> str:
    return build_magic_link(settings.PUBLIC_URL, actor_id, ttl_seconds, settings.WEB_JWT_SECRET)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — create the default group, then show the main menu."""
    chat_id = update.effective_chat.id
    try:
        _registry(context).access.resolve_groups(chat_id, ensure_default=True)
    except StorageError as exc:
        logger.error("Creating default group for %d failed: %s", chat_id, exc)

    link = _magic_link(chat_id, settings.MAGIC_LINK_TTL_SECONDS)
    buttons: list[ButtonRow] = [
        [("➕ Add slot", "ui:add"), ("📋 List", "ui:list")],
        [("⏰ Reminder time", "ui:settings")],
    ]
    if link:
        buttons.append([("🌐 Web panel (login)", link)])

    minutes = settings.MAGIC_LINK_TTL_SECONDS // 60
    await _notifier(context).send_message(
        chat_id,
        "Hi! I keep track of how fresh your towels are.\n\n"
        "— Create a slot: <code>/add Name | Days</code>\n"
        + (
            f"— Open the web panel with the button below (the link is valid for {minutes} minutes)."
            if link
            else "— Admin: set PUBLIC_URL to enable the web panel login button."
        ),
        buttons,
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "<b>Available commands:</b>\n"
        "/add Name | Days [| Room] — Create a slot\n"
        "/list — Show your slots\n"
        "/room Room — Mark every slot in a room as replaced\n"
        "/delete — Delete a slot\n"
        "/sethour 10 — Reminder hour (0–23)\n"
        "/settz Europe/Moscow — Your timezone\n"
        "/invite &lt;chat id&gt; — Share your slots with someone\n"
        "/groups — Show your groups\n"
        "/help — Show this message",
        parse_mode="HTML",
    )


@authorized_only
async def cmd_add(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /add Name | Days [| Room]."""
    chat_id = update.effective_chat.id
    parsed = parse_add_command(_command_arg(update.message.text))
    if parsed is None:
        await update.message.reply_text(
            "Format:\n<code>/add Hand towel | 3</code>\n"
            "or <code>/add Hand towel | 3 | Bathroom</code>",
            parse_mode="HTML",
        )
        return

    name, days, room = parsed
    try:
        view = _registry(context).create_slot(name, chat_id, room=room, threshold_days=days)
    except SlotValidationError as exc:
        await update.message.reply_text(f"Couldn't create the slot: {exc}")
        return
    except StorageError as exc:
        logger.error("/add failed for %d: %s", chat_id, exc)
        await update.message.reply_text(_SHEET_HINT)
        return

    await update.message.reply_text(
        f"Slot «{html.escape(view.name)}» created. Threshold: {view.slot.threshold_days} d.",
        parse_mode="HTML",
    )


@authorized_only
async def cmd_list(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /list (and the plain "List" keyboard text)."""
    await _send_list(update.effective_chat.id, context)


@authorized_only
async def cmd_room(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /room <Room> — batch refresh."""
    chat_id = update.effective_chat.id
    room = _command_arg(update.message.text)
    if not room:
        await update.message.reply_text("Format: <code>/room Bathroom</code>", parse_mode="HTML")
        return
    try:
        updated = _registry(context).refresh_room(chat_id, room)
    except StorageError as exc:
        logger.error("/room failed for %d: %s", chat_id, exc)
        await update.message.reply_text(_SHEET_HINT)
        return
    if updated == 0:
        await update.message.reply_text(f"No slots in room «{html.escape(room)}».", parse_mode="HTML")
        return
    await update.message.reply_text(
        f"✅ Refreshed {updated} slot(s) in «{html.escape(room)}».", parse_mode="HTML",
    )


@authorized_only
async def cmd_sethour(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /sethour N."""
    arg = _command_arg(update.message.text)
    if not re.fullmatch(r"\d{1,2}", arg):
        await update.message.reply_text("Format: <code>/sethour 10</code>", parse_mode="HTML")
        return
    hour = max(0, min(23, int(arg)))
    try:
        _user_db(context).upsert_user(update.effective_chat.id, notify_hour=hour)
    except StorageError as exc:
        logger.error("/sethour failed for %d: %s", update.effective_chat.id, exc)
        await update.message.reply_text(_SHEET_HINT)
        return
    await update.message.reply_text(f"I'll remind you at {hour:02d}:00.")


@authorized_only
async def cmd_settz(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /settz Area/City."""
    tz = _command_arg(update.message.text)
    if not tz:
        await update.message.reply_text("Format: <code>/settz Europe/Moscow</code>", parse_mode="HTML")
        return
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        await update.message.reply_text(f"Unknown timezone: {tz}")
        return
    try:
        _user_db(context).upsert_user(update.effective_chat.id, timezone=tz)
    except StorageError as exc:
        logger.error("/settz failed for %d: %s", update.effective_chat.id, exc)
        await update.message.reply_text(_SHEET_HINT)
        return
    await update.message.reply_text(f"Timezone updated: {tz}")


@authorized_only
async def cmd_delete(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete — show visible slots as buttons to pick from."""
    chat_id = update.effective_chat.id
    try:
        views = _registry(context).list_slots(chat_id)
    except StorageError as exc:
        logger.error("/delete failed for %d: %s", chat_id, exc)
        await update.message.reply_text(_SHEET_HINT)
        return

    if not views:
        await update.message.reply_text("No slots to delete.")
        return

    await _notifier(context).send_message(
        chat_id,
        "Which slot do you want to delete?",
        [[(v.name, f"delslot:{v.id}")] for v in views],
    )


@authorized_only
async def cmd_invite(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /invite <chat id> — add someone to the caller's primary group."""
    chat_id = update.effective_chat.id
    arg = _command_arg(update.message.text)
    if not re.fullmatch(r"-?\d+", arg):
        await update.message.reply_text("Format: <code>/invite 123456789</code>", parse_mode="HTML")
        return

    access = _registry(context).access
    try:
        group_id = access.primary_group(chat_id)
        added = access.add_member(group_id, int(arg))
    except StorageError as exc:
        logger.error("/invite failed for %d: %s", chat_id, exc)
        await update.message.reply_text(_SHEET_HINT)
        return
    if added:
        await update.message.reply_text(f"✅ {arg} now shares group {group_id} with you.")
    else:
        await update.message.reply_text(f"{arg} is already in group {group_id}.")


@authorized_only
async def cmd_groups(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /groups — list the caller's groups."""
    chat_id = update.effective_chat.id
    try:
        groups = _registry(context).access.resolve_groups(chat_id)
    except StorageError as exc:
        logger.error("/groups failed for %d: %s", chat_id, exc)
        await update.message.reply_text(_SHEET_HINT)
        return
    await update.message.reply_text("Your groups:\n" + "\n".join(f"• {g}" for g in groups))


# ---------------------------------------------------------------------------
# Callback handlers (inline buttons)
# ---------------------------------------------------------------------------


@authorized_only
async def _handle_ui_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Menu buttons: ui:add, ui:list, ui:settings, ui:dashboard."""
    query = update.callback_query
    chat_id = update.effective_chat.id
    action = query.data.split(":", 1)[1]
    notifier = _notifier(context)

    if action == "add":
        await notifier.send_message(
            chat_id,
            "Create a slot with:\n<code>/add Name | Days</code>\n"
            "For example: <code>/add Hand towel | 3</code>",
        )
        await query.answer("Waiting for /add")
    elif action == "list":
        await _send_list(chat_id, context)
        await query.answer()
    elif action == "settings":
        await notifier.send_message(
            chat_id,
            "Time: <code>/sethour 10</code>\nTimezone: <code>/settz Europe/Moscow</code>",
        )
        await query.answer()
    elif action == "dashboard":
        link = _magic_link(chat_id, DASHBOARD_LINK_TTL_SECONDS)
        if link:
            await notifier.send_message(
                chat_id, f"Web panel login: {html.escape(link)}\n(The link is valid for 45 minutes)",
            )
        else:
            await notifier.send_message(chat_id, "PUBLIC_URL is not configured — web login is unavailable.")
        await query.answer()
    else:
        await query.answer()


async def _run_slot_action(
    update: Update, context: ContextTypes.DEFAULT_TYPE, action: Callable[[], Any], done_text: str,
) -> bool:
    """Run a slot mutation, turning domain errors into callback alerts."""
    query = update.callback_query
    try:
        action()
    except ForbiddenError:
        await query.answer("Access denied", show_alert=True)
        return False
    except SlotNotFoundError:
        await query.answer("Slot not found", show_alert=True)
        return False
    except SlotValidationError as exc:
        await query.answer(str(exc), show_alert=True)
        return False
    except StorageError as exc:
        logger.error("Slot action failed: %s", exc)
        await query.answer("Storage error, please try again", show_alert=True)
        return False
    await query.answer(done_text)
    return True


@authorized_only
async def _handle_refresh_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """refresh:<slot id>"""
    chat_id = update.effective_chat.id
    slot_id = update.callback_query.data.split(":", 1)[1]
    ok = await _run_slot_action(
        update, context, lambda: _registry(context).refresh_slot(slot_id, actor_id=chat_id), "Refreshed",
    )
    if ok:
        await _send_list(chat_id, context)


@authorized_only
async def _handle_threshold_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """setth:<slot id>:<days>"""
    chat_id = update.effective_chat.id
    _, slot_id, days = update.callback_query.data.split(":")
    patch = SlotPatch(threshold_days=int(days))
    ok = await _run_slot_action(
        update, context,
        lambda: _registry(context).update_slot(slot_id, patch, actor_id=chat_id),
        f"Threshold: {days} d",
    )
    if ok:
        await _send_list(chat_id, context)


@authorized_only
async def _handle_delete_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """delslot:<slot id>"""
    chat_id = update.effective_chat.id
    query = update.callback_query
    slot_id = query.data.split(":", 1)[1]
    ok = await _run_slot_action(
        update, context, lambda: _registry(context).delete_slot(slot_id, actor_id=chat_id), "Deleted",
    )
    if ok:
        await query.edit_message_text("✅ Slot deleted.")


# ---------------------------------------------------------------------------
# Application wiring
# ---------------------------------------------------------------------------


def _seconds_until_next_hour(now: datetime | None = None) -> float:
    now = now or datetime.now(timezone.utc)
    next_hour = (now + timedelta(hours=1)).replace(minute=0, second=0, microsecond=0)
    return (next_hour - now).total_seconds()


def build_app(
    store: TabularStore | None = None,
    notifier: NotificationPort | None = None,
    schedule_reminders: bool = True,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        store: Tabular storage. Defaults to the STORAGE_PROVIDER adapter.
        notifier: Notification port. Defaults to TelegramNotifier over the app's bot.
        schedule_reminders: Register the hourly job (polling mode). Webhook
            deployments trigger reminders through ``/__cron`` instead.
    """
    from towel_tracker.core.slot_registry import SlotRegistry
    from towel_tracker.data.db import UserDB

    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    if store is None:
        from towel_tracker.adapters.storage_factory import create_storage_adapter
        store = create_storage_adapter()

    if notifier is None:
        from towel_tracker.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot)

    app.bot_data["registry"] = SlotRegistry(
        store, default_threshold_days=settings.DEFAULT_THRESHOLD_DAYS,
    )
    app.bot_data["user_db"] = UserDB(store, settings.DEFAULT_TZ, settings.DEFAULT_NOTIFY_HOUR)
    app.bot_data["notifier"] = notifier

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("add", cmd_add))
    app.add_handler(CommandHandler("list", cmd_list))
    app.add_handler(CommandHandler("room", cmd_room))
    app.add_handler(CommandHandler("delete", cmd_delete))
    app.add_handler(CommandHandler("sethour", cmd_sethour))
    app.add_handler(CommandHandler("settz", cmd_settz))
    app.add_handler(CommandHandler("invite", cmd_invite))
    app.add_handler(CommandHandler("groups", cmd_groups))

    # Inline buttons
    app.add_handler(CallbackQueryHandler(_handle_ui_callback, pattern=r"^ui:"))
    app.add_handler(CallbackQueryHandler(_handle_refresh_callback, pattern=r"^refresh:[^:]+$"))
    app.add_handler(CallbackQueryHandler(_handle_threshold_callback, pattern=r"^setth:[^:]+:\d{1,3}$"))
    app.add_handler(CallbackQueryHandler(_handle_delete_callback, pattern=r"^delslot:[^:]+$"))

    # Plain "List" text from a reply keyboard
    app.add_handler(MessageHandler(filters.Regex(r"^(📋 )?List$") & ~filters.COMMAND, cmd_list))

    if schedule_reminders:
        _setup_reminders(app)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def _setup_reminders(app: Application) -> None:
    """Register the hourly reminder job, aligned to the top of the hour."""
    from towel_tracker.core.reminders import send_reminders

    async def _reminder_job_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
        await send_reminders(
            context.bot_data["notifier"],
            context.bot_data["registry"],
            context.bot_data["user_db"],
        )

    app.job_queue.run_repeating(
        _reminder_job_callback,
        interval=settings.REMINDER_INTERVAL_MINUTES * 60,
        first=_seconds_until_next_hour(),
        name="hourly_reminders",
    )
    logger.info("Reminders scheduled every %d minutes", settings.REMINDER_INTERVAL_MINUTES)


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting Towel Tracker bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
