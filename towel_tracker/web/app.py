"""
Towel Tracker — Web panel and HTTP API.

Routes:
    GET  /health                  liveness probe
    POST /tg/webhook              Telegram updates (secret header required)
    GET  /__cron                  run the hourly reminders now
    GET  /login?token=...         exchange a magic link for a session cookie
    GET  /, /dashboard            HTML panel (session required)
    GET  /api/slots               visible slots with freshness
    POST /api/slots               create {name, room?, threshold_days?}
    POST /api/slots/{id}/refresh  mark one slot as replaced
    PATCH /api/slots/{id}         patch {room?, threshold_days?}
    DELETE /api/slots/{id}        delete (POST /api/slots/{id}/delete for forms)
    POST /api/rooms/refresh       batch refresh {room}
    GET  /diag                    configuration and storage checks

Run with ``uvicorn --factory towel_tracker.web.app:create_app`` or ``python main.py web``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse
from pydantic import BaseModel

from towel_tracker.config import settings
from towel_tracker.core.errors import ForbiddenError, SlotNotFoundError, SlotValidationError
from towel_tracker.core.slot_registry import SlotRegistry
from towel_tracker.core.tokens import issue_token, verify_token
from towel_tracker.data.db import UserDB
from towel_tracker.data.models import SlotPatch
from towel_tracker.ports.notification_port import NotificationPort
from towel_tracker.ports.storage_port import StorageError, TabularStore
from towel_tracker.web.dashboard import render_dashboard, render_diag, render_login_required

logger = logging.getLogger(__name__)

SESSION_COOKIE = "sid"
WEBHOOK_SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"

router = APIRouter()


class SlotUpdateRequest(BaseModel):
    room: str | None = None
    threshold_days: int | None = None


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------


def current_actor(request: Request) -> int | None:
    """Actor id from the session cookie (or a Bearer header); None if absent or invalid."""
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        auth = request.headers.get("authorization", "")
        if auth.lower().startswith("bearer "):
            token = auth[7:].strip()
    if not token:
        return None
    payload = verify_token(token, settings.WEB_JWT_SECRET)
    if payload is None:
        return None
    try:
        return int(payload.subject)
    except ValueError:
        return None


def require_actor(actor: int | None = Depends(current_actor)) -> int:
    if actor is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized")
    return actor


def _is_form(request: Request) -> bool:
    ctype = request.headers.get("content-type", "").lower()
    return "application/x-www-form-urlencoded" in ctype or "multipart/form-data" in ctype


async def read_body(request: Request) -> dict[str, Any]:
    """JSON or form body as a dict; query parameters when there is neither."""
    ctype = request.headers.get("content-type", "").lower()
    if "application/json" in ctype:
        data = await request.json()
        return data if isinstance(data, dict) else {}
    if _is_form(request):
        form = await request.form()
        return {k: v for k, v in form.items()}
    return dict(request.query_params)


def _done(request: Request, payload: dict) -> JSONResponse | RedirectResponse:
    """Dashboard forms go back to the dashboard; API clients get JSON."""
    if _is_form(request):
        return RedirectResponse("/dashboard", status_code=status.HTTP_303_SEE_OTHER)
    return JSONResponse(payload)


def _registry(request: Request) -> SlotRegistry:
    return request.app.state.registry


# ---------------------------------------------------------------------------
# Public routes
# ---------------------------------------------------------------------------


@router.get("/health", response_class=PlainTextResponse)
async def health() -> str:
    return "healthy"


@router.post("/tg/webhook")
async def telegram_webhook(request: Request):
    secret = request.headers.get(WEBHOOK_SECRET_HEADER)
    if not settings.TELEGRAM_WEBHOOK_SECRET or secret != settings.TELEGRAM_WEBHOOK_SECRET:
        return PlainTextResponse("forbidden", status_code=status.HTTP_403_FORBIDDEN)

    telegram_app = request.app.state.telegram_app
    if telegram_app is None:
        return PlainTextResponse("bot not configured", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)

    from telegram import Update

    update = Update.de_json(await request.json(), telegram_app.bot)
    await telegram_app.process_update(update)
    return {"ok": True}


@router.get("/__cron")
async def run_cron(request: Request):
    from towel_tracker.core.reminders import send_reminders

    sent = await send_reminders(
        request.app.state.notifier, _registry(request), request.app.state.user_db,
    )
    return {"ok": True, "cron": True, "sent": sent}


@router.get("/login")
async def login(token: str | None = None):
    if not token:
        return PlainTextResponse("token required", status_code=status.HTTP_400_BAD_REQUEST)
    magic = verify_token(token, settings.WEB_JWT_SECRET)
    if magic is None or not magic.subject:
        return PlainTextResponse("invalid token", status_code=status.HTTP_401_UNAUTHORIZED)

    session = issue_token(magic.subject, settings.SESSION_TTL_SECONDS, settings.WEB_JWT_SECRET)
    response = RedirectResponse("/dashboard", status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        SESSION_COOKIE,
        session,
        max_age=settings.SESSION_TTL_SECONDS,
        path="/",
        secure=True,
        httponly=True,
        samesite="lax",
    )
    logger.info("Web session started for actor %s", magic.subject)
    return response


@router.get("/diag", response_class=HTMLResponse)
async def diagnostics(request: Request) -> str:
    checks: list[tuple[str, bool, str]] = [
        ("STORAGE_PROVIDER", bool(settings.STORAGE_PROVIDER), settings.STORAGE_PROVIDER),
        ("SPREADSHEET_ID", bool(settings.SPREADSHEET_ID), ""),
        ("GOOGLE_CLIENT_EMAIL", bool(settings.GOOGLE_CLIENT_EMAIL), settings.GOOGLE_CLIENT_EMAIL),
        ("GOOGLE_PRIVATE_KEY", bool(settings.GOOGLE_PRIVATE_KEY), "set" if settings.GOOGLE_PRIVATE_KEY else ""),
        ("GOOGLE_SERVICE_ACCOUNT_FILE", bool(settings.GOOGLE_SERVICE_ACCOUNT_FILE), settings.GOOGLE_SERVICE_ACCOUNT_FILE),
        ("WEB_JWT_SECRET", bool(settings.WEB_JWT_SECRET), ""),
        ("PUBLIC_URL", bool(settings.PUBLIC_URL), settings.PUBLIC_URL),
    ]
    store: TabularStore = request.app.state.store
    try:
        header = store.get_values("slots!A1:F1")
        checks.append(("Sheets — slots!A1:F1", True, str(header)))
    except StorageError as exc:
        checks.append(("Sheets — slots!A1:F1", False, str(exc)))
    return render_diag(checks)


# ---------------------------------------------------------------------------
# Session routes
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(request: Request, actor: int | None = Depends(current_actor)):
    if actor is None:
        return HTMLResponse(
            render_login_required(bool(settings.PUBLIC_URL)),
            status_code=status.HTTP_401_UNAUTHORIZED,
        )
    return render_dashboard(_registry(request).list_slots(actor))


@router.get("/api/slots")
async def list_slots(request: Request, actor: int = Depends(require_actor)):
    return [v.to_dict() for v in _registry(request).list_slots(actor)]


@router.post("/api/slots")
async def create_slot(request: Request, actor: int = Depends(require_actor)):
    body = await read_body(request)
    threshold = body.get("threshold_days")
    view = _registry(request).create_slot(
        name=str(body.get("name") or ""),
        owner_id=actor,
        room=str(body.get("room") or ""),
        threshold_days=None if threshold in (None, "") else threshold,
    )
    return _done(request, view.to_dict())


@router.post("/api/slots/{slot_id}/refresh")
async def refresh_slot(slot_id: str, request: Request, actor: int = Depends(require_actor)):
    _registry(request).refresh_slot(slot_id, actor_id=actor)
    return _done(request, {"ok": True})


@router.patch("/api/slots/{slot_id}")
async def update_slot(
    slot_id: str, body: SlotUpdateRequest, request: Request, actor: int = Depends(require_actor),
):
    patch = SlotPatch(room=body.room, threshold_days=body.threshold_days)
    _registry(request).update_slot(slot_id, patch, actor_id=actor)
    return {"ok": True}


@router.delete("/api/slots/{slot_id}")
async def delete_slot(slot_id: str, request: Request, actor: int = Depends(require_actor)):
    _registry(request).delete_slot(slot_id, actor_id=actor)
    return {"ok": True}


@router.post("/api/slots/{slot_id}/delete")
async def delete_slot_form(slot_id: str, request: Request, actor: int = Depends(require_actor)):
    _registry(request).delete_slot(slot_id, actor_id=actor)
    return _done(request, {"ok": True})


@router.post("/api/rooms/refresh")
async def refresh_room(request: Request, actor: int = Depends(require_actor)):
    body = await read_body(request)
    room = str(body.get("room") or "").strip()
    if not room:
        return PlainTextResponse("room required", status_code=status.HTTP_400_BAD_REQUEST)
    updated = _registry(request).refresh_room(actor, room)
    return _done(request, {"updated": updated})


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(SlotNotFoundError)
    async def _not_found(request: Request, exc: SlotNotFoundError):
        return JSONResponse({"error": "not_found", "detail": str(exc)}, status_code=404)

    @app.exception_handler(ForbiddenError)
    async def _forbidden(request: Request, exc: ForbiddenError):
        return JSONResponse({"error": "forbidden"}, status_code=403)

    @app.exception_handler(SlotValidationError)
    async def _invalid(request: Request, exc: SlotValidationError):
        return JSONResponse({"error": "validation", "detail": str(exc)}, status_code=400)

    @app.exception_handler(StorageError)
    async def _upstream(request: Request, exc: StorageError):
        logger.error("Storage failure on %s: %s", request.url.path, exc)
        return JSONResponse({"error": "upstream_failure"}, status_code=502)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    store: TabularStore | None = None,
    notifier: NotificationPort | None = None,
) -> FastAPI:
    """Build the web app.

    Without an injected notifier the Telegram application is built on
    startup; it delivers reminders and processes webhook updates.
    """
    if store is None:
        from towel_tracker.adapters.storage_factory import create_storage_adapter
        store = create_storage_adapter()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        telegram_app = None
        if app.state.notifier is None:
            from towel_tracker.bot.telegram_bot import build_app

            telegram_app = build_app(store=store, schedule_reminders=False)
            await telegram_app.initialize()
            app.state.telegram_app = telegram_app
            app.state.notifier = telegram_app.bot_data["notifier"]
            logger.info("Telegram application initialized for webhook mode")
        try:
            yield
        finally:
            if telegram_app is not None:
                await telegram_app.shutdown()
                logger.info("Telegram application shut down")

    app = FastAPI(title="Towel Tracker", lifespan=lifespan)
    app.state.store = store
    app.state.registry = SlotRegistry(store, default_threshold_days=settings.DEFAULT_THRESHOLD_DAYS)
    app.state.user_db = UserDB(store, settings.DEFAULT_TZ, settings.DEFAULT_NOTIFY_HOUR)
    app.state.notifier = notifier
    app.state.telegram_app = None

    app.include_router(router)
    _install_error_handlers(app)
    return app
