"""HTML pages for the web panel: dashboard, login-required and diagnostics.

Plain strings with html.escape; the pages are small enough not to need a
template engine.
"""

from __future__ import annotations

from html import escape

from towel_tracker.core.freshness import status_emoji
from towel_tracker.data.models import SlotView

_STYLE = """
:root{color-scheme:dark}
body{font-family:system-ui,Segoe UI,Roboto,Arial,sans-serif;padding:20px;background:#0b0b0b;color:#fafafa}
table{width:100%;border-collapse:collapse;margin-top:12px}
th,td{border-bottom:1px solid #333;padding:8px}th{color:#bbb;text-align:left}
button{background:#1f6feb;border:0;color:#fff;padding:6px 10px;border-radius:8px;cursor:pointer}
button:hover{opacity:.9}button.danger{background:#8b1e1e}
.bar{margin:12px 0}form.inline{display:inline-flex;gap:8px;align-items:center;margin:0 8px 8px 0}
input[type=text],input[type=number]{background:#111;border:1px solid #333;color:#fff;border-radius:8px;padding:6px 8px}
"""


def _page(title: str, body: str) -> str:
    return (
        f'<!doctype html><html lang="en"><meta charset="utf-8"/><title>{escape(title)}</title>'
        f"<style>{_STYLE}</style>{body}</html>"
    )


def _slot_row(view: SlotView) -> str:
    slot_id = escape(view.id)
    return (
        "<tr>"
        f"<td>{status_emoji(view.status)}</td>"
        f"<td>{escape(view.name)}</td>"
        f"<td>{escape(view.room or '—')}</td>"
        f"<td>{view.freshness.age_days}</td>"
        f"<td>{view.slot.threshold_days}</td>"
        f"<td>{round(view.score)}%</td>"
        f'<td><form class="inline" method="post" action="/api/slots/{slot_id}/refresh">'
        "<button>Replaced</button></form>"
        f'<form class="inline" method="post" action="/api/slots/{slot_id}/delete">'
        '<button class="danger">Delete</button></form></td>'
        "</tr>"
    )


def render_dashboard(views: list[SlotView]) -> str:
    """The slot table with per-slot and per-room refresh buttons."""
    rooms = sorted({v.room for v in views if v.room})
    room_buttons = "".join(
        '<form class="inline" method="post" action="/api/rooms/refresh">'
        f'<input type="hidden" name="room" value="{escape(r)}"/>'
        f"<button>Refresh: {escape(r)}</button></form>"
        for r in rooms
    )
    rows = "".join(_slot_row(v) for v in views)
    body = (
        "<h1>Towel freshness</h1>"
        '<div class="bar"><form class="inline" method="post" action="/api/slots">'
        '<input name="name" type="text" placeholder="Slot name" required/>'
        '<input name="room" type="text" placeholder="Room"/>'
        '<input name="threshold_days" type="number" min="1" placeholder="Days"/>'
        "<button>Add slot</button></form></div>"
        '<div class="bar"><form class="inline" method="post" action="/api/rooms/refresh">'
        "<label>Quick refresh a room:&nbsp;</label>"
        '<input name="room" type="text" placeholder="e.g. Bathroom"/>'
        "<button>Refresh all</button></form></div>"
        f'<div class="bar">{room_buttons}</div>'
        "<table><thead><tr><th>Status</th><th>Slot</th><th>Room</th><th>Age, d</th>"
        "<th>Threshold, d</th><th>Score</th><th>Action</th></tr></thead>"
        f"<tbody>{rows}</tbody></table>"
    )
    return _page("Towel Tracker", body)


def render_login_required(web_login_enabled: bool) -> str:
    hint = (
        "Send <code>/start</code> to the bot and tap “Web panel (login)”."
        if web_login_enabled
        else "Admin: set <code>PUBLIC_URL</code> and send /start to the bot again."
    )
    return _page("Login required", f"<h1>Login required</h1><p>{hint}</p>")


def render_diag(checks: list[tuple[str, bool, str]]) -> str:
    """A table of ``(check, ok, details)`` rows."""
    rows = "".join(
        f"<tr><td>{escape(name)}</td><td>{'✓' if ok else '✗'}</td><td>{escape(details)}</td></tr>"
        for name, ok, details in checks
    )
    return _page(
        "Diagnostics",
        "<h1>Diagnostics</h1><table><thead><tr><th>Check</th><th>OK?</th><th>Details</th></tr>"
        f"</thead><tbody>{rows}</tbody></table>",
    )
