"""Freshness calculator — pure business logic.

Turns "how long since the towel was replaced" and a replacement interval into
a 0–100 score and a three-tier display status.

Two independent notions live here on purpose:
- ``compute_freshness().status`` drives display (OK / WARN / EXPIRED);
- ``is_overdue()`` drives reminders (age >= threshold).
They can disagree and must not be merged.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from towel_tracker.data.models import Freshness

logger = logging.getLogger(__name__)

STATUS_OK = "OK"
STATUS_WARN = "WARN"
STATUS_EXPIRED = "EXPIRED"

_OK_MIN_SCORE = 40
_WARN_MIN_SCORE = 20
_SECONDS_PER_DAY = 86400

_STATUS_EMOJI = {STATUS_EXPIRED: "🔴", STATUS_WARN: "🟡", STATUS_OK: "🟢"}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(raw: str) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC.

    Returns None for empty or unparsable input.
    """
    if not raw:
        return None
    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def days_since(raw: str, now: datetime) -> int:
    """Whole days elapsed since ``raw``; 0 if the timestamp is unusable."""
    moment = parse_timestamp(raw)
    if moment is None:
        logger.debug("Unparsable timestamp %r treated as just changed", raw)
        return 0
    elapsed = (now - moment).total_seconds()
    # a timestamp in the future counts as "just changed"
    return max(0, math.floor(elapsed / _SECONDS_PER_DAY))


def score_for(age_days: int, threshold_days: int) -> float:
    # load * 100 with the multiplication first, so whole percentages stay exact
    load_pct = age_days * 100 / max(1, threshold_days)
    return max(0.0, 100 - load_pct)


def status_for(score: float) -> str:
    if score >= _OK_MIN_SCORE:
        return STATUS_OK
    if score >= _WARN_MIN_SCORE:
        return STATUS_WARN
    return STATUS_EXPIRED


def compute_freshness(threshold_days: int, last_change_at: str, now: datetime) -> Freshness:
    """Derive age, score and status. Total: never raises on bad timestamps."""
    age = days_since(last_change_at, now)
    score = score_for(age, threshold_days)
    return Freshness(age_days=age, score=score, status=status_for(score))


def is_overdue(age_days: int, threshold_days: int) -> bool:
    """Reminder test: the slot has reached its replacement interval."""
    return age_days >= threshold_days


def status_emoji(status: str) -> str:
    return _STATUS_EMOJI.get(status, _STATUS_EMOJI[STATUS_OK])
