# meetings.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from audit import audit
from db import Settings, insert_one, load_settings, now_iso
from loans import check_group_scope
from rbac import SCHEDULE_MEETING, Principal, require

HAPPENING_NOW = "happening-now"
URGENT = "urgent"
SOON = "soon"
SCHEDULED = "scheduled"

_HAPPENING_NOW_WINDOW = timedelta(minutes=5)
_URGENT_WINDOW = timedelta(hours=1)
_ALERT_WINDOW = timedelta(hours=24)


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def _remaining(meeting_at: datetime, now: Optional[datetime]) -> timedelta:
    now = _aware(now or datetime.now(timezone.utc))
    return max(_aware(meeting_at) - now, timedelta(0))


def time_remaining(meeting_at: datetime, now: Optional[datetime] = None) -> Dict[str, int]:
    """Countdown parts; all zero once the meeting time has passed."""
    left = _remaining(meeting_at, now)
    total = int(left.total_seconds())
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    return {"days": days, "hours": hours, "minutes": minutes, "seconds": seconds, "total_seconds": total}


def urgency_level(meeting_at: datetime, now: Optional[datetime] = None) -> str:
    left = _remaining(meeting_at, now)
    if left <= _HAPPENING_NOW_WINDOW:
        return HAPPENING_NOW
    if left <= _URGENT_WINDOW:
        return URGENT
    if left <= _ALERT_WINDOW:
        return SOON
    return SCHEDULED


def should_alert(meeting_at: datetime, now: Optional[datetime] = None) -> bool:
    """True inside the 24h reminder window, until the meeting starts."""
    return timedelta(0) < _remaining(meeting_at, now) <= _ALERT_WINDOW


def schedule_meeting(
    c,
    principal: Principal,
    group_id: str,
    meeting_at: datetime,
    location: Optional[str] = None,
    agenda: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    settings = settings or load_settings()
    require(principal, SCHEDULE_MEETING)
    check_group_scope(principal, group_id)

    if _aware(meeting_at) <= datetime.now(timezone.utc):
        raise ValueError("Meeting time must be in the future.")

    payload = {
        "group_id": str(group_id),
        "date": _aware(meeting_at).isoformat(),
        "location": (location or "").strip() or None,
        "agenda": (agenda or "").strip() or None,
        "status": SCHEDULED,
        "notification_sent_24h": False,
        "notification_sent_now": False,
        "created_by": principal.subject_id,
        "created_at": now_iso(),
    }
    row = insert_one(c, "meetings", payload)
    audit(
        c, "meeting_scheduled", "ok",
        {"meeting_id": row.get("id"), "group_id": group_id, "date": payload["date"]},
        actor_user_id=principal.subject_id, schema=settings.schema,
    )
    return row
