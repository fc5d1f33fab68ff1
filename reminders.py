"""
Reminder recurrence and notification scheduling.

Notifications are records kept next to the reminders in the user document:

    {"id", "reminder_id", "title", "body", "fire_at", "repeat"}

``fire_at`` is an ISO datetime. The app polls ``due_notifications`` on each
run and shows whatever has fired as a toast/banner; recurring notifications
roll forward to their next occurrence, one-shot ones are dropped.
"""
import uuid
import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

from config import get_logger
from forms import RECURRENCE_OPTIONS, parse_iso_datetime
from organizer import generate_id

logger = get_logger(__name__)

_STEPS = {
    "daily": datetime.timedelta(days=1),
    "weekly": datetime.timedelta(weeks=1),
}

_RRULE_FREQ = {"daily": "DAILY", "weekly": "WEEKLY", "monthly": "MONTHLY"}


# -------------------------------
# Recurrence
# -------------------------------

def _add_months(when: datetime.datetime, months: int) -> datetime.datetime:
    # DateOffset clamps to the last day of shorter months
    return (pd.Timestamp(when) + pd.DateOffset(months=months)).to_pydatetime()


def next_occurrence(
    when: datetime.datetime,
    recurrence: str,
    now: datetime.datetime,
) -> Optional[datetime.datetime]:
    recurrence = recurrence or "none"
    if recurrence not in RECURRENCE_OPTIONS:
        raise ValueError(f"Unknown recurrence: {recurrence}")

    if when > now:
        return when
    if recurrence == "none":
        return None

    if recurrence in _STEPS:
        step = _STEPS[recurrence]
        k = (now - when) // step + 1
        return when + step * k

    # monthly: step from the first occurrence so day-of-month never drifts
    k = max(1, (now.year - when.year) * 12 + (now.month - when.month))
    candidate = _add_months(when, k)
    while candidate <= now:
        k += 1
        candidate = _add_months(when, k)
    return candidate


# -------------------------------
# Scheduling
# -------------------------------

def _notifications(user_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    return user_data.setdefault("notifications", [])


def schedule_notification(reminder: Dict[str, Any], now: datetime.datetime) -> Optional[Dict[str, Any]]:
    if bool(reminder.get("completed", False)):
        return None

    try:
        when = parse_iso_datetime(reminder.get("date"))
    except ValueError:
        logger.warning("Reminder %s has an unreadable date %r", reminder.get("id"), reminder.get("date"))
        return None
    if when is None:
        return None

    recurrence = reminder.get("recurrence") or "none"
    fire_at = next_occurrence(when, recurrence, now)
    if fire_at is None:
        return None

    return {
        "id": generate_id("notif"),
        "reminder_id": reminder.get("id"),
        "title": reminder.get("title", ""),
        "body": reminder.get("body", ""),
        "fire_at": fire_at.isoformat(),
        "repeat": recurrence,
    }


def cancel_notification(user_data: Dict[str, Any], notification_id: Optional[str]) -> bool:
    if not notification_id:
        return False
    before = len(_notifications(user_data))
    user_data["notifications"] = [n for n in _notifications(user_data) if n.get("id") != notification_id]
    removed = len(user_data["notifications"]) < before
    if removed:
        logger.debug("Cancelled notification %s", notification_id)
    return removed


def sync_notification(user_data: Dict[str, Any], reminder: Dict[str, Any], now: datetime.datetime) -> Optional[Dict[str, Any]]:
    """Replace the reminder's scheduled notification with a fresh one (or none)."""
    cancel_notification(user_data, reminder.get("notification_id"))

    notif = schedule_notification(reminder, now)
    if notif is None:
        reminder["notification_id"] = None
        return None

    _notifications(user_data).append(notif)
    reminder["notification_id"] = notif["id"]
    logger.debug("Scheduled notification %s for reminder %s at %s", notif["id"], reminder.get("id"), notif["fire_at"])
    return notif


def reschedule_all(user_data: Dict[str, Any], now: datetime.datetime) -> int:
    count = 0
    for r in user_data.get("reminders", []):
        if sync_notification(user_data, r, now) is not None:
            count += 1
    return count


def due_notifications(user_data: Dict[str, Any], now: datetime.datetime) -> List[Dict[str, Any]]:
    fired: List[Dict[str, Any]] = []
    keep: List[Dict[str, Any]] = []

    for n in _notifications(user_data):
        try:
            fire_at = parse_iso_datetime(n.get("fire_at"))
        except ValueError:
            logger.warning("Dropping notification %s with bad fire_at %r", n.get("id"), n.get("fire_at"))
            continue

        if fire_at is None or fire_at > now:
            keep.append(n)
            continue

        fired.append(dict(n))
        repeat = n.get("repeat") or "none"
        if repeat != "none":
            n["fire_at"] = next_occurrence(fire_at, repeat, now).isoformat()
            keep.append(n)
        else:
            for r in user_data.get("reminders", []):
                if r.get("notification_id") == n.get("id"):
                    r["notification_id"] = None

    user_data["notifications"] = keep
    return fired


# -------------------------------
# Due-soon counts
# -------------------------------

def notification_counts(user_data: Dict[str, Any], today: Optional[datetime.date] = None) -> Dict[str, int]:
    today = today or datetime.date.today()
    tomorrow = today + datetime.timedelta(days=1)
    start_of_today = datetime.datetime.combine(today, datetime.time.min)

    overdue = 0
    due_today = 0
    due_tomorrow = 0

    dates: List[datetime.date] = []

    for a in user_data.get("assignments", []):
        if bool(a.get("completed", False)):
            continue
        try:
            due = parse_iso_datetime(a.get("due_date"))
        except ValueError:
            continue
        if due is not None:
            dates.append(due.date())

    for r in user_data.get("reminders", []):
        if bool(r.get("completed", False)):
            continue
        try:
            when = parse_iso_datetime(r.get("date"))
        except ValueError:
            continue
        if when is None:
            continue
        recurrence = r.get("recurrence") or "none"
        if recurrence != "none":
            when = next_occurrence(when, recurrence, start_of_today - datetime.timedelta(microseconds=1))
        dates.append(when.date())

    for d in dates:
        if d < today:
            overdue += 1
        elif d == today:
            due_today += 1
        elif d == tomorrow:
            due_tomorrow += 1

    return {"overdue": overdue, "today": due_today, "tomorrow": due_tomorrow}


# -------------------------------
# Calendar export: ICS builder
# -------------------------------

_ICS_ESCAPES = str.maketrans({"\\": "\\\\", ",": "\\,", ";": "\\;", "\n": "\\n"})


def _ics_text(value: Any) -> str:
    return str(value or "").translate(_ICS_ESCAPES)


def _reminder_event(r: Dict[str, Any], dtstamp: str) -> List[str]:
    try:
        when = parse_iso_datetime(r.get("date"))
    except ValueError:
        return []
    if when is None:
        return []

    title = _ics_text(r.get("title") or "Reminder")
    event = [
        "BEGIN:VEVENT",
        f"UID:{r.get('id') or uuid.uuid4().hex}@studentorganizer",
        f"DTSTAMP:{dtstamp}",
        f"DTSTART:{when:%Y%m%dT%H%M%S}",
        f"SUMMARY:{title}",
    ]
    if r.get("body"):
        event.append(f"DESCRIPTION:{_ics_text(r['body'])}")
    freq = _RRULE_FREQ.get(r.get("recurrence") or "none")
    if freq:
        event.append(f"RRULE:FREQ={freq}")
    # alarm at the start time, like the in-app notification
    event += ["BEGIN:VALARM", "ACTION:DISPLAY", f"DESCRIPTION:{title}", "TRIGGER:PT0M", "END:VALARM"]
    event.append("END:VEVENT")
    return event


def build_ics_calendar(reminders: List[Dict[str, Any]], calendar_name: str = "Student Organizer") -> str:
    """One VEVENT per dated reminder; recurring reminders carry an RRULE."""
    dtstamp = f"{datetime.datetime.now(datetime.timezone.utc):%Y%m%dT%H%M%SZ}"

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:-//StudentOrganizer//Reminders//EN",
        f"X-WR-CALNAME:{_ics_text(calendar_name)}",
    ]
    for r in (reminders or []):
        lines += _reminder_event(r, dtstamp)
    lines.append("END:VCALENDAR")
    return "\n".join(lines)
