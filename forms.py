"""
Input parsing and form validation.

Raw form values (strings from text inputs, or already-typed values from
Streamlit widgets) are converted here before anything else sees them.
Parsers raise ValueError; validators collect one message per bad field.
"""
import re
import math
import datetime
from typing import Any, Dict, List, MutableMapping, Optional

TIME_RE = re.compile(r"^\d{2}:\d{2}$")
DATE_RE = re.compile(r"^\d{2}\.\d{2}\.\d{4}$")

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]
PRIORITIES = ["High", "Medium", "Low"]
RECURRENCE_OPTIONS = ("none", "daily", "weekly", "monthly")


# -------------------------------
# Parsers
# -------------------------------

def _blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def parse_number(raw: Any) -> Optional[float]:
    if _blank(raw):
        return None
    if isinstance(raw, bool):
        raise ValueError(f"Not a number: {raw!r}")
    try:
        x = float(raw.strip() if isinstance(raw, str) else raw)
    except (TypeError, ValueError):
        raise ValueError(f"Not a number: {raw!r}")
    if math.isnan(x) or math.isinf(x):
        raise ValueError(f"Not a number: {raw!r}")
    return x


def parse_clock(raw: Any) -> datetime.time:
    if isinstance(raw, datetime.time):
        return raw
    text = str(raw or "").strip()
    if not TIME_RE.match(text):
        raise ValueError(f"Invalid time: {text}")
    return datetime.datetime.strptime(text, "%H:%M").time()


def parse_day_month_year(raw: Any) -> datetime.date:
    if isinstance(raw, datetime.date):
        return raw
    text = str(raw or "").strip()
    if not DATE_RE.match(text):
        raise ValueError(f"Invalid date: {text}")
    return datetime.datetime.strptime(text, "%d.%m.%Y").date()


def format_day_month_year(d: datetime.date) -> str:
    return d.strftime("%d.%m.%Y")


def format_number(x: Any) -> str:
    """Text for a number input that parses back to exactly the same float."""
    if x is None or x == "":
        return ""
    try:
        v = float(x)
    except (TypeError, ValueError):
        return str(x)
    if v.is_integer():
        return str(int(v))
    return repr(v)


def parse_weekdays(raw: Any) -> List[str]:
    if isinstance(raw, (list, tuple)):
        days = [str(d).strip() for d in raw]
    else:
        days = [d.strip() for d in str(raw or "").split(",")]
    bad = [d for d in days if d not in WEEKDAYS]
    if bad or not days:
        raise ValueError(f"Invalid days: {', '.join(bad) or '(none)'}")
    return days


def parse_iso_datetime(raw: Any) -> Optional[datetime.datetime]:
    if isinstance(raw, datetime.datetime):
        return raw
    if isinstance(raw, datetime.date):
        return datetime.datetime.combine(raw, datetime.time())
    if _blank(raw):
        return None
    return datetime.datetime.fromisoformat(str(raw).strip())


# -------------------------------
# Form validators
# -------------------------------

def _same_name(a: Any, b: Any) -> bool:
    return str(a or "").strip().lower() == str(b or "").strip().lower()


def validate_schedule_course(candidate: Dict[str, Any], existing: List[Dict[str, Any]]) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    name = str(candidate.get("name") or "").strip()
    if not name:
        errors["name"] = "Course name is required."
    elif any(_same_name(c.get("name"), name) and c.get("id") != candidate.get("id") for c in existing):
        errors["name"] = "Course name must be unique."

    start_t = end_t = None
    try:
        start_t = parse_clock(candidate.get("start_time"))
    except ValueError:
        errors["start_time"] = "Start time must be in HH:MM format (24-hour)."
    try:
        end_t = parse_clock(candidate.get("end_time"))
    except ValueError:
        errors["end_time"] = "End time must be in HH:MM format (24-hour)."
    if start_t is not None and end_t is not None and end_t <= start_t:
        errors["end_time"] = "End time must be greater than start time."

    start_d = end_d = None
    try:
        start_d = parse_day_month_year(candidate.get("start_date"))
    except ValueError:
        errors["start_date"] = "Start date must be in DD.MM.YYYY format."
    try:
        end_d = parse_day_month_year(candidate.get("end_date"))
    except ValueError:
        errors["end_date"] = "End date must be in DD.MM.YYYY format."
    if start_d is not None and end_d is not None and end_d <= start_d:
        errors["end_date"] = "End date must be greater than start date."

    try:
        parse_weekdays(candidate.get("days"))
    except ValueError:
        errors["days"] = "Days must be from Monday to Friday only."

    if not str(candidate.get("location") or "").strip():
        errors["location"] = "Location is required."

    return errors


def validate_assignment(candidate: Dict[str, Any], existing: List[Dict[str, Any]]) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    title = str(candidate.get("title") or "").strip()
    if not title:
        errors["title"] = "Title is required"
    elif any(_same_name(a.get("title"), title) and a.get("id") != candidate.get("id") for a in existing):
        errors["title"] = "Title must be unique"

    if not str(candidate.get("course") or "").strip():
        errors["course"] = "Course is required"

    try:
        due = parse_iso_datetime(candidate.get("due_date"))
    except ValueError:
        due = None
    if due is None:
        errors["due_date"] = "Due Date is required"

    if (candidate.get("priority") or "Medium") not in PRIORITIES:
        errors["priority"] = f"Priority must be one of {', '.join(PRIORITIES)}"

    return errors


def validate_reminder(candidate: Dict[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not str(candidate.get("title") or "").strip():
        errors["title"] = "Title is required"

    try:
        when = parse_iso_datetime(candidate.get("date"))
    except ValueError:
        when = None
    if when is None:
        errors["date"] = "Date is required"

    if (candidate.get("recurrence") or "none") not in RECURRENCE_OPTIONS:
        errors["recurrence"] = f"Recurrence must be one of {', '.join(RECURRENCE_OPTIONS)}"

    return errors


# -------------------------------
# Form reset
# -------------------------------

# Widget keys carry a round number; bumping it after a save gives the next
# run empty widgets, while a failed submit keeps what the user typed.

def form_round(state: MutableMapping[str, Any], key: str) -> int:
    return int(state.get(f"{key}_round", 0))


def reset_form(state: MutableMapping[str, Any], key: str) -> None:
    state[f"{key}_round"] = form_round(state, key) + 1
