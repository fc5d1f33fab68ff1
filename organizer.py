import uuid
import datetime
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from forms import parse_day_month_year, parse_iso_datetime

COLLECTIONS = ("assignments", "schedule", "grade_courses", "reminders")


# -------------------------------
# Small utility helpers
# -------------------------------

def now_stamp() -> str:
    return datetime.datetime.now().strftime("%Y-%m-%d_%H%M")


def generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def find_record(records: List[Dict[str, Any]], record_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not record_id:
        return None
    return next((r for r in records if r.get("id") == record_id), None)


# -------------------------------
# Search / sort
# -------------------------------

def search(records: List[Dict[str, Any]], query: str, fields: Iterable[str]) -> List[Dict[str, Any]]:
    q = (query or "").strip().lower()
    if not q:
        return list(records)

    fields = list(fields)
    out = []
    for r in records:
        hay = " ".join(str(r.get(f) or "") for f in fields).lower()
        if q in hay:
            out.append(r)
    return out


def _due_key(a: Dict[str, Any]):
    try:
        due = parse_iso_datetime(a.get("due_date"))
    except ValueError:
        due = None
    # unparsable/missing dates go last
    return (due is None, due or datetime.datetime.max)


def sort_by_due(assignments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(assignments, key=_due_key)


def toggle_completed(records: List[Dict[str, Any]], record_id: str) -> Optional[Dict[str, Any]]:
    r = find_record(records, record_id)
    if r is None:
        return None
    r["completed"] = not bool(r.get("completed", False))
    return r


# -------------------------------
# Course schedule
# -------------------------------

def is_course_active(course: Dict[str, Any], today: Optional[datetime.date] = None) -> bool:
    today = today or datetime.date.today()
    try:
        end = parse_day_month_year(course.get("end_date"))
    except ValueError:
        return False
    return end > today


def schedule_label(course: Dict[str, Any]) -> str:
    return (
        f"{course.get('days', '')} {course.get('start_time', '')} - {course.get('end_time', '')}"
        f" · {course.get('start_date', '')} - {course.get('end_date', '')}"
    ).strip()


# -------------------------------
# CSV export
# -------------------------------

def _flatten_grade_courses(courses: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    rows = []
    for c in courses:
        for comp in (c.get("components") or []):
            rows.append({
                "course_id": c.get("id"),
                "course": c.get("name"),
                "component_id": comp.get("id"),
                "component": comp.get("name"),
                "weight": comp.get("weight"),
                "score": comp.get("score"),
            })
        if not c.get("components"):
            rows.append({"course_id": c.get("id"), "course": c.get("name")})
    return rows


def export_user_csvs(user_data: Dict[str, Any]) -> Dict[str, str]:
    out = {}
    for name in COLLECTIONS:
        records = user_data.get(name, [])
        if name == "grade_courses":
            records = _flatten_grade_courses(records)
        out[name] = pd.DataFrame(records).to_csv(index=False)
    return out
