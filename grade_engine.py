"""
Grade calculations for the grade calculator screen.

A course is a dict ``{"id", "name", "components"}`` and each component a
dict ``{"id", "name", "weight", "score"}`` where weight is the share of the
final grade in percentage points and score is 0-100 (or None if not graded
yet). Everything here works on snapshots and returns new values; saving is
left to the store.
"""
import math
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional

from forms import parse_number
from organizer import generate_id

MAX_TOTAL_WEIGHT = 100.0

# Percentage thresholds -> band on the 10-point scale, highest first.
GPA_BANDS = [
    (90.0, 10),
    (80.0, 9),
    (70.0, 8),
    (60.0, 7),
    (50.0, 6),
]
GPA_FLOOR = 5


class AdmissionFailure(str, Enum):
    NAME_REQUIRED = "NameRequired"
    INVALID_WEIGHT = "InvalidWeight"
    INVALID_SCORE = "InvalidScore"
    DUPLICATE_NAME = "DuplicateName"
    WEIGHT_OVERFLOW = "WeightOverflow"


FAILURE_MESSAGES = {
    AdmissionFailure.NAME_REQUIRED: "Component name is required",
    AdmissionFailure.INVALID_WEIGHT: "Weight must be a positive number",
    AdmissionFailure.INVALID_SCORE: "Score must be a number between 0 and 100",
    AdmissionFailure.DUPLICATE_NAME: "Component name must be unique within the course",
    AdmissionFailure.WEIGHT_OVERFLOW: "Total weight of components cannot exceed 100%",
}


class Admission(NamedTuple):
    component: Optional[Dict[str, Any]] = None
    failure: Optional[AdmissionFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def message(self) -> str:
        return FAILURE_MESSAGES.get(self.failure, "") if self.failure else ""


def _coerce_float(x: Any, default: float = 0.0) -> float:
    try:
        v = float(x)
    except Exception:
        return float(default)
    if math.isnan(v):
        return float(default)
    return v


# -------------------------------
# Grade / GPA
# -------------------------------

def compute_weighted_grade(components: List[Dict[str, Any]]) -> float:
    total_weight = 0.0
    weighted_sum = 0.0

    for c in (components or []):
        w = _coerce_float(c.get("weight"))
        s = _coerce_float(c.get("score"))
        total_weight += w
        weighted_sum += (w * s) / 100.0

    if total_weight == 0:
        return 0.0
    return (weighted_sum / total_weight) * 100.0


def compute_gpa_band(components: List[Dict[str, Any]]) -> int:
    """
    Band on a 10-point scale: >=90 -> 10, >=80 -> 9, >=70 -> 8, >=60 -> 7,
    >=50 -> 6, anything lower -> 5. A course with no weight gets 0.
    """
    total_weight = 0.0
    weighted_sum = 0.0

    for c in (components or []):
        w = _coerce_float(c.get("weight"))
        total_weight += w
        weighted_sum += w * _coerce_float(c.get("score"))

    if total_weight == 0:
        return 0

    percentage = weighted_sum / total_weight
    for threshold, band in GPA_BANDS:
        if percentage >= threshold:
            return band
    return GPA_FLOOR


def total_weight(components: List[Dict[str, Any]], exclude_id: Optional[str] = None) -> float:
    return sum(
        _coerce_float(c.get("weight"))
        for c in (components or [])
        if not (exclude_id and c.get("id") == exclude_id)
    )


def remaining_weight(course: Dict[str, Any]) -> float:
    return MAX_TOTAL_WEIGHT - total_weight(course.get("components") or [])


def course_summary(course: Dict[str, Any]) -> Dict[str, Any]:
    components = course.get("components") or []
    return {
        "grade": compute_weighted_grade(components),
        "gpa": compute_gpa_band(components),
        "total_weight": total_weight(components),
        "remaining_weight": remaining_weight(course),
    }


# -------------------------------
# Admission
# -------------------------------

def validate_component_admission(course: Dict[str, Any], candidate: Dict[str, Any]) -> Admission:
    """
    Check a new or edited component against its course.

    ``candidate`` holds raw form values (``name``, ``weight``, ``score``) and,
    when editing, the ``id`` of the component it replaces. Checks run in a
    fixed order and the first failure is returned; on success the admitted
    component keeps the candidate's id or gets a fresh one.
    """
    name = str(candidate.get("name") or "").strip()
    if not name:
        return Admission(failure=AdmissionFailure.NAME_REQUIRED)

    try:
        weight = parse_number(candidate.get("weight"))
    except ValueError:
        weight = None
    if weight is None or weight <= 0:
        return Admission(failure=AdmissionFailure.INVALID_WEIGHT)

    try:
        score = parse_number(candidate.get("score"))
    except ValueError:
        return Admission(failure=AdmissionFailure.INVALID_SCORE)
    if score is not None and not (0.0 <= score <= 100.0):
        return Admission(failure=AdmissionFailure.INVALID_SCORE)

    own_id = candidate.get("id") or None
    others = [c for c in (course.get("components") or []) if not (own_id and c.get("id") == own_id)]

    if any(str(c.get("name") or "").strip().lower() == name.lower() for c in others):
        return Admission(failure=AdmissionFailure.DUPLICATE_NAME)

    if total_weight(others) + weight > MAX_TOTAL_WEIGHT:
        return Admission(failure=AdmissionFailure.WEIGHT_OVERFLOW)

    return Admission(component={
        "id": own_id or generate_id("comp"),
        "name": name,
        "weight": weight,
        "score": score,
    })


# -------------------------------
# Course lifecycle
# -------------------------------

def new_course(name: str) -> Dict[str, Any]:
    name = str(name or "").strip()
    if not name:
        raise ValueError("Course name is required")
    return {"id": generate_id("gcourse"), "name": name, "components": []}


def apply_admission(course: Dict[str, Any], component: Dict[str, Any]) -> Dict[str, Any]:
    components = list(course.get("components") or [])
    for i, c in enumerate(components):
        if c.get("id") == component["id"]:
            components[i] = dict(component)
            break
    else:
        components.append(dict(component))
    return {**course, "components": components}


def remove_component(course: Dict[str, Any], component_id: str) -> Dict[str, Any]:
    components = [c for c in (course.get("components") or []) if c.get("id") != component_id]
    return {**course, "components": components}
