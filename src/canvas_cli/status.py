"""canvas_cli.status

Client-side views over assignment records: a derived submission status,
the named filters the CLI offers, and letter grades. Nothing here talks to
Canvas or stores anything.
"""
from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .utils import parse_timestamp

__all__ = [
    "SubmissionStatus",
    "FILTERS",
    "classify",
    "filter_assignments",
    "group_by_course",
    "letter_grade",
]


class SubmissionStatus(str, Enum):
    NOT_SUBMITTED = "not_submitted"
    SUBMITTED = "submitted"
    GRADED = "graded"
    MISSING = "missing"
    LATE = "late"

    @property
    def icon(self) -> str:
        return _ICONS[self]


_ICONS = {
    SubmissionStatus.NOT_SUBMITTED: "○",
    SubmissionStatus.SUBMITTED: "✓",
    SubmissionStatus.GRADED: "✓",
    SubmissionStatus.MISSING: "✗",
    SubmissionStatus.LATE: "⚠",
}

FILTERS = ("all", "upcoming", "missing", "submitted", "graded")


def classify(assignment: Dict[str, Any]) -> SubmissionStatus:
    """Derive a status from the assignment's embedded submission record.

    The missing and late flags win over the workflow state.
    """
    sub = assignment.get("submission")
    if not sub:
        return SubmissionStatus.NOT_SUBMITTED
    if sub.get("missing"):
        return SubmissionStatus.MISSING
    if sub.get("late"):
        return SubmissionStatus.LATE
    state = sub.get("workflow_state")
    if state == "graded":
        return SubmissionStatus.GRADED
    if state == "submitted":
        return SubmissionStatus.SUBMITTED
    return SubmissionStatus.NOT_SUBMITTED


def _is_upcoming(a: Dict[str, Any], now: datetime) -> bool:
    due = parse_timestamp(a.get("due_at"))
    if due is None or due <= now:
        return False
    sub = a.get("submission")
    return not sub or sub.get("workflow_state") == "unsubmitted"


def filter_assignments(
    assignments: Iterable[Dict[str, Any]],
    name: str = "all",
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    if name not in FILTERS:
        raise ValueError(f"Unknown assignment filter {name!r}; expected one of {', '.join(FILTERS)}")
    now = now or datetime.now(timezone.utc)
    items = list(assignments)
    if name == "upcoming":
        return [a for a in items if _is_upcoming(a, now)]
    if name == "missing":
        return [a for a in items if (a.get("submission") or {}).get("missing")]
    if name == "submitted":
        return [
            a for a in items
            if (a.get("submission") or {}).get("workflow_state") in ("submitted", "graded")
        ]
    if name == "graded":
        return [
            a for a in items
            if (a.get("submission") or {}).get("workflow_state") == "graded"
            and (a.get("submission") or {}).get("score") is not None
        ]
    return items


def group_by_course(assignments: Iterable[Dict[str, Any]]) -> "OrderedDict[str, List[Dict[str, Any]]]":
    grouped: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
    for a in assignments:
        grouped.setdefault(a.get("course_name") or "Unknown Course", []).append(a)
    return grouped


_GRADE_BANDS = [
    (93, "A"), (90, "A-"),
    (87, "B+"), (83, "B"), (80, "B-"),
    (77, "C+"), (73, "C"), (70, "C-"),
    (67, "D+"), (63, "D"), (60, "D-"),
]


def letter_grade(score: Optional[float]) -> str:
    """Letter for a percentage score, on the common US scale."""
    if score is None:
        return "N/A"
    for floor, letter in _GRADE_BANDS:
        if score >= floor:
            return letter
    return "F"
