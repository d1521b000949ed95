from datetime import datetime, timezone

import pytest

from canvas_cli.status import (
    SubmissionStatus,
    classify,
    filter_assignments,
    group_by_course,
    letter_grade,
)

NOW = datetime(2024, 3, 3, 12, 0, tzinfo=timezone.utc)


def _a(name, due=None, course="Biology", **submission):
    a = {"name": name, "due_at": due, "course_name": course}
    if submission:
        a["submission"] = submission
    return a


ASSIGNMENTS = [
    _a("future-unsubmitted", "2024-03-10T00:00:00Z", workflow_state="unsubmitted"),
    _a("future-no-submission", "2024-03-11T00:00:00Z"),
    _a("past-unsubmitted", "2024-03-01T00:00:00Z", workflow_state="unsubmitted"),
    _a("missing", "2024-02-01T00:00:00Z", workflow_state="unsubmitted", missing=True),
    _a("submitted", "2024-03-10T00:00:00Z", course="History", workflow_state="submitted"),
    _a("graded", "2024-02-20T00:00:00Z", course="History", workflow_state="graded", score=9),
    _a("graded-no-score", None, course="History", workflow_state="graded", score=None),
]


@pytest.mark.parametrize(
    "assignment, expected",
    [
        (_a("x"), SubmissionStatus.NOT_SUBMITTED),
        (_a("x", workflow_state="unsubmitted"), SubmissionStatus.NOT_SUBMITTED),
        (_a("x", workflow_state="submitted"), SubmissionStatus.SUBMITTED),
        (_a("x", workflow_state="graded"), SubmissionStatus.GRADED),
        (_a("x", workflow_state="unsubmitted", missing=True), SubmissionStatus.MISSING),
        (_a("x", workflow_state="submitted", late=True), SubmissionStatus.LATE),
        (_a("x", workflow_state="graded", late=True, missing=True), SubmissionStatus.MISSING),
    ],
)
def test_classify(assignment, expected):
    assert classify(assignment) is expected


def _names(filter_name):
    return [a["name"] for a in filter_assignments(ASSIGNMENTS, filter_name, now=NOW)]


def test_filter_all():
    assert len(_names("all")) == len(ASSIGNMENTS)


def test_filter_upcoming():
    assert _names("upcoming") == ["future-unsubmitted", "future-no-submission"]


def test_filter_missing():
    assert _names("missing") == ["missing"]


def test_filter_submitted_includes_graded():
    assert _names("submitted") == ["submitted", "graded", "graded-no-score"]


def test_filter_graded_needs_score():
    assert _names("graded") == ["graded"]


def test_unknown_filter():
    with pytest.raises(ValueError):
        filter_assignments(ASSIGNMENTS, "overdue")


def test_group_by_course_keeps_order():
    grouped = group_by_course(ASSIGNMENTS + [{"name": "orphan"}])
    assert list(grouped) == ["Biology", "History", "Unknown Course"]
    assert len(grouped["History"]) == 3


@pytest.mark.parametrize(
    "score, letter",
    [(100, "A"), (93, "A"), (92.9, "A-"), (85, "B"), (70, "C-"), (60, "D-"), (59.9, "F"), (None, "N/A")],
)
def test_letter_grade(score, letter):
    assert letter_grade(score) == letter


def test_status_icons():
    assert SubmissionStatus.MISSING.icon == "✗"
    assert SubmissionStatus.NOT_SUBMITTED.icon == "○"
