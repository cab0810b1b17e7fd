from __future__ import annotations

import pytest

from coursedesk.services.primary import PrimaryUnavailableError
from coursedesk.services.records import ASSIGNMENTS, NotFoundError, ValidationError


def _create_assignment(persistence) -> str:
    result = persistence.writer.write(ASSIGNMENTS, {"title": "Essay", "dueDate": "2025-09-01"})
    assert result.durable_primary is True
    return result.record["id"]


def test_submit_list_and_grade(persistence) -> None:
    assignment_id = _create_assignment(persistence)
    service = persistence.submissions

    first = service.submit(
        assignment_id,
        {"studentId": "s-1", "fileName": "a.pdf", "submittedAt": "2025-08-01T10:00:00+00:00"},
    )
    second = service.submit(
        assignment_id,
        {"studentId": "s-2", "fileName": "b.pdf", "submittedAt": "2025-08-02T10:00:00+00:00"},
    )

    assert first["marks"] is None and first["feedback"] is None
    assert [item["id"] for item in service.list_for_assignment(assignment_id)] == [
        second["id"],
        first["id"],
    ]
    assert [item["id"] for item in service.list_for_student("s-1")] == [first["id"]]

    graded = service.grade(first["id"], 85, "Good work")

    assert graded["marks"] == 85
    assert graded["feedback"] == "Good work"
    assert service.list_for_student("s-1")[0]["feedback"] == "Good work"


def test_submitted_marks_are_ignored_until_graded(persistence) -> None:
    assignment_id = _create_assignment(persistence)

    submission = persistence.submissions.submit(assignment_id, {"studentId": "s", "marks": 100})

    assert submission["marks"] is None


def test_submit_requires_known_assignment(persistence) -> None:
    with pytest.raises(NotFoundError):
        persistence.submissions.submit("does-not-exist", {"studentId": "s"})


def test_submit_requires_student(persistence) -> None:
    assignment_id = _create_assignment(persistence)

    with pytest.raises(ValidationError):
        persistence.submissions.submit(assignment_id, {"studentId": " "})


def test_grade_unknown_submission(persistence) -> None:
    with pytest.raises(NotFoundError):
        persistence.submissions.grade("missing", 50, None)


def test_grade_fails_without_primary_and_skips_journal(offline_persistence) -> None:
    with pytest.raises(PrimaryUnavailableError):
        offline_persistence.submissions.grade("any-id", 85, "Good work")

    assert list(offline_persistence.config.journal_root.iterdir()) == []


def test_submissions_require_primary(offline_persistence) -> None:
    with pytest.raises(PrimaryUnavailableError):
        offline_persistence.submissions.submit("a", {"studentId": "s"})
    with pytest.raises(PrimaryUnavailableError):
        offline_persistence.submissions.list_for_student("s")


def test_grade_requires_numeric_marks(persistence) -> None:
    with pytest.raises(ValidationError):
        persistence.submissions.grade("x", None, "feedback")
