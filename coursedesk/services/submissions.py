"""Assignment submissions and grading.

Submissions live only in the primary store. There is no journal for them, so
every operation here fails with :class:`PrimaryUnavailableError` while the
store is down and the operator retries by hand.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from .monitor import ConnectivityMonitor
from .primary import PrimaryUnavailableError, SQLiteRecordStore
from .records import (
    ASSIGNMENT_SUBMISSIONS,
    ASSIGNMENTS,
    NotFoundError,
    ValidationError,
    parse_marks,
)


LOGGER = logging.getLogger(__name__)


class SubmissionService:
    def __init__(self, store: SQLiteRecordStore, monitor: ConnectivityMonitor) -> None:
        self._store = store
        self._monitor = monitor

    def _require_primary(self) -> None:
        if not self._monitor.is_reachable():
            raise PrimaryUnavailableError("Primary store is unavailable")

    def submit(self, assignment_id: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Record a student's answer for *assignment_id*."""

        self._require_primary()
        if self._store.find_one(ASSIGNMENTS, assignment_id) is None:
            raise NotFoundError("Assignment not found")

        document = dict(payload)
        document.update({"assignmentId": assignment_id, "marks": None, "feedback": None})
        record = ASSIGNMENT_SUBMISSIONS.build(document)
        self._store.insert(ASSIGNMENT_SUBMISSIONS, record)
        LOGGER.info(
            "Stored submission %s for assignment %s by student %s",
            record.id,
            assignment_id,
            record.student_id,
        )
        return record.to_document()

    def list_for_assignment(self, assignment_id: str) -> List[Dict[str, Any]]:
        self._require_primary()
        return self._store.find_where(
            ASSIGNMENT_SUBMISSIONS,
            "assignmentId",
            assignment_id,
            by_field=ASSIGNMENT_SUBMISSIONS.sort_field,
        )

    def list_for_student(self, student_id: str) -> List[Dict[str, Any]]:
        self._require_primary()
        return self._store.find_where(
            ASSIGNMENT_SUBMISSIONS,
            "studentId",
            student_id,
            by_field=ASSIGNMENT_SUBMISSIONS.sort_field,
        )

    def grade(self, submission_id: str, marks: Any, feedback: Optional[str] = None) -> Dict[str, Any]:
        """Set marks and feedback on a submission in place."""

        if marks is None:
            raise ValidationError("Marks are required")
        value = parse_marks(marks)
        self._require_primary()

        updated = self._store.update(
            ASSIGNMENT_SUBMISSIONS,
            submission_id,
            {"marks": value, "feedback": feedback},
        )
        if updated is None:
            raise NotFoundError("Submission not found")
        LOGGER.info("Graded submission %s with %s", submission_id, value)
        return updated


__all__ = ["SubmissionService"]
