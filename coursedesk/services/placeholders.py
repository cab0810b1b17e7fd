"""Synthetic records returned when neither store has data."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List

from .records import ASSIGNMENTS, COURSE_PDFS, MARKS, CollectionSchema


PLACEHOLDER_PREFIX = "placeholder-"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds")


def _course_pdfs(now: datetime) -> List[Dict[str, Any]]:
    return [
        {
            "id": f"{PLACEHOLDER_PREFIX}pdf-{index}",
            "title": f"Sample PDF {index}",
            "fileName": f"sample{index}.pdf",
            "filePath": None,
            "originalName": f"Sample PDF Document {index}.pdf",
            "uploadedAt": _iso(now),
        }
        for index in (1, 2)
    ]


def _assignments(now: datetime) -> List[Dict[str, Any]]:
    return [
        {
            "id": f"{PLACEHOLDER_PREFIX}assignment-{index}",
            "title": f"Sample Assignment {index}",
            "dueDate": _iso(now + timedelta(weeks=index)),
            "fileName": f"sample-assignment{index}.pdf",
            "filePath": None,
            "originalName": f"Sample Assignment {index}.pdf",
            "uploadedAt": _iso(now),
        }
        for index in (1, 2)
    ]


def _marks(now: datetime) -> List[Dict[str, Any]]:
    return [
        {
            "id": f"{PLACEHOLDER_PREFIX}marks-1",
            "studentId": "student-1",
            "marks": 85,
            "subject": "Mathematics",
            "uploadedAt": _iso(now),
        },
        {
            "id": f"{PLACEHOLDER_PREFIX}marks-2",
            "studentId": "student-2",
            "marks": 92,
            "subject": "Science",
            "uploadedAt": _iso(now),
        },
    ]


_FACTORIES: Dict[str, Callable[[datetime], List[Dict[str, Any]]]] = {
    COURSE_PDFS.name: _course_pdfs,
    ASSIGNMENTS.name: _assignments,
    MARKS.name: _marks,
}


def placeholder_records(schema: CollectionSchema) -> List[Dict[str, Any]]:
    """Return the fixed placeholder set for *schema*, stamped with the current time."""

    factory = _FACTORIES.get(schema.name)
    if factory is None:
        return []
    records = factory(_now())
    for record in records:
        record["placeholder"] = True
    return records


def is_placeholder_id(record_id: Any) -> bool:
    return isinstance(record_id, str) and record_id.startswith(PLACEHOLDER_PREFIX)


__all__ = ["PLACEHOLDER_PREFIX", "is_placeholder_id", "placeholder_records"]
