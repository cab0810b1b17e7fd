"""Record types and collection schemas shared by both stores."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, fields
from datetime import date, datetime, time, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Type, TypeVar


class ValidationError(ValueError):
    """Raised when a payload is missing required fields or holds bad values."""


class NotFoundError(LookupError):
    """Raised when a record cannot be located."""


def new_record_id() -> str:
    return uuid.uuid4().hex


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO-8601 string with milliseconds."""

    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def _key(field_info) -> str:
    return field_info.metadata.get("key", field_info.name)


def _doc(key: str):
    return field(default=None, metadata={"key": key})


RecordT = TypeVar("RecordT", bound="Record")


class Record:
    """Mixin translating between dataclass attributes and document keys."""

    id: Optional[str]

    def to_document(self) -> Dict[str, Any]:
        return {_key(info): getattr(self, info.name) for info in fields(self)}

    @classmethod
    def from_document(cls: Type[RecordT], document: Mapping[str, Any]) -> RecordT:
        values: Dict[str, Any] = {}
        for info in fields(cls):
            key = _key(info)
            if key in document:
                values[info.name] = document[key]
        if values.get("id") is None and document.get("_id") is not None:
            values["id"] = str(document["_id"])
        return cls(**values)


@dataclass
class CoursePDF(Record):
    id: Optional[str] = None
    title: Optional[str] = None
    file_name: Optional[str] = _doc("fileName")
    file_path: Optional[str] = _doc("filePath")
    original_name: Optional[str] = _doc("originalName")
    uploaded_at: Optional[str] = _doc("uploadedAt")


@dataclass
class Assignment(Record):
    id: Optional[str] = None
    title: Optional[str] = None
    due_date: Optional[str] = _doc("dueDate")
    file_name: Optional[str] = _doc("fileName")
    file_path: Optional[str] = _doc("filePath")
    original_name: Optional[str] = _doc("originalName")
    uploaded_at: Optional[str] = _doc("uploadedAt")


@dataclass
class Marks(Record):
    id: Optional[str] = None
    student_id: Optional[str] = _doc("studentId")
    marks: Optional[float] = None
    subject: Optional[str] = None
    uploaded_at: Optional[str] = _doc("uploadedAt")


@dataclass
class AssignmentSubmission(Record):
    id: Optional[str] = None
    assignment_id: Optional[str] = _doc("assignmentId")
    student_id: Optional[str] = _doc("studentId")
    file_name: Optional[str] = _doc("fileName")
    file_path: Optional[str] = _doc("filePath")
    original_name: Optional[str] = _doc("originalName")
    marks: Optional[float] = None
    feedback: Optional[str] = None
    submitted_at: Optional[str] = _doc("submittedAt")


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------
def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_timestamp(value: Any) -> str:
    """Return *value* normalised to an ISO-8601 string.

    Accepts ``datetime``/``date`` objects and ISO strings, including the ``Z``
    suffix browsers send. Plain dates are interpreted as midnight UTC and
    aware values are converted to UTC.
    """

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as error:
            raise ValidationError(f"Invalid date value: {value!r}") from error
    else:
        raise ValidationError(f"Invalid date value: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    # Stored as UTC so that text ordering matches time ordering.
    return parsed.astimezone(timezone.utc).isoformat(timespec="milliseconds")


def parse_marks(value: Any) -> float | int:
    """Return *value* as a number, rejecting booleans and non-finite values."""

    if isinstance(value, bool):
        raise ValidationError("Marks must be numeric")
    if isinstance(value, (int, float)):
        number: float | int = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError as error:
            raise ValidationError("Marks must be numeric") from error
    else:
        raise ValidationError("Marks must be numeric")
    if isinstance(number, float):
        if not math.isfinite(number):
            raise ValidationError("Marks must be numeric")
        if number.is_integer():
            number = int(number)
    return number


# ---------------------------------------------------------------------------
# Collection schemas
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class CollectionSchema:
    """Describes how one record kind is validated, stored and ordered."""

    name: str
    record_type: Type[Record]
    table: str
    sort_field: str
    journal_file: Optional[str]
    required: Tuple[str, ...] = ()
    required_message: str = ""
    defaults: Mapping[str, Any] = field(default_factory=dict)
    coercers: Mapping[str, Callable[[Any], Any]] = field(default_factory=dict)

    @property
    def journaled(self) -> bool:
        return self.journal_file is not None

    def build(self, payload: Mapping[str, Any]) -> Record:
        """Validate *payload* and return a fully-populated record.

        Missing identifiers and timestamps are generated here so every record
        reaching storage is complete.
        """

        missing = [key for key in self.required if _is_blank(payload.get(key))]
        if missing:
            message = self.required_message or f"Missing required fields: {', '.join(missing)}"
            raise ValidationError(message)

        document: Dict[str, Any] = {}
        for key, default in self.defaults.items():
            document[key] = default
        for key, value in payload.items():
            if _is_blank(value) and key in self.defaults:
                continue
            document[key] = value
        for key, coerce in self.coercers.items():
            if document.get(key) is not None:
                document[key] = coerce(document[key])

        record = self.record_type.from_document(document)
        if _is_blank(record.id):
            record.id = new_record_id()
        else:
            record.id = str(record.id)
        sort_attribute = self.attribute_for(self.sort_field)
        if _is_blank(getattr(record, sort_attribute)):
            setattr(record, sort_attribute, utc_timestamp())
        else:
            setattr(record, sort_attribute, parse_timestamp(getattr(record, sort_attribute)))
        return record

    def attribute_for(self, key: str) -> str:
        for info in fields(self.record_type):
            if _key(info) == key:
                return info.name
        raise KeyError(key)

    def column_map(self) -> Dict[str, str]:
        """Map document keys to column names for the primary store."""

        return {_key(info): info.name for info in fields(self.record_type)}


COURSE_PDFS = CollectionSchema(
    name="course_pdfs",
    record_type=CoursePDF,
    table="course_pdfs",
    sort_field="uploadedAt",
    journal_file="pdf_records.json",
    defaults={"title": "Untitled PDF"},
)

ASSIGNMENTS = CollectionSchema(
    name="assignments",
    record_type=Assignment,
    table="assignments",
    sort_field="uploadedAt",
    journal_file="assignment_records.json",
    required=("title", "dueDate"),
    required_message="Title and due date are required",
    coercers={"dueDate": parse_timestamp},
)

MARKS = CollectionSchema(
    name="marks",
    record_type=Marks,
    table="marks",
    sort_field="uploadedAt",
    journal_file="marks_records.json",
    required=("studentId", "subject", "marks"),
    required_message="Student ID, subject, and marks are required",
    coercers={"marks": parse_marks},
)

ASSIGNMENT_SUBMISSIONS = CollectionSchema(
    name="assignment_submissions",
    record_type=AssignmentSubmission,
    table="assignment_submissions",
    sort_field="submittedAt",
    journal_file=None,
    required=("assignmentId", "studentId"),
    required_message="Assignment and student ID are required",
    defaults={"marks": None, "feedback": None},
    coercers={"marks": parse_marks},
)

COLLECTIONS: Dict[str, CollectionSchema] = {
    schema.name: schema
    for schema in (COURSE_PDFS, ASSIGNMENTS, MARKS, ASSIGNMENT_SUBMISSIONS)
}


def get_schema(collection: str) -> CollectionSchema:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise NotFoundError(f"Unknown collection: {collection}") from None


__all__ = [
    "ASSIGNMENTS",
    "ASSIGNMENT_SUBMISSIONS",
    "COLLECTIONS",
    "COURSE_PDFS",
    "MARKS",
    "Assignment",
    "AssignmentSubmission",
    "CollectionSchema",
    "CoursePDF",
    "Marks",
    "NotFoundError",
    "Record",
    "ValidationError",
    "get_schema",
    "new_record_id",
    "parse_marks",
    "parse_timestamp",
    "utc_timestamp",
]
