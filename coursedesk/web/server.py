"""FastAPI application exposing the CourseDesk records service."""

from __future__ import annotations

import contextlib
import contextvars
import logging
import uuid
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, File, Form, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Receive, Scope, Send

from ..config import AppConfig
from ..services.coordinator import WriteResult
from ..services.events import emit_structured_event
from ..services.journal import JournalWriteError
from ..services.persistence import PersistenceLayer
from ..services.primary import PrimaryUnavailableError, PrimaryWriteRejected
from ..services.reconciler import ReadResult
from ..services.records import ASSIGNMENTS, COURSE_PDFS, MARKS, NotFoundError, ValidationError
from ..services.uploads import (
    StoredUpload,
    UploadRejected,
    UploadTooLarge,
    remove_upload,
    save_pdf_upload,
)


DATA_SOURCE_HEADER = "X-Data-Source"

_REQUEST_ID_VAR: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "coursedesk_request_id",
    default=None,
)


def _new_correlation_id() -> str:
    return uuid.uuid4().hex


def _collect_correlation_context() -> Dict[str, str]:
    request_id = _REQUEST_ID_VAR.get()
    return {"request_id": request_id} if request_id else {}


class RequestContextMiddleware:
    """Assign a correlation identifier to each request and expose it via contextvars."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        token = _REQUEST_ID_VAR.set(_new_correlation_id())
        try:
            await self.app(scope, receive, send)
        finally:
            _REQUEST_ID_VAR.reset(token)


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that injects the request correlation id into records."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple[Any, Dict[str, Any]]:  # type: ignore[override]
        extra: Dict[str, Any] = dict(self.extra or {})
        provided = kwargs.get("extra")
        if isinstance(provided, dict):
            extra.update(provided)
        for key, value in _collect_correlation_context().items():
            extra.setdefault(key, value)
        kwargs["extra"] = extra
        return msg, kwargs


LOGGER = ContextualLoggerAdapter(logging.getLogger(__name__), {})
EVENT_LOGGER = ContextualLoggerAdapter(logging.getLogger("coursedesk.events.http"), {})


def _log_event(message: str, **context: Any) -> None:
    emit_structured_event(
        "APP_EVENT",
        message,
        payload=context,
        correlation=_collect_correlation_context(),
        logger=EVENT_LOGGER,
    )


class MarksPayload(BaseModel):
    studentId: Optional[str] = None
    subject: Optional[str] = None
    marks: Any = None


class GradePayload(BaseModel):
    marks: Any = None
    feedback: Optional[str] = None


def _error(status_code: int, message: str, code: str, **extra: Any) -> JSONResponse:
    body: Dict[str, Any] = {"error": message, "code": code}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


def _write_response(result: WriteResult, message: str) -> JSONResponse:
    body: Dict[str, Any] = {
        "message": message if result.durable_primary else f"{message} (file system only)",
        "data": result.record,
        "durablePrimary": result.durable_primary,
    }
    if result.note:
        body["note"] = result.note
    return JSONResponse(status_code=status.HTTP_201_CREATED, content=body)


def _list_response(result: ReadResult) -> JSONResponse:
    return JSONResponse(content=result.records, headers={DATA_SOURCE_HEADER: result.source})


def create_app(
    persistence: PersistenceLayer,
    *,
    config: AppConfig,
    manage_lifecycle: bool = True,
) -> FastAPI:
    """Return a configured FastAPI application.

    With ``manage_lifecycle`` the connectivity monitor is started and stopped
    together with the application.
    """

    @contextlib.asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if manage_lifecycle:
            persistence.start()
        try:
            yield
        finally:
            if manage_lifecycle:
                persistence.stop()

    app = FastAPI(
        title="CourseDesk",
        description="Course documents, assignments and marks with a journaled fallback store",
        lifespan=lifespan,
    )
    app.state.persistence = persistence
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.mount(
        "/uploads",
        StaticFiles(directory=config.upload_root, check_dir=False),
        name="uploads",
    )

    writer = persistence.writer
    reader = persistence.reader
    submissions = persistence.submissions

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------
    @app.exception_handler(ValidationError)
    async def _validation_error(_request: Request, error: ValidationError) -> JSONResponse:
        return _error(400, str(error), "VALIDATION_ERROR")

    @app.exception_handler(UploadRejected)
    async def _upload_rejected(_request: Request, error: UploadRejected) -> JSONResponse:
        if isinstance(error, UploadTooLarge):
            return _error(413, str(error), "FILE_TOO_LARGE")
        return _error(400, str(error), "UPLOAD_ERROR")

    @app.exception_handler(NotFoundError)
    async def _not_found(_request: Request, error: NotFoundError) -> JSONResponse:
        return _error(404, str(error), "NOT_FOUND")

    @app.exception_handler(PrimaryUnavailableError)
    async def _primary_unavailable(_request: Request, error: PrimaryUnavailableError) -> JSONResponse:
        LOGGER.warning("Request rejected, primary store unavailable: %s", error)
        return _error(503, "Database is unavailable, please retry later", "PRIMARY_UNAVAILABLE")

    @app.exception_handler(PrimaryWriteRejected)
    async def _primary_rejected(_request: Request, error: PrimaryWriteRejected) -> JSONResponse:
        return _error(400, str(error), "PRIMARY_WRITE_REJECTED")

    @app.exception_handler(JournalWriteError)
    async def _journal_failed(_request: Request, error: JournalWriteError) -> JSONResponse:
        LOGGER.error("Journal write failed: %s", error)
        return _error(500, "Failed to persist record", "JOURNAL_WRITE_FAILED", details=str(error))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_request: Request, error: StarletteHTTPException) -> JSONResponse:
        if error.status_code == 404 and error.detail == "Not Found":
            return _error(404, "Endpoint not found", "NOT_FOUND")
        return _error(error.status_code, str(error.detail), f"HTTP_{error.status_code}")

    def _store_upload(file: Optional[UploadFile]) -> StoredUpload:
        if file is None:
            raise UploadRejected("Please upload a PDF file")
        try:
            return save_pdf_upload(
                config.upload_root,
                filename=file.filename,
                content_type=file.content_type,
                source=file.file,
                max_bytes=config.max_upload_bytes,
            )
        finally:
            file.file.close()

    def _write_with_upload(collection, payload: Dict[str, Any], upload: StoredUpload) -> WriteResult:
        payload.update(
            {
                "fileName": upload.file_name,
                "filePath": upload.file_path,
                "originalName": upload.original_name,
            }
        )
        try:
            return writer.write(collection, payload)
        except (ValidationError, JournalWriteError):
            remove_upload(config.upload_root, upload.file_name)
            raise

    # ------------------------------------------------------------------
    # Course PDFs
    # ------------------------------------------------------------------
    @app.post("/api/course-pdfs", status_code=status.HTTP_201_CREATED)
    def upload_course_pdf(
        title: Optional[str] = Form(None),
        file: Optional[UploadFile] = File(None),
    ) -> JSONResponse:
        upload = _store_upload(file)
        _log_event("Uploading course PDF", original=upload.original_name, bytes=upload.size)
        result = _write_with_upload(COURSE_PDFS, {"title": title}, upload)
        return _write_response(result, "PDF uploaded successfully")

    @app.get("/api/course-pdfs")
    def list_course_pdfs() -> JSONResponse:
        result = reader.read_all(COURSE_PDFS)
        _log_event("Listed course PDFs", source=result.source, count=len(result.records))
        return _list_response(result)

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------
    @app.post("/api/assignments", status_code=status.HTTP_201_CREATED)
    def upload_assignment(
        title: Optional[str] = Form(None),
        dueDate: Optional[str] = Form(None),
        file: Optional[UploadFile] = File(None),
    ) -> JSONResponse:
        upload = _store_upload(file)
        _log_event("Uploading assignment", title=title, due=dueDate)
        result = _write_with_upload(ASSIGNMENTS, {"title": title, "dueDate": dueDate}, upload)
        return _write_response(result, "Assignment uploaded successfully")

    @app.get("/api/assignments")
    def list_assignments() -> JSONResponse:
        result = reader.read_all(ASSIGNMENTS)
        _log_event("Listed assignments", source=result.source, count=len(result.records))
        return _list_response(result)

    @app.get("/api/assignments/submissions/{student_id}")
    def list_student_submissions(student_id: str) -> JSONResponse:
        return JSONResponse(content=submissions.list_for_student(student_id))

    @app.post("/api/assignments/submissions/{submission_id}/grade")
    def grade_submission(submission_id: str, payload: GradePayload) -> Dict[str, Any]:
        _log_event("Grading submission", submission_id=submission_id)
        updated = submissions.grade(submission_id, payload.marks, payload.feedback)
        return {"message": "Assignment graded successfully", "data": updated}

    @app.get("/api/assignments/{assignment_id}")
    def get_assignment(assignment_id: str) -> Dict[str, Any]:
        document = reader.find(ASSIGNMENTS, assignment_id)
        if document is None:
            raise NotFoundError("Assignment not found")
        return document

    @app.delete("/api/assignments/{assignment_id}")
    def delete_assignment(assignment_id: str) -> Dict[str, Any]:
        _log_event("Deleting assignment", assignment_id=assignment_id)
        try:
            persistence.delete(ASSIGNMENTS, assignment_id)
        except NotFoundError:
            raise NotFoundError("Assignment not found") from None
        return {"message": "Assignment deleted successfully"}

    @app.post("/api/assignments/{assignment_id}/submit", status_code=status.HTTP_201_CREATED)
    def submit_assignment(
        assignment_id: str,
        studentId: Optional[str] = Form(None),
        file: Optional[UploadFile] = File(None),
    ) -> JSONResponse:
        upload = _store_upload(file)
        _log_event("Submitting assignment", assignment_id=assignment_id, student_id=studentId)
        try:
            submission = submissions.submit(
                assignment_id,
                {
                    "studentId": studentId,
                    "fileName": upload.file_name,
                    "filePath": upload.file_path,
                    "originalName": upload.original_name,
                },
            )
        except Exception:
            remove_upload(config.upload_root, upload.file_name)
            raise
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content={"message": "Assignment submitted successfully", "data": submission},
        )

    @app.get("/api/assignments/{assignment_id}/submissions")
    def list_assignment_submissions(assignment_id: str) -> JSONResponse:
        return JSONResponse(content=submissions.list_for_assignment(assignment_id))

    # ------------------------------------------------------------------
    # Marks
    # ------------------------------------------------------------------
    @app.post("/api/marks", status_code=status.HTTP_201_CREATED)
    def add_marks(payload: MarksPayload) -> JSONResponse:
        _log_event("Adding marks", student_id=payload.studentId, subject=payload.subject)
        result = writer.write(MARKS, payload.model_dump())
        return _write_response(result, "Marks added successfully")

    @app.get("/api/marks")
    def list_marks() -> JSONResponse:
        result = reader.read_all(MARKS)
        _log_event("Listed marks", source=result.source, count=len(result.records))
        return _list_response(result)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------
    @app.get("/api/health")
    def health() -> Dict[str, Any]:
        return {
            "primary": persistence.monitor.status(),
            "database": str(config.database_file),
            "journalRoot": str(config.journal_root),
        }

    return app


__all__ = ["DATA_SOURCE_HEADER", "create_app"]
