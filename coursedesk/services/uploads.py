"""Storage of uploaded PDF documents."""

from __future__ import annotations

import contextlib
import logging
import random
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional

from .events import emit_file_event


LOGGER = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
UPLOAD_URL_PREFIX = "uploads"

_DEFAULT_CHUNK_SIZE = 1024 * 1024
_UNSAFE_CHARACTERS = re.compile(r"[^a-zA-Z0-9.]")


class UploadRejected(ValueError):
    """Raised when an upload is missing or not a PDF."""


class UploadTooLarge(UploadRejected):
    """Raised when an upload exceeds the configured size limit."""


@dataclass
class StoredUpload:
    file_name: str
    file_path: str
    original_name: str
    size: int


def sanitize_filename(original_name: str) -> str:
    """Replace every character outside ``[A-Za-z0-9.]`` with an underscore."""

    name = Path(original_name or "").name
    return _UNSAFE_CHARACTERS.sub("_", name) or "upload.pdf"


def build_unique_name(original_name: str, *, now_ms: Optional[int] = None) -> str:
    """Return ``<epoch-ms>-<random>-<sanitized name>``."""

    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{stamp}-{random.randint(0, 10**9 - 1)}-{sanitize_filename(original_name)}"


def save_pdf_upload(
    upload_root: Path,
    *,
    filename: Optional[str],
    content_type: Optional[str],
    source: BinaryIO,
    max_bytes: int,
    chunk_size: int = _DEFAULT_CHUNK_SIZE,
) -> StoredUpload:
    """Copy *source* into *upload_root* enforcing the PDF type and size limit."""

    if not filename:
        raise UploadRejected("Please upload a PDF file")
    if (content_type or "").split(";")[0].strip().lower() != PDF_CONTENT_TYPE:
        raise UploadRejected("Only PDF files are allowed!")

    upload_root.mkdir(parents=True, exist_ok=True)
    stored_name = build_unique_name(filename)
    target = upload_root / stored_name

    if hasattr(source, "seek"):
        with contextlib.suppress(OSError, ValueError):
            source.seek(0)

    start = time.perf_counter()
    written = 0
    try:
        with target.open("wb") as buffer:
            while True:
                chunk = source.read(chunk_size)
                if not chunk:
                    break
                written += len(chunk)
                if max_bytes > 0 and written > max_bytes:
                    raise UploadTooLarge(
                        f"File is too large. Maximum size is {max_bytes // (1024 * 1024)}MB"
                    )
                buffer.write(chunk)
    except BaseException:
        with contextlib.suppress(OSError):
            target.unlink()
        raise

    emit_file_event(
        "upload.store",
        payload={"path": target, "bytes": written, "original": filename},
        duration_ms=(time.perf_counter() - start) * 1000.0,
    )
    LOGGER.info("Stored upload %s (%s bytes) as %s", filename, written, stored_name)
    return StoredUpload(
        file_name=stored_name,
        file_path=f"{UPLOAD_URL_PREFIX}/{stored_name}",
        original_name=filename,
        size=written,
    )


def remove_upload(upload_root: Path, file_name: Optional[str]) -> bool:
    """Delete a stored upload; returns ``False`` when nothing was removed."""

    if not file_name:
        return False
    target = upload_root / Path(file_name).name
    try:
        target.unlink()
    except FileNotFoundError:
        return False
    except OSError as error:
        LOGGER.error("Error deleting file %s: %s", target, error)
        return False
    emit_file_event("upload.delete", payload={"path": target})
    return True


__all__ = [
    "PDF_CONTENT_TYPE",
    "StoredUpload",
    "UploadRejected",
    "UploadTooLarge",
    "build_unique_name",
    "remove_upload",
    "sanitize_filename",
    "save_pdf_upload",
]
