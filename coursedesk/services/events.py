"""Structured log events emitted by the persistence layer."""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional


DEFAULT_EVENT_LOGGER = logging.getLogger("coursedesk.events")

_MAX_VALUE_LENGTH = 200


def sanitize_context_value(value: Any) -> Any:
    """Return a compact, log-friendly representation for *value*."""

    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return normalize_context(value)
    if isinstance(value, (list, tuple, set)):
        text = ", ".join(str(item) for item in value)
    else:
        text = str(value)
    text = text.strip()
    if not text:
        return None
    if len(text) > _MAX_VALUE_LENGTH:
        return text[:_MAX_VALUE_LENGTH] + "…"
    return text


def normalize_context(values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Drop empty entries and sanitise the rest."""

    if not values:
        return {}
    normalized: Dict[str, Any] = {}
    for key, raw_value in values.items():
        if not key:
            continue
        value = sanitize_context_value(raw_value)
        if value is None or value == "" or value == {}:
            continue
        normalized[str(key)] = value
    return normalized


def emit_structured_event(
    event_type: str,
    message: str,
    *,
    payload: Optional[Dict[str, Any]] = None,
    correlation: Optional[Dict[str, Any]] = None,
    duration_ms: Optional[float] = None,
    level: int = logging.INFO,
    logger: logging.Logger | logging.LoggerAdapter = DEFAULT_EVENT_LOGGER,
) -> None:
    """Log *message* tagged with *event_type* and flattened key=value details."""

    base_message = str(message).strip()
    details = {**normalize_context(correlation), **normalize_context(payload)}
    if duration_ms is not None:
        details["duration_ms"] = round(float(duration_ms), 2)
    rendered = f"[{event_type}] {base_message}" if event_type else base_message
    if details:
        rendered += " (" + ", ".join(f"{key}={value}" for key, value in details.items()) + ")"
    logger.log(
        level,
        rendered,
        extra={
            "event": base_message,
            "event_type": event_type or "",
            "event_details": details,
        },
    )


def emit_db_event(
    action: str,
    *,
    payload: Optional[Dict[str, Any]] = None,
    duration_ms: Optional[float] = None,
    level: int = logging.DEBUG,
    logger: logging.Logger | logging.LoggerAdapter = DEFAULT_EVENT_LOGGER,
) -> None:
    """Emit a primary-store event."""

    emit_structured_event(
        "DB_QUERY",
        action,
        payload=payload,
        duration_ms=duration_ms,
        level=level,
        logger=logger,
    )


def emit_file_event(
    operation: str,
    *,
    payload: Optional[Dict[str, Any]] = None,
    duration_ms: Optional[float] = None,
    level: int = logging.DEBUG,
    logger: logging.Logger | logging.LoggerAdapter = DEFAULT_EVENT_LOGGER,
) -> None:
    """Emit a journal file event."""

    emit_structured_event(
        "FILE_OP",
        operation,
        payload=payload,
        duration_ms=duration_ms,
        level=level,
        logger=logger,
    )


__all__ = [
    "DEFAULT_EVENT_LOGGER",
    "emit_db_event",
    "emit_file_event",
    "emit_structured_event",
    "normalize_context",
    "sanitize_context_value",
]
