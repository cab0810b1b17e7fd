"""Configuration loading utilities for the CourseDesk records service."""

from __future__ import annotations

import contextlib
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Tuple


LOGGER = logging.getLogger(__name__)


_PERMISSION_SENTINEL = ".coursedesk_write_check"

DEFAULT_RECONNECT_INTERVAL_SECONDS = 5.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 5.0
DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024

MAX_UPLOAD_ENV_VAR = "COURSEDESK_MAX_UPLOAD_BYTES"


def _ensure_writable_directory(path: Path) -> bool:
    """Return ``True`` if *path* can be created and written to."""

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False

    sentinel = path / _PERMISSION_SENTINEL
    try:
        with sentinel.open("w", encoding="utf-8") as handle:
            handle.write("ok")
    except OSError:
        return False
    finally:
        with contextlib.suppress(OSError):
            sentinel.unlink()

    return True


def _select_writable_directory(
    preferred: Path,
    *,
    label: str,
    fallbacks: Iterable[Path] = (),
) -> Tuple[Path, bool]:
    """Return a usable directory based on ``preferred`` and ``fallbacks``.

    The first writable candidate wins. The boolean flag reports whether a
    fallback had to be used. When nothing can be prepared the preferred path is
    returned unchanged and the bootstrapper reports the problem.
    """

    preferred = preferred.resolve()
    if _ensure_writable_directory(preferred):
        return preferred, False

    for fallback in fallbacks:
        candidate = fallback.resolve()
        if candidate == preferred:
            continue
        if _ensure_writable_directory(candidate):
            LOGGER.warning(
                "Preferred %s directory '%s' is not writable; using fallback '%s'.",
                label,
                preferred,
                candidate,
            )
            return candidate, True

    LOGGER.warning(
        "%s directory '%s' is not writable and no fallback is available.",
        label.capitalize(),
        preferred,
    )
    return preferred, False


def _read_upload_limit(raw_value: Any) -> int:
    override = (os.environ.get(MAX_UPLOAD_ENV_VAR) or "").strip()
    if override:
        try:
            return int(override)
        except ValueError:
            LOGGER.warning(
                "Ignoring invalid %s value %r; using configured limit.",
                MAX_UPLOAD_ENV_VAR,
                override,
            )
    if raw_value is None:
        return DEFAULT_MAX_UPLOAD_BYTES
    return int(raw_value)


@dataclass(frozen=True)
class AppConfig:
    """Runtime paths and tunables for the records service."""

    storage_root: Path
    database_file: Path
    journal_root: Path
    upload_root: Path
    reconnect_interval_seconds: float = DEFAULT_RECONNECT_INTERVAL_SECONDS
    connect_timeout_seconds: float = DEFAULT_CONNECT_TIMEOUT_SECONDS
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any], *, base_path: Path) -> "AppConfig":
        preferred_storage = (base_path / mapping["storage_root"]).resolve()
        storage_root, _ = _select_writable_directory(
            preferred_storage,
            label="storage",
            fallbacks=(Path.home() / ".coursedesk" / "storage",),
        )

        journal_root, _ = _select_writable_directory(
            (base_path / mapping.get("journal_root", "storage/journal")).resolve(),
            label="journal",
            fallbacks=(storage_root / "journal",),
        )

        upload_root, _ = _select_writable_directory(
            (base_path / mapping.get("upload_root", "uploads")).resolve(),
            label="upload",
            fallbacks=(storage_root / "uploads",),
        )

        # The primary database may legitimately be unreachable; it is not
        # relocated, only reported.
        database_file = (base_path / mapping["database_file"]).resolve()

        return cls(
            storage_root=storage_root,
            database_file=database_file,
            journal_root=journal_root,
            upload_root=upload_root,
            reconnect_interval_seconds=float(
                mapping.get("reconnect_interval_seconds", DEFAULT_RECONNECT_INTERVAL_SECONDS)
            ),
            connect_timeout_seconds=float(
                mapping.get("connect_timeout_seconds", DEFAULT_CONNECT_TIMEOUT_SECONDS)
            ),
            max_upload_bytes=_read_upload_limit(mapping.get("max_upload_bytes")),
        )


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load the service configuration from ``config/default.json`` by default."""

    base_path = Path(__file__).resolve().parent.parent
    if config_path is None:
        config_path = base_path / "config" / "default.json"

    with config_path.open("r", encoding="utf-8") as config_file:
        raw_config = json.load(config_file)

    return AppConfig.from_mapping(raw_config, base_path=base_path)


__all__ = ["AppConfig", "load_config"]
