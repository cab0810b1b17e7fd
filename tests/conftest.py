from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, List

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from coursedesk.bootstrap import Bootstrapper
from coursedesk.config import AppConfig
from coursedesk.services.persistence import PersistenceLayer


class ManualTimer:
    """Timer stand-in that only runs its callback when a test fires it."""

    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        self.interval = interval
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.callback()


class TimerRecorder:
    def __init__(self) -> None:
        self.timers: List[ManualTimer] = []

    def __call__(self, interval: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(interval, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> List[ManualTimer]:
        return [timer for timer in self.timers if timer.started and not timer.cancelled]

    def fire_latest(self) -> None:
        self.timers[-1].fire()


def _build_config(tmp_path: Path, database_file: str) -> AppConfig:
    config = AppConfig.from_mapping(
        {
            "storage_root": "storage",
            "database_file": database_file,
            "journal_root": "storage/journal",
            "upload_root": "uploads",
            "reconnect_interval_seconds": 5,
            "connect_timeout_seconds": 1,
        },
        base_path=tmp_path,
    )
    Bootstrapper(config).initialize()
    return config


@pytest.fixture()
def temp_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AppConfig:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("COURSEDESK_MAX_UPLOAD_BYTES", raising=False)
    return _build_config(tmp_path, "storage/coursedesk.db")


@pytest.fixture()
def offline_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AppConfig:
    """Configuration whose primary database lives below a regular file."""

    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("COURSEDESK_MAX_UPLOAD_BYTES", raising=False)
    (tmp_path / "blocked").write_text("not a directory", encoding="utf-8")
    return _build_config(tmp_path, "blocked/coursedesk.db")


@pytest.fixture()
def timers() -> TimerRecorder:
    return TimerRecorder()


@pytest.fixture()
def persistence(temp_config: AppConfig, timers: TimerRecorder) -> PersistenceLayer:
    layer = PersistenceLayer(temp_config, timer_factory=timers)
    assert layer.start() is True
    yield layer
    layer.stop()


@pytest.fixture()
def offline_persistence(offline_config: AppConfig, timers: TimerRecorder) -> PersistenceLayer:
    layer = PersistenceLayer(offline_config, timer_factory=timers)
    assert layer.start() is False
    yield layer
    layer.stop()
