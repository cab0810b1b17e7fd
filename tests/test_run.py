"""Tests for the run.py entrypoint helpers."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from rich.console import Console
from typer.testing import CliRunner

import run
from coursedesk.services.records import MARKS


def test_serve_wires_persistence_into_uvicorn(monkeypatch, tmp_path):
    captured = {}
    config = SimpleNamespace(storage_root=tmp_path)

    monkeypatch.setattr(run, "initialize_app", lambda: config)
    monkeypatch.setattr(
        run,
        "_prepare_logging",
        lambda storage_root: captured.setdefault("log_root", storage_root),
    )
    persistence = object()
    monkeypatch.setattr(run, "PersistenceLayer", lambda app_config: persistence)

    dummy_app = SimpleNamespace(state=SimpleNamespace())

    def fake_create_app(layer, config):
        captured["persistence"] = layer
        captured["app_config"] = config
        return dummy_app

    monkeypatch.setattr(run, "create_app", fake_create_app)

    class DummyConfig:
        def __init__(self, app, **kwargs):
            captured["app"] = app
            captured["config_kwargs"] = kwargs

    class DummyServer:
        def __init__(self, config):
            captured["server_config"] = config
            captured["server_instance"] = self

        def run(self):
            captured["server_run"] = True

    monkeypatch.setattr(run.uvicorn, "Config", DummyConfig)
    monkeypatch.setattr(run.uvicorn, "Server", DummyServer)

    run.serve(host="0.0.0.0", port=9000)

    assert captured["log_root"] == tmp_path
    assert captured["persistence"] is persistence
    assert captured["app_config"] is config
    assert captured["app"] is dummy_app
    assert captured["config_kwargs"] == {"host": "0.0.0.0", "port": 9000, "log_config": None}
    assert captured["server_run"] is True
    assert dummy_app.state.server is captured["server_instance"]


@pytest.fixture()
def recorded_console(monkeypatch):
    console = Console(record=True, width=200)
    monkeypatch.setattr(run, "CONSOLE", console)
    return console


def test_journal_command_lists_entries(monkeypatch, temp_config, recorded_console):
    monkeypatch.setattr(run, "initialize_app", lambda: temp_config)
    from coursedesk.services.journal import FallbackJournal

    FallbackJournal(temp_config.journal_root).append(
        MARKS,
        {"id": "m-1", "studentId": "s-1", "subject": "History", "marks": 64},
    )

    result = CliRunner().invoke(run.cli, ["journal", "marks"])

    assert result.exit_code == 0, result.output
    text = recorded_console.export_text()
    assert "History" in text
    assert "s-1" in text


def test_journal_command_reports_empty_journal(monkeypatch, temp_config, recorded_console):
    monkeypatch.setattr(run, "initialize_app", lambda: temp_config)

    result = CliRunner().invoke(run.cli, ["journal", "assignments"])

    assert result.exit_code == 0, result.output
    assert "Journal for assignments is empty." in recorded_console.export_text()


def test_journal_command_rejects_unjournaled_collection():
    result = CliRunner().invoke(run.cli, ["journal", "assignment_submissions"])

    assert result.exit_code != 0


def test_status_command_reports_sources(monkeypatch, offline_config, timers, recorded_console):
    from coursedesk.services.persistence import PersistenceLayer

    monkeypatch.setattr(run, "initialize_app", lambda: offline_config)
    monkeypatch.setattr(
        run,
        "PersistenceLayer",
        lambda config: PersistenceLayer(config, timer_factory=timers),
    )

    result = CliRunner().invoke(run.cli, ["status"])

    assert result.exit_code == 0, result.output
    text = recorded_console.export_text()
    assert "unreachable" in text
    assert "placeholder" in text
