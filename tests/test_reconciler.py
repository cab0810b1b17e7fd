from __future__ import annotations

import json

from coursedesk.services.placeholders import is_placeholder_id
from coursedesk.services.records import ASSIGNMENTS, COURSE_PDFS, MARKS


def _assignment(record_id: str, uploaded_at: str) -> dict:
    return {
        "id": record_id,
        "title": f"Assignment {record_id}",
        "dueDate": "2025-06-01",
        "uploadedAt": uploaded_at,
    }


def test_primary_results_are_most_recent_first_and_exclusive(persistence) -> None:
    writer = persistence.writer
    writer.write(ASSIGNMENTS, _assignment("older", "2025-01-01T09:00:00+00:00"))
    writer.write(ASSIGNMENTS, _assignment("newest", "2025-03-01T09:00:00+00:00"))
    writer.write(ASSIGNMENTS, _assignment("middle", "2025-02-01T09:00:00+00:00"))
    persistence.journal.append(ASSIGNMENTS, _assignment("journal-only", "2025-04-01T00:00:00+00:00"))

    result = persistence.reader.read_all("assignments")

    assert result.source == "primary"
    assert result.degraded is False
    assert [record["id"] for record in result.records] == ["newest", "middle", "older"]


def test_primary_order_follows_time_across_utc_offsets(persistence) -> None:
    writer = persistence.writer
    writer.write(ASSIGNMENTS, _assignment("early", "2025-01-01T10:00:00+05:00"))
    writer.write(ASSIGNMENTS, _assignment("late", "2025-01-01T06:00:00+00:00"))

    result = persistence.reader.read_all(ASSIGNMENTS)

    assert [record["id"] for record in result.records] == ["late", "early"]
    assert result.records[1]["uploadedAt"] == "2025-01-01T05:00:00.000+00:00"

def test_primary_with_two_records_hides_different_journal_record(persistence) -> None:
    store = persistence.store
    store.insert(ASSIGNMENTS, ASSIGNMENTS.build(_assignment("p1", "2025-01-01T00:00:00+00:00")))
    store.insert(ASSIGNMENTS, ASSIGNMENTS.build(_assignment("p2", "2025-01-02T00:00:00+00:00")))
    persistence.journal.append(ASSIGNMENTS, _assignment("j1", "2025-01-03T00:00:00+00:00"))

    result = persistence.reader.read_all(ASSIGNMENTS)

    assert [record["id"] for record in result.records] == ["p2", "p1"]


def test_unreachable_primary_serves_journal_in_insertion_order(offline_persistence) -> None:
    writer = offline_persistence.writer
    writer.write(MARKS, {"studentId": "a", "subject": "Art", "marks": 1, "uploadedAt": "2025-03-01"})
    writer.write(MARKS, {"studentId": "b", "subject": "Art", "marks": 2, "uploadedAt": "2025-01-01"})
    writer.write(MARKS, {"studentId": "c", "subject": "Art", "marks": 3, "uploadedAt": "2025-02-01"})

    result = offline_persistence.reader.read_all(MARKS)

    assert result.source == "journal"
    assert result.degraded is True
    assert [record["studentId"] for record in result.records] == ["a", "b", "c"]


def test_empty_primary_falls_back_to_journal(persistence) -> None:
    persistence.journal.append(COURSE_PDFS, {"id": "j-1", "title": "Notes"})

    result = persistence.reader.read_all(COURSE_PDFS)

    assert result.source == "journal"
    assert result.records == [{"id": "j-1", "title": "Notes"}]


def test_total_outage_serves_fixed_placeholders(offline_persistence) -> None:
    for collection, prefix in (
        (COURSE_PDFS, "placeholder-pdf-"),
        (ASSIGNMENTS, "placeholder-assignment-"),
        (MARKS, "placeholder-marks-"),
    ):
        result = offline_persistence.reader.read_all(collection)

        assert result.source == "placeholder"
        assert len(result.records) == 2
        assert all(is_placeholder_id(record["id"]) for record in result.records)
        assert all(record["id"].startswith(prefix) for record in result.records)
        assert all(record["placeholder"] is True for record in result.records)


def test_scenario_journal_only_assignment_round_trip(offline_persistence) -> None:
    written = offline_persistence.writer.write(
        "assignments", {"title": "HW1", "dueDate": "2025-05-01"}
    )
    assert written.durable_primary is False

    result = offline_persistence.reader.read_all("assignments")

    assert result.source == "journal"
    assert len(result.records) == 1
    record = result.records[0]
    assert record["title"] == "HW1"
    assert record["id"] == written.record["id"]
    assert record["uploadedAt"]


def test_corrupt_journal_degrades_to_placeholders(offline_persistence) -> None:
    path = offline_persistence.journal.path_for(MARKS)
    path.write_text("{ definitely not json", encoding="utf-8")

    result = offline_persistence.reader.read_all(MARKS)

    assert result.source == "placeholder"


def test_legacy_journal_identifiers_are_normalized(offline_persistence) -> None:
    path = offline_persistence.journal.path_for(COURSE_PDFS)
    path.write_text(json.dumps([{"_id": "1714000000000", "title": "Legacy"}]), encoding="utf-8")

    result = offline_persistence.reader.read_all(COURSE_PDFS)

    assert result.records == [{"id": "1714000000000", "title": "Legacy"}]


def test_find_prefers_primary_then_journal(persistence) -> None:
    stored = persistence.writer.write(ASSIGNMENTS, {"title": "HW2", "dueDate": "2025-07-01"})
    persistence.journal.append(ASSIGNMENTS, _assignment("journal-only", "2025-01-01T00:00:00+00:00"))

    assert persistence.reader.find(ASSIGNMENTS, stored.record["id"]) == stored.record
    assert persistence.reader.find(ASSIGNMENTS, "journal-only")["title"] == "Assignment journal-only"
    assert persistence.reader.find(ASSIGNMENTS, "missing") is None
