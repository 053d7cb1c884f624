from __future__ import annotations

from datetime import date, datetime, time
from pathlib import Path

import pytest

from core.command_schema import CommandSchema, EventData, QueryData, TimeData, TimeRange
from tools import calendar_edit_tool
from tools.calendar_store import AccessToken, CalendarAccessError, JsonCalendarStore

NOW = datetime(2025, 3, 12, 9, 0)


@pytest.fixture
def store(tmp_path: Path) -> JsonCalendarStore:
    return JsonCalendarStore(tmp_path / "events.json", token=AccessToken("secret"), clock=lambda: NOW)


def _add(store: JsonCalendarStore, summary: str, start: str, end: str) -> dict:
    return store.create_event(
        {
            "summary": summary,
            "start": {"dateTime": start, "timeZone": "Europe/Rome"},
            "end": {"dateTime": end, "timeZone": "Europe/Rome"},
        }
    )


def _event_command(intent: str, title: str, **timing) -> CommandSchema:
    return CommandSchema(intent=intent, event_data=EventData(title=title), time_data=TimeData(**timing))


def test_create_writes_the_event_record(store: JsonCalendarStore) -> None:
    schema = _event_command("create", "riunione", start_date=date(2025, 3, 13), start_time=time(10, 0))

    result = calendar_edit_tool.run(schema, store, now=NOW)

    assert result["action"] == "create"
    event = result["event"]
    assert event["summary"] == "riunione"
    assert event["start"]["dateTime"] == "2025-03-13T10:00:00"
    assert event["end"]["dateTime"] == "2025-03-13T11:00:00"
    assert calendar_edit_tool.format_calendar_response(result) == "Evento 'riunione' creato per 13/03/2025 alle 10:00."


def test_query_lists_events_in_range(store: JsonCalendarStore) -> None:
    _add(store, "riunione", "2025-03-13T10:00:00", "2025-03-13T11:00:00")
    _add(store, "palestra", "2025-03-20T18:00:00", "2025-03-20T19:00:00")
    schema = CommandSchema(
        intent="read",
        query_data=QueryData(time_range=TimeRange(datetime(2025, 3, 13), datetime(2025, 3, 13, 23, 59, 59))),
    )

    result = calendar_edit_tool.run(schema, store, now=NOW)

    assert result["count"] == 1
    assert calendar_edit_tool.format_calendar_response(result) == (
        "Eventi trovati:\n- riunione (13/03/2025 alle 10:00)"
    )


def test_delete_removes_the_single_match(store: JsonCalendarStore) -> None:
    _add(store, "Dentista", "2025-03-14T15:00:00", "2025-03-14T16:00:00")
    schema = _event_command("delete", "dentista", start_date=date(2025, 3, 14))

    result = calendar_edit_tool.run(schema, store, now=NOW)

    assert result["deleted"] is True
    assert store.list_events(NOW) == []
    assert calendar_edit_tool.format_calendar_response(result) == "Evento 'Dentista' eliminato."


def test_several_matches_require_a_selection(store: JsonCalendarStore) -> None:
    _add(store, "palestra", "2025-03-14T08:00:00", "2025-03-14T09:00:00")
    _add(store, "palestra serale", "2025-03-14T19:00:00", "2025-03-14T20:00:00")
    schema = _event_command("delete", "palestra", start_date=date(2025, 3, 14))

    result = calendar_edit_tool.run(schema, store, now=NOW)

    assert result["requires_selection"] is True
    assert len(result["candidates"]) == 2
    assert len(store.list_events(NOW)) == 2
    assert calendar_edit_tool.format_calendar_response(result).startswith("Ho trovato 2 eventi")


def test_update_moves_the_event_keeping_its_duration(store: JsonCalendarStore) -> None:
    _add(store, "riunione", "2025-03-13T10:00:00", "2025-03-13T11:30:00")
    schema = _event_command("update", "riunione", start_time=time(15, 0))

    result = calendar_edit_tool.run(schema, store, now=NOW)

    event = result["event"]
    assert result["action"] == "update"
    assert event["start"]["dateTime"] == "2025-03-13T15:00:00"
    assert event["end"]["dateTime"] == "2025-03-13T16:30:00"


def test_unknown_title_and_incomplete_commands(store: JsonCalendarStore) -> None:
    missing = calendar_edit_tool.run(
        _event_command("delete", "dentista", start_date=date(2025, 3, 14)), store, now=NOW
    )
    assert missing["error"] == "not_found"
    assert calendar_edit_tool.format_calendar_response(missing) == "Nessun evento trovato con titolo 'dentista'."

    incomplete = calendar_edit_tool.run(CommandSchema(intent="create"), store, now=NOW)
    assert incomplete["error"] == "incomplete_command"

    unrecognised = calendar_edit_tool.run(CommandSchema(), store, now=NOW)
    assert unrecognised["error"] == "missing_intent"


def test_access_errors_propagate(tmp_path: Path) -> None:
    store = JsonCalendarStore(tmp_path / "events.json", clock=lambda: NOW)
    schema = _event_command("create", "riunione", start_date=date(2025, 3, 13))

    with pytest.raises(CalendarAccessError):
        calendar_edit_tool.run(schema, store, now=NOW)
