from __future__ import annotations

from datetime import date, datetime, time

import pytest

from core.command_schema import (
    CommandSchema,
    EventData,
    ParsingMetadata,
    QueryData,
    SchemaConversionError,
    TimeData,
    TimeRange,
    empty_schema,
    is_recurrence_tag,
    recurrence_to_rrule,
)

TODAY = date(2025, 3, 12)


def _create(**timing) -> CommandSchema:
    return CommandSchema(
        intent="create",
        event_data=EventData(title="Standup"),
        time_data=TimeData(**timing),
    )


def test_containers_always_exist_and_limit_defaults() -> None:
    schema = CommandSchema()
    assert schema.event_data.participants == []
    assert schema.query_data.limit == 10
    assert schema.parsing_metadata.ambiguities == []
    assert QueryData(limit=0).limit == 10
    assert QueryData(limit=-3).limit == 10


def test_confidence_is_clamped() -> None:
    assert CommandSchema(confidence=1.7).confidence == 1.0
    assert CommandSchema(confidence=-0.2).confidence == 0.0


def test_validate_per_intent_table() -> None:
    assert _create(start_date=TODAY).validate() is True
    assert _create(start_time=time(10, 0)).validate() is True
    assert _create().validate() is False

    update = CommandSchema(intent="update", event_data=EventData(title="Standup", location="Sala B"))
    assert update.validate() is True
    update.event_data.location = None
    assert update.validate() is False

    query = CommandSchema(intent="query", query_data=QueryData(search_term="Mario"))
    assert query.validate() is True
    assert CommandSchema(intent="read").validate() is False
    assert CommandSchema(intent=None).validate() is False


def test_event_bounds_defaults_to_noon_and_default_duration() -> None:
    start, end = _create(start_date=TODAY).event_bounds()
    assert start == datetime(2025, 3, 12, 12, 0)
    assert end == datetime(2025, 3, 12, 13, 0)


def test_event_bounds_repairs_end_before_start() -> None:
    schema = _create(start_date=TODAY, start_time=time(15, 0), end_time=time(14, 0))
    start, end = schema.event_bounds(default_duration=45)
    assert start == datetime(2025, 3, 12, 15, 0)
    assert end == datetime(2025, 3, 12, 15, 45)


def test_event_bounds_uses_duration_and_today() -> None:
    schema = _create(start_time=time(9, 30), duration=90)
    start, end = schema.event_bounds(today=TODAY)
    assert start == datetime(2025, 3, 12, 9, 30)
    assert end == datetime(2025, 3, 12, 11, 0)


def test_to_event_record_shape() -> None:
    schema = _create(start_date=TODAY, start_time=time(10, 0), recurrence="weekly;BYDAY=MO")
    schema.event_data.participants = ["mario@example.com", "Giulia"]
    record = schema.to_event_record(time_zone="Europe/Rome")

    assert record["summary"] == "Standup"
    assert record["start"] == {"dateTime": "2025-03-12T10:00:00", "timeZone": "Europe/Rome"}
    assert record["end"]["dateTime"] == "2025-03-12T11:00:00"
    assert record["recurrence"] == ["RRULE:FREQ=WEEKLY;BYDAY=MO"]
    assert record["attendees"] == [{"email": "mario@example.com"}, {"displayName": "Giulia"}]


def test_converters_reject_wrong_intent() -> None:
    with pytest.raises(SchemaConversionError):
        CommandSchema(intent="delete").to_event_record()
    with pytest.raises(SchemaConversionError):
        _create(start_date=TODAY).to_search_params()


def test_to_search_params_uses_now_when_range_missing() -> None:
    now = datetime(2025, 3, 12, 9, 0)
    schema = CommandSchema(intent="query", query_data=QueryData(search_term="dentista", limit=5))
    params = schema.to_search_params(now)
    assert params == {
        "calendarId": "primary",
        "timeMin": "2025-03-12T09:00:00",
        "maxResults": 5,
        "singleEvents": True,
        "orderBy": "startTime",
        "q": "dentista",
    }

    schema.query_data.time_range = TimeRange(start=datetime(2025, 3, 13), end=datetime(2025, 3, 13, 23, 59, 59))
    params = schema.to_search_params(now)
    assert params["timeMin"] == "2025-03-13T00:00:00"
    assert params["timeMax"] == "2025-03-13T23:59:59"


def test_to_dict_uses_camel_case_and_iso_values() -> None:
    schema = _create(start_date=TODAY, start_time=time(10, 0))
    schema.parsing_metadata = ParsingMetadata(method="regex", raw_text="Crea Standup oggi alle 10")
    data = schema.to_dict()
    assert data["timeData"]["startDate"] == "2025-03-12"
    assert data["timeData"]["startTime"] == "10:00"
    assert data["parsingMetadata"]["rawText"] == "Crea Standup oggi alle 10"
    assert data["queryData"]["timeRange"] == {"start": None, "end": None}


def test_copy_is_deep() -> None:
    schema = _create(start_date=TODAY)
    clone = schema.copy()
    clone.event_data.title = "Altro"
    clone.parsing_metadata.ambiguities.append("x")
    assert schema.event_data.title == "Standup"
    assert schema.parsing_metadata.ambiguities == []


def test_empty_schema_preserves_raw_text() -> None:
    schema = empty_schema("boh", "llm", ["LLM non configurato"], ["API key"])
    assert schema.intent is None
    assert schema.raw_text == "boh"
    assert schema.method == "llm"
    assert schema.parsing_metadata.missing_info == ["API key"]


def test_recurrence_tags() -> None:
    assert is_recurrence_tag("daily")
    assert is_recurrence_tag("weekly;BYDAY=FR")
    assert not is_recurrence_tag("weekly;BYDAY=XX")
    assert not is_recurrence_tag("yearly")
    assert recurrence_to_rrule("monthly") == "RRULE:FREQ=MONTHLY"
