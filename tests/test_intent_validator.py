from __future__ import annotations

from datetime import date, datetime, time

import pytest

from core.command_schema import CommandSchema, EventData, QueryData, TimeData, TimeRange
from core.intent_validator import UNRECOGNISED_SUGGESTIONS, IntentValidator

NOW = datetime(2025, 3, 12, 9, 0)


@pytest.fixture
def validator() -> IntentValidator:
    return IntentValidator()


def test_complete_create_is_valid(validator: IntentValidator) -> None:
    schema = CommandSchema(
        intent="create",
        event_data=EventData(title="riunione"),
        time_data=TimeData(start_date=date(2025, 3, 13), start_time=time(10, 0)),
    )
    result = validator.validate(schema, now=NOW)
    assert result.is_valid is True
    assert result.errors == []


def test_create_missing_title_and_date(validator: IntentValidator) -> None:
    result = validator.validate(CommandSchema(intent="create"), now=NOW)

    assert result.is_valid is False
    assert result.errors == ["Titolo dell'evento mancante", "Data dell'evento mancante"]
    assert len(result.suggestions) == len(result.errors)
    assert result.missing_info == ["title", "date"]


def test_create_in_the_past_is_a_semantic_error(validator: IntentValidator) -> None:
    yesterday = CommandSchema(
        intent="create",
        event_data=EventData(title="riunione"),
        time_data=TimeData(start_date=date(2025, 3, 11)),
    )
    earlier_today = CommandSchema(
        intent="create",
        event_data=EventData(title="riunione"),
        time_data=TimeData(start_date=date(2025, 3, 12), start_time=time(8, 0)),
    )
    later_today = CommandSchema(
        intent="create",
        event_data=EventData(title="riunione"),
        time_data=TimeData(start_date=date(2025, 3, 12)),
    )

    assert validator.validate(yesterday, now=NOW).errors == ["La data specificata è nel passato"]
    assert validator.validate(earlier_today, now=NOW).errors == ["La data specificata è nel passato"]
    assert validator.validate(later_today, now=NOW).is_valid is True


def test_query_needs_a_criterion(validator: IntentValidator) -> None:
    assert validator.validate(CommandSchema(intent="query"), now=NOW).errors == ["Criteri di ricerca mancanti"]
    searched = CommandSchema(intent="read", query_data=QueryData(search_term="Mario"))
    assert validator.validate(searched, now=NOW).is_valid is True


def test_update_reports_both_gaps(validator: IntentValidator) -> None:
    result = validator.validate(CommandSchema(intent="update"), now=NOW)
    assert result.errors == [
        "Non è chiaro quale evento modificare",
        "Non è chiaro cosa modificare nell'evento",
    ]
    assert result.missing_info == ["event identifier", "update fields"]


def test_delete_without_date_asks_when(validator: IntentValidator) -> None:
    schema = CommandSchema(intent="delete", event_data=EventData(title="dentista"))
    result = validator.validate(schema, now=NOW)

    assert result.is_valid is False
    assert result.errors == ["Data dell'evento da eliminare mancante"]
    assert result.suggestions[0].startswith("Specifica quando")
    assert result.missing_info == ["date"]


def test_missing_or_unknown_intent(validator: IntentValidator) -> None:
    assert validator.validate(None).errors == ["Schema del comando non valido"]

    unrecognised = validator.validate(CommandSchema())
    assert unrecognised.errors == ["Intent non riconosciuto"]
    assert unrecognised.suggestions == list(UNRECOGNISED_SUGGESTIONS)

    unsupported = validator.validate(CommandSchema(intent="archive"))
    assert unsupported.errors == ['Intent "archive" non supportato']


def test_to_dict_is_camel_case(validator: IntentValidator) -> None:
    data = validator.validate(CommandSchema(intent="create"), now=NOW).to_dict()
    assert set(data) == {"isValid", "errors", "suggestions", "missingInfo"}


_COMPLETE = {
    "create": CommandSchema(
        intent="create",
        event_data=EventData(title="riunione"),
        time_data=TimeData(start_date=date(2025, 3, 13), start_time=time(10, 0)),
    ),
    "read": CommandSchema(
        intent="read",
        query_data=QueryData(time_range=TimeRange(start=datetime(2025, 3, 13), end=datetime(2025, 3, 13, 23, 59, 59))),
    ),
    "query": CommandSchema(intent="query", query_data=QueryData(search_term="Mario")),
    "update": CommandSchema(intent="update", event_data=EventData(title="riunione", location="Sala A")),
    "delete": CommandSchema(
        intent="delete",
        event_data=EventData(title="dentista"),
        time_data=TimeData(start_date=date(2025, 3, 14)),
    ),
}


@pytest.mark.parametrize("intent", ["create", "read", "update", "delete", "query"])
@pytest.mark.parametrize("complete", [True, False])
def test_validator_agrees_with_schema_rules(validator: IntentValidator, intent: str, complete: bool) -> None:
    schema = _COMPLETE[intent] if complete else CommandSchema(intent=intent)

    result = validator.validate(schema, now=NOW)

    assert result.is_valid is schema.validate() is complete
    assert len(result.errors) == len(result.suggestions)
