from __future__ import annotations

import json
from datetime import date, datetime, time

from core.gemini_client import ModelResponseError
from core.parsers.model_parser import ModelParser

REFERENCE = datetime(2025, 3, 12, 9, 0)


class StubClient:
    """Generator stub returning a canned reply and recording prompts."""

    def __init__(self, reply: str = "", error: Exception | None = None, configured: bool = True) -> None:
        self.reply = reply
        self.error = error
        self.is_configured = configured
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


def _reply(payload: dict) -> str:
    return "```json\n" + json.dumps(payload) + "\n```"


def test_unconfigured_parser_reports_missing_key() -> None:
    parser = ModelParser(None)
    schema = parser.parse("Crea riunione domani", REFERENCE)

    assert parser.is_configured is False
    assert parser.confidence("Crea riunione domani") == 0.0
    assert schema.intent is None
    assert schema.method == "llm"
    assert schema.parsing_metadata.ambiguities == ["LLM non configurato"]
    assert schema.parsing_metadata.missing_info == ["API key"]


def test_model_reply_is_corrected_and_converted() -> None:
    client = StubClient(
        _reply(
            {
                "intent": "create",
                "confidence": 0.95,
                "eventData": {
                    "title": "un evento chiamato riunione di team",
                    "description": "null",
                    "location": None,
                    "participants": [],
                },
                "timeData": {
                    "startDate": "2025-03-13",
                    "startTime": "10:00",
                    "endDate": "2025-03-13",
                    "endTime": "11:00",
                    "duration": 60,
                    "recurrence": None,
                },
            }
        )
    )
    text = "Crea un evento chiamato riunione di team per domani alle 10"
    schema = ModelParser(client).parse(text, REFERENCE)

    assert 'Comando: "Crea un evento chiamato riunione di team per domani alle 10"' in client.prompts[0]
    assert schema.intent == "create"
    assert schema.confidence == 0.95
    assert schema.event_data.title == "riunione di team"
    assert schema.event_data.description is None
    assert schema.time_data.start_date == date(2025, 3, 13)
    assert schema.time_data.start_time == time(10, 0)
    assert schema.time_data.end_time == time(11, 0)
    assert schema.time_data.duration == 60
    assert schema.method == "llm"
    assert schema.raw_text == text
    assert schema.is_valid is True


def test_trailing_commas_are_repaired() -> None:
    reply = (
        '{"intent": "read", "confidence": 0.8, "queryData": {"timeRange": '
        '{"start": "2025-03-12T00:00:00", "end": "2025-03-12T23:59:59"}, "limit": 5,},}'
    )
    schema = ModelParser(StubClient(reply)).parse("Cosa ho in programma oggi", REFERENCE)

    assert schema.intent == "read"
    assert schema.query_data.limit == 5
    assert schema.query_data.time_range.start == datetime(2025, 3, 12, 0, 0)
    assert schema.query_data.time_range.end == datetime(2025, 3, 12, 23, 59, 59)


def test_create_without_date_defaults_to_reference_day() -> None:
    client = StubClient(_reply({"intent": "create", "eventData": {"title": "palestra"}, "timeData": {"startTime": "18:00"}}))
    schema = ModelParser(client).parse("Aggiungi palestra alle 18", REFERENCE)

    assert schema.time_data.start_date == REFERENCE.date()
    assert schema.time_data.start_time == time(18, 0)
    assert schema.confidence == 0.7


def test_timezone_suffix_keeps_wall_clock() -> None:
    client = StubClient(
        _reply({"intent": "create", "eventData": {"title": "riunione"}, "timeData": {"startTime": "2025-03-13T10:00:00Z"}})
    )
    schema = ModelParser(client).parse("Crea riunione domani alle 10", REFERENCE)

    assert schema.time_data.start_date == date(2025, 3, 13)
    assert schema.time_data.start_time == time(10, 0)


def test_unknown_intent_and_recurrence_become_ambiguities() -> None:
    client = StubClient(
        _reply({"intent": "schedule", "timeData": {"recurrence": "yearly"}, "ambiguities": ["ora incerta"]})
    )
    schema = ModelParser(client).parse("Qualcosa di strano", REFERENCE)

    assert schema.intent is None
    assert schema.time_data.recurrence is None
    assert schema.parsing_metadata.ambiguities == [
        "ora incerta",
        "Intent sconosciuto: schedule",
        "Ricorrenza non supportata: yearly",
    ]


def test_reply_without_json_is_a_clean_failure() -> None:
    schema = ModelParser(StubClient("Non posso aiutarti")).parse("Crea riunione", REFERENCE)

    assert schema.intent is None
    assert schema.parsing_metadata.ambiguities == ["Errore: Formato di risposta non valido: JSON non trovato"]


def test_backend_error_text_is_preserved() -> None:
    client = StubClient(error=ModelResponseError("Risposta API vuota o non valida"))
    schema = ModelParser(client).parse("Crea riunione domani alle 10", REFERENCE)

    assert schema.intent is None
    assert schema.raw_text == "Crea riunione domani alle 10"
    assert schema.parsing_metadata.ambiguities == ["Errore: Risposta API vuota o non valida"]


def test_same_reply_gives_equal_schemas() -> None:
    reply = _reply(
        {
            "intent": "create",
            "confidence": 0.9,
            "eventData": {"title": "riunione"},
            "timeData": {"startDate": "2025-03-13", "startTime": "10:00"},
        }
    )
    parser = ModelParser(StubClient(reply))

    first = parser.parse("Crea riunione domani alle 10", REFERENCE)
    second = parser.parse("Crea riunione domani alle 10", REFERENCE)

    assert first == second
    assert first.is_valid is True


def test_explicit_zero_confidence_is_kept() -> None:
    reply = _reply({"intent": "read", "confidence": 0, "queryData": {"searchTerm": "Mario"}})
    schema = ModelParser(StubClient(reply)).parse("Mostra gli impegni con Mario", REFERENCE)

    assert schema.confidence == 0.0

    missing = _reply({"intent": "read", "confidence": "alta", "queryData": {"searchTerm": "Mario"}})
    assert ModelParser(StubClient(missing)).parse("Mostra gli impegni con Mario", REFERENCE).confidence == 0.7
