from __future__ import annotations

import json
from datetime import date, datetime

import pytest

from core.gemini_client import GeminiClient
from core.parser_selector import LLMSettings, ParserSelector, SelectorConfig

REFERENCE = datetime(2025, 3, 12, 9, 0)
CREATE_REPLY = json.dumps(
    {
        "intent": "create",
        "confidence": 0.95,
        "eventData": {"title": "riunione"},
        "timeData": {"startDate": "2025-03-13", "startTime": "10:00"},
    }
)


class StubClient:
    def __init__(self, reply: str = CREATE_REPLY, error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.is_configured = True
        self.calls = 0

    def generate(self, prompt: str) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.reply


class StubResponse:
    status_code = 200
    ok = True
    reason = "OK"

    def json(self) -> dict:
        return {"promptFeedback": {"blockReason": "OTHER"}}


class StubSession:
    def __init__(self) -> None:
        self.headers: dict = {}

    def post(self, url: str, **kwargs) -> StubResponse:
        return StubResponse()


def _selector(client: StubClient, **flags) -> ParserSelector:
    config = SelectorConfig(llm=LLMSettings(api_key="test-key"), **flags)
    return ParserSelector(selector_config=config, client_factory=lambda settings: client)


def test_without_api_key_only_the_pattern_parser_runs() -> None:
    selector = ParserSelector()
    assert selector.llm_configured is False
    assert selector.select_parser("Crea riunione domani alle 10", REFERENCE).method == "regex"
    assert selector.parse("Crea riunione domani alle 10", REFERENCE).method == "regex"


def test_model_is_chosen_when_regex_confidence_is_lower() -> None:
    client = StubClient()
    selector = _selector(client)

    schema = selector.parse("Crea riunione con Mario domani alle 10", REFERENCE)
    assert schema.method == "llm"
    assert schema.event_data.title == "riunione"
    assert client.calls == 1


def test_prefer_regex_keeps_confident_pattern_result() -> None:
    client = StubClient()
    selector = _selector(client, prefer_regex=True)

    assert selector.select_parser("Crea riunione con Mario domani alle 10", REFERENCE).method == "regex"
    assert selector.select_parser("Buongiorno", REFERENCE).method == "llm"
    assert client.calls == 0


def test_regex_only_flag_bypasses_the_model() -> None:
    client = StubClient()
    selector = _selector(client, use_regex_only=True)

    assert selector.llm_configured is False
    assert selector.parse("Crea riunione domani alle 10", REFERENCE).method == "regex"
    assert client.calls == 0


def test_missing_candidates_falls_back_to_pattern_parser() -> None:
    def factory(settings: LLMSettings) -> GeminiClient:
        return GeminiClient(settings.api_key, settings.endpoint, session=StubSession())

    selector = ParserSelector(
        selector_config=SelectorConfig(llm=LLMSettings(api_key="test-key")),
        client_factory=factory,
    )
    model_schema = selector.model_parser.parse("Crea riunione domani alle 10", REFERENCE)
    assert model_schema.intent is None
    assert model_schema.parsing_metadata.ambiguities == ["Errore: Risposta API vuota o non valida"]

    schema = selector.parse("Crea riunione domani alle 10", REFERENCE)
    assert schema.method == "regex"
    assert schema.intent == "create"
    assert schema.time_data.start_date == date(2025, 3, 13)


def test_failed_model_result_is_returned_when_fallback_disabled() -> None:
    selector = _selector(StubClient(reply="nessun json"), use_regex_fallback=False)

    schema = selector.parse("Crea riunione domani alle 10", REFERENCE)
    assert schema.method == "llm"
    assert schema.intent is None
    assert schema.parsing_metadata.ambiguities[0].startswith("Errore:")


def test_incomplete_model_result_prefers_recognised_fallback() -> None:
    reply = json.dumps({"intent": "delete", "eventData": {"title": "dentista"}})
    selector = _selector(StubClient(reply=reply))

    schema = selector.parse("Elimina il dentista domani", REFERENCE)
    assert schema.method == "regex"
    assert schema.intent == "delete"
    assert schema.time_data.start_date == date(2025, 3, 13)


def test_update_config_swaps_snapshots() -> None:
    client = StubClient()
    selector = _selector(client)
    before = selector.config

    updated = selector.update_config({"useRegexOnly": True, "confidenceThreshold": 0.8, "llm": {"maxTokens": 256}})

    assert before.use_regex_only is False
    assert updated.use_regex_only is True
    assert updated.confidence_threshold == pytest.approx(0.8)
    assert updated.llm.max_output_tokens == 256
    assert updated.llm.api_key == "test-key"
    assert selector.config is updated


def test_status_reports_configuration() -> None:
    status = _selector(StubClient()).status()

    assert status["isLLMConfigured"] is True
    assert status["llmApiConfigured"] is True
    assert status["useRegexFallback"] is True
    assert status["llm"]["maxOutputTokens"] == 1024
