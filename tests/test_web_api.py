from __future__ import annotations

import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

from app.web_api import MAX_COMMAND_LENGTH, create_app
from core.parser_selector import ParserSelector, SelectorConfig
from core.parser_service import ParserService

REFERENCE = "2025-03-12T09:00:00"


@pytest.fixture
def client() -> TestClient:
    selector = ParserSelector(selector_config=SelectorConfig(use_regex_only=True))
    return TestClient(create_app(service=ParserService(selector)))


def test_health_and_status(client: TestClient) -> None:
    health = client.get("/api/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"

    status = client.get("/api/status").json()
    assert status["isReady"] is True
    assert status["useRegexOnly"] is True
    assert status["isLLMConfigured"] is False


def test_parse_returns_schema_and_validation(client: TestClient) -> None:
    response = client.post("/api/parse", json={"text": "Crea riunione con Mario domani alle 10", "reference": REFERENCE})

    assert response.status_code == 200
    body = response.json()
    assert body["isValid"] is True
    assert body["schema"]["intent"] == "create"
    assert body["schema"]["eventData"]["participants"] == ["Mario"]
    assert body["schema"]["timeData"]["startDate"] == "2025-03-13"
    assert body["schema"]["parsingMetadata"]["method"] == "regex"


def test_parse_legacy_payload(client: TestClient) -> None:
    response = client.post(
        "/api/parse",
        json={"text": "Elimina l'appuntamento dal dentista", "reference": REFERENCE, "legacy": True},
    )

    body = response.json()
    assert body["valid"] is False
    assert body["errors"] == ["Data dell'evento da eliminare mancante"]


def test_parse_rejects_blank_and_oversized_text(client: TestClient) -> None:
    blank = client.post("/api/parse", json={"text": "   "})
    assert blank.status_code == 400
    assert blank.json()["detail"] == "Text is required."

    oversized = client.post("/api/parse", json={"text": "a" * (MAX_COMMAND_LENGTH + 1)})
    assert oversized.status_code == 400


def test_config_updates_the_selector(client: TestClient) -> None:
    response = client.post(
        "/api/config",
        json={"useRegexOnly": False, "confidenceThreshold": 0.75, "llm": {"temperature": 0.4}},
    )

    assert response.status_code == 200
    status = response.json()
    assert status["useRegexOnly"] is False
    assert status["confidenceThreshold"] == pytest.approx(0.75)
    assert status["llm"]["temperature"] == pytest.approx(0.4)
    assert status["isLLMConfigured"] is False


def test_config_requires_changes(client: TestClient) -> None:
    response = client.post("/api/config", json={})
    assert response.status_code == 400
    assert response.json()["detail"] == "No configuration changes supplied."

    invalid = client.post("/api/config", json={"confidenceThreshold": 2})
    assert invalid.status_code == 422


def test_parse_keeps_the_submitted_text_verbatim(client: TestClient) -> None:
    submitted = "  Crea riunione domani alle 10  "
    response = client.post("/api/parse", json={"text": submitted, "reference": REFERENCE})

    assert response.status_code == 200
    body = response.json()
    assert body["schema"]["intent"] == "create"
    assert body["schema"]["parsingMetadata"]["rawText"] == submitted
