from __future__ import annotations

import json
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from app import main as cli


@pytest.fixture(autouse=True)
def regex_only_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("USE_REGEX_ONLY", "true")
    monkeypatch.setenv("LOGGING_ENABLED", "false")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("CALENDAR_ACCESS_TOKEN", raising=False)


def _feed(monkeypatch: pytest.MonkeyPatch, *lines: str) -> None:
    answers = iter(lines)

    def fake_input(prompt: str) -> str:
        try:
            return next(answers)
        except StopIteration:
            raise EOFError

    monkeypatch.setattr("builtins.input", fake_input)


def test_describe_result_pairs_errors_and_suggestions() -> None:
    service = cli.build_parser_service()
    text = cli.describe_result(service.parse_command("Elimina l'appuntamento dal dentista"))

    assert "Metodo: regex" in text
    assert "Valido: no" in text
    assert "- Data dell'evento da eliminare mancante (Specifica quando" in text
    assert '"valid": false' in text


def test_cli_loop_parses_until_quit(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    _feed(monkeypatch, "Crea riunione domani alle 10", "   ", "quit")

    cli.main()

    output = capsys.readouterr().out
    assert "solo pattern" in output
    assert "Valido: sì" in output
    assert output.rstrip().endswith("Goodbye!")


def test_cli_applies_valid_commands_when_store_is_configured(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    store_path = tmp_path / "events.json"
    monkeypatch.setenv("CALENDAR_ACCESS_TOKEN", "secret")
    monkeypatch.setenv("CALENDAR_STORE_PATH", str(store_path))
    _feed(monkeypatch, "Crea riunione domani alle 10")

    cli.main()

    output = capsys.readouterr().out
    assert "Evento 'riunione' creato per" in output
    assert output.rstrip().endswith("Exiting.")
    events = json.loads(store_path.read_text(encoding="utf-8"))["events"]
    assert [event["summary"] for event in events] == ["riunione"]


def test_no_store_without_token() -> None:
    assert cli.build_calendar_store() is None


def test_cli_uses_configured_default_duration(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str], tmp_path: Path
) -> None:
    config_path = tmp_path / "parser.json"
    config_path.write_text(json.dumps({"defaultDuration": 30}), encoding="utf-8")
    store_path = tmp_path / "events.json"
    monkeypatch.setenv("PARSER_CONFIG_PATH", str(config_path))
    monkeypatch.setenv("CALENDAR_ACCESS_TOKEN", "secret")
    monkeypatch.setenv("CALENDAR_STORE_PATH", str(store_path))
    _feed(monkeypatch, "Crea riunione domani alle 10")

    cli.main()

    capsys.readouterr()
    [event] = json.loads(store_path.read_text(encoding="utf-8"))["events"]
    start = datetime.fromisoformat(event["start"]["dateTime"])
    end = datetime.fromisoformat(event["end"]["dateTime"])
    assert end - start == timedelta(minutes=30)
