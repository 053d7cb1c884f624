"""Assemble the parsing service and run the interactive CLI loop."""

from __future__ import annotations

import logging
from typing import Optional

from app.config import (
    get_calendar_access_token,
    get_calendar_store_path,
    get_calendar_time_zone,
    get_log_backup_count,
    get_log_level,
    get_log_max_bytes,
    get_log_redaction_patterns,
    get_parse_log_path,
    get_parser_config_path,
    get_selector_config,
    is_log_redaction_enabled,
    is_logging_enabled,
)
from core.parse_log import ParseLogger
from core.parser_config import load_parser_config
from core.parser_selector import ParserSelector
from core.parser_service import ParseResult, ParserService
from tools import calendar_edit_tool
from tools.calendar_store import AccessToken, CalendarAccessError, JsonCalendarStore


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=level or get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# -- Service construction --------------------------------------------------------
def build_parser_service() -> ParserService:
    """Wire the selector, validator and parse log for the CLI and the web API.

    WHAT: load the parser configuration file, build the selector from the
    environment and attach the JSONL parse logger.
    WHY: both entry points must share identical wiring so a command parses the
    same way no matter where it was typed.
    HOW: pull runtime settings from ``app.config`` helpers and hand the
    resulting instances to ``core.parser_service.ParserService``.
    """
    selector = ParserSelector(
        parser_config=load_parser_config(get_parser_config_path()),
        selector_config=get_selector_config(),
    )
    parse_logger = ParseLogger(
        get_parse_log_path(),
        enabled=is_logging_enabled(),
        redact=is_log_redaction_enabled(),
        patterns=get_log_redaction_patterns(),
        max_bytes=get_log_max_bytes(),
        backup_count=get_log_backup_count(),
    )
    return ParserService(selector, parse_logger=parse_logger)


def build_calendar_store() -> Optional[JsonCalendarStore]:
    """Return the local calendar store, or ``None`` when no access token is configured."""

    token = get_calendar_access_token()
    if not token:
        return None
    return JsonCalendarStore(get_calendar_store_path(), token=AccessToken(token))


def describe_result(result: ParseResult) -> str:
    lines = []
    if result.schema is not None:
        metadata = result.schema.parsing_metadata
        lines.append(f"Metodo: {result.schema.method}  Confidenza: {result.schema.confidence:.2f}")
        for ambiguity in metadata.ambiguities:
            lines.append(f"Ambiguità: {ambiguity}")
    lines.append("Valido: sì" if result.is_valid else "Valido: no")
    for error, suggestion in zip(result.errors, result.suggestions):
        lines.append(f"- {error} ({suggestion})")
    for error in result.errors[len(result.suggestions):]:
        lines.append(f"- {error}")
    lines.append(calendar_edit_tool.dump_result(result.to_legacy_dict()))
    return "\n".join(lines)


# -- Interactive CLI loop ----------------------------------------------------------
def main() -> None:
    """Minimal CLI driver that parses each typed command.

    WHAT: read commands, print the parse outcome and, when a calendar token is
    configured, apply valid commands to the local store.
    WHY: offers a local debugging surface identical to the web API so parser
    regressions show up before touching the UI.
    HOW: reuse ``build_parser_service`` (same stack the API uses) and exit on
    EOF/KeyboardInterrupt or "quit" commands.
    """
    configure_logging()
    service = build_parser_service()
    store = build_calendar_store()
    time_zone = get_calendar_time_zone()
    status = "Gemini attivo" if service.status()["isLLMConfigured"] else "solo pattern"
    print(f"Parser comandi calendario pronto ({status}). Scrivi 'quit' o 'exit' per uscire.")

    while True:
        try:
            message = input("Tu: ")
        except (EOFError, KeyboardInterrupt):
            print("\nExiting.")
            break

        if message.strip().lower() in {"quit", "exit"}:
            print("Goodbye!")
            break
        if not message.strip():
            continue

        result = service.parse_command(message)
        print()
        print(describe_result(result))
        if store is not None and result.is_valid and result.schema is not None:
            try:
                outcome = calendar_edit_tool.run(
                    result.schema,
                    store,
                    default_duration=service.selector.parser_config.default_duration,
                    time_zone=time_zone,
                )
            except CalendarAccessError as exc:
                print(f"Calendario non accessibile: {exc}")
            else:
                print(calendar_edit_tool.format_calendar_response(outcome))
        print()


if __name__ == "__main__":
    main()
