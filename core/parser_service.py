"""Single entry point for turning a command sentence into a validated schema.

``ParserService`` chains the parser selector and the intent validator and
never raises: whatever goes wrong comes back as a ``ParseResult`` with
errors and suggestions the UI can show as-is.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.command_schema import QUERY_INTENTS, CommandSchema
from core.intent_validator import IntentValidator, ValidationResult
from core.parse_log import ParseLogger, ParseRecord
from core.parser_selector import ParserSelector, SelectorConfig

logger = logging.getLogger(__name__)

ANALYSIS_ERROR_SUGGESTIONS = (
    "Prova a riformulare il comando in modo più semplice",
    "Specifica chiaramente l'azione (crea, mostra, ecc.)",
    'Includi data e ora nel formato "giorno alle ora"',
)


@dataclass
class ParseResult:
    schema: Optional[CommandSchema]
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    missing_info: List[str] = field(default_factory=list)

    @classmethod
    def from_validation(cls, schema: CommandSchema, validation: ValidationResult) -> "ParseResult":
        return cls(
            schema=schema,
            is_valid=validation.is_valid,
            errors=list(validation.errors),
            suggestions=list(validation.suggestions),
            missing_info=list(validation.missing_info),
        )

    @classmethod
    def failure(cls, error: Exception) -> "ParseResult":
        return cls(
            schema=None,
            is_valid=False,
            errors=[f"Errore durante l'analisi: {error}"],
            suggestions=list(ANALYSIS_ERROR_SUGGESTIONS),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": self.schema.to_dict() if self.schema is not None else None,
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "suggestions": list(self.suggestions),
            "missingInfo": list(self.missing_info),
        }

    def to_legacy_dict(self) -> Dict[str, Any]:
        """Flatten the result into the action/date/time/title shape used by simple callers."""

        schema = self.schema
        if not self.is_valid or schema is None:
            return {
                "action": None,
                "date": None,
                "time": None,
                "title": None,
                "description": None,
                "valid": False,
                "errors": list(self.errors) or ["Comando non valido"],
                "suggestions": list(self.suggestions),
            }

        flat = schema.to_dict()
        event = flat["eventData"]
        timing = flat["timeData"]
        base = {"action": schema.intent, "valid": True, "date": timing["startDate"], "time": timing["startTime"]}
        if schema.intent in QUERY_INTENTS:
            query = flat["queryData"]
            return {
                **base,
                "timeRange": query["timeRange"],
                "searchTerm": query["searchTerm"],
                "filterType": query["filterType"],
                "limit": query["limit"],
            }
        if schema.intent == "delete":
            return {**base, "title": event["title"], "eventIdentifier": event["title"]}
        legacy = {
            **base,
            "title": event["title"],
            "description": event["description"],
            "location": event["location"],
        }
        if schema.intent == "update":
            legacy["eventIdentifier"] = event["title"]
        return legacy


class ParserService:
    """WHAT: facade over ``ParserSelector`` + ``IntentValidator``.

    WHY: callers (CLI, web API, calendar executor) need one call that returns
    the schema together with its validation, plus a few knobs to reconfigure
    the parsing strategy at runtime.
    HOW: parse with the selector, validate against the same reference time,
    stamp ``is_valid`` on the schema, optionally write an audit record.
    """

    def __init__(
        self,
        selector: ParserSelector,
        validator: Optional[IntentValidator] = None,
        parse_logger: Optional[ParseLogger] = None,
    ) -> None:
        self._selector = selector
        self._validator = validator or IntentValidator()
        self._parse_logger = parse_logger

    @property
    def selector(self) -> ParserSelector:
        return self._selector

    def parse_command(self, text: str, reference: Optional[datetime] = None) -> ParseResult:
        started = time.perf_counter()
        reference = reference or datetime.now()
        try:
            schema = self._selector.parse(text, reference)
            validation = self._validator.validate(schema, now=reference)
            schema.is_valid = validation.is_valid
            result = ParseResult.from_validation(schema, validation)
        except Exception as exc:
            logger.exception("Command parsing failed for %r", text)
            result = ParseResult.failure(exc)
        self._record(text, result, int((time.perf_counter() - started) * 1000))
        return result

    def _record(self, text: str, result: ParseResult, latency_ms: int) -> None:
        if self._parse_logger is None or not self._parse_logger.enabled:
            return
        schema = result.schema
        record = ParseRecord.new(
            raw_text=text if isinstance(text, str) else "",
            method=schema.method if schema is not None else "none",
            intent=schema.intent if schema is not None else None,
            confidence=schema.confidence if schema is not None else 0.0,
            is_valid=result.is_valid,
            errors=result.errors,
            ambiguities=schema.parsing_metadata.ambiguities if schema is not None else (),
            missing_info=result.missing_info,
            latency_ms=latency_ms,
            schema=schema.to_dict() if schema is not None else None,
        )
        try:
            self._parse_logger.log(record)
        except OSError as exc:
            logger.warning("Could not write parse log: %s", exc)

    # -- configuration -----------------------------------------------------------
    def configure(self, **changes: Any) -> SelectorConfig:
        return self._selector.update_config(changes)

    def set_use_regex_only(self, use_regex_only: bool) -> SelectorConfig:
        return self._selector.update_config({"use_regex_only": bool(use_regex_only)})

    def configure_llm(self, **llm: Any) -> SelectorConfig:
        return self._selector.update_config({"use_regex_only": False, "llm": llm})

    def status(self) -> Dict[str, Any]:
        return {**self._selector.status(), "isReady": True}


__all__ = ["ParseResult", "ParserService", "ANALYSIS_ERROR_SUGGESTIONS"]
