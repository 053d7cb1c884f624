"""Per-intent completeness and semantic checks for parsed commands.

The validator turns a ``CommandSchema`` into user-facing feedback: every
error comes with the suggestion that fixes it, and ``missing_info`` lists the
field names the UI can prompt for.  It never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from core.command_schema import CommandSchema

logger = logging.getLogger(__name__)

_WHEN_EXAMPLES = '(es. "domani", "lunedì", "il 15/05")'
UNRECOGNISED_SUGGESTIONS = (
    'Prova a iniziare il comando con una azione chiara come "crea", "mostra", "modifica" o "elimina"',
    'Esempio: "Crea riunione domani alle 15"',
)


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    missing_info: List[str] = field(default_factory=list)

    def add(self, error: str, suggestion: str, missing: Optional[str] = None) -> None:
        self.errors.append(error)
        self.suggestions.append(suggestion)
        if missing:
            self.missing_info.append(missing)
        self.is_valid = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "suggestions": list(self.suggestions),
            "missingInfo": list(self.missing_info),
        }


class IntentValidator:
    """Dispatch on the schema intent and collect paired errors/suggestions."""

    def __init__(self) -> None:
        self._rules: Dict[str, Callable[[CommandSchema, datetime, ValidationResult], None]] = {
            "create": self._check_create,
            "read": self._check_query,
            "query": self._check_query,
            "update": self._check_update,
            "delete": self._check_delete,
        }

    def validate(self, schema: Optional[CommandSchema], now: Optional[datetime] = None) -> ValidationResult:
        if schema is None:
            return ValidationResult(
                is_valid=False,
                errors=["Schema del comando non valido"],
                suggestions=["Ripeti il comando in modo più chiaro"],
            )
        if not schema.intent:
            return ValidationResult(
                is_valid=False,
                errors=["Intent non riconosciuto"],
                suggestions=list(UNRECOGNISED_SUGGESTIONS),
            )
        rule = self._rules.get(schema.intent)
        if rule is None:
            return ValidationResult(
                is_valid=False,
                errors=[f'Intent "{schema.intent}" non supportato'],
                suggestions=["I comandi supportati sono: crea, mostra, modifica, elimina"],
            )

        result = ValidationResult(is_valid=True)
        rule(schema, now or datetime.now(), result)
        logger.debug("Validated %s command: valid=%s errors=%s", schema.intent, result.is_valid, result.errors)
        return result

    # -- per-intent rules --------------------------------------------------------
    def _check_create(self, schema: CommandSchema, now: datetime, result: ValidationResult) -> None:
        timing = schema.time_data
        if not schema.event_data.title:
            result.add("Titolo dell'evento mancante", "Specifica un titolo chiaro per l'evento", "title")
        if not timing.has_when():
            result.add("Data dell'evento mancante", f"Specifica quando si terrà l'evento {_WHEN_EXAMPLES}", "date")
        elif _is_past(schema, now):
            result.add("La data specificata è nel passato", "Specifica una data futura per il nuovo evento")

    def _check_query(self, schema: CommandSchema, now: datetime, result: ValidationResult) -> None:
        query = schema.query_data
        if not (query.time_range.is_set() or query.search_term or query.filter_type):
            result.add(
                "Criteri di ricerca mancanti",
                'Specifica un periodo (es. "oggi", "questa settimana") o un termine di ricerca',
                "timeRange or searchTerm",
            )

    def _check_update(self, schema: CommandSchema, now: datetime, result: ValidationResult) -> None:
        event = schema.event_data
        if not event.title:
            result.add(
                "Non è chiaro quale evento modificare",
                "Specifica il titolo dell'evento da modificare",
                "event identifier",
            )
        if not (schema.time_data.has_when() or event.description or event.location):
            result.add(
                "Non è chiaro cosa modificare nell'evento",
                "Specifica cosa vuoi modificare (es. data, ora, luogo)",
                "update fields",
            )

    def _check_delete(self, schema: CommandSchema, now: datetime, result: ValidationResult) -> None:
        if not schema.event_data.title:
            result.add(
                "Non è chiaro quale evento eliminare",
                "Specifica il titolo dell'evento da eliminare",
                "event identifier",
            )
        if not schema.time_data.has_when():
            result.add(
                "Data dell'evento da eliminare mancante",
                f"Specifica quando si terrà l'evento da eliminare {_WHEN_EXAMPLES}",
                "date",
            )


def _is_past(schema: CommandSchema, now: datetime) -> bool:
    timing = schema.time_data
    if timing.start_date is None:
        return False
    if timing.start_time is None:
        return timing.start_date < now.date()
    return datetime.combine(timing.start_date, timing.start_time) < now


__all__ = ["IntentValidator", "ValidationResult", "UNRECOGNISED_SUGGESTIONS"]
