"""Generative-model command parser.

WHAT: send the built prompt to the backend, decode the JSON reply, correct
the usual model mistakes and convert the result into a ``CommandSchema``.
WHY: the model copes with phrasing the keyword tables miss, but its output
needs the same shape and the same title rules as the pattern parser.
HOW: ``build_prompt`` -> ``client.generate`` -> ``parse_json_object`` ->
``apply_corrections`` (on a private copy) -> ``_to_schema``.  Any failure
becomes an intent-less schema with the error text in ``ambiguities``.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, time
from typing import Any, List, Mapping, Optional, Protocol

from core.command_schema import (
    INTENTS,
    CommandSchema,
    EventData,
    ParsingMetadata,
    QueryData,
    TimeData,
    TimeRange,
    empty_schema,
    is_recurrence_tag,
)
from core.parser_config import DEFAULT_PARSER_CONFIG, ParserConfig
from core.parser_utils.text import parse_json_object
from core.parsers.corrections import apply_corrections
from core.parsers.title import TitleExtractor
from core.prompt_builder import build_prompt

logger = logging.getLogger(__name__)

DEFAULT_MODEL_CONFIDENCE = 0.7
CONFIGURED_CONFIDENCE = 0.9
NOT_CONFIGURED = "LLM non configurato"


class TextGenerator(Protocol):
    is_configured: bool

    def generate(self, prompt: str) -> str:
        ...


class ModelParser:
    method = "llm"

    def __init__(self, client: Optional[TextGenerator], config: ParserConfig = DEFAULT_PARSER_CONFIG) -> None:
        self._client = client
        self._config = config
        self._titles = TitleExtractor(config)

    @property
    def is_configured(self) -> bool:
        return self._client is not None and bool(getattr(self._client, "is_configured", False))

    @property
    def config(self) -> ParserConfig:
        return self._config

    def can_handle(self, text: str) -> bool:
        return self.is_configured

    def confidence(self, text: str, reference: Optional[datetime] = None) -> float:
        return CONFIGURED_CONFIDENCE if self.is_configured else 0.0

    def parse(self, text: str, reference: Optional[datetime] = None) -> CommandSchema:
        raw = text if isinstance(text, str) else ""
        if not self.is_configured:
            logger.info("Model parser called without an API key")
            return empty_schema(raw, self.method, ambiguities=[NOT_CONFIGURED], missing_info=["API key"])

        reference = reference or datetime.now()
        try:
            prompt = build_prompt(raw, reference, self._config)
            reply = self._client.generate(prompt)  # type: ignore[union-attr]
            decoded = parse_json_object(reply)
            corrected = apply_corrections(decoded, raw, reference, self._titles)
            return self._to_schema(corrected, raw, reference)
        except Exception as exc:
            logger.warning("Model parser failed: %s", exc)
            return empty_schema(raw, self.method, ambiguities=[f"Errore: {exc}"])

    # -- conversion ------------------------------------------------------------
    def _to_schema(self, data: Mapping[str, Any], text: str, reference: datetime) -> CommandSchema:
        ambiguities = _strings(data.get("ambiguities"))
        intent = data.get("intent")
        if intent not in INTENTS:
            if intent:
                ambiguities.append(f"Intent sconosciuto: {intent}")
            intent = None

        event_raw = _mapping(data.get("eventData"))
        event = EventData(
            title=_text(event_raw.get("title")),
            description=_text(event_raw.get("description")),
            location=_text(event_raw.get("location")),
            participants=_strings(event_raw.get("participants")),
        )

        timing = self._time_data(_mapping(data.get("timeData")), ambiguities)
        if intent == "create" and timing.start_date is None:
            timing.start_date = reference.date()

        query_raw = _mapping(data.get("queryData"))
        range_raw = _mapping(query_raw.get("timeRange"))
        query = QueryData(
            time_range=TimeRange(start=_datetime(range_raw.get("start")), end=_datetime(range_raw.get("end"))),
            search_term=_text(query_raw.get("searchTerm")),
            filter_type=_text(query_raw.get("filterType")),
            limit=_positive_int(query_raw.get("limit")) or self._config.default_limit,
        )

        schema = CommandSchema(
            intent=intent,
            confidence=_confidence(data.get("confidence")),
            event_data=event,
            time_data=timing,
            query_data=query,
            parsing_metadata=ParsingMetadata(
                method=self.method,
                raw_text=text,
                ambiguities=ambiguities,
                missing_info=_strings(data.get("missingInfo")),
            ),
        )
        schema.is_valid = schema.validate()
        return schema

    def _time_data(self, raw: Mapping[str, Any], ambiguities: List[str]) -> TimeData:
        start_moment = _datetime(raw.get("startTime"))
        end_moment = _datetime(raw.get("endTime"))
        start_date = _date(raw.get("startDate")) or (start_moment.date() if start_moment else None)
        end_date = _date(raw.get("endDate")) or (end_moment.date() if end_moment else None)

        recurrence = _text(raw.get("recurrence"))
        if recurrence and not is_recurrence_tag(recurrence):
            ambiguities.append(f"Ricorrenza non supportata: {recurrence}")
            recurrence = None

        return TimeData(
            start_date=start_date,
            start_time=_time(raw.get("startTime")),
            end_date=end_date,
            end_time=_time(raw.get("endTime")),
            duration=_positive_int(raw.get("duration")),
            recurrence=recurrence,
        )


# -- value coercion: the model returns strings, numbers, "null" or nothing ------
def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    if not cleaned or cleaned.lower() in ("null", "none"):
        return None
    return cleaned


def _strings(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in (_text(entry) for entry in value) if item]


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = int(float(str(value).strip()))
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _confidence(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return DEFAULT_MODEL_CONFIDENCE
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_MODEL_CONFIDENCE
    if math.isnan(number):
        return DEFAULT_MODEL_CONFIDENCE
    return number


def _datetime(value: Any) -> Optional[datetime]:
    cleaned = _text(value)
    if cleaned is None:
        return None
    try:
        moment = datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
    except ValueError:
        return None
    return moment.replace(tzinfo=None)


def _date(value: Any) -> Optional[date]:
    cleaned = _text(value)
    if cleaned is None:
        return None
    try:
        return date.fromisoformat(cleaned[:10])
    except ValueError:
        return None


def _time(value: Any) -> Optional[time]:
    cleaned = _text(value)
    if cleaned is None:
        return None
    if "T" in cleaned:
        moment = _datetime(cleaned)
        return moment.time().replace(second=0, microsecond=0) if moment else None
    try:
        return time.fromisoformat(cleaned).replace(second=0, microsecond=0, tzinfo=None)
    except ValueError:
        return None


__all__ = [
    "ModelParser",
    "TextGenerator",
    "CONFIGURED_CONFIDENCE",
    "DEFAULT_MODEL_CONFIDENCE",
    "NOT_CONFIGURED",
]
