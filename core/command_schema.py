"""Canonical command schema produced by every extractor.

Both the deterministic pattern parser and the Gemini-backed model parser
return a ``CommandSchema``.  The schema carries the recognised intent, the
event attributes, temporal data and query filters, plus the parsing metadata
(method, raw text, ambiguities, missing information).  It also owns the
per-intent completeness rules and the converters that turn a validated command
into Calendar Store payloads, so downstream callers never rebuild dates or
search windows themselves.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

INTENTS = ("create", "read", "update", "delete", "query")
EVENT_INTENTS = ("create", "update", "delete")
QUERY_INTENTS = ("read", "query")
METHODS = ("regex", "llm")

DEFAULT_LIMIT = 10
DEFAULT_DURATION_MINUTES = 60
DEFAULT_TIME_ZONE = "Europe/Rome"
DEFAULT_CALENDAR_ID = "primary"
NOON = time(12, 0)

_RECURRENCE_RULES = {
    "daily": "RRULE:FREQ=DAILY",
    "weekly": "RRULE:FREQ=WEEKLY",
    "monthly": "RRULE:FREQ=MONTHLY",
}
WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")


class SchemaConversionError(ValueError):
    """Raised when a converter is called on a schema with the wrong intent."""


def is_recurrence_tag(value: Optional[str]) -> bool:
    """Return True for ``daily``/``weekly``/``monthly`` and ``weekly;BYDAY=XX``."""

    if not value:
        return False
    if value in _RECURRENCE_RULES:
        return True
    prefix, _, day = value.partition(";BYDAY=")
    return prefix == "weekly" and day in WEEKDAY_CODES


def recurrence_to_rrule(value: str) -> str:
    if value in _RECURRENCE_RULES:
        return _RECURRENCE_RULES[value]
    _, _, day = value.partition(";BYDAY=")
    return f"RRULE:FREQ=WEEKLY;BYDAY={day}"


@dataclass
class EventData:
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    participants: List[str] = field(default_factory=list)


@dataclass
class TimeData:
    start_date: Optional[date] = None
    start_time: Optional[time] = None
    end_date: Optional[date] = None
    end_time: Optional[time] = None
    duration: Optional[int] = None
    recurrence: Optional[str] = None

    def has_when(self) -> bool:
        return self.start_date is not None or self.start_time is not None


@dataclass
class TimeRange:
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def is_set(self) -> bool:
        return self.start is not None or self.end is not None


@dataclass
class QueryData:
    time_range: TimeRange = field(default_factory=TimeRange)
    search_term: Optional[str] = None
    filter_type: Optional[str] = None
    limit: int = DEFAULT_LIMIT

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit <= 0:
            self.limit = DEFAULT_LIMIT


@dataclass
class ParsingMetadata:
    method: str = "regex"
    raw_text: str = ""
    ambiguities: List[str] = field(default_factory=list)
    missing_info: List[str] = field(default_factory=list)


@dataclass
class CommandSchema:
    """WHAT: one parsed calendar command, independent of the extractor used.

    WHY: the validator, the facade and the calendar executor must agree on a
    single shape regardless of whether regexes or the model produced it.
    HOW: plain dataclasses for each section; containers always exist so
    callers only check members, and converters raise ``SchemaConversionError``
    when asked for the wrong payload.
    """

    intent: Optional[str] = None
    confidence: float = 0.0
    event_data: EventData = field(default_factory=EventData)
    time_data: TimeData = field(default_factory=TimeData)
    query_data: QueryData = field(default_factory=QueryData)
    parsing_metadata: ParsingMetadata = field(default_factory=ParsingMetadata)
    is_valid: bool = False

    def __post_init__(self) -> None:
        self.confidence = min(max(float(self.confidence or 0.0), 0.0), 1.0)

    @property
    def raw_text(self) -> str:
        return self.parsing_metadata.raw_text

    @property
    def method(self) -> str:
        return self.parsing_metadata.method

    # -- completeness ------------------------------------------------------
    def validate(self) -> bool:
        """Apply the per-intent completeness table and return the verdict."""

        event = self.event_data
        timing = self.time_data
        if self.intent in ("create", "delete"):
            return bool(event.title) and timing.has_when()
        if self.intent == "update":
            return bool(event.title) and (timing.has_when() or bool(event.description) or bool(event.location))
        if self.intent in QUERY_INTENTS:
            query = self.query_data
            return query.time_range.is_set() or bool(query.search_term) or bool(query.filter_type)
        return False

    # -- converters --------------------------------------------------------
    def event_bounds(self, default_duration: int = DEFAULT_DURATION_MINUTES, today: Optional[date] = None) -> Tuple[datetime, datetime]:
        """Return the (start, end) datetimes of the described event.

        Missing time means noon, missing date means ``today``.  An end that is
        not after the start is replaced by ``start + default_duration``.
        """

        timing = self.time_data
        day = timing.start_date or today or date.today()
        start = datetime.combine(day, timing.start_time or NOON)
        fallback = default_duration if default_duration and default_duration > 0 else DEFAULT_DURATION_MINUTES

        end: Optional[datetime] = None
        if timing.end_time is not None:
            end = datetime.combine(timing.end_date or day, timing.end_time)
        elif timing.end_date is not None and timing.end_date != day:
            end = datetime.combine(timing.end_date, timing.start_time or NOON)
        if end is None:
            minutes = timing.duration if timing.duration and timing.duration > 0 else fallback
            end = start + timedelta(minutes=minutes)
        if end <= start:
            end = start + timedelta(minutes=fallback)
        return start, end

    def to_event_record(
        self,
        default_duration: int = DEFAULT_DURATION_MINUTES,
        time_zone: str = DEFAULT_TIME_ZONE,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Build a Calendar Store event record for create/update commands."""

        if self.intent not in ("create", "update"):
            raise SchemaConversionError(f"to_event_record() supports create/update, not {self.intent!r}")
        start, end = self.event_bounds(default_duration, today)
        event = self.event_data
        record: Dict[str, Any] = {
            "summary": event.title or "",
            "description": event.description or "",
            "location": event.location or "",
            "start": {"dateTime": start.isoformat(), "timeZone": time_zone},
            "end": {"dateTime": end.isoformat(), "timeZone": time_zone},
        }
        if event.participants:
            record["attendees"] = [
                {"email": person} if "@" in person else {"displayName": person}
                for person in event.participants
            ]
        if is_recurrence_tag(self.time_data.recurrence):
            record["recurrence"] = [recurrence_to_rrule(str(self.time_data.recurrence))]
        return record

    def to_search_params(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Map ``query_data`` to the Calendar Store list parameters."""

        if self.intent not in QUERY_INTENTS:
            raise SchemaConversionError(f"to_search_params() supports read/query, not {self.intent!r}")
        query = self.query_data
        time_min = query.time_range.start or now or datetime.now()
        params: Dict[str, Any] = {
            "calendarId": DEFAULT_CALENDAR_ID,
            "timeMin": time_min.isoformat(),
            "maxResults": query.limit,
            "singleEvents": True,
            "orderBy": "startTime",
        }
        if query.time_range.end is not None:
            params["timeMax"] = query.time_range.end.isoformat()
        if query.search_term:
            params["q"] = query.search_term
        return params

    # -- serialisation -----------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        event = self.event_data
        timing = self.time_data
        query = self.query_data
        meta = self.parsing_metadata
        return {
            "intent": self.intent,
            "confidence": round(self.confidence, 4),
            "eventData": {
                "title": event.title,
                "description": event.description,
                "location": event.location,
                "participants": list(event.participants),
            },
            "timeData": {
                "startDate": _iso(timing.start_date),
                "startTime": _clock(timing.start_time),
                "endDate": _iso(timing.end_date),
                "endTime": _clock(timing.end_time),
                "duration": timing.duration,
                "recurrence": timing.recurrence,
            },
            "queryData": {
                "timeRange": {
                    "start": _iso(query.time_range.start),
                    "end": _iso(query.time_range.end),
                },
                "searchTerm": query.search_term,
                "filterType": query.filter_type,
                "limit": query.limit,
            },
            "parsingMetadata": {
                "method": meta.method,
                "rawText": meta.raw_text,
                "ambiguities": list(meta.ambiguities),
                "missingInfo": list(meta.missing_info),
            },
            "isValid": self.is_valid,
        }

    def copy(self) -> "CommandSchema":
        return copy.deepcopy(self)


def empty_schema(raw_text: str, method: str = "regex", ambiguities: Optional[List[str]] = None, missing_info: Optional[List[str]] = None) -> CommandSchema:
    """Return an intent-less schema that still preserves ``raw_text``."""

    return CommandSchema(
        parsing_metadata=ParsingMetadata(
            method=method,
            raw_text=raw_text,
            ambiguities=list(ambiguities or []),
            missing_info=list(missing_info or []),
        )
    )


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _clock(value: Optional[time]) -> Optional[str]:
    return value.strftime("%H:%M") if value is not None else None


__all__ = [
    "CommandSchema",
    "EventData",
    "TimeData",
    "TimeRange",
    "QueryData",
    "ParsingMetadata",
    "SchemaConversionError",
    "INTENTS",
    "EVENT_INTENTS",
    "QUERY_INTENTS",
    "METHODS",
    "DEFAULT_LIMIT",
    "DEFAULT_DURATION_MINUTES",
    "DEFAULT_TIME_ZONE",
    "NOON",
    "WEEKDAY_CODES",
    "empty_schema",
    "is_recurrence_tag",
    "recurrence_to_rrule",
]
