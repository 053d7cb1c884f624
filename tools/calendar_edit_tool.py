"""Execute a validated ``CommandSchema`` against a Calendar Store."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from core.command_schema import (
    DEFAULT_DURATION_MINUTES,
    DEFAULT_TIME_ZONE,
    QUERY_INTENTS,
    CommandSchema,
)
from core.parser_utils.datetime import day_bounds
from tools.calendar_store import CalendarStore, Event, EventNotFoundError, event_start

logger = logging.getLogger(__name__)

LOOKUP_WINDOW_DAYS = 30
MAX_CANDIDATES = 50


def run(
    schema: CommandSchema,
    store: CalendarStore,
    *,
    now: Optional[datetime] = None,
    default_duration: int = DEFAULT_DURATION_MINUTES,
    time_zone: str = DEFAULT_TIME_ZONE,
) -> Dict[str, Any]:
    """Map ``schema`` onto one store operation and describe the outcome.

    Update and delete first look the event up by title; when several events
    match, nothing is mutated and the matches come back as ``candidates``
    with ``requires_selection=True``.  ``CalendarAccessError`` propagates.
    """

    now = now or datetime.now()
    intent = schema.intent
    if not intent:
        return _error_response("none", "missing_intent", "Comando non riconosciuto.")
    if not schema.validate():
        return _error_response(intent, "incomplete_command", "Il comando è incompleto: mancano informazioni.")

    if intent == "create":
        record = schema.to_event_record(default_duration, time_zone, today=now.date())
        event = store.create_event(record)
        return {"type": "calendar_edit", "action": "create", "event": event}

    if intent in QUERY_INTENTS:
        params = schema.to_search_params(now)
        time_max = params.get("timeMax")
        events = store.list_events(
            datetime.fromisoformat(params["timeMin"]),
            datetime.fromisoformat(time_max) if time_max else None,
            max_results=params["maxResults"],
            query=params.get("q"),
        )
        return {"type": "calendar_edit", "action": intent, "events": events, "count": len(events)}

    candidates = find_candidates(schema, store, now)
    if not candidates:
        return _error_response(
            intent, "not_found", f"Nessun evento trovato con titolo '{schema.event_data.title}'."
        )
    if len(candidates) > 1:
        logger.info("%d events match %r; asking for a selection", len(candidates), schema.event_data.title)
        return {
            "type": "calendar_edit",
            "action": intent,
            "requires_selection": True,
            "candidates": candidates,
        }

    target = candidates[0]
    try:
        if intent == "delete":
            store.delete_event(target["id"])
            return {"type": "calendar_edit", "action": "delete", "deleted": True, "event": target}
        patch = build_update(schema, target, default_duration, time_zone)
        event = store.update_event(target["id"], patch)
    except EventNotFoundError:
        return _error_response(intent, "not_found", "L'evento non esiste più nel calendario.")
    return {"type": "calendar_edit", "action": "update", "event": event}


def find_candidates(schema: CommandSchema, store: CalendarStore, now: datetime) -> List[Event]:
    """Events whose summary matches the schema title.

    Deletes search the day named in the command; updates describe the new
    slot, so they search from today over the lookup window instead.
    """

    title = (schema.event_data.title or "").strip().lower()
    if schema.intent == "delete" and schema.time_data.start_date is not None:
        window_start, window_end = day_bounds(schema.time_data.start_date)
    else:
        window_start = datetime.combine(now.date(), time(0, 0))
        window_end = window_start + timedelta(days=LOOKUP_WINDOW_DAYS)
    events = store.list_events(window_start, window_end, max_results=MAX_CANDIDATES)
    return [event for event in events if _title_matches(title, str(event.get("summary") or ""))]


def build_update(
    schema: CommandSchema,
    current: Event,
    default_duration: int = DEFAULT_DURATION_MINUTES,
    time_zone: str = DEFAULT_TIME_ZONE,
) -> Event:
    """Fields to change on ``current``: a new slot, location or description.

    A new date keeps the event's old time of day and a new time keeps its old
    date; the original duration is preserved unless the command gives one.
    """

    timing = schema.time_data
    patch: Event = {}
    if schema.event_data.location:
        patch["location"] = schema.event_data.location
    if schema.event_data.description:
        patch["description"] = schema.event_data.description
    if not timing.has_when():
        return patch

    old_start = event_start(current) or datetime.combine(date.today(), time(12, 0))
    old_end = _old_end(current, old_start, default_duration)
    day = timing.start_date or old_start.date()
    start = datetime.combine(day, timing.start_time or old_start.time())
    if timing.duration:
        end = start + timedelta(minutes=timing.duration)
    elif timing.end_time is not None:
        end = datetime.combine(timing.end_date or day, timing.end_time)
    else:
        end = start + (old_end - old_start)
    if end <= start:
        end = start + timedelta(minutes=default_duration)
    patch["start"] = {"dateTime": start.isoformat(), "timeZone": time_zone}
    patch["end"] = {"dateTime": end.isoformat(), "timeZone": time_zone}
    return patch


def format_calendar_response(result: Dict[str, Any]) -> str:
    """Render an Italian one-paragraph summary of ``run``'s result."""

    if "error" in result:
        return str(result.get("message") or "Operazione sul calendario non riuscita.")

    if result.get("requires_selection"):
        lines = [_describe(event) for event in result.get("candidates") or []]
        return f"Ho trovato {len(lines)} eventi corrispondenti, scegli quale:\n" + "\n".join(lines)

    action = result.get("action")
    if action in QUERY_INTENTS:
        events = result.get("events") or []
        if not events:
            return "Nessun evento trovato."
        return "Eventi trovati:\n" + "\n".join(_describe(event) for event in events)

    event = result.get("event") or {}
    title = event.get("summary") or "evento"
    if action == "create":
        return f"Evento '{title}' creato per {_when(event)}."
    if action == "update":
        return f"Evento '{title}' aggiornato: {_when(event)}."
    if action == "delete":
        return f"Evento '{title}' eliminato."
    return "Operazione sul calendario completata."


def _title_matches(title: str, summary: str) -> bool:
    summary = summary.strip().lower()
    if not title or not summary:
        return False
    return title in summary or summary in title


def _old_end(event: Event, start: datetime, default_duration: int) -> datetime:
    raw = (event.get("end") or {}).get("dateTime")
    try:
        end = datetime.fromisoformat(raw).replace(tzinfo=None) if raw else None
    except ValueError:
        end = None
    if end is None or end <= start:
        return start + timedelta(minutes=default_duration)
    return end


def _when(event: Event) -> str:
    start = event_start(event)
    if start is None:
        return "data sconosciuta"
    return start.strftime("%d/%m/%Y alle %H:%M")


def _describe(event: Event) -> str:
    return f"- {event.get('summary') or 'Senza titolo'} ({_when(event)})"


def _error_response(action: str, code: str, message: str) -> Dict[str, Any]:
    return {"type": "calendar_edit", "action": action, "error": code, "message": message}


def dump_result(result: Dict[str, Any]) -> str:
    return json.dumps(result, indent=2, ensure_ascii=False)


__all__ = ["run", "find_candidates", "build_update", "format_calendar_response", "dump_result"]
