"""Calendar Store collaborator: protocol, credential check and a JSON-file backend.

Parsed commands are executed against anything implementing ``CalendarStore``.
Every operation requires a valid, non-expired ``AccessToken``; a missing or
expired token raises ``CalendarAccessError`` and is never retried here.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

DEFAULT_STORE_PATH = Path("data/calendar_events.json")

Event = Dict[str, Any]


class CalendarAccessError(PermissionError):
    """The calendar credential is missing or expired; the caller must re-authenticate."""


class EventNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class AccessToken:
    value: str
    expires_at: Optional[datetime] = None

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        if not (self.value or "").strip():
            return False
        if self.expires_at is None:
            return True
        current = now or datetime.now(self.expires_at.tzinfo)
        return current < self.expires_at


class CalendarStore(Protocol):
    def list_events(
        self,
        time_min: datetime,
        time_max: Optional[datetime] = None,
        max_results: int = 10,
        query: Optional[str] = None,
    ) -> List[Event]:
        ...

    def create_event(self, record: Event) -> Event:
        ...

    def update_event(self, event_id: str, record: Event) -> Event:
        ...

    def delete_event(self, event_id: str) -> None:
        ...


class JsonCalendarStore:
    """File-backed store holding event records in one JSON document.

    Records keep the shape produced by ``CommandSchema.to_event_record``
    (``summary``, ``start.dateTime``, ``end.dateTime`` ...) plus ``id``,
    ``created`` and ``updated`` stamps.  Writes go through a temporary file
    and ``os.replace`` so a crash never leaves a truncated document.
    """

    def __init__(
        self,
        path: Path | str = DEFAULT_STORE_PATH,
        token: Optional[AccessToken] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._path = Path(path)
        self._token = token
        self._clock = clock

    @property
    def path(self) -> Path:
        return self._path

    def set_token(self, token: Optional[AccessToken]) -> None:
        self._token = token

    # -- Calendar Store operations ---------------------------------------------
    def list_events(
        self,
        time_min: datetime,
        time_max: Optional[datetime] = None,
        max_results: int = 10,
        query: Optional[str] = None,
    ) -> List[Event]:
        self._require_token()
        needle = (query or "").strip().lower()
        selected = []
        for event in self._load():
            start, end = _event_span(event)
            if start is None or end is None:
                continue
            if end <= _naive(time_min) or (time_max is not None and start > _naive(time_max)):
                continue
            if needle and needle not in _searchable(event):
                continue
            selected.append((start, event))
        selected.sort(key=lambda item: item[0])
        return [event for _, event in selected[: max(max_results, 0)]]

    def create_event(self, record: Event) -> Event:
        self._require_token()
        stamp = _utc_timestamp()
        event = {**record, "id": uuid.uuid4().hex, "created": stamp, "updated": stamp}
        events = self._load()
        events.append(event)
        self._write(events)
        logger.info("Created calendar event %s", event["id"])
        return event

    def update_event(self, event_id: str, record: Event) -> Event:
        self._require_token()
        events = self._load()
        for index, event in enumerate(events):
            if event.get("id") != event_id:
                continue
            changes = {key: value for key, value in record.items() if value not in (None, "") and key != "id"}
            updated = {**event, **changes, "updated": _utc_timestamp()}
            events[index] = updated
            self._write(events)
            return updated
        raise EventNotFoundError(event_id)

    def delete_event(self, event_id: str) -> None:
        self._require_token()
        events = self._load()
        remaining = [event for event in events if event.get("id") != event_id]
        if len(remaining) == len(events):
            raise EventNotFoundError(event_id)
        self._write(remaining)
        logger.info("Deleted calendar event %s", event_id)

    # -- persistence -------------------------------------------------------------
    def _require_token(self) -> None:
        token = self._token
        if token is None or not token.is_valid(self._now_for(token)):
            raise CalendarAccessError("Calendar access token is missing or expired")

    def _now_for(self, token: AccessToken) -> datetime:
        now = self._clock()
        if token.expires_at is not None and token.expires_at.tzinfo is not None and now.tzinfo is None:
            return now.astimezone(token.expires_at.tzinfo)
        return now

    def _load(self) -> List[Event]:
        if not self._path.exists():
            return []
        raw = self._path.read_text(encoding="utf-8")
        if not raw.strip():
            return []
        document = json.loads(raw)
        events = document.get("events", []) if isinstance(document, dict) else []
        if not isinstance(events, list):
            raise ValueError("Invalid calendar document: 'events' must be a list")
        return [event for event in events if isinstance(event, dict) and event.get("id")]

    def _write(self, events: List[Event]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps({"events": events}, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, self._path)


def event_start(event: Event) -> Optional[datetime]:
    return _event_span(event)[0]


def _event_span(event: Event) -> Tuple[Optional[datetime], Optional[datetime]]:
    start = _parse_moment((event.get("start") or {}).get("dateTime"))
    end = _parse_moment((event.get("end") or {}).get("dateTime")) or start
    return start, end


def _parse_moment(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return _naive(datetime.fromisoformat(str(value)))
    except ValueError:
        return None


def _naive(value: datetime) -> datetime:
    return value.replace(tzinfo=None)


def _searchable(event: Event) -> str:
    return " ".join(str(event.get(key) or "") for key in ("summary", "description", "location")).lower()


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


__all__ = [
    "AccessToken",
    "CalendarAccessError",
    "CalendarStore",
    "DEFAULT_STORE_PATH",
    "Event",
    "EventNotFoundError",
    "JsonCalendarStore",
    "event_start",
]
