"""Post-hoc corrections applied to the model's decoded JSON.

The model is good at structure and bad at a handful of recurring details:
titles that keep "chiamato", hours shifted by twelve, listing questions
tagged as ``create``, and bulk deletions.  Each correction below is a plain
function over the decoded mapping; ``apply_corrections`` runs them in order
on a deep copy so a failure halfway never leaks a half-corrected structure.
"""

from __future__ import annotations

import copy
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from core.parser_config import TITLE_TAIL
from core.parser_utils.datetime import day_bounds, find_time, month_bounds, week_bounds
from core.parser_utils.text import contains_word, strip_quotes
from core.parsers.lexicon import BULK_QUALIFIERS, EVENT_NOUN_STEMS, LISTING_VERBS, PERIOD_WORDS
from core.parsers.title import TitleExtractor, has_structural_words

logger = logging.getLogger(__name__)

MIN_SEARCH_TERM_LENGTH = 4

_LISTING_PATTERN = re.compile(rf"\b(?:{'|'.join(LISTING_VERBS)})", re.IGNORECASE)
_EVENT_STEM_PATTERN = re.compile(rf"\b(?:{'|'.join(EVENT_NOUN_STEMS)})", re.IGNORECASE)
_NEXT_WEEK = re.compile(r"\bprossima\s+settimana\b|\bsettimana\s+prossima\b", re.IGNORECASE)
_NEXT_MONTH = re.compile(r"\bprossimo\s+mese\b|\bmese\s+prossimo\b", re.IGNORECASE)
_REMINDER = re.compile(r"\bricordami\s+(?:di\s+)?(.+?)" + TITLE_TAIL, re.IGNORECASE)
_CLOCK_VALUE = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")

BULK_DELETE_AMBIGUITY = "Eliminazione multipla: seleziona gli eventi da eliminare"


# -- shared predicates ----------------------------------------------------------
def is_listing_request(text: str) -> bool:
    """A listing verb ("mostra", "quali", ...) together with an event noun."""

    return bool(_LISTING_PATTERN.search(text or "")) and bool(_EVENT_STEM_PATTERN.search(text or ""))


def is_bulk_delete(text: str) -> bool:
    """"tutti"/"gli appuntamenti" plus a period word: never auto-approved."""

    return contains_word(text, BULK_QUALIFIERS) and contains_word(text, PERIOD_WORDS)


def period_window(text: str, reference: datetime) -> Optional[Tuple[datetime, datetime]]:
    """Resolve the literal oggi/domani/settimana/mese mention in ``text``."""

    today = reference.date()
    if contains_word(text, ("domani",)):
        return day_bounds(today + timedelta(days=1))
    if contains_word(text, ("oggi",)):
        return day_bounds(today)
    if contains_word(text, ("settimana",)):
        return week_bounds(today, next_week=bool(_NEXT_WEEK.search(text)))
    if contains_word(text, ("mese",)):
        return month_bounds(today, next_month=bool(_NEXT_MONTH.search(text)))
    return None


# -- individual corrections -----------------------------------------------------
def correct_title(response: Dict[str, Any], text: str, titles: TitleExtractor) -> None:
    event = _section(response, "eventData")
    title = event.get("title")
    if not isinstance(title, str) or not title.strip():
        return

    if has_structural_words(title) or contains_word(title, ("ricordami",)):
        hit = titles.extract(text)
        corrected = hit.title if hit else titles.clean(title)
    else:
        corrected = titles.clean(title)
    corrected = strip_quotes(corrected or "") or title.strip()
    if corrected != title:
        logger.debug("Title corrected from %r to %r", title, corrected)
        event["title"] = corrected


def correct_start_hour(response: Dict[str, Any], text: str) -> None:
    """Trust an explicit "alle N [del pomeriggio]" mention over the model's hour."""

    timing = _section(response, "timeData")
    current = timing.get("startTime")
    if not isinstance(current, str) or not current.strip():
        return
    hit = find_time(text)
    if hit is None or not hit.valid:
        return

    value = current.strip()
    clock = _CLOCK_VALUE.match(value)
    if clock:
        if (int(clock.group(1)), int(clock.group(2))) != (hit.start.hour, hit.start.minute):
            timing["startTime"] = hit.start.strftime("%H:%M")
        return
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        timing["startTime"] = hit.start.strftime("%H:%M")
        return
    if (moment.hour, moment.minute) != (hit.start.hour, hit.start.minute):
        logger.debug("Start hour corrected from %s to %s", moment.time(), hit.start)
        timing["startTime"] = moment.replace(hour=hit.start.hour, minute=hit.start.minute).isoformat()


def reclassify_as_query(response: Dict[str, Any], text: str, reference: datetime) -> None:
    if not is_listing_request(text):
        return
    response["intent"] = "query"
    event = _section(response, "eventData")
    query = _section(response, "queryData")
    title = event.get("title")
    if isinstance(title, str) and title.strip():
        if not query.get("searchTerm") and len(title.strip()) >= MIN_SEARCH_TERM_LENGTH:
            query["searchTerm"] = title.strip()
        event["title"] = None
    _set_window(query, period_window(text, reference))


def guard_bulk_delete(response: Dict[str, Any], text: str, reference: datetime) -> None:
    if response.get("intent") != "delete" or not is_bulk_delete(text):
        return
    logger.info("Bulk delete downgraded to query: %r", text)
    response["intent"] = "query"
    _set_window(_section(response, "queryData"), period_window(text, reference))
    ambiguities = response.get("ambiguities")
    if not isinstance(ambiguities, list):
        ambiguities = []
        response["ambiguities"] = ambiguities
    ambiguities.append(BULK_DELETE_AMBIGUITY)


def apply_reminder(response: Dict[str, Any], text: str) -> None:
    if response.get("intent") or not contains_word(text, ("ricordami",)):
        return
    response["intent"] = "create"
    event = _section(response, "eventData")
    if isinstance(event.get("title"), str) and event["title"].strip():
        return
    match = _REMINDER.search(text)
    if match:
        event["title"] = match.group(1).strip()


def apply_corrections(
    response: Dict[str, Any],
    text: str,
    reference: datetime,
    titles: TitleExtractor,
) -> Dict[str, Any]:
    """Return a corrected deep copy of ``response``; the input is never touched."""

    corrected = copy.deepcopy(response)
    correct_title(corrected, text, titles)
    correct_start_hour(corrected, text)
    reclassify_as_query(corrected, text, reference)
    guard_bulk_delete(corrected, text, reference)
    apply_reminder(corrected, text)
    return corrected


def _section(response: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = response.get(key)
    if not isinstance(value, dict):
        value = {}
        response[key] = value
    return value


def _set_window(query: Dict[str, Any], window: Optional[Tuple[datetime, datetime]]) -> None:
    if window is None:
        return
    query["timeRange"] = {"start": window[0].isoformat(), "end": window[1].isoformat()}


__all__ = [
    "BULK_DELETE_AMBIGUITY",
    "MIN_SEARCH_TERM_LENGTH",
    "apply_corrections",
    "apply_reminder",
    "correct_start_hour",
    "correct_title",
    "guard_bulk_delete",
    "is_bulk_delete",
    "is_listing_request",
    "period_window",
    "reclassify_as_query",
]
