"""Deterministic Italian calendar command parser.

The pattern parser never calls the network and never raises: intent comes
from ordered keyword families, event attributes and temporal data from named
regex rules, and the confidence from a simple additive score.  It is the
always-available strategy behind the parser selector.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from core.command_schema import (
    EVENT_INTENTS,
    CommandSchema,
    ParsingMetadata,
    QueryData,
    TimeRange,
    empty_schema,
)
from core.parser_config import DEFAULT_PARSER_CONFIG, ParserConfig
from core.parser_utils.datetime import (
    MONTH_PATTERN,
    NUMBER_PATTERN,
    WEEKDAY_PATTERN,
    add_months,
    day_bounds,
    find_all_dates,
    find_date,
    find_duration,
    find_recurrence,
    find_time,
    is_ambiguous_hour,
    month_bounds,
    strip_temporal,
    to_number,
    week_bounds,
)
from core.parser_utils.rules import ExtractionRule, RuleMatch, first_match, remove_spans
from core.parser_utils.text import first_words, strip_leading_articles, trim_punctuation
from core.parsers.corrections import BULK_DELETE_AMBIGUITY, is_bulk_delete
from core.parsers.lexicon import (
    EVENT_NOUN_PATTERN,
    INTERROGATIVES,
    QUERY_FILLERS,
    classify_intent,
    remove_first_keyword,
)
from core.parsers.title import MAX_LEFTOVER_WORDS, TitleExtractor

logger = logging.getLogger(__name__)

_CAPITALISED = r"[A-ZÀ-Ý][\w'’-]*"
_NAME = rf"{_CAPITALISED}(?:\s+{_CAPITALISED})*"
_EMAIL = r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+"
_PERSON = rf"(?:{_EMAIL}|{_NAME})"
_PLACE_NOUNS = (
    r"ufficio|palestra|ristorante|pizzeria|bar|scuola|ospedale|studio|sala\s+riunioni|sala|biblioteca|"
    r"piscina|stazione|aeroporto|casa|centro|teatro|cinema|parco|universit[àa]|banca|farmacia|posta|"
    r"municipio|chiesa|stadio|hotel|albergo|negozio|supermercato"
)
_DATE_EXPR = (
    rf"(?:\d{{1,2}}[/-]\d{{1,2}}(?:[/-]\d{{2,4}})?|\d{{1,2}}\s+(?:{MONTH_PATTERN})(?:\s+\d{{4}})?|"
    rf"(?:{WEEKDAY_PATTERN})(?:\s+prossim[oa])?|dopodomani|domani|oggi)"
)

PARTICIPANT_RULE = ExtractionRule.compile(
    "participants",
    rf"(?i:\bcon)\s+({_PERSON}(?:(?:\s*,\s*|\s+e\s+){_PERSON})*)",
    flags=0,
)
LOCATION_RULES: Tuple[ExtractionRule, ...] = (
    ExtractionRule.compile(
        "place_noun",
        rf"(?i:\b(?:in|al|alla|allo|all'|nel|nella|nello|nell'|presso(?:\s+(?:il|la|lo|l'))?)\s*)"
        rf"((?i:{_PLACE_NOUNS})\b(?:\s+(?:(?:di|del|della|de)\s+)?{_CAPITALISED})*)",
        priority=10,
        flags=0,
    ),
    ExtractionRule.compile(
        "proper_place",
        rf"(?i:\b(?:a|in|presso|al|alla|allo|all'|nel|nella|nello|nell'))\s*"
        rf"({_CAPITALISED}(?:\s+(?:(?:di|del|della)\s+)?{_CAPITALISED})*)",
        priority=20,
        flags=0,
    ),
)
QUERY_RANGE_RULES: Tuple[ExtractionRule, ...] = (
    ExtractionRule.compile(
        "explicit_range",
        rf"\b(?:da|dal|dall')\s*(?P<start>{_DATE_EXPR})\s+(?:a|al|all'|fino\s+a|fino\s+al)\s*(?P<end>{_DATE_EXPR})\b",
        priority=10,
        group=0,
    ),
    ExtractionRule.compile("next_week", r"\b(?:prossima\s+settimana|settimana\s+prossima)\b", priority=20, group=0),
    ExtractionRule.compile("this_week", r"\bquesta\s+settimana\b", priority=20, group=0),
    ExtractionRule.compile("next_month", r"\b(?:prossimo\s+mese|mese\s+prossimo)\b", priority=20, group=0),
    ExtractionRule.compile("this_month", r"\bquesto\s+mese\b", priority=20, group=0),
    ExtractionRule.compile(
        "last_period",
        rf"\bultim[aoie]\s+(?:(?P<amount>{NUMBER_PATTERN})\s*)?(?P<unit>giorn[oi]|settiman[ae]|mes[ei])\b",
        priority=30,
        group=0,
    ),
)
SEARCH_TERM_RULES: Tuple[ExtractionRule, ...] = (
    ExtractionRule.compile("with", r"\bcon\s+([^,?!.;]+)", priority=10),
    ExtractionRule.compile("about", r"\briguardo\s+(?:(?:allo|alla|agli|alle|al|ai|a)\s+|all')([^,?!.;]+)", priority=20),
    ExtractionRule.compile("on", r"\bsu(?:l|lla|llo|i|gli|lle)?\s+([^,?!.;]+)", priority=30),
    ExtractionRule.compile("of", r"\bdi\s+([^,?!.;]+)", priority=40),
)
LIMIT_RULE = ExtractionRule.compile(
    "limit",
    rf"\b(?:(?:i|gli|le)\s+)?(?:(?:prim|prossim|ultim)[ie]\s+)?(?P<amount>{NUMBER_PATTERN})\s+"
    r"(?:appuntament|event|riunion|impegn|incontr)\w*",
    group="amount",
)

_FILLER_WORDS = {word.lower() for word in QUERY_FILLERS} | set(INTERROGATIVES)


class PatternParser:
    """WHAT: regex/keyword extractor producing ``CommandSchema`` objects.

    WHY: the selector needs a strategy that works offline, is deterministic
    for a given reference datetime, and never raises.
    HOW: classify the intent, then run the event or query extraction chain
    against the text and score how much evidence was found.
    """

    method = "regex"

    def __init__(self, config: ParserConfig = DEFAULT_PARSER_CONFIG) -> None:
        self._config = config
        self._titles = TitleExtractor(config)

    @property
    def config(self) -> ParserConfig:
        return self._config

    def can_handle(self, text: str) -> bool:
        return True

    def confidence(self, text: str, reference: Optional[datetime] = None) -> float:
        return self.parse(text, reference).confidence

    def parse(self, text: str, reference: Optional[datetime] = None) -> CommandSchema:
        raw = text if isinstance(text, str) else ""
        reference = reference or datetime.now()
        try:
            return self._parse(raw, reference)
        except Exception as exc:
            logger.warning("Pattern parser failed on %r: %s", raw, exc)
            return empty_schema(raw, self.method, ambiguities=[f"Errore: {exc}"])

    # -- pipeline ------------------------------------------------------------
    def _parse(self, text: str, reference: datetime) -> CommandSchema:
        keyword_intent = classify_intent(text)
        intent = keyword_intent
        if intent == "delete" and is_bulk_delete(text):
            intent = "query"
        schema = CommandSchema(
            intent=intent,
            query_data=QueryData(limit=self._config.default_limit),
            parsing_metadata=ParsingMetadata(method=self.method, raw_text=text),
        )
        if intent is None:
            return schema
        if intent != keyword_intent:
            schema.parsing_metadata.ambiguities.append(BULK_DELETE_AMBIGUITY)

        self._extract_time(text, reference, schema)
        found_range = False
        if intent in EVENT_INTENTS:
            self._extract_event(text, intent, schema)
        else:
            found_range = self._extract_query(text, reference, schema, keyword_intent)

        schema.confidence = self._score(text, schema, found_range)
        schema.is_valid = schema.validate()
        return schema

    def _extract_event(self, text: str, intent: str, schema: CommandSchema) -> None:
        event = schema.event_data
        working = text

        people = PARTICIPANT_RULE.search(working)
        if people is not None:
            event.participants = _split_people(people.value)
            working = remove_spans(working, [people.span])

        place = first_match(LOCATION_RULES, working, require_value=True)
        if place is not None:
            event.location = trim_punctuation(place.value)
            working = remove_spans(working, [place.span])

        stripped = strip_temporal(working)
        hit = self._titles.extract(stripped)
        event.title = hit.title if hit else self._titles.leftover(stripped, intent)

        missing = schema.parsing_metadata.missing_info
        if not event.title:
            missing.append("title")
        if schema.time_data.start_date is None:
            missing.append("date")
        if schema.time_data.start_time is None:
            missing.append("time")

    def _extract_time(self, text: str, reference: datetime, schema: CommandSchema) -> None:
        timing = schema.time_data
        ambiguities = schema.parsing_metadata.ambiguities

        first = find_date(text, reference)
        if first is not None:
            timing.start_date = first.value
            if not first.valid:
                ambiguities.append("Data non valida: uso la data odierna")
            distinct = {hit.value for hit in find_all_dates(text, reference) if hit.valid}
            if len(distinct) > 1 and schema.intent in EVENT_INTENTS:
                ambiguities.append(f"Più date nel comando: uso {first.value.isoformat()}")

        clock = find_time(text)
        if clock is not None:
            timing.start_time = clock.start
            if clock.end is not None:
                timing.end_time = clock.end
                timing.end_date = timing.start_date
            if not clock.valid:
                ambiguities.append("Orario non valido: uso mezzogiorno")
            elif is_ambiguous_hour(clock):
                ambiguities.append(
                    f"Orario ambiguo: le {clock.start.hour} potrebbero essere del mattino o della sera"
                )

        timing.duration = find_duration(text)
        timing.recurrence = find_recurrence(text)

    def _extract_query(
        self, text: str, reference: datetime, schema: CommandSchema, keyword_intent: Optional[str]
    ) -> bool:
        query = schema.query_data
        spans: List[Tuple[int, int]] = []

        window = self._resolve_range(text, reference, schema, spans)
        if window is not None:
            query.time_range = TimeRange(start=window[0], end=window[1])

        limit_hit = LIMIT_RULE.search(text)
        if limit_hit is not None:
            amount = to_number(limit_hit.value)
            if amount and amount > 0:
                query.limit = amount
            spans.append(limit_hit.span)

        term = self._search_term(remove_spans(text, spans), keyword_intent)
        if term:
            query.search_term = term

        if window is None and not term:
            query.time_range = TimeRange(start=reference)
        return window is not None

    def _resolve_range(
        self,
        text: str,
        reference: datetime,
        schema: CommandSchema,
        spans: List[Tuple[int, int]],
    ) -> Optional[Tuple[datetime, datetime]]:
        found = first_match(QUERY_RANGE_RULES, text)
        if found is not None:
            window = _range_from_rule(found, reference)
            if window is not None:
                spans.append(found.span)
                return window
        if schema.time_data.start_date is not None:
            return day_bounds(schema.time_data.start_date)
        return None

    def _search_term(self, text: str, intent: Optional[str]) -> Optional[str]:
        stripped = strip_temporal(text)
        cue = first_match(SEARCH_TERM_RULES, stripped, require_value=True)
        if cue is not None:
            term = _clean_term(cue.value)
            if term:
                return term
        leftover = remove_first_keyword(stripped, intent)
        return _clean_term(leftover, drop_all_fillers=True)

    # -- scoring -------------------------------------------------------------
    def _score(self, text: str, schema: CommandSchema, found_range: bool) -> float:
        if not schema.intent:
            return 0.0
        score = 0.5
        if schema.intent in EVENT_INTENTS:
            event = schema.event_data
            timing = schema.time_data
            score += 0.1 if event.title else 0.0
            score += 0.1 if timing.start_date else 0.0
            score += 0.1 if timing.start_time else 0.0
            score += 0.05 if event.location else 0.0
            score += 0.05 if event.participants else 0.0
        else:
            score += 0.2 if found_range else 0.0
            score += 0.2 if schema.query_data.search_term else 0.0
        if len(text) > 100:
            score -= 0.1
        if len(text.split()) > 15:
            score -= 0.05
        score -= 0.1 * len(schema.parsing_metadata.ambiguities)
        return round(min(max(score, 0.0), 1.0), 4)


def _split_people(value: str) -> List[str]:
    people = [part.strip(" .") for part in re.split(r"\s*,\s*|\s+e\s+", value)]
    return [person for person in people if person]


def _range_from_rule(found: RuleMatch, reference: datetime) -> Optional[Tuple[datetime, datetime]]:
    today = reference.date()
    if found.name == "explicit_range":
        start = find_date(found.match.group("start"), reference)
        end = find_date(found.match.group("end"), reference)
        if start is None or end is None:
            return None
        first, last = sorted((start.value, end.value))
        return day_bounds(first)[0], day_bounds(last)[1]
    if found.name == "this_week":
        return week_bounds(today)
    if found.name == "next_week":
        return week_bounds(today, next_week=True)
    if found.name == "this_month":
        return month_bounds(today)
    if found.name == "next_month":
        return month_bounds(today, next_month=True)
    if found.name == "last_period":
        amount = to_number(found.match.group("amount") or "") or 1
        unit = found.match.group("unit").lower()
        if unit.startswith("giorn"):
            start_day: date = today - timedelta(days=amount)
        elif unit.startswith("settiman"):
            start_day = today - timedelta(weeks=amount)
        else:
            start_day = add_months(today, -amount)
        return day_bounds(start_day)[0], reference
    return None


def _clean_term(value: str, drop_all_fillers: bool = False) -> Optional[str]:
    cleaned = EVENT_NOUN_PATTERN.sub(" ", value or "")
    words = [word for word in cleaned.replace("?", " ").split() if word]
    if drop_all_fillers:
        words = [word for word in words if word.lower().strip(",.;:!") not in _FILLER_WORDS]
    else:
        while words and words[0].lower() in _FILLER_WORDS:
            words.pop(0)
    term = trim_punctuation(strip_leading_articles(first_words(" ".join(words), MAX_LEFTOVER_WORDS)))
    return term if len(term) >= 3 else None


__all__ = [
    "PatternParser",
    "PARTICIPANT_RULE",
    "LOCATION_RULES",
    "QUERY_RANGE_RULES",
    "SEARCH_TERM_RULES",
    "LIMIT_RULE",
]
