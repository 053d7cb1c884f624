"""Reusable Italian date/time helpers for parsers.

Every helper receives an explicit reference ``datetime`` so parsing the same
text against the same reference always yields the same values.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Match, Optional, Tuple

from core.command_schema import NOON, WEEKDAY_CODES
from core.parser_utils.rules import ExtractionRule, RuleMatch, all_matches, first_match

WEEKDAYS: Dict[str, int] = {
    "lunedì": 0,
    "lunedi": 0,
    "martedì": 1,
    "martedi": 1,
    "mercoledì": 2,
    "mercoledi": 2,
    "giovedì": 3,
    "giovedi": 3,
    "venerdì": 4,
    "venerdi": 4,
    "sabato": 5,
    "domenica": 6,
}
RELATIVE_DAYS: Dict[str, int] = {
    "oggi": 0,
    "stamattina": 0,
    "stamani": 0,
    "stasera": 0,
    "stanotte": 0,
    "domani": 1,
    "dopodomani": 2,
    "ieri": -1,
    "l'altro ieri": -2,
    "l'altroieri": -2,
}
MONTHS: Dict[str, int] = {
    "gennaio": 1,
    "febbraio": 2,
    "marzo": 3,
    "aprile": 4,
    "maggio": 5,
    "giugno": 6,
    "luglio": 7,
    "agosto": 8,
    "settembre": 9,
    "ottobre": 10,
    "novembre": 11,
    "dicembre": 12,
}
NUMBER_WORDS: Dict[str, int] = {
    "un": 1,
    "uno": 1,
    "una": 1,
    "un'": 1,
    "due": 2,
    "tre": 3,
    "quattro": 4,
    "cinque": 5,
    "sei": 6,
    "sette": 7,
    "otto": 8,
    "nove": 9,
    "dieci": 10,
    "undici": 11,
    "dodici": 12,
    "quindici": 15,
    "venti": 20,
    "trenta": 30,
    "quaranta": 40,
    "quarantacinque": 45,
    "novanta": 90,
}

WEEKDAY_PATTERN = r"luned[iì]|marted[iì]|mercoled[iì]|gioved[iì]|venerd[iì]|sabato|domenica"
MONTH_PATTERN = "|".join(MONTHS)
NUMBER_PATTERN = r"\d+|" + "|".join(sorted((re.escape(word) for word in NUMBER_WORDS), key=len, reverse=True))
_DAY_PART = r"(?:\s+(?:del|della|di|nel|la)\s+(?P<part>mattino|mattina|pomeriggio|sera|notte))?"
_MERIDIEM = r"(?:\s*(?P<meridiem>am|pm)\b)?"

# -- date rules (relative day and weekday first, explicit dates second, offsets last)
DATE_RULES: Tuple[ExtractionRule, ...] = (
    ExtractionRule.compile(
        "relative_day",
        r"(?<![\w'])(l'altro\s*ieri|dopodomani|domani|oggi|ieri|stamattina|stamani|stasera|stanotte)\b",
        priority=10,
    ),
    ExtractionRule.compile(
        "weekday",
        rf"\b({WEEKDAY_PATTERN})(?:\s+(?P<qualifier>prossimo|prossima|scorso|scorsa))?\b",
        priority=20,
    ),
    ExtractionRule.compile(
        "explicit_date",
        r"\b(?P<day>\d{1,2})[/-](?P<month>\d{1,2})(?:[/-](?P<year>\d{2,4}))?\b",
        priority=30,
        group=0,
    ),
    ExtractionRule.compile(
        "month_name_date",
        rf"\b(?P<day>\d{{1,2}})\s+(?P<month_name>{MONTH_PATTERN})(?:\s+(?P<year>\d{{4}}))?\b",
        priority=35,
        group=0,
    ),
    ExtractionRule.compile(
        "relative_offset",
        rf"\b(?:tra|fra)\s+(?P<amount>{NUMBER_PATTERN})\s*(?P<unit>giorn[oi]|settiman[ae]|mes[ei])\b",
        priority=40,
        group=0,
    ),
)

# -- time rules
TIME_RULES: Tuple[ExtractionRule, ...] = (
    ExtractionRule.compile(
        "time_range",
        r"\bdalle\s+(?P<start_hour>\d{1,2})(?:[:.](?P<start_minute>\d{2}))?\s+(?:alle|a)\s+"
        r"(?P<end_hour>\d{1,2})(?:[:.](?P<end_minute>\d{2}))?" + _MERIDIEM + _DAY_PART,
        priority=10,
        group=0,
    ),
    ExtractionRule.compile("midday", r"\b(?:a\s+)?(mezzogiorno|mezzanotte)\b", priority=20),
    ExtractionRule.compile(
        "time_cue",
        r"\b(?:alle|ore|alle\s+ore|verso\s+le|per\s+le)\s+(?P<hour>\d{1,2})(?:[:.](?P<minute>\d{2}))?" + _MERIDIEM + _DAY_PART,
        priority=30,
        group=0,
    ),
    ExtractionRule.compile(
        "clock",
        r"(?<![/\d])(?P<hour>\d{1,2}):(?P<minute>\d{2})\b" + _MERIDIEM + _DAY_PART,
        priority=40,
        group=0,
    ),
)

DURATION_RULES: Tuple[ExtractionRule, ...] = (
    ExtractionRule.compile("half_hour", r"\bper\s+(mezz'?ora)\b", priority=10),
    ExtractionRule.compile(
        "amount",
        rf"\bper\s+(?P<amount>{NUMBER_PATTERN})\s*(?P<unit>minut[oi]|or[ae]|giorn[oi])(?P<half>\s+e\s+mezz[ao])?\b",
        priority=20,
        group=0,
    ),
    ExtractionRule.compile("one_hour", r"\bper\s+(un'ora)(?P<half>\s+e\s+mezz[ao])?\b", priority=30),
)

RECURRENCE_RULES: Tuple[ExtractionRule, ...] = (
    ExtractionRule.compile("every_weekday", rf"\b(?:ogni|tutti\s+i|tutte\s+le)\s+({WEEKDAY_PATTERN})\b", priority=10),
    ExtractionRule.compile("daily", r"\b(ogni\s+giorno|tutti\s+i\s+giorni|quotidianamente)\b", priority=20),
    ExtractionRule.compile("weekly", r"\b(ogni\s+settimana|tutte\s+le\s+settimane|settimanalmente)\b", priority=20),
    ExtractionRule.compile("monthly", r"\b(ogni\s+mese|tutti\s+i\s+mesi|mensilmente)\b", priority=20),
)

EVENING_CONTEXT = re.compile(r"\b(stasera|sera|pomeriggio)\b", re.IGNORECASE)
NIGHT_CONTEXT = re.compile(r"\b(stanotte|notte)\b", re.IGNORECASE)
MORNING_CONTEXT = re.compile(r"\b(stamattina|stamani|mattina|mattino)\b", re.IGNORECASE)

# Removed before title/search-term extraction; connectors are stripped with the expression.
_CONNECTOR = r"(?:\b(?:per|di|del|entro|il|a\s+partire\s+da|a|al)\s+)?"
TEMPORAL_STRIP_PATTERNS: Tuple[re.Pattern, ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bdalle\s+\d{1,2}(?:[:.]\d{2})?\s+(?:alle|a)\s+\d{1,2}(?:[:.]\d{2})?(?:\s*(?:am|pm))?",
        r"\b(?:(?:alle|ore|alle\s+ore|verso\s+le|per\s+le)\s+\d{1,2}(?:[:.]\d{2})?|(?<![/\d])\d{1,2}:\d{2})(?:\s*(?:am|pm)\b)?",
        r"\b(?:a\s+)?(?:mezzogiorno|mezzanotte)\b",
        r"\b(?:del|della|di|nel|la)\s+(?:mattino|mattina|pomeriggio|sera|notte)\b",
        r"\b(?:in\s+)?(?:mattinata|serata|nottata)\b",
        _CONNECTOR + r"(?<![\w'])(?:l'altro\s*ieri|dopodomani|domani|oggi|ieri|stamattina|stamani|stasera|stanotte)\b(?:\s+(?:mattina|pomeriggio|sera|notte))?",
        _CONNECTOR + rf"\b(?:(?:ogni|tutti\s+i|tutte\s+le)\s+)?(?:{WEEKDAY_PATTERN})(?:\s+(?:prossim[oa]|scors[oa]|mattina|pomeriggio|sera))?\b",
        _CONNECTOR + r"\b\d{1,2}[/-]\d{1,2}(?:[/-]\d{2,4})?\b",
        _CONNECTOR + rf"\b\d{{1,2}}\s+(?:{MONTH_PATTERN})(?:\s+\d{{4}})?\b",
        rf"\b(?:tra|fra)\s+(?:{NUMBER_PATTERN})\s*(?:giorn[oi]|settiman[ae]|mes[ei])\b",
        rf"\bper\s+(?:(?:{NUMBER_PATTERN})\s*(?:minut[oi]|or[ae]|giorn[oi])|mezz'?ora|un'ora)(?:\s+e\s+mezz[ao])?\b",
        rf"\b(?:ogni|tutti\s+i|tutte\s+le)\s+(?:giorn[oi]|settiman[ae]|mes[ei])\b|\b(?:quotidianamente|settimanalmente|mensilmente)\b",
        r"\b(?:quest[ao]|prossim[oa]|la\s+prossima|il\s+prossimo)\s+(?:settimana|mese)\b",
        rf"\bultim[ie]\s+(?:{NUMBER_PATTERN})\s*(?:giorn[oi]|settiman[ae]|mes[ei])\b",
        r"(?<![\w'])(?:pomeriggio|mattina)\b",
    )
)


@dataclass(frozen=True)
class DateHit:
    """Resolved date plus where it came from in the text."""

    value: date
    span: Tuple[int, int]
    rule: str
    valid: bool = True


@dataclass(frozen=True)
class TimeHit:
    start: time
    span: Tuple[int, int]
    rule: str
    end: Optional[time] = None
    qualified: bool = False
    valid: bool = True


def to_number(token: str) -> Optional[int]:
    token = (token or "").strip().lower()
    if token.isdigit():
        return int(token)
    return NUMBER_WORDS.get(token)


def normalize_year(value: int) -> int:
    """Two-digit years pivot at 50: ``<50`` means 2000s, otherwise 1900s."""

    if value < 100:
        return 2000 + value if value < 50 else 1900 + value
    return value


def add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def resolve_weekday(target: int, reference: date, qualifier: Optional[str] = None) -> date:
    """Resolve a weekday name against ``reference``.

    Bare names and ``prossimo`` always move forward; the same weekday means a
    week from today.  ``scorso`` goes back to the previous occurrence.
    """

    current = reference.weekday()
    qualifier = (qualifier or "").lower()
    if qualifier.startswith("scors"):
        return reference - timedelta(days=(current - target) % 7 or 7)
    offset = (target - current) % 7
    if offset == 0:
        offset = 7
    return reference + timedelta(days=offset)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    return datetime.combine(day, time(0, 0)), datetime.combine(day, time(23, 59, 59))


def week_bounds(reference: date, next_week: bool = False) -> Tuple[datetime, datetime]:
    """``questa settimana``: today to Sunday; ``prossima``: next Monday to Sunday."""

    if next_week:
        monday = reference + timedelta(days=7 - reference.weekday())
        return day_bounds(monday)[0], day_bounds(monday + timedelta(days=6))[1]
    sunday = reference + timedelta(days=6 - reference.weekday())
    return day_bounds(reference)[0], day_bounds(sunday)[1]


def month_bounds(reference: date, next_month: bool = False) -> Tuple[datetime, datetime]:
    """``questo mese``: today to month end; ``prossimo mese``: the whole next month."""

    if next_month:
        first = add_months(reference.replace(day=1), 1)
    else:
        first = reference
    last = first.replace(day=calendar.monthrange(first.year, first.month)[1])
    return day_bounds(first)[0], day_bounds(last)[1]


# -- dates ---------------------------------------------------------------------
def _resolve_relative_day(match: Match[str], reference: date) -> Tuple[date, bool]:
    token = re.sub(r"\s+", " ", match.group(1).lower())
    offset = RELATIVE_DAYS.get(token, RELATIVE_DAYS.get(token.replace(" ", ""), 0))
    return reference + timedelta(days=offset), True


def _resolve_weekday(match: Match[str], reference: date) -> Tuple[date, bool]:
    target = WEEKDAYS[match.group(1).lower()]
    return resolve_weekday(target, reference, match.group("qualifier")), True


def _resolve_explicit(match: Match[str], reference: date) -> Tuple[date, bool]:
    year_token = match.group("year")
    year = normalize_year(int(year_token)) if year_token else reference.year
    try:
        return date(year, int(match.group("month")), int(match.group("day"))), True
    except ValueError:
        return reference, False


def _resolve_month_name(match: Match[str], reference: date) -> Tuple[date, bool]:
    year_token = match.group("year")
    year = int(year_token) if year_token else reference.year
    try:
        return date(year, MONTHS[match.group("month_name").lower()], int(match.group("day"))), True
    except ValueError:
        return reference, False


def _resolve_offset(match: Match[str], reference: date) -> Tuple[date, bool]:
    amount = to_number(match.group("amount")) or 0
    unit = match.group("unit").lower()
    if unit.startswith("giorn"):
        return reference + timedelta(days=amount), True
    if unit.startswith("settiman"):
        return reference + timedelta(weeks=amount), True
    return add_months(reference, amount), True


_DATE_RESOLVERS = {
    "relative_day": _resolve_relative_day,
    "weekday": _resolve_weekday,
    "explicit_date": _resolve_explicit,
    "month_name_date": _resolve_month_name,
    "relative_offset": _resolve_offset,
}


def find_date(text: str, reference: datetime) -> Optional[DateHit]:
    """Return the first date expression in rule-priority order.

    Invalid calendar dates such as ``31/02`` resolve to the reference day and
    are flagged with ``valid=False``.
    """

    hit = first_match(DATE_RULES, text)
    if hit is None:
        return None
    value, valid = _DATE_RESOLVERS[hit.name](hit.match, reference.date())
    return DateHit(value=value, span=hit.span, rule=hit.name, valid=valid)


def find_all_dates(text: str, reference: datetime) -> List[DateHit]:
    hits: List[DateHit] = []
    for found in all_matches(DATE_RULES, text):
        value, valid = _DATE_RESOLVERS[found.name](found.match, reference.date())
        hits.append(DateHit(value=value, span=found.span, rule=found.name, valid=valid))
    return _dedupe_overlaps(hits)


def _dedupe_overlaps(hits: List[DateHit]) -> List[DateHit]:
    kept: List[DateHit] = []
    for hit in sorted(hits, key=lambda item: item.span):
        if kept and hit.span[0] < kept[-1].span[1]:
            continue
        kept.append(hit)
    return kept


# -- times ---------------------------------------------------------------------
def apply_day_part(hour: int, part: Optional[str], meridiem: Optional[str]) -> int:
    """Normalise a 12h hour using am/pm or an Italian part of the day."""

    meridiem = (meridiem or "").lower()
    part = (part or "").lower()
    if meridiem == "pm" and hour < 12:
        return hour + 12
    if meridiem == "am" and hour == 12:
        return 0
    if part in ("pomeriggio", "sera") and hour < 12:
        return hour + 12
    if part == "notte":
        if hour == 12:
            return 0
        if 6 <= hour < 12:
            return hour + 12
    return hour


def _build_time(hour: int, minute: int) -> Optional[time]:
    if 0 <= hour <= 23 and 0 <= minute <= 59:
        return time(hour, minute)
    return None


def _context_part(text: str) -> Optional[str]:
    if NIGHT_CONTEXT.search(text):
        return "notte"
    if EVENING_CONTEXT.search(text):
        return "sera"
    if MORNING_CONTEXT.search(text):
        return "mattino"
    return None


def _group(match: Match[str], name: str) -> Optional[str]:
    try:
        return match.group(name)
    except IndexError:
        return None


def resolve_time_match(found: RuleMatch, text: str) -> TimeHit:
    match = found.match
    if found.name == "midday":
        value = time(12, 0) if match.group(1).lower() == "mezzogiorno" else time(0, 0)
        return TimeHit(start=value, span=found.span, rule=found.name, qualified=True)

    part = _group(match, "part")
    meridiem = _group(match, "meridiem")
    qualified = bool(part or meridiem)
    if not qualified:
        part = _context_part(text)
        qualified = part is not None

    if found.name == "time_range":
        start_hour = apply_day_part(int(match.group("start_hour")), part, meridiem)
        end_hour = apply_day_part(int(match.group("end_hour")), part, meridiem)
        start = _build_time(start_hour, int(match.group("start_minute") or 0))
        end = _build_time(end_hour, int(match.group("end_minute") or 0))
        if start is None:
            return TimeHit(start=NOON, span=found.span, rule=found.name, qualified=qualified, valid=False)
        return TimeHit(start=start, end=end, span=found.span, rule=found.name, qualified=qualified)

    hour = apply_day_part(int(match.group("hour")), part, meridiem)
    value = _build_time(hour, int(match.group("minute") or 0))
    if value is None:
        return TimeHit(start=NOON, span=found.span, rule=found.name, qualified=qualified, valid=False)
    return TimeHit(start=value, span=found.span, rule=found.name, qualified=qualified)


def find_time(text: str) -> Optional[TimeHit]:
    """Return the first time-of-day expression; invalid values fall back to noon."""

    found = first_match(TIME_RULES, text)
    if found is None:
        return None
    return resolve_time_match(found, text)


def is_ambiguous_hour(hit: TimeHit) -> bool:
    """Unqualified early hours (1-7) could be morning or evening."""

    return hit.valid and not hit.qualified and hit.rule != "midday" and 1 <= hit.start.hour <= 7


# -- duration and recurrence ---------------------------------------------------
def find_duration(text: str) -> Optional[int]:
    """Return the duration in minutes for ``per N minuti|ore|giorni`` phrases."""

    found = first_match(DURATION_RULES, text)
    if found is None:
        return None
    extra = 30 if _group(found.match, "half") else 0
    if found.name == "half_hour":
        return 30
    if found.name == "one_hour":
        return 60 + extra
    amount = to_number(found.match.group("amount"))
    if not amount:
        return None
    unit = found.match.group("unit").lower()
    if unit.startswith("minut"):
        return amount
    if unit.startswith("or"):
        return amount * 60 + extra
    return amount * 24 * 60


def find_recurrence(text: str) -> Optional[str]:
    """Map ``ogni <unit>`` phrases onto ``daily|weekly|monthly|weekly;BYDAY=XX``."""

    found = first_match(RECURRENCE_RULES, text)
    if found is None:
        return None
    if found.name == "every_weekday":
        code = WEEKDAY_CODES[WEEKDAYS[found.value.lower()]]
        return f"weekly;BYDAY={code}"
    return found.name


def strip_temporal(text: str) -> str:
    """Remove every date, time, duration, recurrence and period expression."""

    cleaned = text or ""
    for pattern in TEMPORAL_STRIP_PATTERNS:
        cleaned = pattern.sub(" ", cleaned)
    return re.sub(r"\s{2,}", " ", cleaned).strip(" ,.;")


def has_temporal_cue(text: str) -> bool:
    return strip_temporal(text) != re.sub(r"\s{2,}", " ", text or "").strip(" ,.;")


__all__ = [
    "WEEKDAYS",
    "RELATIVE_DAYS",
    "MONTHS",
    "NUMBER_WORDS",
    "WEEKDAY_PATTERN",
    "DATE_RULES",
    "TIME_RULES",
    "DURATION_RULES",
    "RECURRENCE_RULES",
    "DateHit",
    "TimeHit",
    "to_number",
    "normalize_year",
    "add_months",
    "resolve_weekday",
    "day_bounds",
    "week_bounds",
    "month_bounds",
    "find_date",
    "find_all_dates",
    "apply_day_part",
    "resolve_time_match",
    "find_time",
    "is_ambiguous_hour",
    "find_duration",
    "find_recurrence",
    "strip_temporal",
    "has_temporal_cue",
]
