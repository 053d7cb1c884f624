"""Common text-processing helpers shared across parser modules."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterable, Optional

_WS_PATTERN = re.compile(r"\s+")
_QUOTE_CHARS = "\"'“”«»‘’`"
_LEADING_ARTICLES = re.compile(r"^(?:un|uno|una|il|lo|la|i|gli|le)\s+|^(?:un'|l')", re.IGNORECASE)
_LEADING_PREPOSITIONS = re.compile(
    r"^(?:per|con|da|dal|dalla|dallo|di|del|della|dello|a|al|alla|allo|all'|agli|alle|in|nel|nella|su|sul|sulla)\s+|^(?:all'|dall'|dell'|nell')",
    re.IGNORECASE,
)
_TRAILING_COMMAS = re.compile(r",\s*([}\]])")
_BARE_KEYS = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:")


def normalize_spaces(text: str) -> str:
    return _WS_PATTERN.sub(" ", text or "").strip()


def contains_word(text: str, words: Iterable[str]) -> bool:
    """Return True when any of ``words`` appears as a whole word in ``text``."""

    lowered = (text or "").lower()
    for word in words:
        if re.search(rf"(?<![\w']){re.escape(word.lower())}(?!\w)", lowered):
            return True
    return False


def contains_keyword(text: str, keywords: Iterable[str]) -> bool:
    """Return True when any keyword is a substring of ``text`` (case-insensitive)."""

    lowered = (text or "").lower()
    return any(keyword in lowered for keyword in keywords)


def strip_quotes(value: str) -> str:
    return (value or "").strip().strip(_QUOTE_CHARS).strip()


def strip_leading_articles(value: str) -> str:
    previous = None
    current = (value or "").strip()
    while previous != current:
        previous = current
        current = _LEADING_ARTICLES.sub("", current, count=1).strip()
    return current


def strip_leading_prepositions(value: str) -> str:
    return _LEADING_PREPOSITIONS.sub("", (value or "").strip(), count=1).strip()


def trim_punctuation(value: str) -> str:
    return (value or "").strip().strip(",.;:!?-").strip()


def first_words(value: str, limit: int) -> str:
    words = (value or "").split()
    return " ".join(words[:limit])


# WHAT: isolate the JSON object embedded in a model reply.
# WHY: generative backends wrap the payload in prose or markdown fences.
# HOW: take everything from the first "{" to the last "}".
def extract_json_object(text: str) -> Optional[str]:
    match = re.search(r"\{[\s\S]*\}", text or "")
    return match.group(0) if match else None


def repair_json(raw: str) -> str:
    """Apply the bounded fixups: trailing commas and bare object keys."""

    repaired = _TRAILING_COMMAS.sub(r"\1", raw)
    return _BARE_KEYS.sub(r'\1"\2":', repaired)


def parse_json_object(text: str) -> Dict[str, Any]:
    """Parse the first JSON object in ``text``, repairing it once if needed.

    Raises ``ValueError`` with an Italian message when no object is found or
    the repaired payload is still invalid.
    """

    candidate = extract_json_object(text)
    if candidate is None:
        raise ValueError("Formato di risposta non valido: JSON non trovato")
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        try:
            data = json.loads(repair_json(candidate))
        except json.JSONDecodeError as exc:
            raise ValueError(f"JSON non valido e non correggibile: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise ValueError("Formato di risposta non valido: atteso un oggetto JSON")
    return data


__all__ = [
    "normalize_spaces",
    "contains_word",
    "contains_keyword",
    "strip_quotes",
    "strip_leading_articles",
    "strip_leading_prepositions",
    "trim_punctuation",
    "first_words",
    "extract_json_object",
    "repair_json",
    "parse_json_object",
]
