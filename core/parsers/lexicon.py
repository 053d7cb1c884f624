"""Italian keyword tables shared by the pattern parser and the model corrections."""

from __future__ import annotations

import re
from typing import Dict, Iterable, Optional, Pattern, Tuple

# Families are checked in this order; the first hit decides the intent.
INTENT_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "create": (
        "crea",
        "aggiungi",
        "nuovo",
        "nuova",
        "pianifica",
        "programma",
        "organizza",
        "fissa",
        "inserisci",
        "metti",
        "segna",
        "ricordami",
        "ricorda",
    ),
    "read": (
        "mostra",
        "mostrami",
        "visualizza",
        "vedi",
        "fammi vedere",
        "dammi",
        "elenca",
        "elencami",
        "trova",
        "trovami",
        "cerca",
        "cercami",
    ),
    "update": ("modifica", "aggiorna", "cambia", "sposta", "posticipa", "anticipa", "rinvia", "rinomina"),
    "delete": ("elimina", "cancella", "rimuovi", "togli", "annulla"),
}
INTERROGATIVES: Tuple[str, ...] = ("quali", "quale", "quando", "come", "dove", "cosa", "chi")

LISTING_VERBS: Tuple[str, ...] = ("quali", "mostra", "visualizza", "vedi", "trova", "cerca", "dammi", "elenca")
EVENT_NOUN_STEMS: Tuple[str, ...] = ("appuntament", "event", "riunion", "calendar")
GENERIC_EVENT_NOUNS: Tuple[str, ...] = (
    "appuntamento",
    "evento",
    "riunione",
    "incontro",
    "meeting",
    "promemoria",
    "impegno",
)
STRUCTURAL_WORDS: Tuple[str, ...] = (
    "chiamato",
    "chiamata",
    "intitolato",
    "intitolata",
    "denominato",
    "denominata",
    "dal nome",
    "di nome",
)
BULK_QUALIFIERS: Tuple[str, ...] = ("tutti", "tutte", "gli appuntamenti")
PERIOD_WORDS: Tuple[str, ...] = ("domani", "oggi", "settimana", "mese")

# Words dropped when leftover text is turned into a search term.
QUERY_FILLERS: Tuple[str, ...] = (
    "ho",
    "hai",
    "abbiamo",
    "ci",
    "c'è",
    "ce",
    "sono",
    "è",
    "e",
    "i",
    "il",
    "la",
    "lo",
    "gli",
    "le",
    "l'",
    "miei",
    "mie",
    "mio",
    "mia",
    "tutti",
    "tutte",
    "me",
    "mi",
    "per",
    "di",
    "del",
    "della",
    "nel",
    "nella",
    "in",
    "calendario",
    "prossimi",
    "prossime",
    "primi",
    "prime",
)
EVENT_NOUN_PATTERN = re.compile(
    r"(?<![\w'])(?:l'|gli\s+|le\s+|i\s+)?(?:appuntament[oi]|event[oi]|riunion[ei]|incontr[oi]|impegn[oi]|meeting|promemoria)\b",
    re.IGNORECASE,
)


def word_pattern(words: Iterable[str]) -> Pattern[str]:
    """Compile a whole-word alternation, longest words first."""

    ordered = sorted({word.lower() for word in words}, key=len, reverse=True)
    alternation = "|".join(re.escape(word).replace(r"\ ", r"\s+") for word in ordered)
    return re.compile(rf"(?<![\w'])(?:{alternation})(?![\w])", re.IGNORECASE)


INTENT_PATTERNS: Dict[str, Pattern[str]] = {
    intent: word_pattern(words) for intent, words in INTENT_KEYWORDS.items()
}
INTERROGATIVE_PATTERN = word_pattern(INTERROGATIVES)


def classify_intent(text: str) -> Optional[str]:
    """Return the first keyword family that matches, ``query`` for questions."""

    for intent, pattern in INTENT_PATTERNS.items():
        if pattern.search(text or ""):
            return intent
    stripped = (text or "").strip()
    if INTERROGATIVE_PATTERN.search(stripped) or stripped.endswith("?"):
        return "query"
    return None


def remove_first_keyword(text: str, intent: Optional[str]) -> str:
    pattern = INTENT_PATTERNS.get(intent or "")
    if pattern is None:
        return text
    return pattern.sub(" ", text, count=1).strip()


__all__ = [
    "INTENT_KEYWORDS",
    "INTERROGATIVES",
    "LISTING_VERBS",
    "EVENT_NOUN_STEMS",
    "GENERIC_EVENT_NOUNS",
    "STRUCTURAL_WORDS",
    "BULK_QUALIFIERS",
    "PERIOD_WORDS",
    "QUERY_FILLERS",
    "EVENT_NOUN_PATTERN",
    "INTENT_PATTERNS",
    "INTERROGATIVE_PATTERN",
    "word_pattern",
    "classify_intent",
    "remove_first_keyword",
]
