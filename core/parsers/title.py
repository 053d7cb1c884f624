"""Event title extraction rules shared by both extractors.

Title rules come from ``ParserConfig.title_patterns`` and run in three
groups: ``namedEvent`` ("chiamato X"), ``reminder`` ("ricordami di X") and
``generic`` (verb + object).  Each hit goes through the same cleanup so the
pattern parser and the model corrections produce identical titles.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from core.parser_config import DEFAULT_PARSER_CONFIG, TITLE_PATTERN_GROUPS, ParserConfig
from core.parser_utils.datetime import strip_temporal
from core.parser_utils.rules import ExtractionRule, first_match
from core.parser_utils.text import (
    first_words,
    strip_leading_articles,
    strip_leading_prepositions,
    strip_quotes,
    trim_punctuation,
)
from core.parsers.lexicon import GENERIC_EVENT_NOUNS, STRUCTURAL_WORDS, remove_first_keyword, word_pattern

MAX_LEFTOVER_WORDS = 5

_GENERIC_NOUN_PREFIX = re.compile(
    rf"^(?:{'|'.join(GENERIC_EVENT_NOUNS)})\s+", re.IGNORECASE
)
_TRAILING_CONNECTORS = re.compile(
    r"(?:\s+(?:a|al|alla|allo|ai|di|del|della|da|dal|dalla|per|con|il|la|lo|le|i|gli|e|in|su|tra|fra|entro))+$",
    re.IGNORECASE,
)
_STRUCTURAL_PATTERN = word_pattern(STRUCTURAL_WORDS)


@dataclass(frozen=True)
class TitleHit:
    title: str
    group: str


class TitleExtractor:
    """Apply configured title rules in group order and clean the result."""

    def __init__(self, config: ParserConfig = DEFAULT_PARSER_CONFIG) -> None:
        self._include_event_type = config.include_event_type_in_title
        self._rules: Dict[str, Tuple[ExtractionRule, ...]] = {
            group: tuple(
                ExtractionRule.compile(f"{group}:{index}", pattern, priority=index)
                for index, pattern in enumerate(config.patterns_for(group))
            )
            for group in TITLE_PATTERN_GROUPS
        }

    @property
    def include_event_type(self) -> bool:
        return self._include_event_type

    def extract(self, text: str) -> Optional[TitleHit]:
        """Return the first non-empty title from named, reminder, then generic rules."""

        for group in TITLE_PATTERN_GROUPS:
            found = first_match(self._rules[group], text, require_value=True)
            if found is None:
                continue
            title = self.clean(found.value, strip_event_nouns=(group == "generic"))
            if not title:
                continue
            if group == "reminder" and self._include_event_type:
                title = f"ricordami di {title}"
            return TitleHit(title=title, group=group)
        return None

    def leftover(self, text: str, intent: Optional[str]) -> Optional[str]:
        """Fallback title: first words left once the intent verb is removed."""

        remaining = remove_first_keyword(text, intent)
        remaining = self.clean(remaining, strip_event_nouns=True)
        remaining = strip_leading_prepositions(remaining)
        remaining = strip_leading_articles(remaining)
        title = trim_punctuation(first_words(remaining, MAX_LEFTOVER_WORDS))
        title = _TRAILING_CONNECTORS.sub("", title).strip()
        return title or None

    def clean(self, value: str, *, strip_event_nouns: bool = True) -> str:
        """Strip quotes, articles, temporal tails and (optionally) generic nouns.

        Generic nouns are only removed when the configuration excludes them
        and more words follow, so "riunione" alone survives.
        """

        title = strip_quotes(value)
        title = strip_leading_articles(title)
        title = strip_temporal(title)
        title = trim_punctuation(title)
        title = _TRAILING_CONNECTORS.sub("", title).strip()
        if strip_event_nouns and not self._include_event_type:
            shortened = _GENERIC_NOUN_PREFIX.sub("", title, count=1).strip()
            if shortened and shortened != title:
                title = strip_leading_articles(shortened)
        return strip_quotes(title)


def has_structural_words(title: Optional[str]) -> bool:
    """True when a title leaked words like "chiamato" or "intitolato"."""

    return bool(title) and bool(_STRUCTURAL_PATTERN.search(title or ""))


__all__ = ["TitleExtractor", "TitleHit", "MAX_LEFTOVER_WORDS", "has_structural_words"]
