"""Named extraction rules evaluated in a fixed priority order."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Match, Optional, Pattern, Tuple, Union


@dataclass(frozen=True)
class ExtractionRule:
    """A regex rule with a name, a priority and an optional post-match cleanup.

    Lower priorities run first.  ``group`` selects the captured value; use
    ``0`` for the whole match.
    """

    name: str
    pattern: Pattern[str]
    priority: int = 100
    group: Union[int, str] = 1
    cleanup: Optional[Callable[[str], str]] = None

    @classmethod
    def compile(
        cls,
        name: str,
        pattern: str,
        *,
        priority: int = 100,
        group: Union[int, str] = 1,
        cleanup: Optional[Callable[[str], str]] = None,
        flags: int = re.IGNORECASE,
    ) -> "ExtractionRule":
        return cls(name=name, pattern=re.compile(pattern, flags), priority=priority, group=group, cleanup=cleanup)

    def search(self, text: str) -> Optional["RuleMatch"]:
        match = self.pattern.search(text or "")
        if match is None:
            return None
        return RuleMatch(rule=self, match=match, value=self._value(match))

    def finditer(self, text: str) -> List["RuleMatch"]:
        return [RuleMatch(rule=self, match=match, value=self._value(match)) for match in self.pattern.finditer(text or "")]

    def _value(self, match: Match[str]) -> str:
        try:
            raw = match.group(self.group)
        except IndexError:
            raw = match.group(0)
        value = (raw or "").strip()
        if self.cleanup is not None:
            value = self.cleanup(value)
        return value


@dataclass(frozen=True)
class RuleMatch:
    rule: ExtractionRule
    match: Match[str]
    value: str

    @property
    def name(self) -> str:
        return self.rule.name

    @property
    def span(self) -> Tuple[int, int]:
        return self.match.span()


def ordered(rules: Iterable[ExtractionRule]) -> List[ExtractionRule]:
    """Sort rules by priority while keeping declaration order for ties."""

    return sorted(rules, key=lambda rule: rule.priority)


def first_match(rules: Iterable[ExtractionRule], text: str, *, require_value: bool = False) -> Optional[RuleMatch]:
    """Return the first rule hit in priority order.

    With ``require_value`` a rule whose cleaned value is empty does not count,
    so the next rule gets a chance.
    """

    for rule in ordered(rules):
        found = rule.search(text)
        if found is None:
            continue
        if require_value and not found.value:
            continue
        return found
    return None


def all_matches(rules: Iterable[ExtractionRule], text: str) -> List[RuleMatch]:
    hits: List[RuleMatch] = []
    for rule in ordered(rules):
        hits.extend(rule.finditer(text))
    return hits


def remove_spans(text: str, spans: Iterable[Tuple[int, int]]) -> str:
    """Blank out the given spans and collapse the leftover whitespace."""

    chars = list(text)
    for start, end in spans:
        for index in range(start, min(end, len(chars))):
            chars[index] = " "
    return re.sub(r"\s{2,}", " ", "".join(chars)).strip()


__all__ = ["ExtractionRule", "RuleMatch", "ordered", "first_match", "all_matches", "remove_spans"]
