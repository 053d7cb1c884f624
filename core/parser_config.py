"""Parser configuration: title patterns, defaults and prompt examples.

The configuration file is JSON (or YAML when the suffix says so) with the
camelCase keys used by the prompt builder::

    {"includeEventTypeInTitle": false, "defaultDuration": 60, "defaultLimit": 10,
     "exampleCommands": [...], "temporalExpressions": {...},
     "titlePatterns": {"namedEvent": [...], "reminder": [...], "generic": [...]}}

A missing or malformed file never breaks parsing: ``load_parser_config``
logs a warning and returns ``DEFAULT_PARSER_CONFIG``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

import yaml

from core.command_schema import DEFAULT_DURATION_MINUTES, DEFAULT_LIMIT

logger = logging.getLogger(__name__)

DEFAULT_PARSER_CONFIG_PATH = Path("config/calendar_parser.json")
TITLE_PATTERN_GROUPS = ("namedEvent", "reminder", "generic")

# Lookahead shared by the default title patterns: stop before a temporal cue,
# punctuation or the end of the text.
TITLE_TAIL = (
    r"(?=\s+(?:per|alle|all'|ore|dalle|entro|tra|fra|ogni|oggi|domani|dopodomani|stasera|stamattina|"
    r"stanotte|stamani|questa|questo|prossim[oa]|il\s+\d+|l'altro|luned[iì]|marted[iì]|mercoled[iì]|"
    r"gioved[iì]|venerd[iì]|sabato|domenica|\d+)\b|\s*[,.;!?]|\s*$)"
)

_DEFAULT_EXAMPLES: Tuple[str, ...] = (
    'Comando: "Crea un evento chiamato riunione di team per domani alle 10"\n'
    'Output: {"intent": "create", "confidence": 0.95, "eventData": {"title": "riunione di team", '
    '"description": null, "location": null, "participants": []}, "timeData": {"startDate": "2025-03-10", '
    '"startTime": "10:00", "endDate": "2025-03-10", "endTime": "11:00", "duration": 60, "recurrence": null}}',
    'Comando: "Mostra gli appuntamenti di oggi"\n'
    'Output: {"intent": "read", "confidence": 0.98, "eventData": {"title": null, "description": null, '
    '"location": null, "participants": []}, "timeData": {"startDate": null, "startTime": null, "endDate": null, '
    '"endTime": null, "duration": null, "recurrence": null}, "queryData": {"timeRange": {"start": '
    '"2025-03-09T00:00:00", "end": "2025-03-09T23:59:59"}, "searchTerm": null, "filterType": "appuntamenti", '
    '"limit": 10}}',
)
_DEFAULT_TEMPORAL: Dict[str, str] = {
    "oggi": "data corrente",
    "domani": "data corrente + 1 giorno",
    "dopodomani": "data corrente + 2 giorni",
}
_DEFAULT_TITLE_PATTERNS: Dict[str, Tuple[str, ...]] = {
    "namedEvent": (
        r"(?:chiamat[oa]|intitolat[oa]|denominat[oa]|dal\s+nome|di\s+nome)\s+[\"'“«]?(.+?)[\"'”»]?" + TITLE_TAIL,
    ),
    "reminder": (
        r"\bricordami\s+(?:di\s+)?(.+?)" + TITLE_TAIL,
    ),
    "generic": (
        r"^\s*(?:crea|aggiungi|pianifica|programma|organizza|fissa|inserisci|metti|segna|nuov[oa])\s+"
        r"(?:un[oa]?\s+|un'|l'|lo\s+|la\s+|il\s+)?(.+?)" + TITLE_TAIL,
    ),
}


@dataclass(frozen=True)
class ParserConfig:
    """Immutable configuration snapshot shared by extractors and the prompt builder."""

    include_event_type_in_title: bool = False
    default_duration: int = DEFAULT_DURATION_MINUTES
    default_limit: int = DEFAULT_LIMIT
    example_commands: Tuple[str, ...] = _DEFAULT_EXAMPLES
    temporal_expressions: Mapping[str, str] = field(default_factory=lambda: dict(_DEFAULT_TEMPORAL))
    title_patterns: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: dict(_DEFAULT_TITLE_PATTERNS))

    def with_overrides(self, **changes: Any) -> "ParserConfig":
        """Return a new snapshot; the current one is left untouched."""

        return replace(self, **changes)

    def patterns_for(self, group: str) -> Tuple[str, ...]:
        return tuple(self.title_patterns.get(group, ()))


DEFAULT_PARSER_CONFIG = ParserConfig()


def load_parser_config(path: Path | str | None = None) -> ParserConfig:
    """Load the parser configuration, falling back to the built-in defaults."""

    target = Path(path) if path else DEFAULT_PARSER_CONFIG_PATH
    if not target.exists():
        logger.warning("Parser configuration %s not found, using defaults", target)
        return DEFAULT_PARSER_CONFIG
    try:
        raw = target.read_text(encoding="utf-8")
        data = _parse_document(raw, target)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.warning("Parser configuration %s unreadable (%s), using defaults", target, exc)
        return DEFAULT_PARSER_CONFIG
    return parser_config_from_mapping(data)


def parser_config_from_mapping(data: Mapping[str, Any]) -> ParserConfig:
    """Merge a camelCase mapping over the defaults and sanitise every value."""

    defaults = DEFAULT_PARSER_CONFIG
    include = data.get("includeEventTypeInTitle", defaults.include_event_type_in_title)
    duration = _positive_int(data.get("defaultDuration"), defaults.default_duration, "defaultDuration")
    limit = _positive_int(data.get("defaultLimit"), defaults.default_limit, "defaultLimit")

    examples = data.get("exampleCommands")
    if isinstance(examples, list):
        example_commands = tuple(str(item) for item in examples if str(item).strip())
    else:
        example_commands = defaults.example_commands

    temporal = data.get("temporalExpressions")
    if isinstance(temporal, dict):
        temporal_expressions = {str(key): str(value) for key, value in temporal.items()}
    else:
        temporal_expressions = dict(defaults.temporal_expressions)

    title_patterns = dict(defaults.title_patterns)
    provided = data.get("titlePatterns")
    if isinstance(provided, dict):
        for group in TITLE_PATTERN_GROUPS:
            if group in provided:
                compiled = _valid_patterns(provided[group], group)
                if compiled:
                    title_patterns[group] = compiled

    return ParserConfig(
        include_event_type_in_title=bool(include),
        default_duration=duration,
        default_limit=limit,
        example_commands=example_commands,
        temporal_expressions=temporal_expressions,
        title_patterns=title_patterns,
    )


def _parse_document(raw: str, source: Path) -> Dict[str, Any]:
    if source.suffix.lower() in {".yml", ".yaml"}:
        data = yaml.safe_load(raw)
    else:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON in {source}: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Parser configuration {source} must be a mapping at the top level.")
    return data


def _positive_int(value: Any, default: int, name: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        logger.warning("Invalid %s (%r), falling back to %s", name, value, default)
        return default
    return value


def _valid_patterns(values: Any, group: str) -> Tuple[str, ...]:
    if not isinstance(values, list):
        return ()
    kept = []
    for value in values:
        if not isinstance(value, str) or not value.strip():
            continue
        try:
            re.compile(value, re.IGNORECASE)
        except re.error as exc:
            logger.warning("Dropping invalid %s title pattern %r: %s", group, value, exc)
            continue
        kept.append(value)
    return tuple(kept)


__all__ = [
    "ParserConfig",
    "DEFAULT_PARSER_CONFIG",
    "DEFAULT_PARSER_CONFIG_PATH",
    "TITLE_PATTERN_GROUPS",
    "TITLE_TAIL",
    "load_parser_config",
    "parser_config_from_mapping",
]
