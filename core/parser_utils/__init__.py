"""Shared helper utilities for command parsing."""

from .rules import ExtractionRule, RuleMatch, all_matches, first_match
from .text import contains_keyword, extract_json_object, parse_json_object, repair_json
from .datetime import find_date, find_duration, find_recurrence, find_time, strip_temporal

__all__ = [
    "ExtractionRule",
    "RuleMatch",
    "all_matches",
    "first_match",
    "contains_keyword",
    "extract_json_object",
    "parse_json_object",
    "repair_json",
    "find_date",
    "find_duration",
    "find_recurrence",
    "find_time",
    "strip_temporal",
]
