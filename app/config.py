"""Centralize defaults and environment lookups for the command parser."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Mapping

from dotenv import load_dotenv

from core.command_schema import DEFAULT_TIME_ZONE
from core.gemini_client import DEFAULT_GEMINI_ENDPOINT, DEFAULT_TIMEOUT_SECONDS
from core.parser_config import DEFAULT_PARSER_CONFIG_PATH
from core.parser_selector import DEFAULT_CONFIDENCE_THRESHOLD, LLMSettings, SelectorConfig
from tools.calendar_store import DEFAULT_STORE_PATH

load_dotenv()

# ---------------------------------------------------------------------------
# Default configuration values
# ---------------------------------------------------------------------------
_DEFAULT_LLM_TEMPERATURE = 0.1
_DEFAULT_LLM_MAX_OUTPUT_TOKENS = 1024
_DEFAULT_USE_REGEX_ONLY = False
_DEFAULT_USE_REGEX_FALLBACK = True
_DEFAULT_PREFER_REGEX = False
_DEFAULT_LOGGING_ENABLED = True
_DEFAULT_LOG_REDACTION_ENABLED = True
_DEFAULT_LOG_DIR = "logs"
_PARSE_LOG_FILENAME = "parses.jsonl"
_DEFAULT_LOG_REDACTION_PATTERNS = "email,phone,url"
_DEFAULT_LOG_MAX_BYTES = 1_000_000
_DEFAULT_LOG_BACKUP_COUNT = 5
_DEFAULT_LOG_LEVEL = "WARNING"
_DEFAULT_WEB_UI_HOST = "127.0.0.1"
_DEFAULT_WEB_UI_PORT = 9000
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _source(env: Mapping[str, str] | None) -> Mapping[str, str]:
    return env if env is not None else os.environ


def _read_bool(env: Mapping[str, str] | None, name: str, default: bool) -> bool:
    raw = _source(env).get(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in _FALSE:
        return False
    if normalized in _TRUE:
        return True
    return default


def _read_float(env: Mapping[str, str] | None, name: str, default: float, low: float, high: float) -> float:
    raw = _source(env).get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return min(max(value, low), high)


def _read_int(env: Mapping[str, str] | None, name: str, default: int, low: int = 0) -> int:
    raw = _source(env).get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(value, low)


# ---------------------------------------------------------------------------
# Generative backend
# ---------------------------------------------------------------------------
def get_gemini_api_key(env: Dict[str, str] | None = None) -> str | None:
    """Return the Gemini API key, or ``None`` when the model parser is disabled.

    Args:
        env: Optional mapping used instead of ``os.environ`` to simplify testing.
    """

    value = _source(env).get("GEMINI_API_KEY", "").strip()
    return value or None


def get_gemini_endpoint(env: Dict[str, str] | None = None) -> str:
    return _source(env).get("GEMINI_ENDPOINT", "").strip() or DEFAULT_GEMINI_ENDPOINT


def get_llm_temperature(env: Dict[str, str] | None = None) -> float:
    return _read_float(env, "LLM_TEMPERATURE", _DEFAULT_LLM_TEMPERATURE, 0.0, 2.0)


def get_llm_max_output_tokens(env: Dict[str, str] | None = None) -> int:
    return _read_int(env, "LLM_MAX_OUTPUT_TOKENS", _DEFAULT_LLM_MAX_OUTPUT_TOKENS, low=1)


def get_llm_timeout(env: Dict[str, str] | None = None) -> float:
    """Seconds before a model request is abandoned and the fallback kicks in."""

    return _read_float(env, "LLM_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS, 1.0, 120.0)


# ---------------------------------------------------------------------------
# Parser selection
# ---------------------------------------------------------------------------
def use_regex_only(env: Dict[str, str] | None = None) -> bool:
    return _read_bool(env, "USE_REGEX_ONLY", _DEFAULT_USE_REGEX_ONLY)


def use_regex_fallback(env: Dict[str, str] | None = None) -> bool:
    return _read_bool(env, "USE_REGEX_FALLBACK", _DEFAULT_USE_REGEX_FALLBACK)


def prefer_regex(env: Dict[str, str] | None = None) -> bool:
    return _read_bool(env, "PREFER_REGEX", _DEFAULT_PREFER_REGEX)


def get_confidence_threshold(env: Dict[str, str] | None = None) -> float:
    """Return the pattern-parser confidence needed to skip the model (0..1)."""

    return _read_float(env, "CONFIDENCE_THRESHOLD", DEFAULT_CONFIDENCE_THRESHOLD, 0.0, 1.0)


def get_parser_config_path(env: Dict[str, str] | None = None) -> Path:
    override = _source(env).get("PARSER_CONFIG_PATH")
    return Path(override) if override else DEFAULT_PARSER_CONFIG_PATH


def get_selector_config(env: Dict[str, str] | None = None) -> SelectorConfig:
    """Assemble the selector snapshot from the individual settings above."""

    return SelectorConfig(
        use_regex_only=use_regex_only(env),
        use_regex_fallback=use_regex_fallback(env),
        prefer_regex=prefer_regex(env),
        confidence_threshold=get_confidence_threshold(env),
        llm=LLMSettings(
            api_key=get_gemini_api_key(env),
            endpoint=get_gemini_endpoint(env),
            temperature=get_llm_temperature(env),
            max_output_tokens=get_llm_max_output_tokens(env),
            timeout=get_llm_timeout(env),
        ),
    )


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------
def get_calendar_time_zone(env: Dict[str, str] | None = None) -> str:
    return _source(env).get("CALENDAR_TIME_ZONE", "").strip() or DEFAULT_TIME_ZONE


def get_calendar_store_path(env: Dict[str, str] | None = None) -> Path:
    override = _source(env).get("CALENDAR_STORE_PATH")
    return Path(override) if override else DEFAULT_STORE_PATH


def get_calendar_access_token(env: Dict[str, str] | None = None) -> str | None:
    """Return the token guarding the local calendar store, if one is configured."""

    value = _source(env).get("CALENDAR_ACCESS_TOKEN", "").strip()
    return value or None


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
def is_logging_enabled(env: Dict[str, str] | None = None) -> bool:
    """Determine whether the JSONL parse log is written."""

    return _read_bool(env, "LOGGING_ENABLED", _DEFAULT_LOGGING_ENABLED)


def get_log_dir(env: Dict[str, str] | None = None) -> Path:
    override = _source(env).get("LOG_DIR")
    return Path(override) if override else Path(_DEFAULT_LOG_DIR)


def get_parse_log_path(env: Dict[str, str] | None = None) -> Path:
    return get_log_dir(env) / _PARSE_LOG_FILENAME


def is_log_redaction_enabled(env: Dict[str, str] | None = None) -> bool:
    """Determine whether e-mails, phone numbers and URLs are scrubbed before logging."""

    return _read_bool(env, "LOG_REDACTION_ENABLED", _DEFAULT_LOG_REDACTION_ENABLED)


def get_log_redaction_patterns(env: Dict[str, str] | None = None) -> List[str]:
    raw = _source(env).get("LOG_REDACTION_PATTERNS")
    values = raw if raw is not None else _DEFAULT_LOG_REDACTION_PATTERNS
    return [segment.strip().lower() for segment in values.split(",") if segment.strip()]


def get_log_max_bytes(env: Dict[str, str] | None = None) -> int:
    return _read_int(env, "LOG_MAX_BYTES", _DEFAULT_LOG_MAX_BYTES)


def get_log_backup_count(env: Dict[str, str] | None = None) -> int:
    return _read_int(env, "LOG_BACKUP_COUNT", _DEFAULT_LOG_BACKUP_COUNT)


def get_log_level(env: Dict[str, str] | None = None) -> str:
    raw = _source(env).get("LOG_LEVEL", "").strip().upper()
    return raw if raw in _LOG_LEVELS else _DEFAULT_LOG_LEVEL


# ---------------------------------------------------------------------------
# Web UI
# ---------------------------------------------------------------------------
def get_web_ui_host(env: Dict[str, str] | None = None) -> str:
    return _source(env).get("WEB_UI_HOST", _DEFAULT_WEB_UI_HOST)


def get_web_ui_port(env: Dict[str, str] | None = None) -> int:
    raw = _source(env).get("WEB_UI_PORT")
    if raw is None:
        return _DEFAULT_WEB_UI_PORT
    try:
        value = int(raw)
    except ValueError:
        return _DEFAULT_WEB_UI_PORT
    return value if 0 < value <= 65535 else _DEFAULT_WEB_UI_PORT
