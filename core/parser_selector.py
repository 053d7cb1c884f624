"""Choose between the pattern parser and the model parser for each command.

WHAT: ``ParserSelector`` owns one pattern parser and one model parser built
from an immutable configuration snapshot and routes every command to one of
them, falling back to the pattern parser when the model result is unusable.
WHY: the model is optional (no API key, offline runs) and fallible; callers
should not care which strategy produced the schema.
HOW: ``select_parser`` compares the two confidences against the threshold;
``parse`` runs the choice and applies the fallback policy; ``update_config``
builds a new snapshot instead of mutating the current one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

from core.command_schema import CommandSchema, empty_schema
from core.gemini_client import DEFAULT_GEMINI_ENDPOINT, DEFAULT_TIMEOUT_SECONDS, GeminiClient
from core.parser_config import DEFAULT_PARSER_CONFIG, ParserConfig
from core.parsers.model_parser import ModelParser, TextGenerator
from core.parsers.pattern_parser import PatternParser
from core.parsers.types import ParserChoice

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.6

# camelCase aliases accepted by ``update_config`` (web API and config files).
_SELECTOR_ALIASES = {
    "useRegexOnly": "use_regex_only",
    "useRegexFallback": "use_regex_fallback",
    "preferRegex": "prefer_regex",
    "confidenceThreshold": "confidence_threshold",
}
_LLM_ALIASES = {
    "apiKey": "api_key",
    "maxTokens": "max_output_tokens",
    "maxOutputTokens": "max_output_tokens",
    "topP": "top_p",
    "topK": "top_k",
}


@dataclass(frozen=True)
class LLMSettings:
    api_key: Optional[str] = None
    endpoint: str = DEFAULT_GEMINI_ENDPOINT
    temperature: float = 0.1
    top_p: float = 0.9
    top_k: int = 40
    max_output_tokens: int = 1024
    timeout: float = DEFAULT_TIMEOUT_SECONDS

    @property
    def configured(self) -> bool:
        return bool((self.api_key or "").strip())


@dataclass(frozen=True)
class SelectorConfig:
    use_regex_only: bool = False
    use_regex_fallback: bool = True
    prefer_regex: bool = False
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    llm: LLMSettings = field(default_factory=LLMSettings)


ClientFactory = Callable[[LLMSettings], TextGenerator]


def gemini_client_from_settings(settings: LLMSettings) -> GeminiClient:
    return GeminiClient(
        settings.api_key,
        settings.endpoint,
        temperature=settings.temperature,
        top_p=settings.top_p,
        top_k=settings.top_k,
        max_output_tokens=settings.max_output_tokens,
        timeout=settings.timeout,
    )


@dataclass(frozen=True)
class _Snapshot:
    config: SelectorConfig
    parser_config: ParserConfig
    pattern: PatternParser
    model: ModelParser


class ParserSelector:
    """Strategy choice over the two parsers plus the fallback policy."""

    def __init__(
        self,
        parser_config: ParserConfig = DEFAULT_PARSER_CONFIG,
        selector_config: Optional[SelectorConfig] = None,
        client_factory: ClientFactory = gemini_client_from_settings,
    ) -> None:
        self._client_factory = client_factory
        self._snapshot = self._build(selector_config or SelectorConfig(), parser_config)

    def _build(self, config: SelectorConfig, parser_config: ParserConfig) -> _Snapshot:
        client = self._client_factory(config.llm) if config.llm.configured else None
        return _Snapshot(
            config=config,
            parser_config=parser_config,
            pattern=PatternParser(parser_config),
            model=ModelParser(client, parser_config),
        )

    # -- read-only views -------------------------------------------------------
    @property
    def config(self) -> SelectorConfig:
        return self._snapshot.config

    @property
    def parser_config(self) -> ParserConfig:
        return self._snapshot.parser_config

    @property
    def pattern_parser(self) -> PatternParser:
        return self._snapshot.pattern

    @property
    def model_parser(self) -> ModelParser:
        return self._snapshot.model

    @property
    def llm_configured(self) -> bool:
        snapshot = self._snapshot
        return snapshot.model.is_configured and not snapshot.config.use_regex_only

    # -- selection -------------------------------------------------------------
    def select_parser(self, text: str, reference: Optional[datetime] = None) -> ParserChoice:
        snapshot = self._snapshot
        return self._select(snapshot, text, reference)

    def _select(self, snapshot: _Snapshot, text: str, reference: Optional[datetime]) -> ParserChoice:
        config = snapshot.config
        if config.use_regex_only or not snapshot.model.is_configured:
            return ParserChoice(parser=snapshot.pattern, method=snapshot.pattern.method)

        regex_confidence = snapshot.pattern.confidence(text, reference)
        model_confidence = snapshot.model.confidence(text, reference)
        if regex_confidence >= config.confidence_threshold and (
            regex_confidence >= model_confidence or config.prefer_regex
        ):
            logger.debug("Selected pattern parser (%.2f vs %.2f)", regex_confidence, model_confidence)
            return ParserChoice(parser=snapshot.pattern, method=snapshot.pattern.method)
        logger.debug("Selected model parser (%.2f vs %.2f)", regex_confidence, model_confidence)
        return ParserChoice(parser=snapshot.model, method=snapshot.model.method)

    def parse(self, text: str, reference: Optional[datetime] = None) -> CommandSchema:
        """Parse ``text`` with the selected parser, falling back when needed."""

        snapshot = self._snapshot
        reference = reference or datetime.now()
        choice = self._select(snapshot, text, reference)
        if choice.method == snapshot.pattern.method:
            return snapshot.pattern.parse(text, reference)

        try:
            result: Optional[CommandSchema] = choice.parser.parse(text, reference)
            error = None
        except Exception as exc:
            logger.warning("Model parser raised: %s", exc)
            result, error = None, exc

        usable = result is not None and bool(result.intent) and result.is_valid
        if usable or not snapshot.config.use_regex_fallback:
            if result is None:
                return empty_schema(text, choice.method, ambiguities=[f"Errore durante il parsing: {error}"])
            return result

        fallback = snapshot.pattern.parse(text, reference)
        if result is None or fallback.intent:
            logger.info("Falling back to the pattern parser for %r", text)
            return fallback
        return result

    # -- configuration ---------------------------------------------------------
    def update_config(self, partial: Mapping[str, Any]) -> SelectorConfig:
        """Merge ``partial`` into a new snapshot and return the new selector config.

        Flat keys (snake_case or camelCase) update the selector flags; a nested
        ``llm`` mapping updates the backend settings.  Unknown keys are ignored.
        """

        current = self._snapshot
        changes = _known_fields(SelectorConfig, partial, _SELECTOR_ALIASES)
        changes.pop("llm", None)
        llm_changes = _known_fields(LLMSettings, partial.get("llm") or {}, _LLM_ALIASES)
        config = replace(current.config, **changes, llm=replace(current.config.llm, **llm_changes))
        self._snapshot = self._build(config, current.parser_config)
        logger.info("Selector configuration updated: %s", sorted(changes) + [f"llm.{k}" for k in sorted(llm_changes)])
        return config

    def update_parser_config(self, parser_config: ParserConfig) -> None:
        self._snapshot = self._build(self._snapshot.config, parser_config)

    def status(self) -> Dict[str, Any]:
        snapshot = self._snapshot
        config = snapshot.config
        return {
            "useRegexOnly": config.use_regex_only,
            "useRegexFallback": config.use_regex_fallback,
            "preferRegex": config.prefer_regex,
            "confidenceThreshold": config.confidence_threshold,
            "isLLMConfigured": self.llm_configured,
            "llmApiConfigured": config.llm.configured,
            "llm": {
                "endpoint": config.llm.endpoint,
                "temperature": config.llm.temperature,
                "maxOutputTokens": config.llm.max_output_tokens,
                "timeout": config.llm.timeout,
            },
        }


def _known_fields(cls: type, values: Mapping[str, Any], aliases: Mapping[str, str]) -> Dict[str, Any]:
    names = {item.name for item in fields(cls)}
    result: Dict[str, Any] = {}
    for key, value in (values or {}).items():
        name = aliases.get(key, key)
        if name in names:
            result[name] = value
    return result


__all__ = [
    "ClientFactory",
    "DEFAULT_CONFIDENCE_THRESHOLD",
    "LLMSettings",
    "ParserSelector",
    "SelectorConfig",
    "gemini_client_from_settings",
]
