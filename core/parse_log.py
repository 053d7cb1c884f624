"""JSONL audit trail for parsed commands.

Each call to ``ParserService.parse_command`` can append one ``ParseRecord``
to a newline-delimited JSON file.  Command texts routinely carry names,
e-mail addresses and phone numbers, so string fields are scrubbed before
they reach disk and the file is rotated once it grows past ``max_bytes``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)

REDACTION_PATTERNS: Dict[str, Pattern[str]] = {
    "email": re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE),
    # Nine digits minimum so ISO dates in the logged schema survive.
    "phone": re.compile(r"(?<![\w+])(?:\+\d{1,3}[\s.-]?)?\d(?:[\s.-]?\d){8,12}(?!\d)"),
    "url": re.compile(r"https?://[^\s]+", re.IGNORECASE),
}
# URLs can contain e-mail-like fragments, phone-like digit runs can contain neither.
_PATTERN_ORDER: Dict[str, int] = {"url": 0, "email": 1, "phone": 2}
_SCRUBBED_FIELDS = {"raw_text", "schema", "errors", "ambiguities"}


def _utc_now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


@dataclass
class ParseRecord:
    """One parsed command as written to the audit log."""

    timestamp: str
    raw_text: str
    method: str
    intent: Optional[str]
    confidence: float
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    ambiguities: List[str] = field(default_factory=list)
    missing_info: List[str] = field(default_factory=list)
    latency_ms: Optional[int] = None
    schema: Optional[Dict[str, Any]] = None

    @classmethod
    def new(
        cls,
        *,
        raw_text: str,
        method: str,
        intent: Optional[str],
        confidence: float,
        is_valid: bool,
        errors: Iterable[str] = (),
        ambiguities: Iterable[str] = (),
        missing_info: Iterable[str] = (),
        latency_ms: Optional[int] = None,
        schema: Optional[Dict[str, Any]] = None,
    ) -> "ParseRecord":
        return cls(
            timestamp=_utc_now(),
            raw_text=raw_text,
            method=method,
            intent=intent,
            confidence=confidence,
            is_valid=is_valid,
            errors=list(errors),
            ambiguities=list(ambiguities),
            missing_info=list(missing_info),
            latency_ms=latency_ms,
            schema=schema,
        )


class ParseLogger:
    """WHAT: append ``ParseRecord`` rows to a JSONL file.

    WHY: parse decisions (which strategy, which fallback, which gaps) must be
    reviewable after the fact without keeping personal data around.
    HOW: scrub the text-bearing fields with the selected regexes, rotate to
    numbered backups when the size limit would be exceeded, then append.
    """

    def __init__(
        self,
        log_path: Path,
        *,
        enabled: bool = True,
        redact: bool = True,
        patterns: Iterable[str] | None = None,
        max_bytes: int = 0,
        backup_count: int = 0,
    ) -> None:
        self._path = Path(log_path)
        self._enabled = enabled
        self._redact = redact
        self._max_bytes = max_bytes
        self._backup_count = backup_count
        selected = tuple(patterns) if patterns else tuple(REDACTION_PATTERNS)
        self._patterns: List[Tuple[str, Pattern[str]]] = sorted(
            ((name, REDACTION_PATTERNS[name]) for name in selected if name in REDACTION_PATTERNS),
            key=lambda item: _PATTERN_ORDER.get(item[0], 10),
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def path(self) -> Path:
        return self._path

    def log(self, record: ParseRecord) -> None:
        if not self._enabled:
            return
        payload = self._prepare(asdict(record))
        line = json.dumps(payload, ensure_ascii=False)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._rotate_if_needed(len(line.encode("utf-8")) + 1)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(line)
            handle.write("\n")

    def _prepare(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self._redact or not self._patterns:
            return payload
        return {
            key: self._scrub(value) if key in _SCRUBBED_FIELDS else value
            for key, value in payload.items()
        }

    def _scrub(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {key: self._scrub(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self._scrub(item) for item in value]
        if isinstance(value, str):
            for name, pattern in self._patterns:
                value = pattern.sub(f"[REDACTED_{name.upper()}]", value)
        return value

    def _rotate_if_needed(self, incoming_bytes: int) -> None:
        """Keep the log under ``max_bytes`` by shifting ``.1``..``.N`` backups."""

        if self._max_bytes <= 0 or not self._path.exists():
            return
        if self._path.stat().st_size + incoming_bytes <= self._max_bytes:
            return
        if self._backup_count <= 0:
            self._path.unlink()
            return

        for index in range(self._backup_count - 1, 0, -1):
            source = Path(f"{self._path}.{index}")
            if source.exists():
                source.replace(Path(f"{self._path}.{index + 1}"))
        logger.debug("Rotating parse log %s", self._path)
        self._path.replace(Path(f"{self._path}.1"))


__all__ = ["ParseLogger", "ParseRecord", "REDACTION_PATTERNS"]
