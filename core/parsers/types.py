"""Shared types for the two command extractors."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from core.command_schema import CommandSchema


class CommandParser(Protocol):
    """Capability set every extractor implements."""

    method: str

    def parse(self, text: str, reference: Optional[datetime] = None) -> CommandSchema:
        ...

    def confidence(self, text: str, reference: Optional[datetime] = None) -> float:
        ...

    def can_handle(self, text: str) -> bool:
        ...


@dataclass(frozen=True)
class ParserChoice:
    parser: CommandParser
    method: str


__all__ = ["CommandParser", "ParserChoice"]
