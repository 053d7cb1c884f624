"""Calendar execution tools: the store collaborator and the command executor."""

from __future__ import annotations

from tools import calendar_edit_tool, calendar_store

__all__ = ["calendar_edit_tool", "calendar_store"]
