"""FastAPI application exposing the command parser over HTTP."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from app.main import build_parser_service
from core.parser_service import ParserService

logger = logging.getLogger(__name__)

MAX_COMMAND_LENGTH = 500


class ParseRequest(BaseModel):
    text: str
    legacy: bool = False
    reference: Optional[datetime] = None


class LLMConfigPayload(BaseModel):
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    endpoint: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_output_tokens: Optional[int] = Field(default=None, alias="maxOutputTokens", gt=0)
    timeout: Optional[float] = Field(default=None, gt=0.0)

    model_config = {"populate_by_name": True}


class ConfigPayload(BaseModel):
    use_regex_only: Optional[bool] = Field(default=None, alias="useRegexOnly")
    use_regex_fallback: Optional[bool] = Field(default=None, alias="useRegexFallback")
    prefer_regex: Optional[bool] = Field(default=None, alias="preferRegex")
    confidence_threshold: Optional[float] = Field(default=None, alias="confidenceThreshold", ge=0.0, le=1.0)
    llm: Optional[LLMConfigPayload] = None

    model_config = {"populate_by_name": True}

    def changes(self) -> Dict[str, Any]:
        """Only the fields the client actually sent, in snake_case."""

        data = self.model_dump(exclude_none=True, exclude_unset=True)
        if not data.get("llm"):
            data.pop("llm", None)
        return data


def create_app(service: Optional[ParserService] = None) -> FastAPI:
    """WHAT: instantiate FastAPI around a ``ParserService``.

    WHY: the web surface reuses the exact wiring of the CLI so a command parses
    the same way in both places.
    HOW: accept a service override (tests), keep it on ``app.state`` and
    register the parse, status and configuration routes.
    """
    app = FastAPI(title="Calendar Command Parser API", version="1.0.0")
    app.state.parser_service = service or build_parser_service()

    @app.get("/api/health")
    def health_check() -> Dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        }

    @app.get("/api/status")
    def status() -> Dict[str, Any]:
        return app.state.parser_service.status()

    @app.post("/api/parse")
    def parse(payload: ParseRequest) -> Dict[str, Any]:
        """WHAT: parse one command and return schema plus validation.

        WHY: the UI shows errors and suggestions next to the input, so the
        response always carries both even when the command is unusable.
        HOW: reject blank or oversized texts, then delegate to the service;
        ``legacy`` switches to the flat action/date/time payload.
        """
        text = (payload.text or "").strip()
        if not text:
            raise HTTPException(status_code=400, detail="Text is required.")
        if len(text) > MAX_COMMAND_LENGTH:
            raise HTTPException(status_code=400, detail=f"Text exceeds {MAX_COMMAND_LENGTH} characters.")
        reference = payload.reference.replace(tzinfo=None) if payload.reference else None
        result = app.state.parser_service.parse_command(payload.text, reference)
        return result.to_legacy_dict() if payload.legacy else result.to_dict()

    @app.post("/api/config")
    def update_config(payload: ConfigPayload) -> Dict[str, Any]:
        changes = payload.changes()
        if not changes:
            raise HTTPException(status_code=400, detail="No configuration changes supplied.")
        app.state.parser_service.configure(**changes)
        logger.info("Parser configuration changed via API: %s", sorted(changes))
        return app.state.parser_service.status()

    return app


if __name__ == "__main__":
    import uvicorn
    from app.config import get_web_ui_host, get_web_ui_port

    uvicorn.run(
        create_app(),
        host=get_web_ui_host(),
        port=get_web_ui_port(),
        reload=False,
    )
