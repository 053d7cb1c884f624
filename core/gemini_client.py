"""Thin HTTP client for the Gemini ``generateContent`` endpoint.

Only the request/response contract lives here: one prompt goes out, the
first candidate's text comes back.  Every failure is raised as
``ModelBackendError`` so the model parser can turn it into data.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_ENDPOINT = (
    "https://generativelanguage.googleapis.com/v1beta/models/gemini-1.5-flash:generateContent"
)
DEFAULT_TIMEOUT_SECONDS = 20.0


class ModelBackendError(RuntimeError):
    """Raised when the generative backend cannot produce a usable answer."""


class ModelResponseError(ModelBackendError):
    """The backend answered, but without the expected candidate text."""


class GeminiClient:
    """POST a prompt to Gemini and return the generated text."""

    def __init__(
        self,
        api_key: str | None,
        endpoint: str = DEFAULT_GEMINI_ENDPOINT,
        *,
        temperature: float = 0.1,
        top_p: float = 0.9,
        top_k: int = 40,
        max_output_tokens: int = 1024,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._endpoint = endpoint or DEFAULT_GEMINI_ENDPOINT
        self._generation_config = {
            "temperature": temperature,
            "topP": top_p,
            "topK": top_k,
            "maxOutputTokens": max_output_tokens,
        }
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    @property
    def generation_config(self) -> Dict[str, Any]:
        return dict(self._generation_config)

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": dict(self._generation_config),
        }

    def generate(self, prompt: str) -> str:
        """Return the text of the first candidate for ``prompt``."""

        if not self.is_configured:
            raise ModelBackendError("API key Gemini non configurata")

        try:
            response = self._session.post(
                self._endpoint,
                params={"key": self._api_key},
                json=self.build_payload(prompt),
                timeout=self._timeout,
            )
        except requests.Timeout as exc:
            raise ModelBackendError(f"Timeout della richiesta API Gemini dopo {self._timeout}s") from exc
        except requests.RequestException as exc:
            raise ModelBackendError(f"Errore di rete API Gemini: {exc}") from exc

        if not response.ok:
            message = _error_message(response)
            logger.warning("Gemini request failed with HTTP %s: %s", response.status_code, message)
            raise ModelBackendError(f"Errore API Gemini: {message}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ModelResponseError("Risposta API vuota o non valida") from exc
        return _candidate_text(data)


def _error_message(response: requests.Response) -> str:
    # Prefer the JSON error envelope, then the HTTP reason phrase.
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return response.reason or f"HTTP {response.status_code}"


def _candidate_text(data: Any) -> str:
    if not isinstance(data, dict):
        raise ModelResponseError("Risposta API vuota o non valida")
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        raise ModelResponseError("Risposta API vuota o non valida")
    first = candidates[0] if isinstance(candidates[0], dict) else {}
    content = first.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict) or not parts[0].get("text"):
        raise ModelResponseError("Contenuto della risposta non trovato")
    return str(parts[0]["text"])


__all__ = [
    "DEFAULT_GEMINI_ENDPOINT",
    "DEFAULT_TIMEOUT_SECONDS",
    "GeminiClient",
    "ModelBackendError",
    "ModelResponseError",
]
