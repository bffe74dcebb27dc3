"""HTTP client for the Gemini ``generateContent`` endpoint."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import requests

from .errors import InferenceError, InferenceErrorKind

logger = logging.getLogger(__name__)

_QUOTA_MARKERS = ("quota", "rate limit", "resource_exhausted", "resource exhausted")


class InferenceClient(Protocol):
    """Anything that turns a prompt into response text within ``timeout`` seconds."""

    def generate(self, prompt: str, timeout: float) -> str:
        ...


def classify_status(status_code: int, body: str = "") -> InferenceErrorKind:
    """Map an HTTP error status onto retry semantics."""

    lowered = body.lower()
    if status_code == 429 or any(marker in lowered for marker in _QUOTA_MARKERS):
        return InferenceErrorKind.QUOTA
    if status_code >= 500:
        return InferenceErrorKind.TRANSIENT
    return InferenceErrorKind.TERMINAL


class GeminiClient:
    """Thin wrapper around the REST API; one POST per :meth:`generate` call."""

    def __init__(
        self,
        api_key: str,
        model: str,
        endpoint: str,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise ValueError("An API key is required for the inference client")
        self.api_key = api_key
        self.model = model
        self.endpoint = endpoint.rstrip("/")
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        return f"{self.endpoint}/models/{self.model}:generateContent"

    def generate(self, prompt: str, timeout: float) -> str:
        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

        try:
            response = self.session.post(
                self.url,
                params={"key": self.api_key},
                json=payload,
                timeout=timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise InferenceError(InferenceErrorKind.TRANSIENT, f"Request timed out after {timeout}s") from exc
        except requests.exceptions.RequestException as exc:
            raise InferenceError(InferenceErrorKind.TRANSIENT, f"Network error: {exc}") from exc

        if response.status_code >= 400:
            body = response.text or ""
            kind = classify_status(response.status_code, body)
            logger.warning("Inference request failed with HTTP %d (%s)", response.status_code, kind.value)
            raise InferenceError(
                kind,
                f"HTTP {response.status_code}: {body[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise InferenceError(InferenceErrorKind.TERMINAL, "Response body is not JSON") from exc
        return extract_text(data)


def extract_text(data: Dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate."""

    candidates = data.get("candidates") or []
    if not candidates:
        feedback = data.get("promptFeedback") or {}
        reason = feedback.get("blockReason", "no candidates returned")
        raise InferenceError(InferenceErrorKind.TERMINAL, f"Empty response: {reason}")
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts)
