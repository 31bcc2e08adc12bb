from __future__ import annotations

import logging
from typing import Any

import httpx

from chatorder.core.config import EXTERNAL_TIMEOUT_SECONDS, GEMINI_API_BASE, GEMINI_API_KEY, GEMINI_MODEL
from chatorder.errors import IntegrationError

logger = logging.getLogger(__name__)


class GeminiProvider:
    name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str = GEMINI_API_BASE,
        timeout: float = EXTERNAL_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else GEMINI_API_KEY
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def classify(
        self,
        message: str,
        prompt: str,
        *,
        model: str | None = None,
        temperature: float | None = None,
    ) -> str:
        if not self.api_key:
            raise IntegrationError("llm", "GEMINI_API_KEY is not configured")

        url = f"{self.base_url}/models/{model or GEMINI_MODEL}:generateContent"
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": 0 if temperature is None else temperature,
                "maxOutputTokens": 60,
                "responseMimeType": "application/json",
            },
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(url, params={"key": self.api_key}, json=body)
        except httpx.HTTPError as exc:
            raise IntegrationError("llm", f"transport error: {exc.__class__.__name__}") from exc

        if response.status_code >= 400:
            raise IntegrationError("llm", f"HTTP {response.status_code}", status_code=response.status_code)

        return _extract_text(response)


def _extract_text(response: httpx.Response) -> str:
    try:
        data: dict[str, Any] = response.json()
        parts = data["candidates"][0]["content"]["parts"]
        return "".join(str(part.get("text") or "") for part in parts).strip()
    except (ValueError, KeyError, IndexError, TypeError) as exc:
        raise IntegrationError("llm", "unexpected response shape") from exc
