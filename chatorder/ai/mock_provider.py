from __future__ import annotations

import json
import re

from chatorder.services.text_normalize import normalize_search

_ORDER_HINTS = ("order", "want", "need", "send me", "get me", "i'll take", "ill take")
_HELP_HINTS = ("problem", "issue", "complaint", "refund", "wrong item", "late")


class MockProvider:
    """Offline classifier used when no LLM is configured for the tenant."""

    name = "mock"

    def classify(
        self,
        message: str,
        prompt: str,
        *,
        model: str | None = None,
        temperature: float | None = None,
    ) -> str:
        text = normalize_search(message)
        if not text:
            payload = {"intent": "unknown", "confidence": 0.0}
        elif any(hint in text for hint in _HELP_HINTS):
            payload = {"intent": "human_help", "confidence": 0.7}
        elif re.search(r"\d", text) and any(hint in text for hint in _ORDER_HINTS):
            payload = {"intent": "order", "confidence": 0.72}
        else:
            payload = {"intent": "unknown", "confidence": 0.2}
        return json.dumps(payload)
