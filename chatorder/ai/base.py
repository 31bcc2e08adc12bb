from __future__ import annotations

from typing import Protocol


class AIProvider(Protocol):
    name: str

    def classify(
        self,
        message: str,
        prompt: str,
        *,
        model: str | None = None,
        temperature: float | None = None,
    ) -> str:
        """Returns the raw completion text for the classification prompt."""
        ...
