from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

IntentLane = Literal[
    "order",
    "menu",
    "opening_hours",
    "delivery_now",
    "delivery_area",
    "delivery_time_specific",
    "pricing_generic",
    "store_location",
    "contact",
    "human_help",
    "unknown",
]

INTENT_LANES: tuple[str, ...] = IntentLane.__args__  # type: ignore[attr-defined]


class ClassifierResponse(BaseModel):
    intent: IntentLane
    confidence: float = Field(..., ge=0.0, le=1.0)

    @field_validator("intent", mode="before")
    @classmethod
    def _lower_intent(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        try:
            number = float(value)
        except (TypeError, ValueError):
            return value
        return max(0.0, min(1.0, number))
