from __future__ import annotations

import re
from typing import Literal, Optional

MetaIntent = Literal["reset", "back", "help", "menu", "agent", "greeting"]

# Checked in this order; reset and back always beat greeting
_CONTROL_PHRASES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("reset", ("reset", "cancel", "start again", "start over", "new order")),
    ("back", ("go back", "back")),
    ("help", ("how to order", "how to", "help")),
    ("menu", ("show menu", "list items", "menu")),
    ("agent", ("talk to human", "talk to agent", "agent", "human", "support")),
)

_CONTROL_PATTERNS = tuple(
    (intent, re.compile(r"\b(?:" + "|".join(re.escape(phrase) for phrase in phrases) + r")\b"))
    for intent, phrases in _CONTROL_PHRASES
)

GREETING_WORDS = (
    "hi",
    "hello",
    "hey",
    "yo",
    "hola",
    "vanakkam",
    "namaste",
    "gm",
    "good morning",
    "good afternoon",
    "good evening",
)
GREETING_FILLERS = frozenset({"bro", "dear", "sir", "team", "anna", "machi"})


def _clean(raw: str | None) -> str:
    text = (raw or "").lower()
    text = re.sub(r"[^\w\s]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def is_pure_greeting(raw: str | None) -> bool:
    """True for "hi", "hello bro", "good morning sir"; false for "hi, 2 biryani"."""
    text = _clean(raw)
    if not text:
        return False
    tokens = text.split()
    if len(tokens) > 3:
        return False
    for greeting in GREETING_WORDS:
        if text == greeting:
            return True
        if text.startswith(greeting + " "):
            rest = text[len(greeting):].split()
            if all(token in GREETING_FILLERS for token in rest):
                return True
    return False


def detect_meta_intent(raw: str | None) -> Optional[MetaIntent]:
    msg = (raw or "").lower().strip()
    if not msg:
        return None
    for intent, pattern in _CONTROL_PATTERNS:
        if pattern.search(msg):
            return intent  # type: ignore[return-value]
    if is_pure_greeting(msg):
        return "greeting"
    return None
