from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from chatorder.ai.service import classify_intent
from chatorder.models.intent_event import IntentEvent
from chatorder.models.intent_override_rule import IntentOverrideRule
from chatorder.services.text_normalize import normalize_for_routing

logger = logging.getLogger(__name__)

OVERRIDE_CONFIDENCE = 0.98
RULE_MIN_CONFIDENCE = 0.70
AI_MIN_CONFIDENCE = 0.65
FALLBACK_CONFIDENCE = 0.40
MAX_OVERRIDE_RULES = 200

INFORMATIONAL_LANES = frozenset(
    {
        "menu",
        "opening_hours",
        "delivery_now",
        "delivery_area",
        "delivery_time_specific",
        "pricing_generic",
        "store_location",
        "contact",
    }
)

_TIME_EXPRESSION = re.compile(r"\b\d{1,2}(:\d{2})?\s?(am|pm)\b", re.IGNORECASE)
_BARE_NUMBER = re.compile(r"\b\d{1,2}\b")


@dataclass(frozen=True)
class RouteDecision:
    lane: str
    confidence: float
    source: str  # override / rules / ai / fallback

    @property
    def is_informational(self) -> bool:
        return self.lane in INFORMATIONAL_LANES and self.source != "fallback"


def has_time_expression(text: str) -> bool:
    t = (text or "").lower()
    if _TIME_EXPRESSION.search(t):
        return True
    if _BARE_NUMBER.search(t) and ("night" in t or "tonight" in t):
        return True
    return "midnight" in t


def _mentions_delivery(t: str) -> bool:
    return "deliver" in t


def _any(t: str, phrases: tuple[str, ...]) -> bool:
    return any(phrase in t for phrase in phrases)


_Rule = Callable[[str], bool]

# Ordered; the first rule that fires decides
_STATIC_RULES: tuple[tuple[str, float, _Rule], ...] = (
    ("menu", 0.95, lambda t: _any(t, ("menu", "price list", "show menu", "send menu"))),
    (
        "opening_hours",
        0.92,
        lambda t: _any(
            t,
            (
                "open now",
                "are you open",
                "is the shop open",
                "shop open",
                "restaurant open",
                "kadai open",
                "opening time",
                "closing time",
                "what time do you open",
                "what time do you close",
                "timings",
                "working hours",
                "business hours",
            ),
        ),
    ),
    (
        "contact",
        0.92,
        lambda t: _any(
            t,
            ("contact", "phone number", "call", "how to reach you", "how can i contact", "number?"),
        ),
    ),
    (
        "store_location",
        0.92,
        lambda t: _any(
            t,
            (
                "where is your shop",
                "where is your store",
                "where is your restaurant",
                "address",
                "location",
                "google map",
                "share location",
            ),
        ),
    ),
    ("delivery_time_specific", 0.80, lambda t: _mentions_delivery(t) and has_time_expression(t)),
    ("delivery_now", 0.86, lambda t: _mentions_delivery(t) and _any(t, ("now", "today", "available"))),
    ("delivery_now", 0.70, lambda t: _mentions_delivery(t) and _any(t, ("what time", "delivery time", "when"))),
    (
        "delivery_area",
        0.82,
        lambda t: _any(t, ("deliver to", "deliver in", "delivery to", "delivery in")),
    ),
    ("pricing_generic", 0.75, lambda t: _any(t, ("price", "how much", "rate card", "ratecard"))),
    (
        "human_help",
        0.55,
        lambda t: t.endswith("?") or t.startswith(("where", "how", "when", "what")),
    ),
)


def _pattern_matches(rule: IntentOverrideRule, text: str) -> bool:
    pattern = normalize_for_routing(rule.pattern)
    if not pattern:
        return False
    match_type = (rule.match_type or "exact").strip().lower()
    if match_type == "exact":
        return text == pattern
    if match_type == "contains":
        return pattern in text
    if match_type == "regex":
        try:
            return re.search(pattern, text, re.IGNORECASE) is not None
        except re.error:
            logger.warning("[ROUTER] invalid override regex rule_id=%s", rule.id)
            return False
    return False


def match_override(db: Session, tenant_id: int, text: str) -> Optional[RouteDecision]:
    rules = (
        db.query(IntentOverrideRule)
        .filter(IntentOverrideRule.tenant_id == tenant_id, IntentOverrideRule.active.is_(True))
        .order_by(IntentOverrideRule.id.asc())
        .limit(MAX_OVERRIDE_RULES)
        .all()
    )
    for rule in rules:
        if _pattern_matches(rule, text):
            rule.hits = int(rule.hits or 0) + 1
            db.commit()
            logger.info("[ROUTER][OVERRIDE] rule_id=%s intent=%s", rule.id, rule.intent)
            return RouteDecision(lane=rule.intent, confidence=OVERRIDE_CONFIDENCE, source="override")
    return None


def match_static_rules(text: str, raw_text: str = "") -> Optional[RouteDecision]:
    """Keyword table. ``raw_text`` keeps the trailing "?" that routing normalization drops."""
    question_text = text
    if raw_text.strip().endswith("?") and not text.endswith("?"):
        question_text = f"{text}?"
    for lane, confidence, rule in _STATIC_RULES:
        if rule(question_text):
            return RouteDecision(lane=lane, confidence=confidence, source="rules")
    return None


def log_event(
    db: Session,
    *,
    tenant_id: int,
    phone: str,
    raw_text: str,
    normalized_text: str,
    decision: RouteDecision,
    state: str | None,
) -> IntentEvent:
    event = IntentEvent(
        tenant_id=tenant_id,
        customer_phone=phone,
        raw_text=raw_text,
        normalized_text=normalized_text,
        decided_intent=decision.lane,
        confidence=round(float(decision.confidence or 0), 3),
        source=decision.source,
        state=state,
        created_at=datetime.now(timezone.utc),
    )
    db.add(event)
    db.commit()
    return event


def route(
    db: Session,
    tenant_id: int,
    phone: str,
    raw_text: str,
    normalized_text: str,
    state: str | None = None,
) -> RouteDecision:
    """Override rules, then the static table, then the LLM, then human_help."""
    text = normalize_for_routing(normalized_text or raw_text)

    decision = match_override(db, tenant_id, text)

    if decision is None:
        ruled = match_static_rules(text, raw_text)
        if ruled is not None and ruled.confidence >= RULE_MIN_CONFIDENCE:
            decision = ruled

    if decision is None:
        classified = classify_intent(db, tenant_id, phone, text)
        if classified and classified.confidence >= AI_MIN_CONFIDENCE and classified.intent != "unknown":
            decision = RouteDecision(lane=classified.intent, confidence=classified.confidence, source="ai")

    if decision is None:
        decision = RouteDecision(lane="human_help", confidence=FALLBACK_CONFIDENCE, source="fallback")

    log_event(
        db,
        tenant_id=tenant_id,
        phone=phone,
        raw_text=raw_text,
        normalized_text=text,
        decision=decision,
        state=state,
    )
    logger.info(
        "[ROUTER] lane=%s source=%s confidence=%.2f",
        decision.lane,
        decision.source,
        decision.confidence,
        extra={"lane": decision.lane, "source": decision.source, "confidence": decision.confidence},
    )
    return decision
