from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from sqlalchemy.orm import Session

from chatorder.models.intent_event import IntentEvent
from chatorder.models.intent_override_rule import IntentOverrideRule
from chatorder.services.intent_router import has_time_expression
from chatorder.services.text_normalize import normalize_for_routing

logger = logging.getLogger(__name__)

LEARNED_CONFIDENCE = 0.75
MIN_PATTERN_LENGTH = 4
MAX_PATTERN_LENGTH = 200

_ENGLISH_MARKERS = ("i asked", "i meant", "wrong", "not that", "i was asking")
# romanized Tamil: illa = no, keten / kett... = I asked
_TAMIL_MARKERS = re.compile(r"\b(illa|keten|kett\w*)\b")

_PLACE_SIGNAL = re.compile(r"\b(to|in|at|near|around)\s+[a-z]{3,}", re.IGNORECASE)
_PINCODE = re.compile(r"\b\d{6}\b")

# Lanes whose meaning depends on a value carried by the message
_PARAMETER_LANES = ("delivery_time_specific", "delivery_area")


@dataclass(frozen=True)
class LearnOutcome:
    learned: bool
    reason: str
    rule_id: int | None = None


def is_correction_message(text: str | None) -> bool:
    s = (text or "").lower().strip()
    if not s:
        return False
    if any(marker in s for marker in _ENGLISH_MARKERS):
        return True
    return _TAMIL_MARKERS.search(s) is not None


def has_place_signal(text: str | None) -> bool:
    t = text or ""
    return bool(_PLACE_SIGNAL.search(t) or _PINCODE.search(t))


def has_parameter_evidence(lane: str, text: str) -> bool:
    if lane == "delivery_time_specific":
        return has_time_expression(text)
    if lane == "delivery_area":
        return has_place_signal(text)
    return True


def previous_event(db: Session, tenant_id: int, phone: str, offset: int = 1) -> IntentEvent | None:
    """Intent event ``offset`` positions back; 0 is the one logged for the current message."""
    return (
        db.query(IntentEvent)
        .filter(IntentEvent.tenant_id == tenant_id, IntentEvent.customer_phone == phone)
        .order_by(IntentEvent.created_at.desc(), IntentEvent.id.desc())
        .offset(offset)
        .first()
    )


def learn_override(
    db: Session,
    tenant_id: int,
    normalized_text: str,
    lane: str,
    *,
    created_by: str = "system",
) -> IntentOverrideRule | None:
    pattern = normalize_for_routing(normalized_text)[:MAX_PATTERN_LENGTH]
    if len(pattern) < MIN_PATTERN_LENGTH:
        return None

    existing = (
        db.query(IntentOverrideRule)
        .filter(
            IntentOverrideRule.tenant_id == tenant_id,
            IntentOverrideRule.pattern == pattern,
            IntentOverrideRule.intent == lane,
        )
        .first()
    )
    if existing:
        return None

    rule = IntentOverrideRule(
        tenant_id=tenant_id,
        pattern=pattern,
        match_type="exact",
        intent=lane,
        confidence=LEARNED_CONFIDENCE,
        active=True,
        created_by=created_by,
        hits=0,
    )
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


def maybe_learn(db: Session, tenant_id: int, phone: str, normalized_text: str, lane: str) -> LearnOutcome:
    """Turns "no, I asked for X" into an exact override for the previous message.

    Must run after the current message has been routed (and logged), so the previous
    decision sits at offset 1.
    """
    if not is_correction_message(normalized_text):
        return LearnOutcome(learned=False, reason="not_a_correction")

    if lane in _PARAMETER_LANES and not has_parameter_evidence(lane, normalized_text):
        logger.info("[LEARN] skip lane=%s reason=missing_parameter", lane)
        return LearnOutcome(learned=False, reason="missing_parameter")

    prev = previous_event(db, tenant_id, phone, offset=1)
    if prev is None or not prev.normalized_text or not prev.decided_intent:
        logger.info("[LEARN] skip lane=%s reason=no_previous_event", lane)
        return LearnOutcome(learned=False, reason="no_previous_event")

    if prev.decided_intent == lane:
        return LearnOutcome(learned=False, reason="same_lane")

    rule = learn_override(db, tenant_id, prev.normalized_text, lane)
    if rule is None:
        logger.info("[LEARN] skip lane=%s reason=duplicate_or_short pattern=%r", lane, prev.normalized_text)
        return LearnOutcome(learned=False, reason="duplicate_or_short")

    logger.info(
        "[LEARN] override created rule_id=%s from=%s to=%s pattern=%r",
        rule.id,
        prev.decided_intent,
        lane,
        rule.pattern,
    )
    return LearnOutcome(learned=True, reason="learned", rule_id=rule.id)
