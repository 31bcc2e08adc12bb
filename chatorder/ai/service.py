from __future__ import annotations

import json
import logging
import re
import time

from pydantic import ValidationError
from sqlalchemy.orm import Session

from chatorder.ai.base import AIProvider
from chatorder.ai.gemini_provider import GeminiProvider
from chatorder.ai.mock_provider import MockProvider
from chatorder.ai.schema import INTENT_LANES, ClassifierResponse
from chatorder.errors import IntegrationError
from chatorder.models.ai_config import AIConfig
from chatorder.models.ai_message_log import AIMessageLog
from chatorder.services.integration_guard import integration_guard

logger = logging.getLogger(__name__)

LLM_INTEGRATION = "llm"
DEFAULT_MIN_CONFIDENCE = 0.65

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def get_ai_config(db: Session, tenant_id: int) -> AIConfig:
    config = db.query(AIConfig).filter(AIConfig.tenant_id == tenant_id).first()
    if not config:
        config = AIConfig(tenant_id=tenant_id, provider="mock", enabled=False, min_confidence=DEFAULT_MIN_CONFIDENCE)
        db.add(config)
        db.commit()
        db.refresh(config)
    return config


def get_provider(config: AIConfig) -> AIProvider:
    provider = (config.provider or "mock").strip().lower()
    if provider == "gemini":
        return GeminiProvider()
    return MockProvider()


def build_prompt(message: str, lane_hints: str | None = None) -> str:
    lines = [
        "You route customer chat messages for a local store.",
        f"Allowed intents: {', '.join(INTENT_LANES)}.",
        'Reply with minified JSON only, for example {"intent":"menu","confidence":0.8}.',
        "Use unknown when none of the intents fit.",
    ]
    hints = (lane_hints or "").strip()
    if hints:
        lines.append(f"Store notes: {hints}")
    lines.append(f"Message: {message}")
    return "\n".join(lines)


def parse_classifier_output(raw: str) -> ClassifierResponse:
    cleaned = _CODE_FENCE.sub("", raw or "").strip()
    return ClassifierResponse.model_validate(json.loads(cleaned))


def classify_intent(
    db: Session,
    tenant_id: int,
    phone: str | None,
    message: str,
    *,
    provider: AIProvider | None = None,
) -> ClassifierResponse | None:
    """One constrained completion over the closed lane set.

    Returns None when the tenant has no classifier enabled, the call fails, the
    output does not validate or its confidence is under the tenant's bar. Every
    call that reaches a provider leaves an ``AIMessageLog`` row.
    """
    config = get_ai_config(db, tenant_id)
    if provider is None:
        if not config.enabled:
            return None
        provider = get_provider(config)

    min_confidence = max(DEFAULT_MIN_CONFIDENCE, config.min_confidence or 0.0)
    log = AIMessageLog(
        tenant_id=tenant_id,
        customer_phone=phone,
        provider=provider.name,
        message_text=message,
        prompt=build_prompt(message, config.lane_hints),
        accepted=False,
    )
    parsed: ClassifierResponse | None = None
    started = time.perf_counter()

    try:
        log.raw_response = integration_guard.call(
            tenant_id=tenant_id,
            integration=LLM_INTEGRATION,
            fn=lambda: provider.classify(
                message,
                log.prompt,
                model=config.model,
                temperature=config.temperature,
            ),
        )
        parsed = parse_classifier_output(log.raw_response)
    except IntegrationError as exc:
        log.error = f"provider_error: {exc.detail}"
        logger.warning("[ROUTER][AI] provider=%s failed: %s", provider.name, exc.detail)
    except (ValueError, ValidationError) as exc:
        # json.JSONDecodeError is a ValueError
        log.error = f"validation_error: {exc.__class__.__name__}"
        logger.warning("[ROUTER][AI] provider=%s returned unusable output", provider.name)
    finally:
        log.latency_ms = int((time.perf_counter() - started) * 1000)

    if parsed is not None:
        log.parsed_json = parsed.model_dump_json()
        log.intent = parsed.intent
        log.confidence = parsed.confidence
        log.accepted = parsed.intent != "unknown" and parsed.confidence >= min_confidence
        if not log.accepted:
            logger.info(
                "[ROUTER][AI] rejected intent=%s confidence=%.2f min=%.2f",
                parsed.intent,
                parsed.confidence,
                min_confidence,
            )

    db.add(log)
    db.commit()
    return parsed if log.accepted else None
