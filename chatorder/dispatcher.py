from __future__ import annotations

import logging
import re

from sqlalchemy.orm import Session

from chatorder.core.config import STATE_TTL_MIN
from chatorder.core.request_context import clear_conversation_context, set_request_context
from chatorder.fsm.context import FlowContext, Transition
from chatorder.fsm.engine import run_state_machine
from chatorder.fsm.escape_hatch import apply_escape, is_escape_request
from chatorder.fsm.states import CART_REVIEW_STATES, CHECKOUT_STATES, ConversationState
from chatorder.schemas.ingest import IngestResult, LocationPin
from chatorder.services.attempts import reset_attempts
from chatorder.services.catalog import load_active_items
from chatorder.services.correction_learner import maybe_learn
from chatorder.services.delivery_quote import Coordinates
from chatorder.services.intent_router import route
from chatorder.services.meta_intent import detect_meta_intent, is_pure_greeting
from chatorder.services.service_replies import ORDER_EXAMPLE, format_quick_menu, lane_reply
from chatorder.services.session_store import (
    clear_state,
    get_cart,
    get_state,
    is_manual_mode,
    set_state,
)
from chatorder.services.status_replies import is_status_request, order_status_reply
from chatorder.services.tenant_config import TenantConfig, load_tenant_config
from chatorder.services.text_normalize import normalize_customer_text, normalize_phone

logger = logging.getLogger(__name__)

SESSION_EXPIRED_REPLY = (
    f"⏱️ No activity for {STATE_TTL_MIN} minutes, so I restarted your session.\n"
    "Please type the product name again to start fresh 😊"
)
HELP_REPLY = (
    "You can type an item name (e.g. *chicken biryani*), or reply with a number when you see a list.\n"
    "Type *back* to restart."
)
AGENT_REPLY = "👥 Connecting you to a support agent...\nSomeone from the store will reply here shortly."
MID_FLOW_GREETING_REPLY = "You're in the middle of an order.\nReply with a number or type *back* to start again."
SMALLTALK_REPLY = "👍 Sure! You can send your order whenever you're ready."
LOCATION_OUTSIDE_CHECKOUT_REPLY = "📍 Thanks for the location! Please send the item names to start an order."

_SMALLTALK = re.compile(r"^(ok|okay|thanks|thank you|tnx|thx)$|thank")


def welcome_reply(config: TenantConfig) -> str:
    return (
        f"👋 Welcome to *{config.name}*!\n"
        f"Send the item names to order (e.g. {ORDER_EXAMPLE}), or type *menu* to see what's available."
    )


def _is_smalltalk(text: str) -> bool:
    return _SMALLTALK.search((text or "").strip()) is not None


def _from_transition(transition: Transition, *, kind: str | None = None) -> IngestResult:
    return IngestResult(
        used=True,
        kind=kind or transition.kind,
        reply=transition.reply,
        order_id=transition.order_id,
        image=transition.image,
    )


def handle_message(
    db: Session,
    tenant_id: int,
    customer_phone: str,
    text: str | None,
    location: LocationPin | Coordinates | None = None,
) -> IngestResult:
    """Single entry point for one inbound customer message.

    Returns ``used=False`` when no automated reply must be sent (unknown tenant,
    manual takeover, agent handoff, empty message).
    """
    phone = normalize_phone(customer_phone)
    set_request_context(tenant_id=str(tenant_id), customer=phone)
    try:
        return _handle(db, tenant_id, phone, (text or "").strip(), location)
    finally:
        clear_conversation_context()


def _handle(
    db: Session,
    tenant_id: int,
    phone: str,
    raw_text: str,
    location: LocationPin | Coordinates | None,
) -> IngestResult:
    config = load_tenant_config(db, tenant_id)
    if config is None or not phone:
        logger.warning("[DISPATCH] ignored message tenant=%s reason=%s", tenant_id, "phone" if config else "tenant")
        return IngestResult(used=False, kind="ignored")

    session = get_state(db, tenant_id, phone)
    state = session.state
    set_request_context(state=state.value)

    if session.expired:
        reset_attempts(db, tenant_id, phone)
        return IngestResult(used=True, kind="session_expired", reply=SESSION_EXPIRED_REPLY)

    if is_manual_mode(db, tenant_id, phone):
        logger.info("[DISPATCH] manual mode, no automated reply")
        return IngestResult(used=False, kind="manual_mode")

    if is_escape_request(raw_text):
        return _from_transition(apply_escape(db, tenant_id, phone))

    if state == ConversationState.AGENT:
        return IngestResult(used=False, kind="agent")

    pin = Coordinates(lat=location.lat, lng=location.lng) if location is not None else None
    if not raw_text and pin is None:
        return IngestResult(used=False, kind="empty")

    ctx = FlowContext(
        db=db,
        config=config,
        phone=phone,
        state=state,
        raw_text=raw_text,
        text=normalize_customer_text(raw_text),
        cart=get_cart(db, tenant_id, phone),
        catalog=load_active_items(db, tenant_id),
        location=pin,
    )

    if state in CHECKOUT_STATES:
        return _run(ctx)

    if not raw_text:
        return IngestResult(used=True, kind="location", reply=LOCATION_OUTSIDE_CHECKOUT_REPLY)

    if state == ConversationState.IDLE:
        if is_pure_greeting(raw_text):
            return IngestResult(used=True, kind="greeting", reply=welcome_reply(config))
        if _is_smalltalk(ctx.text):
            return IngestResult(used=True, kind="smalltalk", reply=SMALLTALK_REPLY)

    if state not in CART_REVIEW_STATES and is_status_request(ctx.text):
        reply, order_id = order_status_reply(db, tenant_id, phone)
        return IngestResult(used=True, kind="status", reply=reply, order_id=order_id)

    decision = route(db, tenant_id, phone, raw_text, ctx.text, state.value)

    if decision.is_informational:
        outcome = maybe_learn(db, tenant_id, phone, ctx.text, decision.lane)
        if outcome.learned or decision.lane == "menu":
            clear_state(db, tenant_id, phone)
        return IngestResult(
            used=True,
            kind="service",
            reply=lane_reply(config, decision.lane, ctx.catalog),
            lane=decision.lane,
        )

    if decision.source != "fallback":
        outcome = maybe_learn(db, tenant_id, phone, ctx.text, decision.lane)
        if outcome.learned:
            clear_state(db, tenant_id, phone)
            ctx.state = ConversationState.IDLE

    meta = _handle_meta_intent(ctx)
    if meta is not None:
        return meta

    return _run(ctx)


def _handle_meta_intent(ctx: FlowContext) -> IngestResult | None:
    meta = detect_meta_intent(ctx.raw_text)
    if meta in ("reset", "back"):
        return _from_transition(apply_escape(ctx.db, ctx.tenant_id, ctx.phone))
    if meta == "help":
        return IngestResult(used=True, kind="help", reply=HELP_REPLY)
    if meta == "agent":
        set_state(ctx.db, ctx.tenant_id, ctx.phone, ConversationState.AGENT)
        logger.info("[DISPATCH] handed over to agent")
        return IngestResult(used=True, kind="agent", reply=AGENT_REPLY)
    if meta == "menu":
        clear_state(ctx.db, ctx.tenant_id, ctx.phone)
        return IngestResult(used=True, kind="service", reply=format_quick_menu(ctx.catalog), lane="menu")
    if meta == "greeting" and ctx.state != ConversationState.IDLE:
        return IngestResult(used=True, kind="greeting", reply=MID_FLOW_GREETING_REPLY)
    return None


def _run(ctx: FlowContext) -> IngestResult:
    transition, new_state = run_state_machine(ctx)
    set_request_context(state=new_state.value)
    return _from_transition(transition)
