from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from chatorder.core.config import PICKUP_PAYMENT_TIMEOUT_MIN
from chatorder.errors import MissingContextError
from chatorder.fsm import messages
from chatorder.fsm.context import FlowContext, Transition
from chatorder.fsm.fulfillment import store_block
from chatorder.fsm.states import ConversationState
from chatorder.models.order import Order
from chatorder.services.formatting import format_amount
from chatorder.services.order_events import emit_store_action_required
from chatorder.services.orders import (
    AWAITING_CUSTOMER_ACTION,
    AWAITING_PAYMENT_PROOF,
    AWAITING_STORE_ACTION,
    CANCELLED,
    cancel_order,
    find_latest_open_order,
    find_latest_order,
    update_order_if_status,
)
from chatorder.services.payments import PAYMENT_MODE_LABELS, grand_total, issue_payment_link, order_summary
from chatorder.services.tenant_config import TenantConfig

logger = logging.getLogger(__name__)

PaymentMode = Literal["cash", "card", "upi", "online"]
PickupAction = Literal["resend", "regenerate", "paid", "cancel"]

DELIVERY_ETA = "⏱ Estimated delivery: 30-45 minutes"

_MODE_BY_NUMBER: dict[str, PaymentMode] = {"1": "cash", "2": "online", "3": "upi", "4": "card"}
_MODE_KEYWORDS: tuple[tuple[PaymentMode, tuple[str, ...]], ...] = (
    ("cash", ("cash", "cod", "cash on delivery")),
    ("card", ("card", "debit card", "credit card")),
    ("upi", ("upi", "gpay", "google pay", "phonepe", "paytm")),
    ("online", ("online", "pay online", "link", "payment link")),
)
_PAID_WORDS = {"paid", "done", "payment done", "completed", "i paid", "i have paid"}


def _has_word(text: str, word: str) -> bool:
    return re.search(rf"\b{re.escape(word)}\b", text) is not None


def detect_payment_mode(text: str) -> Optional[PaymentMode]:
    t = (text or "").strip().lower()
    if t in _MODE_BY_NUMBER:
        return _MODE_BY_NUMBER[t]
    for mode, words in _MODE_KEYWORDS:
        if any(_has_word(t, word) for word in words):
            return mode
    return None


def detect_pickup_action(text: str) -> Optional[PickupAction]:
    t = (text or "").strip().lower()
    if t == "1":
        return "resend"
    if t == "2" or t in _PAID_WORDS:
        return "paid"
    if t == "3" or _has_word(t, "cancel"):
        return "cancel"
    if _has_word(t, "new link") or _has_word(t, "regenerate"):
        return "regenerate"
    if _has_word(t, "link") or _has_word(t, "resend"):
        return "resend"
    return None


def payment_instructions(config: TenantConfig, order: Order) -> tuple[str, str | None]:
    """Reply text plus optional image: hosted link first, then QR, then manual instructions."""
    if order.payment_link_url:
        return (
            f"🔗 Pay here: {order.payment_link_url}\n\n"
            "Once paid, reply *paid*. We'll confirm as soon as the payment reaches us.",
            None,
        )
    if config.payment_qr_url:
        lines = [f"📷 Scan the QR code to pay *{format_amount(grand_total(order))}*."]
        if config.payment_instructions:
            lines.append(config.payment_instructions)
        lines.append("Once paid, reply *paid*.")
        return "\n".join(lines), config.payment_qr_url
    if config.payment_instructions:
        return f"{config.payment_instructions}\n\nOnce paid, reply *paid*.", None
    return (
        "⚠️ Payment details are not configured for this store yet.\n"
        "Please pay at delivery or contact the store.",
        None,
    )


def _contact_line(config: TenantConfig) -> str:
    if config.phone:
        return f"📞 For any changes, call/WhatsApp *{config.phone}*."
    return "📞 For any changes, please contact the store."


def handle_awaiting_payment(ctx: FlowContext) -> Transition:
    mode = detect_payment_mode(ctx.text)
    if mode is None:
        return Transition(reply=messages.payment_menu())

    order = find_latest_open_order(ctx.db, ctx.tenant_id, ctx.phone, (AWAITING_CUSTOMER_ACTION,))
    if order is None:
        raise MissingContextError("awaiting_payment without an open order")

    if mode in ("cash", "card"):
        moved = update_order_if_status(
            ctx.db,
            order.id,
            (AWAITING_CUSTOMER_ACTION,),
            {
                "status": AWAITING_STORE_ACTION,
                "payment_mode": mode,
                "payment_status": "unpaid",
                "payment_provider": None,
                "payment_link_id": None,
                "payment_link_url": None,
            },
        )
        if not moved:
            raise MissingContextError(f"order {order.id} left awaiting_customer_action")
        ctx.db.refresh(order)
        emit_store_action_required(order)
        logger.info("[PAYMENT] mode=%s order_id=%s handed to store", mode, order.id)
        return Transition(
            reply="\n\n".join(
                [
                    f"💳 Payment method saved: *{PAYMENT_MODE_LABELS[mode]}*",
                    order_summary(order),
                    DELIVERY_ETA,
                    _contact_line(ctx.config),
                ]
            ),
            clear_state=True,
            reset_attempts=True,
            order_id=order.id,
        )

    moved = update_order_if_status(
        ctx.db,
        order.id,
        (AWAITING_CUSTOMER_ACTION,),
        {"status": AWAITING_PAYMENT_PROOF, "payment_mode": mode, "payment_status": "pending"},
    )
    if not moved:
        raise MissingContextError(f"order {order.id} left awaiting_customer_action")
    ctx.db.refresh(order)

    if mode == "online":
        issue_payment_link(ctx.db, ctx.config, order)
    instructions, image = payment_instructions(ctx.config, order)
    logger.info("[PAYMENT] mode=%s order_id=%s link=%s", mode, order.id, bool(order.payment_link_url))
    return Transition(
        reply=f"💳 Payment method saved: *{PAYMENT_MODE_LABELS[mode]}*\n\n{order_summary(order)}\n\n{instructions}",
        state=ConversationState.AWAITING_PAYMENT_PROOF,
        image=image,
        reset_attempts=True,
        order_id=order.id,
    )


def handle_awaiting_payment_proof(ctx: FlowContext) -> Transition:
    order = find_latest_order(ctx.db, ctx.tenant_id, ctx.phone)
    if order is None:
        raise MissingContextError("awaiting_payment_proof without an order")

    if order.payment_status == "paid":
        return Transition(
            reply=f"✅ Payment already received. Your order #{order.id} is being prepared.",
            clear_state=True,
            order_id=order.id,
        )
    if order.status == CANCELLED:
        raise MissingContextError(f"order {order.id} was cancelled")

    if ctx.text.strip() in _PAID_WORDS:
        # a customer's "paid" is never taken as proof; the provider callback flips payment_status
        return Transition(
            reply="✅ Got it. We're verifying your payment now.\nYou'll get a confirmation as soon as it reaches us.",
            order_id=order.id,
        )

    instructions, image = payment_instructions(ctx.config, order)
    return Transition(reply=instructions, image=image, order_id=order.id)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def is_pickup_payment_stale(order: Order, now: datetime | None = None) -> bool:
    created = _as_utc(order.created_at)
    if created is None or order.payment_status == "paid":
        return False
    current = now or datetime.now(timezone.utc)
    return current - created > timedelta(minutes=PICKUP_PAYMENT_TIMEOUT_MIN)


def _link_reply(order: Order, header: str) -> str:
    return f"{header}\n🔗 {order.payment_link_url}\n\n{messages.pickup_payment_menu()}"


def handle_awaiting_pickup_payment(ctx: FlowContext) -> Transition:
    order = find_latest_order(ctx.db, ctx.tenant_id, ctx.phone)
    if order is None or order.status == CANCELLED:
        raise MissingContextError("awaiting_pickup_payment without an open order")

    if order.payment_status == "paid":
        return Transition(
            reply=f"✅ Payment received! Your pickup order #{order.id} is confirmed.\n\n{store_block(ctx.config)}",
            clear_state=True,
            order_id=order.id,
        )

    action = detect_pickup_action(ctx.text)

    if action == "cancel":
        cancel_order(ctx.db, order)
        return Transition(
            reply=f"🛑 Your order #{order.id} has been *cancelled*.\nType the item name whenever you want to order again.",
            clear_state=True,
            reset_attempts=True,
            order_id=order.id,
        )

    if is_pickup_payment_stale(order):
        cancel_order(ctx.db, order)
        logger.info("[PAYMENT] pickup payment expired order_id=%s", order.id)
        return Transition(
            reply=(
                f"⏳ Payment time expired, so order #{order.id} was cancelled.\n"
                "Type the item name to order again."
            ),
            clear_state=True,
            reset_attempts=True,
            order_id=order.id,
        )

    if action == "paid":
        reply = "⏳ We haven't received your payment yet. It can take a minute to reach us."
        if order.payment_link_url:
            reply = _link_reply(order, reply)
        return Transition(reply=reply, order_id=order.id)

    if action == "regenerate" or (action == "resend" and not order.payment_link_url):
        link = issue_payment_link(ctx.db, ctx.config, order)
        if link is None:
            return Transition(
                reply=(
                    "⚠️ Sorry, I couldn't create a payment link right now.\n"
                    "Please try again in a moment, or type *3* to cancel."
                ),
                order_id=order.id,
            )
        return Transition(reply=_link_reply(order, "Here is your new payment link:"), order_id=order.id)

    if action == "resend":
        return Transition(reply=_link_reply(order, "Here is your payment link:"), order_id=order.id)

    if order.payment_link_url:
        return Transition(
            reply=_link_reply(order, f"Your pickup order #{order.id} is waiting for payment."),
            order_id=order.id,
        )
    return Transition(
        reply=f"Your pickup order #{order.id} is waiting for payment.\n\n{messages.pickup_payment_menu()}",
        order_id=order.id,
    )
