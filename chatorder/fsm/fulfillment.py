from __future__ import annotations

import logging
import re
from typing import Literal, Optional

from chatorder.errors import MissingContextError
from chatorder.fsm import messages
from chatorder.fsm.context import FlowContext, Transition
from chatorder.fsm.states import ConversationState
from chatorder.models.order import Order
from chatorder.services.formatting import format_amount
from chatorder.services.orders import ACTIVE_STATUSES, find_latest_open_order, update_order
from chatorder.services.payments import grand_total, issue_payment_link
from chatorder.services.tenant_config import TenantConfig

logger = logging.getLogger(__name__)

Fulfillment = Literal["pickup", "delivery"]

_PICKUP_WORDS = (
    "pickup",
    "pick up",
    "takeaway",
    "take away",
    "collect",
    "self pickup",
    "store pickup",
    # romanized Tamil: "I'll come and take it", "at the shop"
    "vanthu vaanguren",
    "naane varen",
    "kadaila",
)
_DELIVERY_WORDS = (
    "delivery",
    "deliver",
    "home delivery",
    "door delivery",
    "send it",
    # romanized Tamil: "send it home"
    "veetuku",
    "anuppunga",
)


def detect_fulfillment(text: str) -> Optional[Fulfillment]:
    t = (text or "").strip().lower()
    if t == "1":
        return "pickup"
    if t == "2":
        return "delivery"
    if any(re.search(rf"\b{re.escape(word)}\b", t) for word in _PICKUP_WORDS):
        return "pickup"
    if any(re.search(rf"\b{re.escape(word)}\b", t) for word in _DELIVERY_WORDS):
        return "delivery"
    return None


def store_block(config: TenantConfig) -> str:
    lines = [f"🏪 *{config.name}*"]
    if config.address_text:
        lines.append(f"📍 {config.address_text}")
    if config.store_coords is not None:
        lines.append(f"🗺️ https://www.google.com/maps?q={config.store_coords.lat},{config.store_coords.lng}")
    elif config.maps_url:
        lines.append(f"🗺️ {config.maps_url}")
    if config.phone:
        lines.append(f"📞 {config.phone}")
    return "\n".join(lines)


def require_active_order(ctx: FlowContext) -> Order:
    order = find_latest_open_order(ctx.db, ctx.tenant_id, ctx.phone, ACTIVE_STATUSES)
    if order is None:
        raise MissingContextError(f"no active order in state {ctx.state.value}")
    return order


def handle_awaiting_fulfillment(ctx: FlowContext) -> Transition:
    choice = detect_fulfillment(ctx.text)
    if choice is None:
        return Transition(reply=messages.fulfillment_menu())

    order = require_active_order(ctx)

    if choice == "delivery":
        update_order(ctx.db, order, {"delivery_type": "delivery"})
        logger.info("[FULFILLMENT] delivery order_id=%s", order.id)
        return Transition(
            reply=f"🚚 *Home Delivery selected!*\n\n{messages.payment_menu()}",
            state=ConversationState.AWAITING_PAYMENT,
            order_id=order.id,
        )

    update_order(
        ctx.db,
        order,
        {"delivery_type": "pickup", "delivery_fee": 0.0, "payment_mode": "online"},
    )
    link = issue_payment_link(ctx.db, ctx.config, order)
    if link is None:
        update_order(ctx.db, order, {"payment_status": "pending"})
        link_line = "🔗 Your payment link is being generated. We'll share it shortly."
    else:
        link_line = f"🔗 *Pay here to confirm pickup:* {link.url}"
    logger.info("[FULFILLMENT] pickup order_id=%s link=%s", order.id, link is not None)

    reply = "\n".join(
        [
            "✅ *Store Pickup selected!*",
            f"💰 Amount: *{format_amount(grand_total(order))}*",
            "",
            link_line,
            "",
            store_block(ctx.config),
            "",
            messages.pickup_payment_menu(),
        ]
    )
    return Transition(
        reply=reply,
        state=ConversationState.AWAITING_PICKUP_PAYMENT,
        order_id=order.id,
    )
