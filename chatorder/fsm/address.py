from __future__ import annotations

import logging
import re

from chatorder.errors import IntegrationError
from chatorder.fsm import messages
from chatorder.fsm.context import FlowContext, Transition
from chatorder.fsm.fulfillment import require_active_order
from chatorder.fsm.states import ConversationState
from chatorder.integrations.geocoder import GEOCODER_INTEGRATION, get_geocoder
from chatorder.models.order import Order
from chatorder.services.attempts import inc_attempts
from chatorder.services.delivery_quote import Coordinates, QuoteErr, quote
from chatorder.services.formatting import format_number
from chatorder.services.integration_guard import integration_guard
from chatorder.services.orders import update_order
from chatorder.services.payments import delivery_fee_line

logger = logging.getLogger(__name__)

MAX_ADDRESS_ATTEMPTS = 3

_ADDRESS_KEYWORDS = re.compile(
    r"\b(street|st|road|rd|area|blk|block|near|behind|opp|opposite|flat|villa|apt|apartment|"
    r"tower|building|floor|nagar|layout|colony|lane|main|cross|sector|phase)\b"
)
_HOUSE_NUMBER = re.compile(r"^\d+[-/]?\d*\s+\w")
_SKIP_WORDS = {"skip", "no", "later", "dont", "don't", "no pin"}

_PIN_PROMPT = (
    "📍 Please share your *location pin* (📎 → Location) for accurate delivery.\n"
    "Or type *skip* to continue without it."
)


def looks_like_address(text: str) -> bool:
    t = (text or "").strip().lower()
    if not t:
        return False
    if len(t) > 15:
        return True
    if _HOUSE_NUMBER.match(t):
        return True
    return _ADDRESS_KEYWORDS.search(t) is not None


def _address_retry(attempts: int) -> str:
    if attempts <= 1:
        return (
            "📍 That doesn't look like an address.\n"
            "Please send your full delivery address (house/flat number, street, area)."
        )
    return (
        "📍 I still need your delivery address.\n"
        "Please include your house/flat number, street name and area.\n"
        "Example: *12 Gandhi Street, Anna Nagar*"
    )


def handle_awaiting_address(ctx: FlowContext) -> Transition:
    text = (ctx.raw_text or "").strip()
    if ctx.location is None and not text:
        return Transition(reply="📍 Please send your delivery address (house/flat number, street, area).")

    if ctx.location is None and not looks_like_address(text):
        attempts = inc_attempts(ctx.db, ctx.tenant_id, ctx.phone)
        logger.info("[ADDRESS] rejected attempts=%s", attempts)
        if attempts >= MAX_ADDRESS_ATTEMPTS:
            return Transition(
                reply=(
                    "😅 I'm having trouble understanding your address.\n"
                    "Let's start again. Please type the item name to place a new order."
                ),
                clear_state=True,
                clear_cart=True,
                reset_attempts=True,
            )
        return Transition(reply=_address_retry(attempts))

    order = require_active_order(ctx)
    if text:
        update_order(ctx.db, order, {"delivery_address_text": text, "delivery_type": "delivery"})
    logger.info("[ADDRESS] saved order_id=%s pin=%s", order.id, ctx.location is not None)

    if ctx.location is not None:
        transition = _quote_and_save(ctx, order, ctx.location)
        transition.reset_attempts = True
        return transition

    return Transition(
        reply=f"📍 Address received!\n\n{_PIN_PROMPT}",
        state=ConversationState.AWAITING_LOCATION_PIN,
        reset_attempts=True,
        order_id=order.id,
    )


def _geocode(ctx: FlowContext, address_text: str | None) -> Coordinates | None:
    if not address_text:
        return None
    geocoder = get_geocoder()
    try:
        return integration_guard.call(
            tenant_id=ctx.tenant_id,
            integration=GEOCODER_INTEGRATION,
            fn=lambda: geocoder.geocode(address_text),
        )
    except IntegrationError as exc:
        logger.warning("[ADDRESS][GEOCODE] failed: %s", exc.detail)
        return None


def _stored_coords(order: Order) -> Coordinates | None:
    if order.delivery_lat is None or order.delivery_lng is None:
        return None
    return Coordinates(lat=float(order.delivery_lat), lng=float(order.delivery_lng))


def _quote_and_save(ctx: FlowContext, order: Order, coords: Coordinates | None) -> Transition:
    result = quote(ctx.config.store_coords, coords, ctx.config.pricing)

    if isinstance(result, QuoteErr) and result.reason == "too_far":
        logger.info("[ADDRESS] too far order_id=%s distance_km=%s", order.id, result.distance_km)
        return Transition(
            reply=(
                f"This address appears to be about {format_number(result.distance_km)} km from the store.\n"
                f"We currently deliver only within {format_number(result.max_km)} km.\n\n"
                "Please send a closer delivery address."
            ),
            state=ConversationState.AWAITING_ADDRESS,
            order_id=order.id,
        )

    patch = {"delivery_type": "delivery"}
    if coords is not None:
        patch.update(delivery_lat=coords.lat, delivery_lng=coords.lng)
    if result.ok:
        patch.update(
            delivery_distance_km=result.distance_km,
            delivery_fee=result.fee,
            delivery_status="confirmed",
        )
        fee = result.fee
    else:
        patch.update(
            delivery_distance_km=result.distance_km,
            delivery_fee=None,
            delivery_status="pending_address",
        )
        fee = None
        logger.info("[ADDRESS] fee deferred order_id=%s reason=%s", order.id, result.reason)
    update_order(ctx.db, order, patch)

    lines = ["✅ *Delivery details saved!*"]
    if result.distance_km is not None:
        lines.append(f"📏 Distance: {format_number(result.distance_km)} km")
    lines.append(delivery_fee_line(fee))
    lines.append("")
    lines.append(messages.payment_menu())
    return Transition(
        reply="\n".join(lines),
        state=ConversationState.AWAITING_PAYMENT,
        order_id=order.id,
    )


def handle_awaiting_location_pin(ctx: FlowContext) -> Transition:
    if ctx.location is not None:
        order = require_active_order(ctx)
        logger.info("[ADDRESS] pin received order_id=%s", order.id)
        return _quote_and_save(ctx, order, ctx.location)

    if ctx.text.strip() in _SKIP_WORDS:
        order = require_active_order(ctx)
        coords = _stored_coords(order) or _geocode(ctx, order.delivery_address_text)
        logger.info("[ADDRESS] pin skipped order_id=%s resolved=%s", order.id, coords is not None)
        return _quote_and_save(ctx, order, coords)

    return Transition(reply=_PIN_PROMPT)
