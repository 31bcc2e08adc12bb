from __future__ import annotations

from enum import Enum


class ConversationState(str, Enum):
    IDLE = "idle"
    ORDERING_ITEM = "ordering_item"
    ORDERING_VARIANT = "ordering_variant"
    ORDERING_QTY = "ordering_qty"
    ORDERING_UPSELL = "ordering_upsell"
    CONFIRMING_ORDER = "confirming_order"
    CART_EDIT_MENU = "cart_edit_menu"
    CART_EDIT_ITEM = "cart_edit_item"
    CART_EDIT_QTY = "cart_edit_qty"
    CART_REMOVE_ITEM = "cart_remove_item"
    AWAITING_FULFILLMENT = "awaiting_fulfillment"
    AWAITING_ADDRESS = "awaiting_address"
    AWAITING_LOCATION_PIN = "awaiting_location_pin"
    AWAITING_PAYMENT = "awaiting_payment"
    AWAITING_PAYMENT_PROOF = "awaiting_payment_proof"
    AWAITING_PICKUP_PAYMENT = "awaiting_pickup_payment"
    AGENT = "agent"


_BY_VALUE = {state.value: state for state in ConversationState}

ORDERING_STATES = frozenset(
    {
        ConversationState.ORDERING_ITEM,
        ConversationState.ORDERING_VARIANT,
        ConversationState.ORDERING_QTY,
        ConversationState.ORDERING_UPSELL,
    }
)

CART_REVIEW_STATES = frozenset(
    {
        ConversationState.CONFIRMING_ORDER,
        ConversationState.CART_EDIT_MENU,
        ConversationState.CART_EDIT_ITEM,
        ConversationState.CART_EDIT_QTY,
        ConversationState.CART_REMOVE_ITEM,
    }
)

# Money / logistics states are never interrupted by informational lanes
CHECKOUT_STATES = frozenset(
    {
        ConversationState.AWAITING_FULFILLMENT,
        ConversationState.AWAITING_ADDRESS,
        ConversationState.AWAITING_LOCATION_PIN,
        ConversationState.AWAITING_PAYMENT,
        ConversationState.AWAITING_PAYMENT_PROOF,
        ConversationState.AWAITING_PICKUP_PAYMENT,
    }
)


def normalize_state(value: str | None) -> ConversationState:
    """Unknown or corrupt stored values fall back to idle."""
    if not value:
        return ConversationState.IDLE
    return _BY_VALUE.get(str(value).strip().lower(), ConversationState.IDLE)
