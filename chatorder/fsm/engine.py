from __future__ import annotations

import logging
from typing import Callable

from chatorder.errors import MissingContextError
from chatorder.fsm import address, cart_machine, confirmation, fulfillment, payment
from chatorder.fsm.context import FlowContext, Transition
from chatorder.fsm.states import ConversationState
from chatorder.services.attempts import reset_attempts
from chatorder.services.session_store import clear_cart, clear_state, save_cart, set_state

logger = logging.getLogger(__name__)

StateHandler = Callable[[FlowContext], Transition]

STATE_HANDLERS: dict[ConversationState, StateHandler] = {
    ConversationState.IDLE: cart_machine.handle_idle,
    ConversationState.ORDERING_ITEM: cart_machine.handle_ordering_item,
    ConversationState.ORDERING_VARIANT: cart_machine.handle_ordering_variant,
    ConversationState.ORDERING_QTY: cart_machine.handle_ordering_qty,
    ConversationState.ORDERING_UPSELL: cart_machine.handle_ordering_upsell,
    ConversationState.CONFIRMING_ORDER: confirmation.handle_confirming_order,
    ConversationState.CART_EDIT_MENU: confirmation.handle_cart_edit_menu,
    ConversationState.CART_EDIT_ITEM: confirmation.handle_cart_edit_item,
    ConversationState.CART_EDIT_QTY: confirmation.handle_cart_edit_qty,
    ConversationState.CART_REMOVE_ITEM: confirmation.handle_cart_remove_item,
    ConversationState.AWAITING_FULFILLMENT: fulfillment.handle_awaiting_fulfillment,
    ConversationState.AWAITING_ADDRESS: address.handle_awaiting_address,
    ConversationState.AWAITING_LOCATION_PIN: address.handle_awaiting_location_pin,
    ConversationState.AWAITING_PAYMENT: payment.handle_awaiting_payment,
    ConversationState.AWAITING_PAYMENT_PROOF: payment.handle_awaiting_payment_proof,
    ConversationState.AWAITING_PICKUP_PAYMENT: payment.handle_awaiting_pickup_payment,
}

RESTART_PROMPT = "Let's start again. Please type the item name."


def apply_transition(ctx: FlowContext, transition: Transition) -> ConversationState:
    """Writes the transition back to the session store and returns the resulting state."""
    db, tenant_id, phone = ctx.db, ctx.tenant_id, ctx.phone

    if transition.clear_cart:
        clear_cart(db, tenant_id, phone)
    elif transition.cart_patch:
        ctx.cart = save_cart(db, tenant_id, phone, transition.cart_patch)

    if transition.clear_state:
        clear_state(db, tenant_id, phone)
        new_state = ConversationState.IDLE
    else:
        new_state = transition.state or ctx.state
        # written even when unchanged so the session TTL restarts
        set_state(db, tenant_id, phone, new_state)

    if transition.reset_attempts:
        reset_attempts(db, tenant_id, phone)
    return new_state


def run_state_machine(ctx: FlowContext) -> tuple[Transition, ConversationState]:
    handler = STATE_HANDLERS.get(ctx.state)
    if handler is None:
        logger.warning("[FSM] no handler for state=%s, treating as idle", ctx.state.value)
        ctx.state = ConversationState.IDLE
        handler = cart_machine.handle_idle

    try:
        transition = handler(ctx)
    except MissingContextError as exc:
        logger.warning("[FSM] missing context in state=%s: %s", ctx.state.value, exc)
        ctx.db.rollback()
        transition = Transition(reply=RESTART_PROMPT, clear_state=True, clear_cart=True, reset_attempts=True)

    new_state = apply_transition(ctx, transition)
    logger.info(
        "[FSM] %s -> %s",
        ctx.state.value,
        new_state.value,
        extra={"from_state": ctx.state.value, "to_state": new_state.value},
    )
    return transition, new_state
