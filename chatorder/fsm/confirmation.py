from __future__ import annotations

import logging

from chatorder.fsm import messages
from chatorder.fsm.cart_machine import INVALID_CHOICE, go_to_confirm
from chatorder.fsm.context import FlowContext, Transition
from chatorder.fsm.states import ConversationState
from chatorder.services.catalog_search import parse_choice, parse_quantity
from chatorder.services.orders import cart_total, create_order

logger = logging.getLogger(__name__)

_CONFIRM_WORDS = {"1", "confirm", "yes", "y", "ok", "done"}
_EDIT_WORDS = {"2", "edit", "change"}


def _pick_line(ctx: FlowContext) -> int | None:
    choice = parse_choice(ctx.text)
    if choice is None or not 1 <= choice <= len(ctx.cart.cart):
        return None
    return choice - 1


def handle_confirming_order(ctx: FlowContext) -> Transition:
    cart = ctx.cart.cart
    if not cart:
        return go_to_confirm([])

    answer = ctx.text.strip()
    if answer in _CONFIRM_WORDS:
        order = create_order(
            ctx.db,
            ctx.tenant_id,
            ctx.phone,
            cart,
            cart_total(cart),
            raw_text=ctx.raw_text,
        )
        if ctx.config.requires_fulfillment_choice:
            next_state = ConversationState.AWAITING_FULFILLMENT
            follow_up = messages.fulfillment_menu()
        else:
            next_state = ConversationState.AWAITING_ADDRESS
            follow_up = "📍 Please send your delivery address."
        return Transition(
            reply=f"✅ *Order #{order.id} confirmed!*\n\n{messages.cart_lines(cart)}\n\n{follow_up}",
            state=next_state,
            clear_cart=True,
            reset_attempts=True,
            order_id=order.id,
        )

    if answer in _EDIT_WORDS:
        return Transition(reply=messages.edit_menu(), state=ConversationState.CART_EDIT_MENU)

    return Transition(reply=messages.confirm_menu(cart))


def handle_cart_edit_menu(ctx: FlowContext) -> Transition:
    cart = ctx.cart.cart
    if not cart:
        return go_to_confirm([])

    answer = ctx.text.strip()
    if answer == "1":
        return Transition(
            reply="Sure! Type the item name you want to add.",
            clear_state=True,
            cart_patch={"item": None, "options": []},
        )
    if answer == "2":
        return Transition(
            reply=messages.pick_line_prompt(cart, "change"),
            state=ConversationState.CART_EDIT_ITEM,
        )
    if answer == "3":
        return Transition(
            reply=messages.pick_line_prompt(cart, "remove"),
            state=ConversationState.CART_REMOVE_ITEM,
        )
    if answer == "4":
        logger.info("[CART] cart discarded from edit menu lines=%s", len(cart))
        return Transition(
            reply="🗑️ Your order has been cancelled.\nType an item name whenever you want to order again.",
            clear_state=True,
            clear_cart=True,
            reset_attempts=True,
        )
    if answer == "5":
        return Transition(reply=messages.confirm_menu(cart), state=ConversationState.CONFIRMING_ORDER)
    return Transition(reply=messages.edit_menu())


def handle_cart_edit_item(ctx: FlowContext) -> Transition:
    if not ctx.cart.cart:
        return go_to_confirm([])
    index = _pick_line(ctx)
    if index is None:
        return Transition(reply=INVALID_CHOICE)
    line = ctx.cart.cart[index]
    label = messages.line_label(line.get("name"), line.get("variant"))
    return Transition(
        reply=f"How many *{label}* do you want? (current: {line.get('qty')})",
        state=ConversationState.CART_EDIT_QTY,
        cart_patch={"item": {"edit_index": index}},
    )


def handle_cart_edit_qty(ctx: FlowContext) -> Transition:
    cart = list(ctx.cart.cart)
    index = (ctx.cart.item or {}).get("edit_index")
    if not isinstance(index, int) or not 0 <= index < len(cart):
        transition = go_to_confirm(cart)
        transition.reply = f"That item is no longer in your cart.\n\n{transition.reply}" if cart else transition.reply
        return transition

    qty = parse_quantity(ctx.text)
    if qty is None or qty < 0:
        return Transition(reply="Please enter a valid quantity like 1 or 2.")

    line = dict(cart[index])
    label = messages.line_label(line.get("name"), line.get("variant"))
    if qty == 0:
        del cart[index]
        notice = f"🗑️ Removed *{label}*."
    else:
        line["qty"] = qty
        cart[index] = line
        notice = f"✅ *{label}* quantity updated to {qty}."

    transition = go_to_confirm(cart)
    if cart:
        transition.reply = f"{notice}\n\n{transition.reply}"
    return transition


def handle_cart_remove_item(ctx: FlowContext) -> Transition:
    if not ctx.cart.cart:
        return go_to_confirm([])
    index = _pick_line(ctx)
    if index is None:
        return Transition(reply=INVALID_CHOICE)

    cart = list(ctx.cart.cart)
    removed = cart.pop(index)
    label = messages.line_label(removed.get("name"), removed.get("variant"))
    transition = go_to_confirm(cart)
    if cart:
        transition.reply = f"🗑️ Removed *{label}*.\n\n{transition.reply}"
    return transition
