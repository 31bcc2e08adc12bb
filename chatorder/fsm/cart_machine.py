from __future__ import annotations

import logging
from typing import Any

from chatorder.errors import MissingContextError
from chatorder.fsm import messages
from chatorder.fsm.context import FlowContext, Transition
from chatorder.fsm.states import ConversationState
from chatorder.services.attempts import inc_attempts
from chatorder.services.catalog import UpsellOffer, find_entry, get_upsell_offer
from chatorder.services.catalog_search import (
    MAX_LINE_QTY,
    Ambiguous,
    Matched,
    NoMatch,
    SearchResult,
    VariantChoice,
    choose_variant,
    fuzzy_choose_option,
    parse_choice,
    parse_multi_item,
    parse_quantity,
    resolve_item,
    variants_for,
)
from chatorder.services.service_replies import format_quick_menu
from chatorder.services.session_store import save_cart

logger = logging.getLogger(__name__)

MAX_SEARCH_ATTEMPTS = 3

INVALID_CHOICE = "Invalid choice. Please send a valid number."

_SKIP_PHRASES = ("skip", "no need", "leave it", "no thanks")
_KEEP_QUEUED_QTY = {"ok", "okay", "yes", "y", "k"}
_UPSELL_YES = {"1", "yes", "y", "ok", "okay", "sure"}
_UPSELL_NO = {"2", "no", "n", "3", "skip"}

_CLEARED_QUEUE = {"multi_item_queue": None, "current_item_index": None}


def _is_skip(text: str) -> bool:
    t = (text or "").strip().lower()
    return any(t == phrase or t.startswith(phrase + " ") for phrase in _SKIP_PHRASES)


def _retry(ctx: FlowContext, reply: str) -> Transition:
    """Re-prompts in place, escalating the hint, and restarts after MAX_SEARCH_ATTEMPTS misses."""
    attempts = inc_attempts(ctx.db, ctx.tenant_id, ctx.phone)
    logger.info("[CART] invalid reply state=%s attempts=%s", ctx.state.value, attempts)
    if attempts >= MAX_SEARCH_ATTEMPTS:
        return Transition(
            reply="😕 Let's start over.\nType the item name, or *menu* to see what's available.",
            clear_state=True,
            cart_patch={"item": None, "options": [], **_CLEARED_QUEUE},
            reset_attempts=True,
        )
    if attempts >= 2:
        reply += "\n\nType *back* to start over."
    return Transition(reply=reply)


def _queue_context(ctx: FlowContext) -> tuple[str, int | None]:
    entry = ctx.cart.current_queue_entry
    if entry is None:
        return "", None
    prefix = messages.queue_prefix(ctx.cart.multi_item_queue, ctx.cart.current_item_index)
    return prefix, entry.get("qty")


def present(result: SearchResult, *, prefix: str = "", queued_qty: int | None = None) -> Transition:
    """Turns a catalog search hit into the next prompt. ``NoMatch`` is the caller's job."""
    if isinstance(result, Matched):
        item = result.item.to_option()
        return Transition(
            reply=prefix + messages.qty_prompt(item, queued_qty),
            state=ConversationState.ORDERING_QTY,
            cart_patch={"item": item, "options": []},
            reset_attempts=True,
        )
    if isinstance(result, VariantChoice):
        return Transition(
            reply=prefix + messages.variant_list(result.variants),
            state=ConversationState.ORDERING_VARIANT,
            cart_patch={
                "item": {"canonical": result.canonical},
                "options": [variant.to_option() for variant in result.variants],
            },
            reset_attempts=True,
        )
    if isinstance(result, Ambiguous):
        return Transition(
            reply=prefix + messages.candidate_list(result.candidates),
            state=ConversationState.ORDERING_ITEM,
            cart_patch={"item": None, "options": [{"canonical": match.canonical} for match in result.candidates]},
            reset_attempts=True,
        )
    raise ValueError(f"cannot present {result!r}")


def _present_canonical(ctx: FlowContext, canonical: str) -> Transition:
    variants = variants_for(ctx.catalog, canonical)
    if not variants:
        raise MissingContextError(f"canonical {canonical!r} is no longer in the catalog")
    prefix, queued_qty = _queue_context(ctx)
    if len(variants) == 1:
        return present(Matched(variants[0]), prefix=prefix, queued_qty=queued_qty)
    return present(VariantChoice(canonical=canonical, variants=variants), prefix=prefix, queued_qty=queued_qty)


def _queue_not_found(prefix: str, name: str) -> str:
    return (
        f"{prefix}I couldn't find *{name}*.\n"
        "Type the item name again, or send *skip* to move to the next item."
    )


def _resolve_queue_entry(
    ctx: FlowContext,
    queue: list[dict[str, Any]],
    index: int,
    cart: list[dict[str, Any]],
) -> Transition:
    entry = queue[index]
    prefix = messages.queue_prefix(queue, index)
    base = {"cart": cart, "multi_item_queue": queue, "current_item_index": index}

    result = resolve_item(entry.get("name") or "", ctx.catalog)
    if isinstance(result, NoMatch):
        logger.info("[CART] queued item not found index=%s name=%r", index, entry.get("name"))
        return Transition(
            reply=_queue_not_found(prefix, entry.get("name") or ""),
            state=ConversationState.ORDERING_ITEM,
            cart_patch={**base, "item": None, "options": []},
        )

    transition = present(result, prefix=prefix, queued_qty=entry.get("qty"))
    transition.cart_patch = {**base, **(transition.cart_patch or {})}
    return transition


def go_to_confirm(cart: list[dict[str, Any]]) -> Transition:
    if not cart:
        return Transition(
            reply="Your cart is empty now.\nPlease type the item name to start a new order.",
            clear_state=True,
            clear_cart=True,
            reset_attempts=True,
        )
    return Transition(
        reply=messages.confirm_menu(cart),
        state=ConversationState.CONFIRMING_ORDER,
        cart_patch={"cart": cart, "item": None, "options": [], **_CLEARED_QUEUE},
        reset_attempts=True,
    )


def _advance_queue(ctx: FlowContext, cart: list[dict[str, Any]]) -> Transition:
    queue = ctx.cart.multi_item_queue
    index = ctx.cart.current_item_index
    if ctx.cart.has_queue and index + 1 < len(queue):
        return _resolve_queue_entry(ctx, queue, index + 1, cart)
    return go_to_confirm(cart)


def _global_search(ctx: FlowContext, text: str) -> Transition:
    if ctx.cart.has_queue and _is_skip(text):
        logger.info("[CART] queue skip index=%s", ctx.cart.current_item_index)
        return _advance_queue(ctx, ctx.cart.cart)

    result = resolve_item(text, ctx.catalog)
    if not isinstance(result, NoMatch):
        prefix, queued_qty = _queue_context(ctx)
        return present(result, prefix=prefix, queued_qty=queued_qty)

    if ctx.cart.has_queue:
        prefix, _ = _queue_context(ctx)
        return Transition(
            reply=_queue_not_found(prefix, text),
            state=ConversationState.ORDERING_ITEM,
            cart_patch={"item": None, "options": []},
        )

    attempts = inc_attempts(ctx.db, ctx.tenant_id, ctx.phone)
    logger.info("[CART] no catalog match attempts=%s", attempts)
    if attempts >= MAX_SEARCH_ATTEMPTS:
        return Transition(
            reply="😕 I still couldn't find that item.\nLet's start fresh. Type *menu* to see what's available.",
            clear_state=True,
            cart_patch={"item": None, "options": []},
            reset_attempts=True,
        )

    reply = f"I couldn't find that item.\n\n{format_quick_menu(ctx.catalog)}"
    if attempts >= 2:
        reply += "\n\nType *back* to start over."
    return Transition(reply=reply)


def handle_idle(ctx: FlowContext) -> Transition:
    item = ctx.cart.item or {}
    if item.get("upsell_product_id"):
        return handle_ordering_upsell(ctx)

    if ctx.cart.multi_item_queue:
        ctx.cart = save_cart(ctx.db, ctx.tenant_id, ctx.phone, dict(_CLEARED_QUEUE))

    if not ctx.catalog:
        return Transition(reply="⚠️ No items available right now.")

    queued = parse_multi_item(ctx.text)
    if queued:
        queue = [entry.to_dict() for entry in queued]
        logger.info("[CART] multi-item queue size=%s", len(queue))
        return _resolve_queue_entry(ctx, queue, 0, ctx.cart.cart)

    return _global_search(ctx, ctx.text)


def handle_ordering_item(ctx: FlowContext) -> Transition:
    options = ctx.cart.options
    if not options and not ctx.cart.has_queue:
        raise MissingContextError("ordering_item without a candidate list")

    if ctx.cart.has_queue and _is_skip(ctx.text):
        return _advance_queue(ctx, ctx.cart.cart)

    choice = parse_choice(ctx.text)
    if choice is not None and options:
        if not 1 <= choice <= len(options):
            return _retry(ctx, INVALID_CHOICE)
        return _present_canonical(ctx, options[choice - 1].get("canonical") or "")

    if options:
        index = fuzzy_choose_option(ctx.text, [option.get("canonical") or "" for option in options])
        if index is not None:
            return _present_canonical(ctx, options[index].get("canonical") or "")

    return _global_search(ctx, ctx.text)


def handle_ordering_variant(ctx: FlowContext) -> Transition:
    canonical = (ctx.cart.item or {}).get("canonical")
    if not canonical:
        raise MissingContextError("ordering_variant without a canonical item")
    variants = variants_for(ctx.catalog, canonical)
    if not variants:
        raise MissingContextError(f"canonical {canonical!r} is no longer in the catalog")

    prefix, queued_qty = _queue_context(ctx)
    options = ctx.cart.options or [variant.to_option() for variant in variants]

    choice = parse_choice(ctx.text)
    if choice is not None:
        if not 1 <= choice <= len(options):
            return _retry(ctx, INVALID_CHOICE)
        entry = find_entry(ctx.catalog, options[choice - 1].get("product_id"))
        if entry is None:
            raise MissingContextError("selected variant is no longer in the catalog")
        return present(Matched(entry), prefix=prefix, queued_qty=queued_qty)

    # variant words never fall through to a new catalog search
    result = choose_variant(canonical, variants, ctx.text)
    if isinstance(result, Matched):
        return present(result, prefix=prefix, queued_qty=queued_qty)
    if isinstance(result, VariantChoice):
        return Transition(
            reply=messages.variant_list(result.variants, header="I found multiple options:"),
            cart_patch={"options": [variant.to_option() for variant in result.variants]},
        )
    return _retry(
        ctx,
        "I couldn't find that variant.\n"
        "Please reply with the number from the list, or type the variant name again.",
    )


def _upsell_item(offer: UpsellOffer, source_product_id: int) -> dict[str, Any]:
    product = offer.product
    return {
        "upsell_product_id": product.id,
        "source_product_id": source_product_id,
        "name": product.display_name,
        "variant": product.variant,
        "price": product.price,
        "header": offer.header,
        "message": offer.message,
    }


def handle_ordering_qty(ctx: FlowContext) -> Transition:
    item = ctx.cart.item or {}
    if not item.get("product_id"):
        raise MissingContextError("ordering_qty without a selected item")

    qty = parse_quantity(ctx.text)
    queued = ctx.cart.current_queue_entry
    if qty is None and queued and ctx.text.strip() in _KEEP_QUEUED_QTY:
        qty = int(queued.get("qty") or 1)
    if qty is None or not 1 <= qty <= MAX_LINE_QTY:
        return _retry(ctx, f"Please enter a valid quantity like 1 or 2 (up to {MAX_LINE_QTY}).")

    line = {
        "product_id": item["product_id"],
        "name": item.get("name"),
        "variant": item.get("variant"),
        "qty": qty,
        "price": item.get("price"),
    }
    cart = [*ctx.cart.cart, line]
    logger.info("[CART] line added product_id=%s qty=%s lines=%s", line["product_id"], qty, len(cart))

    offer = get_upsell_offer(ctx.db, ctx.tenant_id, item["product_id"])
    in_cart = {entry.get("product_id") for entry in cart}
    if offer is not None and offer.product.id not in in_cart:
        upsell = _upsell_item(offer, item["product_id"])
        return Transition(
            reply=messages.upsell_prompt(upsell, ctx.config.vertical),
            state=ConversationState.ORDERING_UPSELL,
            cart_patch={"cart": cart, "item": upsell, "options": []},
        )

    return _advance_queue(ctx, cart)


def handle_ordering_upsell(ctx: FlowContext) -> Transition:
    offer = ctx.cart.item or {}
    if not offer.get("upsell_product_id"):
        raise MissingContextError("ordering_upsell without an offer")

    answer = ctx.text.strip()
    cart = list(ctx.cart.cart)
    if answer in _UPSELL_YES:
        cart.append(
            {
                "product_id": offer["upsell_product_id"],
                "name": offer.get("name"),
                "variant": offer.get("variant"),
                "qty": 1,
                "price": offer.get("price"),
                "upsell": True,
                "source_product_id": offer.get("source_product_id"),
            }
        )
        logger.info("[CART] upsell accepted product_id=%s", offer["upsell_product_id"])
    elif answer not in _UPSELL_NO:
        return Transition(
            reply=messages.upsell_prompt(offer, ctx.config.vertical),
            state=ConversationState.ORDERING_UPSELL,
        )

    return _advance_queue(ctx, cart)
