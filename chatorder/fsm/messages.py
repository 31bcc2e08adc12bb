from __future__ import annotations

from typing import Any

from chatorder.services.catalog import CatalogEntry
from chatorder.services.catalog_search import CanonicalMatch
from chatorder.services.formatting import format_amount
from chatorder.services.orders import cart_total

RESTAURANT_UPSELL_HEADER = "Popular add-on 🔥\nIt goes well with your order 😊"

_ORDINAL_SUFFIX = {1: "st", 2: "nd", 3: "rd"}


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        return f"{n}th"
    return f"{n}{_ORDINAL_SUFFIX.get(n % 10, 'th')}"


def line_label(name: str | None, variant: str | None) -> str:
    name = name or "Item"
    return f"{name} ({variant})" if variant else name


def price_suffix(price: Any) -> str:
    if price is None:
        return ""
    return f" - {format_amount(price)}"


def queue_prefix(queue: list[dict[str, Any]], index: int | None) -> str:
    if not queue or index is None or not 0 <= index < len(queue):
        return ""
    entry = queue[index]
    raw = entry.get("raw") or entry.get("name") or ""
    return f"For your {ordinal(index + 1)} item ({index + 1} of {len(queue)}) - *{raw}*:\n"


def qty_prompt(item: dict[str, Any], queued_qty: int | None = None) -> str:
    label = line_label(item.get("name"), item.get("variant"))
    lines = [f"How many *{label}*?{price_suffix(item.get('price'))}"]
    if queued_qty:
        lines.append(f"(you asked for *{queued_qty}*, reply *ok* to keep it or send another number)")
    return "\n".join(lines)


def variant_list(variants: list[CatalogEntry], header: str = "Please choose an option:") -> str:
    lines = [header]
    for index, entry in enumerate(variants, start=1):
        variant = f" - {entry.variant}" if entry.variant else ""
        lines.append(f"{index}) {entry.display_name}{variant}{price_suffix(entry.price)}")
    lines.append("")
    lines.append("Reply with the number or type the option name.")
    return "\n".join(lines)


def candidate_list(candidates: list[CanonicalMatch]) -> str:
    lines = ["I found multiple items:"]
    for index, match in enumerate(candidates, start=1):
        lines.append(f"{index}) {match.canonical}")
    lines.append("")
    lines.append("Reply with the number.")
    return "\n".join(lines)


def cart_lines(cart: list[dict[str, Any]]) -> str:
    lines = []
    for index, entry in enumerate(cart, start=1):
        qty = int(entry.get("qty") or 0)
        price = float(entry.get("price") or 0)
        lines.append(
            f"{index}) {line_label(entry.get('name'), entry.get('variant'))} x {qty} - {format_amount(price * qty)}"
        )
    lines.append("")
    lines.append(f"💰 Total: *{format_amount(cart_total(cart))}*")
    return "\n".join(lines)


def confirm_menu(cart: list[dict[str, Any]]) -> str:
    return (
        f"🧺 Your cart:\n{cart_lines(cart)}\n\n"
        "1) Confirm order\n"
        "2) Edit your order\n\n"
        "Please reply with the number."
    )


def edit_menu() -> str:
    return "\n".join(
        [
            "✏️ What would you like to change?",
            "1) Add another item",
            "2) Change quantity",
            "3) Remove an item",
            "4) Cancel order",
            "5) Back to cart",
        ]
    )


def pick_line_prompt(cart: list[dict[str, Any]], action: str) -> str:
    lines = [f"Which item do you want to {action}?"]
    for index, entry in enumerate(cart, start=1):
        lines.append(f"{index}) {line_label(entry.get('name'), entry.get('variant'))} x {entry.get('qty')}")
    lines.append("")
    lines.append("Reply with the number.")
    return "\n".join(lines)


def upsell_prompt(offer: dict[str, Any], vertical: str) -> str:
    header = offer.get("header") or (RESTAURANT_UPSELL_HEADER if vertical == "restaurant" else "")
    label = line_label(offer.get("name"), offer.get("variant"))
    body = offer.get("message") or f"Would you like to add *{label}*{price_suffix(offer.get('price'))}?"
    prompt = f"{body}\n\n1) Yes\n2) No\n3) Skip"
    return f"{header}\n\n{prompt}" if header else prompt


def fulfillment_menu() -> str:
    return "How would you like to get your order?\n1) Store Pickup\n2) Home Delivery\n\nPlease type *1* or *2*."


def payment_menu() -> str:
    return (
        "💳 How would you like to pay?\n"
        "1) Cash\n"
        "2) Online Payment\n\n"
        "Or type: *cash* / *online* / *upi* / *card*"
    )


def pickup_payment_menu() -> str:
    return "1) Resend payment link\n2) I have paid\n3) Cancel order"
