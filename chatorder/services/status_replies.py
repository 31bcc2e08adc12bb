from __future__ import annotations

import re

from sqlalchemy.orm import Session

from chatorder.services.orders import find_latest_order

STATUS_LABELS = {
    "awaiting_customer_action": "📝 Waiting for your delivery / payment details",
    "awaiting_payment_proof": "💳 Waiting for your payment",
    "awaiting_store_action": "🕒 Pending (waiting for store confirmation)",
    "pending": "🕒 Pending (waiting for store confirmation)",
    "accepted": "🟢 Accepted (order is being prepared)",
    "preparing": "👨‍🍳 Preparing your order",
    "ready": "📦 Ready for pickup",
    "out_for_delivery": "🚗 Out for delivery",
    "delivered": "✅ Delivered",
    "cancelled": "❌ Cancelled",
}

_STATUS_WORDS = re.compile(r"\b(order status|status|track|tracking|where is my order)\b")


def is_status_request(text: str | None) -> bool:
    return _STATUS_WORDS.search((text or "").lower()) is not None


def status_label(status: str | None) -> str:
    return STATUS_LABELS.get(status or "", status or "unknown")


def order_status_reply(db: Session, tenant_id: int, phone: str) -> tuple[str, int | None]:
    """Reply for "where is my order" plus the id of the order it talks about."""
    order = find_latest_order(db, tenant_id, phone)
    if order is None:
        return (
            "📭 You don't have any orders yet.\n"
            "You can start ordering by typing the item name (e.g., *Chicken Biryani*).",
            None,
        )
    return (
        f"📦 *Order Status (#{order.id})*\n"
        f"{status_label(order.status)}\n\n"
        "If you want to order something else, just type the item name.",
        order.id,
    )
