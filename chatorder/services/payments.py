from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from chatorder.errors import IntegrationError
from chatorder.integrations.payment_links import (
    PAYMENT_LINK_INTEGRATION,
    PaymentLink,
    get_payment_link_provider,
)
from chatorder.models.order import Order
from chatorder.services.formatting import format_amount
from chatorder.services.integration_guard import integration_guard
from chatorder.services.orders import update_order
from chatorder.services.tenant_config import TenantConfig

logger = logging.getLogger(__name__)

PAYMENT_MODE_LABELS = {
    "cash": "Cash on Delivery",
    "card": "Card on Delivery",
    "upi": "UPI",
    "online": "Online Payment",
}


def grand_total(order: Order) -> float:
    return round(float(order.total_amount or 0) + float(order.delivery_fee or 0), 2)


def delivery_fee_line(fee: float | None) -> str:
    if fee is None:
        return "🚚 Delivery fee: will be confirmed by the store"
    if float(fee) <= 0:
        return "🚚 Delivery fee: FREE"
    return f"🚚 Delivery fee: {format_amount(fee)}"


def order_summary(order: Order) -> str:
    lines = [f"🧾 *Order #{order.id}*", f"Items: {format_amount(order.total_amount or 0)}"]
    if order.delivery_type == "delivery":
        lines.append(delivery_fee_line(order.delivery_fee))
    lines.append(f"💰 Total: *{format_amount(grand_total(order))}*")
    return "\n".join(lines)


def issue_payment_link(db: Session, config: TenantConfig, order: Order, amount: float | None = None) -> PaymentLink | None:
    """Creates a hosted payment link and stores it on the order.

    Returns None when the tenant has no credentials or the provider failed; the
    caller then falls back to the QR / manual instructions.
    """
    provider = get_payment_link_provider(config.razorpay_key_id, config.razorpay_key_secret)
    if provider is None:
        logger.info("[PAYMENT][LINK] no credentials tenant=%s order_id=%s", config.tenant_id, order.id)
        return None

    total = grand_total(order) if amount is None else amount
    try:
        link = integration_guard.call(
            tenant_id=config.tenant_id,
            integration=PAYMENT_LINK_INTEGRATION,
            fn=lambda: provider.create_link(order_id=order.id, amount=total, customer_phone=order.customer_phone),
        )
    except IntegrationError as exc:
        logger.warning("[PAYMENT][LINK] failed order_id=%s: %s", order.id, exc.detail)
        return None

    update_order(
        db,
        order,
        {
            "payment_provider": link.provider,
            "payment_link_id": link.id,
            "payment_link_url": link.url,
        },
    )
    logger.info("[PAYMENT][LINK] created order_id=%s link_id=%s", order.id, link.id)
    return link
