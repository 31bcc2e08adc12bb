from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable

from sqlalchemy.orm import Session

from chatorder.models.order import Order
from chatorder.services.order_events import emit_order_cancelled, emit_order_created

logger = logging.getLogger(__name__)

AWAITING_CUSTOMER_ACTION = "awaiting_customer_action"
AWAITING_STORE_ACTION = "awaiting_store_action"
AWAITING_PAYMENT_PROOF = "awaiting_payment_proof"
CANCELLED = "cancelled"

# Orders the fulfillment step may still act on
ACTIVE_STATUSES = (AWAITING_CUSTOMER_ACTION, AWAITING_STORE_ACTION, "accepted")

# Orders still waiting for money from the customer
OPEN_PAYMENT_STATUSES = (
    "draft",
    "pending",
    "pending_payment",
    "awaiting_payment_or_method",
    "awaiting_fulfillment",
    "awaiting_payment",
    AWAITING_PAYMENT_PROOF,
    "awaiting_pickup_payment",
    AWAITING_CUSTOMER_ACTION,
)

CANCELLABLE_STATUSES = (
    AWAITING_CUSTOMER_ACTION,
    "awaiting_payment",
    AWAITING_PAYMENT_PROOF,
    "awaiting_pickup_payment",
    "pending_payment",
    "draft",
    "pending",
)

_MUTABLE_FIELDS = frozenset(
    {
        "status",
        "delivery_type",
        "delivery_address_text",
        "delivery_lat",
        "delivery_lng",
        "delivery_distance_km",
        "delivery_fee",
        "delivery_status",
        "payment_mode",
        "payment_status",
        "payment_provider",
        "payment_link_id",
        "payment_link_url",
        "cancelled_at",
    }
)


def _line_total(entry: dict[str, Any]) -> float:
    try:
        price = float(entry.get("price") or 0)
        qty = int(entry.get("qty") or 0)
    except (TypeError, ValueError):
        return 0.0
    return price * qty


def cart_total(cart: Iterable[dict[str, Any]]) -> float:
    return round(sum(_line_total(entry) for entry in cart), 2)


def create_order(
    db: Session,
    tenant_id: int,
    phone: str,
    line_items: list[dict[str, Any]],
    total: float,
    *,
    raw_text: str | None = None,
) -> Order:
    order = Order(
        tenant_id=tenant_id,
        customer_phone=phone,
        items=[dict(entry) for entry in line_items],
        raw_text=raw_text,
        total_amount=total,
        status=AWAITING_CUSTOMER_ACTION,
        payment_status="unpaid",
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info("[ORDER] created order_id=%s items=%s total=%s", order.id, len(line_items), total)
    emit_order_created(order)
    return order


def get_order(db: Session, tenant_id: int, order_id: int) -> Order | None:
    return db.query(Order).filter(Order.tenant_id == tenant_id, Order.id == order_id).first()


def update_order(db: Session, order: Order, patch: dict[str, Any]) -> Order:
    """Writes fulfillment / payment fields. The line item snapshot is never touched."""
    unknown = set(patch) - _MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"order fields are not mutable here: {sorted(unknown)}")
    for key, value in patch.items():
        setattr(order, key, value)
    db.commit()
    db.refresh(order)
    return order


def update_order_if_status(
    db: Session,
    order_id: int,
    expected_statuses: Iterable[str],
    patch: dict[str, Any],
) -> bool:
    """Conditional update: only applies while the order is still in one of ``expected_statuses``.

    A retried payment callback or a duplicated message cannot move the order twice.
    """
    unknown = set(patch) - _MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"order fields are not mutable here: {sorted(unknown)}")
    updated = (
        db.query(Order)
        .filter(Order.id == order_id, Order.status.in_(list(expected_statuses)))
        .update(patch, synchronize_session="fetch")
    )
    db.commit()
    return bool(updated)


def mark_order_paid(db: Session, order_id: int) -> bool:
    """Applies an external payment confirmation once."""
    updated = (
        db.query(Order)
        .filter(
            Order.id == order_id,
            Order.status.in_(list(OPEN_PAYMENT_STATUSES)),
            Order.payment_status != "paid",
        )
        .update({"payment_status": "paid", "status": AWAITING_STORE_ACTION}, synchronize_session="fetch")
    )
    db.commit()
    return bool(updated)


def find_latest_open_order(
    db: Session,
    tenant_id: int,
    phone: str,
    statuses: Iterable[str] = ACTIVE_STATUSES,
) -> Order | None:
    return (
        db.query(Order)
        .filter(
            Order.tenant_id == tenant_id,
            Order.customer_phone == phone,
            Order.status.in_(list(statuses)),
        )
        .order_by(Order.created_at.desc(), Order.id.desc())
        .first()
    )


def find_latest_order(db: Session, tenant_id: int, phone: str) -> Order | None:
    return (
        db.query(Order)
        .filter(Order.tenant_id == tenant_id, Order.customer_phone == phone)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .first()
    )


def cancel_order(db: Session, order: Order) -> Order:
    order.status = CANCELLED
    order.cancelled_at = datetime.now(timezone.utc)
    if order.payment_status != "paid":
        order.payment_status = "unpaid"
    db.commit()
    db.refresh(order)
    logger.info("[ORDER] cancelled order_id=%s", order.id)
    emit_order_cancelled(order)
    return order


def cancel_latest_order(db: Session, tenant_id: int, phone: str) -> Order | None:
    order = find_latest_open_order(db, tenant_id, phone, CANCELLABLE_STATUSES)
    if order is None:
        return None
    return cancel_order(db, order)
