from __future__ import annotations

from chatorder.models.order import Order
from chatorder.services.event_bus import event_bus

ORDER_CREATED = "order.created"
ORDER_STORE_ACTION_REQUIRED = "order.store_action_required"
ORDER_CANCELLED = "order.cancelled"


def build_order_payload(order: Order) -> dict:
    return {
        "order_id": order.id,
        "tenant_id": order.tenant_id,
        "customer_phone": order.customer_phone,
        "status": order.status,
        "total_amount": float(order.total_amount or 0),
        "delivery_type": order.delivery_type,
        "delivery_fee": order.delivery_fee,
        "payment_mode": order.payment_mode,
        "payment_status": order.payment_status,
        "items": list(order.items or []),
    }


def emit_order_created(order: Order) -> None:
    event_bus.emit(ORDER_CREATED, build_order_payload(order))


def emit_store_action_required(order: Order) -> None:
    event_bus.emit(ORDER_STORE_ACTION_REQUIRED, build_order_payload(order))


def emit_order_cancelled(order: Order) -> None:
    event_bus.emit(ORDER_CANCELLED, build_order_payload(order))
