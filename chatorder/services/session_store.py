from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.orm import Session

from chatorder.core.config import STATE_TTL_MIN
from chatorder.fsm.states import ConversationState, normalize_state
from chatorder.models.conversation_session import ConversationSession
from chatorder.models.working_cart import WorkingCart

logger = logging.getLogger(__name__)

# snapshot field -> working_carts column
_CART_COLUMNS = {
    "item": "item",
    "options": "list",
    "cart": "cart",
    "multi_item_queue": "multi_item_queue",
    "current_item_index": "current_item_index",
}


@dataclass
class SessionState:
    state: ConversationState
    expired: bool = False


@dataclass
class CartSnapshot:
    item: dict[str, Any] | None = None
    options: list[dict[str, Any]] = field(default_factory=list)
    cart: list[dict[str, Any]] = field(default_factory=list)
    multi_item_queue: list[dict[str, Any]] = field(default_factory=list)
    current_item_index: int | None = None

    @property
    def has_queue(self) -> bool:
        return bool(self.multi_item_queue) and self.current_item_index is not None

    @property
    def current_queue_entry(self) -> dict[str, Any] | None:
        if not self.has_queue:
            return None
        return self.multi_item_queue[self.current_item_index]

    def is_empty(self) -> bool:
        return not (self.item or self.options or self.cart or self.multi_item_queue)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        # SQLite hands back naive values
        return value.replace(tzinfo=timezone.utc)
    return value


def _get_session_row(db: Session, tenant_id: int, phone: str) -> ConversationSession | None:
    return (
        db.query(ConversationSession)
        .filter(ConversationSession.tenant_id == tenant_id, ConversationSession.customer_phone == phone)
        .first()
    )


def _get_cart_row(db: Session, tenant_id: int, phone: str) -> WorkingCart | None:
    return (
        db.query(WorkingCart)
        .filter(WorkingCart.tenant_id == tenant_id, WorkingCart.customer_phone == phone)
        .first()
    )


def _snapshot(row: WorkingCart | None) -> CartSnapshot:
    if row is None:
        return CartSnapshot()
    item = row.item if isinstance(row.item, dict) else None
    options = row.list if isinstance(row.list, list) else []
    cart = row.cart if isinstance(row.cart, list) else []
    queue = row.multi_item_queue if isinstance(row.multi_item_queue, list) else []
    index = row.current_item_index
    if not queue or index is None or not 0 <= index < len(queue):
        queue, index = [], None
    return CartSnapshot(
        item=item,
        options=list(options),
        cart=list(cart),
        multi_item_queue=list(queue),
        current_item_index=index,
    )


def get_state(db: Session, tenant_id: int, phone: str, *, ttl_minutes: int = STATE_TTL_MIN) -> SessionState:
    """Current state for the customer; a stale in-flight session is wiped and reported as expired."""
    row = _get_session_row(db, tenant_id, phone)
    cart_row = _get_cart_row(db, tenant_id, phone)
    state = normalize_state(row.state if row else None)

    in_flight = state != ConversationState.IDLE or not _snapshot(cart_row).is_empty()
    if not in_flight:
        return SessionState(state=state)

    touched = [
        stamp
        for stamp in (_as_utc(row.updated_at) if row else None, _as_utc(cart_row.updated_at) if cart_row else None)
        if stamp is not None
    ]
    if touched and _utcnow() - max(touched) > timedelta(minutes=ttl_minutes):
        logger.info("[SESSION] expired tenant=%s state=%s", tenant_id, state.value)
        clear_state(db, tenant_id, phone)
        clear_cart(db, tenant_id, phone)
        return SessionState(state=ConversationState.IDLE, expired=True)

    return SessionState(state=state)


def set_state(db: Session, tenant_id: int, phone: str, state: ConversationState | str) -> None:
    normalized = normalize_state(state.value if isinstance(state, ConversationState) else state)
    row = _get_session_row(db, tenant_id, phone)
    if row is None:
        row = ConversationSession(tenant_id=tenant_id, customer_phone=phone)
        db.add(row)
    row.state = normalized.value
    row.updated_at = _utcnow()
    db.commit()


def clear_state(db: Session, tenant_id: int, phone: str) -> None:
    row = _get_session_row(db, tenant_id, phone)
    if row is None:
        return
    # the row also carries manual mode, so it is reset rather than deleted
    row.state = ConversationState.IDLE.value
    row.updated_at = _utcnow()
    db.commit()


def get_cart(db: Session, tenant_id: int, phone: str) -> CartSnapshot:
    return _snapshot(_get_cart_row(db, tenant_id, phone))


def save_cart(db: Session, tenant_id: int, phone: str, patch: dict[str, Any]) -> CartSnapshot:
    """Merges the given snapshot fields into the stored working cart.

    Keys absent from ``patch`` keep their stored value. The queue and its cursor are
    written together: an empty queue or an out of range cursor clears both.
    """
    unknown = set(patch) - set(_CART_COLUMNS)
    if unknown:
        raise ValueError(f"unknown working cart fields: {sorted(unknown)}")

    row = _get_cart_row(db, tenant_id, phone)
    if row is None:
        row = WorkingCart(tenant_id=tenant_id, customer_phone=phone)
        db.add(row)

    for key, column in _CART_COLUMNS.items():
        if key in patch:
            setattr(row, column, patch[key])

    queue = row.multi_item_queue if isinstance(row.multi_item_queue, list) else []
    index = row.current_item_index
    if not queue or index is None or not 0 <= index < len(queue):
        row.multi_item_queue = None
        row.current_item_index = None

    row.updated_at = _utcnow()
    db.commit()
    return _snapshot(row)


def clear_cart(db: Session, tenant_id: int, phone: str) -> None:
    row = _get_cart_row(db, tenant_id, phone)
    if row is None:
        return
    db.delete(row)
    db.commit()


def is_manual_mode(db: Session, tenant_id: int, phone: str) -> bool:
    row = _get_session_row(db, tenant_id, phone)
    if row is None or not row.manual_mode:
        return False
    until = _as_utc(row.manual_mode_until)
    if until is not None and until <= _utcnow():
        return False
    return True


def set_manual_mode(
    db: Session,
    tenant_id: int,
    phone: str,
    enabled: bool,
    *,
    minutes: int | None = None,
) -> None:
    row = _get_session_row(db, tenant_id, phone)
    if row is None:
        row = ConversationSession(tenant_id=tenant_id, customer_phone=phone, state=ConversationState.IDLE.value)
        db.add(row)
    row.manual_mode = enabled
    row.manual_mode_until = _utcnow() + timedelta(minutes=minutes) if enabled and minutes else None
    db.commit()
