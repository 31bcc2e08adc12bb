from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from chatorder.fsm.states import ConversationState
from chatorder.services.catalog import CatalogEntry
from chatorder.services.delivery_quote import Coordinates
from chatorder.services.session_store import CartSnapshot
from chatorder.services.tenant_config import TenantConfig


@dataclass
class FlowContext:
    """Everything a state handler may look at for one inbound message."""

    db: Session
    config: TenantConfig
    phone: str
    state: ConversationState
    raw_text: str
    text: str
    cart: CartSnapshot = field(default_factory=CartSnapshot)
    catalog: list[CatalogEntry] = field(default_factory=list)
    location: Coordinates | None = None

    @property
    def tenant_id(self) -> int:
        return self.config.tenant_id


@dataclass
class Transition:
    """What a handler wants written back.

    ``state=None`` keeps the current state. ``cart_patch`` is merged into the
    working cart unless ``clear_cart`` drops the row.
    """

    reply: str
    state: ConversationState | None = None
    clear_state: bool = False
    cart_patch: dict[str, Any] | None = None
    clear_cart: bool = False
    reset_attempts: bool = False
    order_id: int | None = None
    image: str | None = None
    kind: str = "order"
