from __future__ import annotations

import logging
import re

from sqlalchemy.orm import Session

from chatorder.fsm.context import Transition
from chatorder.services.attempts import reset_attempts
from chatorder.services.orders import cancel_latest_order
from chatorder.services.session_store import clear_cart, clear_state

logger = logging.getLogger(__name__)

RESET_WORDS = ("reset", "restart", "start over", "start again", "new order", "clear", "clear all", "fresh start")
CANCEL_WORDS = ("cancel", "cancel order", "cancel my order", "dont send", "don't send")
BACK_WORDS = ("back", "go back", "exit")

_ESCAPE_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(word) for word in (*RESET_WORDS, *CANCEL_WORDS, *BACK_WORDS)) + r")\b",
    re.IGNORECASE,
)


def is_escape_request(raw: str | None) -> bool:
    return _ESCAPE_PATTERN.search((raw or "").strip()) is not None


def apply_escape(db: Session, tenant_id: int, phone: str) -> Transition:
    """Works from every state: drops the flow and cancels the latest cancellable order."""
    cancelled = cancel_latest_order(db, tenant_id, phone)
    clear_state(db, tenant_id, phone)
    clear_cart(db, tenant_id, phone)
    reset_attempts(db, tenant_id, phone)

    if cancelled is not None:
        logger.info("[ESCAPE] flow reset, order_id=%s cancelled", cancelled.id)
        return Transition(
            reply=(
                f"🛑 Your order #{cancelled.id} has been *cancelled*.\n"
                "Type the item name whenever you want to order again."
            ),
            order_id=cancelled.id,
            kind="reset",
        )

    logger.info("[ESCAPE] flow reset")
    return Transition(
        reply="✅ Done, I cleared the current flow.\nType the item name to start a new order.",
        kind="reset",
    )
