from datetime import datetime, timedelta, timezone

from chatorder.dispatcher import handle_message
from chatorder.fsm.payment import detect_payment_mode, detect_pickup_action
from chatorder.fsm.states import ConversationState
from chatorder.integrations.payment_links import PaymentLink
from chatorder.models.tenant import Tenant
from chatorder.services import payments
from chatorder.services.event_bus import event_bus
from chatorder.services.order_events import ORDER_STORE_ACTION_REQUIRED
from chatorder.services.orders import create_order, mark_order_paid
from chatorder.services.session_store import get_state, set_state
from tests.fixtures_data import CUSTOMER_PHONE, TENANT_ID

CART = [
    {"product_id": 1, "name": "Chicken Biryani", "variant": None, "qty": 2, "price": 180.0},
    {"product_id": 2, "name": "Coke", "variant": None, "qty": 1, "price": 40.0},
]


class _FakeLinks:
    name = "razorpay"

    def __init__(self):
        self.amounts = []

    def create_link(self, *, order_id, amount, customer_phone):
        self.amounts.append(amount)
        return PaymentLink(id=f"plink_{order_id}", url=f"https://rzp.io/i/{order_id}")


def _order_in(db, state, **fields):
    order = create_order(db, TENANT_ID, CUSTOMER_PHONE, CART, 400.0)
    for key, value in fields.items():
        setattr(order, key, value)
    db.commit()
    set_state(db, TENANT_ID, CUSTOMER_PHONE, state)
    return order


def _send(db, text):
    return handle_message(db, TENANT_ID, CUSTOMER_PHONE, text)


def _state(db):
    return get_state(db, TENANT_ID, CUSTOMER_PHONE).state


def _update_tenant(db, **fields):
    db.query(Tenant).filter(Tenant.id == TENANT_ID).update(fields)
    db.commit()


def test_payment_mode_detection():
    assert detect_payment_mode("1") == "cash"
    assert detect_payment_mode("2") == "online"
    assert detect_payment_mode("COD please") == "cash"
    assert detect_payment_mode("gpay") == "upi"
    assert detect_payment_mode("credit card") == "card"
    assert detect_payment_mode("send link") == "online"
    assert detect_payment_mode("maybe") is None


def test_pickup_action_detection():
    assert detect_pickup_action("1") == "resend"
    assert detect_pickup_action("i have paid") == "paid"
    assert detect_pickup_action("please cancel") == "cancel"
    assert detect_pickup_action("new link") == "regenerate"
    assert detect_pickup_action("link?") == "resend"
    assert detect_pickup_action("hmm") is None


def test_delivery_choice_goes_to_payment(restaurant_db):
    order = _order_in(restaurant_db, ConversationState.AWAITING_FULFILLMENT)

    result = _send(restaurant_db, "2")

    assert _state(restaurant_db) == ConversationState.AWAITING_PAYMENT
    assert "Home Delivery selected" in result.reply
    restaurant_db.refresh(order)
    assert order.delivery_type == "delivery"


def test_unclear_fulfillment_repeats_menu(restaurant_db):
    _order_in(restaurant_db, ConversationState.AWAITING_FULFILLMENT)

    result = _send(restaurant_db, "hmm")

    assert "1) Store Pickup" in result.reply
    assert _state(restaurant_db) == ConversationState.AWAITING_FULFILLMENT


def test_pickup_without_credentials_marks_link_pending(restaurant_db):
    order = _order_in(restaurant_db, ConversationState.AWAITING_FULFILLMENT)

    result = _send(restaurant_db, "pickup")

    assert _state(restaurant_db) == ConversationState.AWAITING_PICKUP_PAYMENT
    assert "Store Pickup selected" in result.reply
    assert "being generated" in result.reply
    assert "Biryani House" in result.reply
    restaurant_db.refresh(order)
    assert order.delivery_type == "pickup"
    assert order.delivery_fee == 0
    assert order.payment_mode == "online"
    assert order.payment_status == "pending"


def test_pickup_with_payment_link(restaurant_db, monkeypatch):
    links = _FakeLinks()
    monkeypatch.setattr(payments, "get_payment_link_provider", lambda key_id, key_secret: links)
    order = _order_in(restaurant_db, ConversationState.AWAITING_FULFILLMENT)

    result = _send(restaurant_db, "1")

    assert f"https://rzp.io/i/{order.id}" in result.reply
    assert links.amounts == [400.0]
    restaurant_db.refresh(order)
    assert order.payment_link_id == f"plink_{order.id}"
    assert order.payment_provider == "razorpay"


def test_cash_hands_order_to_store(restaurant_db):
    order = _order_in(restaurant_db, ConversationState.AWAITING_PAYMENT, delivery_type="delivery", delivery_fee=45.0)
    received = []
    unsubscribe = event_bus.subscribe(ORDER_STORE_ACTION_REQUIRED, received.append)
    try:
        result = _send(restaurant_db, "cash")
    finally:
        unsubscribe()

    assert _state(restaurant_db) == ConversationState.IDLE
    assert "Cash on Delivery" in result.reply
    assert "₹445" in result.reply
    assert "Estimated delivery" in result.reply
    restaurant_db.refresh(order)
    assert order.status == "awaiting_store_action"
    assert order.payment_mode == "cash"
    assert order.payment_status == "unpaid"
    assert [event["order_id"] for event in received] == [order.id]


def test_repeated_payment_choice_does_not_move_order_twice(restaurant_db):
    order = _order_in(restaurant_db, ConversationState.AWAITING_PAYMENT)
    _send(restaurant_db, "card")
    set_state(restaurant_db, TENANT_ID, CUSTOMER_PHONE, ConversationState.AWAITING_PAYMENT)

    result = _send(restaurant_db, "cash")

    assert result.reply == "Let's start again. Please type the item name."
    restaurant_db.refresh(order)
    assert order.payment_mode == "card"


def test_online_without_link_or_qr_warns(restaurant_db):
    order = _order_in(restaurant_db, ConversationState.AWAITING_PAYMENT)

    result = _send(restaurant_db, "online")

    assert _state(restaurant_db) == ConversationState.AWAITING_PAYMENT_PROOF
    assert "Payment details are not configured" in result.reply
    restaurant_db.refresh(order)
    assert order.status == "awaiting_payment_proof"
    assert order.payment_status == "pending"


def test_upi_shows_qr_image(restaurant_db):
    _update_tenant(restaurant_db, payment_qr_url="https://cdn.example.com/qr.png", payment_instructions="UPI: biryani@upi")
    _order_in(restaurant_db, ConversationState.AWAITING_PAYMENT)

    result = _send(restaurant_db, "upi")

    assert result.image == "https://cdn.example.com/qr.png"
    assert "UPI: biryani@upi" in result.reply
    assert "Scan the QR code" in result.reply


def test_online_prefers_hosted_link(restaurant_db, monkeypatch):
    monkeypatch.setattr(payments, "get_payment_link_provider", lambda key_id, key_secret: _FakeLinks())
    _update_tenant(restaurant_db, payment_qr_url="https://cdn.example.com/qr.png")
    order = _order_in(restaurant_db, ConversationState.AWAITING_PAYMENT)

    result = _send(restaurant_db, "2")

    assert f"https://rzp.io/i/{order.id}" in result.reply
    assert result.image is None


def test_paid_claim_is_acknowledged_but_not_trusted(restaurant_db):
    order = _order_in(
        restaurant_db,
        ConversationState.AWAITING_PAYMENT_PROOF,
        status="awaiting_payment_proof",
        payment_status="pending",
    )

    result = _send(restaurant_db, "paid")

    assert "verifying your payment" in result.reply
    assert _state(restaurant_db) == ConversationState.AWAITING_PAYMENT_PROOF
    restaurant_db.refresh(order)
    assert order.payment_status == "pending"

    assert mark_order_paid(restaurant_db, order.id)
    assert not mark_order_paid(restaurant_db, order.id)

    done = _send(restaurant_db, "hello?")
    assert "Payment already received" in done.reply
    assert _state(restaurant_db) == ConversationState.IDLE


def test_pickup_payment_actions(restaurant_db, monkeypatch):
    order = _order_in(
        restaurant_db,
        ConversationState.AWAITING_PICKUP_PAYMENT,
        delivery_type="pickup",
        delivery_fee=0.0,
        payment_mode="online",
        payment_status="pending",
    )

    waiting = _send(restaurant_db, "2")
    assert "haven't received your payment" in waiting.reply

    failed = _send(restaurant_db, "1")
    assert "couldn't create a payment link" in failed.reply

    monkeypatch.setattr(payments, "get_payment_link_provider", lambda key_id, key_secret: _FakeLinks())
    regenerated = _send(restaurant_db, "1")
    assert "Here is your new payment link" in regenerated.reply

    resent = _send(restaurant_db, "resend")
    assert "Here is your payment link" in resent.reply
    assert f"https://rzp.io/i/{order.id}" in resent.reply

    cancelled = _send(restaurant_db, "3")
    assert "has been *cancelled*" in cancelled.reply
    assert _state(restaurant_db) == ConversationState.IDLE
    restaurant_db.refresh(order)
    assert order.status == "cancelled"


def test_stale_pickup_payment_is_cancelled(restaurant_db):
    order = _order_in(
        restaurant_db,
        ConversationState.AWAITING_PICKUP_PAYMENT,
        delivery_type="pickup",
        payment_status="pending",
        created_at=datetime.now(timezone.utc) - timedelta(minutes=45),
    )

    result = _send(restaurant_db, "1")

    assert "Payment time expired" in result.reply
    restaurant_db.refresh(order)
    assert order.status == "cancelled"
    assert _state(restaurant_db) == ConversationState.IDLE
