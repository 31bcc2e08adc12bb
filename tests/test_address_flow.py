import pytest

from chatorder.dispatcher import handle_message
from chatorder.errors import IntegrationError
from chatorder.fsm import address
from chatorder.fsm.states import ConversationState
from chatorder.models.catalog_item import CatalogItem
from chatorder.models.order import Order
from chatorder.models.tenant import Tenant
from chatorder.schemas.ingest import LocationPin
from chatorder.services.delivery_quote import Coordinates
from chatorder.services.orders import create_order
from chatorder.services.session_store import get_state, set_state
from tests.fixtures_data import CUSTOMER_PHONE, GROCERY_TENANT, LOCATION_7_5_KM_EAST, LOCATION_FAR_AWAY

GROCERY_ID = GROCERY_TENANT["id"]

STORE_WITH_PRICING = {
    "store_lat": 13.0850,
    "store_lng": 80.2101,
    "delivery_free_km": 3.0,
    "delivery_max_km": 10.0,
    "delivery_fee_type": "per_km",
    "delivery_per_km_fee": 10.0,
}


class _StubGeocoder:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def geocode(self, address_text):
        self.calls.append(address_text)
        if self.error is not None:
            raise self.error
        return self.result


def _seed_grocery(db, **overrides):
    db.add(Tenant(**{**GROCERY_TENANT, **overrides}))
    db.add(CatalogItem(id=101, tenant_id=GROCERY_ID, canonical_name="Ponni Rice", display_name="Ponni Rice", price=70.0))
    db.commit()


def _order_waiting_for(db, state):
    order = create_order(db, GROCERY_ID, CUSTOMER_PHONE, [{"product_id": 101, "qty": 2, "price": 70.0}], 140.0)
    set_state(db, GROCERY_ID, CUSTOMER_PHONE, state)
    return order


def _send(db, text, location=None):
    return handle_message(db, GROCERY_ID, CUSTOMER_PHONE, text, location)


def _state(db):
    return get_state(db, GROCERY_ID, CUSTOMER_PHONE).state


def test_address_heuristic():
    assert address.looks_like_address("12 Gandhi Street, Anna Nagar")
    assert address.looks_like_address("12/4 bazaar")
    assert address.looks_like_address("near temple")
    assert not address.looks_like_address("ok")
    assert not address.looks_like_address("")


def test_grocery_confirmation_asks_for_address(db):
    _seed_grocery(db)

    _send(db, "ponni rice")
    _send(db, "2")
    result = _send(db, "1")

    assert _state(db) == ConversationState.AWAITING_ADDRESS
    assert "Please send your delivery address" in result.reply


def test_address_without_coordinates_defers_fee(db, monkeypatch):
    _seed_grocery(db)
    order = _order_waiting_for(db, ConversationState.AWAITING_ADDRESS)
    geocoder = _StubGeocoder(result=None)
    monkeypatch.setattr(address, "get_geocoder", lambda: geocoder)

    received = _send(db, "12 Gandhi Street Anna Nagar")
    assert _state(db) == ConversationState.AWAITING_LOCATION_PIN
    assert "Address received" in received.reply

    result = _send(db, "skip")

    assert _state(db) == ConversationState.AWAITING_PAYMENT
    assert geocoder.calls == ["12 Gandhi Street Anna Nagar"]
    assert "will be confirmed by the store" in result.reply
    assert "1) Cash" in result.reply
    db.refresh(order)
    assert order.delivery_status == "pending_address"
    assert order.delivery_fee is None
    assert order.delivery_address_text == "12 Gandhi Street Anna Nagar"


def test_geocoder_failure_is_not_fatal(db, monkeypatch):
    _seed_grocery(db, **STORE_WITH_PRICING)
    order = _order_waiting_for(db, ConversationState.AWAITING_ADDRESS)
    monkeypatch.setattr(
        address,
        "get_geocoder",
        lambda: _StubGeocoder(error=IntegrationError("geocoder", "HTTP 500", status_code=500)),
    )

    _send(db, "12 Gandhi Street Anna Nagar")
    _send(db, "skip")

    assert _state(db) == ConversationState.AWAITING_PAYMENT
    db.refresh(order)
    assert order.delivery_status == "pending_address"


def test_geocoded_address_is_quoted(db, monkeypatch):
    _seed_grocery(db, **STORE_WITH_PRICING)
    order = _order_waiting_for(db, ConversationState.AWAITING_ADDRESS)
    monkeypatch.setattr(address, "get_geocoder", lambda: _StubGeocoder(result=Coordinates(**LOCATION_7_5_KM_EAST)))

    _send(db, "12 Gandhi Street Anna Nagar")
    result = _send(db, "skip")

    db.refresh(order)
    assert order.delivery_status == "confirmed"
    assert order.delivery_fee == pytest.approx(45, abs=0.6)
    assert "Distance: 7.5" in result.reply


def test_location_pin_quotes_delivery(db):
    _seed_grocery(db, **STORE_WITH_PRICING)
    order = _order_waiting_for(db, ConversationState.AWAITING_LOCATION_PIN)

    result = _send(db, "", LocationPin(**LOCATION_7_5_KM_EAST))

    assert _state(db) == ConversationState.AWAITING_PAYMENT
    assert "Delivery details saved" in result.reply
    db.refresh(order)
    assert order.delivery_lat == LOCATION_7_5_KM_EAST["lat"]
    assert order.delivery_distance_km == pytest.approx(7.51, abs=0.05)
    assert order.delivery_status == "confirmed"


def test_free_delivery_inside_free_radius(db):
    _seed_grocery(db, **STORE_WITH_PRICING)
    order = _order_waiting_for(db, ConversationState.AWAITING_LOCATION_PIN)

    result = _send(db, "", LocationPin(lat=13.0860, lng=80.2110))

    assert "Delivery fee: FREE" in result.reply
    db.refresh(order)
    assert order.delivery_fee == 0


def test_too_far_asks_for_another_address(db):
    _seed_grocery(db, **STORE_WITH_PRICING)
    order = _order_waiting_for(db, ConversationState.AWAITING_ADDRESS)

    result = _send(db, "Plot 9, Red Hills Road", LocationPin(**LOCATION_FAR_AWAY))

    assert _state(db) == ConversationState.AWAITING_ADDRESS
    assert "We currently deliver only within 10 km." in result.reply
    db.refresh(order)
    assert order.delivery_status is None
    assert order.delivery_fee is None


def test_address_retries_then_restart(db):
    _seed_grocery(db)
    _order_waiting_for(db, ConversationState.AWAITING_ADDRESS)

    first = _send(db, "hmm")
    assert "doesn't look like an address" in first.reply
    second = _send(db, "ok")
    assert "Example:" in second.reply
    assert _state(db) == ConversationState.AWAITING_ADDRESS

    third = _send(db, "what")
    assert "trouble understanding your address" in third.reply
    assert _state(db) == ConversationState.IDLE


def test_pin_step_without_order_restarts(db):
    _seed_grocery(db)
    set_state(db, GROCERY_ID, CUSTOMER_PHONE, ConversationState.AWAITING_LOCATION_PIN)

    result = _send(db, "skip")

    assert result.reply == "Let's start again. Please type the item name."
    assert _state(db) == ConversationState.IDLE
    assert db.query(Order).count() == 0
