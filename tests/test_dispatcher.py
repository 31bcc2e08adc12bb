from datetime import datetime, timedelta, timezone

from chatorder.dispatcher import handle_message
from chatorder.fsm.states import ConversationState
from chatorder.models.conversation_session import ConversationSession
from chatorder.models.intent_event import IntentEvent
from chatorder.models.intent_override_rule import IntentOverrideRule
from chatorder.models.order import Order
from chatorder.models.working_cart import WorkingCart
from chatorder.schemas.ingest import LocationPin
from chatorder.services.orders import create_order
from chatorder.services.session_store import get_cart, get_state, set_manual_mode, set_state
from tests.fixtures_data import CUSTOMER_PHONE, TENANT_ID


def _send(db, text, tenant_id=TENANT_ID):
    return handle_message(db, tenant_id, CUSTOMER_PHONE, text)


def _state(db):
    return get_state(db, TENANT_ID, CUSTOMER_PHONE).state


def test_unknown_tenant_is_ignored(db):
    result = _send(db, "hi", tenant_id=99)

    assert not result.used
    assert result.kind == "ignored"


def test_greeting_when_idle(restaurant_db):
    result = _send(restaurant_db, "Hello bro")

    assert result.kind == "greeting"
    assert "Welcome to *Biryani House*" in result.reply


def test_greeting_mid_flow_keeps_the_flow(restaurant_db):
    _send(restaurant_db, "pizza")

    result = _send(restaurant_db, "hi")

    assert "middle of an order" in result.reply
    assert _state(restaurant_db) == ConversationState.ORDERING_VARIANT


def test_smalltalk_when_idle(restaurant_db):
    result = _send(restaurant_db, "thank you")

    assert result.kind == "smalltalk"


def test_expired_session_restarts(restaurant_db):
    _send(restaurant_db, "pizza")
    old = datetime.now(timezone.utc) - timedelta(minutes=30)
    restaurant_db.query(ConversationSession).update({"updated_at": old})
    restaurant_db.query(WorkingCart).update({"updated_at": old})
    restaurant_db.commit()

    result = _send(restaurant_db, "2")

    assert result.kind == "session_expired"
    assert "No activity for" in result.reply
    assert _state(restaurant_db) == ConversationState.IDLE
    assert get_cart(restaurant_db, TENANT_ID, CUSTOMER_PHONE).is_empty()


def test_manual_mode_silences_the_bot(restaurant_db):
    set_manual_mode(restaurant_db, TENANT_ID, CUSTOMER_PHONE, True)

    result = _send(restaurant_db, "chicken biryani")

    assert not result.used
    assert result.kind == "manual_mode"


def test_agent_handoff(restaurant_db):
    handoff = _send(restaurant_db, "talk to human")
    assert handoff.kind == "agent"
    assert _state(restaurant_db) == ConversationState.AGENT

    quiet = _send(restaurant_db, "hello?")
    assert not quiet.used

    back = _send(restaurant_db, "back")
    assert back.kind == "reset"
    assert _state(restaurant_db) == ConversationState.IDLE


def test_empty_message_is_not_answered(restaurant_db):
    result = _send(restaurant_db, "   ")

    assert not result.used
    assert result.kind == "empty"


def test_informational_question_mid_order_keeps_state(restaurant_db):
    _send(restaurant_db, "coke")

    result = _send(restaurant_db, "what are your timings?")

    assert result.kind == "service"
    assert result.lane == "opening_hours"
    assert "Today's hours: *11:00 - 23:00*" in result.reply
    assert _state(restaurant_db) == ConversationState.ORDERING_QTY
    assert get_cart(restaurant_db, TENANT_ID, CUSTOMER_PHONE).item["product_id"] == 2


def test_menu_lane_clears_the_flow(restaurant_db):
    _send(restaurant_db, "coke")

    result = _send(restaurant_db, "send menu")

    assert result.lane == "menu"
    assert "• Chicken Biryani - ₹180" in result.reply
    assert _state(restaurant_db) == ConversationState.IDLE


def test_checkout_states_skip_routing(restaurant_db):
    create_order(restaurant_db, TENANT_ID, CUSTOMER_PHONE, [{"product_id": 1, "qty": 1, "price": 180}], 180)
    set_state(restaurant_db, TENANT_ID, CUSTOMER_PHONE, ConversationState.AWAITING_FULFILLMENT)

    result = _send(restaurant_db, "what is your location?")

    assert "1) Store Pickup" in result.reply
    assert restaurant_db.query(IntentEvent).count() == 0


def test_status_request(restaurant_db):
    empty = _send(restaurant_db, "order status")
    assert "don't have any orders yet" in empty.reply

    order = create_order(restaurant_db, TENANT_ID, CUSTOMER_PHONE, [{"product_id": 1, "qty": 1, "price": 180}], 180)
    result = _send(restaurant_db, "track my order")

    assert result.kind == "status"
    assert result.order_id == order.id
    assert "Waiting for your delivery / payment details" in result.reply


def test_help_meta_intent(restaurant_db):
    result = _send(restaurant_db, "help")

    assert result.kind == "help"


def test_location_outside_checkout(restaurant_db):
    result = handle_message(restaurant_db, TENANT_ID, CUSTOMER_PHONE, "", LocationPin(lat=13.0, lng=80.0))

    assert result.kind == "location"


def test_learned_correction_reroutes_next_time(restaurant_db):
    first = _send(restaurant_db, "kadai eppo")
    assert "I couldn't find that item" in first.reply

    corrected = _send(restaurant_db, "no i asked opening time")
    assert corrected.lane == "opening_hours"

    again = _send(restaurant_db, "kadai eppo")
    assert again.lane == "opening_hours"


def test_correction_mid_flow_resets_to_idle(restaurant_db):
    _send(restaurant_db, "pizza")
    assert _state(restaurant_db) == ConversationState.ORDERING_VARIANT

    result = _send(restaurant_db, "no i asked opening time")

    assert result.lane == "opening_hours"
    assert restaurant_db.query(IntentOverrideRule).count() == 1
    assert _state(restaurant_db) == ConversationState.IDLE


def test_cancellation_question_keeps_the_order(restaurant_db):
    order = create_order(restaurant_db, TENANT_ID, CUSTOMER_PHONE, [{"product_id": 1, "qty": 1, "price": 180}], 180)

    result = _send(restaurant_db, "what is your cancellation policy?")

    assert result.kind != "reset"
    restaurant_db.refresh(order)
    assert order.status == "awaiting_customer_action"
    assert restaurant_db.query(Order).filter(Order.status == "cancelled").count() == 0
