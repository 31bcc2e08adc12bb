from chatorder.dispatcher import handle_message
from chatorder.fsm.states import ConversationState
from chatorder.models.catalog_item import CatalogItem
from chatorder.models.order import Order
from chatorder.models.product_upsell import ProductUpsell
from chatorder.services.attempts import get_attempts
from chatorder.services.catalog import catalog_cache
from chatorder.services.session_store import get_cart, get_state
from tests.fixtures_data import CUSTOMER_PHONE, TENANT_ID


def _send(db, text):
    return handle_message(db, TENANT_ID, CUSTOMER_PHONE, text)


def _state(db):
    return get_state(db, TENANT_ID, CUSTOMER_PHONE).state


def _cart(db):
    return get_cart(db, TENANT_ID, CUSTOMER_PHONE)


def test_multi_item_message_walks_the_queue(restaurant_db):
    first = _send(restaurant_db, "2 chicken biryani, 1 coke")

    assert first.used
    assert _state(restaurant_db) == ConversationState.ORDERING_QTY
    assert "For your 1st item (1 of 2)" in first.reply
    assert "How many *Chicken Biryani*?" in first.reply
    assert "you asked for *2*" in first.reply
    assert len(_cart(restaurant_db).multi_item_queue) == 2

    second = _send(restaurant_db, "2")
    assert _state(restaurant_db) == ConversationState.ORDERING_QTY
    assert "For your 2nd item (2 of 2)" in second.reply
    assert "*Coke*" in second.reply

    third = _send(restaurant_db, "1")
    assert _state(restaurant_db) == ConversationState.CONFIRMING_ORDER
    assert "1) Confirm order" in third.reply

    cart = _cart(restaurant_db)
    assert [(line["product_id"], line["qty"]) for line in cart.cart] == [(1, 2), (2, 1)]
    assert not cart.has_queue


def test_ok_keeps_the_queued_quantity(restaurant_db):
    _send(restaurant_db, "3 mutton biryani, 2 coke")

    _send(restaurant_db, "ok")

    assert _cart(restaurant_db).cart[0]["qty"] == 3


def test_single_item_then_confirm_creates_order(restaurant_db):
    _send(restaurant_db, "chicken biryani")
    _send(restaurant_db, "2")
    result = _send(restaurant_db, "1")

    assert _state(restaurant_db) == ConversationState.AWAITING_FULFILLMENT
    order = restaurant_db.query(Order).one()
    assert result.order_id == order.id
    assert order.total_amount == 360
    assert order.status == "awaiting_customer_action"
    assert order.items[0]["qty"] == 2
    assert f"Order #{order.id} confirmed" in result.reply
    assert "1) Store Pickup" in result.reply
    assert _cart(restaurant_db).is_empty()


def test_variant_list_rejects_out_of_range_choice(restaurant_db):
    listed = _send(restaurant_db, "pizza")
    assert _state(restaurant_db) == ConversationState.ORDERING_VARIANT
    assert "1) Pizza - Small" in listed.reply
    assert len(_cart(restaurant_db).options) == 3

    result = _send(restaurant_db, "5")

    assert result.reply == "Invalid choice. Please send a valid number."
    assert _state(restaurant_db) == ConversationState.ORDERING_VARIANT
    assert len(_cart(restaurant_db).options) == 3


def test_variant_picked_by_number_or_name(restaurant_db):
    _send(restaurant_db, "pizza")
    by_number = _send(restaurant_db, "2")
    assert _state(restaurant_db) == ConversationState.ORDERING_QTY
    assert "Pizza (Medium)" in by_number.reply

    _send(restaurant_db, "reset")
    _send(restaurant_db, "pizza")
    by_name = _send(restaurant_db, "large")
    assert "Pizza (Large)" in by_name.reply
    assert _cart(restaurant_db).item["product_id"] == 5


def test_unknown_variant_word_stays_in_variant_step(restaurant_db):
    _send(restaurant_db, "pizza")

    result = _send(restaurant_db, "extra cheese")

    assert "couldn't find that variant" in result.reply
    assert _state(restaurant_db) == ConversationState.ORDERING_VARIANT


def test_variant_word_in_first_message_skips_the_list(restaurant_db):
    result = _send(restaurant_db, "large pizza")

    assert _state(restaurant_db) == ConversationState.ORDERING_QTY
    assert "Pizza (Large)" in result.reply


def test_shared_word_lists_candidates(restaurant_db):
    result = _send(restaurant_db, "biryani")

    assert _state(restaurant_db) == ConversationState.ORDERING_ITEM
    assert "I found multiple items:" in result.reply

    picked = _send(restaurant_db, "2")
    assert "Mutton Biryani" in picked.reply
    assert _state(restaurant_db) == ConversationState.ORDERING_QTY


def test_invalid_quantity_is_reprompted(restaurant_db):
    _send(restaurant_db, "coke")

    result = _send(restaurant_db, "lots")

    assert "valid quantity" in result.reply
    assert _state(restaurant_db) == ConversationState.ORDERING_QTY


def test_repeated_misses_restart_after_three_attempts(restaurant_db):
    first = _send(restaurant_db, "xyzzy")
    assert first.reply.startswith("I couldn't find that item.")
    assert "*back*" not in first.reply

    second = _send(restaurant_db, "plugh")
    assert "*back*" in second.reply

    third = _send(restaurant_db, "quux")
    assert "still couldn't find" in third.reply
    assert _state(restaurant_db) == ConversationState.IDLE


def test_repeated_invalid_variant_choice_restarts(restaurant_db):
    _send(restaurant_db, "pizza")

    first = _send(restaurant_db, "9")
    assert first.reply == "Invalid choice. Please send a valid number."
    assert _state(restaurant_db) == ConversationState.ORDERING_VARIANT

    second = _send(restaurant_db, "9")
    assert "Type *back* to start over." in second.reply
    assert _state(restaurant_db) == ConversationState.ORDERING_VARIANT

    third = _send(restaurant_db, "9")
    assert "Let's start over." in third.reply
    assert _state(restaurant_db) == ConversationState.IDLE
    assert get_attempts(restaurant_db, TENANT_ID, CUSTOMER_PHONE) == 0
    assert _cart(restaurant_db).options == []


def test_oversized_quantity_is_reprompted(restaurant_db):
    _send(restaurant_db, "coke")

    result = _send(restaurant_db, "99999999999")

    assert "up to 50" in result.reply
    assert _state(restaurant_db) == ConversationState.ORDERING_QTY
    assert _cart(restaurant_db).cart == []


def test_unknown_queue_entry_can_be_skipped(restaurant_db):
    first = _send(restaurant_db, "1 unicorn steak, 2 coke")
    assert "I couldn't find *unicorn steak*" in first.reply
    assert _state(restaurant_db) == ConversationState.ORDERING_ITEM

    skipped = _send(restaurant_db, "skip")
    assert "For your 2nd item (2 of 2)" in skipped.reply
    assert "*Coke*" in skipped.reply


def test_upsell_offered_once_and_accepted(restaurant_db):
    restaurant_db.add(ProductUpsell(tenant_id=TENANT_ID, product_id=1, upsell_product_id=7, active=True))
    restaurant_db.commit()

    _send(restaurant_db, "chicken biryani")
    offer = _send(restaurant_db, "1")
    assert _state(restaurant_db) == ConversationState.ORDERING_UPSELL
    assert "Gulab Jamun" in offer.reply

    _send(restaurant_db, "yes")

    assert _state(restaurant_db) == ConversationState.CONFIRMING_ORDER
    cart = _cart(restaurant_db).cart
    assert [line["product_id"] for line in cart] == [1, 7]
    assert cart[1]["upsell"] is True


def test_upsell_declined(restaurant_db):
    restaurant_db.add(ProductUpsell(tenant_id=TENANT_ID, product_id=1, upsell_product_id=7, active=True))
    restaurant_db.commit()

    _send(restaurant_db, "chicken biryani")
    _send(restaurant_db, "1")
    _send(restaurant_db, "no")

    assert [line["product_id"] for line in _cart(restaurant_db).cart] == [1]


def test_empty_catalog(restaurant_db):
    restaurant_db.query(CatalogItem).update({"active": False})
    restaurant_db.commit()
    catalog_cache.invalidate()

    result = _send(restaurant_db, "chicken biryani")

    assert result.reply == "⚠️ No items available right now."
