from datetime import datetime, timezone

from chatorder.services.catalog import CatalogEntry
from chatorder.services.delivery_quote import Coordinates, DeliveryPricing
from chatorder.services.service_replies import (
    delivery_area_reply,
    delivery_now_reply,
    format_quick_menu,
    is_open_now,
    lane_reply,
    opening_hours_reply,
    store_location_reply,
)
from chatorder.services.tenant_config import FaqOverrides, TenantConfig

# 14:30 UTC is 20:00 in Asia/Kolkata
EVENING_UTC = datetime(2024, 5, 10, 14, 30, tzinfo=timezone.utc)
# 06:30 UTC is 12:00 in Asia/Kolkata
NOON_UTC = datetime(2024, 5, 10, 6, 30, tzinfo=timezone.utc)


def _config(**overrides):
    values = {
        "tenant_id": 1,
        "name": "Biryani House",
        "vertical": "restaurant",
        "timezone": "Asia/Kolkata",
        "open_time": "11:00",
        "close_time": "23:00",
        "phone": "+91 98400 00000",
        "store_coords": Coordinates(lat=13.085, lng=80.2101),
        "pricing": DeliveryPricing(free_km=3, max_km=10, fee_type="per_km", per_km_fee=10),
    }
    values.update(overrides)
    return TenantConfig(**values)


def test_open_window_in_store_timezone():
    assert is_open_now(_config(), EVENING_UTC).is_open
    assert not is_open_now(_config(open_time="09:00", close_time="17:00"), EVENING_UTC).is_open


def test_overnight_window():
    config = _config(open_time="18:00", close_time="02:00")

    assert is_open_now(config, EVENING_UTC).is_open
    assert not is_open_now(config, NOON_UTC).is_open
    # 19:45 UTC is 01:15 in Kolkata
    assert is_open_now(config, datetime(2024, 5, 10, 19, 45, tzinfo=timezone.utc)).is_open


def test_missing_hours():
    status = is_open_now(_config(open_time=None), EVENING_UTC)

    assert not status.has_hours
    assert "working hours" in opening_hours_reply(_config(open_time=None), EVENING_UTC)


def test_unknown_timezone_falls_back_to_default():
    assert is_open_now(_config(timezone="Mars/Olympus"), EVENING_UTC).has_hours


def test_opening_hours_reply_open_and_closed():
    assert "*OPEN* now" in opening_hours_reply(_config(), EVENING_UTC)
    closed = opening_hours_reply(_config(open_time="09:00", close_time="17:00"), EVENING_UTC)
    assert "*CLOSED*" in closed
    assert "09:00 - 17:00" in closed


def test_faq_override_wins():
    config = _config(faq=FaqOverrides(opening_hours="We never close."))

    assert opening_hours_reply(config, EVENING_UTC) == "We never close."


def test_delivery_now_mentions_radius_and_fee():
    reply = delivery_now_reply(_config(), EVENING_UTC)

    assert "can deliver now" in reply
    assert "within *10 km*" in reply
    assert "free up to 3 km" in reply
    assert "₹10 per km" in reply


def test_delivery_now_when_closed():
    reply = delivery_now_reply(_config(open_time="09:00", close_time="17:00"), EVENING_UTC)

    assert "not delivering now" in reply


def test_delivery_area_without_radius():
    assert "nearby areas" in delivery_area_reply(_config(pricing=None))


def test_store_location_links_to_maps():
    reply = store_location_reply(_config(address_text="12 Gandhi Street"))

    assert "Address: *12 Gandhi Street*" in reply
    assert "https://www.google.com/maps?q=13.085,80.2101" in reply


def test_quick_menu_is_capped():
    catalog = [CatalogEntry(id=i, canonical=f"Item {i}", display_name=f"Item {i}", price=10.0 * i) for i in range(1, 21)]

    menu = format_quick_menu(catalog)

    assert "• Item 13 - ₹130" in menu
    assert "Item 14" not in menu
    assert format_quick_menu([]) == "No items available right now."


def test_lane_reply_ignores_non_informational_lanes():
    assert lane_reply(_config(), "human_help") is None
    assert "contact" in lane_reply(_config(), "contact")
