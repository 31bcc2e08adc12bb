from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from chatorder.core.config import DEFAULT_STORE_TIMEZONE
from chatorder.services.catalog import CatalogEntry
from chatorder.services.formatting import format_amount, format_number
from chatorder.services.tenant_config import TenantConfig

logger = logging.getLogger(__name__)

QUICK_MENU_LIMIT = 13

ORDER_EXAMPLE = "*2 Chicken Biryani, 1 Coke*"

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})")


@dataclass(frozen=True)
class OpenStatus:
    has_hours: bool
    is_open: bool


def _parse_hhmm(value: str | None) -> int | None:
    if not value:
        return None
    match = _HHMM.match(str(value).strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours * 60 + minutes


def _store_zone(name: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(name or DEFAULT_STORE_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("[SERVICE] unknown store timezone %r, using %s", name, DEFAULT_STORE_TIMEZONE)
        return ZoneInfo(DEFAULT_STORE_TIMEZONE)


def is_open_now(config: TenantConfig, now: datetime | None = None) -> OpenStatus:
    """Open/closed in the store's own timezone. A close time at or before the open
    time is an overnight window (18:00 -> 02:00)."""
    open_min = _parse_hhmm(config.open_time)
    close_min = _parse_hhmm(config.close_time)
    if open_min is None or close_min is None:
        return OpenStatus(has_hours=False, is_open=False)

    current = (now or datetime.now(timezone.utc)).astimezone(_store_zone(config.timezone))
    now_min = current.hour * 60 + current.minute

    if close_min > open_min:
        return OpenStatus(has_hours=True, is_open=open_min <= now_min < close_min)
    return OpenStatus(has_hours=True, is_open=now_min >= open_min or now_min < close_min)


def hours_line(config: TenantConfig) -> str:
    if not config.open_time or not config.close_time:
        return ""
    return f"Today's hours: *{config.open_time[:5]} - {config.close_time[:5]}*"


def format_quick_menu(catalog: list[CatalogEntry], limit: int = QUICK_MENU_LIMIT) -> str:
    if not catalog:
        return "No items available right now."
    lines = ["📋 *Menu*"]
    for entry in catalog[:limit]:
        price = f" - {format_amount(entry.price)}" if entry.price is not None else ""
        lines.append(f"• {entry.label}{price}")
    lines.append("")
    lines.append(f"Send the item names to order (e.g. {ORDER_EXAMPLE}).")
    return "\n".join(lines)


def opening_hours_reply(config: TenantConfig, now: datetime | None = None) -> str:
    if config.faq.opening_hours:
        return config.faq.opening_hours

    status = is_open_now(config, now)
    if status.has_hours:
        if status.is_open:
            return (
                f"✅ Yes, *{config.name}* is *OPEN* now.\n{hours_line(config)}\n\n"
                f"Type *menu* or send items (e.g. {ORDER_EXAMPLE})."
            )
        return (
            f"❌ *{config.name}* is *CLOSED* right now.\n{hours_line(config)}\n\n"
            "You can still send your order, we'll confirm it when we open."
        )

    return "\n".join(
        [
            f"{config.name} is open during our working hours.",
            "Please ask the staff here for exact timings.",
            "",
            "You can still send your order any time, we'll process it during working hours.",
        ]
    )


def _fee_summary(config: TenantConfig) -> str | None:
    pricing = config.pricing
    if pricing is None:
        return None
    free_km = float(pricing.free_km or 0)
    fee_type = (pricing.fee_type or "").lower()
    flat = float(pricing.flat_fee or 0)
    per_km = float(pricing.per_km_fee or 0)

    if fee_type == "flat" and flat > 0:
        if free_km > 0:
            return f"Delivery is *free up to {format_number(free_km)} km*, then a flat fee of *{format_amount(flat)}*."
        return f"Delivery fee is a flat *{format_amount(flat)}* per order."
    if fee_type == "per_km" and per_km > 0:
        if free_km > 0:
            return (
                f"Delivery is *free up to {format_number(free_km)} km*, "
                f"then around *{format_amount(per_km)} per km* after that."
            )
        return f"Delivery fee is around *{format_amount(per_km)} per km* from the store."
    return None


def _max_km(config: TenantConfig) -> float:
    if config.pricing is None:
        return 0.0
    return float(config.pricing.max_km or 0)


def delivery_now_reply(config: TenantConfig, now: datetime | None = None) -> str:
    if config.faq.delivery:
        return config.faq.delivery

    status = is_open_now(config, now)
    if status.has_hours and not status.is_open:
        return (
            f"❌ Sorry, *{config.name}* is *closed* right now, so we're *not delivering now*.\n"
            f"{hours_line(config)}\n\n"
            "You can still send your order, we'll confirm it when we open."
        )

    lines = [f"✅ Yes, {config.name} can deliver now."]
    if hours_line(config):
        lines.append(hours_line(config))
    max_km = _max_km(config)
    if max_km > 0:
        lines.append(f"We usually deliver within *{format_number(max_km)} km* from the store.")
    fee = _fee_summary(config)
    if fee:
        lines.append(fee)
    lines.append("")
    lines.append(f"To place an order, just send the item names (e.g. {ORDER_EXAMPLE}) or type *menu*.")
    return "\n".join(lines)


def delivery_area_reply(config: TenantConfig) -> str:
    if config.faq.delivery_area:
        return config.faq.delivery_area

    max_km = _max_km(config)
    if max_km > 0:
        first = f"{config.name} usually delivers within *{format_number(max_km)} km* of the store location."
    else:
        first = f"{config.name} delivers to nearby areas subject to availability."
    return "\n".join(
        [
            first,
            "",
            "For best accuracy, please send your *location pin* (📎 → Location) or type your full address "
            "here. I'll confirm if delivery is possible.",
        ]
    )


def delivery_time_specific_reply(config: TenantConfig, now: datetime | None = None) -> str:
    return (
        "⏰ Delivery depends on our working hours.\n"
        + opening_hours_reply(config, now)
        + "\n\nTell me the exact time (ex: *12:00 AM*) and your area, I'll confirm if delivery is possible."
    )


def pricing_reply(config: TenantConfig) -> str:
    if config.faq.pricing:
        return config.faq.pricing

    if config.vertical == "restaurant":
        return "\n".join(
            [
                "Our prices depend on the dish and portion size.",
                "You can type *menu* to see popular items and prices, or send the dish name and I'll help you choose.",
                "",
                f"Example: {ORDER_EXAMPLE}.",
            ]
        )
    return "\n".join(
        [
            f"{config.name} has different prices depending on the item.",
            "Please send the product names (or type *menu*) and I'll guide you with options.",
        ]
    )


def store_location_reply(config: TenantConfig) -> str:
    lines = [f"📍 *{config.name}* location:"]
    if config.address_text:
        lines.append(f"Address: *{config.address_text}*")
    if config.store_coords is not None:
        coords = config.store_coords
        lines.append(f"🗺️ Google Maps: https://www.google.com/maps?q={coords.lat},{coords.lng}")
    elif config.maps_url:
        lines.append(f"🗺️ Google Maps: {config.maps_url}")
    if config.phone:
        lines.append(f"📞 Call/WhatsApp: *{config.phone}*")
    if not config.address_text and config.store_coords is None and not config.maps_url:
        lines.append("Please share your *location pin* (📎 → Location) and I'll guide you.")
    return "\n".join(lines)


def contact_reply(config: TenantConfig) -> str:
    if config.phone:
        return f"📞 *{config.name}* contact: *{config.phone}*"
    return "📞 Please ask the staff here for the contact number."


_LaneBuilder = Callable[[TenantConfig, list[CatalogEntry], "datetime | None"], str]

_LANE_BUILDERS: dict[str, _LaneBuilder] = {
    "menu": lambda config, catalog, now: format_quick_menu(catalog),
    "opening_hours": lambda config, catalog, now: opening_hours_reply(config, now),
    "delivery_now": lambda config, catalog, now: delivery_now_reply(config, now),
    "delivery_area": lambda config, catalog, now: delivery_area_reply(config),
    "delivery_time_specific": lambda config, catalog, now: delivery_time_specific_reply(config, now),
    "pricing_generic": lambda config, catalog, now: pricing_reply(config),
    "store_location": lambda config, catalog, now: store_location_reply(config),
    "contact": lambda config, catalog, now: contact_reply(config),
}


def lane_reply(
    config: TenantConfig,
    lane: str,
    catalog: list[CatalogEntry] | None = None,
    now: datetime | None = None,
) -> str | None:
    """Reply text for an informational lane, or None for lanes that are not informational."""
    builder = _LANE_BUILDERS.get(lane)
    if builder is None:
        return None
    return builder(config, catalog or [], now)
