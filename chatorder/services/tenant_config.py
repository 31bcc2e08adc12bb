from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from chatorder.core.config import DEFAULT_STORE_TIMEZONE, RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET
from chatorder.models.tenant import Tenant
from chatorder.services.delivery_quote import Coordinates, DeliveryPricing

VERTICALS = ("restaurant", "grocery", "pharmacy", "salon", "generic")

# Verticals that ask pickup vs delivery after confirmation
_FULFILLMENT_CHOICE_VERTICALS = frozenset({"restaurant"})


@dataclass(frozen=True)
class FaqOverrides:
    delivery: str | None = None
    opening_hours: str | None = None
    pricing: str | None = None
    delivery_area: str | None = None


@dataclass(frozen=True)
class TenantConfig:
    tenant_id: int
    name: str
    vertical: str = "generic"
    phone: str | None = None
    address_text: str | None = None
    store_coords: Coordinates | None = None
    maps_url: str | None = None
    timezone: str = DEFAULT_STORE_TIMEZONE
    open_time: str | None = None
    close_time: str | None = None
    pricing: DeliveryPricing | None = None
    faq: FaqOverrides = field(default_factory=FaqOverrides)
    payment_qr_url: str | None = None
    payment_instructions: str | None = None
    razorpay_key_id: str | None = None
    razorpay_key_secret: str | None = None

    @property
    def requires_fulfillment_choice(self) -> bool:
        return self.vertical in _FULFILLMENT_CHOICE_VERTICALS

    @property
    def has_payment_link_credentials(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _pricing_from_row(tenant: Tenant) -> DeliveryPricing | None:
    values = (
        tenant.delivery_free_km,
        tenant.delivery_max_km,
        tenant.delivery_fee_type,
        tenant.delivery_flat_fee,
        tenant.delivery_per_km_fee,
    )
    if all(value is None for value in values):
        return None
    return DeliveryPricing(
        free_km=tenant.delivery_free_km,
        max_km=tenant.delivery_max_km,
        fee_type=_clean(tenant.delivery_fee_type),
        flat_fee=tenant.delivery_flat_fee,
        per_km_fee=tenant.delivery_per_km_fee,
    )


def build_tenant_config(tenant: Tenant) -> TenantConfig:
    vertical = (tenant.business_type or "generic").strip().lower()
    if vertical not in VERTICALS:
        vertical = "generic"

    store_coords = None
    if tenant.store_lat is not None and tenant.store_lng is not None:
        store_coords = Coordinates(lat=float(tenant.store_lat), lng=float(tenant.store_lng))

    return TenantConfig(
        tenant_id=tenant.id,
        name=_clean(tenant.name) or "Our Store",
        vertical=vertical,
        phone=_clean(tenant.phone),
        address_text=_clean(tenant.store_address_text),
        store_coords=store_coords,
        maps_url=_clean(tenant.store_maps_url),
        timezone=_clean(tenant.store_timezone) or DEFAULT_STORE_TIMEZONE,
        open_time=_clean(tenant.open_time),
        close_time=_clean(tenant.close_time),
        pricing=_pricing_from_row(tenant),
        faq=FaqOverrides(
            delivery=_clean(tenant.faq_delivery_answer),
            opening_hours=_clean(tenant.faq_opening_hours_answer),
            pricing=_clean(tenant.faq_pricing_answer),
            delivery_area=_clean(tenant.faq_delivery_area_answer),
        ),
        payment_qr_url=_clean(tenant.payment_qr_url),
        payment_instructions=_clean(tenant.payment_instructions),
        razorpay_key_id=_clean(tenant.razorpay_key_id) or RAZORPAY_KEY_ID or None,
        razorpay_key_secret=_clean(tenant.razorpay_key_secret) or RAZORPAY_KEY_SECRET or None,
    )


def load_tenant_config(db: Session, tenant_id: int) -> TenantConfig | None:
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id, Tenant.is_active.is_(True)).first()
    if tenant is None:
        return None
    return build_tenant_config(tenant)
