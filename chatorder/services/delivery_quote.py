from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Optional, Union

EARTH_RADIUS_KM = 6371.0

QuoteFailure = Literal["missing_coords", "too_far", "no_config", "no_pricing_rule"]


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class DeliveryPricing:
    free_km: float | None = None
    max_km: float | None = None
    fee_type: str | None = None  # flat / per_km
    flat_fee: float | None = None
    per_km_fee: float | None = None


@dataclass(frozen=True)
class QuoteOk:
    distance_km: float
    fee: float
    free_km: float
    max_km: float | None
    ok: bool = True


@dataclass(frozen=True)
class QuoteErr:
    reason: QuoteFailure
    distance_km: float | None = None
    max_km: float | None = None
    ok: bool = False


QuoteResult = Union[QuoteOk, QuoteErr]


def _valid(coord: Coordinates | None) -> bool:
    if coord is None or coord.lat is None or coord.lng is None:
        return False
    return not (math.isnan(coord.lat) or math.isnan(coord.lng))


def haversine_km(origin: Coordinates, target: Coordinates) -> float:
    lat1, lat2 = math.radians(origin.lat), math.radians(target.lat)
    d_lat = lat2 - lat1
    d_lng = math.radians(target.lng - origin.lng)
    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def compute_fee(distance_km: float, pricing: DeliveryPricing) -> Optional[float]:
    """Fee for a distance inside the delivery radius.

    None means the fee type is set but its rate is missing.
    """
    free_km = pricing.free_km or 0.0
    if distance_km <= free_km:
        return 0.0
    fee_type = (pricing.fee_type or "").strip().lower()
    if fee_type == "flat":
        if pricing.flat_fee is None:
            return None
        return round(float(pricing.flat_fee), 2)
    if fee_type == "per_km":
        if pricing.per_km_fee is None:
            return None
        return round((distance_km - free_km) * float(pricing.per_km_fee), 2)
    # no fee type configured: deliver free of charge
    return 0.0


def quote(
    store: Coordinates | None,
    customer: Coordinates | None,
    pricing: DeliveryPricing | None,
) -> QuoteResult:
    if pricing is None:
        return QuoteErr(reason="no_config")
    if not _valid(store) or not _valid(customer):
        return QuoteErr(reason="missing_coords", max_km=pricing.max_km)

    distance_km = haversine_km(store, customer)
    if pricing.max_km is not None and distance_km > pricing.max_km:
        return QuoteErr(reason="too_far", distance_km=round(distance_km, 2), max_km=pricing.max_km)

    fee = compute_fee(distance_km, pricing)
    if fee is None:
        return QuoteErr(reason="no_pricing_rule", distance_km=round(distance_km, 2), max_km=pricing.max_km)

    return QuoteOk(
        distance_km=round(distance_km, 2),
        fee=fee,
        free_km=pricing.free_km or 0.0,
        max_km=pricing.max_km,
    )
