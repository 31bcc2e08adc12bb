from __future__ import annotations

import logging
from typing import Protocol

import httpx

from chatorder.core.config import EXTERNAL_TIMEOUT_SECONDS, GOOGLE_GEOCODE_URL, GOOGLE_MAPS_API_KEY
from chatorder.errors import IntegrationError
from chatorder.services.delivery_quote import Coordinates

logger = logging.getLogger(__name__)

GEOCODER_INTEGRATION = "geocoder"


class Geocoder(Protocol):
    def geocode(self, address_text: str) -> Coordinates | None:
        ...


class GoogleGeocoder:
    """Google Geocoding API over httpx.

    ``None`` means the address was understood but not found; transport and quota
    problems raise ``IntegrationError``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        url: str = GOOGLE_GEOCODE_URL,
        timeout: float = EXTERNAL_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else GOOGLE_MAPS_API_KEY
        self.url = url
        self.timeout = timeout
        self._transport = transport

    def geocode(self, address_text: str) -> Coordinates | None:
        address = (address_text or "").strip()
        if not address:
            return None
        if not self.api_key:
            raise IntegrationError(GEOCODER_INTEGRATION, "GOOGLE_MAPS_API_KEY is not configured")

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.get(self.url, params={"address": address, "key": self.api_key})
        except httpx.HTTPError as exc:
            raise IntegrationError(GEOCODER_INTEGRATION, f"transport error: {exc.__class__.__name__}") from exc

        if response.status_code >= 400:
            raise IntegrationError(GEOCODER_INTEGRATION, f"HTTP {response.status_code}", status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            raise IntegrationError(GEOCODER_INTEGRATION, "invalid JSON") from exc

        status = data.get("status")
        if status == "ZERO_RESULTS":
            return None
        if status != "OK":
            raise IntegrationError(GEOCODER_INTEGRATION, f"status {status}")

        try:
            location = data["results"][0]["geometry"]["location"]
            return Coordinates(lat=float(location["lat"]), lng=float(location["lng"]))
        except (KeyError, IndexError, TypeError, ValueError):
            logger.warning("[ADDRESS][GEOCODE] unexpected response shape")
            return None


def get_geocoder() -> Geocoder:
    return GoogleGeocoder()
