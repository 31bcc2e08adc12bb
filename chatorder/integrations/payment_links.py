from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from chatorder.core.config import APP_PUBLIC_URL, EXTERNAL_TIMEOUT_SECONDS, RAZORPAY_API_URL
from chatorder.errors import PaymentLinkError

logger = logging.getLogger(__name__)

PAYMENT_LINK_INTEGRATION = "payment_link"
# Razorpay caps reference_id at 40 characters
_MAX_REFERENCE_LENGTH = 40


@dataclass(frozen=True)
class PaymentLink:
    id: str
    url: str
    provider: str = "razorpay"


class PaymentLinkProvider(Protocol):
    name: str

    def create_link(self, *, order_id: int, amount: float, customer_phone: str) -> PaymentLink:
        ...


def _mask(value: str | None) -> str | None:
    if not value:
        return None
    return f"***{value[-6:]}"


class RazorpayPaymentLinks:
    name = "razorpay"

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        *,
        api_url: str = RAZORPAY_API_URL,
        public_url: str = APP_PUBLIC_URL,
        timeout: float = EXTERNAL_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_url = api_url.rstrip("/")
        self.public_url = (public_url or "").rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _payload(self, order_id: int, amount: float, customer_phone: str) -> dict:
        payload = {
            "amount": int(round(float(amount) * 100)),
            "currency": "INR",
            "description": f"Payment for order #{order_id}",
            "reference_id": str(order_id)[:_MAX_REFERENCE_LENGTH],
            "customer": {"contact": customer_phone, "name": "Customer"},
            "notify": {"sms": True, "email": False},
            "reminder_enable": True,
            "notes": {"order_id": str(order_id)},
        }
        if self.public_url:
            payload["callback_url"] = f"{self.public_url}/payment/razorpay/return"
            payload["callback_method"] = "get"
        return payload

    def create_link(self, *, order_id: int, amount: float, customer_phone: str) -> PaymentLink:
        if amount is None or float(amount) <= 0:
            raise PaymentLinkError("amount must be positive")

        logger.info(
            "[PAYMENT][LINK] creating order_id=%s amount=%s key=%s",
            order_id,
            amount,
            _mask(self.key_id),
        )
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    f"{self.api_url}/payment_links",
                    json=self._payload(order_id, amount, customer_phone),
                    auth=(self.key_id, self.key_secret),
                )
        except httpx.HTTPError as exc:
            raise PaymentLinkError(f"transport error: {exc.__class__.__name__}") from exc

        if response.status_code >= 400:
            raise PaymentLinkError(f"HTTP {response.status_code}", status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            raise PaymentLinkError("invalid JSON") from exc

        link_id = data.get("id")
        short_url = data.get("short_url")
        if not link_id or not short_url:
            raise PaymentLinkError("response without id/short_url")
        return PaymentLink(id=str(link_id), url=str(short_url), provider=self.name)


def get_payment_link_provider(key_id: str | None, key_secret: str | None) -> PaymentLinkProvider | None:
    if not key_id or not key_secret:
        return None
    return RazorpayPaymentLinks(key_id, key_secret)
