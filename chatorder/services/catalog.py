from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any

from sqlalchemy.orm import Session

from chatorder.core.config import CATALOG_CACHE_TTL_SECONDS
from chatorder.models.catalog_item import CatalogItem
from chatorder.models.product_upsell import ProductUpsell

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    id: int
    canonical: str
    display_name: str
    variant: str | None = None
    brand: str | None = None
    category: str | None = None
    price: float | None = None

    @property
    def label(self) -> str:
        if self.variant:
            return f"{self.display_name} ({self.variant})"
        return self.display_name

    def to_option(self) -> dict[str, Any]:
        """Serializable form stored in the working cart."""
        return {
            "product_id": self.id,
            "canonical": self.canonical,
            "name": self.display_name,
            "variant": self.variant,
            "price": self.price,
        }


@dataclass(frozen=True)
class UpsellOffer:
    product: CatalogEntry
    header: str | None = None
    message: str | None = None


def _to_entry(item: CatalogItem) -> CatalogEntry:
    canonical = (item.canonical_name or "").strip()
    return CatalogEntry(
        id=item.id,
        canonical=canonical,
        display_name=(item.display_name or canonical).strip(),
        variant=(item.variant or "").strip() or None,
        brand=item.brand,
        category=item.category,
        price=float(item.price) if item.price is not None else None,
    )


class CatalogCache:
    def __init__(self, ttl_seconds: float = CATALOG_CACHE_TTL_SECONDS) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: dict[int, tuple[float, list[CatalogEntry]]] = {}
        self._lock = Lock()

    def get(self, tenant_id: int) -> list[CatalogEntry] | None:
        with self._lock:
            cached = self._entries.get(tenant_id)
            if not cached:
                return None
            loaded_at, items = cached
            if time.monotonic() - loaded_at > self.ttl_seconds:
                self._entries.pop(tenant_id, None)
                return None
            return items

    def put(self, tenant_id: int, items: list[CatalogEntry]) -> None:
        with self._lock:
            self._entries[tenant_id] = (time.monotonic(), items)

    def invalidate(self, tenant_id: int | None = None) -> None:
        with self._lock:
            if tenant_id is None:
                self._entries.clear()
            else:
                self._entries.pop(tenant_id, None)


catalog_cache = CatalogCache()


def load_active_items(db: Session, tenant_id: int) -> list[CatalogEntry]:
    cached = catalog_cache.get(tenant_id)
    if cached is not None:
        return cached

    rows = (
        db.query(CatalogItem)
        .filter(CatalogItem.tenant_id == tenant_id, CatalogItem.active.is_(True))
        .order_by(CatalogItem.id.asc())
        .all()
    )
    items = [_to_entry(row) for row in rows if (row.canonical_name or "").strip()]
    catalog_cache.put(tenant_id, items)
    logger.debug("[CATALOG] loaded tenant=%s items=%s", tenant_id, len(items))
    return items


def find_entry(items: list[CatalogEntry], product_id: int | None) -> CatalogEntry | None:
    if product_id is None:
        return None
    for item in items:
        if item.id == product_id:
            return item
    return None


def get_upsell_offer(db: Session, tenant_id: int, product_id: int) -> UpsellOffer | None:
    link = (
        db.query(ProductUpsell)
        .filter(
            ProductUpsell.tenant_id == tenant_id,
            ProductUpsell.product_id == product_id,
            ProductUpsell.active.is_(True),
        )
        .order_by(ProductUpsell.id.asc())
        .first()
    )
    if not link:
        return None

    target = find_entry(load_active_items(db, tenant_id), link.upsell_product_id)
    if target is None or target.id == product_id:
        return None
    return UpsellOffer(product=target, header=link.header, message=link.message)
