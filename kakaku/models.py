"""Data models for shared price observations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

CURRENCY = "JPY"

UNKNOWN_STORE_ID = "unknown"
UNKNOWN_STORE_NAME = "不明な店舗"

ENTRY_STATUSES = ("active", "hidden")
ENTRY_SOURCES = ("user", "receipt", "admin")
IMPORT_STATUSES = ("draft", "confirmed", "failed")


@dataclass
class Entry:
    """One observed price of one product at one store on one date."""

    store_id: str
    store_name: str
    raw_product_name: str
    normalized_name: str
    price: int
    date: str                      # YYYY-MM-DD
    attributes: list[str] = field(default_factory=list)
    place_id: str | None = None
    product_id: str | None = None
    currency: str = CURRENCY
    tax_included: bool = True
    region: str | None = None
    user_id: str | None = None
    thanks_count: int = 0
    status: str = "active"         # active / hidden
    source: str = "user"           # user / receipt / admin
    import_id: str | None = None
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "storeId": self.store_id,
            "storeName": self.store_name,
            "placeId": self.place_id,
            "productId": self.product_id,
            "rawProductName": self.raw_product_name,
            "normalizedName": self.normalized_name,
            "attributes": list(self.attributes),
            "price": self.price,
            "currency": self.currency,
            "taxIncluded": self.tax_included,
            "date": self.date,
            "region": self.region,
            "userId": self.user_id,
            "thanksCount": self.thanks_count,
            "status": self.status,
            "source": self.source,
            "importId": self.import_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class Store:
    """A physical retail location, keyed by place ID when known."""

    store_id: str
    name: str
    place_id: str | None = None
    lat: float | None = None
    lng: float | None = None
    region: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def location(self) -> dict[str, float] | None:
        if self.lat is None or self.lng is None:
            return None
        return {"lat": self.lat, "lng": self.lng}

    def to_dict(self) -> dict[str, Any]:
        return {
            "storeId": self.store_id,
            "name": self.name,
            "placeId": self.place_id,
            "location": self.location,
            "region": self.region,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class Product:
    """Canonical product identity, deduplicated by normalized name."""

    id: str
    normalized_name: str
    aliases: list[str] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "normalizedName": self.normalized_name,
            "aliases": list(self.aliases),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class RawItem:
    """A single line extracted from a receipt image."""

    raw_line: str
    raw_product_name: str | None = None
    raw_price: int | None = None
    raw_qty: str | None = None
    raw_meta: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "rawLine": self.raw_line,
            "rawProductName": self.raw_product_name,
            "rawPrice": self.raw_price,
            "rawQty": self.raw_qty,
            "rawMeta": self.raw_meta,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RawItem:
        return cls(
            raw_line=data.get("rawLine") or "",
            raw_product_name=data.get("rawProductName"),
            raw_price=data.get("rawPrice"),
            raw_qty=data.get("rawQty"),
            raw_meta=data.get("rawMeta"),
        )


@dataclass
class AIRun:
    """Which model produced an extraction, and when."""

    model: str
    created_at: str | None = None
    confidence: float | None = None


@dataclass
class RawImport:
    """Provenance record for an AI-assisted receipt submission."""

    user_id: str
    ai1: AIRun
    store: dict[str, Any] = field(default_factory=dict)
    receipt_image_path: str = ""
    extracted_text: str | None = None
    raw_items: list[RawItem] = field(default_factory=list)
    status: str = "draft"          # draft / confirmed / failed
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "store": dict(self.store),
            "receiptImagePath": self.receipt_image_path,
            "extractedText": self.extracted_text,
            "rawItems": [item.to_dict() for item in self.raw_items],
            "ai1": {
                "model": self.ai1.model,
                "createdAt": self.ai1.created_at,
                "confidence": self.ai1.confidence,
            },
            "status": self.status,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class UserStats:
    """Per-user aggregate counters."""

    user_id: str
    thanks_received: int = 0
    updated_at: str | None = None
