"""Fill defaults and coerce a raw price observation into an Entry."""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date
from typing import Any

from .models import CURRENCY, UNKNOWN_STORE_ID, UNKNOWN_STORE_NAME, Entry

_MISSING = object()


def today_iso() -> str:
    """Return today's date as YYYY-MM-DD."""
    return date.today().isoformat()


def coerce_price(value: Any) -> int:
    """Convert a price to an integer number of yen.

    Anything that is not a finite number becomes 0. Negative values are
    kept as they are.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return 0
        try:
            number = float(text)
        except ValueError:
            return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return int(round(number))


def _pick(data: Mapping[str, Any], camel: str, snake: str) -> Any:
    value = data.get(camel, _MISSING)
    if value is _MISSING:
        value = data.get(snake, _MISSING)
    return None if value is _MISSING else value


def _coerce_attributes(value: Any) -> list[str]:
    if isinstance(value, (list, tuple)):
        return list(value)
    if value:
        return [value]
    return []


def _coerce_date(value: Any) -> str:
    if isinstance(value, date):
        return value.isoformat()
    return value or today_iso()


def normalize_entry(data: Mapping[str, Any] | None) -> Entry:
    """Build a candidate Entry from an arbitrary, possibly partial record.

    Accepts camelCase keys (``normalizedName``) as sent by clients and the AI
    extraction step, or their snake_case equivalents. Never raises: every
    field falls back to its default. The product name is never inferred
    here; it must already be normalized upstream.
    """
    data = data or {}

    normalized_name = _pick(data, "normalizedName", "normalized_name") or ""
    raw_product_name = (
        _pick(data, "rawProductName", "raw_product_name") or normalized_name
    )
    tax_included = _pick(data, "taxIncluded", "tax_included")

    return Entry(
        store_id=_pick(data, "storeId", "store_id") or UNKNOWN_STORE_ID,
        store_name=_pick(data, "storeName", "store_name") or UNKNOWN_STORE_NAME,
        place_id=_pick(data, "placeId", "place_id") or None,
        raw_product_name=raw_product_name,
        normalized_name=normalized_name,
        attributes=_coerce_attributes(data.get("attributes")),
        price=coerce_price(data.get("price")),
        currency=CURRENCY,
        tax_included=True if tax_included is None else bool(tax_included),
        date=_coerce_date(data.get("date")),
        region=data.get("region") or None,
        user_id=_pick(data, "userId", "user_id") or None,
        status=data.get("status") or "active",
        source=data.get("source") or "user",
        import_id=_pick(data, "importId", "import_id") or None,
    )
