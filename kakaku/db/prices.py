"""Stores, products, price entries and thanks counters."""

from __future__ import annotations

import hashlib
import json
import logging
import sqlite3
import uuid
from collections.abc import Mapping
from typing import Any

from ..errors import EntryNotFoundError
from ..models import UNKNOWN_STORE_ID, Entry, Product, Store, UserStats
from ..normalize import normalize_entry
from .base import SQLiteDatabase
from .schema import _NOW

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 50
RECENT_LIMIT = 10

# SQLite INTEGER range; larger prices are stored as REAL.
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

# Merge upsert: a NULL parameter means "not given" and keeps the stored value.
_UPSERT_STORE = f"""
INSERT INTO stores (store_id, name, place_id, lat, lng, region)
VALUES (:store_id, COALESCE(:name, :fallback_name), :place_id, :lat, :lng, :region)
ON CONFLICT(store_id) DO UPDATE SET
    name = COALESCE(:name, stores.name),
    place_id = COALESCE(:place_id, stores.place_id),
    lat = COALESCE(:lat, stores.lat),
    lng = COALESCE(:lng, stores.lng),
    region = COALESCE(:region, stores.region),
    updated_at = {_NOW}
"""


def product_key(normalized_name: str) -> str:
    """Deterministic product ID for a normalized name."""
    digest = hashlib.sha256(normalized_name.encode("utf-8")).hexdigest()
    return f"p_{digest[:32]}"


def _bind_price(price: int | float) -> int | float:
    if isinstance(price, int) and not _INT64_MIN <= price <= _INT64_MAX:
        return float(price)
    return price


def _row_to_entry(row: sqlite3.Row) -> Entry:
    return Entry(
        id=row["id"],
        store_id=row["store_id"],
        store_name=row["store_name"],
        place_id=row["place_id"],
        product_id=row["product_id"],
        raw_product_name=row["raw_product_name"],
        normalized_name=row["normalized_name"],
        attributes=json.loads(row["attributes"]),
        price=row["price"],
        currency=row["currency"],
        tax_included=bool(row["tax_included"]),
        date=row["date"],
        region=row["region"],
        user_id=row["user_id"],
        thanks_count=row["thanks_count"],
        status=row["status"],
        source=row["source"],
        import_id=row["import_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_store(row: sqlite3.Row) -> Store:
    return Store(
        store_id=row["store_id"],
        name=row["name"],
        place_id=row["place_id"],
        lat=row["lat"],
        lng=row["lng"],
        region=row["region"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PriceDB(SQLiteDatabase):
    """Manages the stores, products, entries and users tables."""

    # -- writes ---------------------------------------------------------

    def add_entry(self, raw: Mapping[str, Any] | None) -> str:
        """Normalize an observation and persist it with its product and store.

        The product lookup, product creation, store upsert and entry insert
        all run in one transaction, so either everything is written or
        nothing is.

        Returns:
            The new entry ID.
        """
        raw = raw or {}
        entry = normalize_entry(raw)
        store_key = entry.place_id or entry.store_id or UNKNOWN_STORE_ID
        # Only an explicitly given store name may rename an existing store.
        given_name = raw.get("storeName") or raw.get("store_name") or None
        product_id = product_key(entry.normalized_name)
        entry_id = uuid.uuid4().hex

        with self._transaction() as conn:
            cur = conn.execute(
                """INSERT INTO products (id, normalized_name)
                   VALUES (?, ?)
                   ON CONFLICT(id) DO NOTHING""",
                (product_id, entry.normalized_name),
            )
            if cur.rowcount:
                logger.info("新しい商品を登録しました: %s", entry.normalized_name)

            conn.execute(
                _UPSERT_STORE,
                {
                    "store_id": store_key,
                    "name": given_name,
                    "fallback_name": entry.store_name,
                    "place_id": entry.place_id,
                    "lat": None,
                    "lng": None,
                    "region": entry.region,
                },
            )

            conn.execute(
                """INSERT INTO entries
                   (id, store_id, store_name, place_id, product_id,
                    raw_product_name, normalized_name, attributes, price,
                    currency, tax_included, date, region, user_id,
                    thanks_count, status, source, import_id)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?)""",
                (
                    entry_id,
                    store_key,
                    entry.store_name,
                    entry.place_id,
                    product_id,
                    entry.raw_product_name,
                    entry.normalized_name,
                    json.dumps(entry.attributes, ensure_ascii=False),
                    _bind_price(entry.price),
                    entry.currency,
                    int(entry.tax_included),
                    entry.date,
                    entry.region,
                    entry.user_id,
                    entry.status,
                    entry.source,
                    entry.import_id,
                ),
            )

        logger.debug("エントリを保存しました: %s (%s)", entry_id, entry.normalized_name)
        return entry_id

    def register_store(
        self,
        name: str,
        place_id: str,
        region: str | None = None,
        location: Mapping[str, float] | None = None,
    ) -> None:
        """Insert or merge a store keyed by its place ID."""
        location = location or {}
        with self._transaction() as conn:
            conn.execute(
                _UPSERT_STORE,
                {
                    "store_id": place_id,
                    "name": name or None,
                    "fallback_name": place_id,
                    "place_id": place_id,
                    "lat": location.get("lat"),
                    "lng": location.get("lng"),
                    "region": region or None,
                },
            )

    def give_thanks(self, entry_id: str, owner_user_id: str) -> None:
        """Increment the entry's and its owner's thanks counters together.

        Raises:
            EntryNotFoundError: If the entry does not exist. Neither
                counter changes in that case.
        """
        with self._transaction() as conn:
            cur = conn.execute(
                f"""UPDATE entries
                    SET thanks_count = thanks_count + 1,
                        updated_at = {_NOW}
                    WHERE id = ?""",
                (entry_id,),
            )
            if cur.rowcount == 0:
                raise EntryNotFoundError(f"エントリが見つかりません: {entry_id}")
            conn.execute(
                f"""INSERT INTO users (user_id, thanks_received)
                    VALUES (?, 1)
                    ON CONFLICT(user_id) DO UPDATE SET
                        thanks_received = users.thanks_received + 1,
                        updated_at = {_NOW}""",
                (owner_user_id,),
            )

    # -- reads ----------------------------------------------------------

    def search_entries(
        self,
        normalized_name: str,
        store_id: str | None = None,
        limit: int = SEARCH_LIMIT,
    ) -> list[Entry]:
        """Return active entries whose normalized name matches exactly."""
        sql = "SELECT * FROM entries WHERE normalized_name = ? AND status = 'active'"
        params: tuple = (normalized_name,)
        if store_id:
            sql += " AND store_id = ?"
            params += (store_id,)
        sql += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
        params += (min(max(limit, 0), SEARCH_LIMIT),)
        return [_row_to_entry(r) for r in self._fetchall(sql, params)]

    def get_recent_entries(self, limit: int = RECENT_LIMIT) -> list[Entry]:
        """Return the newest active entries."""
        rows = self._fetchall(
            """SELECT * FROM entries
               WHERE status = 'active'
               ORDER BY created_at DESC, rowid DESC
               LIMIT ?""",
            (max(limit, 0),),
        )
        return [_row_to_entry(r) for r in rows]

    def get_all_stores(self) -> list[Store]:
        rows = self._fetchall("SELECT * FROM stores ORDER BY name ASC")
        return [_row_to_store(r) for r in rows]

    def get_entry(self, entry_id: str) -> Entry | None:
        row = self._fetchone("SELECT * FROM entries WHERE id = ?", (entry_id,))
        return _row_to_entry(row) if row else None

    def get_store(self, store_id: str) -> Store | None:
        row = self._fetchone(
            "SELECT * FROM stores WHERE store_id = ?", (store_id,)
        )
        return _row_to_store(row) if row else None

    def get_product_by_name(self, normalized_name: str) -> Product | None:
        row = self._fetchone(
            "SELECT * FROM products WHERE normalized_name = ?",
            (normalized_name,),
        )
        if row is None:
            return None
        return Product(
            id=row["id"],
            normalized_name=row["normalized_name"],
            aliases=json.loads(row["aliases"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def count_products(self, normalized_name: str | None = None) -> int:
        if normalized_name is None:
            row = self._fetchone("SELECT COUNT(*) AS n FROM products")
        else:
            row = self._fetchone(
                "SELECT COUNT(*) AS n FROM products WHERE normalized_name = ?",
                (normalized_name,),
            )
        return row["n"]

    def get_user_stats(self, user_id: str) -> UserStats | None:
        row = self._fetchone("SELECT * FROM users WHERE user_id = ?", (user_id,))
        if row is None:
            return None
        return UserStats(
            user_id=row["user_id"],
            thanks_received=row["thanks_received"],
            updated_at=row["updated_at"],
        )
