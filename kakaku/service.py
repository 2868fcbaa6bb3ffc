"""Async facade over the price database with the read/write error policy.

Writes either succeed or raise :class:`SaveError`; they are never retried.
Reads never raise: failures are logged and an empty result is returned, so
an empty list can mean either "no data" or "query failed".
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Mapping
from typing import Any

from .db import PriceDB, RawImportDB
from .errors import SaveError
from .models import Entry, RawImport, RawItem, Store

logger = logging.getLogger(__name__)

# Failures a write may hit; anything else is a programming error and propagates.
_WRITE_ERRORS = (sqlite3.Error, LookupError, ValueError, ArithmeticError, OSError)


class PriceService:
    """Entry point for every price-sharing operation."""

    def __init__(self, prices: PriceDB, imports: RawImportDB) -> None:
        self._prices = prices
        self._imports = imports

    # -- reconciliation ---------------------------------------------------

    async def add_entry(self, raw: Mapping[str, Any]) -> str:
        """Persist one price observation with its product and store."""
        try:
            return await asyncio.to_thread(self._prices.add_entry, raw)
        except _WRITE_ERRORS as e:
            logger.exception("エントリの保存に失敗しました")
            raise SaveError("データの保存に失敗しました。") from e

    async def register_store(
        self,
        name: str,
        place_id: str,
        region: str | None = None,
        location: Mapping[str, float] | None = None,
    ) -> None:
        try:
            await asyncio.to_thread(
                self._prices.register_store, name, place_id, region, location
            )
        except _WRITE_ERRORS as e:
            logger.exception("店舗の登録に失敗しました: %s", place_id)
            raise SaveError("店舗の登録に失敗しました。") from e

    # -- social -----------------------------------------------------------

    async def give_thanks(self, entry_id: str, owner_user_id: str) -> None:
        try:
            await asyncio.to_thread(
                self._prices.give_thanks, entry_id, owner_user_id
            )
        except _WRITE_ERRORS as e:
            logger.exception("ありがとうの送信に失敗しました: %s", entry_id)
            raise SaveError("「ありがとう」の送信に失敗しました。") from e

    # -- queries ----------------------------------------------------------

    async def search_entries(
        self, normalized_name: str, store_id: str | None = None
    ) -> list[Entry]:
        try:
            return await asyncio.to_thread(
                self._prices.search_entries, normalized_name, store_id
            )
        except Exception:
            logger.exception("検索に失敗しました: %s", normalized_name)
            return []

    async def get_recent_entries(self, limit: int = 10) -> list[Entry]:
        try:
            return await asyncio.to_thread(self._prices.get_recent_entries, limit)
        except Exception:
            logger.exception("新着エントリの取得に失敗しました")
            return []

    async def get_all_stores(self) -> list[Store]:
        try:
            return await asyncio.to_thread(self._prices.get_all_stores)
        except Exception:
            logger.exception("店舗一覧の取得に失敗しました")
            return []

    async def get_entry(self, entry_id: str) -> Entry | None:
        try:
            return await asyncio.to_thread(self._prices.get_entry, entry_id)
        except Exception:
            logger.exception("エントリの取得に失敗しました: %s", entry_id)
            return None

    async def get_store(self, store_id: str) -> Store | None:
        try:
            return await asyncio.to_thread(self._prices.get_store, store_id)
        except Exception:
            logger.exception("店舗の取得に失敗しました: %s", store_id)
            return None

    # -- raw imports ------------------------------------------------------

    async def create_raw_import(self, data: RawImport) -> str:
        try:
            return await asyncio.to_thread(self._imports.create_raw_import, data)
        except _WRITE_ERRORS as e:
            logger.exception("インポートデータの作成に失敗しました")
            raise SaveError("インポートデータの作成に失敗しました。") from e

    async def update_raw_import_status(self, import_id: str, status: str) -> None:
        try:
            await asyncio.to_thread(
                self._imports.update_raw_import_status, import_id, status
            )
        except _WRITE_ERRORS as e:
            logger.exception("インポートステータスの更新に失敗しました: %s", import_id)
            raise SaveError("インポートステータスの更新に失敗しました。") from e

    async def attach_extraction(
        self,
        import_id: str,
        *,
        store: dict[str, Any],
        raw_items: list[RawItem],
        receipt_image_path: str | None = None,
        extracted_text: str | None = None,
    ) -> None:
        try:
            await asyncio.to_thread(
                self._imports.attach_extraction,
                import_id,
                store=store,
                raw_items=raw_items,
                receipt_image_path=receipt_image_path,
                extracted_text=extracted_text,
            )
        except _WRITE_ERRORS as e:
            logger.exception("解析結果の保存に失敗しました: %s", import_id)
            raise SaveError("解析結果の保存に失敗しました。") from e

    async def get_raw_import(self, import_id: str) -> RawImport | None:
        try:
            return await asyncio.to_thread(self._imports.get_raw_import, import_id)
        except Exception:
            logger.exception("インポートデータの取得に失敗しました: %s", import_id)
            return None
