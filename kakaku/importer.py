"""AI-assisted receipt submission: analyze an image, then confirm entries."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import ExtractionError, SaveError
from .models import AIRun, RawImport, RawItem, Store
from .normalize import today_iso

if TYPE_CHECKING:
    from .images import ReceiptImageStore
    from .receipt import NormalizedItem, ReceiptReader
    from .service import PriceService

logger = logging.getLogger(__name__)


@dataclass
class CandidateItem:
    """A line item awaiting the user's confirmation."""

    raw_product_name: str
    normalized_name: str
    price: int
    attributes: list[str] = field(default_factory=list)
    confidence: float | None = None


@dataclass
class ReceiptAnalysis:
    import_id: str
    store_name: str | None
    date: str | None
    items: list[CandidateItem] = field(default_factory=list)


def build_candidates(
    raw_items: list[RawItem], normalized: list[NormalizedItem]
) -> list[CandidateItem]:
    """Pair normalized items with the raw lines they came from.

    Without normalization results the raw names and prices are used as-is.
    """
    if not normalized:
        return [
            CandidateItem(
                raw_product_name=item.raw_product_name or item.raw_line,
                normalized_name=item.raw_product_name or "",
                price=item.raw_price or 0,
            )
            for item in raw_items
        ]

    candidates: list[CandidateItem] = []
    for item in normalized:
        raw = None
        if 0 <= item.raw_index < len(raw_items):
            raw = raw_items[item.raw_index]
        raw_name = (raw.raw_product_name if raw else None) or item.normalized_name
        candidates.append(
            CandidateItem(
                raw_product_name=raw_name,
                normalized_name=item.normalized_name,
                price=item.price,
                attributes=list(item.attributes),
                confidence=item.confidence,
            )
        )
    return candidates


class ReceiptImporter:
    """Runs the receipt workflow and keeps its RawImport record current."""

    def __init__(
        self,
        service: PriceService,
        reader: ReceiptReader,
        images: ReceiptImageStore | None = None,
    ) -> None:
        self._service = service
        self._reader = reader
        self._images = images

    async def analyze(
        self,
        image_path: str | Path,
        *,
        user_id: str,
        region: str | None = None,
    ) -> ReceiptAnalysis:
        """Create a draft import, read the receipt and propose entries.

        Raises:
            AuthRequiredError: If the AI service needs credentials.
            ExtractionError: If the receipt could not be read.
            SaveError: If the draft import could not be recorded.
        """
        data = Path(image_path).read_bytes()
        import_id = await self._service.create_raw_import(
            RawImport(user_id=user_id, ai1=AIRun(model=self._reader.model))
        )
        logger.info("レシート取り込みを開始しました: %s", import_id)

        try:
            stored_path = self._store_image(user_id, import_id, data)
            extraction = await self._reader.extract_raw_items(image_path)
            if not extraction.items:
                raise ExtractionError("レシートから商品を読み取れませんでした。")

            store_hint = {"storeName": extraction.store_name} if extraction.store_name else {}
            await self._service.attach_extraction(
                import_id,
                store=store_hint,
                raw_items=extraction.items,
                receipt_image_path=stored_path,
            )
            normalized = await self._reader.normalize_items(
                extraction.items,
                store_name=extraction.store_name,
                region=region,
            )
        except Exception:
            await self._mark_failed(import_id)
            raise

        return ReceiptAnalysis(
            import_id=import_id,
            store_name=extraction.store_name,
            date=extraction.date,
            items=build_candidates(extraction.items, normalized),
        )

    async def confirm(
        self,
        analysis: ReceiptAnalysis,
        *,
        store: Store,
        user_id: str,
        region: str | None = None,
    ) -> list[str]:
        """Save one entry per candidate, then mark the import confirmed.

        Returns:
            The new entry IDs, in candidate order.
        """
        store_key = store.place_id or store.store_id
        entry_date = analysis.date or today_iso()
        entry_ids: list[str] = []
        try:
            for item in analysis.items:
                entry_id = await self._service.add_entry(
                    {
                        "storeId": store_key,
                        "storeName": store.name,
                        "placeId": store_key,
                        "rawProductName": item.raw_product_name,
                        "normalizedName": item.normalized_name,
                        "attributes": item.attributes,
                        "price": item.price,
                        "date": entry_date,
                        "region": region,
                        "userId": user_id,
                        "source": "receipt",
                        "importId": analysis.import_id,
                    }
                )
                entry_ids.append(entry_id)
        except SaveError:
            await self._mark_failed(analysis.import_id)
            raise

        await self._service.update_raw_import_status(analysis.import_id, "confirmed")
        logger.info(
            "レシート取り込みを確定しました: %s (%d 件)",
            analysis.import_id,
            len(entry_ids),
        )
        return entry_ids

    def _store_image(self, user_id: str, import_id: str, data: bytes) -> str | None:
        if self._images is None:
            return None
        try:
            return self._images.save(user_id, import_id, data)
        except OSError:
            # The entries do not depend on the image; keep going without it.
            logger.warning("レシート画像の保存に失敗しました: %s", import_id, exc_info=True)
            return None

    async def _mark_failed(self, import_id: str) -> None:
        try:
            await self._service.update_raw_import_status(import_id, "failed")
        except SaveError:
            logger.warning("インポートを失敗状態にできませんでした: %s", import_id)
