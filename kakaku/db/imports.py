"""Provenance records for AI-assisted receipt submissions."""

from __future__ import annotations

import json
import sqlite3
import uuid
from typing import Any

from ..errors import ImportNotFoundError
from ..models import IMPORT_STATUSES, AIRun, RawImport, RawItem
from .base import SQLiteDatabase
from .schema import _NOW


def _row_to_import(row: sqlite3.Row) -> RawImport:
    return RawImport(
        id=row["id"],
        user_id=row["user_id"],
        store=json.loads(row["store_json"]),
        receipt_image_path=row["receipt_image_path"],
        extracted_text=row["extracted_text"],
        raw_items=[RawItem.from_dict(d) for d in json.loads(row["raw_items_json"])],
        ai1=AIRun(
            model=row["ai_model"],
            created_at=row["ai_created_at"],
            confidence=row["ai_confidence"],
        ),
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class RawImportDB(SQLiteDatabase):
    """Manages the raw_imports table."""

    def create_raw_import(self, data: RawImport) -> str:
        """Insert a new import in the draft state.

        Returns:
            The new import ID.
        """
        import_id = uuid.uuid4().hex
        with self._transaction() as conn:
            conn.execute(
                f"""INSERT INTO raw_imports
                    (id, user_id, store_json, receipt_image_path,
                     extracted_text, raw_items_json, ai_model,
                     ai_created_at, ai_confidence, status)
                    VALUES (?, ?, ?, ?, ?, ?, ?,
                            COALESCE(?, {_NOW}), ?, 'draft')""",
                (
                    import_id,
                    data.user_id,
                    json.dumps(data.store, ensure_ascii=False),
                    data.receipt_image_path,
                    data.extracted_text,
                    json.dumps(
                        [item.to_dict() for item in data.raw_items],
                        ensure_ascii=False,
                    ),
                    data.ai1.model,
                    data.ai1.created_at,
                    data.ai1.confidence,
                ),
            )
        return import_id

    def update_raw_import_status(self, import_id: str, status: str) -> None:
        """Set the status of an import.

        Any known status may follow any other.

        Raises:
            ValueError: If the status is not one of draft/confirmed/failed.
            ImportNotFoundError: If the import does not exist.
        """
        if status not in IMPORT_STATUSES:
            raise ValueError(
                f"不明なステータス: {status!r} "
                f"({' / '.join(IMPORT_STATUSES)} から選択してください)"
            )
        with self._transaction() as conn:
            cur = conn.execute(
                f"""UPDATE raw_imports
                    SET status = ?, updated_at = {_NOW}
                    WHERE id = ?""",
                (status, import_id),
            )
            if cur.rowcount == 0:
                raise ImportNotFoundError(f"インポートが見つかりません: {import_id}")

    def attach_extraction(
        self,
        import_id: str,
        *,
        store: dict[str, Any],
        raw_items: list[RawItem],
        receipt_image_path: str | None = None,
        extracted_text: str | None = None,
    ) -> None:
        """Record what the AI read from the receipt on a draft import."""
        with self._transaction() as conn:
            cur = conn.execute(
                f"""UPDATE raw_imports
                    SET store_json = ?,
                        raw_items_json = ?,
                        receipt_image_path = COALESCE(?, receipt_image_path),
                        extracted_text = COALESCE(?, extracted_text),
                        updated_at = {_NOW}
                    WHERE id = ?""",
                (
                    json.dumps(store, ensure_ascii=False),
                    json.dumps(
                        [item.to_dict() for item in raw_items],
                        ensure_ascii=False,
                    ),
                    receipt_image_path,
                    extracted_text,
                    import_id,
                ),
            )
            if cur.rowcount == 0:
                raise ImportNotFoundError(f"インポートが見つかりません: {import_id}")

    def get_raw_import(self, import_id: str) -> RawImport | None:
        row = self._fetchone("SELECT * FROM raw_imports WHERE id = ?", (import_id,))
        return _row_to_import(row) if row else None
