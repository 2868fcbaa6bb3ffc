"""Local storage for uploaded receipt images."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class ReceiptImageStore:
    """Stores receipt images under ``<root>/receipt_images/<user>/<import>.jpg``."""

    def __init__(self, root: str | Path = "~/.config/kakaku/storage") -> None:
        self._root = Path(root).expanduser()

    @property
    def root(self) -> Path:
        return self._root

    def save(self, user_id: str, import_id: str, data: bytes) -> str:
        """Write an image and return its storage path relative to the root."""
        if not user_id or "/" in user_id or user_id in (".", ".."):
            raise ValueError(f"不正なユーザーID: {user_id!r}")
        if not import_id or "/" in import_id or import_id in (".", ".."):
            raise ValueError(f"不正なインポートID: {import_id!r}")

        relative = f"receipt_images/{user_id}/{import_id}.jpg"
        target = self.resolve(relative)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.debug("レシート画像を保存しました: %s", target)
        return relative

    def resolve(self, path: str) -> Path:
        """Return the filesystem location of a stored image path."""
        return self._root / path
