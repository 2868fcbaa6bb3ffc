"""Client handles built once per process and passed to every component."""

from __future__ import annotations

from .config import KakakuConfig
from .db import PriceDB, RawImportDB
from .images import ReceiptImageStore
from .importer import ReceiptImporter
from .receipt import ReceiptReader, create_reader
from .service import PriceService


class AppContext:
    """Owns the database handles, AI reader and image store.

    Everything is created on first use, so a context for a read-only
    command never touches the AI configuration.
    """

    def __init__(self, config: KakakuConfig) -> None:
        self.config = config
        self._prices: PriceDB | None = None
        self._imports: RawImportDB | None = None
        self._service: PriceService | None = None
        self._reader: ReceiptReader | None = None
        self._images: ReceiptImageStore | None = None

    @property
    def prices(self) -> PriceDB:
        if self._prices is None:
            self._prices = PriceDB(self.config.database.path)
        return self._prices

    @property
    def imports(self) -> RawImportDB:
        if self._imports is None:
            self._imports = RawImportDB(self.config.database.path)
        return self._imports

    @property
    def service(self) -> PriceService:
        if self._service is None:
            self._service = PriceService(self.prices, self.imports)
        return self._service

    @property
    def reader(self) -> ReceiptReader:
        if self._reader is None:
            self._reader = create_reader(self.config)
        return self._reader

    @property
    def images(self) -> ReceiptImageStore:
        if self._images is None:
            self._images = ReceiptImageStore(self.config.storage.root)
        return self._images

    def importer(self) -> ReceiptImporter:
        return ReceiptImporter(self.service, self.reader, self.images)

    def close(self) -> None:
        if self._prices is not None:
            self._prices.close()
        if self._imports is not None:
            self._imports.close()
