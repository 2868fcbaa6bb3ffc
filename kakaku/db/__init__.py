"""SQLite storage for stores, products, price entries and imports."""

from .base import DEFAULT_DB_PATH, SQLiteDatabase
from .imports import RawImportDB
from .prices import PriceDB, product_key
from .schema import ensure_schema

__all__ = [
    "DEFAULT_DB_PATH",
    "SQLiteDatabase",
    "PriceDB",
    "RawImportDB",
    "product_key",
    "ensure_schema",
]
