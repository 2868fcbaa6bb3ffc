"""Shared supermarket price book built from receipts."""

from .config import KakakuConfig, is_placeholder_key, load_config
from .context import AppContext
from .db import PriceDB, RawImportDB
from .errors import (
    AuthRequiredError,
    ConfigurationError,
    EntryNotFoundError,
    ExtractionError,
    ImportNotFoundError,
    RateLimitError,
    SaveError,
)
from .importer import CandidateItem, ReceiptAnalysis, ReceiptImporter
from .models import CURRENCY, Entry, Product, RawImport, RawItem, Store
from .normalize import normalize_entry
from .service import PriceService

__all__ = [
    "AppContext",
    "PriceService",
    "PriceDB",
    "RawImportDB",
    "ReceiptImporter",
    "ReceiptAnalysis",
    "CandidateItem",
    "normalize_entry",
    "Entry",
    "Store",
    "Product",
    "RawImport",
    "RawItem",
    "CURRENCY",
    "KakakuConfig",
    "load_config",
    "is_placeholder_key",
    "ConfigurationError",
    "AuthRequiredError",
    "ExtractionError",
    "RateLimitError",
    "SaveError",
    "EntryNotFoundError",
    "ImportNotFoundError",
]
