"""Receipt reader base class, data types, and factory."""

from __future__ import annotations

import asyncio
import json
import logging
import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..config import is_placeholder_key
from ..errors import AuthRequiredError, ExtractionError, RateLimitError
from ..models import RawItem
from ..normalize import coerce_price
from .parsing import parse_json_object
from .prompts import EXTRACTION_PROMPT, NORMALIZATION_PROMPT

if TYPE_CHECKING:
    from ..config import KakakuConfig

logger = logging.getLogger(__name__)

# Retry policy for extraction: (retries, seconds between attempts)
RATE_LIMIT_RETRIES = 2
RATE_LIMIT_BACKOFF = 3.0
TRANSIENT_RETRIES = 1
TRANSIENT_BACKOFF = 2.0

NORMALIZE_RETRIES = 1
NORMALIZE_BACKOFF = 1.0

_AUTH_STATUS = (400, 401, 403)
_AUTH_MARKERS = ("API key not valid", "API_KEY_INVALID", "PERMISSION_DENIED")
_RATE_LIMIT_MARKERS = ("429", "Too Many Requests", "RESOURCE_EXHAUSTED")


@dataclass
class ExtractionResult:
    store_name: str | None = None
    date: str | None = None
    items: list[RawItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "storeName": self.store_name,
            "date": self.date,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass
class NormalizedItem:
    raw_index: int
    normalized_name: str
    attributes: list[str] = field(default_factory=list)
    price: int = 0
    confidence: float = 0.0
    reason: str = ""


def _status_code(exc: BaseException) -> int | None:
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def is_auth_error(exc: BaseException) -> bool:
    message = str(exc)
    return _status_code(exc) in _AUTH_STATUS or any(
        m in message for m in _AUTH_MARKERS
    )


def is_rate_limited(exc: BaseException) -> bool:
    message = str(exc)
    return _status_code(exc) == 429 or any(
        m in message for m in _RATE_LIMIT_MARKERS
    )


def _to_extraction(text: str | None) -> ExtractionResult:
    if not text or not text.strip():
        raise ExtractionError("AIから空の応答が返されました。")
    try:
        data = parse_json_object(text)
    except ValueError as e:
        raise ExtractionError(f"AIの応答を解析できませんでした: {e}") from e

    items: list[RawItem] = []
    for item in data.get("items") or []:
        if not isinstance(item, dict):
            continue
        raw_price = item.get("rawPrice")
        items.append(
            RawItem(
                raw_line=item.get("rawLine") or "",
                raw_product_name=item.get("rawProductName"),
                raw_price=None if raw_price is None else coerce_price(raw_price),
                raw_qty=None if item.get("rawQty") is None else str(item["rawQty"]),
                raw_meta=item.get("rawMeta"),
            )
        )
    return ExtractionResult(
        store_name=data.get("storeName") or None,
        date=data.get("date") or None,
        items=items,
    )


def _to_normalized(index: int, item: dict[str, Any]) -> NormalizedItem:
    attributes = item.get("attributes") or []
    if not isinstance(attributes, list):
        attributes = [attributes]
    try:
        raw_index = int(item.get("rawIndex", index))
    except (TypeError, ValueError):
        raw_index = index
    try:
        confidence = float(item.get("confidence") or 0.0)
    except (TypeError, ValueError):
        confidence = 0.0
    return NormalizedItem(
        raw_index=raw_index,
        normalized_name=item.get("normalizedName") or "",
        attributes=[str(a) for a in attributes],
        price=coerce_price(item.get("price")),
        confidence=confidence,
        reason=item.get("reason") or "",
    )


class ReceiptReader(ABC):
    """Abstract base for reading price lines from receipt images.

    Subclasses only talk to their model; retries and error classification
    live here.
    """

    key_env_var = "GEMINI_API_KEY"

    def __init__(self, api_key: str = "", model: str = "") -> None:
        self._api_key = api_key
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    @property
    def configured(self) -> bool:
        return not is_placeholder_key(self._api_key)

    @abstractmethod
    async def _generate_from_image(
        self, prompt: str, data: bytes, mime_type: str
    ) -> str:
        """Send a prompt plus one image and return the response text."""
        ...

    @abstractmethod
    async def _generate_from_text(self, prompt: str, payload: str) -> str:
        """Send a prompt plus a JSON payload and return the response text."""
        ...

    async def extract_raw_items(self, image_path: str | Path) -> ExtractionResult:
        """Extract store name, date and item lines from a receipt image.

        Raises:
            AuthRequiredError: If the API key is missing or rejected.
            RateLimitError: If the service keeps rate limiting.
            ExtractionError: On any other failure or an unusable response.
        """
        if not self.configured:
            raise AuthRequiredError(
                "AI機能を有効化してください。"
                f"設定ファイルまたは {self.key_env_var} 環境変数にAPIキーを設定してください。"
            )

        data = Path(image_path).read_bytes()
        mime_type = mimetypes.guess_type(str(image_path))[0] or "image/jpeg"

        rate_limited = 0
        failures = 0
        while True:
            attempt = rate_limited + failures + 1
            logger.info("レシート解析を開始します (%d 回目)", attempt)
            try:
                text = await self._generate_from_image(
                    EXTRACTION_PROMPT, data, mime_type
                )
            except ImportError:
                raise
            except Exception as e:
                if is_auth_error(e):
                    raise AuthRequiredError(
                        "APIキーが無効です。再設定してください。"
                    ) from e
                if is_rate_limited(e):
                    if rate_limited < RATE_LIMIT_RETRIES:
                        rate_limited += 1
                        logger.warning(
                            "レート制限のため %.0f 秒後に再試行します", RATE_LIMIT_BACKOFF
                        )
                        await asyncio.sleep(RATE_LIMIT_BACKOFF)
                        continue
                    raise RateLimitError(
                        "リクエストが多すぎます。1分ほど待ってから再度お試しください。"
                    ) from e
                if failures < TRANSIENT_RETRIES:
                    failures += 1
                    logger.warning(
                        "レシート解析に失敗しました。%.0f 秒後に再試行します: %s",
                        TRANSIENT_BACKOFF,
                        e,
                    )
                    await asyncio.sleep(TRANSIENT_BACKOFF)
                    continue
                raise ExtractionError(
                    f"解析エラーが発生しました。({str(e)[:100]})"
                ) from e
            return _to_extraction(text)

    async def normalize_items(
        self,
        raw_items: list[RawItem],
        *,
        store_name: str | None = None,
        region: str | None = None,
    ) -> list[NormalizedItem]:
        """Map raw receipt lines to canonical product names and attributes.

        Returns an empty list when there is nothing to normalize, when no
        key is configured, or when the service keeps failing; callers then
        fall back to the raw names.
        """
        if not raw_items:
            return []
        if not self.configured:
            logger.warning("APIキー未設定のため正規化をスキップします")
            return []

        prompt = NORMALIZATION_PROMPT.replace(
            "{{storeName}}", store_name or "不明"
        ).replace("{{region}}", region or "不明")
        payload = json.dumps(
            [item.to_dict() for item in raw_items], ensure_ascii=False
        )

        for attempt in range(NORMALIZE_RETRIES + 1):
            try:
                text = await self._generate_from_text(prompt, payload)
                data = parse_json_object(text or "{}")
                return [
                    _to_normalized(i, item)
                    for i, item in enumerate(data.get("normalizedItems") or [])
                    if isinstance(item, dict)
                ]
            except ImportError:
                raise
            except Exception:
                logger.exception("商品名の正規化に失敗しました (%d 回目)", attempt + 1)
                if attempt < NORMALIZE_RETRIES:
                    await asyncio.sleep(NORMALIZE_BACKOFF)
        return []


def create_reader(config: KakakuConfig) -> ReceiptReader:
    """Create a receipt reader based on configuration."""
    backend_name = config.ai.backend

    match backend_name:
        case "gemini":
            from .gemini import GeminiReceiptReader

            return GeminiReceiptReader(
                api_key=config.ai.gemini.api_key,
                model=config.ai.gemini.model,
            )
        case "claude":
            from .claude import ClaudeReceiptReader

            return ClaudeReceiptReader(
                api_key=config.ai.claude.api_key,
                model=config.ai.claude.model,
            )
        case _:
            raise ValueError(
                f"不明なAIバックエンド: {backend_name!r}  "
                f"(gemini / claude から選択してください)"
            )
