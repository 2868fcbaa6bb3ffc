"""Tests for receipt readers (mocked API calls)."""

import asyncio
import json
import sys
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kakaku.config import load_config
from kakaku.errors import AuthRequiredError, ExtractionError, RateLimitError
from kakaku.models import RawItem
from kakaku.receipt import (
    ExtractionResult,
    NormalizedItem,
    ReceiptReader,
    create_reader,
    is_auth_error,
    is_rate_limited,
)
from kakaku.receipt.claude import ClaudeReceiptReader
from kakaku.receipt.gemini import GeminiReceiptReader
from kakaku.receipt.parsing import parse_json_object

EXTRACTED = json.dumps(
    {
        "storeName": "Aスーパー",
        "date": "2025-01-10",
        "items": [
            {"rawLine": "ｷｬﾍﾞﾂ 158", "rawProductName": "ｷｬﾍﾞﾂ", "rawPrice": 158},
            {"rawLine": "牛乳 1L 198", "rawProductName": "牛乳 1L", "rawPrice": "198", "rawQty": 1},
        ],
    },
    ensure_ascii=False,
)

NORMALIZED = json.dumps(
    {
        "normalizedItems": [
            {
                "rawIndex": 0,
                "normalizedName": "キャベツ",
                "attributes": [],
                "price": 158,
                "confidence": 0.95,
                "reason": "半角カナを修正",
            },
            {
                "rawIndex": 1,
                "normalizedName": "牛乳",
                "attributes": ["1L"],
                "price": 198,
                "confidence": 0.9,
                "reason": "内容量を属性に分離",
            },
        ]
    },
    ensure_ascii=False,
)


class APIError(Exception):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class ScriptedReader(ReceiptReader):
    """Returns (or raises) scripted responses in order."""

    def __init__(self, responses, api_key="test-key"):
        super().__init__(api_key=api_key, model="scripted")
        self.responses = list(responses)
        self.calls = 0

    async def _next(self):
        self.calls += 1
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def _generate_from_image(self, prompt, data, mime_type):
        return await self._next()

    async def _generate_from_text(self, prompt, payload):
        return await self._next()


@pytest.fixture
def image(tmp_path):
    img = tmp_path / "receipt.jpg"
    img.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg")
    return img


@pytest.fixture
def sleep(monkeypatch):
    mock = AsyncMock()
    monkeypatch.setattr(asyncio, "sleep", mock)
    return mock


class TestParseJsonObject:
    def test_plain(self):
        assert parse_json_object('{"items": []}') == {"items": []}

    def test_markdown_fences(self):
        text = '```json\n{"storeName": "Aスーパー"}\n```'
        assert parse_json_object(text) == {"storeName": "Aスーパー"}

    def test_surrounding_chatter(self):
        text = 'はい、結果です:\n{"items": [1]}\n以上です。'
        assert parse_json_object(text) == {"items": [1]}

    def test_array_rejected(self):
        with pytest.raises(ValueError):
            parse_json_object("[1, 2]")

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            parse_json_object("読み取れませんでした")


class TestClassification:
    def test_auth_by_status(self):
        assert is_auth_error(APIError("forbidden", status_code=403))

    def test_auth_by_message(self):
        assert is_auth_error(Exception("400 API key not valid. Please pass a valid API key."))

    def test_rate_limit(self):
        assert is_rate_limited(APIError("slow down", status_code=429))
        assert is_rate_limited(Exception("429 Resource has been exhausted"))

    def test_other(self):
        err = APIError("Internal error", status_code=500)
        assert not is_auth_error(err)
        assert not is_rate_limited(err)


class TestExtractRawItems:
    @pytest.mark.asyncio
    async def test_success(self, image):
        reader = ScriptedReader([EXTRACTED])
        result = await reader.extract_raw_items(image)

        assert isinstance(result, ExtractionResult)
        assert result.store_name == "Aスーパー"
        assert result.date == "2025-01-10"
        assert result.items[0] == RawItem(
            raw_line="ｷｬﾍﾞﾂ 158", raw_product_name="ｷｬﾍﾞﾂ", raw_price=158
        )
        assert result.items[1].raw_price == 198
        assert result.items[1].raw_qty == "1"

    @pytest.mark.asyncio
    async def test_placeholder_key_requires_auth(self, image):
        reader = ScriptedReader([EXTRACTED], api_key="AI Studio Free Tier")
        with pytest.raises(AuthRequiredError):
            await reader.extract_raw_items(image)
        assert reader.calls == 0

    @pytest.mark.asyncio
    async def test_invalid_key_requires_auth_without_retry(self, image, sleep):
        reader = ScriptedReader([APIError("API key not valid", status_code=400)])
        with pytest.raises(AuthRequiredError, match="APIキー"):
            await reader.extract_raw_items(image)
        assert reader.calls == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limit_retried_twice(self, image, sleep):
        reader = ScriptedReader(
            [APIError("Too Many Requests", 429), APIError("Too Many Requests", 429), EXTRACTED]
        )
        result = await reader.extract_raw_items(image)

        assert len(result.items) == 2
        assert reader.calls == 3
        assert sleep.await_count == 2
        sleep.assert_awaited_with(3.0)

    @pytest.mark.asyncio
    async def test_rate_limit_gives_up(self, image, sleep):
        reader = ScriptedReader([APIError("Too Many Requests", 429)] * 3)
        with pytest.raises(RateLimitError):
            await reader.extract_raw_items(image)
        assert reader.calls == 3

    @pytest.mark.asyncio
    async def test_transient_error_retried_once(self, image, sleep):
        reader = ScriptedReader([APIError("Internal error", 500), EXTRACTED])
        result = await reader.extract_raw_items(image)

        assert result.store_name == "Aスーパー"
        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_transient_error_gives_up(self, image, sleep):
        reader = ScriptedReader([ConnectionError("reset"), ConnectionError("reset")])
        with pytest.raises(ExtractionError, match="解析エラー"):
            await reader.extract_raw_items(image)
        assert reader.calls == 2

    @pytest.mark.asyncio
    async def test_empty_response_is_hard_failure(self, image, sleep):
        reader = ScriptedReader(["", EXTRACTED])
        with pytest.raises(ExtractionError, match="空の応答"):
            await reader.extract_raw_items(image)
        assert reader.calls == 1

    @pytest.mark.asyncio
    async def test_malformed_json_is_hard_failure(self, image, sleep):
        reader = ScriptedReader(["not json at all", EXTRACTED])
        with pytest.raises(ExtractionError):
            await reader.extract_raw_items(image)
        assert reader.calls == 1


class TestNormalizeItems:
    RAW = [RawItem(raw_line="ｷｬﾍﾞﾂ 158", raw_product_name="ｷｬﾍﾞﾂ", raw_price=158)]

    @pytest.mark.asyncio
    async def test_success(self):
        reader = ScriptedReader([NORMALIZED])
        items = await reader.normalize_items(self.RAW, store_name="Aスーパー")

        assert items[0] == NormalizedItem(
            raw_index=0,
            normalized_name="キャベツ",
            attributes=[],
            price=158,
            confidence=0.95,
            reason="半角カナを修正",
        )
        assert items[1].attributes == ["1L"]

    @pytest.mark.asyncio
    async def test_empty_input(self):
        reader = ScriptedReader([])
        assert await reader.normalize_items([]) == []
        assert reader.calls == 0

    @pytest.mark.asyncio
    async def test_unconfigured_key_returns_empty(self):
        reader = ScriptedReader([NORMALIZED], api_key="")
        assert await reader.normalize_items(self.RAW) == []
        assert reader.calls == 0

    @pytest.mark.asyncio
    async def test_retried_once_then_empty(self, sleep):
        reader = ScriptedReader([APIError("boom", 500), APIError("boom", 500)])
        assert await reader.normalize_items(self.RAW) == []
        assert reader.calls == 2
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_retry_recovers(self, sleep):
        reader = ScriptedReader(["garbage", NORMALIZED])
        items = await reader.normalize_items(self.RAW)
        assert [i.normalized_name for i in items] == ["キャベツ", "牛乳"]


class TestCreateReader:
    def test_create_gemini_reader(self):
        config = load_config()
        reader = create_reader(config)
        assert isinstance(reader, GeminiReceiptReader)

    def test_create_claude_reader(self):
        config = load_config()
        config.ai.backend = "claude"
        reader = create_reader(config)
        assert isinstance(reader, ClaudeReceiptReader)

    def test_create_unknown_reader(self):
        config = load_config()
        config.ai.backend = "unknown"
        with pytest.raises(ValueError, match="不明なAIバックエンド"):
            create_reader(config)


class TestGeminiReceiptReader:
    @pytest.mark.asyncio
    async def test_requires_api_key(self, image):
        reader = GeminiReceiptReader(api_key="")
        with pytest.raises(ValueError, match="APIキー"):
            await reader.extract_raw_items(image)

    @pytest.mark.asyncio
    async def test_extract_mocked(self, image):
        mock_model = MagicMock()
        mock_model.generate_content_async = AsyncMock(
            return_value=MagicMock(text=EXTRACTED)
        )
        mock_genai = MagicMock()
        mock_genai.GenerativeModel.return_value = mock_model
        mock_google = MagicMock()
        mock_google.generativeai = mock_genai

        with patch.dict(
            sys.modules, {"google": mock_google, "google.generativeai": mock_genai}
        ):
            reader = GeminiReceiptReader(api_key="test-key")
            result = await reader.extract_raw_items(image)

        assert len(result.items) == 2
        mock_genai.configure.assert_called_once_with(api_key="test-key")
        parts = mock_model.generate_content_async.call_args.args[0]
        assert parts[1]["mime_type"] == "image/jpeg"
        assert parts[1]["data"] == image.read_bytes()


class TestClaudeReceiptReader:
    @pytest.mark.asyncio
    async def test_requires_api_key(self, image):
        reader = ClaudeReceiptReader(api_key="YOUR_API_KEY_HERE")
        with pytest.raises(ValueError, match="APIキー"):
            await reader.extract_raw_items(image)

    @pytest.mark.asyncio
    async def test_normalize_mocked(self):
        mock_response = MagicMock()
        mock_response.content = [MagicMock(text=NORMALIZED)]

        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(return_value=mock_response)

        mock_anthropic = MagicMock()
        mock_anthropic.AsyncAnthropic.return_value = mock_client

        with patch.dict(sys.modules, {"anthropic": mock_anthropic}):
            reader = ClaudeReceiptReader(api_key="test-key")
            items = await reader.normalize_items(
                [RawItem(raw_line="ｷｬﾍﾞﾂ 158")], region="東京都"
            )

        assert [i.normalized_name for i in items] == ["キャベツ", "牛乳"]
        content = mock_client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert "東京都" in content[0]["text"]
