"""Claude API receipt reader."""

from __future__ import annotations

import base64

from . import ReceiptReader


class ClaudeReceiptReader(ReceiptReader):
    """Read receipts using Claude's vision capability."""

    key_env_var = "ANTHROPIC_API_KEY"

    def __init__(
        self, api_key: str = "", model: str = "claude-sonnet-4-5-20250929"
    ) -> None:
        super().__init__(api_key=api_key, model=model)

    def _client(self):
        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic SDK is required: pip install anthropic"
            ) from None

        return anthropic.AsyncAnthropic(api_key=self._api_key)

    async def _complete(self, content: list[dict]) -> str:
        client = self._client()
        response = await client.messages.create(
            model=self._model,
            max_tokens=4096,
            messages=[{"role": "user", "content": content}],
        )
        return response.content[0].text

    async def _generate_from_image(
        self, prompt: str, data: bytes, mime_type: str
    ) -> str:
        return await self._complete(
            [
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": mime_type,
                        "data": base64.standard_b64encode(data).decode(),
                    },
                },
                {"type": "text", "text": prompt},
            ]
        )

    async def _generate_from_text(self, prompt: str, payload: str) -> str:
        return await self._complete(
            [
                {"type": "text", "text": prompt},
                {"type": "text", "text": payload},
            ]
        )
