"""Gemini API receipt reader."""

from __future__ import annotations

from . import ReceiptReader


class GeminiReceiptReader(ReceiptReader):
    """Read receipts using Google Gemini with JSON-mode responses."""

    key_env_var = "GEMINI_API_KEY"

    def __init__(self, api_key: str = "", model: str = "gemini-2.0-flash") -> None:
        super().__init__(api_key=api_key, model=model)

    def _generative_model(self):
        try:
            import google.generativeai as genai
        except ImportError:
            raise ImportError(
                "google-generativeai SDK is required: pip install google-generativeai"
            ) from None

        genai.configure(api_key=self._api_key)
        return genai.GenerativeModel(
            self._model,
            generation_config={"response_mime_type": "application/json"},
        )

    async def _generate_from_image(
        self, prompt: str, data: bytes, mime_type: str
    ) -> str:
        model = self._generative_model()
        response = await model.generate_content_async(
            [prompt, {"mime_type": mime_type, "data": data}]
        )
        return response.text

    async def _generate_from_text(self, prompt: str, payload: str) -> str:
        model = self._generative_model()
        response = await model.generate_content_async([prompt, payload])
        return response.text
