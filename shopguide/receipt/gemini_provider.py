import logging
import os

import httpx

from shopguide.receipt.base import ExtractionConfigError, ExtractionError
from shopguide.receipt.prompt import INSTRUCTIONS, USER_MESSAGE

logger = logging.getLogger("shopguide")

GEMINI_BASE = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_TIMEOUT = 60


class GeminiReceiptExtractor:
    """Receipt extraction through the Gemini generateContent REST endpoint."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.api_key = os.getenv("GEMINI_API_KEY")
        if not self.api_key:
            raise ExtractionConfigError("GEMINI_API_KEY is not set")
        self.model = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
        self._client = client

    async def extract(self, document: str, media_type: str) -> str:
        body = {
            "contents": [{
                "parts": [
                    {"text": f"{INSTRUCTIONS}\n\n{USER_MESSAGE}"},
                    {"inline_data": {"mime_type": media_type, "data": document}},
                ],
            }],
        }
        url = f"{GEMINI_BASE}/models/{self.model}:generateContent"

        if self._client is not None:
            resp = await self._client.post(url, params={"key": self.api_key}, json=body)
        else:
            async with httpx.AsyncClient(timeout=GEMINI_TIMEOUT) as client:
                resp = await client.post(url, params={"key": self.api_key}, json=body)

        if resp.is_error:
            logger.error(
                "Gemini API error",
                extra={"extra_data": {"status": resp.status_code, "body": resp.text[:500]}},
            )
            raise ExtractionError(f"Gemini API returned {resp.status_code}")

        data = resp.json()
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise ExtractionError("Invalid response from Gemini API")
        if not text or not text.strip():
            raise ExtractionError("Gemini API returned an empty response")
        return text
