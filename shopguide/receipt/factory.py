import os

from shopguide.receipt.base import ExtractionConfigError, ReceiptExtractor
from shopguide.receipt.gemini_provider import GeminiReceiptExtractor
from shopguide.receipt.openai_provider import OpenAIReceiptExtractor


def get_receipt_extractor() -> ReceiptExtractor:
    """Return the configured receipt extraction provider."""
    provider = os.getenv("RECEIPT_PROVIDER", "openai")
    if provider == "openai":
        return OpenAIReceiptExtractor()
    if provider == "gemini":
        return GeminiReceiptExtractor()
    raise ExtractionConfigError(f"Unknown receipt provider: {provider}")
