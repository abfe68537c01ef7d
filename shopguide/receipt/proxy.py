import logging
import time

from shopguide.capture import DEFAULT_IMAGE_TYPE, PDF_CONTENT_TYPE, split_data_uri
from shopguide.receipt.base import (
    ExtractionConfigError,
    ExtractionError,
    ExtractionInputError,
    ExtractionRequest,
    ReceiptExtractor,
)
from shopguide.receipt.factory import get_receipt_extractor

logger = logging.getLogger("shopguide")


def _media_type(request: ExtractionRequest, declared: str | None) -> str:
    if request.document_kind == "pdf":
        return PDF_CONTENT_TYPE
    if declared and declared.startswith("image/"):
        return declared
    return DEFAULT_IMAGE_TYPE


async def extract_receipt_text(
    request: ExtractionRequest,
    extractor: ReceiptExtractor | None = None,
) -> str:
    """Forward one document to the vision model and return its raw text answer.

    Input is checked before anything touches the network. Exactly one external
    call is made; there is no retry.
    """
    if not request.document or not request.document.strip():
        raise ExtractionInputError("File data is required")
    if not request.owner_id:
        raise ExtractionInputError("User authentication required")

    declared, payload = split_data_uri(request.document)
    if not payload:
        raise ExtractionInputError("File data is required")

    if extractor is None:
        extractor = get_receipt_extractor()

    media_type = _media_type(request, declared)
    logger.info(
        "Sending document to extraction model",
        extra={"extra_data": {"owner_id": request.owner_id, "media_type": media_type, "size": len(payload)}},
    )
    start = time.time()
    try:
        text = await extractor.extract(payload, media_type)
    except (ExtractionError, ExtractionConfigError):
        raise
    except Exception as e:
        raise ExtractionError(f"Extraction call failed: {e}") from e

    logger.info(
        "Extraction model answered",
        extra={"extra_data": {
            "owner_id": request.owner_id,
            "duration_ms": round((time.time() - start) * 1000),
            "chars": len(text),
        }},
    )
    return text
