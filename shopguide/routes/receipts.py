import logging

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopguide.analytics import fetch_receipts
from shopguide.capture import PDF_CONTENT_TYPE, CaptureError, capture_from_upload
from shopguide.database import get_db
from shopguide.deps import get_current_user, get_owned_receipt, get_period
from shopguide.ingest import PersistenceError, ingest_document
from shopguide.models import User
from shopguide.periods import Period
from shopguide.receipt.base import (
    ExtractionConfigError,
    ExtractionError,
    ExtractionInputError,
    ExtractionRequest,
    NormalizationError,
)
from shopguide.schemas import ScanReceiptIn
from shopguide.serializers import serialize_receipt, serialize_receipt_summary

logger = logging.getLogger("shopguide")
router = APIRouter()

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
MAX_DOCUMENT_CHARS = (MAX_FILE_SIZE * 4) // 3 + 128  # base64 of MAX_FILE_SIZE plus a data: prefix
ALLOWED_CONTENT_TYPES = {
    "image/jpeg", "image/png", "image/webp", "image/heic", "image/heif", PDF_CONTENT_TYPE,
}


async def _ingest(db: Session, request: ExtractionRequest) -> dict:
    try:
        receipt = await ingest_document(db, request)
    except ExtractionInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ExtractionConfigError as e:
        logger.error(f"Receipt extraction config error: {e}")
        raise HTTPException(status_code=503, detail="Receipt scanning is not available")
    except NormalizationError as e:
        logger.error(f"Receipt normalization failed: {e}")
        raise HTTPException(status_code=502, detail="Could not read the receipt. Please try again.")
    except ExtractionError as e:
        logger.error(f"Receipt extraction failed: {e}", exc_info=True)
        raise HTTPException(status_code=502, detail="Failed to extract receipt data. Please try again.")
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to save receipt data")

    return {
        "success": True,
        "receipt": serialize_receipt(receipt),
        "message": "Receipt processed successfully",
    }


@router.post("/receipts/scan", status_code=201)
async def scan_receipt(
    data: ScanReceiptIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if data.document and len(data.document) > MAX_DOCUMENT_CHARS:
        raise HTTPException(status_code=400, detail="File too large. Maximum size is 10 MB.")
    request = ExtractionRequest(document=data.document, owner_id=user.id, document_kind=data.document_kind)
    return await _ingest(db, request)


@router.post("/receipts/upload", status_code=201)
async def upload_receipt(
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Unsupported file format. Use JPEG, PNG, WebP or PDF.")

    data = await file.read()
    if len(data) > MAX_FILE_SIZE:
        raise HTTPException(status_code=400, detail="File too large. Maximum size is 10 MB.")

    source = "pdf" if file.content_type == PDF_CONTENT_TYPE else "gallery"
    try:
        captured = capture_from_upload(data, file.content_type, source)
    except CaptureError as e:
        raise HTTPException(status_code=400, detail=str(e))

    request = ExtractionRequest(document=captured.data_uri, owner_id=user.id, document_kind=captured.kind)
    return await _ingest(db, request)


@router.get("/receipts")
def list_receipts(
    period: Period = Depends(get_period),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        receipts = fetch_receipts(db, user.id, period)
    except SQLAlchemyError:
        logger.error("Failed to load receipts", exc_info=True)
        raise HTTPException(status_code=503, detail="Failed to load purchases")
    return [serialize_receipt_summary(r) for r in receipts]


@router.get("/receipts/{receipt_id}")
def get_receipt(
    receipt_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return serialize_receipt(get_owned_receipt(db, receipt_id, user))


@router.delete("/receipts/{receipt_id}", status_code=204)
def delete_receipt(
    receipt_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    receipt = get_owned_receipt(db, receipt_id, user)
    db.delete(receipt)
    db.commit()
    logger.info("Receipt deleted", extra={"extra_data": {"receipt_id": receipt_id, "owner_id": user.id}})
    return None
