import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopguide.models import LineItem, Receipt
from shopguide.receipt.base import (
    STORE_NOT_IDENTIFIED,
    ExtractionRequest,
    NormalizedReceipt,
    ReceiptExtractor,
)
from shopguide.receipt.normalizer import normalize_receipt
from shopguide.receipt.proxy import extract_receipt_text

logger = logging.getLogger("shopguide")


class PersistenceError(RuntimeError):
    """Saving a normalized receipt failed; nothing was kept."""


def save_receipt(db: Session, owner_id: str, normalized: NormalizedReceipt) -> Receipt:
    """Insert the receipt, then its line items, as one unit.

    The receipt row is flushed first so its id exists before the line-item
    batch is built. Both steps share one transaction and a failed batch rolls
    the receipt back too.
    """
    receipt = Receipt(
        owner_id=owner_id,
        store_name=normalized.store_name or STORE_NOT_IDENTIFIED,
        total_amount=normalized.total_paid if normalized.total_paid is not None else Decimal("0"),
        purchased_at=datetime.utcnow(),
    )
    try:
        db.add(receipt)
        db.flush()  # get receipt.id
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Receipt insert failed", exc_info=True, extra={"extra_data": {"owner_id": owner_id}})
        raise PersistenceError("Failed to save receipt") from e

    try:
        db.add_all([
            LineItem(
                receipt_id=receipt.id,
                position=position,
                name=item.name,
                unit_price=item.unit_price,
                line_total=item.line_total,
                quantity=item.quantity,
                unit=item.unit,
                keywords=item.keywords,
            )
            for position, item in enumerate(normalized.line_items)
        ])
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(
            "Line item insert failed, receipt rolled back",
            exc_info=True,
            extra={"extra_data": {"owner_id": owner_id, "items_count": len(normalized.line_items)}},
        )
        raise PersistenceError("Failed to save receipt products") from e

    db.refresh(receipt)
    logger.info(
        "Receipt saved",
        extra={"extra_data": {
            "owner_id": owner_id,
            "receipt_id": receipt.id,
            "items_count": len(normalized.line_items),
        }},
    )
    return receipt


async def ingest_document(
    db: Session,
    request: ExtractionRequest,
    extractor: ReceiptExtractor | None = None,
) -> Receipt:
    """Extraction -> normalization -> persistence for one user action.

    Persistence only starts after the model's answer normalized cleanly, so
    any extraction or parse failure leaves no rows behind.
    """
    text = await extract_receipt_text(request, extractor)
    normalized = normalize_receipt(text)
    logger.info(
        "Receipt normalized",
        extra={"extra_data": {
            "owner_id": request.owner_id,
            "store_name": normalized.store_name,
            "items_count": len(normalized.line_items),
        }},
    )
    return save_receipt(db, request.owner_id, normalized)
