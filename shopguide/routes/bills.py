import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopguide import billing
from shopguide.database import get_db
from shopguide.deps import get_current_user, get_local_today, get_owned_bill
from shopguide.models import BILL_STATUS_OPEN, BILL_STATUS_PAID, BILL_STATUSES, Bill, User
from shopguide.schemas import BillIn
from shopguide.serializers import serialize_bill

logger = logging.getLogger("shopguide")
router = APIRouter()

DEFAULT_CATEGORY = "Uncategorized"


def _validate_bill(data: BillIn) -> None:
    if not data.supplier_name.strip():
        raise HTTPException(status_code=400, detail="Supplier is required")
    if data.amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be greater than zero")
    if data.due_date is None:
        raise HTTPException(status_code=400, detail="Due date is required")


def _apply_bill(bill: Bill, data: BillIn, today: date) -> None:
    bill.supplier_name = data.supplier_name.strip()
    bill.amount = data.amount
    bill.issue_date = data.issue_date or today
    bill.competency_date = data.competency_date or today
    bill.due_date = data.due_date
    bill.description = data.description or None
    bill.payment_method = data.payment_method
    bill.account = data.account
    bill.category_name = (data.category_name or "").strip() or DEFAULT_CATEGORY
    bill.document_number = data.document_number or None
    if data.pay_now:
        billing.mark_paid(bill)


@router.get("/bills")
def list_bills(
    search: str | None = Query(None),
    status: str = Query("all"),
    today: date = Depends(get_local_today),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if status != "all" and status not in BILL_STATUSES:
        raise HTTPException(status_code=400, detail="Unknown status filter")
    try:
        bills = billing.list_bills(db, user.id)
    except SQLAlchemyError:
        logger.error("Failed to load bills", exc_info=True)
        raise HTTPException(status_code=503, detail="Failed to load bills")

    rows = billing.filter_bills(bills, today, search=search, status=status)
    return {
        "bills": [serialize_bill(bill, current) for bill, current in rows],
        "summary": billing.summarize_bills(rows),
    }


@router.get("/bills/suppliers")
def list_suppliers(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return billing.known_suppliers(db, user.id)


@router.get("/bills/categories")
def list_categories(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return billing.known_categories(db, user.id)


@router.post("/bills", status_code=201)
def create_bill(
    data: BillIn,
    today: date = Depends(get_local_today),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _validate_bill(data)
    bill = Bill(owner_id=user.id, status=BILL_STATUS_OPEN)
    _apply_bill(bill, data, today)
    db.add(bill)
    db.commit()
    db.refresh(bill)
    logger.info(
        "Bill created",
        extra={"extra_data": {"owner_id": user.id, "bill_id": bill.id, "status": bill.status}},
    )
    return serialize_bill(bill, billing.effective_status(bill, today))


@router.put("/bills/{bill_id}")
def update_bill(
    bill_id: str,
    data: BillIn,
    today: date = Depends(get_local_today),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    bill = get_owned_bill(db, bill_id, user)
    _validate_bill(data)
    _apply_bill(bill, data, today)
    bill.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(bill)
    return serialize_bill(bill, billing.effective_status(bill, today))


@router.post("/bills/{bill_id}/pay")
def pay_bill(
    bill_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    bill = get_owned_bill(db, bill_id, user)
    billing.mark_paid(bill)
    db.commit()
    db.refresh(bill)
    logger.info("Bill paid", extra={"extra_data": {"owner_id": user.id, "bill_id": bill.id}})
    return serialize_bill(bill, BILL_STATUS_PAID)


@router.delete("/bills/{bill_id}", status_code=204)
def delete_bill(
    bill_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    bill = get_owned_bill(db, bill_id, user)
    db.delete(bill)
    db.commit()
    return None
