"""Payable bills: derived status, listing filters and summary counts."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from shopguide.analytics import money
from shopguide.models import (
    BILL_STATUS_OPEN,
    BILL_STATUS_OVERDUE,
    BILL_STATUS_PAID,
    Bill,
)


def effective_status(bill: Bill, today: date) -> str:
    """Status as displayed: an open bill past its due date reads as overdue.

    The stored status is never touched here; only ``mark_paid`` (or an edit)
    writes it.
    """
    if bill.status == BILL_STATUS_PAID:
        return BILL_STATUS_PAID
    if bill.status == BILL_STATUS_OVERDUE or bill.due_date < today:
        return BILL_STATUS_OVERDUE
    return BILL_STATUS_OPEN


def mark_paid(bill: Bill, paid_at: datetime | None = None) -> Bill:
    bill.status = BILL_STATUS_PAID
    bill.payment_date = paid_at or datetime.utcnow()
    return bill


def list_bills(db: Session, owner_id: str) -> list[Bill]:
    return (
        db.query(Bill)
        .filter(Bill.owner_id == owner_id)
        .order_by(Bill.due_date.asc(), Bill.created_at.asc())
        .all()
    )


def filter_bills(
    bills: list[Bill],
    today: date,
    search: str | None = None,
    status: str | None = None,
) -> list[tuple[Bill, str]]:
    """Pair each bill with its effective status and apply the list filters."""
    needle = (search or "").strip().lower()
    result = []
    for bill in bills:
        current = effective_status(bill, today)
        if status and status != "all" and current != status:
            continue
        if needle:
            haystack = f"{bill.supplier_name} {bill.description or ''}".lower()
            if needle not in haystack:
                continue
        result.append((bill, current))
    return result


def summarize_bills(rows: list[tuple[Bill, str]]) -> dict:
    counts = {BILL_STATUS_OPEN: 0, BILL_STATUS_OVERDUE: 0, BILL_STATUS_PAID: 0}
    total = Decimal("0")
    for bill, current in rows:
        counts[current] += 1
        total += Decimal(bill.amount)
    return {
        "total_amount": money(total),
        "open": counts[BILL_STATUS_OPEN],
        "overdue": counts[BILL_STATUS_OVERDUE],
        "paid": counts[BILL_STATUS_PAID],
    }


def known_suppliers(db: Session, owner_id: str) -> list[str]:
    rows = (
        db.query(Bill.supplier_name)
        .filter(Bill.owner_id == owner_id)
        .distinct()
        .order_by(Bill.supplier_name)
        .all()
    )
    return [r.supplier_name for r in rows]


def known_categories(db: Session, owner_id: str) -> list[str]:
    rows = (
        db.query(Bill.category_name)
        .filter(Bill.owner_id == owner_id)
        .distinct()
        .order_by(Bill.category_name)
        .all()
    )
    return [r.category_name for r in rows]
