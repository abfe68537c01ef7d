from shopguide.analytics import money, qty
from shopguide.models import Bill, LineItem, Receipt


def serialize_line_item(item: LineItem) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "unit_price": money(item.unit_price),
        "line_total": money(item.line_total),
        "quantity": qty(item.quantity),
        "unit": item.unit,
        "keywords": list(item.keywords or []),
    }


def serialize_receipt_summary(receipt: Receipt) -> dict:
    return {
        "id": receipt.id,
        "store_name": receipt.store_name,
        "total_amount": money(receipt.total_amount),
        "purchased_at": receipt.purchased_at.isoformat(),
        "item_count": len(receipt.line_items),
    }


def serialize_receipt(receipt: Receipt) -> dict:
    return {
        **serialize_receipt_summary(receipt),
        "line_items": [serialize_line_item(i) for i in receipt.line_items],
    }


def serialize_bill(bill: Bill, status: str | None = None) -> dict:
    """``status`` is the effective (display) status; ``stored_status`` is the column."""
    return {
        "id": bill.id,
        "supplier_name": bill.supplier_name,
        "amount": money(bill.amount),
        "issue_date": bill.issue_date.isoformat(),
        "competency_date": bill.competency_date.isoformat(),
        "due_date": bill.due_date.isoformat(),
        "payment_date": bill.payment_date.isoformat() if bill.payment_date else None,
        "description": bill.description,
        "payment_method": bill.payment_method,
        "account": bill.account,
        "category_name": bill.category_name,
        "document_number": bill.document_number,
        "status": status or bill.status,
        "stored_status": bill.status,
    }
