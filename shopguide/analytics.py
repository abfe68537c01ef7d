"""Spending aggregations over persisted receipts and paid bills.

Groupings key on exact names: the same store spelled two ways is two stores
until the user renames one of them (``rename_store``). Rankings sort by
amount, descending; Python's sort is stable so ties keep source order
(newest receipt first).
"""

from collections import OrderedDict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Literal, Union
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session, selectinload

from shopguide.models import BILL_STATUS_PAID, Bill, LineItem, Receipt
from shopguide.periods import Period

ZERO = Decimal("0")
CENT = Decimal("0.01")
OTHERS_LABEL = "Others"
CATALOG_SORTS = ("name", "price-asc", "price-desc", "count")


def money(value: Decimal | None) -> float | None:
    if value is None:
        return None
    return float(Decimal(value).quantize(CENT))


def qty(value: Decimal) -> float:
    return float(value)


def _mean(values: list[Decimal]) -> Decimal | None:
    if not values:
        return None
    return sum(values, ZERO) / len(values)


def _local_date(ts: datetime, tz: ZoneInfo) -> str:
    return ts.replace(tzinfo=timezone.utc).astimezone(tz).date().isoformat()


def fetch_receipts(db: Session, owner_id: str, period: Period) -> list[Receipt]:
    return (
        db.query(Receipt)
        .options(selectinload(Receipt.line_items))
        .filter(
            Receipt.owner_id == owner_id,
            Receipt.purchased_at >= period.start,
            Receipt.purchased_at < period.end,
        )
        .order_by(Receipt.purchased_at.desc())
        .all()
    )


def rank(groups: dict[str, dict], key: str) -> list[dict]:
    rows = [{"name": name, **data} for name, data in groups.items()]
    rows.sort(key=lambda r: r[key], reverse=True)
    return rows


def store_share(ranked_stores: list[dict], limit: int = 5) -> list[dict]:
    """Top ``limit`` stores plus one bucket for the rest (pie chart data)."""
    if len(ranked_stores) <= limit:
        return [{"name": s["name"], "total": s["total"]} for s in ranked_stores]
    share = [{"name": s["name"], "total": s["total"]} for s in ranked_stores[:limit]]
    others = sum((s["total"] for s in ranked_stores[limit:]), ZERO)
    if others > 0:
        share.append({"name": OTHERS_LABEL, "total": others})
    return share


def summarize_spending(receipts: list[Receipt], tz: ZoneInfo, top_n: int = 5) -> dict:
    stores: dict[str, dict] = OrderedDict()
    products: dict[str, dict] = OrderedDict()
    daily: dict[str, Decimal] = {}
    total_spent = ZERO

    for receipt in receipts:
        total = Decimal(receipt.total_amount)
        total_spent += total

        store = stores.setdefault(receipt.store_name, {"total": ZERO, "purchases": 0})
        store["total"] += total
        store["purchases"] += 1

        day = _local_date(receipt.purchased_at, tz)
        daily[day] = daily.get(day, ZERO) + total

        for item in receipt.line_items:
            product = products.setdefault(item.name, {"quantity": ZERO, "total_spent": ZERO})
            product["quantity"] += Decimal(item.quantity)
            product["total_spent"] += Decimal(item.line_total)

    count = len(receipts)
    ranked_stores = rank(stores, "total")
    ranked_products = rank(products, "total_spent")

    return {
        "total_spent": money(total_spent),
        "total_purchases": count,
        "average_purchase": money(total_spent / count) if count else 0.0,
        "unique_stores": len(stores),
        "unique_products": len(products),
        "top_stores": [
            {"name": s["name"], "total": money(s["total"]), "purchases": s["purchases"]}
            for s in ranked_stores[:top_n]
        ],
        "top_products": [
            {"name": p["name"], "quantity": qty(p["quantity"]), "total_spent": money(p["total_spent"])}
            for p in ranked_products[:top_n]
        ],
        "store_share": [
            {"name": s["name"], "total": money(s["total"])} for s in store_share(ranked_stores)
        ],
        "spending_trend": [
            {"date": day, "total": money(daily[day])} for day in sorted(daily)
        ],
        "recent_purchases": [
            {
                "id": r.id,
                "date": r.purchased_at.isoformat(),
                "store": r.store_name,
                "total": money(r.total_amount),
            }
            for r in receipts[:top_n]
        ],
    }


def store_detail(db: Session, owner_id: str, store_name: str) -> dict:
    receipts = (
        db.query(Receipt)
        .options(selectinload(Receipt.line_items))
        .filter(Receipt.owner_id == owner_id, Receipt.store_name == store_name)
        .order_by(Receipt.purchased_at.desc())
        .all()
    )

    products: dict[str, dict] = OrderedDict()
    for receipt in receipts:
        for item in receipt.line_items:
            product = products.setdefault(
                item.name,
                {"total_quantity": ZERO, "total_spent": ZERO, "prices": [], "purchase_count": 0},
            )
            product["total_quantity"] += Decimal(item.quantity)
            product["total_spent"] += Decimal(item.line_total)
            product["prices"].append(Decimal(item.unit_price if item.unit_price is not None else item.line_total))
            product["purchase_count"] += 1

    ranked = rank(products, "total_spent")
    return {
        "store_name": store_name,
        "total_spent": money(sum((Decimal(r.total_amount) for r in receipts), ZERO)),
        "purchases": [
            {
                "id": r.id,
                "date": r.purchased_at.isoformat(),
                "total": money(r.total_amount),
                "products": [
                    {"name": i.name, "line_total": money(i.line_total), "quantity": qty(i.quantity)}
                    for i in r.line_items
                ],
            }
            for r in receipts
        ],
        "products": [
            {
                "name": p["name"],
                "total_quantity": qty(p["total_quantity"]),
                "total_spent": money(p["total_spent"]),
                "average_price": money(_mean(p["prices"])),
                "purchase_count": p["purchase_count"],
            }
            for p in ranked
        ],
    }


def product_detail(db: Session, owner_id: str, product_name: str) -> dict:
    # SQLite lower() is ASCII-only, so names are matched in Python
    wanted = product_name.strip().casefold()
    rows = [
        (item, receipt)
        for item, receipt in (
            db.query(LineItem, Receipt)
            .join(Receipt, LineItem.receipt_id == Receipt.id)
            .filter(Receipt.owner_id == owner_id)
            .order_by(Receipt.purchased_at.desc(), LineItem.position.asc())
            .all()
        )
        if item.name.strip().casefold() == wanted
    ]

    stores: dict[str, dict] = OrderedDict()
    prices: list[Decimal] = []
    total_quantity = ZERO
    purchases = []
    for item, receipt in rows:
        price = Decimal(item.unit_price if item.unit_price is not None else item.line_total)
        quantity = Decimal(item.quantity)
        prices.append(price)
        total_quantity += quantity
        purchases.append({
            "date": receipt.purchased_at.isoformat(),
            "store": receipt.store_name,
            "price": money(price),
            "quantity": qty(quantity),
            "line_total": money(item.line_total),
        })

        store = stores.setdefault(
            receipt.store_name,
            {"purchase_count": 0, "total_quantity": ZERO, "prices": [], "total_spent": ZERO},
        )
        store["purchase_count"] += 1
        store["total_quantity"] += quantity
        store["prices"].append(price)
        store["total_spent"] += Decimal(item.line_total)

    return {
        "product_name": product_name,
        "total_quantity": qty(total_quantity),
        "average_price": money(_mean(prices)),
        "min_price": money(min(prices)) if prices else None,
        "max_price": money(max(prices)) if prices else None,
        "purchases": purchases,
        "stores": [
            {
                "name": s["name"],
                "purchase_count": s["purchase_count"],
                "total_quantity": qty(s["total_quantity"]),
                "average_price": money(_mean(s["prices"])),
                "last_price": money(s["prices"][0]),  # rows are newest first
                "total_spent": money(s["total_spent"]),
            }
            for s in rank(stores, "total_spent")
        ],
    }


def product_catalog(
    receipts: list[Receipt],
    search: str | None = None,
    store: str | None = None,
    sort: str = "count",
) -> dict:
    if sort not in CATALOG_SORTS:
        raise ValueError(f"Unknown sort order: {sort}")

    products: dict[str, dict] = OrderedDict()
    all_stores: list[str] = []
    for receipt in receipts:
        if receipt.store_name not in all_stores:
            all_stores.append(receipt.store_name)
        for item in receipt.line_items:
            product = products.setdefault(
                item.name,
                {"total_spent": ZERO, "total_count": ZERO, "unit_prices": [], "stores": [], "last": receipt.purchased_at},
            )
            product["total_spent"] += Decimal(item.line_total)
            product["total_count"] += Decimal(item.quantity)
            product["unit_prices"].append(
                Decimal(item.unit_price if item.unit_price is not None else item.line_total)
            )
            if receipt.store_name not in product["stores"]:
                product["stores"].append(receipt.store_name)
            if receipt.purchased_at > product["last"]:
                product["last"] = receipt.purchased_at

    rows = [
        {
            "name": name,
            "total_spent": data["total_spent"],
            "total_count": data["total_count"],
            "average_price": _mean(data["unit_prices"]),
            "stores": data["stores"],
            "last_purchase_date": data["last"],
        }
        for name, data in products.items()
    ]
    total_products = len(rows)

    needle = (search or "").strip().lower()
    if needle:
        rows = [r for r in rows if needle in r["name"].lower()]
    if store:
        rows = [r for r in rows if store in r["stores"]]

    if sort == "name":
        rows.sort(key=lambda r: r["name"].lower())
    elif sort == "price-asc":
        rows.sort(key=lambda r: r["average_price"])
    elif sort == "price-desc":
        rows.sort(key=lambda r: r["average_price"], reverse=True)
    else:
        rows.sort(key=lambda r: r["total_count"], reverse=True)

    return {
        "products": [
            {
                "name": r["name"],
                "total_spent": money(r["total_spent"]),
                "total_count": qty(r["total_count"]),
                "average_price": money(r["average_price"]),
                "stores": r["stores"],
                "last_purchase_date": r["last_purchase_date"].isoformat(),
            }
            for r in rows
        ],
        "stores": all_stores,
        "total_products": total_products,
    }


class PurchaseHistoryItem(BaseModel):
    kind: Literal["purchase"] = "purchase"
    id: str
    title: str  # store name
    amount: float
    occurred_at: datetime
    category: str
    item_count: int


class BillHistoryItem(BaseModel):
    kind: Literal["bill"] = "bill"
    id: str
    title: str  # supplier name
    amount: float
    occurred_at: datetime  # payment date
    category: str
    payment_method: str
    description: str | None = None


HistoryItem = Annotated[Union[PurchaseHistoryItem, BillHistoryItem], Field(discriminator="kind")]


def history(db: Session, owner_id: str, period: Period) -> dict:
    """Purchases and paid bills in one newest-first list."""
    receipts = fetch_receipts(db, owner_id, period)
    bills = (
        db.query(Bill)
        .filter(
            Bill.owner_id == owner_id,
            Bill.status == BILL_STATUS_PAID,
            Bill.payment_date >= period.start,
            Bill.payment_date < period.end,
        )
        .order_by(Bill.payment_date.desc())
        .all()
    )

    items: list[HistoryItem] = [
        PurchaseHistoryItem(
            id=r.id,
            title=r.store_name,
            amount=money(r.total_amount),
            occurred_at=r.purchased_at,
            category=r.store_name,
            item_count=len(r.line_items),
        )
        for r in receipts
    ]
    items.extend(
        BillHistoryItem(
            id=b.id,
            title=b.supplier_name,
            amount=money(b.amount),
            occurred_at=b.payment_date,
            category=b.category_name,
            payment_method=b.payment_method,
            description=b.description,
        )
        for b in bills
    )
    items.sort(key=lambda i: i.occurred_at, reverse=True)

    total = sum((Decimal(r.total_amount) for r in receipts), ZERO) + sum(
        (Decimal(b.amount) for b in bills), ZERO
    )
    groups: dict[str, dict] = OrderedDict()
    for item in items:
        group = groups.setdefault(item.category, {"total": ZERO, "count": 0})
        group["total"] += Decimal(str(item.amount))
        group["count"] += 1

    return {
        "items": items,
        "total": money(total),
        "average": money(total / len(items)) if items else 0.0,
        "count": len(items),
        "by_category": [
            {"name": g["name"], "total": money(g["total"]), "count": g["count"]}
            for g in rank(groups, "total")
        ],
    }


def rename_store(db: Session, owner_id: str, old_name: str, new_name: str) -> dict:
    """Rewrite an exact store name on the owner's receipts and paid bills."""
    receipts = (
        db.query(Receipt)
        .filter(Receipt.owner_id == owner_id, Receipt.store_name == old_name)
        .update({"store_name": new_name}, synchronize_session=False)
    )
    bills = (
        db.query(Bill)
        .filter(
            Bill.owner_id == owner_id,
            Bill.status == BILL_STATUS_PAID,
            Bill.supplier_name == old_name,
        )
        .update({"supplier_name": new_name}, synchronize_session=False)
    )
    db.commit()
    return {"receipts": receipts, "bills": bills}
