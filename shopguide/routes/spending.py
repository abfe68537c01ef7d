import logging
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopguide import analytics
from shopguide.database import get_db
from shopguide.deps import get_current_user, get_period, get_tz
from shopguide.models import User
from shopguide.periods import Period
from shopguide.schemas import RenameStoreIn

logger = logging.getLogger("shopguide")
router = APIRouter()


def _read_failed(screen: str) -> HTTPException:
    logger.error(f"Failed to load {screen}", exc_info=True)
    return HTTPException(status_code=503, detail=f"Failed to load {screen}")


@router.get("/dashboard")
def get_dashboard(
    period: Period = Depends(get_period),
    tz: ZoneInfo = Depends(get_tz),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        receipts = analytics.fetch_receipts(db, user.id, period)
    except SQLAlchemyError:
        raise _read_failed("dashboard")
    return analytics.summarize_spending(receipts, tz)


@router.post("/stores/rename")
def rename_store(
    data: RenameStoreIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    new_name = data.new_name.strip()
    if not new_name:
        raise HTTPException(status_code=400, detail="Store name is required")
    if new_name == data.old_name:
        return {"receipts": 0, "bills": 0}

    updated = analytics.rename_store(db, user.id, data.old_name, new_name)
    logger.info(
        "Store renamed",
        extra={"extra_data": {"owner_id": user.id, "old_name": data.old_name, "new_name": new_name, **updated}},
    )
    return updated


@router.get("/stores/{store_name:path}")
def get_store(
    store_name: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return analytics.store_detail(db, user.id, store_name)
    except SQLAlchemyError:
        raise _read_failed("store data")


@router.get("/products")
def get_products(
    period: Period = Depends(get_period),
    search: str | None = Query(None),
    store: str | None = Query(None),
    sort: str = Query("count"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if sort not in analytics.CATALOG_SORTS:
        raise HTTPException(status_code=400, detail="Unknown sort order")
    try:
        receipts = analytics.fetch_receipts(db, user.id, period)
    except SQLAlchemyError:
        raise _read_failed("products")
    return analytics.product_catalog(receipts, search=search, store=store, sort=sort)


@router.get("/products/{product_name:path}")
def get_product(
    product_name: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return analytics.product_detail(db, user.id, product_name)
    except SQLAlchemyError:
        raise _read_failed("product data")


@router.get("/history")
def get_history(
    period: Period = Depends(get_period),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return analytics.history(db, user.id, period)
    except SQLAlchemyError:
        raise _read_failed("history")
