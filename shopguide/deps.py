from datetime import date
from zoneinfo import ZoneInfo

from fastapi import Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from shopguide.database import get_db
from shopguide.models import Bill, Receipt, User
from shopguide.periods import DEFAULT_PRESET, Period, get_timezone, local_today, resolve_period


def get_session_key(request: Request) -> str | None:
    """Read the session key assigned by SessionKeyMiddleware."""
    return getattr(request.state, "session_key", None)


def get_or_create_user(request: Request, db: Session) -> User | None:
    """Look up or create the User bound to the request's session key."""
    session_key = get_session_key(request)
    if not session_key:
        return None
    user = db.query(User).filter(User.session_key == session_key).first()
    if not user:
        user = User(session_key=session_key)
        db.add(user)
        db.flush()
    return user


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> User | None:
    session_key = get_session_key(request)
    if not session_key or getattr(request.state, "new_session_key", False):
        return None
    return db.query(User).filter(User.session_key == session_key).first()


def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    """Resolve the authenticated user; every pipeline entry point depends on this."""
    if user is None:
        raise HTTPException(status_code=401, detail="Login required")
    return user


def get_period(
    period: str = Query(DEFAULT_PRESET),
    start: date | None = Query(None),
    end: date | None = Query(None),
    tz: str | None = Query(None),
) -> Period:
    """Query-string window shared by every spending screen."""
    try:
        return resolve_period(period, tz=get_timezone(tz), start=start, end=end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def get_tz(tz: str | None = Query(None)) -> ZoneInfo:
    try:
        return get_timezone(tz)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def get_local_today(tz: str | None = Query(None)) -> date:
    try:
        return local_today(get_timezone(tz))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def get_owned_receipt(db: Session, receipt_id: str, owner: User) -> Receipt:
    receipt = (
        db.query(Receipt)
        .filter(Receipt.id == receipt_id, Receipt.owner_id == owner.id)
        .first()
    )
    if not receipt:
        raise HTTPException(status_code=404, detail="Receipt not found")
    return receipt


def get_owned_bill(db: Session, bill_id: str, owner: User) -> Bill:
    bill = db.query(Bill).filter(Bill.id == bill_id, Bill.owner_id == owner.id).first()
    if not bill:
        raise HTTPException(status_code=404, detail="Bill not found")
    return bill
