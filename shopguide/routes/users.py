import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from shopguide.database import get_db
from shopguide.deps import get_optional_user, get_or_create_user
from shopguide.models import User
from shopguide.ratelimit import limiter
from shopguide.schemas import SessionIn

logger = logging.getLogger("shopguide")
router = APIRouter()


def serialize_user(user: User) -> dict:
    return {"id": user.id, "name": user.name, "email": user.email}


@router.post("/session")
@limiter.limit("10/minute")
def login(request: Request, data: SessionIn, db: Session = Depends(get_db)):
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Name is required")

    user = get_or_create_user(request, db)
    if user is None:
        raise HTTPException(status_code=400, detail="Missing session key")
    user.name = name
    user.email = (data.email or "").strip() or None
    db.commit()
    db.refresh(user)
    logger.info("User logged in", extra={"extra_data": {"user_id": user.id}})
    return serialize_user(user)


@router.get("/me")
def get_me(user: User | None = Depends(get_optional_user)):
    if not user:
        return None
    return serialize_user(user)
