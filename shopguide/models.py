import uuid
from datetime import datetime

from sqlalchemy import (
    JSON, Column, String, Integer, Numeric, Date, DateTime, ForeignKey, Index, Text,
)
from sqlalchemy.orm import relationship

from shopguide.database import Base

BILL_STATUS_OPEN = "open"
BILL_STATUS_OVERDUE = "overdue"
BILL_STATUS_PAID = "paid"
BILL_STATUSES = (BILL_STATUS_OPEN, BILL_STATUS_OVERDUE, BILL_STATUS_PAID)


def new_uuid():
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_uuid)
    session_key = Column(String, unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Receipt(Base):
    __tablename__ = "receipts"

    id = Column(String, primary_key=True, default=new_uuid)
    owner_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    store_name = Column(String(255), nullable=False)  # free text, matched by exact string only
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    purchased_at = Column(DateTime, default=datetime.utcnow, nullable=False)  # naive UTC

    line_items = relationship(
        "LineItem",
        back_populates="receipt",
        cascade="all, delete-orphan",
        order_by="LineItem.position",
    )

    __table_args__ = (Index("ix_receipts_owner_purchased", "owner_id", "purchased_at"),)


class LineItem(Base):
    __tablename__ = "line_items"

    id = Column(String, primary_key=True, default=new_uuid)
    receipt_id = Column(String, ForeignKey("receipts.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(500), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=True)
    line_total = Column(Numeric(12, 2), nullable=False, default=0)
    quantity = Column(Numeric(12, 3), nullable=False, default=1)  # fractional for weighed goods
    unit = Column(String(16), nullable=False, default="un")
    keywords = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    receipt = relationship("Receipt", back_populates="line_items")


class Bill(Base):
    __tablename__ = "bills"

    id = Column(String, primary_key=True, default=new_uuid)
    owner_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    supplier_name = Column(String(255), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    issue_date = Column(Date, nullable=False)
    competency_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    payment_date = Column(DateTime, nullable=True)  # naive UTC, set when paid
    description = Column(Text, nullable=True)
    payment_method = Column(String(50), nullable=False, default="Cash")
    account = Column(String(50), nullable=False, default="Cash")
    category_name = Column(String(255), nullable=False, default="Uncategorized")
    document_number = Column(String(100), nullable=True)
    status = Column(String(10), nullable=False, default=BILL_STATUS_OPEN)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
