from datetime import date
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


# --- Session ---

class SessionIn(BaseModel):
    name: str
    email: str | None = None


# --- Receipts ---

class ScanReceiptIn(BaseModel):
    document: str | None = None  # base64, optionally a data: URI
    document_kind: Literal["image", "pdf"] = "image"


# --- Stores ---

class RenameStoreIn(BaseModel):
    old_name: str
    new_name: str


# --- Bills ---

class BillIn(BaseModel):
    supplier_name: str
    amount: Decimal
    due_date: date | None = None
    issue_date: date | None = None  # defaults to today
    competency_date: date | None = None  # defaults to today
    description: str | None = None
    payment_method: str = "Cash"
    account: str = "Cash"
    category_name: str | None = None
    document_number: str | None = None
    pay_now: bool = False  # "save and pay": stored as paid with payment_date stamped
