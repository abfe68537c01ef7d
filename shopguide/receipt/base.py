from decimal import Decimal
from typing import Protocol

from pydantic import BaseModel, Field

from shopguide.capture import DocumentKind

UNNAMED_PRODUCT = "unnamed product"
STORE_NOT_IDENTIFIED = "store not identified"
DEFAULT_UNIT = "un"


class ExtractionInputError(ValueError):
    """Caller error: rejected before any external call is made."""


class ExtractionConfigError(RuntimeError):
    """The extraction service is not configured (missing credential, unknown provider)."""


class ExtractionError(RuntimeError):
    """The external model failed or answered with something unusable."""


class NormalizationError(ExtractionError):
    """The model's text contained no decodable JSON object."""


class ExtractionRequest(BaseModel):
    document: str | None = None  # base64, with or without a data: prefix
    owner_id: str | None = None
    document_kind: DocumentKind = "image"


class NormalizedLineItem(BaseModel):
    name: str = UNNAMED_PRODUCT
    unit_price: Decimal | None = None
    line_total: Decimal = Decimal("0")
    quantity: Decimal = Decimal("1")  # may be fractional for weighed goods
    unit: str = DEFAULT_UNIT
    keywords: list[str] = Field(default_factory=list)


class NormalizedReceipt(BaseModel):
    store_name: str | None = None
    total_paid: Decimal | None = None
    line_items: list[NormalizedLineItem] = Field(default_factory=list)


class ReceiptExtractor(Protocol):
    async def extract(self, document: str, media_type: str) -> str:
        """Send one base64 document to the model and return its raw text answer."""
        ...
