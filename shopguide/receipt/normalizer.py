"""Turn the model's free-text answer into a NormalizedReceipt.

The model is asked for English keys but older prompts (and some models)
answer with the Portuguese keys of the first version of the app, so both
spellings are accepted.
"""

import json
import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Iterator

from shopguide.receipt.base import (
    DEFAULT_UNIT,
    UNNAMED_PRODUCT,
    NormalizationError,
    NormalizedLineItem,
    NormalizedReceipt,
)

logger = logging.getLogger("shopguide")

STORE_KEYS = ("store_name", "loja_nome")
TOTAL_KEYS = ("total_paid", "valor_total")
ITEMS_KEYS = ("line_items", "produtos")

NAME_KEYS = ("name", "nome")
LINE_TOTAL_KEYS = ("line_total", "preco_total")
PRICE_KEYS = ("price", "preco")
UNIT_PRICE_KEYS = ("unit_price", "preco_unitario")
QUANTITY_KEYS = ("quantity", "quantidade")
UNIT_KEYS = ("unit", "unidade")
KEYWORD_KEYS = ("keywords", "palavras_chave")

UNIT_ALIASES = {
    "un": "un", "und": "un", "unid": "un", "u": "un", "unit": "un", "units": "un",
    "pc": "un", "pcs": "un", "pç": "un",
    "kg": "kg", "g": "g", "gr": "g",
    "l": "l", "lt": "l", "litro": "l", "litros": "l",
    "ml": "ml",
}

_CURRENCY_RE = re.compile(r"[^\d,.\-]")


def _matching_brace(text: str, start: int) -> int | None:
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def iter_json_candidates(text: str) -> Iterator[str]:
    """Yield every balanced ``{...}`` substring of text, left to right by start."""
    start = text.find("{")
    while start != -1:
        end = _matching_brace(text, start)
        if end is not None:
            yield text[start:end + 1]
        start = text.find("{", start + 1)


def find_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring of text, or None."""
    return next(iter_json_candidates(text), None)


def extract_json_object(text: str) -> dict[str, Any]:
    """Decode the first candidate that is a JSON object; prose braces are skipped."""
    last_error = None
    for blob in iter_json_candidates(text or ""):
        try:
            parsed = json.loads(blob)
        except json.JSONDecodeError as e:
            snippet = blob.replace("\n", " ")[:200]
            last_error = f"{e}: payload={snippet}"
            continue
        if isinstance(parsed, dict):
            return parsed
    if last_error is None:
        raise NormalizationError("No JSON found in model response")
    raise NormalizationError(f"Invalid JSON in model response: {last_error}")


def to_decimal(value: Any) -> Decimal | None:
    """Coerce model output to Decimal; accepts "R$ 1.234,56" style strings."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        cleaned = _CURRENCY_RE.sub("", value)
        if "," in cleaned and "." in cleaned:
            if cleaned.rfind(",") > cleaned.rfind("."):
                cleaned = cleaned.replace(".", "").replace(",", ".")
            else:
                cleaned = cleaned.replace(",", "")
        elif "," in cleaned:
            cleaned = cleaned.replace(",", ".")
        try:
            result = Decimal(cleaned)
        except InvalidOperation:
            return None
    else:
        return None
    if not result.is_finite():
        return None
    return result


def _first(entry: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = entry.get(key)
        if value is not None and value != "":
            return value
    return None


def normalize_unit(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        return DEFAULT_UNIT
    unit = value.strip().lower().rstrip(".")
    return UNIT_ALIASES.get(unit, unit)


def normalize_keywords(value: Any) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        return []
    keywords: list[str] = []
    for raw in value:
        if raw is None:
            continue
        keyword = str(raw).strip().lower()
        if keyword and keyword not in keywords:
            keywords.append(keyword)
    return keywords


def normalize_line_item(entry: dict) -> NormalizedLineItem:
    name = _first(entry, NAME_KEYS)
    name = str(name).strip() if name is not None else ""

    line_total = to_decimal(_first(entry, LINE_TOTAL_KEYS))
    if line_total is None:
        line_total = to_decimal(_first(entry, PRICE_KEYS))
    if line_total is None:
        line_total = Decimal("0")

    unit_price = to_decimal(_first(entry, UNIT_PRICE_KEYS))
    if unit_price is None:
        unit_price = line_total

    quantity = to_decimal(_first(entry, QUANTITY_KEYS))
    if not quantity:
        quantity = Decimal("1")

    return NormalizedLineItem(
        name=name or UNNAMED_PRODUCT,
        unit_price=unit_price,
        line_total=line_total,
        quantity=quantity,
        unit=normalize_unit(_first(entry, UNIT_KEYS)),
        keywords=normalize_keywords(_first(entry, KEYWORD_KEYS)),
    )


def normalize_receipt(text: str) -> NormalizedReceipt:
    """Parse the model's text; any failure here aborts the whole ingestion."""
    data = extract_json_object(text)

    store = _first(data, STORE_KEYS)
    store_name = str(store).strip() if store is not None else None

    raw_items = _first(data, ITEMS_KEYS)
    if not isinstance(raw_items, list):
        raw_items = []

    items = [normalize_line_item(entry) for entry in raw_items if isinstance(entry, dict)]
    skipped = len(raw_items) - len(items)
    if skipped:
        logger.warning("Skipped non-object line items", extra={"extra_data": {"skipped": skipped}})

    return NormalizedReceipt(
        store_name=store_name or None,
        total_paid=to_decimal(_first(data, TOTAL_KEYS)),
        line_items=items,
    )
