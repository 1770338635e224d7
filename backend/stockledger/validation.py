from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable

from stockledger.errors import ValidationError
from stockledger.time_utils import is_bare_date, parse_iso_datetime


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Upper bound on a single line quantity
MAX_LINE_QUANTITY = 1_000_000

PAYMENT_METHODS = ("cash", "credit", "bank_transfer", "check", "other")
RETURN_CONDITIONS = ("good", "damaged", "expired", "other")


@dataclass(frozen=True)
class LineItem:
    """One validated item of a distribution, order or return request."""

    product_id: int
    quantity: int
    unit_price_cents: int | None = None
    condition: str | None = None
    notes: str | None = None


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for request values.

    Rejects bools, floats, decimals and scientific notation instead of
    silently truncating them.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", field=field)
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)", field=field)
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", field=field)
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", field=field)
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", field=field)
    raise ValidationError(f"{field} must be an integer", field=field)


def require_id(value: Any, field: str) -> int:
    if value is None or value == "":
        raise ValidationError(f"{field} is required", field=field)
    parsed = coerce_int(value, field)
    if parsed <= 0:
        raise ValidationError(f"{field} must be a positive id", field=field)
    return parsed


def require_choice(value: Any, choices: Iterable[str], field: str, default: str | None = None) -> str:
    if value is None or value == "":
        if default is not None:
            return default
        raise ValidationError(f"{field} is required", field=field)
    choices = tuple(choices)
    if value not in choices:
        raise ValidationError(
            f"Invalid {field}. Must be one of: {', '.join(choices)}",
            field=field,
        )
    return value


def optional_text(value: Any, field: str, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    text = value.strip()
    if not text:
        return None
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters", field=field)
    return text


def optional_datetime(value: Any, field: str, *, allow_date: bool = False) -> date | datetime | None:
    """
    With allow_date, a bare "YYYY-MM-DD" comes back as a date so range
    filters can widen it to the whole day; anything with a time part stays
    an exact datetime.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        if allow_date:
            return value
        raise ValidationError(f"{field} must be an ISO-8601 datetime", field=field)
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 datetime", field=field)
    try:
        if allow_date and is_bare_date(value):
            return date.fromisoformat(value.strip())
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime", field=field)


def parse_items(
    items: Any,
    *,
    allow_price: bool = True,
    require_condition: bool = False,
) -> list[LineItem]:
    """
    Validate the items[] array shared by every workflow.

    - items must be a non-empty list of objects
    - product_id and quantity are required; quantity must be positive
    - unit_price_cents (optional override) must be a non-negative integer
    - condition is required (and checked) for shop returns only
    """
    if items is None:
        raise ValidationError("items are required", field="items")
    if not isinstance(items, (list, tuple)):
        raise ValidationError("items must be a list", field="items")
    if not items:
        raise ValidationError("At least one item is required", field="items")

    parsed: list[LineItem] = []
    for index, raw in enumerate(items):
        if isinstance(raw, LineItem):
            raw = {
                "product_id": raw.product_id,
                "quantity": raw.quantity,
                "unit_price_cents": raw.unit_price_cents,
                "condition": raw.condition,
                "notes": raw.notes,
            }
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object", field="items")

        if raw.get("product_id") in (None, "") or raw.get("quantity") in (None, ""):
            raise ValidationError(
                "Product ID and quantity are required for each item",
                field=f"items[{index}]",
            )

        product_id = require_id(raw["product_id"], f"items[{index}].product_id")
        quantity = coerce_int(raw["quantity"], f"items[{index}].quantity")
        if quantity <= 0:
            raise ValidationError(
                f"items[{index}].quantity must be positive",
                field=f"items[{index}].quantity",
            )
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(
                f"items[{index}].quantity exceeds maximum of {MAX_LINE_QUANTITY}",
                field=f"items[{index}].quantity",
            )

        unit_price_cents = None
        if allow_price and raw.get("unit_price_cents") is not None:
            unit_price_cents = coerce_int(raw["unit_price_cents"], f"items[{index}].unit_price_cents")
            if unit_price_cents < 0:
                raise ValidationError(
                    f"items[{index}].unit_price_cents cannot be negative",
                    field=f"items[{index}].unit_price_cents",
                )
            if unit_price_cents > MAX_PRICE_CENTS:
                raise ValidationError(
                    f"items[{index}].unit_price_cents exceeds maximum of {MAX_PRICE_CENTS}",
                    field=f"items[{index}].unit_price_cents",
                )

        condition = None
        if require_condition:
            condition = require_choice(raw.get("condition"), RETURN_CONDITIONS, f"items[{index}].condition")

        parsed.append(
            LineItem(
                product_id=product_id,
                quantity=quantity,
                unit_price_cents=unit_price_cents,
                condition=condition,
                notes=optional_text(raw.get("notes"), f"items[{index}].notes"),
            )
        )

    return parsed


def quantities_by_product(items: Iterable[LineItem]) -> "OrderedDict[int, int]":
    """Total requested quantity per product, in first-seen order."""
    totals: "OrderedDict[int, int]" = OrderedDict()
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return totals


def append_note(existing: str | None, note: str, stamp: datetime) -> str:
    """Append a timestamped note to a document's running notes."""
    line = f"{stamp.isoformat()}Z: {note}"
    return f"{existing}\n\n{line}" if existing else line


def optional_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return coerce_int(value, field)


def parse_limit(value: Any, default: int = 100, maximum: int = 500) -> int:
    limit = optional_int(value, "limit")
    if limit is None:
        return default
    if limit <= 0:
        raise ValidationError("limit must be positive", field="limit")
    return min(limit, maximum)
