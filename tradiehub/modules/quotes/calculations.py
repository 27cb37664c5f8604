"""
Quote Totals

All money is Decimal rounded half-up to cents:

    item total = round(quantity x unit_price, 2)
    subtotal   = sum(item totals)
    gst        = round(subtotal x rate, 2) if GST is enabled else 0
    total      = subtotal + gst
"""
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

QUANTITY_RANGE = (Decimal("0.01"), Decimal("99999.99"))
UNIT_PRICE_RANGE = (Decimal("0"), Decimal("999999.99"))


def money(value: Any) -> Decimal:
    """Round to cents, half-up."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def line_total(quantity: Any, unit_price: Any) -> Decimal:
    return money(Decimal(str(quantity)) * Decimal(str(unit_price)))


@dataclass(frozen=True)
class QuoteTotals:
    item_totals: tuple[Decimal, ...]
    subtotal: Decimal
    gst_amount: Decimal
    total_amount: Decimal


def calculate_quote_totals(items: Iterable[Any], gst_enabled: bool, gst_rate: Decimal) -> QuoteTotals:
    """Totals for objects exposing `quantity` and `unit_price`."""
    item_totals = tuple(line_total(item.quantity, item.unit_price) for item in items)
    subtotal = money(sum(item_totals, ZERO))
    gst_amount = money(subtotal * gst_rate) if gst_enabled else ZERO
    return QuoteTotals(
        item_totals=item_totals,
        subtotal=subtotal,
        gst_amount=gst_amount,
        total_amount=subtotal + gst_amount,
    )


def validate_quote_items(items: Sequence[Any], max_items: int) -> list[dict[str, str]]:
    """Field-level problems with a quote's items; empty when they are valid."""
    if not items:
        return [{"field": "items", "message": "At least one quote item is required", "code": "missing"}]

    errors = []
    if len(items) > max_items:
        errors.append({"field": "items", "message": f"Maximum {max_items} items allowed per quote", "code": "too_long"})

    qty_low, qty_high = QUANTITY_RANGE
    price_low, price_high = UNIT_PRICE_RANGE
    for index, item in enumerate(items):
        prefix = f"items.{index}"
        if not (item.description or "").strip():
            errors.append({"field": f"{prefix}.description", "message": "Description is required", "code": "missing"})
        if not qty_low <= item.quantity <= qty_high:
            errors.append({
                "field": f"{prefix}.quantity",
                "message": f"Quantity must be between {qty_low} and {qty_high}",
                "code": "range",
            })
        if not price_low <= item.unit_price <= price_high:
            errors.append({
                "field": f"{prefix}.unit_price",
                "message": f"Unit price must be between {price_low} and {price_high}",
                "code": "range",
            })
        if not (item.unit or "").strip():
            errors.append({"field": f"{prefix}.unit", "message": "Unit is required", "code": "missing"})
    return errors
