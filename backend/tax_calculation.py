# backend/tax_calculation.py

"""
Tax Calculation - Line and Order Money Totals

Supports both pricing conventions:
- ADD (tax-exclusive): tax is computed on top of the entered price
- REVERSE (tax-inclusive): the entered price already contains tax

ROUNDING:
- Every money value is rounded to cents with ROUND_HALF_UP
- Aggregates are the sum of per-line rounded values, rounded again
  (no largest-remainder adjustment, so subtotal + tax may be a cent off total)

Tax rates are NOT range-checked here; see order_pricing.validate_tax_rate.
"""

import logging
import math
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from line_items import ItemInput, LineItem, coerce_line_item
from rounding import quantize_half_up

logger = logging.getLogger(__name__)

# ==================== ENUMS ====================

class TaxCalculationMethod(str, Enum):
    """How the entered unit price relates to tax"""
    ADD = "add"
    REVERSE = "reverse"


# Cents, ROUND_HALF_UP
MONEY_PLACES = 2

# ==================== DATA MODELS ====================

class TaxCalculationResult(BaseModel):
    """Subtotal / tax / total for one line or a whole order"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    subtotal: float
    tax_amount: float
    total: float


class TaxBreakdownItem(LineItem, TaxCalculationResult):
    """Original line item fields + its own calculation + 1-based position"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    index: int


class ItemsTaxCalculationResult(TaxCalculationResult):
    """Aggregate result with per-item breakdown"""
    item_breakdown: List[TaxBreakdownItem] = []


# ==================== CALCULATIONS ====================

def round_money(value: float) -> float:
    """Round to 2 decimals, half up (1.005 -> 1.01). NaN/inf pass through."""
    if not math.isfinite(value):
        return value
    return float(quantize_half_up(Decimal(str(value)), MONEY_PLACES))


def _divide(numerator: float, denominator: float) -> float:
    # IEEE semantics for a -100% tax rate instead of ZeroDivisionError
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator)
    return numerator / denominator


def get_tax_calculation_method() -> TaxCalculationMethod:
    """
    Configured tax method.

    Constant for now; the boundary exists so the method can later come
    from server configuration without touching callers.
    """
    return TaxCalculationMethod.REVERSE


def calculate_tax(
    unit_price: float,
    quantity: float,
    tax_rate: float,
    method: Union[TaxCalculationMethod, str] = TaxCalculationMethod.REVERSE
) -> TaxCalculationResult:
    """
    Calculate tax for a single line.

    Args:
        unit_price: Price per unit
        quantity: Quantity
        tax_rate: Percentage, e.g. 15 for 15%
        method: ADD for tax on top of the price, REVERSE for tax included.
            Anything other than ADD is treated as REVERSE.

    Returns:
        TaxCalculationResult with each value rounded independently
    """
    line_amount = unit_price * quantity

    if method == TaxCalculationMethod.ADD:
        tax_amount = line_amount * (tax_rate / 100)
        total = line_amount + tax_amount

        return TaxCalculationResult(
            subtotal=round_money(line_amount),
            tax_amount=round_money(tax_amount),
            total=round_money(total)
        )

    # Reverse: taxAmount = total - (total / (1 + taxRate/100))
    total = line_amount
    tax_amount = total - _divide(total, 1 + tax_rate / 100)
    subtotal = total - tax_amount

    return TaxCalculationResult(
        subtotal=round_money(subtotal),
        tax_amount=round_money(tax_amount),
        total=round_money(total)
    )


def calculate_tax_for_items(
    items: Iterable[ItemInput],
    method: Union[TaxCalculationMethod, str] = TaxCalculationMethod.REVERSE
) -> ItemsTaxCalculationResult:
    """
    Calculate tax for multiple line items.

    Aggregates are sums of the per-item rounded values, rounded again.

    Args:
        items: Line items with unit_price, quantity and tax_rate
        method: See calculate_tax

    Returns:
        ItemsTaxCalculationResult with item_breakdown in input order
    """
    total_subtotal = 0.0
    total_tax_amount = 0.0
    total_amount = 0.0
    item_breakdown: List[TaxBreakdownItem] = []

    for position, raw_item in enumerate(items, start=1):
        item = coerce_line_item(raw_item)
        calculation = calculate_tax(
            item.unit_price or 0,
            item.quantity or 0,
            item.tax_rate or 0,
            method
        )

        total_subtotal += calculation.subtotal
        total_tax_amount += calculation.tax_amount
        total_amount += calculation.total

        # Calculation fields win over same-named item fields
        item_breakdown.append(TaxBreakdownItem.model_validate({
            **item.model_dump(by_alias=True, exclude_none=True),
            **calculation.model_dump(by_alias=True),
            "index": position,
        }))

    logger.debug(
        f"Calculated tax for {len(item_breakdown)} items ({getattr(method, 'value', method)}): "
        f"subtotal={total_subtotal}, tax={total_tax_amount}, total={total_amount}"
    )

    return ItemsTaxCalculationResult(
        subtotal=round_money(total_subtotal),
        tax_amount=round_money(total_tax_amount),
        total=round_money(total_amount),
        item_breakdown=item_breakdown
    )
