# backend/order_pricing.py

"""
Order Pricing Service - composes unit conversion and tax calculation

Turns the order form payload into a priced order:
- Order-level validation (same rules and messages as the order form)
- Order tax rate applied to every line
- Per-line total price and human calculation breakdown
- Order subtotal / tax / total and per-inventory quantity rollup
"""

import logging
import re
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from line_items import LineItem
from tax_calculation import (
    TaxCalculationMethod,
    calculate_tax_for_items,
    get_tax_calculation_method,
    round_money,
)
from unit_conversion import QuantityRollup, build_calculation_breakdown, calculate_total_quantity

logger = logging.getLogger(__name__)

# ==================== LIMITS ====================

MAX_CUSTOMER_NAME_LENGTH = 200
MAX_PHONE_LENGTH = 20
MAX_NOTES_LENGTH = 1000
MIN_TAX_RATE = 0
MAX_TAX_RATE = 100

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")

# ==================== ERROR CLASSES ====================

class PricingError(Exception):
    """Base order pricing error"""
    def __init__(self, error_code: str, message: str, field: Optional[str] = None):
        self.error_code = error_code
        self.message = message
        self.field = field
        super().__init__(self.message)


class OrderValidationError(PricingError):
    """Order payload failed validation"""
    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__(
            "ORDER_VALIDATION_FAILED",
            ". ".join(errors),
        )


# ==================== DATA MODELS ====================

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CustomerInfo(_CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[Dict[str, Any]] = None


class OrderInput(_CamelModel):
    """Order form payload"""
    customer_info: CustomerInfo = Field(default_factory=CustomerInfo)
    items: List[LineItem] = []
    tax_rate: Optional[float] = None
    notes: Optional[str] = None


class PricedOrderItem(LineItem):
    total_price: float
    calculation_breakdown: Optional[str] = None


class PricedOrder(_CamelModel):
    customer_info: CustomerInfo
    items: List[PricedOrderItem]
    tax_method: TaxCalculationMethod
    tax_rate: float
    subtotal: float
    tax_amount: float
    total: float
    quantity_totals: Dict[str, QuantityRollup] = {}
    notes: Optional[str] = None


OrderPayload = Union[OrderInput, Dict[str, Any]]

# ==================== VALIDATION ====================

def validate_customer_name(name: Optional[str]) -> str:
    if not name or not name.strip():
        return "Customer name is required"
    if len(name) > MAX_CUSTOMER_NAME_LENGTH:
        return f"Customer name must be less than {MAX_CUSTOMER_NAME_LENGTH} characters"
    return ""


def validate_email(email: Optional[str]) -> str:
    if email and not EMAIL_PATTERN.match(email):
        return "Invalid email format"
    return ""


def validate_phone(phone: Optional[str]) -> str:
    if phone and len(phone) > MAX_PHONE_LENGTH:
        return f"Phone must be less than {MAX_PHONE_LENGTH} characters"
    return ""


def validate_tax_rate(rate: Optional[float]) -> str:
    """Range check the calculation functions deliberately leave to callers."""
    if rate is not None and (rate < MIN_TAX_RATE or rate > MAX_TAX_RATE):
        return f"Tax rate must be between {MIN_TAX_RATE} and {MAX_TAX_RATE}"
    return ""


def validate_notes(notes: Optional[str]) -> str:
    if notes and len(notes) > MAX_NOTES_LENGTH:
        return f"Notes must be less than {MAX_NOTES_LENGTH} characters"
    return ""


def validate_item(item: LineItem, index: int) -> List[str]:
    """index is 0-based; messages are 1-based."""
    errors = []
    if not item.inventory_id:
        errors.append(f"Item {index + 1}: Please select an inventory item")
    if not item.quantity or item.quantity < 1:
        errors.append(f"Item {index + 1}: Quantity must be at least 1")
    if not item.unit_price or item.unit_price <= 0:
        errors.append(f"Item {index + 1}: Unit price must be greater than 0")
    return errors


def validate_order(order: OrderPayload) -> List[str]:
    """
    Validate an order payload.

    Returns:
        List of error messages (empty when the order is valid)
    """
    if not isinstance(order, OrderInput):
        order = OrderInput.model_validate(order)

    errors: List[str] = []

    for message in (
        validate_customer_name(order.customer_info.name),
        validate_email(order.customer_info.email),
        validate_phone(order.customer_info.phone),
    ):
        if message:
            errors.append(message)

    if not order.items:
        errors.append("At least one item is required")
    else:
        for index, item in enumerate(order.items):
            errors.extend(validate_item(item, index))

    for message in (validate_tax_rate(order.tax_rate), validate_notes(order.notes)):
        if message:
            errors.append(message)

    return errors


# ==================== PRICING ====================

class OrderPricingService:
    """Prices validated orders with the configured tax method"""

    def __init__(self, method: Optional[TaxCalculationMethod] = None):
        """
        Args:
            method: Fixed tax method; defaults to get_tax_calculation_method()
                resolved on every call
        """
        self.method = method

    def resolve_method(self) -> TaxCalculationMethod:
        return self.method or get_tax_calculation_method()

    def price_order(self, order: OrderPayload) -> PricedOrder:
        """
        Validate and price an order.

        Raises:
            OrderValidationError: If the payload breaks any order rule
        """
        if not isinstance(order, OrderInput):
            order = OrderInput.model_validate(order)

        errors = validate_order(order)
        if errors:
            logger.warning(f"Order validation failed: {errors}")
            raise OrderValidationError(errors)

        method = self.resolve_method()
        tax_rate = order.tax_rate or 0

        # The order tax rate applies to every line
        taxed_items = [
            item.model_copy(update={"tax_rate": tax_rate}) for item in order.items
        ]
        calculation = calculate_tax_for_items(taxed_items, method)

        priced_items = []
        for item in taxed_items:
            data = item.model_dump(by_alias=True)
            data["totalPrice"] = round_money(item.unit_price * item.quantity)
            if item.unit:
                data["calculationBreakdown"] = build_calculation_breakdown(item.quantity, item.unit)
            priced_items.append(PricedOrderItem.model_validate(data))

        priced = PricedOrder(
            customer_info=order.customer_info,
            items=priced_items,
            tax_method=method,
            tax_rate=tax_rate,
            subtotal=calculation.subtotal,
            tax_amount=calculation.tax_amount,
            total=calculation.total,
            quantity_totals=calculate_total_quantity(taxed_items),
            notes=order.notes,
        )

        logger.info(
            f"Priced order for {order.customer_info.name!r}: {len(priced_items)} items, "
            f"subtotal={priced.subtotal}, tax={priced.tax_amount}, total={priced.total} ({method.value})"
        )
        return priced
