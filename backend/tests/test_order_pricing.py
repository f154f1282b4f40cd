# backend/tests/test_order_pricing.py

"""
Unit tests for the order pricing service

Tests cover:
- Order form validation rules and messages
- Order tax rate applied to every line
- Totals, per-line total price and calculation breakdown
- Configured vs fixed tax method
"""

import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from order_pricing import (
    OrderInput,
    OrderPricingService,
    OrderValidationError,
    validate_item,
    validate_order,
    validate_tax_rate,
)
from line_items import LineItem
from tax_calculation import TaxCalculationMethod, calculate_tax_for_items


@pytest.fixture
def service():
    return OrderPricingService()


@pytest.fixture
def valid_order():
    """Two lines at 15% VAT included"""
    return {
        "customerInfo": {"name": "Acme Builders", "email": "orders@acme.co.za", "phone": "0215550100"},
        "items": [
            {"inventoryId": "CEMENT", "quantity": 2, "unit": "25KG", "unitPrice": 115, "description": "Cement"},
            {"inventoryId": "PAINT", "quantity": 3, "unit": "500ml", "unitPrice": 40, "taxRate": 5},
        ],
        "taxRate": 15,
        "notes": "Deliver to site",
    }


class TestValidateTaxRate:

    @pytest.mark.parametrize("rate", [0, 15, 100, None])
    def test_valid(self, rate):
        assert validate_tax_rate(rate) == ""

    @pytest.mark.parametrize("rate", [-1, 100.5, 150])
    def test_out_of_range(self, rate):
        assert validate_tax_rate(rate) == "Tax rate must be between 0 and 100"


class TestValidateOrder:

    def test_valid_order(self, valid_order):
        assert validate_order(valid_order) == []

    def test_empty_order(self):
        assert validate_order({}) == [
            "Customer name is required",
            "At least one item is required",
        ]

    def test_customer_rules(self, valid_order):
        valid_order["customerInfo"] = {"name": "x" * 201, "email": "not-an-email", "phone": "0" * 21}

        assert validate_order(valid_order) == [
            "Customer name must be less than 200 characters",
            "Invalid email format",
            "Phone must be less than 20 characters",
        ]

    def test_blank_name(self, valid_order):
        valid_order["customerInfo"]["name"] = "   "
        assert "Customer name is required" in validate_order(valid_order)

    def test_item_rules(self):
        errors = validate_item(LineItem(quantity=0.5, unit_price=0), 1)

        assert errors == [
            "Item 2: Please select an inventory item",
            "Item 2: Quantity must be at least 1",
            "Item 2: Unit price must be greater than 0",
        ]

    def test_tax_rate_and_notes(self, valid_order):
        valid_order["taxRate"] = 120
        valid_order["notes"] = "n" * 1001

        assert validate_order(valid_order) == [
            "Tax rate must be between 0 and 100",
            "Notes must be less than 1000 characters",
        ]

    def test_accepts_model(self, valid_order):
        assert validate_order(OrderInput.model_validate(valid_order)) == []


class TestPriceOrder:

    def test_totals(self, service, valid_order):
        priced = service.price_order(valid_order)

        # 230 incl. (200 + 30) and 120 incl. (104.35 + 15.65)
        assert priced.tax_method == TaxCalculationMethod.REVERSE
        assert priced.tax_rate == 15
        assert priced.subtotal == 304.35
        assert priced.tax_amount == 45.65
        assert priced.total == 350.0

    def test_order_rate_overrides_line_rate(self, service, valid_order):
        priced = service.price_order(valid_order)

        assert [item.tax_rate for item in priced.items] == [15, 15]

    def test_matches_batch_calculation(self, service, valid_order):
        priced = service.price_order(valid_order)
        lines = [dict(item, taxRate=15) for item in valid_order["items"]]
        expected = calculate_tax_for_items(lines, "reverse")

        assert (priced.subtotal, priced.tax_amount, priced.total) == (
            expected.subtotal, expected.tax_amount, expected.total
        )

    def test_line_details(self, service, valid_order):
        priced = service.price_order(valid_order)

        cement, paint = priced.items
        assert cement.total_price == 230.0
        assert cement.calculation_breakdown == "25.00 kg × 2 = 50.00 kg"
        assert cement.description == "Cement"
        assert paint.total_price == 120.0
        assert paint.calculation_breakdown == "500.0 ml × 3 = 1.500 L"

    def test_quantity_totals(self, service, valid_order):
        priced = service.price_order(valid_order)

        assert set(priced.quantity_totals) == {"CEMENT", "PAINT"}
        assert priced.quantity_totals["CEMENT"].formatted_total == "50"
        assert priced.quantity_totals["PAINT"].display_unit == "ML"

    def test_fixed_add_method(self, valid_order):
        priced = OrderPricingService(method=TaxCalculationMethod.ADD).price_order(valid_order)

        assert priced.tax_method == TaxCalculationMethod.ADD
        assert priced.subtotal == 350.0
        assert priced.tax_amount == 52.5
        assert priced.total == 402.5

    def test_missing_tax_rate_is_zero(self, service, valid_order):
        del valid_order["taxRate"]

        priced = service.price_order(valid_order)

        assert priced.tax_rate == 0
        assert priced.tax_amount == 0.0
        assert priced.total == 350.0

    def test_invalid_order_raises(self, service):
        with pytest.raises(OrderValidationError) as exc_info:
            service.price_order({"customerInfo": {"name": ""}, "items": []})

        assert exc_info.value.error_code == "ORDER_VALIDATION_FAILED"
        assert exc_info.value.errors == [
            "Customer name is required",
            "At least one item is required",
        ]
        assert str(exc_info.value) == "Customer name is required. At least one item is required"

    def test_camel_case_dump(self, service, valid_order):
        dumped = service.price_order(valid_order).model_dump(by_alias=True)

        assert dumped["taxAmount"] == 45.65
        assert dumped["customerInfo"]["name"] == "Acme Builders"
        assert dumped["items"][0]["totalPrice"] == 230.0
        assert dumped["items"][0]["calculationBreakdown"] == "25.00 kg × 2 = 50.00 kg"
