# backend/unit_conversion.py

"""
Unit Conversion - Order Quantity Normalization

This module is responsible for:
- Classifying a unit string into a measurement category
- Parsing compound pack units ("25KG" = packs of 25 kg)
- Converting quantities to the category base unit
- Scaling base quantities to a human display unit
- Building per-item quantity rollups for order forms and invoices

This module MUST NOT:
- Raise on unknown or malformed unit strings
- Keep any state between calls

PERMISSIVE DEFAULTS:
- Unknown units are countable items (category COUNT, factor 1)
- Incomplete rows are skipped by the rollup, never reported
"""

import logging
import math
import re
from decimal import Decimal, ROUND_FLOOR
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, NamedTuple, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from line_items import ItemInput, coerce_line_item
from rounding import quantize_half_up

logger = logging.getLogger(__name__)

# ==================== ENUMS ====================

class UnitCategory(str, Enum):
    """Measurement categories (lookup order matters)"""
    VOLUME = "volume"
    WEIGHT = "weight"
    LENGTH = "length"
    AREA = "area"
    COUNT = "count"


# ==================== CONVERSION TABLE ====================

# Factor converting 1 unit of the alias into the category base unit:
# volume -> liters, weight -> kilograms, length -> meters, area -> m², count -> 1
UNIT_CONVERSIONS: Mapping[UnitCategory, Mapping[str, float]] = MappingProxyType({
    UnitCategory.VOLUME: MappingProxyType({
        "ml": 0.001,
        "milliliter": 0.001,
        "millilitre": 0.001,
        "l": 1,
        "liter": 1,
        "litre": 1,
        "dl": 0.1,
        "deciliter": 0.1,
        "decilitre": 0.1,
        "cl": 0.01,
        "centiliter": 0.01,
        "centilitre": 0.01,
        "gal": 3.78541,
        "gallon": 3.78541,
        "qt": 0.946353,
        "quart": 0.946353,
        "pt": 0.473176,
        "pint": 0.473176,
        "fl oz": 0.0295735,
        "fluid ounce": 0.0295735,
        "cup": 0.236588,
        "tbsp": 0.0147868,
        "tablespoon": 0.0147868,
        "tsp": 0.00492892,
        "teaspoon": 0.00492892,
    }),
    UnitCategory.WEIGHT: MappingProxyType({
        "mg": 0.000001,
        "milligram": 0.000001,
        "g": 0.001,
        "gram": 0.001,
        "kg": 1,
        "kilogram": 1,
        "lb": 0.453592,
        "pound": 0.453592,
        "lbs": 0.453592,
        "oz": 0.0283495,
        "ounce": 0.0283495,
        "ton": 1000,
        "tonne": 1000,
        "metric ton": 1000,
    }),
    UnitCategory.LENGTH: MappingProxyType({
        "mm": 0.001,
        "millimeter": 0.001,
        "millimetre": 0.001,
        "cm": 0.01,
        "centimeter": 0.01,
        "centimetre": 0.01,
        "m": 1,
        "meter": 1,
        "metre": 1,
        "km": 1000,
        "kilometer": 1000,
        "kilometre": 1000,
        "in": 0.0254,
        "inch": 0.0254,
        "ft": 0.3048,
        "foot": 0.3048,
        "feet": 0.3048,
        "yd": 0.9144,
        "yard": 0.9144,
        "mi": 1609.34,
        "mile": 1609.34,
    }),
    UnitCategory.AREA: MappingProxyType({
        "mm²": 0.000001,
        "cm²": 0.0001,
        "m²": 1,
        "km²": 1000000,
        "in²": 0.00064516,
        "ft²": 0.092903,
        "yd²": 0.836127,
        "acre": 4046.86,
        "hectare": 10000,
    }),
    UnitCategory.COUNT: MappingProxyType({
        "each": 1,
        "piece": 1,
        "item": 1,
        "unit": 1,
        "pcs": 1,
        "pieces": 1,
        "items": 1,
        "units": 1,
        "dozen": 12,
        "doz": 12,
        "gross": 144,
        "box": 1,
        "case": 1,
        "pack": 1,
        "package": 1,
        "bag": 1,
        "bottle": 1,
        "can": 1,
        "jar": 1,
        "tube": 1,
        "roll": 1,
        "sheet": 1,
        "page": 1,
    }),
})

# "25kg", "5lt" (ASCII only, applied to the lowercased, trimmed unit)
COMPOUND_UNIT_PATTERN = re.compile(r"([0-9]+)([a-z]+)", re.ASCII)

UNKNOWN_ITEM_DESCRIPTION = "Unknown Item"

MAX_FRACTIONAL_FLOAT = 2 ** 52

# ==================== DATA MODELS ====================

class CompoundUnit(NamedTuple):
    """Pack size + unit alias parsed from e.g. "25KG" """
    pack_size: float
    alias: str


class DisplayQuantity(BaseModel):
    """Quantity scaled to a human display unit"""
    value: float
    unit: str


class QuantityRollup(BaseModel):
    """Per-inventory-item quantity summary"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    inventory_id: str
    description: str = UNKNOWN_ITEM_DESCRIPTION
    quantity: float
    unit: str
    total: float  # base units (L, kg, m, m², count)
    display_unit: str  # original unit label, uppercased
    formatted_total: str  # number of packs/units, rounded
    calculation_breakdown: str


# ==================== HELPERS ====================

def _normalize(unit: Optional[str]) -> str:
    return (unit or "").lower().strip()


def _as_category(category: Any) -> Optional[UnitCategory]:
    if isinstance(category, UnitCategory):
        return category
    try:
        return UnitCategory(category)
    except ValueError:
        return None


def _lookup_alias(alias: str) -> Optional[UnitCategory]:
    for category, units in UNIT_CONVERSIONS.items():
        if alias in units:
            return category
    return None


def _round_integer(value: float) -> Union[int, float]:
    """Round half toward +infinity (2.5 -> 3, -2.5 -> -2). NaN/inf pass through."""
    if not math.isfinite(value):
        return value
    # Floats this large have no fractional part; from 1e21 keep the float
    # so str() gives exponent notation
    if abs(value) >= MAX_FRACTIONAL_FLOAT:
        return int(value) if abs(value) < 1e21 else value
    return int((Decimal(value) + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))


def _to_fixed(value: float, places: int) -> str:
    """Fixed-point string, half away from zero on the exact binary value."""
    # toFixed falls back to exponent notation from 1e21 up
    if abs(value) >= 1e21:
        return str(value)
    return format(quantize_half_up(Decimal(value), places), "f")


def _format_number(value: float) -> str:
    """Plain number text: 2.0 -> "2", 2.5 -> "2.5", 1e26 -> "1e+26"."""
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return str(value)


# ==================== UNIT CONVERSION ====================

def parse_compound_unit(unit: Optional[str]) -> Optional[CompoundUnit]:
    """
    Parse a compound pack unit.

    Args:
        unit: Raw unit string, e.g. "25KG"

    Returns:
        CompoundUnit(25, "kg"), or None for anything that is not
        <digits><letters> after lowercasing and trimming
    """
    match = COMPOUND_UNIT_PATTERN.fullmatch(_normalize(unit))
    if not match:
        return None
    return CompoundUnit(pack_size=float(match.group(1)), alias=match.group(2))


def detect_unit_category(unit: Optional[str]) -> UnitCategory:
    """
    Classify a unit string.

    Compound units are classified by their alias part ("25KG" -> weight).
    Anything unrecognized is COUNT; this function never raises.
    """
    unit_lower = _normalize(unit)

    compound = parse_compound_unit(unit_lower)
    if compound:
        category = _lookup_alias(compound.alias)
        if category:
            return category

    category = _lookup_alias(unit_lower)
    if category:
        return category

    logger.debug(f"Unit '{unit}' not recognized, treating as {UnitCategory.COUNT.value}")
    return UnitCategory.COUNT


def convert_to_base_unit(quantity: float, unit: Optional[str]) -> float:
    """
    Convert a quantity in the given unit to the category base unit.

    Compound: quantity × pack_size × factor(alias)
    Simple:   quantity × factor(unit)
    A factor missing from the table counts as 1.
    """
    category = detect_unit_category(unit)
    units = UNIT_CONVERSIONS[category]
    unit_lower = _normalize(unit)

    compound = parse_compound_unit(unit_lower)
    if compound:
        conversion_factor = units.get(compound.alias, 1)
        return quantity * compound.pack_size * conversion_factor

    conversion_factor = units.get(unit_lower, 1)
    return quantity * conversion_factor


def convert_to_display_unit(quantity: float, category: Union[UnitCategory, str]) -> DisplayQuantity:
    """
    Scale a base-unit quantity to a readable unit.

    Volume and weight keep L/kg for everything >= 1; only the divisor
    changes at >= 1000.
    """
    resolved = _as_category(category)

    if resolved == UnitCategory.COUNT:
        return DisplayQuantity(value=_round_integer(quantity), unit="units")

    if resolved == UnitCategory.VOLUME:
        if quantity >= 1000:
            return DisplayQuantity(value=quantity / 1000, unit="L")
        elif quantity >= 1:
            return DisplayQuantity(value=quantity, unit="L")
        return DisplayQuantity(value=quantity * 1000, unit="ml")

    if resolved == UnitCategory.WEIGHT:
        if quantity >= 1000:
            return DisplayQuantity(value=quantity / 1000, unit="kg")
        elif quantity >= 1:
            return DisplayQuantity(value=quantity, unit="kg")
        return DisplayQuantity(value=quantity * 1000, unit="g")

    if resolved == UnitCategory.LENGTH:
        if quantity >= 1000:
            return DisplayQuantity(value=quantity / 1000, unit="km")
        elif quantity >= 1:
            return DisplayQuantity(value=quantity, unit="m")
        return DisplayQuantity(value=quantity * 1000, unit="mm")

    if resolved == UnitCategory.AREA:
        if quantity >= 10000:
            return DisplayQuantity(value=quantity / 10000, unit="hectares")
        elif quantity >= 1:
            return DisplayQuantity(value=quantity, unit="m²")
        return DisplayQuantity(value=quantity * 10000, unit="cm²")

    return DisplayQuantity(value=quantity, unit="units")


def get_display_unit(category: Union[UnitCategory, str], quantity: float = 0) -> str:
    """Display unit label only (see convert_to_display_unit)."""
    if _as_category(category) is None:
        return "units"
    return convert_to_display_unit(quantity, category).unit


def format_quantity(quantity: float, category: Union[UnitCategory, str], precision: int = 2) -> str:
    """
    Format a quantity for display.

    COUNT is rounded to an integer. Other categories use scale-based
    decimals: >=1000 -> 0, >=100 -> 1, >=10 -> 2, otherwise 3.

    NOTE: precision is accepted for API compatibility but the scale table
    always decides. Changing this alters every rendered invoice.
    """
    if not math.isfinite(quantity):
        return str(quantity)

    if _as_category(category) == UnitCategory.COUNT:
        return str(_round_integer(quantity))

    if quantity >= 1000:
        return _to_fixed(quantity, 0)
    elif quantity >= 100:
        return _to_fixed(quantity, 1)
    elif quantity >= 10:
        return _to_fixed(quantity, 2)
    return _to_fixed(quantity, 3)


def build_calculation_breakdown(quantity: float, unit: Optional[str]) -> str:
    """
    Human-readable line calculation, e.g. "25.00 kg × 2 = 50.00 kg".
    """
    category = detect_unit_category(unit)
    base_unit_per_item = convert_to_base_unit(1, unit)
    total_base_quantity = base_unit_per_item * quantity

    per_item = convert_to_display_unit(base_unit_per_item, category)
    total = convert_to_display_unit(total_base_quantity, category)

    return (
        f"{format_quantity(per_item.value, category)} {per_item.unit} × {_format_number(quantity)} = "
        f"{format_quantity(total.value, category)} {total.unit}"
    )


def calculate_total_quantity(items: Iterable[ItemInput]) -> Dict[str, QuantityRollup]:
    """
    Build a quantity rollup per inventory item.

    Rows without inventory id, quantity or unit are skipped. Rows are not
    merged: a later row with the same inventory id replaces the earlier one.

    Args:
        items: Line items (models or plain dicts with camelCase or snake_case keys)

    Returns:
        Dict of inventory_id -> QuantityRollup
    """
    totals: Dict[str, QuantityRollup] = {}

    for raw_item in items:
        item = coerce_line_item(raw_item)
        if not item.inventory_id or not item.quantity or not item.unit:
            logger.debug(f"Skipping incomplete line item for rollup: {item.inventory_id!r}")
            continue

        base_unit_per_item = convert_to_base_unit(1, item.unit)
        total_base_quantity = base_unit_per_item * item.quantity

        compound = parse_compound_unit(item.unit)
        if compound:
            display_unit = compound.alias.upper()
            packs = item.quantity * compound.pack_size
        else:
            display_unit = item.unit.upper()
            packs = item.quantity

        totals[item.inventory_id] = QuantityRollup(
            inventory_id=item.inventory_id,
            description=item.description or UNKNOWN_ITEM_DESCRIPTION,
            quantity=item.quantity,
            unit=item.unit,
            total=total_base_quantity,
            display_unit=display_unit,
            formatted_total=str(_round_integer(packs)),
            calculation_breakdown=build_calculation_breakdown(item.quantity, item.unit),
        )

    return totals
