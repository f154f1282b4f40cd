# backend/line_items.py

"""
Order line item input contract, shared by unit_conversion and tax_calculation.
"""

from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class LineItem(BaseModel):
    """One order row as supplied by the order form (immutable snapshot)"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",  # basePrice, markup, ... are echoed back untouched
        frozen=True,
    )

    inventory_id: Optional[str] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    unit_price: float = 0
    tax_rate: float = 0
    description: Optional[str] = None


ItemInput = Union[LineItem, Mapping[str, Any]]


def coerce_line_item(item: ItemInput) -> LineItem:
    """Accept a LineItem or a plain dict (camelCase or snake_case keys)."""
    if isinstance(item, LineItem):
        return item
    return LineItem.model_validate(item)
