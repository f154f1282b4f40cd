# backend/currency.py

"""
Currency helpers for invoice display (South African Rand)
"""

import math
import re
from decimal import Decimal

from rounding import quantize_half_up

CURRENCY_CODE = "ZAR"
CURRENCY_SYMBOL = "R"

# Compact notation suffixes, largest first
COMPACT_SUFFIXES = [
    (Decimal("1e12"), "T"),
    (Decimal("1e9"), "B"),
    (Decimal("1e6"), "M"),
    (Decimal("1e3"), "K"),
]

_CURRENCY_NOISE = re.compile(rf"[{CURRENCY_SYMBOL}\s,]")
_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def _with_sign(amount_text: str, negative: bool) -> str:
    return f"-{CURRENCY_SYMBOL}{amount_text}" if negative else f"{CURRENCY_SYMBOL}{amount_text}"


def format_currency(amount: float) -> str:
    """Format money with 2 decimals, e.g. 1234.5 -> "R1,234.50"."""
    if not math.isfinite(amount):
        return f"{CURRENCY_SYMBOL}{amount}"
    rounded = quantize_half_up(Decimal(str(amount)), 2)
    return _with_sign(f"{abs(rounded):,.2f}", rounded < 0)


def format_currency_compact(amount: float) -> str:
    """
    Format money without decimals in compact notation.

    Examples: 950 -> "R950", 1500 -> "R2K", 2_400_000 -> "R2M"
    """
    if not math.isfinite(amount):
        return f"{CURRENCY_SYMBOL}{amount}"

    value = abs(Decimal(str(amount)))
    negative = amount < 0

    for index, (threshold, suffix) in enumerate(COMPACT_SUFFIXES):
        if value < threshold:
            continue
        scaled = quantize_half_up(value / threshold, 0)
        # 999_500 rounds to 1000K; promote to the next suffix
        if scaled >= 1000 and index > 0:
            larger_threshold, larger_suffix = COMPACT_SUFFIXES[index - 1]
            scaled = quantize_half_up(value / larger_threshold, 0)
            suffix = larger_suffix
        return _with_sign(f"{scaled:,}{suffix}", negative)

    whole = quantize_half_up(value, 0)
    if whole >= 1000:
        return _with_sign(f"1{COMPACT_SUFFIXES[-1][1]}", negative)
    return _with_sign(f"{whole}", negative and whole != 0)


def parse_currency(value: str) -> float:
    """
    Parse user-entered money text.

    Currency symbol, whitespace and thousands separators are dropped and the
    leading number is used ("R 1,234.50" -> 1234.5, "12abc" -> 12.0).
    Anything unparseable is 0.0.
    """
    cleaned = _CURRENCY_NOISE.sub("", value or "")
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return 0.0
    return float(match.group(0))
