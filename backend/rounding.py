# backend/rounding.py

"""
Half-up decimal rounding shared by money and quantity formatting.
"""

from decimal import Decimal, ROUND_HALF_UP, localcontext


def quantize_half_up(value: Decimal, places: int) -> Decimal:
    """
    Round a finite Decimal to `places` decimals, half away from zero.

    The working precision grows with the magnitude of `value`, so large
    amounts (1e26, 1e30, ...) quantize instead of raising InvalidOperation.
    """
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + places + 2)
        return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
