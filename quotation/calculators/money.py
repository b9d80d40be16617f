from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

D = Decimal

CENT = D("0.01")
ZERO = D("0.00")


def to_decimal(value: Any) -> D:
    """Floats go through str() so binary noise never reaches a price."""
    if isinstance(value, D):
        return value
    return D(str(value))


def money(value: Any) -> D:
    """Currency precision, applied at the point where a cost line is emitted."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_half_up(value: Any) -> int:
    return int(to_decimal(value).quantize(D("1"), rounding=ROUND_HALF_UP))
