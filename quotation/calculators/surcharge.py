from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Iterable, Tuple

from .money import ZERO, money, to_decimal

D = Decimal


def percentage_surcharge(amounts: Iterable[D], rate: Any) -> Tuple[D, Dict[str, Any]]:
    """
    Position-sensitive surcharge: `rate` applied to the sum of whatever cost lines
    exist at the caller's position in the pipeline.

    Returns (rounded amount, meta).
    """
    base = sum((to_decimal(a) for a in amounts), ZERO)
    pct = to_decimal(rate)
    return money(base * pct), {"base": str(money(base)), "rate": str(pct)}
