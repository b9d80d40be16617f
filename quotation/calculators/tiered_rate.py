from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence, Tuple

from ..errors import ConfigurationError
from .money import ZERO, money, to_decimal

D = Decimal


@dataclass(frozen=True)
class RateBand:
    """
    One band of a progressive rate.
    - up_to: cumulative upper bound of the billable excess covered by this band
             (None = open-ended, only allowed on the last band)
    - rate: price per unit inside the band
    """

    up_to: Optional[D]
    rate: D


@dataclass(frozen=True)
class BandCharge:
    quantity: D
    rate: D
    amount: D


@dataclass(frozen=True)
class TieredCharge:
    measured: D
    threshold: D
    raw_excess: D
    billable_excess: D
    capped: bool
    bands: Tuple[BandCharge, ...]
    amount: D

    def meta(self) -> Dict[str, Any]:
        return {
            "measured": str(self.measured),
            "threshold": str(self.threshold),
            "rawExcess": str(self.raw_excess),
            "billableExcess": str(self.billable_excess),
            "wasCapped": self.capped,
            "breakdown": [
                {"quantity": str(b.quantity), "rate": str(b.rate), "amount": str(b.amount)}
                for b in self.bands
            ],
        }


def excess_quantity(measured: Any, threshold: Any) -> D:
    excess = to_decimal(measured) - to_decimal(threshold)
    return excess if excess > 0 else ZERO


def _check_bands(bands: Sequence[RateBand]) -> None:
    if not bands:
        raise ConfigurationError("Tiered rate needs at least one band")

    previous = ZERO
    for i, band in enumerate(bands):
        if band.rate < 0:
            raise ConfigurationError(f"Band {i} has a negative rate", {"index": i})
        if band.up_to is None:
            if i != len(bands) - 1:
                raise ConfigurationError("Only the last band may be open-ended", {"index": i})
            continue
        if band.up_to <= previous:
            raise ConfigurationError(
                "Band bounds must be strictly ascending",
                {"index": i, "upTo": str(band.up_to), "previous": str(previous)},
            )
        previous = band.up_to


def tiered_charge(
    measured: Any,
    bands: Sequence[RateBand],
    *,
    threshold: Any = ZERO,
    cap: Any = None,
) -> TieredCharge:
    """
    excess = max(0, measured - threshold), optionally capped at `cap`, then billed
    across the ordered bands: first band up to its bound at its rate, the next band
    up to its bound at its rate, and so on.

    Excess beyond the last closed band is not billed; that bound acts as a cap and
    is reported as such (wasCapped=True).
    """
    _check_bands(bands)

    measured_d = to_decimal(measured)
    threshold_d = to_decimal(threshold)
    raw_excess = excess_quantity(measured_d, threshold_d)

    limit: Optional[D] = to_decimal(cap) if cap is not None else None
    last_bound = bands[-1].up_to
    if last_bound is not None and (limit is None or last_bound < limit):
        limit = last_bound

    billable = raw_excess
    capped = False
    if limit is not None and raw_excess > limit:
        billable = limit
        capped = True

    charges = []
    lower = ZERO
    remaining = billable
    for band in bands:
        if remaining <= 0:
            break
        width = remaining if band.up_to is None else min(remaining, band.up_to - lower)
        charges.append(BandCharge(quantity=width, rate=band.rate, amount=width * band.rate))
        remaining -= width
        if band.up_to is not None:
            lower = band.up_to

    total = money(sum((c.amount for c in charges), ZERO))
    return TieredCharge(
        measured=measured_d,
        threshold=threshold_d,
        raw_excess=raw_excess,
        billable_excess=billable,
        capped=capped,
        bands=tuple(charges),
        amount=total,
    )
