from decimal import Decimal

import pytest

from quotation.calculators.money import money, round_half_up
from quotation.calculators.surcharge import percentage_surcharge
from quotation.calculators.tiered_rate import RateBand, tiered_charge
from quotation.errors import ConfigurationError

D = Decimal

FUEL_BANDS = (RateBand(D("200"), D("0.15")), RateBand(D("1000"), D("0.20")))


def test_below_threshold_is_free():
    charge = tiered_charge(40, FUEL_BANDS, threshold=50, cap=1000)
    assert charge.amount == D("0.00")
    assert charge.raw_excess == D("0")
    assert charge.capped is False
    assert charge.bands == ()


def test_first_band_only_is_linear():
    # 100 km, threshold 50 -> 50 km x 0.15
    charge = tiered_charge(100, FUEL_BANDS, threshold=50, cap=1000)
    assert charge.amount == D("7.50")
    assert charge.billable_excess == D("50")
    assert len(charge.bands) == 1


def test_second_band_blends_rates():
    # 500 km -> 450 km excess: 200 x 0.15 + 250 x 0.20
    charge = tiered_charge(500, FUEL_BANDS, threshold=50, cap=1000)
    assert charge.amount == D("80.00")
    assert [b.quantity for b in charge.bands] == [D("200"), D("250")]


def test_cap_gives_flat_ceiling():
    # 2000 km -> 1950 km excess, capped at 1000: 200 x 0.15 + 800 x 0.20
    charge = tiered_charge(2000, FUEL_BANDS, threshold=50, cap=1000)
    assert charge.amount == D("190.00")
    assert charge.raw_excess == D("1950")
    assert charge.billable_excess == D("1000")
    assert charge.capped is True

    meta = charge.meta()
    assert meta["wasCapped"] is True
    assert meta["rawExcess"] == "1950"

    further = tiered_charge(5000, FUEL_BANDS, threshold=50, cap=1000)
    assert further.amount == charge.amount


def test_last_closed_band_acts_as_cap():
    bands = (RateBand(D("10"), D("1")),)
    charge = tiered_charge(25, bands)
    assert charge.amount == D("10.00")
    assert charge.capped is True


def test_open_ended_band_has_no_ceiling():
    bands = (RateBand(None, D("2")),)
    charge = tiered_charge(45, bands, threshold=30)
    assert charge.amount == D("30.00")
    assert charge.capped is False


@pytest.mark.parametrize(
    "bands",
    [
        (),
        (RateBand(None, D("1")), RateBand(D("10"), D("1"))),
        (RateBand(D("10"), D("1")), RateBand(D("5"), D("1"))),
        (RateBand(D("10"), D("-1")),),
    ],
)
def test_invalid_bands_raise(bands):
    with pytest.raises(ConfigurationError):
        tiered_charge(10, bands)


def test_money_rounds_half_up():
    assert money("2.345") == D("2.35")
    assert money(0.1 + 0.2) == D("0.30")
    assert round_half_up("2.5") == 3
    assert round_half_up("2.4") == 2


def test_percentage_surcharge_over_lines():
    amount, meta = percentage_surcharge([D("100.00"), D("33.33")], "0.05")
    assert amount == D("6.67")
    assert meta == {"base": "133.33", "rate": "0.05"}
