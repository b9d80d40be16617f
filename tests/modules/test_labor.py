from decimal import Decimal

import pytest

from quotation.engine.context import AddressInfo
from quotation.modules.labor import (
    CrewFlexibilityModule,
    LaborAccessPenaltyModule,
    LaborBaseModule,
    VehicleSelectionModule,
    WorkersCalculationModule,
)
from quotation.modules.volume import VolumeEstimationModule

D = Decimal

SIZING = (VolumeEstimationModule(), VehicleSelectionModule(), WorkersCalculationModule(), LaborBaseModule())


def test_crew_and_labor_from_volume(make_ctx, run):
    # 20 m3 x 1.10 = 22 m3 -> round(22 / 5) = 4 movers
    out = run(make_ctx(estimated_volume=D("20")), *SIZING)

    assert out.computed.crew_size == 4
    labor = out.accumulator.costs_by("labor-base")[0]
    # 4 x 30 x 7
    assert labor.amount == D("840.00")
    assert labor.metadata["workers"] == 4


@pytest.mark.parametrize(
    "volume, crew",
    [("4", 1), ("10", 2), ("11.5", 3), ("30", 7)],
)
def test_crew_rounds_half_up(make_ctx, run, volume, crew):
    # FORM / MEDIUM margin 1.10 applies first
    out = run(make_ctx(estimated_volume=D(volume)), VolumeEstimationModule(), WorkersCalculationModule())
    assert out.computed.crew_size == crew


def test_eco_scenario_caps_crew(make_ctx, run):
    out = run(make_ctx(estimated_volume=D("20"), scenario_id="eco"), *SIZING)
    assert out.computed.crew_size == 2
    assert out.accumulator.notes["workers_calculation"]["scenarioRule"] == "eco_cap"


def test_standard_scenario_halves_crew(make_ctx, run):
    out = run(make_ctx(estimated_volume=D("20"), scenario_id="STANDARD"), *SIZING)
    assert out.computed.crew_size == 2
    assert out.accumulator.notes["workers_calculation"]["baseWorkers"] == 4


def test_labor_without_volume_or_crew_is_a_noop(make_ctx, run):
    out = run(make_ctx(estimated_volume=None), *SIZING)

    assert out.computed.crew_size is None
    assert out.accumulator.costs == ()
    # unconditional modules still ran, they just had nothing to price
    assert "labor-base" in out.accumulator.activated_modules


def test_single_vehicle_best_fit(make_ctx, run):
    out = run(make_ctx(estimated_volume=D("10")), VolumeEstimationModule(), VehicleSelectionModule())
    # 11 m3
    assert out.computed.vehicle_types == ("CAMION_12M3",)
    assert out.accumulator.costs_by("vehicle-selection")[0].amount == D("80.00")


def test_overflow_goes_to_second_vehicle(make_ctx, run):
    out = run(make_ctx(estimated_volume=D("40")), VolumeEstimationModule(), VehicleSelectionModule())
    # 44 m3 -> 30 m3 + 14 m3
    assert out.computed.vehicle_types == ("CAMION_30M3", "CAMION_20M3")
    assert out.computed.vehicle_count == 2
    assert out.accumulator.costs_by("vehicle-selection")[0].amount == D("600.00")


def test_access_penalties_per_address(make_ctx):
    ctx = make_ctx(
        pickup=AddressInfo(floor=4, has_elevator=False),
        delivery=AddressInfo(floor=0, carry_distance_m=D("45")),
    )
    module = LaborAccessPenaltyModule()
    assert module.is_applicable(ctx)

    out = module.run(ctx)
    lines = out.accumulator.costs_by("labor-access-penalty")
    assert [(c.metadata["role"], c.amount) for c in lines] == [
        ("PICKUP", D("100.00")),
        ("DELIVERY", D("30.00")),
    ]


def test_no_penalty_below_thresholds(make_ctx):
    ctx = make_ctx(
        pickup=AddressInfo(floor=3, has_elevator=False),
        delivery=AddressInfo(floor=0, carry_distance_m=D("30")),
    )
    assert LaborAccessPenaltyModule().is_applicable(ctx) is False


def test_crew_flexibility(make_ctx):
    module = CrewFlexibilityModule()
    assert module.is_applicable(make_ctx()) is False

    out = module.run(make_ctx(crew_flexibility=True))
    assert out.accumulator.costs[0].amount == D("500.00")
