from decimal import Decimal

import pytest

from quotation.engine.quote_engine import QuoteEngine, QuoteResult
from quotation.errors import InputValidationError
from quotation.schemas.quote_input_v1 import QuoteRequestV1
from quotation.settings import Settings

D = Decimal

REQUEST = {
    "region": "IDF",
    "pickup": {"floor": 3, "has_elevator": False},
    "delivery": {"floor": 1, "has_elevator": True, "elevator_size": "LARGE"},
    "move_date": "2025-03-28",
    "move_hour": 10,
    "estimated_volume": "35",
    "volume_confidence": "LOW",
    "distance_km": "120",
    "packing": True,
}


@pytest.fixture
def engine():
    return QuoteEngine.from_settings(Settings())


def test_calculate_end_to_end(engine):
    result = engine.calculate(REQUEST, quote_id="q-42")

    assert isinstance(result, QuoteResult)
    acc = result.context.accumulator
    assert acc.activated_modules[0] == "volume-estimation"
    assert acc.costs_by("end-of-month")
    assert acc.costs_by("packing-cost")
    assert acc.has_flag("LONG_DISTANCE")

    summary = result.summary
    assert summary.quote_id == "q-42"
    assert summary.costs_total == acc.costs_total()
    assert summary.base_price > summary.costs_total


def test_same_request_same_result(engine):
    first = engine.calculate(REQUEST)
    second = engine.calculate(QuoteRequestV1.model_validate(REQUEST))
    assert first == second


def test_overrides_act_as_scenario(engine):
    base = engine.calculate(REQUEST)
    eco = engine.calculate(REQUEST, overrides={"scenario_id": "ECO"})

    assert base.context.computed.crew_size == 8
    assert eco.context.computed.crew_size == 2
    assert eco.summary.costs_total < base.summary.costs_total


def test_disabled_modules_do_not_run(engine):
    result = engine.calculate(REQUEST, disabled=["end-of-month", "packing-cost"])
    ids = result.context.accumulator.activated_modules
    assert "end-of-month" not in ids
    assert "packing-cost" not in ids


def test_invalid_request_is_rejected(engine):
    with pytest.raises(InputValidationError):
        engine.calculate({**REQUEST, "unknown_field": 1})
    with pytest.raises(InputValidationError):
        engine.calculate({**REQUEST, "estimated_volume": "-3"})


def test_contradictory_lift_decision_is_rejected(engine):
    with pytest.raises(InputValidationError):
        engine.calculate({**REQUEST, "furniture_lift_accepted": True, "furniture_lift_refused": True})


def test_unknown_override_is_rejected(engine):
    with pytest.raises(InputValidationError):
        engine.calculate(REQUEST, overrides={"not_a_field": True})


def test_request_maps_to_input():
    qin = QuoteRequestV1.model_validate(REQUEST).to_input()
    assert qin.pickup.floor == 3
    assert qin.pickup.without_elevator is True
    assert qin.delivery.elevator_size.value == "LARGE"
    assert qin.estimated_volume == D("35")
    assert qin.move_date.day == 28


def test_override_cannot_set_contradictory_lift_decision(engine):
    with pytest.raises(InputValidationError):
        engine.calculate(
            {**REQUEST, "furniture_lift_refused": True},
            overrides={"furniture_lift_accepted": True},
        )


def test_enabled_list_keeps_offer_billing(engine):
    result = engine.calculate(REQUEST, enabled=["packing-cost"])
    offers = {o.id: o.status for o in result.summary.offers}
    assert offers["PACKING"] == "BILLED"
