import sys
from dataclasses import FrozenInstanceError, replace
from decimal import Decimal

import pytest
from loguru import logger

from quotation.engine.context import (
    Accumulator,
    AddressInfo,
    AddressRole,
    CostCategory,
    CostLine,
    ElevatorSize,
    Severity,
)
from quotation.logging_config import LoggingContext, get_context_info, get_logger, setup_logging
from quotation.modules.base import graduated_severity


def _line(module_id, amount="1.00"):
    return CostLine(module_id=module_id, category=CostCategory.LABOR, label=module_id, amount=Decimal(amount))


@pytest.mark.parametrize(
    "address, inadequate",
    [
        (AddressInfo(has_elevator=False), True),
        (AddressInfo(has_elevator=True, elevator_size=ElevatorSize.SMALL), True),
        (AddressInfo(has_elevator=True, elevator_size=ElevatorSize.STANDARD), False),
        (AddressInfo(has_elevator=True), False),
        (AddressInfo(has_elevator=None), False),
    ],
)
def test_elevator_inadequate(address, inadequate):
    assert address.elevator_inadequate is inadequate


def test_address_by_role(sample_qin):
    assert sample_qin.address(AddressRole.PICKUP) is sample_qin.pickup
    assert sample_qin.address(AddressRole.DELIVERY) is sample_qin.delivery
    assert AddressRole.DELIVERY.label == "delivery"


def test_context_is_frozen(ctx):
    with pytest.raises(FrozenInstanceError):
        ctx.quote_id = "other"


def test_extension_check():
    before = Accumulator(costs=(_line("a"),))
    assert replace(before, costs=before.costs + (_line("b"),)).is_extension_of(before)
    assert not replace(before, costs=()).is_extension_of(before)
    assert not replace(before, costs=(_line("b"), _line("a"))).is_extension_of(before)


def test_notes_are_copied_not_mutated():
    acc = Accumulator()
    with_note = acc.with_notes(x=1)
    assert dict(acc.notes) == {}
    assert dict(with_note.notes) == {"x": 1}
    with pytest.raises(TypeError):
        with_note.notes["y"] = 2


def test_severity_ladder():
    ladder = ((3, Severity.HIGH), (5, Severity.CRITICAL))
    assert graduated_severity(1, ladder, default=Severity.MEDIUM) is Severity.MEDIUM
    assert graduated_severity(3, ladder, default=Severity.MEDIUM) is Severity.HIGH
    assert graduated_severity(7, ladder, default=Severity.MEDIUM) is Severity.CRITICAL
    assert Severity.CRITICAL.dismissible is False
    assert Severity.HIGH.rank < Severity.CRITICAL.rank


def test_logging_context_resets():
    with LoggingContext(quote_id="q1", scenario_id="ECO"):
        assert get_context_info() == {"quote_id": "q1", "scenario_id": "ECO"}
    assert get_context_info() == {"quote_id": None, "scenario_id": None}


@pytest.mark.parametrize("as_json", [False, True])
def test_setup_logging_emits_context_ids(capsys, as_json):
    setup_logging("DEBUG", json=as_json)
    try:
        with LoggingContext(quote_id="q-log", scenario_id="PREMIUM"):
            get_logger("tests").info("hello")
        out = capsys.readouterr().out
        assert "hello" in out
        assert "q-log" in out
        assert "PREMIUM" in out
    finally:
        logger.remove()
        logger.add(sys.stderr)
