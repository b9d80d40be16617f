from decimal import Decimal

import pytest

from quotation.engine.context import AddressInfo, AddressRole, Severity
from quotation.modules.access import FLAG_PARKING_AUTHORIZATION, NoElevatorModule, PublicDomainOccupationModule
from quotation.modules.risk import (
    DECLARED_VALUE_REQUIREMENT,
    HANDLING_REQUIREMENT,
    HighValueItemHandlingModule,
    InsurancePremiumModule,
)

D = Decimal


@pytest.mark.parametrize(
    "value, premium",
    [("3000", "50.00"), ("20000", "200.00"), ("900000", "5000.00")],
)
def test_insurance_premium_is_bounded(make_ctx, value, premium):
    ctx = make_ctx(declared_value=D(value), declared_value_insurance=True)
    out = InsurancePremiumModule().run(ctx)
    assert out.accumulator.costs[0].amount == D(premium)


def test_insurance_needs_opt_in(make_ctx):
    assert InsurancePremiumModule().is_applicable(make_ctx(declared_value=D("20000"))) is False


def test_safe_is_critical(make_ctx):
    out = HighValueItemHandlingModule().run(make_ctx(safe=True, piano=True))

    amounts = {c.metadata["item"]: c.amount for c in out.accumulator.costs}
    assert amounts == {"piano": D("150.00"), "safe": D("200.00")}
    assert out.accumulator.requirement(HANDLING_REQUIREMENT).severity is Severity.CRITICAL
    assert [r.amount for r in out.accumulator.risk_contributions] == [15]


def test_artwork_is_high(make_ctx):
    out = HighValueItemHandlingModule().run(make_ctx(artwork=True))
    assert out.accumulator.requirement(HANDLING_REQUIREMENT).severity is Severity.HIGH


def test_high_declared_value_alone(make_ctx):
    module = HighValueItemHandlingModule()
    assert module.is_applicable(make_ctx(declared_value=D("50000"))) is False

    out = module.run(make_ctx(declared_value=D("80000")))
    assert out.accumulator.costs == ()
    assert out.accumulator.requirement(DECLARED_VALUE_REQUIREMENT).severity is Severity.MEDIUM


def test_no_elevator_per_role(make_ctx):
    pickup_module = NoElevatorModule(AddressRole.PICKUP)
    delivery_module = NoElevatorModule(AddressRole.DELIVERY)
    assert (pickup_module.module_id, pickup_module.priority) == ("no-elevator-pickup", 40)
    assert (delivery_module.module_id, delivery_module.priority) == ("no-elevator-delivery", 41)

    ctx = make_ctx(delivery=AddressInfo(floor=2, has_elevator=False))
    assert pickup_module.is_applicable(ctx) is False
    assert delivery_module.is_applicable(ctx) is True

    out = delivery_module.run(ctx)
    risk = out.accumulator.risk_contributions[0]
    assert risk.amount == 15
    assert risk.metadata["role"] == "DELIVERY"
    assert out.accumulator.costs == ()


def test_unknown_elevator_is_not_flagged(make_ctx):
    ctx = make_ctx(pickup=AddressInfo(floor=3, has_elevator=None))
    assert NoElevatorModule(AddressRole.PICKUP).is_applicable(ctx) is False


def test_public_domain_both_addresses(make_ctx):
    ctx = make_ctx(
        pickup=AddressInfo(needs_parking_authorization=True),
        delivery=AddressInfo(needs_parking_authorization=True),
    )
    out = PublicDomainOccupationModule().run(ctx)

    # 50 x 1.5
    assert out.accumulator.costs[0].amount == D("75.00")
    assert out.accumulator.costs[0].metadata["roles"] == ("PICKUP", "DELIVERY")
    assert [r.amount for r in out.accumulator.risk_contributions] == [5]
    assert out.accumulator.has_flag(FLAG_PARKING_AUTHORIZATION)


def test_public_domain_single_address(make_ctx):
    out = PublicDomainOccupationModule().run(make_ctx(pickup=AddressInfo(needs_parking_authorization=True)))
    assert out.accumulator.costs[0].amount == D("50.00")
