"""
Furniture lift (monte-meubles): detection -> customer decision -> billing.

- furniture-lift-recommendation: raises LIFT_RECOMMENDED with a severity from the
  floor ladder and the matching MONTE_MEUBLES proposal. Never bills.
- furniture-lift-refusal-impact: records what an explicit refusal means.
- furniture-lift-cost: bills when the customer accepted, a scenario forced it, or the
  requirement is CRITICAL. CRITICAL is not dismissible: a refusal is overridden.
- manual-handling-risk-cost: an honoured refusal moves the risk onto manual handling.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Dict, Optional

from ..engine.context import AddressRole, CostCategory, QuoteContext, Requirement, Severity
from ..logging_config import get_logger
from .base import QuoteModule, Trigger, graduated_severity, iter_roles, meta_floor_map

D = Decimal

logger = get_logger(__name__)

REQUIREMENT_TYPE = "LIFT_RECOMMENDED"
PROPOSAL_ID = "MONTE_MEUBLES"

FLAG_LIFT_MANDATORY = "FURNITURE_LIFT_MANDATORY"
FLAG_REFUSAL_OVERRIDDEN = "LIFT_REFUSAL_OVERRIDDEN"
FLAG_REDUCED_COVERAGE = "REDUCED_INSURANCE_COVERAGE"


def floors_needing_lift(ctx: QuoteContext) -> Dict[AddressRole, int]:
    """Roles on an upper floor whose elevator is missing or too small for furniture."""
    return {
        role: addr.floor
        for role, addr in iter_roles(ctx)
        if addr.floor > 0 and addr.elevator_inadequate
    }


def lift_severity(ctx: QuoteContext, floor: int) -> Severity:
    high = ctx.config.integer("furniture_lift.floor_thresholds.high")
    critical = ctx.config.integer("furniture_lift.floor_thresholds.critical")
    return graduated_severity(
        floor,
        ((high, Severity.HIGH), (critical, Severity.CRITICAL)),
        default=Severity.MEDIUM,
    )


def _lift_requirement(ctx: QuoteContext) -> Optional[Requirement]:
    return ctx.accumulator.requirement(REQUIREMENT_TYPE)


class FurnitureLiftRecommendationModule(QuoteModule):
    module_id = "furniture-lift-recommendation"
    description = "Detects floors that need a furniture lift"
    priority = 50
    trigger = Trigger.INPUT

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return bool(floors_needing_lift(ctx))

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        floors = floors_needing_lift(ctx)
        max_floor = max(floors.values())
        severity = lift_severity(ctx, max_floor)

        cfg = ctx.config
        estimated = cfg.decimal("furniture_lift.estimated_costs.lift")
        if severity is Severity.CRITICAL:
            reason = f"Floor {max_floor} without a suitable elevator: a furniture lift is mandatory"
        else:
            reason = f"Floor {max_floor} without a suitable elevator: a furniture lift is recommended"

        ctx = self.add_requirement(
            ctx,
            REQUIREMENT_TYPE,
            severity,
            reason,
            floors=meta_floor_map(floors),
            maxFloor=max_floor,
        )
        ctx = self.add_proposal(
            ctx,
            PROPOSAL_ID,
            "Furniture lift",
            reason,
            "Safer handling of bulky furniture, no carrying through the staircase",
            estimated,
            optional=severity.dismissible,
            based_on_requirement=REQUIREMENT_TYPE,
            severity=severity.value,
            riskSurchargeIfRefused=str(cfg.decimal("furniture_lift.estimated_costs.risk_surcharge")),
        )
        if severity is Severity.CRITICAL:
            ctx = self.add_flags(ctx, FLAG_LIFT_MANDATORY)
        return ctx


class FurnitureLiftRefusalImpactModule(QuoteModule):
    module_id = "furniture-lift-refusal-impact"
    description = "Consequences of refusing the furniture lift"
    priority = 52
    dependencies = ("furniture-lift-recommendation",)
    trigger = Trigger.STATE

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return ctx.input.furniture_lift_refused and _lift_requirement(ctx) is not None

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        req = _lift_requirement(ctx)

        if not req.severity.dismissible:
            logger.info("furniture lift refusal overridden: requirement is {}", req.severity.value)
            ctx = self.add_notes(
                ctx,
                furniture_lift_refusal={"refusal_overridden": True, "severity": req.severity.value},
            )
            return self.add_flags(ctx, FLAG_REFUSAL_OVERRIDDEN)

        ctx = self.add_risk(
            ctx,
            ctx.config.integer("furniture_lift.refusal_risk_contribution"),
            "Furniture lift refused by the customer",
            severity=req.severity.value,
        )
        ctx = self.add_notes(
            ctx,
            furniture_lift_refusal={
                "refusal_overridden": False,
                "severity": req.severity.value,
                "insurance_coverage": "reduced",
            },
        )
        return self.add_flags(ctx, FLAG_REDUCED_COVERAGE)


class FurnitureLiftCostModule(QuoteModule):
    module_id = "furniture-lift-cost"
    description = "Bills the furniture lift"
    priority = 53
    dependencies = ("furniture-lift-recommendation",)
    trigger = Trigger.STATE

    def is_applicable(self, ctx: QuoteContext) -> bool:
        req = _lift_requirement(ctx)
        # the proposal may predate the current input: re-check the floors
        if req is None or not floors_needing_lift(ctx):
            return False
        qin = ctx.input
        if not req.severity.dismissible or qin.force_furniture_lift:
            return True
        return qin.furniture_lift_accepted and not qin.furniture_lift_refused

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        qin = ctx.input
        req = _lift_requirement(ctx)
        critical = not req.severity.dismissible
        floors = floors_needing_lift(ctx)

        if critical:
            consent = "CRITICAL"
        elif qin.force_furniture_lift:
            consent = "SCENARIO"
        else:
            consent = "OPT_IN"

        cfg = ctx.config
        amount = cfg.decimal("furniture_lift.base_cost")
        double = len(floors) > 1
        if double:
            amount += cfg.decimal("furniture_lift.double_lift_surcharge")

        return self.add_cost(
            ctx,
            CostCategory.FURNITURE_LIFT,
            "Furniture lift" + (" (pickup and delivery)" if double else ""),
            amount,
            proposal_id=PROPOSAL_ID,
            severity=req.severity.value,
            forced=consent != "OPT_IN",
            consent=consent,
            refusalOverridden=critical and qin.furniture_lift_refused,
            floors=meta_floor_map(floors),
        )


class ManualHandlingRiskCostModule(QuoteModule):
    module_id = "manual-handling-risk-cost"
    description = "Handling risk when a dismissible lift was refused"
    priority = 55
    dependencies = ("furniture-lift-recommendation", "furniture-lift-cost")
    trigger = Trigger.STATE

    def is_applicable(self, ctx: QuoteContext) -> bool:
        req = _lift_requirement(ctx)
        if req is None or not req.severity.dismissible:
            return False
        if ctx.accumulator.costs_by("furniture-lift-cost"):
            return False
        return ctx.input.furniture_lift_refused

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        floors = floors_needing_lift(ctx)
        if not floors:
            return ctx
        max_floor = max(floors.values())

        cfg = ctx.config
        base = cfg.decimal("furniture_lift.manual_handling_risk.base_cost")
        per_floor = cfg.decimal("furniture_lift.manual_handling_risk.cost_per_floor")

        return self.add_cost(
            ctx,
            CostCategory.RISK,
            "Manual handling without furniture lift",
            base + per_floor * max_floor,
            maxFloor=max_floor,
            baseCost=str(base),
            costPerFloor=str(per_floor),
        )
