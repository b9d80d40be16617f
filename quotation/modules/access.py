from __future__ import annotations

from decimal import Decimal

from ..engine.context import AddressRole, CostCategory, QuoteContext
from .base import QuoteModule, Trigger, iter_roles

D = Decimal

FLAG_PARKING_AUTHORIZATION = "PARKING_AUTHORIZATION_REQUIRED"


class NoElevatorModule(QuoteModule):
    """Stairs-only access at one address: risk contribution, no cost (labor-access-penalty prices it)."""

    priority_by_role = {AddressRole.PICKUP: 40, AddressRole.DELIVERY: 41}
    trigger = Trigger.INPUT

    def __init__(self, role: AddressRole):
        self.role = role
        self.module_id = f"no-elevator-{role.label}"
        self.description = f"No elevator at {role.label} address"
        self.priority = self.priority_by_role[role]

    def is_applicable(self, ctx: QuoteContext) -> bool:
        addr = ctx.input.address(self.role)
        return addr.floor > 0 and addr.without_elevator

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        floor = ctx.input.address(self.role).floor
        score = ctx.config.integer("access.no_elevator_risk_contribution")
        ctx = self.add_risk(
            ctx,
            score,
            f"No elevator at {self.role.label} (floor {floor})",
            role=self.role.value,
            floor=floor,
        )
        return self.add_flags(ctx, f"STAIRS_{self.role.value}")


class PublicDomainOccupationModule(QuoteModule):
    module_id = "public-domain-occupation"
    description = "Parking authorisation on the public domain"
    priority = 77
    trigger = Trigger.INPUT

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return any(addr.needs_parking_authorization for _, addr in iter_roles(ctx))

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        cfg = ctx.config
        roles = [role for role, addr in iter_roles(ctx) if addr.needs_parking_authorization]

        cost = cfg.decimal("administrative.public_domain_authorization_cost")
        multiplier = D("1")
        if len(roles) > 1:
            multiplier = cfg.decimal("administrative.multiple_locations_multiplier")

        ctx = self.add_cost(
            ctx,
            CostCategory.ADMINISTRATIVE,
            "Parking authorisation",
            cost * multiplier,
            roles=[r.value for r in roles],
            unitCost=str(cost),
            multiplier=str(multiplier),
        )
        ctx = self.add_risk(
            ctx,
            cfg.integer("risk.public_domain_risk_contribution"),
            "Public domain occupation depends on an authorisation",
            roles=[r.value for r in roles],
        )
        return self.add_flags(ctx, FLAG_PARKING_AUTHORIZATION)
