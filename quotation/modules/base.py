from __future__ import annotations

from dataclasses import replace
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from ..calculators.money import money
from ..engine.context import (
    AddressRole,
    CostCategory,
    CostLine,
    CrossSellProposal,
    QuoteContext,
    Requirement,
    RiskContribution,
    Severity,
)
from ..errors import ModuleContractError


BOTH_ROLES: Tuple[AddressRole, ...] = (AddressRole.PICKUP, AddressRole.DELIVERY)


class Trigger(str, Enum):
    """
    How a module decides it applies.
    - UNCONDITIONAL: no predicate; internal data checks turn it into a no-op
    - INPUT: predicate over raw input fields only
    - STATE: predicate over values written by earlier-priority modules
             (the producers are listed in `dependencies`)
    """

    UNCONDITIONAL = "UNCONDITIONAL"
    INPUT = "INPUT"
    STATE = "STATE"


class QuoteModule:
    """
    Base class for every pricing / business-rule module.

    Modules are stateless and shared across concurrent runs: everything per-run
    lives in the QuoteContext. apply() returns a new context and may only append
    to the accumulator; the emission helpers below stamp the producing module id.
    """

    module_id: str = "base"
    description: str = ""
    priority: int = 0
    dependencies: Tuple[str, ...] = ()
    trigger: Trigger = Trigger.UNCONDITIONAL

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.module_id!r}, priority={self.priority})"

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return True

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        raise NotImplementedError

    def run(self, ctx: QuoteContext) -> QuoteContext:
        """apply() + audit trail entry. Called by the pipeline only when applicable."""
        out = self.apply(ctx)
        if not isinstance(out, QuoteContext):
            raise ModuleContractError(
                f"Module {self.module_id} returned {type(out).__name__}, expected QuoteContext",
                {"moduleId": self.module_id},
            )
        acc = out.accumulator
        if self.module_id in acc.activated_modules:
            return out
        return out.with_accumulator(
            replace(acc, activated_modules=acc.activated_modules + (self.module_id,))
        )

    # -----------------
    # emission helpers
    # -----------------

    @staticmethod
    def _update(ctx: QuoteContext, **changes: Any) -> QuoteContext:
        return ctx.with_accumulator(replace(ctx.accumulator, **changes))

    def add_cost(
        self,
        ctx: QuoteContext,
        category: CostCategory,
        label: str,
        amount: Any,
        **metadata: Any,
    ) -> QuoteContext:
        value = money(amount)
        if value < 0:
            raise ModuleContractError(
                f"Module {self.module_id} emitted a negative cost",
                {"moduleId": self.module_id, "amount": str(value), "label": label},
            )
        line = CostLine(
            module_id=self.module_id,
            category=category,
            label=label,
            amount=value,
            metadata=dict(metadata),
        )
        return self._update(ctx, costs=ctx.accumulator.costs + (line,))

    def add_risk(self, ctx: QuoteContext, amount: int, reason: str, **metadata: Any) -> QuoteContext:
        contribution = RiskContribution(
            module_id=self.module_id,
            amount=int(amount),
            reason=reason,
            metadata=dict(metadata),
        )
        return self._update(
            ctx, risk_contributions=ctx.accumulator.risk_contributions + (contribution,)
        )

    def add_requirement(
        self,
        ctx: QuoteContext,
        type_: str,
        severity: Severity,
        reason: str,
        **metadata: Any,
    ) -> QuoteContext:
        req = Requirement(
            type=type_,
            severity=severity,
            reason=reason,
            module_id=self.module_id,
            metadata=dict(metadata),
        )
        return self._update(ctx, requirements=ctx.accumulator.requirements + (req,))

    def add_proposal(
        self,
        ctx: QuoteContext,
        proposal_id: str,
        label: str,
        reason: str,
        benefit: str,
        price_impact: Any,
        *,
        optional: bool = True,
        based_on_requirement: Optional[str] = None,
        **metadata: Any,
    ) -> QuoteContext:
        proposal = CrossSellProposal(
            id=proposal_id,
            label=label,
            reason=reason,
            benefit=benefit,
            price_impact=money(price_impact),
            optional=optional,
            module_id=self.module_id,
            based_on_requirement=based_on_requirement,
            metadata=dict(metadata),
        )
        return self._update(
            ctx, cross_sell_proposals=ctx.accumulator.cross_sell_proposals + (proposal,)
        )

    def add_flags(self, ctx: QuoteContext, *tags: str) -> QuoteContext:
        flags = ctx.accumulator.operational_flags
        new = tuple(t for t in dict.fromkeys(tags) if t not in flags)
        if not new:
            return ctx
        return self._update(ctx, operational_flags=flags + new)

    def set_computed(self, ctx: QuoteContext, **fields: Any) -> QuoteContext:
        return self._update(ctx, computed=replace(ctx.computed, **fields))

    def add_notes(self, ctx: QuoteContext, **notes: Any) -> QuoteContext:
        return ctx.with_accumulator(ctx.accumulator.with_notes(**notes))


def iter_roles(ctx: QuoteContext, roles: Iterable[AddressRole] = BOTH_ROLES):
    """(role, AddressInfo) pairs, pickup first."""
    for role in roles:
        yield role, ctx.input.address(role)


def meta_floor_map(values: Dict[AddressRole, Any]) -> Dict[str, Any]:
    return {role.label: value for role, value in values.items()}


def graduated_severity(
    value: Any,
    ladder: Iterable[Tuple[Any, Severity]],
    default: Severity = Severity.LOW,
) -> Severity:
    """
    Highest severity whose threshold `value` reaches.
    ladder: (threshold, severity) pairs, ascending.
    """
    result = default
    for threshold, severity in ladder:
        if value >= threshold:
            result = severity
    return result
