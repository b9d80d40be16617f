from __future__ import annotations

from decimal import Decimal

from ..engine.context import CostCategory, QuoteContext, Severity
from .base import QuoteModule, Trigger

D = Decimal

HANDLING_REQUIREMENT = "SPECIAL_HANDLING_REQUIRED"
DECLARED_VALUE_REQUIREMENT = "HIGH_DECLARED_VALUE"

_HIGH_VALUE_ITEMS = ("piano", "safe", "artwork")


class InsurancePremiumModule(QuoteModule):
    module_id = "insurance-premium"
    description = "Declared-value insurance premium"
    priority = 71
    trigger = Trigger.INPUT

    def is_applicable(self, ctx: QuoteContext) -> bool:
        qin = ctx.input
        return qin.declared_value_insurance and bool(qin.declared_value) and qin.declared_value > 0

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        cfg = ctx.config
        rate = cfg.decimal("insurance.rate")
        low = cfg.decimal("insurance.min_premium")
        high = cfg.decimal("insurance.max_premium")

        raw = ctx.input.declared_value * rate
        premium = min(max(raw, low), high)

        return self.add_cost(
            ctx,
            CostCategory.INSURANCE,
            "Declared-value insurance",
            premium,
            declaredValue=str(ctx.input.declared_value),
            rate=str(rate),
            rawPremium=str(raw),
            bounded=premium != raw,
        )


class HighValueItemHandlingModule(QuoteModule):
    """
    Piano, safe, artwork: a handling cost per item and a special-handling requirement
    (CRITICAL when a safe is involved). A declared value above the threshold raises a
    disclosure requirement on its own.
    """

    module_id = "high-value-item-handling"
    description = "Handling of high-value items"
    priority = 73
    trigger = Trigger.INPUT

    @staticmethod
    def _items(ctx: QuoteContext):
        return [name for name in _HIGH_VALUE_ITEMS if getattr(ctx.input, name)]

    @staticmethod
    def _high_declared_value(ctx: QuoteContext) -> bool:
        value = ctx.input.declared_value
        threshold = ctx.config.decimal("high_value_items.high_declared_value_threshold")
        return value is not None and value > threshold

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return bool(self._items(ctx)) or self._high_declared_value(ctx)

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        cfg = ctx.config
        items = self._items(ctx)

        for name in items:
            ctx = self.add_cost(
                ctx,
                CostCategory.RISK,
                f"High-value item handling ({name})",
                cfg.decimal(f"high_value_items.handling_costs.{name}"),
                item=name,
            )

        if items:
            severity = Severity.CRITICAL if "safe" in items else Severity.HIGH
            ctx = self.add_requirement(
                ctx,
                HANDLING_REQUIREMENT,
                severity,
                "Items needing special equipment and handling: " + ", ".join(items),
                items=items,
            )
            ctx = self.add_risk(
                ctx,
                cfg.integer("high_value_items.risk_contribution"),
                "High-value items on board",
                items=items,
            )

        if self._high_declared_value(ctx):
            ctx = self.add_requirement(
                ctx,
                DECLARED_VALUE_REQUIREMENT,
                Severity.MEDIUM,
                "Declared value above the standard coverage",
                declaredValue=str(ctx.input.declared_value),
                threshold=str(cfg.decimal("high_value_items.high_declared_value_threshold")),
                insured=ctx.input.declared_value_insurance,
            )
        return ctx
