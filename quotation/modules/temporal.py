"""
Calendar surcharges. Each one is a percentage of the cost lines already present
when the module runs, so its priority decides what it applies to.
"""
from __future__ import annotations

from datetime import date

from ..calculators.surcharge import percentage_surcharge
from ..engine.context import CostCategory, QuoteContext
from .base import QuoteModule, Trigger


class CalendarSurchargeModule(QuoteModule):
    trigger = Trigger.INPUT
    config_section = ""
    label = ""

    def fires_on(self, ctx: QuoteContext, day: date) -> bool:
        raise NotImplementedError

    def is_applicable(self, ctx: QuoteContext) -> bool:
        day = ctx.input.move_date
        return day is not None and self.fires_on(ctx, day)

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        cfg = ctx.config
        amount, meta = percentage_surcharge(
            (c.amount for c in ctx.accumulator.costs),
            cfg.decimal(f"{self.config_section}.surcharge_rate"),
        )
        ctx = self.add_cost(
            ctx,
            CostCategory.TEMPORAL,
            self.label,
            amount,
            moveDate=ctx.input.move_date.isoformat(),
            **meta,
        )
        return self.add_risk(
            ctx,
            cfg.integer(f"{self.config_section}.risk_contribution"),
            f"{self.label}: high demand period",
        )


class EndOfMonthModule(CalendarSurchargeModule):
    module_id = "end-of-month"
    description = "Late-in-month booking surcharge"
    priority = 80
    config_section = "temporal.end_of_month"
    label = "End-of-month surcharge"

    def fires_on(self, ctx: QuoteContext, day: date) -> bool:
        return day.day >= ctx.config.integer("temporal.end_of_month.threshold_day")


class WeekendModule(CalendarSurchargeModule):
    module_id = "weekend"
    description = "Saturday / Sunday surcharge"
    priority = 81
    config_section = "temporal.weekend"
    label = "Weekend surcharge"

    def fires_on(self, ctx: QuoteContext, day: date) -> bool:
        return day.weekday() >= 5
