from __future__ import annotations

from decimal import Decimal

from ..calculators.money import ZERO
from ..calculators.tiered_rate import tiered_charge
from ..engine.context import CostCategory, QuoteContext
from ..logging_config import get_logger
from .base import QuoteModule, Trigger

D = Decimal

logger = get_logger(__name__)

FLAG_LONG_DISTANCE = "LONG_DISTANCE"


class DistanceModule(QuoteModule):
    """Hands the upstream distance to later modules. Never estimates one itself."""

    module_id = "distance-calculation"
    description = "Distance from the upstream estimator"
    priority = 30

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        km = ctx.input.distance_km
        if km is None:
            logger.debug("distance-calculation: no upstream distance")
            return ctx

        max_km = ctx.config.decimal("distance.max_distance_km")
        clamped = km > max_km
        distance = max_km if clamped else max(km, ZERO)

        ctx = self.set_computed(ctx, distance_km=distance)
        if clamped:
            ctx = self.add_notes(ctx, distance_clamped={"input": str(km), "max": str(max_km)})
        return ctx


class LongDistanceThresholdModule(QuoteModule):
    module_id = "long-distance-threshold"
    description = "Flags jobs beyond the long-distance threshold"
    priority = 31
    dependencies = ("distance-calculation",)
    trigger = Trigger.STATE

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return ctx.computed.distance_km is not None

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        threshold = ctx.config.decimal("distance.long_distance_threshold_km")
        is_long = ctx.computed.distance_km > threshold

        ctx = self.set_computed(ctx, is_long_distance=is_long)
        if is_long:
            ctx = self.add_flags(ctx, FLAG_LONG_DISTANCE)
        return ctx


class FuelCostModule(QuoteModule):
    module_id = "fuel-cost"
    description = "Fuel for the full distance"
    priority = 33
    dependencies = ("distance-calculation",)
    trigger = Trigger.STATE

    def is_applicable(self, ctx: QuoteContext) -> bool:
        km = ctx.computed.distance_km
        return km is not None and km > 0

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        km = ctx.computed.distance_km
        consumption = ctx.config.decimal("fuel.consumption_l_per_100km")
        price = ctx.config.decimal("fuel.price_per_liter")

        liters = km * consumption / D("100")
        return self.add_cost(
            ctx,
            CostCategory.TRANSPORT,
            "Fuel",
            liters * price,
            distanceKm=str(km),
            liters=str(liters.quantize(D("0.01"))),
            pricePerLiter=str(price),
        )


class HighMileageFuelAdjustmentModule(QuoteModule):
    """
    Long-distance exploitation surcharge (wear, vehicle unavailability) over the
    distance beyond the long-distance threshold, billed on progressive bands and
    capped. Fuel itself is billed by fuel-cost.
    """

    module_id = "high-mileage-fuel-adjustment"
    description = "Progressive long-distance surcharge"
    priority = 34
    dependencies = ("long-distance-threshold",)
    trigger = Trigger.STATE

    def is_applicable(self, ctx: QuoteContext) -> bool:
        if ctx.computed.is_long_distance is not True:
            return False
        threshold = ctx.config.decimal("distance.long_distance_threshold_km")
        return ctx.computed.distance_km > threshold

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        cfg = ctx.config
        charge = tiered_charge(
            ctx.computed.distance_km,
            cfg.bands("fuel.long_distance_surcharge.bands"),
            threshold=cfg.decimal("distance.long_distance_threshold_km"),
            cap=cfg.optional_decimal("fuel.long_distance_surcharge.max_excess_km"),
        )
        if charge.capped:
            logger.debug(
                "high-mileage-fuel-adjustment: excess {} km capped at {} km",
                charge.raw_excess,
                charge.billable_excess,
            )

        return self.add_cost(
            ctx,
            CostCategory.TRANSPORT,
            "Long-distance fuel adjustment",
            charge.amount,
            **charge.meta(),
        )


class TollCostModule(QuoteModule):
    module_id = "toll-cost"
    description = "Motorway tolls on long-distance jobs"
    priority = 35
    dependencies = ("long-distance-threshold",)
    trigger = Trigger.STATE

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return ctx.computed.is_long_distance is True

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        km = ctx.computed.distance_km
        share = ctx.config.decimal("tolls.highway_share")
        rate = ctx.config.decimal("tolls.cost_per_km")

        return self.add_cost(
            ctx,
            CostCategory.TRANSPORT,
            "Tolls",
            km * share * rate,
            distanceKm=str(km),
            highwayShare=str(share),
            costPerKm=str(rate),
        )
