from __future__ import annotations

import math
from decimal import Decimal

from ..calculators.money import ZERO
from ..calculators.surcharge import percentage_surcharge
from ..calculators.tiered_rate import tiered_charge
from ..engine.context import CostCategory, QuoteContext
from ..logging_config import get_logger
from .base import QuoteModule, Trigger, iter_roles

D = Decimal

logger = get_logger(__name__)

FLAG_SHUTTLE_REQUIRED = "SHUTTLE_REQUIRED"
FLAG_OVERNIGHT_STOP = "OVERNIGHT_STOP"

FRIDAY = 4


class NavetteRequiredModule(QuoteModule):
    """The truck cannot reach the door: a shuttle vehicle does the last leg."""

    module_id = "navette-required"
    description = "Shuttle for narrow streets or no truck parking"
    priority = 45
    dependencies = ("distance-calculation",)
    trigger = Trigger.INPUT

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return any(
            addr.narrow_street or not addr.truck_parking_available for _, addr in iter_roles(ctx)
        )

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        cfg = ctx.config
        roles = [
            role.value
            for role, addr in iter_roles(ctx)
            if addr.narrow_street or not addr.truck_parking_available
        ]

        base = cfg.decimal("logistics.navette.base_cost")
        km = ctx.computed.distance_km or ZERO
        distance = tiered_charge(
            km,
            cfg.bands("logistics.navette.bands"),
            threshold=cfg.decimal("logistics.navette.free_km"),
        )

        ctx = self.add_cost(
            ctx,
            CostCategory.LOGISTICS,
            "Shuttle vehicle",
            base + distance.amount,
            roles=roles,
            baseCost=str(base),
            distance=distance.meta(),
        )
        return self.add_flags(ctx, FLAG_SHUTTLE_REQUIRED)


class TrafficIdfModule(QuoteModule):
    """Paris-region traffic: Friday afternoon, else rush hour, as a % of costs so far."""

    module_id = "traffic-idf"
    description = "Ile-de-France traffic surcharge"
    priority = 46
    trigger = Trigger.INPUT

    @staticmethod
    def _in_window(hour: int, window) -> bool:
        start, end = window
        return start <= hour < end

    def _slot(self, ctx: QuoteContext):
        qin = ctx.input
        cfg = ctx.config
        if not qin.region or qin.region.upper() != cfg.text("logistics.traffic_idf.region").upper():
            return None
        if qin.move_date is None or qin.move_hour is None:
            return None

        if qin.move_date.weekday() == FRIDAY and self._in_window(
            qin.move_hour, cfg.get("logistics.traffic_idf.friday_afternoon")
        ):
            return "FRIDAY_AFTERNOON", cfg.decimal("logistics.traffic_idf.friday_afternoon_surcharge_rate")

        for window in cfg.get("logistics.traffic_idf.rush_hours"):
            if self._in_window(qin.move_hour, window):
                return "RUSH_HOUR", cfg.decimal("logistics.traffic_idf.rush_hour_surcharge_rate")
        return None

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return self._slot(ctx) is not None

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        slot, rate = self._slot(ctx)
        amount, meta = percentage_surcharge((c.amount for c in ctx.accumulator.costs), rate)
        return self.add_cost(
            ctx,
            CostCategory.LOGISTICS,
            "Traffic surcharge (Ile-de-France)",
            amount,
            slot=slot,
            hour=ctx.input.move_hour,
            **meta,
        )


class TimeSlotSyndicModule(QuoteModule):
    module_id = "time-slot-syndic"
    description = "Time slot imposed by the building management"
    priority = 47
    trigger = Trigger.INPUT

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return ctx.input.syndic_time_slot

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        cfg = ctx.config
        ctx = self.add_cost(
            ctx,
            CostCategory.LOGISTICS,
            "Imposed time slot",
            cfg.decimal("logistics.syndic.surcharge"),
        )
        return self.add_risk(
            ctx,
            cfg.integer("logistics.syndic.risk_contribution"),
            "Tight time slot imposed by the building",
        )


class LoadingTimeEstimationModule(QuoteModule):
    """Informational duration estimate. Written to computed/notes, never priced."""

    module_id = "loading-time-estimation"
    description = "Estimated loading duration"
    priority = 68
    dependencies = ("volume-estimation", "workers-calculation")
    trigger = Trigger.STATE

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return bool(ctx.computed.adjusted_volume) and bool(ctx.computed.crew_size)

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        cfg = ctx.config
        per_m3 = cfg.decimal("labor.loading_time.minutes_per_m3_per_worker")
        floor_penalty = cfg.decimal("labor.loading_time.floor_penalty_minutes")
        carry_penalty = cfg.decimal("labor.loading_time.carry_penalty_minutes_per_meter")

        volume = ctx.computed.adjusted_volume
        crew = ctx.computed.crew_size

        minutes = volume * per_m3 / crew
        for _, addr in iter_roles(ctx):
            if addr.without_elevator:
                minutes += floor_penalty * addr.floor
            minutes += carry_penalty * addr.carry_distance_m

        total = int(math.ceil(minutes))
        ctx = self.set_computed(ctx, estimated_duration_minutes=total)
        return self.add_notes(
            ctx,
            loading_time={"minutes": total, "hours": str((D(total) / D(60)).quantize(D("0.1")))},
        )


class OvernightStopCostModule(QuoteModule):
    """
    Overnight stop on very long trips, when the tier forces it:
    crew x (hotel + meal) + secure parking for the truck.
    """

    module_id = "overnight-stop-cost"
    description = "Overnight stop on very long trips"
    priority = 69
    dependencies = ("long-distance-threshold", "workers-calculation")
    trigger = Trigger.STATE

    def is_applicable(self, ctx: QuoteContext) -> bool:
        if not ctx.input.force_overnight_stop:
            return False
        km = ctx.computed.distance_km
        if km is None:
            return False
        return km > ctx.config.decimal("distance.overnight_stop_threshold_km")

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        cfg = ctx.config
        hotel = cfg.decimal("logistics.overnight_stop.hotel_per_worker")
        meal = cfg.decimal("logistics.overnight_stop.meal_per_worker")
        parking = cfg.decimal("logistics.overnight_stop.secure_parking")

        crew = ctx.computed.crew_size
        crew_defaulted = crew is None
        if crew_defaulted:
            crew = cfg.integer("logistics.overnight_stop.default_workers")
            logger.debug("overnight-stop-cost: no crew size computed, using {} workers", crew)

        ctx = self.add_cost(
            ctx,
            CostCategory.LOGISTICS,
            "Overnight stop",
            crew * (hotel + meal) + parking,
            workers=crew,
            workersDefaulted=crew_defaulted,
            hotelPerWorker=str(hotel),
            mealPerWorker=str(meal),
            secureParking=str(parking),
            distanceKm=str(ctx.computed.distance_km),
        )
        return self.add_flags(ctx, FLAG_OVERNIGHT_STOP)
