from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Mapping, Sequence

from ..calculators.money import ZERO, round_half_up, to_decimal
from ..calculators.tiered_rate import tiered_charge
from ..engine.context import CostCategory, QuoteContext
from ..errors import ConfigurationError
from ..logging_config import get_logger
from .base import QuoteModule, Trigger, iter_roles

D = Decimal

logger = get_logger(__name__)

SCENARIO_ECO = "ECO"
SCENARIO_STANDARD = "STANDARD"


@dataclass(frozen=True)
class VehicleType:
    code: str
    capacity_m3: D
    cost: D


def vehicle_types(raw: Sequence[Mapping]) -> List[VehicleType]:
    types = [
        VehicleType(
            code=str(v["code"]),
            capacity_m3=to_decimal(v["capacity_m3"]),
            cost=to_decimal(v["cost"]),
        )
        for v in raw
    ]
    if not types:
        raise ConfigurationError("vehicle.types must list at least one vehicle", {"path": "vehicle.types"})
    return sorted(types, key=lambda v: v.capacity_m3)


def best_fit(types: Sequence[VehicleType], volume: D) -> VehicleType:
    """Smallest vehicle that holds `volume`, else the largest one."""
    for v in types:
        if volume <= v.capacity_m3:
            return v
    return types[-1]


class VehicleSelectionModule(QuoteModule):
    """
    Primary truck picked by volume; whatever does not fit goes into the best-fitting
    additional truck(s).
    """

    module_id = "vehicle-selection"
    description = "Truck rental by adjusted volume"
    priority = 60
    dependencies = ("volume-estimation",)

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        volume = ctx.computed.adjusted_volume
        if volume is None or volume <= 0:
            logger.debug("vehicle-selection: no volume, no vehicle")
            return ctx

        types = vehicle_types(ctx.config.get("vehicle.types"))
        chosen: List[VehicleType] = []
        remaining = volume
        while remaining > 0:
            v = best_fit(types, remaining)
            chosen.append(v)
            remaining -= v.capacity_m3

        codes = tuple(v.code for v in chosen)
        total = sum((v.cost for v in chosen), ZERO)

        ctx = self.set_computed(ctx, vehicle_count=len(chosen), vehicle_types=codes)
        return self.add_cost(
            ctx,
            CostCategory.VEHICLE,
            "Vehicle rental " + " + ".join(codes),
            total,
            vehicles=[
                {"code": v.code, "capacityM3": str(v.capacity_m3), "cost": str(v.cost)}
                for v in chosen
            ],
            volumeM3=str(volume),
        )


class WorkersCalculationModule(QuoteModule):
    module_id = "workers-calculation"
    description = "Crew size from the adjusted volume"
    priority = 61
    dependencies = ("volume-estimation",)

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        volume = ctx.computed.adjusted_volume
        if volume is None or volume <= 0:
            return ctx

        cfg = ctx.config
        per_worker = cfg.decimal("labor.volume_per_worker_m3")
        min_workers = cfg.integer("labor.min_workers")

        base = max(min_workers, round_half_up(volume / per_worker))
        crew = base
        rule = None

        scenario = (ctx.input.scenario_id or "").upper()
        if scenario == SCENARIO_ECO:
            cap = cfg.integer("labor.scenario_rules.eco_max_workers")
            if crew > cap:
                crew, rule = cap, "eco_cap"
        elif scenario == SCENARIO_STANDARD:
            factor = cfg.decimal("labor.scenario_rules.standard_workers_factor")
            crew, rule = max(min_workers, round_half_up(base * factor)), "standard_factor"

        ctx = self.set_computed(ctx, crew_size=crew)
        return self.add_notes(
            ctx,
            workers_calculation={
                "volume": str(volume),
                "volumePerWorker": str(per_worker),
                "baseWorkers": base,
                "workers": crew,
                "scenarioRule": rule,
            },
        )


class LaborBaseModule(QuoteModule):
    module_id = "labor-base"
    description = "Crew day rate"
    priority = 62
    dependencies = ("volume-estimation", "workers-calculation")

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        computed = ctx.computed
        if not computed.adjusted_volume or not computed.crew_size:
            logger.debug("labor-base: volume or crew size missing, nothing billed")
            return ctx

        cfg = ctx.config
        rate = cfg.decimal("labor.hourly_rate")
        hours = cfg.decimal("labor.day_hours")
        crew = computed.crew_size

        return self.add_cost(
            ctx,
            CostCategory.LABOR,
            f"Labor ({crew} movers x {hours} h)",
            crew * rate * hours,
            workers=crew,
            hourlyRate=str(rate),
            hours=str(hours),
        )


class LaborAccessPenaltyModule(QuoteModule):
    """Extra labor for stairs above the threshold floor and for long carries, per address."""

    module_id = "labor-access-penalty"
    description = "Stairs and carry-distance labor penalties"
    priority = 66
    trigger = Trigger.INPUT

    def _penalties(self, ctx: QuoteContext):
        cfg = ctx.config
        floor_threshold = cfg.integer("labor.access_penalties.stairs_floor_threshold")
        per_floor = cfg.decimal("labor.access_penalties.stairs_per_floor")
        carry_threshold = cfg.decimal("labor.access_penalties.carry_threshold_m")
        bands = cfg.bands("labor.access_penalties.carry_bands")

        for role, addr in iter_roles(ctx):
            stairs = ZERO
            if addr.without_elevator and addr.floor > floor_threshold:
                stairs = per_floor * addr.floor
            carry = tiered_charge(addr.carry_distance_m, bands, threshold=carry_threshold)
            if stairs > 0 or carry.amount > 0:
                yield role, addr, stairs, carry

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return any(True for _ in self._penalties(ctx))

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        for role, addr, stairs, carry in self._penalties(ctx):
            ctx = self.add_cost(
                ctx,
                CostCategory.LABOR,
                f"Access penalty ({role.label})",
                stairs + carry.amount,
                role=role.value,
                floor=addr.floor,
                stairsCost=str(stairs),
                carry=carry.meta(),
            )
        return ctx


class CrewFlexibilityModule(QuoteModule):
    module_id = "crew-flexibility"
    description = "Crew flexibility guarantee"
    priority = 67
    trigger = Trigger.INPUT

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return ctx.input.crew_flexibility

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        return self.add_cost(
            ctx,
            CostCategory.LABOR,
            "Crew flexibility guarantee",
            ctx.config.decimal("labor.flexibility_guarantee_cost"),
        )
