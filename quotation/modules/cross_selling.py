"""
Optional services. The *-requirement modules detect and propose whatever the consent
flags say, so a re-run after the customer's answer still carries the offer. The *-cost
modules bill only on the explicit opt-in flag and only while the linked requirement
still stands.
"""
from __future__ import annotations

from decimal import Decimal

from ..calculators.money import ZERO
from ..engine.context import CostCategory, QuoteContext, ServiceType, Severity
from ..logging_config import get_logger
from .base import QuoteModule, Trigger, graduated_severity

D = Decimal

logger = get_logger(__name__)

PACKING_REQUIREMENT = "PACKING_RECOMMENDED"
CLEANING_REQUIREMENT = "CLEANING_END_RECOMMENDED"
STORAGE_REQUIREMENT = "STORAGE_RECOMMENDED"

PACKING_PROPOSAL = "PACKING"
CLEANING_PROPOSAL = "CLEANING_END"
STORAGE_PROPOSAL = "STORAGE"


def packing_price(ctx: QuoteContext, volume: D) -> D:
    return volume * ctx.config.decimal("cross_selling.packing.cost_per_m3")


def cleaning_price(ctx: QuoteContext, surface: D) -> D:
    return surface * ctx.config.decimal("cross_selling.cleaning.cost_per_m2")


def storage_days(ctx: QuoteContext) -> int:
    days = ctx.input.storage_duration_days
    if days:
        return days
    return ctx.config.integer("cross_selling.storage.default_duration_days")


def storage_price(ctx: QuoteContext, volume: D, days: int) -> D:
    cfg = ctx.config
    months = D(days) / cfg.decimal("cross_selling.storage.days_per_month")
    return volume * cfg.decimal("cross_selling.storage.cost_per_m3_per_month") * months


# -----------------
# detection
# -----------------


class PackingRequirementModule(QuoteModule):
    module_id = "packing-requirement"
    description = "Recommends packing for large volumes"
    priority = 82
    dependencies = ("volume-estimation",)
    trigger = Trigger.STATE

    def is_applicable(self, ctx: QuoteContext) -> bool:
        volume = ctx.computed.adjusted_volume
        if volume is None:
            return False
        return volume >= ctx.config.decimal("cross_selling.packing.volume_threshold_m3")

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        cfg = ctx.config
        volume = ctx.computed.adjusted_volume
        severity = graduated_severity(
            volume,
            ((cfg.decimal("cross_selling.packing.high_volume_threshold_m3"), Severity.MEDIUM),),
        )

        reason = f"{volume} m3 to pack"
        ctx = self.add_requirement(ctx, PACKING_REQUIREMENT, severity, reason, volumeM3=str(volume))
        return self.add_proposal(
            ctx,
            PACKING_PROPOSAL,
            "Packing service",
            reason,
            "Boxes packed and labelled by the crew",
            packing_price(ctx, volume),
            optional=True,
            based_on_requirement=PACKING_REQUIREMENT,
        )


class CleaningEndRequirementModule(QuoteModule):
    module_id = "cleaning-end-requirement"
    description = "Recommends end-of-tenancy cleaning"
    priority = 83
    trigger = Trigger.INPUT

    def is_applicable(self, ctx: QuoteContext) -> bool:
        qin = ctx.input
        return (
            qin.service_type is ServiceType.MOVING
            and bool(qin.surface_m2)
            and qin.surface_m2 > 0
        )

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        surface = ctx.input.surface_m2
        reason = f"Move out of {surface} m2"
        ctx = self.add_requirement(
            ctx, CLEANING_REQUIREMENT, Severity.LOW, reason, surfaceM2=str(surface)
        )
        return self.add_proposal(
            ctx,
            CLEANING_PROPOSAL,
            "End-of-tenancy cleaning",
            reason,
            "Premises handed back clean for the inventory",
            cleaning_price(ctx, surface),
            optional=True,
            based_on_requirement=CLEANING_REQUIREMENT,
        )


class StorageRequirementModule(QuoteModule):
    module_id = "storage-requirement"
    description = "Recommends storage when there is a gap between move-out and move-in"
    priority = 84
    dependencies = ("volume-estimation",)
    trigger = Trigger.INPUT

    def is_applicable(self, ctx: QuoteContext) -> bool:
        # a storage request without dates is itself the gap
        qin = ctx.input
        return bool(qin.storage_duration_days) or qin.temporary_storage

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        days = storage_days(ctx)
        reason = f"Goods need to be kept for {days} days"
        ctx = self.add_requirement(
            ctx,
            STORAGE_REQUIREMENT,
            Severity.MEDIUM,
            reason,
            durationDays=days,
            defaultDuration=not ctx.input.storage_duration_days,
        )

        volume = ctx.computed.adjusted_volume
        if not volume:
            # no volume, no price: the requirement stands alone
            return ctx
        return self.add_proposal(
            ctx,
            STORAGE_PROPOSAL,
            "Temporary storage",
            reason,
            "Secure storage between move-out and move-in",
            storage_price(ctx, volume, days),
            optional=True,
            based_on_requirement=STORAGE_REQUIREMENT,
            durationDays=days,
        )


# -----------------
# billing
# -----------------


class PackingCostModule(QuoteModule):
    module_id = "packing-cost"
    description = "Bills packing"
    priority = 85
    dependencies = ("volume-estimation", "packing-requirement")
    trigger = Trigger.STATE

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return (
            ctx.input.packing
            and bool(ctx.computed.adjusted_volume)
            and ctx.accumulator.requirement(PACKING_REQUIREMENT) is not None
        )

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        volume = ctx.computed.adjusted_volume
        return self.add_cost(
            ctx,
            CostCategory.CROSS_SELLING,
            "Packing service",
            packing_price(ctx, volume),
            proposal_id=PACKING_PROPOSAL,
            consent="OPT_IN",
            volumeM3=str(volume),
        )


class CleaningEndCostModule(QuoteModule):
    module_id = "cleaning-end-cost"
    description = "Bills end-of-tenancy cleaning"
    priority = 86
    dependencies = ("cleaning-end-requirement",)
    trigger = Trigger.STATE

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return (
            ctx.input.cleaning_end
            and ctx.accumulator.requirement(CLEANING_REQUIREMENT) is not None
        )

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        surface = ctx.input.surface_m2
        return self.add_cost(
            ctx,
            CostCategory.CROSS_SELLING,
            "End-of-tenancy cleaning",
            cleaning_price(ctx, surface),
            proposal_id=CLEANING_PROPOSAL,
            consent="OPT_IN",
            surfaceM2=str(surface),
        )


class FurnitureServiceCostModule(QuoteModule):
    """Dismantling or reassembly: base + complex items + bulky furniture + piano."""

    trigger = Trigger.INPUT

    def __init__(self, module_id: str, priority: int, option: str, label: str):
        self.module_id = module_id
        self.priority = priority
        self.option = option
        self.label = label
        self.description = f"Bills {label.lower()}"

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return getattr(ctx.input, self.option)

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        qin = ctx.input
        cfg = ctx.config
        section = f"cross_selling.{self.option}"

        amount = cfg.decimal(f"{section}.base_cost")
        complex_cost = cfg.decimal(f"{section}.per_complex_item") * qin.complex_items
        amount += complex_cost
        if qin.bulky_furniture:
            amount += cfg.decimal(f"{section}.bulky_furniture")
        if qin.piano:
            amount += cfg.decimal(f"{section}.piano")

        return self.add_cost(
            ctx,
            CostCategory.CROSS_SELLING,
            self.label,
            amount,
            consent="OPT_IN",
            complexItems=qin.complex_items,
            bulkyFurniture=qin.bulky_furniture,
            piano=qin.piano,
        )


class StorageCostModule(QuoteModule):
    module_id = "storage-cost"
    description = "Bills temporary storage"
    priority = 89
    dependencies = ("volume-estimation", "storage-requirement")
    trigger = Trigger.STATE

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return (
            ctx.input.temporary_storage
            and bool(ctx.computed.adjusted_volume)
            and ctx.accumulator.requirement(STORAGE_REQUIREMENT) is not None
        )

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        volume = ctx.computed.adjusted_volume
        days = storage_days(ctx)
        return self.add_cost(
            ctx,
            CostCategory.CROSS_SELLING,
            f"Temporary storage ({days} days)",
            storage_price(ctx, volume, days),
            proposal_id=STORAGE_PROPOSAL,
            consent="OPT_IN",
            volumeM3=str(volume),
            durationDays=days,
            defaultDuration=not ctx.input.storage_duration_days,
        )


class SuppliesCostModule(QuoteModule):
    """
    Packing supplies: the customer's own selection, or a pack sized by volume when
    the tier forces supplies. A forced pack replaces the selection.
    """

    module_id = "supplies-cost"
    description = "Packing supplies"
    priority = 90
    trigger = Trigger.INPUT

    def is_applicable(self, ctx: QuoteContext) -> bool:
        return ctx.input.force_supplies or ctx.input.supplies_total > 0

    def apply(self, ctx: QuoteContext) -> QuoteContext:
        qin = ctx.input
        if not qin.force_supplies:
            return self.add_cost(
                ctx,
                CostCategory.CROSS_SELLING,
                "Packing supplies",
                qin.supplies_total,
                source="CLIENT_SELECTION",
            )

        volume = ctx.computed.adjusted_volume
        if not volume:
            logger.debug("supplies-cost: forced pack without volume, nothing billed")
            return ctx

        price = ZERO
        pack_limit = None
        for pack in ctx.config.get("cross_selling.supplies.packs"):
            limit = pack.get("max_volume_m3")
            price = D(str(pack["price"]))
            pack_limit = limit
            if limit is None or volume <= D(str(limit)):
                break

        return self.add_cost(
            ctx,
            CostCategory.CROSS_SELLING,
            "Packing supplies pack",
            price,
            source="SCENARIO_PACK",
            packMaxVolumeM3=pack_limit,
            volumeM3=str(volume),
            replacedClientTotal=str(qin.supplies_total),
        )
