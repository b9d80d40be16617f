from __future__ import annotations

from typing import Iterable, Optional, Tuple

from ..engine.context import AddressRole
from .access import NoElevatorModule, PublicDomainOccupationModule
from .base import QuoteModule
from .cross_selling import (
    CleaningEndCostModule,
    CleaningEndRequirementModule,
    FurnitureServiceCostModule,
    PackingCostModule,
    PackingRequirementModule,
    StorageCostModule,
    StorageRequirementModule,
    SuppliesCostModule,
)
from .furniture_lift import (
    FurnitureLiftCostModule,
    FurnitureLiftRecommendationModule,
    FurnitureLiftRefusalImpactModule,
    ManualHandlingRiskCostModule,
)
from .labor import (
    CrewFlexibilityModule,
    LaborAccessPenaltyModule,
    LaborBaseModule,
    VehicleSelectionModule,
    WorkersCalculationModule,
)
from .logistics import (
    LoadingTimeEstimationModule,
    NavetteRequiredModule,
    OvernightStopCostModule,
    TimeSlotSyndicModule,
    TrafficIdfModule,
)
from .risk import HighValueItemHandlingModule, InsurancePremiumModule
from .temporal import EndOfMonthModule, WeekendModule
from .transport import (
    DistanceModule,
    FuelCostModule,
    HighMileageFuelAdjustmentModule,
    LongDistanceThresholdModule,
    TollCostModule,
)
from .volume import VolumeEstimationModule, VolumeUncertaintyRiskModule

# Always kept when a tier enables an explicit module list: the base price, the
# insurance floor and the furniture-lift chain (a CRITICAL lift is billed whatever the tier).
ESSENTIAL_MODULES = frozenset(
    {
        "volume-estimation",
        "volume-uncertainty-risk",
        "distance-calculation",
        "long-distance-threshold",
        "fuel-cost",
        "high-mileage-fuel-adjustment",
        "toll-cost",
        "furniture-lift-recommendation",
        "furniture-lift-refusal-impact",
        "furniture-lift-cost",
        "manual-handling-risk-cost",
        "vehicle-selection",
        "workers-calculation",
        "labor-base",
        "labor-access-penalty",
        "insurance-premium",
    }
)


def default_catalog() -> Tuple[QuoteModule, ...]:
    """Every module, once. Assembled by the caller at startup and shared by all runs."""
    return (
        VolumeEstimationModule(),
        VolumeUncertaintyRiskModule(),
        DistanceModule(),
        LongDistanceThresholdModule(),
        FuelCostModule(),
        HighMileageFuelAdjustmentModule(),
        TollCostModule(),
        NoElevatorModule(AddressRole.PICKUP),
        NoElevatorModule(AddressRole.DELIVERY),
        NavetteRequiredModule(),
        TrafficIdfModule(),
        TimeSlotSyndicModule(),
        FurnitureLiftRecommendationModule(),
        FurnitureLiftRefusalImpactModule(),
        FurnitureLiftCostModule(),
        ManualHandlingRiskCostModule(),
        VehicleSelectionModule(),
        WorkersCalculationModule(),
        LaborBaseModule(),
        LaborAccessPenaltyModule(),
        CrewFlexibilityModule(),
        LoadingTimeEstimationModule(),
        OvernightStopCostModule(),
        InsurancePremiumModule(),
        HighValueItemHandlingModule(),
        PublicDomainOccupationModule(),
        EndOfMonthModule(),
        WeekendModule(),
        PackingRequirementModule(),
        CleaningEndRequirementModule(),
        StorageRequirementModule(),
        PackingCostModule(),
        CleaningEndCostModule(),
        FurnitureServiceCostModule("dismantling-cost", 87, "dismantling", "Furniture dismantling"),
        FurnitureServiceCostModule("reassembly-cost", 88, "reassembly", "Furniture reassembly"),
        StorageCostModule(),
        SuppliesCostModule(),
    )


def filter_catalog(
    modules: Iterable[QuoteModule],
    enabled: Optional[Iterable[str]] = None,
    disabled: Optional[Iterable[str]] = None,
) -> Tuple[QuoteModule, ...]:
    """
    Module selection for one commercial tier.
    - disabled always wins (even over essential modules)
    - a non-empty enabled list keeps those ids, the modules they depend on
      (transitively) and ESSENTIAL_MODULES
    """
    modules = tuple(modules)
    enabled_ids = set(enabled or ())
    disabled_ids = set(disabled or ())

    if enabled_ids:
        by_id = {m.module_id: m for m in modules}
        keep = set(ESSENTIAL_MODULES)
        pending = list(enabled_ids | ESSENTIAL_MODULES)
        while pending:
            mid = pending.pop()
            keep.add(mid)
            m = by_id.get(mid)
            if m is None:
                continue
            pending.extend(d for d in m.dependencies if d not in keep)
    else:
        keep = None

    return tuple(
        m
        for m in modules
        if m.module_id not in disabled_ids and (keep is None or m.module_id in keep)
    )
