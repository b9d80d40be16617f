from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from ..calculators.money import ZERO
from ..config.table import ConfigTable, freeze

D = Decimal


# -----------------------------
# Enums
# -----------------------------


class ServiceType(str, Enum):
    MOVING = "MOVING"
    CLEANING = "CLEANING"


class Confidence(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class VolumeMethod(str, Enum):
    FORM = "FORM"
    LIST = "LIST"
    VIDEO = "VIDEO"


class ElevatorSize(str, Enum):
    SMALL = "SMALL"
    STANDARD = "STANDARD"
    LARGE = "LARGE"


class AddressRole(str, Enum):
    PICKUP = "PICKUP"
    DELIVERY = "DELIVERY"

    @property
    def label(self) -> str:
        return "pickup" if self is AddressRole.PICKUP else "delivery"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @property
    def dismissible(self) -> bool:
        return self is not Severity.CRITICAL


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2, Severity.CRITICAL: 3}


class CostCategory(str, Enum):
    TRANSPORT = "TRANSPORT"
    VEHICLE = "VEHICLE"
    LABOR = "LABOR"
    LOGISTICS = "LOGISTICS"
    FURNITURE_LIFT = "FURNITURE_LIFT"
    RISK = "RISK"
    INSURANCE = "INSURANCE"
    ADMINISTRATIVE = "ADMINISTRATIVE"
    TEMPORAL = "TEMPORAL"
    CROSS_SELLING = "CROSS_SELLING"


# -----------------------------
# Input (raw job description)
# -----------------------------


@dataclass(frozen=True)
class AddressInfo:
    floor: int = 0
    has_elevator: Optional[bool] = None  # None = unknown
    elevator_size: Optional[ElevatorSize] = None
    narrow_street: bool = False
    truck_parking_available: bool = True
    carry_distance_m: D = ZERO
    needs_parking_authorization: bool = False

    @property
    def elevator_inadequate(self) -> bool:
        """Absent, or too small for furniture. Unknown counts as adequate."""
        if self.has_elevator is False:
            return True
        return self.has_elevator is True and self.elevator_size is ElevatorSize.SMALL

    @property
    def without_elevator(self) -> bool:
        return self.has_elevator is False


@dataclass(frozen=True)
class QuoteInput:
    """
    Raw job inputs for one pricing request (or one commercial-tier variant of it).
    Volume and distance are pre-computed upstream; the pipeline never estimates them.
    """

    service_type: ServiceType = ServiceType.MOVING
    region: Optional[str] = None
    scenario_id: Optional[str] = None

    pickup: AddressInfo = field(default_factory=AddressInfo)
    delivery: AddressInfo = field(default_factory=AddressInfo)

    move_date: Optional[date] = None
    move_hour: Optional[int] = None

    estimated_volume: Optional[D] = None
    volume_confidence: Confidence = Confidence.MEDIUM
    volume_method: VolumeMethod = VolumeMethod.FORM
    surface_m2: Optional[D] = None
    distance_km: Optional[D] = None

    # special items
    piano: bool = False
    safe: bool = False
    artwork: bool = False
    bulky_furniture: bool = False
    complex_items: int = 0
    declared_value: Optional[D] = None

    # options / consent flags
    declared_value_insurance: bool = False
    packing: bool = False
    cleaning_end: bool = False
    temporary_storage: bool = False
    storage_duration_days: Optional[int] = None
    dismantling: bool = False
    reassembly: bool = False
    crew_flexibility: bool = False
    syndic_time_slot: bool = False
    supplies_total: D = ZERO
    furniture_lift_accepted: bool = False
    furniture_lift_refused: bool = False

    # scenario overrides
    force_furniture_lift: bool = False
    force_overnight_stop: bool = False
    force_supplies: bool = False

    def address(self, role: AddressRole) -> AddressInfo:
        return self.pickup if role is AddressRole.PICKUP else self.delivery


# -----------------------------
# Accumulator entries
# -----------------------------


class _ReadOnlyMetadata:
    """Entries are shared by every later context of the run: metadata is frozen on creation."""

    def __post_init__(self):
        object.__setattr__(self, "metadata", freeze(self.metadata))


@dataclass(frozen=True)
class CostLine(_ReadOnlyMetadata):
    module_id: str
    category: CostCategory
    label: str
    amount: D
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RiskContribution(_ReadOnlyMetadata):
    module_id: str
    amount: int
    reason: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Requirement(_ReadOnlyMetadata):
    type: str
    severity: Severity
    reason: str
    module_id: str
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CrossSellProposal(_ReadOnlyMetadata):
    id: str
    label: str
    reason: str
    benefit: str
    price_impact: D
    optional: bool
    module_id: str
    based_on_requirement: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ComputedFields:
    """Well-known values handed from one module to later ones."""

    base_volume: Optional[D] = None
    adjusted_volume: Optional[D] = None
    distance_km: Optional[D] = None
    is_long_distance: Optional[bool] = None
    crew_size: Optional[int] = None
    vehicle_count: Optional[int] = None
    vehicle_types: Tuple[str, ...] = ()
    estimated_duration_minutes: Optional[int] = None


def _empty_notes() -> Mapping[str, Any]:
    return MappingProxyType({})


@dataclass(frozen=True)
class Accumulator:
    costs: Tuple[CostLine, ...] = ()
    risk_contributions: Tuple[RiskContribution, ...] = ()
    requirements: Tuple[Requirement, ...] = ()
    cross_sell_proposals: Tuple[CrossSellProposal, ...] = ()
    operational_flags: Tuple[str, ...] = ()
    activated_modules: Tuple[str, ...] = ()
    computed: ComputedFields = field(default_factory=ComputedFields)
    # module-specific annotations; informational only, never read back into a price
    notes: Mapping[str, Any] = field(default_factory=_empty_notes)

    _APPEND_ONLY = (
        "costs",
        "risk_contributions",
        "requirements",
        "cross_sell_proposals",
        "operational_flags",
        "activated_modules",
    )

    def costs_total(self) -> D:
        return sum((c.amount for c in self.costs), ZERO)

    def requirement(self, type_: str) -> Optional[Requirement]:
        for req in reversed(self.requirements):
            if req.type == type_:
                return req
        return None

    def proposal(self, proposal_id: str) -> Optional[CrossSellProposal]:
        for p in reversed(self.cross_sell_proposals):
            if p.id == proposal_id:
                return p
        return None

    def has_flag(self, tag: str) -> bool:
        return tag in self.operational_flags

    def costs_by(self, module_id: str) -> Tuple[CostLine, ...]:
        return tuple(c for c in self.costs if c.module_id == module_id)

    def is_extension_of(self, previous: "Accumulator") -> bool:
        """True when every append-only list of `previous` is a prefix of ours."""
        for name in self._APPEND_ONLY:
            before = getattr(previous, name)
            after = getattr(self, name)
            if len(after) < len(before) or after[: len(before)] != before:
                return False
        return True

    def with_notes(self, **notes: Any) -> "Accumulator":
        merged: Dict[str, Any] = dict(self.notes)
        merged.update(freeze(notes))
        return replace(self, notes=MappingProxyType(merged))


# -----------------------------
# Context
# -----------------------------


@dataclass(frozen=True)
class QuoteContext:
    """
    Input + working state of one pipeline run.

    - input: raw job description (QuoteInput)
    - config: constants snapshot held for the whole run
    - accumulator: every module's output
    - quote_id: injected by the caller (no uuid/now inside the run, keeps it deterministic)
    """

    input: QuoteInput
    config: ConfigTable
    accumulator: Accumulator = field(default_factory=Accumulator)
    quote_id: str = "quote_1"

    @property
    def computed(self) -> ComputedFields:
        return self.accumulator.computed

    def with_accumulator(self, accumulator: Accumulator) -> "QuoteContext":
        return replace(self, accumulator=accumulator)
