# quotation/schemas/quote_input_v1.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..engine.context import (
    AddressInfo,
    Confidence,
    ElevatorSize,
    QuoteInput,
    ServiceType,
    VolumeMethod,
)

LIFT_DECISION_CONFLICT = "furniture_lift_accepted and furniture_lift_refused are mutually exclusive"


def lift_decision_conflict(accepted: bool, refused: bool) -> bool:
    return bool(accepted and refused)


class AddressV1(BaseModel):
    model_config = ConfigDict(extra="forbid")

    floor: int = Field(0, ge=0, le=60)
    has_elevator: Optional[bool] = None
    elevator_size: Optional[Literal["SMALL", "STANDARD", "LARGE"]] = None
    narrow_street: bool = False
    truck_parking_available: bool = True
    carry_distance_m: Decimal = Field(Decimal("0"), ge=0)
    needs_parking_authorization: bool = False

    def to_info(self) -> AddressInfo:
        return AddressInfo(
            floor=self.floor,
            has_elevator=self.has_elevator,
            elevator_size=ElevatorSize(self.elevator_size) if self.elevator_size else None,
            narrow_street=self.narrow_street,
            truck_parking_available=self.truck_parking_available,
            carry_distance_m=self.carry_distance_m,
            needs_parking_authorization=self.needs_parking_authorization,
        )


class QuoteRequestV1(BaseModel):
    """
    Request = allowlist. Whatever is not defined here cannot be sent.
    Volume and distance come pre-computed from the estimator.
    """

    model_config = ConfigDict(extra="forbid")

    service_type: Literal["MOVING", "CLEANING"] = "MOVING"
    region: Optional[str] = None
    scenario_id: Optional[str] = None

    pickup: AddressV1 = Field(default_factory=AddressV1)
    delivery: AddressV1 = Field(default_factory=AddressV1)

    move_date: Optional[date] = None
    move_hour: Optional[int] = Field(None, ge=0, le=23)

    estimated_volume: Optional[Decimal] = Field(None, ge=0)
    volume_confidence: Literal["LOW", "MEDIUM", "HIGH"] = "MEDIUM"
    volume_method: Literal["FORM", "LIST", "VIDEO"] = "FORM"
    surface_m2: Optional[Decimal] = Field(None, ge=0)
    distance_km: Optional[Decimal] = Field(None, ge=0)

    piano: bool = False
    safe: bool = False
    artwork: bool = False
    bulky_furniture: bool = False
    complex_items: int = Field(0, ge=0)
    declared_value: Optional[Decimal] = Field(None, ge=0)

    declared_value_insurance: bool = False
    packing: bool = False
    cleaning_end: bool = False
    temporary_storage: bool = False
    storage_duration_days: Optional[int] = Field(None, ge=0)
    dismantling: bool = False
    reassembly: bool = False
    crew_flexibility: bool = False
    syndic_time_slot: bool = False
    supplies_total: Decimal = Field(Decimal("0"), ge=0)
    furniture_lift_accepted: bool = False
    furniture_lift_refused: bool = False

    force_furniture_lift: bool = False
    force_overnight_stop: bool = False
    force_supplies: bool = False

    @model_validator(mode="after")
    def _check_lift_decision(self) -> "QuoteRequestV1":
        if lift_decision_conflict(self.furniture_lift_accepted, self.furniture_lift_refused):
            raise ValueError(LIFT_DECISION_CONFLICT)
        return self

    def to_input(self) -> QuoteInput:
        data = self.model_dump(exclude={"pickup", "delivery"})
        data.update(
            service_type=ServiceType(self.service_type),
            volume_confidence=Confidence(self.volume_confidence),
            volume_method=VolumeMethod(self.volume_method),
            pickup=self.pickup.to_info(),
            delivery=self.delivery.to_info(),
        )
        return QuoteInput(**data)
