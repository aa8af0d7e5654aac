"""
Pydantic schemas for trip operations.

These define the API contract: what data comes in, what data
goes out. Shape rules (exactly one destination, split amounts
adding up) are checked here; lifecycle and ownership rules live
in the trip service.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from freight_core.models.enums import (
    TripStatus,
    TripEventType,
    QuantityUnit,
    DriverPaymentPayer,
    DriverPaymentStatus,
)


# --- Request Schemas ---

class Address(BaseModel):
    line1: str = Field(min_length=1, max_length=255)
    line2: str | None = Field(default=None, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str | None = Field(default=None, max_length=100)
    postal_code: str | None = Field(default=None, max_length=20)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class DriverPaymentTerms(BaseModel):
    """Who pays the driver for this trip, and how much (minor units)."""
    total_amount: int = Field(gt=0)
    paid_by: DriverPaymentPayer
    split_source_amount: int | None = Field(default=None, gt=0)
    split_dest_amount: int | None = Field(default=None, gt=0)
    remarks: str | None = Field(default=None, max_length=255)

    @model_validator(mode="after")
    def split_amounts_add_up(self) -> "DriverPaymentTerms":
        if self.paid_by == DriverPaymentPayer.SPLIT:
            if self.split_source_amount is None or self.split_dest_amount is None:
                raise ValueError(
                    "split amounts are required when paid_by is SPLIT"
                )
            if self.split_source_amount + self.split_dest_amount != self.total_amount:
                raise ValueError("split amounts must add up to the total amount")
        elif self.split_source_amount is not None or self.split_dest_amount is not None:
            raise ValueError("split amounts are only allowed when paid_by is SPLIT")
        return self


class TripCreate(BaseModel):
    source_org_id: int
    destination_org_id: int | None = None
    receiver_phone: str | None = Field(default=None, min_length=6, max_length=20)
    driver_id: int
    truck_id: int
    start_point: str = Field(min_length=1, max_length=255)
    end_point: str = Field(min_length=1, max_length=255)
    source_address: Address | None = None
    destination_address: Address | None = None
    estimated_distance_km: Decimal | None = Field(default=None, gt=0)
    estimated_arrival: datetime | None = None
    notes: str | None = None
    driver_payment: DriverPaymentTerms | None = None

    @model_validator(mode="after")
    def exactly_one_destination(self) -> "TripCreate":
        if (self.destination_org_id is None) == (self.receiver_phone is None):
            raise ValueError(
                "exactly one of destination_org_id and receiver_phone is required"
            )
        return self


class LoadItemCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    quantity: Decimal = Field(gt=0, decimal_places=3)
    unit: QuantityUnit
    rate: int | None = Field(default=None, ge=0)
    grade: str | None = Field(default=None, max_length=50)


class LoadCardCreate(BaseModel):
    items: list[LoadItemCreate] = Field(min_length=1)
    evidence_ids: list[str] = Field(min_length=1)
    remarks: str | None = Field(default=None, max_length=500)


class ReceiveItemCreate(BaseModel):
    load_item_id: int
    quantity: Decimal = Field(ge=0, decimal_places=3)
    unit: QuantityUnit


class ReceiveCardCreate(BaseModel):
    items: list[ReceiveItemCreate] = Field(min_length=1)
    evidence_ids: list[str] = Field(min_length=1)
    remarks: str | None = Field(default=None, max_length=500)


class TripStatusUpdate(BaseModel):
    status: TripStatus
    remarks: str | None = Field(default=None, max_length=255)


class TripCancel(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class AssignmentChange(BaseModel):
    driver_id: int | None = None
    truck_id: int | None = None
    reason: str = Field(min_length=1, max_length=255)

    @model_validator(mode="after")
    def something_changes(self) -> "AssignmentChange":
        if self.driver_id is None and self.truck_id is None:
            raise ValueError("driver_id or truck_id is required")
        return self


# --- Response Schemas ---

class LoadItemResponse(BaseModel):
    id: int
    name: str
    quantity: Decimal
    unit: QuantityUnit
    rate: int | None
    grade: str | None

    model_config = {"from_attributes": True}


class LoadCardResponse(BaseModel):
    id: int
    trip_id: int
    evidence_ids: list[str]
    remarks: str | None
    items: list[LoadItemResponse]
    created_at: datetime

    model_config = {"from_attributes": True}


class ReceiveItemResponse(BaseModel):
    id: int
    load_item_id: int
    name: str
    quantity: Decimal
    unit: QuantityUnit
    shortage: Decimal

    model_config = {"from_attributes": True}


class ReceiveCardResponse(BaseModel):
    id: int
    trip_id: int
    evidence_ids: list[str]
    remarks: str | None
    items: list[ReceiveItemResponse]
    created_at: datetime

    model_config = {"from_attributes": True}


class TripEventResponse(BaseModel):
    id: int
    trip_id: int
    event_type: TripEventType
    description: str
    actor_user_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class DriverPaymentResponse(BaseModel):
    trip_id: int
    total_amount: int
    paid_by: DriverPaymentPayer
    split_source_amount: int | None
    split_dest_amount: int | None
    paid_amount: int
    status: DriverPaymentStatus
    paid_at: datetime | None
    remarks: str | None

    model_config = {"from_attributes": True}


class TripResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    source_org_id: int
    destination_org_id: int | None
    receiver_phone: str | None
    driver_id: int
    truck_id: int
    status: TripStatus
    start_point: str
    end_point: str
    source_address: dict | None
    destination_address: dict | None
    estimated_distance_km: Decimal | None
    estimated_arrival: datetime | None
    notes: str | None
    cancel_reason: str | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TripDetailResponse(TripResponse):
    """A trip with its cards and payment terms."""
    load_card: LoadCardResponse | None
    receive_card: ReceiveCardResponse | None
    driver_payment: DriverPaymentResponse | None
