"""
Pydantic schemas for ledger operations.

Amounts are minor currency units. Request amounts are accepted
as Decimal so the ledger service, not the schema, decides
whether a value is a valid amount and reports it with a typed
InvalidAmountError.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from freight_core.models.enums import (
    EntryDirection,
    ReferenceType,
    InvoiceStatus,
    PaymentTag,
)


# --- Request Schemas ---

class AccountOpen(BaseModel):
    """Request to open the account pair between two organizations."""
    owner_org_id: int
    counterparty_org_id: int

    @model_validator(mode="after")
    def orgs_differ(self) -> "AccountOpen":
        if self.owner_org_id == self.counterparty_org_id:
            raise ValueError("owner and counterparty must be different")
        return self


class InvoiceCreate(BaseModel):
    """The owner org bills the counterparty org."""
    owner_org_id: int
    counterparty_org_id: int
    invoice_number: str = Field(min_length=1, max_length=64)
    amount: Decimal
    description: str | None = Field(default=None, max_length=255)
    due_date: datetime | None = None
    trip_id: int | None = None


class PaymentCreate(BaseModel):
    """The counterparty org pays the owner org."""
    owner_org_id: int
    counterparty_org_id: int
    amount: Decimal
    tag: PaymentTag
    method: str = Field(min_length=1, max_length=50)
    reference: str | None = Field(default=None, max_length=100)
    remarks: str | None = Field(default=None, max_length=255)


class VoidRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=255)


# --- Response Schemas ---

class AccountResponse(BaseModel):
    id: int
    owner_org_id: int
    counterparty_org_id: int
    balance: int
    created_at: datetime

    model_config = {"from_attributes": True}


class BalanceResponse(BaseModel):
    owner_org_id: int
    counterparty_org_id: int
    balance: int


class LedgerEntryResponse(BaseModel):
    id: int
    account_id: int
    direction: EntryDirection
    amount: int
    balance_after: int
    reference_type: ReferenceType
    reference_id: int
    description: str
    created_at: datetime

    model_config = {"from_attributes": True}


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class TimelineResponse(BaseModel):
    entries: list[LedgerEntryResponse]
    pagination: Pagination


class InvoiceResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    account_id: int
    invoice_number: str
    amount: int
    description: str | None
    due_date: datetime | None
    trip_id: int | None
    status: InvoiceStatus
    void_reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class PaymentResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    account_id: int
    amount: int
    tag: PaymentTag
    method: str
    reference: str | None
    remarks: str | None
    is_void: bool
    void_reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class IntegrityViolation(BaseModel):
    kind: str
    account_id: int
    detail: str


class IntegrityResponse(BaseModel):
    is_balanced: bool
    accounts_checked: int
    violations: list[IntegrityViolation]
