"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from freight_core.models.base import Base
from freight_core.models.enums import (
    TripStatus,
    TripEventType,
    QuantityUnit,
    EntryDirection,
    ReferenceType,
    InvoiceStatus,
    PaymentTag,
    DriverPaymentPayer,
    DriverPaymentStatus,
    ACTIVE_TRIP_STATUSES,
)
from freight_core.models.organization import Organization, Driver, Truck
from freight_core.models.trip import Trip, TRIP_TRANSITIONS
from freight_core.models.trip_event import TripEvent
from freight_core.models.cards import (
    LoadCard,
    LoadCardItem,
    ReceiveCard,
    ReceiveCardItem,
)
from freight_core.models.driver_payment import DriverPayment
from freight_core.models.account import Account
from freight_core.models.ledger_entry import LedgerEntry
from freight_core.models.invoice import Invoice, Payment

__all__ = [
    "Base",
    "TripStatus",
    "TripEventType",
    "QuantityUnit",
    "EntryDirection",
    "ReferenceType",
    "InvoiceStatus",
    "PaymentTag",
    "DriverPaymentPayer",
    "DriverPaymentStatus",
    "ACTIVE_TRIP_STATUSES",
    "Organization",
    "Driver",
    "Truck",
    "Trip",
    "TRIP_TRANSITIONS",
    "TripEvent",
    "LoadCard",
    "LoadCardItem",
    "ReceiveCard",
    "ReceiveCardItem",
    "DriverPayment",
    "Account",
    "LedgerEntry",
    "Invoice",
    "Payment",
]
