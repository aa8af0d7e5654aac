"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored. An invalid trip status
or entry direction is caught at the database level, not
just in Python validation.
"""

import enum


class TripStatus(str, enum.Enum):
    """Lifecycle phases of a trip."""
    CREATED = "CREATED"
    LOADED = "LOADED"
    IN_TRANSIT = "IN_TRANSIT"
    REACHED = "REACHED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# A driver or truck bound to a trip in one of these statuses is busy.
ACTIVE_TRIP_STATUSES = (
    TripStatus.CREATED,
    TripStatus.LOADED,
    TripStatus.IN_TRANSIT,
)


class TripEventType(str, enum.Enum):
    TRIP_CREATED = "TRIP_CREATED"
    LOAD_COMPLETED = "LOAD_COMPLETED"
    IN_TRANSIT = "IN_TRANSIT"
    REACHED = "REACHED"
    TRIP_COMPLETED = "TRIP_COMPLETED"
    TRIP_CANCELLED = "TRIP_CANCELLED"
    DRIVER_CHANGED = "DRIVER_CHANGED"
    TRUCK_CHANGED = "TRUCK_CHANGED"


class QuantityUnit(str, enum.Enum):
    KG = "KG"
    BAG = "BAG"
    TON = "TON"
    CRATE = "CRATE"
    BOX = "BOX"
    OTHER = "OTHER"


class EntryDirection(str, enum.Enum):
    """
    Direction of a ledger entry, from the account owner's view.

    DEBIT increases what the owner is owed by the counterparty.
    CREDIT decreases it.
    """
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class ReferenceType(str, enum.Enum):
    """The kind of document a ledger entry originates from."""
    INVOICE = "INVOICE"
    PAYMENT = "PAYMENT"


class InvoiceStatus(str, enum.Enum):
    OPEN = "OPEN"
    PAID = "PAID"
    VOID = "VOID"


class PaymentTag(str, enum.Enum):
    ADVANCE = "ADVANCE"
    PARTIAL = "PARTIAL"
    FINAL = "FINAL"
    DUE = "DUE"
    OTHER = "OTHER"


class DriverPaymentPayer(str, enum.Enum):
    """Which side of the trip pays the driver."""
    SOURCE = "SOURCE"
    DESTINATION = "DESTINATION"
    SPLIT = "SPLIT"


class DriverPaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
