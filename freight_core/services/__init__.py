"""Business logic services."""

from freight_core.services.actor import Actor
from freight_core.services.coordinator import (
    Coordinator,
    LoggingNotifier,
    Notifier,
)
from freight_core.services.driver_payment_service import DriverPaymentService
from freight_core.services.exclusivity_guard import ExclusivityGuard
from freight_core.services.ledger_service import LedgerService
from freight_core.services.trip_service import TripService

__all__ = [
    "Actor",
    "Coordinator",
    "LoggingNotifier",
    "Notifier",
    "DriverPaymentService",
    "ExclusivityGuard",
    "LedgerService",
    "TripService",
]
