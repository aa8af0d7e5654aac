"""
Driver payment service.

Tracks what a trip's driver is owed and what has been handed
over. When the destination organization carries all or part of
the driver payment, it is settling a cost of the source
organization, so the destination's share is posted to the ledger
as an invoice from the destination to the source.
"""

import logging

from sqlalchemy import select, update, or_
from sqlalchemy.orm import Session

from freight_core.exceptions import (
    InvalidAmountError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
)
from freight_core.models.base import utcnow
from freight_core.models.driver_payment import DriverPayment
from freight_core.models.enums import (
    DriverPaymentPayer,
    DriverPaymentStatus,
    InvoiceStatus,
    TripStatus,
)
from freight_core.models.invoice import Invoice
from freight_core.models.trip import Trip
from freight_core.schemas.driver_payment import DriverPaymentRecord
from freight_core.schemas.ledger import InvoiceCreate
from freight_core.schemas.trip import DriverPaymentTerms
from freight_core.services.actor import Actor
from freight_core.services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

LIABILITY_PREFIX = "DRV-"


class DriverPaymentService:

    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerService(db)

    def _load_trip(self, trip_id: int) -> Trip:
        trip = self.db.execute(
            select(Trip).where(Trip.id == trip_id).with_for_update()
        ).scalar_one_or_none()
        if not trip:
            raise NotFoundError("Trip", trip_id)
        return trip

    def _liability_invoices(self, trip: Trip) -> list[Invoice]:
        return list(
            self.db.execute(
                select(Invoice)
                .where(
                    Invoice.trip_id == trip.id,
                    Invoice.invoice_number.startswith(
                        f"{LIABILITY_PREFIX}{trip.id}"
                    ),
                )
                .order_by(Invoice.id)
            ).scalars().all()
        )

    def _post_liability(
        self, trip: Trip, payment: DriverPayment, actor: Actor
    ) -> Invoice | None:
        """Invoice the source for the destination's share, if any."""
        share = payment.destination_share
        if share <= 0:
            return None

        previous = len(self._liability_invoices(trip))
        number = f"{LIABILITY_PREFIX}{trip.id}"
        if previous:
            number = f"{number}-{previous + 1}"

        return self.ledger.post_invoice(
            InvoiceCreate(
                owner_org_id=trip.destination_org_id,
                counterparty_org_id=trip.source_org_id,
                invoice_number=number,
                amount=share,
                description=f"Driver payment for trip {trip.id}",
                trip_id=trip.id,
            ),
            actor.as_system(),
        )

    def attach(
        self, trip: Trip, terms: DriverPaymentTerms, actor: Actor
    ) -> DriverPayment:
        """
        Record payment terms on a trip that has none yet.

        Runs inside the caller's transaction; used by trip
        creation and by set_terms.
        """
        if (
            trip.destination_org_id is None
            and terms.paid_by != DriverPaymentPayer.SOURCE
        ):
            raise InvalidRequestError(
                "A guest receiver cannot share the driver payment"
            )

        payment = DriverPayment(
            trip=trip,
            total_amount=terms.total_amount,
            paid_by=terms.paid_by,
            split_source_amount=terms.split_source_amount,
            split_dest_amount=terms.split_dest_amount,
            paid_amount=0,
            status=DriverPaymentStatus.PENDING,
            remarks=terms.remarks,
        )
        self.db.add(payment)
        self.db.flush()

        self._post_liability(trip, payment, actor)
        return payment

    def set_terms(
        self, trip_id: int, terms: DriverPaymentTerms, actor: Actor
    ) -> DriverPayment:
        """
        Create or replace the driver payment terms of a trip.

        Terms are fixed once any amount has been paid. Replacing
        terms voids the previous liability invoice and posts a new
        one for the new destination share.
        """
        trip = self._load_trip(trip_id)
        actor.require_member(trip.source_org_id)

        if trip.status == TripStatus.CANCELLED:
            raise InvalidStateError(
                f"Trip {trip.id} is cancelled", trip.status
            )

        existing = trip.driver_payment
        if existing is None:
            return self.attach(trip, terms, actor)

        if existing.paid_amount > 0:
            raise InvalidStateError(
                f"Driver payment terms for trip {trip.id} are fixed "
                f"once payment has been recorded"
            )

        for invoice in self._liability_invoices(trip):
            if invoice.status != InvoiceStatus.VOID:
                self.ledger.void_invoice(
                    invoice.id, "Driver payment terms changed",
                    actor.as_system(),
                )

        # delete-orphan removes the old row on flush
        trip.driver_payment = None
        self.db.flush()

        logger.info(
            "Driver payment terms replaced",
            extra={"trip_id": trip.id, "total_amount": terms.total_amount},
        )
        return self.attach(trip, terms, actor)

    def record_payment(
        self, trip_id: int, record: DriverPaymentRecord, actor: Actor
    ) -> DriverPayment:
        """Add an amount handed to the driver."""
        trip = self._load_trip(trip_id)
        actor.require_member(trip.source_org_id, trip.destination_org_id)

        payment = trip.driver_payment
        if payment is None:
            raise NotFoundError("Driver payment for trip", trip.id)
        if payment.status == DriverPaymentStatus.PAID:
            raise InvalidStateError(
                f"Driver payment for trip {trip.id} is already settled",
                payment.status,
            )

        remaining = payment.total_amount - payment.paid_amount
        if record.amount > remaining:
            raise InvalidAmountError(
                f"Amount {record.amount} exceeds the remaining "
                f"{remaining} owed to the driver",
                record.amount,
            )

        self.db.execute(
            update(DriverPayment)
            .where(DriverPayment.id == payment.id)
            .values(paid_amount=DriverPayment.paid_amount + record.amount)
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(payment)

        if payment.paid_amount >= payment.total_amount:
            payment.status = DriverPaymentStatus.PAID
            payment.paid_at = utcnow()
        else:
            payment.status = DriverPaymentStatus.PARTIALLY_PAID
        if record.remarks:
            payment.remarks = record.remarks
        self.db.flush()

        logger.info(
            "Driver payment recorded",
            extra={
                "trip_id": trip.id,
                "amount": record.amount,
                "paid_amount": payment.paid_amount,
            },
        )
        return payment

    def release(self, trip: Trip, actor: Actor) -> None:
        """
        Void the open liability invoices of a trip being cancelled.

        Nothing is reversed once the driver has been paid; the
        amount handed over stays a real cost between the orgs.
        """
        payment = trip.driver_payment
        if payment is None or payment.paid_amount > 0:
            return

        voided = 0
        for invoice in self._liability_invoices(trip):
            if invoice.status == InvoiceStatus.OPEN:
                self.ledger.void_invoice(
                    invoice.id, "Trip cancelled", actor.as_system()
                )
                voided += 1
        if voided:
            logger.info(
                "Driver payment liability released",
                extra={"trip_id": trip.id, "invoices_voided": voided},
            )

    def list_pending(self, org_id: int, actor: Actor) -> list[DriverPayment]:
        """Unsettled driver payments on trips the org is a party to."""
        actor.require_member(org_id)
        payments = self.db.execute(
            select(DriverPayment)
            .join(DriverPayment.trip)
            .where(
                DriverPayment.status.in_([
                    DriverPaymentStatus.PENDING,
                    DriverPaymentStatus.PARTIALLY_PAID,
                ]),
                or_(
                    Trip.source_org_id == org_id,
                    Trip.destination_org_id == org_id,
                ),
                # Unpaid terms of a cancelled trip are released
                or_(
                    Trip.status != TripStatus.CANCELLED,
                    DriverPayment.paid_amount > 0,
                ),
            )
            .order_by(DriverPayment.created_at, DriverPayment.id)
        ).scalars().all()
        return list(payments)

    def get(self, trip_id: int, actor: Actor) -> DriverPayment:
        trip = self.db.get(Trip, trip_id)
        if not trip:
            raise NotFoundError("Trip", trip_id)
        actor.require_member(trip.source_org_id, trip.destination_org_id)
        if trip.driver_payment is None:
            raise NotFoundError("Driver payment for trip", trip.id)
        return trip.driver_payment
