"""
Tests for driver payment terms and their ledger effect.
"""

import pytest

from freight_core.exceptions import (
    InvalidAmountError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
)
from freight_core.models.enums import (
    DriverPaymentPayer,
    DriverPaymentStatus,
    InvoiceStatus,
)
from freight_core.schemas.driver_payment import DriverPaymentRecord
from freight_core.schemas.trip import DriverPaymentTerms, TripCreate
from freight_core.services.driver_payment_service import DriverPaymentService
from freight_core.services.ledger_service import LedgerService
from freight_core.services.trip_service import TripService


def create_trip(db_session, world, terms=None, **overrides):
    data = dict(
        source_org_id=world.source_id,
        destination_org_id=world.destination_id,
        driver_id=world.driver1_id,
        truck_id=world.truck1_id,
        start_point="Kochi",
        end_point="Madurai",
        driver_payment=terms,
    )
    data.update(overrides)
    trip = TripService(db_session).create_trip(TripCreate(**data), world.source_actor)
    db_session.commit()
    return trip


class TestTermsAtCreation:

    def test_source_paid_terms_do_not_touch_ledger(self, db_session, world):
        trip = create_trip(
            db_session, world,
            DriverPaymentTerms(total_amount=8000, paid_by=DriverPaymentPayer.SOURCE),
        )

        assert trip.driver_payment.total_amount == 8000
        assert trip.driver_payment.status == DriverPaymentStatus.PENDING
        ledger = LedgerService(db_session)
        assert ledger.get_balance(world.destination_id, world.source_id) == 0

    def test_destination_share_invoiced_to_source(self, db_session, world):
        create_trip(
            db_session, world,
            DriverPaymentTerms(
                total_amount=8000, paid_by=DriverPaymentPayer.DESTINATION
            ),
        )

        ledger = LedgerService(db_session)
        # The destination settles the driver on the source's behalf
        assert ledger.get_balance(world.destination_id, world.source_id) == 8000
        assert ledger.get_balance(world.source_id, world.destination_id) == -8000

    def test_split_invoices_only_destination_part(self, db_session, world):
        create_trip(
            db_session, world,
            DriverPaymentTerms(
                total_amount=8000,
                paid_by=DriverPaymentPayer.SPLIT,
                split_source_amount=5000,
                split_dest_amount=3000,
            ),
        )

        ledger = LedgerService(db_session)
        assert ledger.get_balance(world.destination_id, world.source_id) == 3000

    def test_guest_receiver_cannot_share(self, db_session, world):
        with pytest.raises(InvalidRequestError):
            create_trip(
                db_session, world,
                DriverPaymentTerms(
                    total_amount=8000, paid_by=DriverPaymentPayer.DESTINATION
                ),
                destination_org_id=None,
                receiver_phone="9888877777",
            )

    def test_split_must_add_up(self):
        with pytest.raises(ValueError):
            DriverPaymentTerms(
                total_amount=8000,
                paid_by=DriverPaymentPayer.SPLIT,
                split_source_amount=5000,
                split_dest_amount=2000,
            )


class TestSetTerms:

    def test_add_terms_later(self, db_session, world):
        trip = create_trip(db_session, world)
        service = DriverPaymentService(db_session)
        payment = service.set_terms(
            trip.id,
            DriverPaymentTerms(total_amount=6000, paid_by=DriverPaymentPayer.SOURCE),
            world.source_actor,
        )
        db_session.commit()

        assert payment.trip_id == trip.id
        assert service.get(trip.id, world.destination_actor).total_amount == 6000

    def test_replacing_terms_voids_previous_invoice(self, db_session, world):
        trip = create_trip(
            db_session, world,
            DriverPaymentTerms(
                total_amount=8000, paid_by=DriverPaymentPayer.DESTINATION
            ),
        )
        service = DriverPaymentService(db_session)
        service.set_terms(
            trip.id,
            DriverPaymentTerms(
                total_amount=9000,
                paid_by=DriverPaymentPayer.SPLIT,
                split_source_amount=6000,
                split_dest_amount=3000,
            ),
            world.source_actor,
        )
        db_session.commit()

        ledger = LedgerService(db_session)
        assert ledger.get_balance(world.destination_id, world.source_id) == 3000
        invoices = service._liability_invoices(trip)
        assert [i.status for i in invoices] == [InvoiceStatus.VOID, InvoiceStatus.OPEN]
        assert invoices[1].invoice_number == f"DRV-{trip.id}-2"

    def test_terms_fixed_after_payment(self, db_session, world):
        trip = create_trip(
            db_session, world,
            DriverPaymentTerms(total_amount=8000, paid_by=DriverPaymentPayer.SOURCE),
        )
        service = DriverPaymentService(db_session)
        service.record_payment(
            trip.id, DriverPaymentRecord(amount=1000), world.source_actor
        )
        db_session.commit()

        with pytest.raises(InvalidStateError):
            service.set_terms(
                trip.id,
                DriverPaymentTerms(total_amount=500, paid_by=DriverPaymentPayer.SOURCE),
                world.source_actor,
            )


class TestRecordPayment:

    def test_partial_then_full(self, db_session, world):
        trip = create_trip(
            db_session, world,
            DriverPaymentTerms(total_amount=8000, paid_by=DriverPaymentPayer.SOURCE),
        )
        service = DriverPaymentService(db_session)

        partial = service.record_payment(
            trip.id, DriverPaymentRecord(amount=3000), world.source_actor
        )
        db_session.commit()
        assert partial.paid_amount == 3000
        assert partial.status == DriverPaymentStatus.PARTIALLY_PAID

        full = service.record_payment(
            trip.id, DriverPaymentRecord(amount=5000, remarks="Settled"), world.source_actor
        )
        db_session.commit()
        assert full.paid_amount == 8000
        assert full.status == DriverPaymentStatus.PAID
        assert full.paid_at is not None

    def test_overpaying_driver_rejected(self, db_session, world):
        trip = create_trip(
            db_session, world,
            DriverPaymentTerms(total_amount=8000, paid_by=DriverPaymentPayer.SOURCE),
        )
        service = DriverPaymentService(db_session)
        with pytest.raises(InvalidAmountError):
            service.record_payment(
                trip.id, DriverPaymentRecord(amount=8001), world.source_actor
            )

    def test_no_terms(self, db_session, world):
        trip = create_trip(db_session, world)
        service = DriverPaymentService(db_session)
        with pytest.raises(NotFoundError):
            service.record_payment(
                trip.id, DriverPaymentRecord(amount=100), world.source_actor
            )


class TestCancellation:

    def test_cancel_voids_unpaid_liability(self, db_session, world):
        trip = create_trip(
            db_session, world,
            DriverPaymentTerms(
                total_amount=3000, paid_by=DriverPaymentPayer.DESTINATION
            ),
        )
        TripService(db_session).cancel_trip(
            trip.id, "Consignment withdrawn", world.source_actor
        )
        db_session.commit()

        ledger = LedgerService(db_session)
        assert ledger.get_balance(world.destination_id, world.source_id) == 0
        assert ledger.get_balance(world.source_id, world.destination_id) == 0
        invoices = DriverPaymentService(db_session)._liability_invoices(trip)
        assert [i.status for i in invoices] == [InvoiceStatus.VOID]
        assert ledger.check_integrity()["is_balanced"] is True

    def test_cancel_keeps_liability_once_driver_paid(self, db_session, world):
        trip = create_trip(
            db_session, world,
            DriverPaymentTerms(
                total_amount=3000, paid_by=DriverPaymentPayer.DESTINATION
            ),
        )
        DriverPaymentService(db_session).record_payment(
            trip.id, DriverPaymentRecord(amount=1000), world.destination_actor
        )
        TripService(db_session).cancel_trip(
            trip.id, "Truck broke down", world.source_actor
        )
        db_session.commit()

        ledger = LedgerService(db_session)
        assert ledger.get_balance(world.destination_id, world.source_id) == 3000

    def test_cancel_without_terms(self, db_session, world):
        trip = create_trip(db_session, world)
        cancelled = TripService(db_session).cancel_trip(
            trip.id, "Order withdrawn", world.source_actor
        )
        db_session.commit()
        assert cancelled.driver_payment is None


class TestPendingPayments:

    def test_lists_unsettled_for_either_side(self, db_session, world):
        first = create_trip(
            db_session, world,
            DriverPaymentTerms(total_amount=4000, paid_by=DriverPaymentPayer.SOURCE),
        )
        second = create_trip(
            db_session, world,
            DriverPaymentTerms(total_amount=2000, paid_by=DriverPaymentPayer.SOURCE),
            driver_id=world.driver2_id,
            truck_id=world.truck2_id,
        )
        service = DriverPaymentService(db_session)
        service.record_payment(
            second.id, DriverPaymentRecord(amount=2000), world.source_actor
        )
        db_session.commit()

        for actor, org_id in (
            (world.source_actor, world.source_id),
            (world.destination_actor, world.destination_id),
        ):
            pending = service.list_pending(org_id, actor)
            assert [p.trip_id for p in pending] == [first.id]

    def test_partially_paid_is_pending(self, db_session, world):
        trip = create_trip(
            db_session, world,
            DriverPaymentTerms(total_amount=4000, paid_by=DriverPaymentPayer.SOURCE),
        )
        service = DriverPaymentService(db_session)
        service.record_payment(
            trip.id, DriverPaymentRecord(amount=1000), world.source_actor
        )
        db_session.commit()

        pending = service.list_pending(world.source_id, world.source_actor)
        assert [p.status for p in pending] == [DriverPaymentStatus.PARTIALLY_PAID]

    def test_cancelled_unpaid_trip_is_not_pending(self, db_session, world):
        trip = create_trip(
            db_session, world,
            DriverPaymentTerms(total_amount=4000, paid_by=DriverPaymentPayer.SOURCE),
        )
        TripService(db_session).cancel_trip(trip.id, "Withdrawn", world.source_actor)
        db_session.commit()

        service = DriverPaymentService(db_session)
        assert service.list_pending(world.source_id, world.source_actor) == []

    def test_unrelated_org_sees_nothing(self, db_session, world):
        create_trip(
            db_session, world,
            DriverPaymentTerms(total_amount=4000, paid_by=DriverPaymentPayer.SOURCE),
        )
        service = DriverPaymentService(db_session)
        assert service.list_pending(world.other_id, world.outsider) == []

    def test_requires_membership(self, db_session, world):
        service = DriverPaymentService(db_session)
        with pytest.raises(PermissionDeniedError):
            service.list_pending(world.source_id, world.outsider)
