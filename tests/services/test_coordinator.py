"""
Tests for the Coordinator.

Tests cover:
- Commit and result passing
- Typed errors propagate unchanged and roll back
- An abort after the card insert leaves no partial write
- Transient store errors are retried, then reported as conflicts
- Notifications go out only after commit, and notifier
  failures never fail the operation
"""

import logging
from decimal import Decimal

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, OperationalError

from freight_core.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
)
from freight_core.models import LoadCard, Trip, TripEvent
from freight_core.models.enums import QuantityUnit, TripStatus
from freight_core.schemas.trip import LoadCardCreate, LoadItemCreate, TripCreate
from freight_core.services.coordinator import Coordinator, is_transient
from freight_core.services.trip_service import TripService


class StoreError(Exception):
    """Stands in for a DBAPI exception carrying a SQLSTATE."""

    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


def operational(message, pgcode=None):
    return OperationalError("UPDATE accounts ...", {}, StoreError(message, pgcode))


def create_trip(coordinator, world):
    request = TripCreate(
        source_org_id=world.source_id,
        destination_org_id=world.destination_id,
        driver_id=world.driver1_id,
        truck_id=world.truck1_id,
        start_point="Pune",
        end_point="Nashik",
    )
    return coordinator.run(
        lambda db: TripService(db).create_trip(request, world.source_actor)
    )


def load_request():
    return LoadCardCreate(
        items=[
            LoadItemCreate(name="Grapes", quantity=Decimal("30"), unit=QuantityUnit.CRATE)
        ],
        evidence_ids=["att-1"],
    )


class TestRun:

    def test_commits_and_returns_result(self, coordinator, session_factory, world):
        trip = create_trip(coordinator, world)

        with session_factory() as session:
            stored = session.get(Trip, trip.id)
            assert stored.status == TripStatus.CREATED

    def test_typed_error_propagates_unchanged(self, coordinator, world):
        with pytest.raises(NotFoundError):
            coordinator.run(
                lambda db: TripService(db).get_trip(9999, world.source_actor)
            )

    def test_abort_after_card_insert_leaves_nothing(
        self, coordinator, session_factory, world
    ):
        trip = create_trip(coordinator, world)

        def file_then_fail(db):
            TripService(db).create_load_card(trip.id, load_request(), world.source_actor)
            raise RuntimeError("worker crashed after the card insert")

        with pytest.raises(RuntimeError):
            coordinator.run(file_then_fail)

        with session_factory() as session:
            stored = session.get(Trip, trip.id)
            assert stored.status == TripStatus.CREATED
            assert session.execute(select(func.count(LoadCard.id))).scalar_one() == 0
            events = session.execute(
                select(func.count(TripEvent.id)).where(TripEvent.trip_id == trip.id)
            ).scalar_one()
            assert events == 1

    def test_integrity_error_becomes_conflict(self, coordinator):
        def violate(db):
            raise IntegrityError("INSERT ...", {}, StoreError("UNIQUE constraint failed"))

        with pytest.raises(ConflictError):
            coordinator.run(violate)


class TestRetries:

    def test_transient_error_is_retried(self, coordinator):
        calls = []

        def flaky(db):
            calls.append(1)
            if len(calls) < 3:
                raise operational("could not serialize access", "40001")
            return "done"

        assert coordinator.run(flaky) == "done"
        assert len(calls) == 3

    def test_retries_are_bounded(self, coordinator, test_settings):
        calls = []

        def always_locked(db):
            calls.append(1)
            raise operational("database is locked")

        with pytest.raises(ConflictError):
            coordinator.run(always_locked)
        assert len(calls) == test_settings.MAX_TRANSACTION_ATTEMPTS

    def test_non_transient_error_not_retried(self, coordinator):
        calls = []

        def broken(db):
            calls.append(1)
            raise operational("no such table: trips")

        with pytest.raises(OperationalError):
            coordinator.run(broken)
        assert len(calls) == 1

    def test_application_error_not_retried(self, coordinator):
        calls = []

        def invalid(db):
            calls.append(1)
            raise InvalidStateError("not allowed")

        with pytest.raises(InvalidStateError):
            coordinator.run(invalid)
        assert len(calls) == 1

    @pytest.mark.parametrize("pgcode", ["40001", "40P01", "55P03", "57014"])
    def test_transient_codes(self, pgcode):
        assert is_transient(operational("conflict", pgcode))

    def test_other_codes_are_not_transient(self):
        assert not is_transient(operational("syntax error", "42601"))


class TestNotifications:

    def test_events_published_after_commit(self, coordinator, notifier, world):
        trip = create_trip(coordinator, world)
        assert notifier.names() == ["trip.created"]
        assert notifier.events[0][1]["trip_id"] == trip.id

    def test_aborted_transaction_publishes_nothing(
        self, coordinator, notifier, world
    ):
        trip = create_trip(coordinator, world)
        notifier.events.clear()

        def file_then_fail(db):
            TripService(db).create_load_card(trip.id, load_request(), world.source_actor)
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            coordinator.run(file_then_fail)
        assert notifier.events == []

    def test_notifier_failure_is_swallowed(
        self, session_factory, test_settings, world, caplog
    ):
        class BrokenNotifier:
            def publish(self, event, payload):
                raise ConnectionError("notification service down")

        coordinator = Coordinator(
            session_factory, notifier=BrokenNotifier(), settings=test_settings
        )
        with caplog.at_level(logging.ERROR, logger="freight_core"):
            trip = create_trip(coordinator, world)

        assert trip.id is not None
        assert "Notification failed" in caplog.text
        with session_factory() as session:
            assert session.get(Trip, trip.id) is not None
