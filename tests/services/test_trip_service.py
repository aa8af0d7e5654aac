"""
Tests for the TripService.

Tests cover:
- Trip creation and validation
- The lifecycle: load card, transit, reach, receive card
- Illegal and repeated transitions
- Receive card matching, units, and shortages
- Cancellation and reassignment
- Authorization by organization membership
"""

from decimal import Decimal

import pytest

from freight_core.exceptions import (
    AlreadyExistsError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    UnitMismatchError,
)
from freight_core.models.enums import TripEventType, TripStatus, QuantityUnit
from freight_core.schemas.trip import (
    AssignmentChange,
    LoadCardCreate,
    LoadItemCreate,
    ReceiveCardCreate,
    ReceiveItemCreate,
    TripCreate,
)
from freight_core.services.actor import Actor
from freight_core.services.trip_service import TripService


# --- Helpers to reduce repetition ---

def trip_request(world, **overrides):
    data = dict(
        source_org_id=world.source_id,
        destination_org_id=world.destination_id,
        driver_id=world.driver1_id,
        truck_id=world.truck1_id,
        start_point="Bengaluru",
        end_point="Chennai",
    )
    data.update(overrides)
    return TripCreate(**data)


def load_request():
    return LoadCardCreate(
        items=[
            LoadItemCreate(name="Tomatoes", quantity=Decimal("100"), unit=QuantityUnit.KG),
            LoadItemCreate(name="Onions", quantity=Decimal("40"), unit=QuantityUnit.BAG),
        ],
        evidence_ids=["att-load-1"],
    )


def full_receive(card, **quantities):
    """Receive every load line; quantities override by item name."""
    return ReceiveCardCreate(
        items=[
            ReceiveItemCreate(
                load_item_id=item.id,
                quantity=quantities.get(item.name, item.quantity),
                unit=item.unit,
            )
            for item in card.items
        ],
        evidence_ids=["att-recv-1"],
    )


def reached_trip(service, world):
    """Create a trip and drive it to REACHED. Returns (trip, load_card)."""
    trip = service.create_trip(trip_request(world), world.source_actor)
    card = service.create_load_card(trip.id, load_request(), world.source_actor)
    service.transition_status(trip.id, TripStatus.IN_TRANSIT, world.source_actor)
    service.transition_status(trip.id, TripStatus.REACHED, world.source_actor)
    return trip, card


# --- Creation ---

class TestCreateTrip:

    def test_create_trip_succeeds(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        db_session.commit()

        assert trip.id is not None
        assert trip.status == TripStatus.CREATED
        assert trip.driver_id == world.driver1_id
        assert trip.truck_id == world.truck1_id
        assert trip.created_by_user_id == "user-source"

    def test_creation_writes_event(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        db_session.commit()

        events = service.get_events(trip.id, world.source_actor)
        assert [e.event_type for e in events] == [TripEventType.TRIP_CREATED]

    def test_guest_receiver_trip(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(
            trip_request(world, destination_org_id=None, receiver_phone="9888877777"),
            world.source_actor,
        )
        db_session.commit()

        assert trip.destination_org_id is None
        assert trip.receiver_phone == "9888877777"

    def test_only_source_member_can_create(self, db_session, world):
        service = TripService(db_session)
        with pytest.raises(PermissionDeniedError):
            service.create_trip(trip_request(world), world.destination_actor)

    def test_same_source_and_destination_rejected(self, db_session, world):
        service = TripService(db_session)
        with pytest.raises(InvalidRequestError):
            service.create_trip(
                trip_request(world, destination_org_id=world.source_id),
                world.source_actor,
            )

    def test_unknown_destination_rejected(self, db_session, world):
        service = TripService(db_session)
        with pytest.raises(NotFoundError):
            service.create_trip(
                trip_request(world, destination_org_id=9999),
                world.source_actor,
            )

    def test_unknown_driver_rejected(self, db_session, world):
        service = TripService(db_session)
        with pytest.raises(NotFoundError):
            service.create_trip(
                trip_request(world, driver_id=9999), world.source_actor
            )

    def test_foreign_truck_rejected(self, db_session, world):
        service = TripService(db_session)
        with pytest.raises(InvalidRequestError, match="does not belong"):
            service.create_trip(
                trip_request(world, truck_id=world.other_truck_id),
                world.source_actor,
            )

    def test_creation_is_announced(self, db_session, world):
        service = TripService(db_session)
        service.create_trip(trip_request(world), world.source_actor)

        queued = [event for event, _ in db_session.info["outbox"]]
        assert queued == ["trip.created"]


# --- Load card ---

class TestLoadCard:

    def test_load_card_moves_trip_to_loaded(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        card = service.create_load_card(trip.id, load_request(), world.source_actor)
        db_session.commit()

        assert trip.status == TripStatus.LOADED
        assert len(card.items) == 2
        assert card.evidence_ids == ["att-load-1"]

    def test_second_load_card_rejected(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        service.create_load_card(trip.id, load_request(), world.source_actor)
        db_session.commit()

        with pytest.raises(AlreadyExistsError):
            service.create_load_card(trip.id, load_request(), world.source_actor)

    def test_load_card_on_cancelled_trip_rejected(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        service.cancel_trip(trip.id, "Order withdrawn", world.source_actor)
        db_session.commit()

        with pytest.raises(InvalidStateError):
            service.create_load_card(trip.id, load_request(), world.source_actor)

    def test_destination_cannot_file_load_card(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        db_session.commit()

        with pytest.raises(PermissionDeniedError):
            service.create_load_card(
                trip.id, load_request(), world.destination_actor
            )

    def test_unknown_trip(self, db_session, world):
        service = TripService(db_session)
        with pytest.raises(NotFoundError):
            service.create_load_card(9999, load_request(), world.source_actor)


# --- Status transitions ---

class TestTransitions:

    def test_in_transit_requires_loaded(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        db_session.commit()

        with pytest.raises(InvalidStateError):
            service.transition_status(
                trip.id, TripStatus.IN_TRANSIT, world.source_actor
            )

    def test_cannot_skip_in_transit(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        service.create_load_card(trip.id, load_request(), world.source_actor)
        db_session.commit()

        with pytest.raises(InvalidStateError):
            service.transition_status(
                trip.id, TripStatus.REACHED, world.source_actor
            )

    @pytest.mark.parametrize("target", [
        TripStatus.LOADED, TripStatus.COMPLETED, TripStatus.CANCELLED,
    ])
    def test_card_driven_targets_cannot_be_set(self, db_session, world, target):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        db_session.commit()

        with pytest.raises(InvalidStateError):
            service.transition_status(trip.id, target, world.source_actor)

    def test_destination_may_mark_reached(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        service.create_load_card(trip.id, load_request(), world.source_actor)
        service.transition_status(trip.id, TripStatus.IN_TRANSIT, world.source_actor)
        service.transition_status(
            trip.id, TripStatus.REACHED, world.destination_actor
        )
        db_session.commit()

        assert trip.status == TripStatus.REACHED

    def test_outsider_cannot_transition(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        service.create_load_card(trip.id, load_request(), world.source_actor)
        db_session.commit()

        with pytest.raises(PermissionDeniedError):
            service.transition_status(
                trip.id, TripStatus.IN_TRANSIT, world.outsider
            )

    def test_repeating_current_status_is_a_no_op(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        service.create_load_card(trip.id, load_request(), world.source_actor)
        service.transition_status(trip.id, TripStatus.IN_TRANSIT, world.source_actor)
        db_session.commit()
        events_before = len(service.get_events(trip.id, world.source_actor))
        db_session.info.pop("outbox", None)

        again = service.transition_status(
            trip.id, TripStatus.IN_TRANSIT, world.source_actor
        )
        db_session.commit()

        assert again.status == TripStatus.IN_TRANSIT
        assert len(service.get_events(trip.id, world.source_actor)) == events_before
        assert "outbox" not in db_session.info

    def test_events_follow_the_lifecycle(self, db_session, world):
        service = TripService(db_session)
        trip, card = reached_trip(service, world)
        service.create_receive_card(
            trip.id, full_receive(card), world.destination_actor
        )
        db_session.commit()

        events = service.get_events(trip.id, world.source_actor)
        assert [e.event_type for e in events] == [
            TripEventType.TRIP_CREATED,
            TripEventType.LOAD_COMPLETED,
            TripEventType.IN_TRANSIT,
            TripEventType.REACHED,
            TripEventType.TRIP_COMPLETED,
        ]


# --- Receive card ---

class TestReceiveCard:

    def test_receive_card_completes_trip(self, db_session, world):
        service = TripService(db_session)
        trip, card = reached_trip(service, world)
        receive = service.create_receive_card(
            trip.id, full_receive(card), world.destination_actor
        )
        db_session.commit()

        assert trip.status == TripStatus.COMPLETED
        assert all(item.shortage == 0 for item in receive.items)
        assert receive.has_shortage is False

    def test_shortage_is_loaded_minus_received(self, db_session, world):
        service = TripService(db_session)
        trip, card = reached_trip(service, world)
        receive = service.create_receive_card(
            trip.id,
            full_receive(card, Tomatoes=Decimal("92.5")),
            world.destination_actor,
        )
        db_session.commit()

        by_name = {item.name: item for item in receive.items}
        assert by_name["Tomatoes"].shortage == Decimal("7.5")
        assert by_name["Onions"].shortage == 0
        assert receive.has_shortage is True

    def test_small_excess_within_tolerance(self, db_session, world):
        service = TripService(db_session)
        trip, card = reached_trip(service, world)
        receive = service.create_receive_card(
            trip.id,
            full_receive(card, Tomatoes=Decimal("104")),
            world.destination_actor,
        )
        db_session.commit()

        by_name = {item.name: item for item in receive.items}
        assert by_name["Tomatoes"].shortage == Decimal("-4")

    def test_excess_beyond_tolerance_rejected(self, db_session, world):
        service = TripService(db_session)
        trip, card = reached_trip(service, world)
        db_session.commit()

        with pytest.raises(InvalidRequestError, match="tolerance"):
            service.create_receive_card(
                trip.id,
                full_receive(card, Tomatoes=Decimal("106")),
                world.destination_actor,
            )

    def test_unit_mismatch_writes_nothing(self, db_session, world):
        service = TripService(db_session)
        trip, card = reached_trip(service, world)
        db_session.commit()
        tomatoes, onions = card.items

        request = ReceiveCardCreate(
            items=[
                ReceiveItemCreate(
                    load_item_id=tomatoes.id,
                    quantity=Decimal("100"),
                    unit=QuantityUnit.BOX,
                ),
                ReceiveItemCreate(
                    load_item_id=onions.id,
                    quantity=Decimal("40"),
                    unit=QuantityUnit.BAG,
                ),
            ],
            evidence_ids=["att-recv-1"],
        )
        with pytest.raises(UnitMismatchError) as exc_info:
            service.create_receive_card(trip.id, request, world.destination_actor)
        db_session.rollback()

        assert exc_info.value.load_item_id == tomatoes.id
        trip = service.get_trip(trip.id, world.source_actor)
        assert trip.status == TripStatus.REACHED
        assert trip.receive_card is None

    def test_unknown_load_item_rejected(self, db_session, world):
        service = TripService(db_session)
        trip, card = reached_trip(service, world)
        db_session.commit()

        request = ReceiveCardCreate(
            items=[
                ReceiveItemCreate(
                    load_item_id=9999, quantity=Decimal("1"), unit=QuantityUnit.KG
                )
            ],
            evidence_ids=["att-recv-1"],
        )
        with pytest.raises(NotFoundError):
            service.create_receive_card(trip.id, request, world.destination_actor)

    def test_missing_line_rejected(self, db_session, world):
        service = TripService(db_session)
        trip, card = reached_trip(service, world)
        db_session.commit()
        tomatoes = card.items[0]

        request = ReceiveCardCreate(
            items=[
                ReceiveItemCreate(
                    load_item_id=tomatoes.id,
                    quantity=Decimal("100"),
                    unit=QuantityUnit.KG,
                )
            ],
            evidence_ids=["att-recv-1"],
        )
        with pytest.raises(InvalidRequestError, match="not received"):
            service.create_receive_card(trip.id, request, world.destination_actor)

    def test_duplicate_line_rejected(self, db_session, world):
        service = TripService(db_session)
        trip, card = reached_trip(service, world)
        db_session.commit()
        tomatoes = card.items[0]

        line = ReceiveItemCreate(
            load_item_id=tomatoes.id, quantity=Decimal("50"), unit=QuantityUnit.KG
        )
        request = ReceiveCardCreate(items=[line, line], evidence_ids=["att-1"])
        with pytest.raises(InvalidRequestError, match="more than once"):
            service.create_receive_card(trip.id, request, world.destination_actor)

    def test_receive_before_reached_rejected(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        card = service.create_load_card(trip.id, load_request(), world.source_actor)
        db_session.commit()

        with pytest.raises(InvalidStateError):
            service.create_receive_card(
                trip.id, full_receive(card), world.destination_actor
            )

    def test_second_receive_card_rejected(self, db_session, world):
        service = TripService(db_session)
        trip, card = reached_trip(service, world)
        service.create_receive_card(
            trip.id, full_receive(card), world.destination_actor
        )
        db_session.commit()

        with pytest.raises(AlreadyExistsError):
            service.create_receive_card(
                trip.id, full_receive(card), world.destination_actor
            )

    def test_source_cannot_file_receive_card(self, db_session, world):
        service = TripService(db_session)
        trip, card = reached_trip(service, world)
        db_session.commit()

        with pytest.raises(PermissionDeniedError):
            service.create_receive_card(
                trip.id, full_receive(card), world.source_actor
            )

    def test_guest_receiver_identified_by_phone(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(
            trip_request(world, destination_org_id=None, receiver_phone="9888877777"),
            world.source_actor,
        )
        card = service.create_load_card(trip.id, load_request(), world.source_actor)
        service.transition_status(trip.id, TripStatus.IN_TRANSIT, world.source_actor)
        service.transition_status(trip.id, TripStatus.REACHED, world.source_actor)
        db_session.commit()

        stranger = Actor("guest-2", phone="9111111111")
        with pytest.raises(PermissionDeniedError):
            service.create_receive_card(trip.id, full_receive(card), stranger)

        guest = Actor("guest-1", phone="9888877777")
        service.create_receive_card(trip.id, full_receive(card), guest)
        db_session.commit()

        assert trip.status == TripStatus.COMPLETED


# --- Cancellation ---

class TestCancelTrip:

    @pytest.mark.parametrize("steps", [0, 1, 2])
    def test_cancel_before_reached(self, db_session, world, steps):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        if steps >= 1:
            service.create_load_card(trip.id, load_request(), world.source_actor)
        if steps >= 2:
            service.transition_status(
                trip.id, TripStatus.IN_TRANSIT, world.source_actor
            )

        service.cancel_trip(trip.id, "Truck broke down", world.destination_actor)
        db_session.commit()

        assert trip.status == TripStatus.CANCELLED
        assert trip.cancel_reason == "Truck broke down"
        assert trip.cancelled_by_user_id == "user-destination"
        assert trip.cancelled_at is not None

    def test_cancel_after_reached_rejected(self, db_session, world):
        service = TripService(db_session)
        trip, _ = reached_trip(service, world)
        db_session.commit()

        with pytest.raises(InvalidStateError):
            service.cancel_trip(trip.id, "Too late", world.source_actor)

    def test_cancel_twice_rejected(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        service.cancel_trip(trip.id, "Order withdrawn", world.source_actor)
        db_session.commit()

        with pytest.raises(InvalidStateError):
            service.cancel_trip(trip.id, "Again", world.source_actor)

    def test_cancel_releases_driver_and_truck(self, db_session, world):
        service = TripService(db_session)
        first = service.create_trip(trip_request(world), world.source_actor)
        service.cancel_trip(first.id, "Order withdrawn", world.source_actor)
        db_session.commit()

        second = service.create_trip(trip_request(world), world.source_actor)
        db_session.commit()

        assert second.driver_id == first.driver_id
        assert second.truck_id == first.truck_id


# --- Reassignment ---

class TestChangeAssignment:

    def test_change_driver(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        service.change_assignment(
            trip.id,
            AssignmentChange(driver_id=world.driver2_id, reason="Driver ill"),
            world.source_actor,
        )
        db_session.commit()

        assert trip.driver_id == world.driver2_id
        assert trip.truck_id == world.truck1_id
        events = service.get_events(trip.id, world.source_actor)
        assert events[-1].event_type == TripEventType.DRIVER_CHANGED
        assert "Driver ill" in events[-1].description

    def test_change_both_writes_two_events(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        service.create_load_card(trip.id, load_request(), world.source_actor)
        service.change_assignment(
            trip.id,
            AssignmentChange(
                driver_id=world.driver2_id,
                truck_id=world.truck2_id,
                reason="Swap",
            ),
            world.source_actor,
        )
        db_session.commit()

        types = [e.event_type for e in service.get_events(trip.id, world.source_actor)]
        assert types[-2:] == [
            TripEventType.DRIVER_CHANGED, TripEventType.TRUCK_CHANGED,
        ]

    def test_reassign_after_reached_rejected(self, db_session, world):
        service = TripService(db_session)
        trip, _ = reached_trip(service, world)
        db_session.commit()

        with pytest.raises(InvalidStateError):
            service.change_assignment(
                trip.id,
                AssignmentChange(driver_id=world.driver2_id, reason="Late"),
                world.source_actor,
            )

    def test_foreign_driver_rejected(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        db_session.commit()

        with pytest.raises(InvalidRequestError):
            service.change_assignment(
                trip.id,
                AssignmentChange(driver_id=world.other_driver_id, reason="Swap"),
                world.source_actor,
            )

    def test_unchanged_assignment_rejected(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        db_session.commit()

        with pytest.raises(InvalidRequestError):
            service.change_assignment(
                trip.id,
                AssignmentChange(driver_id=world.driver1_id, reason="Same"),
                world.source_actor,
            )


# --- Reads ---

class TestReads:

    def test_list_trips_for_either_side(self, db_session, world):
        service = TripService(db_session)
        service.create_trip(trip_request(world), world.source_actor)
        db_session.commit()

        assert len(service.list_trips(world.source_id, world.source_actor)) == 1
        assert len(
            service.list_trips(world.destination_id, world.destination_actor)
        ) == 1
        assert service.list_trips(
            world.source_id, world.source_actor, TripStatus.COMPLETED
        ) == []

    def test_list_requires_membership(self, db_session, world):
        service = TripService(db_session)
        with pytest.raises(PermissionDeniedError):
            service.list_trips(world.source_id, world.outsider)

    def test_outsider_cannot_view_trip(self, db_session, world):
        service = TripService(db_session)
        trip = service.create_trip(trip_request(world), world.source_actor)
        db_session.commit()

        with pytest.raises(PermissionDeniedError):
            service.get_trip(trip.id, world.outsider)
