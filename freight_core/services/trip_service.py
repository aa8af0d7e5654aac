"""
Trip service: the trip lifecycle.

    CREATED -> LOADED -> IN_TRANSIT -> REACHED -> COMPLETED
       |         |          |
       +---------+----------+--> CANCELLED

Each operation:
1. Loads the trip with a row lock
2. Checks the actor may act on the trip
3. Checks the move against TRIP_TRANSITIONS
4. Writes the documentation (cards) and the status change
5. Appends a TripEvent and queues a notification

The documentation and the status change are written in the same
transaction. The caller controls the commit; if anything fails
the whole operation rolls back and no half-state is visible.
"""

import logging
from decimal import Decimal

from sqlalchemy import select, or_
from sqlalchemy.orm import Session

from freight_core.config import Settings, get_settings
from freight_core.exceptions import (
    AlreadyExistsError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    UnitMismatchError,
)
from freight_core.models.cards import (
    LoadCard,
    LoadCardItem,
    ReceiveCard,
    ReceiveCardItem,
)
from freight_core.models.enums import (
    DriverPaymentPayer,
    TripEventType,
    TripStatus,
)
from freight_core.models.organization import Driver, Organization, Truck
from freight_core.models.trip import Trip
from freight_core.models.trip_event import TripEvent
from freight_core.models.base import utcnow
from freight_core.schemas.trip import (
    AssignmentChange,
    LoadCardCreate,
    ReceiveCardCreate,
    TripCreate,
)
from freight_core.services import outbox
from freight_core.services.actor import Actor
from freight_core.services.driver_payment_service import DriverPaymentService
from freight_core.services.exclusivity_guard import ExclusivityGuard

logger = logging.getLogger(__name__)

# Targets reachable through transition_status. LOADED and COMPLETED
# are reached only by filing a card; CANCELLED only by cancel_trip.
MANUAL_TARGETS = {
    TripStatus.IN_TRANSIT: TripEventType.IN_TRANSIT,
    TripStatus.REACHED: TripEventType.REACHED,
}


class TripService:

    def __init__(self, db: Session, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()
        self.guard = ExclusivityGuard(db)

    # --- Helpers ---

    def _load_trip(self, trip_id: int) -> Trip:
        """Fetch the trip and hold its row lock until commit."""
        trip = self.db.execute(
            select(Trip).where(Trip.id == trip_id).with_for_update()
        ).scalar_one_or_none()
        if not trip:
            raise NotFoundError("Trip", trip_id)
        return trip

    def _require_party(self, trip: Trip, actor: Actor) -> None:
        actor.require_member(trip.source_org_id, trip.destination_org_id)

    def _require_receiver(self, trip: Trip, actor: Actor) -> None:
        if trip.destination_org_id is not None:
            actor.require_member(trip.destination_org_id)
        elif not actor.system and actor.phone != trip.receiver_phone:
            raise PermissionDeniedError(
                f"User {actor.user_id} is not the receiver of trip {trip.id}"
            )

    def _require_fleet(
        self, org_id: int, driver_id: int | None, truck_id: int | None
    ) -> None:
        """Check the driver and truck exist and belong to org_id."""
        if driver_id is not None:
            driver = self.db.get(Driver, driver_id)
            if not driver:
                raise NotFoundError("Driver", driver_id)
            if driver.org_id != org_id:
                raise InvalidRequestError(
                    f"Driver {driver_id} does not belong to organization {org_id}"
                )
        if truck_id is not None:
            truck = self.db.get(Truck, truck_id)
            if not truck:
                raise NotFoundError("Truck", truck_id)
            if truck.org_id != org_id:
                raise InvalidRequestError(
                    f"Truck {truck_id} does not belong to organization {org_id}"
                )

    def _record_event(
        self,
        trip: Trip,
        event_type: TripEventType,
        description: str,
        actor: Actor,
    ) -> TripEvent:
        event = TripEvent(
            trip_id=trip.id,
            event_type=event_type,
            description=description[:500],
            actor_user_id=actor.user_id,
        )
        trip.events.append(event)
        return event

    def _advance(
        self,
        trip: Trip,
        target: TripStatus,
        event_type: TripEventType,
        description: str,
        actor: Actor,
    ) -> Trip:
        """
        Move the trip to target, or raise InvalidStateError.

        Every status change goes through here.
        """
        if not trip.can_transition_to(target):
            raise InvalidStateError(
                f"Cannot move trip {trip.id} from "
                f"{trip.status.value} to {target.value}",
                trip.status,
            )

        previous = trip.status
        trip.status = target
        self._record_event(trip, event_type, description, actor)
        self.db.flush()

        logger.info(
            "Trip status changed",
            extra={
                "trip_id": trip.id,
                "from_status": previous.value,
                "to_status": target.value,
                "actor_user_id": actor.user_id,
            },
        )
        outbox.enqueue(self.db, "trip.status_changed", {
            "trip_id": trip.id,
            "from_status": previous.value,
            "to_status": target.value,
            "actor_user_id": actor.user_id,
        })
        return trip

    # --- Lifecycle ---

    def create_trip(self, request: TripCreate, actor: Actor) -> Trip:
        """
        Create a trip in CREATED and claim its driver and truck.

        Raises ResourceBusyError if either is on another active trip.
        """
        actor.require_member(request.source_org_id)

        if not self.db.get(Organization, request.source_org_id):
            raise NotFoundError("Organization", request.source_org_id)
        if (request.destination_org_id is None) == (request.receiver_phone is None):
            raise InvalidRequestError(
                "Exactly one of destination organization and receiver phone "
                "is required"
            )
        if request.destination_org_id is not None:
            if request.destination_org_id == request.source_org_id:
                raise InvalidRequestError(
                    "Source and destination organizations must be different"
                )
            if not self.db.get(Organization, request.destination_org_id):
                raise NotFoundError("Organization", request.destination_org_id)
        elif (
            request.driver_payment is not None
            and request.driver_payment.paid_by != DriverPaymentPayer.SOURCE
        ):
            raise InvalidRequestError(
                "A guest receiver cannot share the driver payment"
            )

        self._require_fleet(
            request.source_org_id, request.driver_id, request.truck_id
        )

        trip = Trip(
            source_org_id=request.source_org_id,
            destination_org_id=request.destination_org_id,
            receiver_phone=request.receiver_phone,
            status=TripStatus.CREATED,
            start_point=request.start_point,
            end_point=request.end_point,
            source_address=(
                request.source_address.model_dump()
                if request.source_address else None
            ),
            destination_address=(
                request.destination_address.model_dump()
                if request.destination_address else None
            ),
            estimated_distance_km=request.estimated_distance_km,
            estimated_arrival=request.estimated_arrival,
            notes=request.notes,
            created_by_user_id=actor.user_id,
        )
        # Check and claim in one step; inserts the trip
        self.guard.claim(trip, request.driver_id, request.truck_id)

        self._record_event(
            trip,
            TripEventType.TRIP_CREATED,
            f"Trip created: {trip.start_point} to {trip.end_point}",
            actor,
        )

        if request.driver_payment is not None:
            DriverPaymentService(self.db).attach(
                trip, request.driver_payment, actor
            )

        self.db.flush()

        logger.info(
            "Trip created",
            extra={
                "trip_id": trip.id,
                "source_org_id": trip.source_org_id,
                "driver_id": trip.driver_id,
                "truck_id": trip.truck_id,
            },
        )
        outbox.enqueue(self.db, "trip.created", {
            "trip_id": trip.id,
            "source_org_id": trip.source_org_id,
            "destination_org_id": trip.destination_org_id,
            "driver_id": trip.driver_id,
            "truck_id": trip.truck_id,
        })
        return trip

    def create_load_card(
        self, trip_id: int, request: LoadCardCreate, actor: Actor
    ) -> LoadCard:
        """File the load card and move the trip to LOADED."""
        trip = self._load_trip(trip_id)
        actor.require_member(trip.source_org_id)

        if trip.load_card is not None:
            raise AlreadyExistsError(f"Trip {trip.id} already has a load card")
        if trip.status != TripStatus.CREATED:
            raise InvalidStateError(
                f"Load card requires a CREATED trip "
                f"(status: {trip.status.value})",
                trip.status,
            )

        card = LoadCard(
            trip=trip,
            evidence_ids=list(request.evidence_ids),
            remarks=request.remarks,
            created_by_user_id=actor.user_id,
            items=[
                LoadCardItem(
                    name=item.name,
                    quantity=item.quantity,
                    unit=item.unit,
                    rate=item.rate,
                    grade=item.grade,
                )
                for item in request.items
            ],
        )
        self.db.add(card)
        self.db.flush()

        self._advance(
            trip,
            TripStatus.LOADED,
            TripEventType.LOAD_COMPLETED,
            f"Load card filed with {len(card.items)} item(s)",
            actor,
        )
        return card

    def transition_status(
        self,
        trip_id: int,
        target: TripStatus,
        actor: Actor,
        remarks: str | None = None,
    ) -> Trip:
        """
        Move the trip to IN_TRANSIT or REACHED.

        Asking for the status the trip already has succeeds and
        changes nothing.
        """
        if target not in MANUAL_TARGETS:
            raise InvalidStateError(
                f"Status {target.value} cannot be set directly"
            )

        trip = self._load_trip(trip_id)
        self._require_party(trip, actor)

        if trip.status == target:
            return trip

        description = f"Trip marked {target.value}"
        if remarks:
            description = f"{description}: {remarks}"
        return self._advance(
            trip, target, MANUAL_TARGETS[target], description, actor
        )

    def create_receive_card(
        self, trip_id: int, request: ReceiveCardCreate, actor: Actor
    ) -> ReceiveCard:
        """
        File the receive card and move the trip to COMPLETED.

        Every load line must be answered exactly once, in the unit
        it was loaded in.
        """
        trip = self._load_trip(trip_id)
        self._require_receiver(trip, actor)

        if trip.receive_card is not None:
            raise AlreadyExistsError(
                f"Trip {trip.id} already has a receive card"
            )
        if trip.status != TripStatus.REACHED or trip.load_card is None:
            raise InvalidStateError(
                f"Receive card requires a REACHED trip "
                f"(status: {trip.status.value})",
                trip.status,
            )

        load_items = {item.id: item for item in trip.load_card.items}
        tolerance = 1 + Decimal(self.settings.RECEIVE_TOLERANCE_PERCENT) / 100

        lines = []
        seen = set()
        for line in request.items:
            load_item = load_items.get(line.load_item_id)
            if load_item is None:
                raise NotFoundError("Load item", line.load_item_id)
            if line.load_item_id in seen:
                raise InvalidRequestError(
                    f"Load item {line.load_item_id} is received more than once"
                )
            seen.add(line.load_item_id)

            if line.unit != load_item.unit:
                raise UnitMismatchError(load_item.id, load_item.unit, line.unit)
            if line.quantity > load_item.quantity * tolerance:
                raise InvalidRequestError(
                    f"Received {line.quantity} of load item {load_item.id} "
                    f"exceeds loaded {load_item.quantity} beyond tolerance"
                )

            lines.append(
                ReceiveCardItem(
                    load_item_id=load_item.id,
                    name=load_item.name,
                    quantity=line.quantity,
                    unit=line.unit,
                    shortage=load_item.quantity - line.quantity,
                )
            )

        missing = sorted(set(load_items) - seen)
        if missing:
            raise InvalidRequestError(
                f"Load item(s) {', '.join(str(i) for i in missing)} "
                f"not received"
            )

        card = ReceiveCard(
            trip=trip,
            evidence_ids=list(request.evidence_ids),
            remarks=request.remarks,
            created_by_user_id=actor.user_id,
            items=lines,
        )
        self.db.add(card)
        self.db.flush()

        if card.has_shortage:
            logger.warning(
                "Shortage on receipt",
                extra={
                    "trip_id": trip.id,
                    "short_items": sum(1 for i in card.items if i.shortage > 0),
                },
            )

        self._advance(
            trip,
            TripStatus.COMPLETED,
            TripEventType.TRIP_COMPLETED,
            f"Receive card filed with {len(card.items)} item(s)",
            actor,
        )
        return card

    def cancel_trip(self, trip_id: int, reason: str, actor: Actor) -> Trip:
        """
        Cancel a trip that has not reached its destination.

        The driver and truck become free as soon as this commits.
        An unpaid driver payment liability is voided with it.
        """
        trip = self._load_trip(trip_id)
        self._require_party(trip, actor)

        self._advance(
            trip,
            TripStatus.CANCELLED,
            TripEventType.TRIP_CANCELLED,
            f"Trip cancelled: {reason}",
            actor,
        )
        trip.cancel_reason = reason
        trip.cancelled_at = utcnow()
        trip.cancelled_by_user_id = actor.user_id
        DriverPaymentService(self.db).release(trip, actor)
        self.db.flush()
        return trip

    def change_assignment(
        self, trip_id: int, request: AssignmentChange, actor: Actor
    ) -> Trip:
        """Swap the driver and/or truck of a trip still on its way."""
        trip = self._load_trip(trip_id)
        self._require_party(trip, actor)

        if not trip.is_active:
            raise InvalidStateError(
                f"Cannot reassign trip {trip.id} "
                f"(status: {trip.status.value})",
                trip.status,
            )

        driver_id = request.driver_id or trip.driver_id
        truck_id = request.truck_id or trip.truck_id
        driver_changed = driver_id != trip.driver_id
        truck_changed = truck_id != trip.truck_id
        if not driver_changed and not truck_changed:
            raise InvalidRequestError(
                f"Trip {trip.id} already uses driver {driver_id} "
                f"and truck {truck_id}"
            )

        self._require_fleet(
            trip.source_org_id,
            driver_id if driver_changed else None,
            truck_id if truck_changed else None,
        )

        old_driver_id, old_truck_id = trip.driver_id, trip.truck_id
        self.guard.claim(trip, driver_id, truck_id)

        if driver_changed:
            self._record_event(
                trip,
                TripEventType.DRIVER_CHANGED,
                f"Driver {old_driver_id} replaced by {driver_id}: "
                f"{request.reason}",
                actor,
            )
        if truck_changed:
            self._record_event(
                trip,
                TripEventType.TRUCK_CHANGED,
                f"Truck {old_truck_id} replaced by {truck_id}: "
                f"{request.reason}",
                actor,
            )
        self.db.flush()

        logger.info(
            "Trip reassigned",
            extra={
                "trip_id": trip.id,
                "driver_id": trip.driver_id,
                "truck_id": trip.truck_id,
            },
        )
        outbox.enqueue(self.db, "trip.reassigned", {
            "trip_id": trip.id,
            "driver_id": trip.driver_id,
            "truck_id": trip.truck_id,
            "previous_driver_id": old_driver_id,
            "previous_truck_id": old_truck_id,
        })
        return trip

    # --- Reads ---

    def get_trip(self, trip_id: int, actor: Actor) -> Trip:
        trip = self.db.get(Trip, trip_id)
        if not trip:
            raise NotFoundError("Trip", trip_id)
        if not (
            actor.is_member(trip.source_org_id)
            or actor.is_member(trip.destination_org_id)
            or (trip.receiver_phone and actor.phone == trip.receiver_phone)
        ):
            raise PermissionDeniedError(
                f"User {actor.user_id} cannot view trip {trip.id}"
            )
        return trip

    def list_trips(
        self, org_id: int, actor: Actor, status: TripStatus | None = None
    ) -> list[Trip]:
        """Trips the organization sends or receives, newest first."""
        actor.require_member(org_id)
        query = select(Trip).where(
            or_(Trip.source_org_id == org_id, Trip.destination_org_id == org_id)
        )
        if status is not None:
            query = query.where(Trip.status == status)
        trips = self.db.execute(
            query.order_by(Trip.created_at.desc(), Trip.id.desc())
        ).scalars().all()
        return list(trips)

    def get_events(self, trip_id: int, actor: Actor) -> list[TripEvent]:
        trip = self.get_trip(trip_id, actor)
        return list(trip.events)
