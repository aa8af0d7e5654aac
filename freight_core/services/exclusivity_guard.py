"""
Resource exclusivity guard.

A driver or truck may be bound to at most one trip whose status
is CREATED, LOADED, or IN_TRANSIT. The guard checks that and
claims the resources in one call, inside the caller's
transaction:

1. Lock the driver row, then the truck row (SELECT ... FOR UPDATE).
   Every claim on the same driver or truck queues behind this
   lock, including claims for resources that have no trip yet.
2. Look for another active trip using either resource.
3. Write the claim (assign the ids to the trip and flush).

There is no separate release. A trip stops holding its driver
and truck as soon as its status leaves the active set.
"""

import logging

from sqlalchemy import select, or_
from sqlalchemy.orm import Session

from freight_core.exceptions import NotFoundError, ResourceBusyError
from freight_core.models.enums import ACTIVE_TRIP_STATUSES
from freight_core.models.organization import Driver, Truck
from freight_core.models.trip import Trip

logger = logging.getLogger(__name__)


class ExclusivityGuard:
    """
    Check-and-claim for drivers and trucks.

    The session is the caller's; the guard never commits. Keep
    the check and the claim in this one method so no call site
    can split them across transactions.
    """

    def __init__(self, db: Session):
        self.db = db

    def claim(self, trip: Trip, driver_id: int, truck_id: int) -> Trip:
        """
        Bind driver_id and truck_id to trip, or raise ResourceBusyError.

        trip may be new (not yet added to the session) or an
        existing trip being reassigned; an existing trip is never
        reported as conflicting with itself.
        """
        # Lock order is always driver, then truck
        driver = self.db.execute(
            select(Driver).where(Driver.id == driver_id).with_for_update()
        ).scalar_one_or_none()
        if not driver:
            raise NotFoundError("Driver", driver_id)

        truck = self.db.execute(
            select(Truck).where(Truck.id == truck_id).with_for_update()
        ).scalar_one_or_none()
        if not truck:
            raise NotFoundError("Truck", truck_id)

        query = (
            select(Trip.id, Trip.driver_id, Trip.truck_id)
            .where(
                or_(Trip.driver_id == driver_id, Trip.truck_id == truck_id),
                Trip.status.in_(ACTIVE_TRIP_STATUSES),
            )
            .order_by(Trip.id)
            .with_for_update()
        )
        if trip.id is not None:
            query = query.where(Trip.id != trip.id)

        conflict = self.db.execute(query).first()
        if conflict:
            resource, resource_id = (
                ("driver", driver_id)
                if conflict.driver_id == driver_id
                else ("truck", truck_id)
            )
            logger.info(
                "Resource busy",
                extra={
                    "resource": resource,
                    "resource_id": resource_id,
                    "conflicting_trip_id": conflict.id,
                },
            )
            raise ResourceBusyError(resource, resource_id, conflict.id)

        # Claim immediately, in the same transaction as the check
        trip.driver_id = driver_id
        trip.truck_id = truck_id
        if trip not in self.db:
            self.db.add(trip)
        self.db.flush()
        return trip
