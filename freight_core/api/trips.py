"""
Trip API endpoints.

Thin layer over TripService: every request runs as one
coordinated transaction, and responses are built inside it so
the trip's cards and events are loaded before the session closes.
"""

from fastapi import APIRouter, Depends

from freight_core.api.dependencies import get_actor, get_coordinator
from freight_core.api.errors import http_error
from freight_core.exceptions import FreightCoreError
from freight_core.models.enums import TripStatus
from freight_core.schemas.trip import (
    AssignmentChange,
    LoadCardCreate,
    ReceiveCardCreate,
    TripCancel,
    TripCreate,
    TripDetailResponse,
    TripEventResponse,
    TripResponse,
    TripStatusUpdate,
)
from freight_core.services.actor import Actor
from freight_core.services.coordinator import Coordinator
from freight_core.services.trip_service import TripService

router = APIRouter(prefix="/trips", tags=["Trips"])


@router.post("", response_model=TripDetailResponse, status_code=201)
def create_trip(
    request: TripCreate,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """
    Create a trip and claim its driver and truck.

    Fails with 409 if the driver or truck is on another active trip.
    """
    try:
        return coordinator.run(
            lambda db: TripDetailResponse.model_validate(
                TripService(db).create_trip(request, actor)
            )
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.get("", response_model=list[TripResponse])
def list_trips(
    org_id: int,
    status: TripStatus | None = None,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    try:
        return coordinator.run(
            lambda db: [
                TripResponse.model_validate(t)
                for t in TripService(db).list_trips(org_id, actor, status)
            ]
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.get("/{trip_id}", response_model=TripDetailResponse)
def get_trip(
    trip_id: int,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    try:
        return coordinator.run(
            lambda db: TripDetailResponse.model_validate(
                TripService(db).get_trip(trip_id, actor)
            )
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.get("/{trip_id}/events", response_model=list[TripEventResponse])
def get_trip_events(
    trip_id: int,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """The trip's audit trail, oldest first."""
    try:
        return coordinator.run(
            lambda db: [
                TripEventResponse.model_validate(e)
                for e in TripService(db).get_events(trip_id, actor)
            ]
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.post(
    "/{trip_id}/load-card",
    response_model=TripDetailResponse,
    status_code=201,
)
def create_load_card(
    trip_id: int,
    request: LoadCardCreate,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """File the load card; the trip moves to LOADED."""
    try:
        return coordinator.run(
            lambda db: TripDetailResponse.model_validate(
                TripService(db).create_load_card(trip_id, request, actor).trip
            )
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.post("/{trip_id}/status", response_model=TripResponse)
def update_trip_status(
    trip_id: int,
    request: TripStatusUpdate,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """Move the trip to IN_TRANSIT or REACHED."""
    try:
        return coordinator.run(
            lambda db: TripResponse.model_validate(
                TripService(db).transition_status(
                    trip_id, request.status, actor, request.remarks
                )
            )
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.post(
    "/{trip_id}/receive-card",
    response_model=TripDetailResponse,
    status_code=201,
)
def create_receive_card(
    trip_id: int,
    request: ReceiveCardCreate,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """File the receive card; the trip moves to COMPLETED."""
    try:
        return coordinator.run(
            lambda db: TripDetailResponse.model_validate(
                TripService(db).create_receive_card(trip_id, request, actor).trip
            )
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.post("/{trip_id}/cancel", response_model=TripResponse)
def cancel_trip(
    trip_id: int,
    request: TripCancel,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    try:
        return coordinator.run(
            lambda db: TripResponse.model_validate(
                TripService(db).cancel_trip(trip_id, request.reason, actor)
            )
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.post("/{trip_id}/assignment", response_model=TripResponse)
def change_assignment(
    trip_id: int,
    request: AssignmentChange,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """Replace the driver and/or truck of an active trip."""
    try:
        return coordinator.run(
            lambda db: TripResponse.model_validate(
                TripService(db).change_assignment(trip_id, request, actor)
            )
        )
    except FreightCoreError as e:
        raise http_error(e)
