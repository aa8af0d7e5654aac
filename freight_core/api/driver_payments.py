"""
Driver payment API endpoints.
"""

from fastapi import APIRouter, Depends

from freight_core.api.dependencies import get_actor, get_coordinator
from freight_core.api.errors import http_error
from freight_core.exceptions import FreightCoreError
from freight_core.schemas.driver_payment import DriverPaymentRecord
from freight_core.schemas.trip import DriverPaymentResponse, DriverPaymentTerms
from freight_core.services.actor import Actor
from freight_core.services.coordinator import Coordinator
from freight_core.services.driver_payment_service import DriverPaymentService

router = APIRouter(tags=["Driver Payments"])


@router.put("/trips/{trip_id}/driver-payment", response_model=DriverPaymentResponse)
def set_driver_payment_terms(
    trip_id: int,
    request: DriverPaymentTerms,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """
    Create or replace the driver payment terms of a trip.

    The destination's share is invoiced to the source in the
    same transaction.
    """
    try:
        return coordinator.run(
            lambda db: DriverPaymentResponse.model_validate(
                DriverPaymentService(db).set_terms(trip_id, request, actor)
            )
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.post(
    "/trips/{trip_id}/driver-payment/record",
    response_model=DriverPaymentResponse,
)
def record_driver_payment(
    trip_id: int,
    request: DriverPaymentRecord,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    try:
        return coordinator.run(
            lambda db: DriverPaymentResponse.model_validate(
                DriverPaymentService(db).record_payment(trip_id, request, actor)
            )
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.get("/trips/{trip_id}/driver-payment", response_model=DriverPaymentResponse)
def get_driver_payment(
    trip_id: int,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    try:
        return coordinator.run(
            lambda db: DriverPaymentResponse.model_validate(
                DriverPaymentService(db).get(trip_id, actor)
            )
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.get("/driver-payments/pending", response_model=list[DriverPaymentResponse])
def list_pending_driver_payments(
    org_id: int,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """Unsettled driver payments on the org's trips, oldest first."""
    try:
        return coordinator.run(
            lambda db: [
                DriverPaymentResponse.model_validate(p)
                for p in DriverPaymentService(db).list_pending(org_id, actor)
            ]
        )
    except FreightCoreError as e:
        raise http_error(e)
