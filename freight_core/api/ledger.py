"""
Ledger API endpoints.

These endpoints expose the ledger operations to HTTP clients.
The API layer is thin. It handles HTTP concerns (status codes,
response formatting) and delegates all business logic to the
LedgerService, one coordinated transaction per request.
"""

from fastapi import APIRouter, Depends, Query

from freight_core.api.dependencies import get_actor, get_coordinator, get_operator
from freight_core.api.errors import http_error
from freight_core.config import get_settings
from freight_core.exceptions import FreightCoreError
from freight_core.schemas.ledger import (
    AccountOpen,
    AccountResponse,
    BalanceResponse,
    IntegrityResponse,
    InvoiceCreate,
    InvoiceResponse,
    LedgerEntryResponse,
    Pagination,
    PaymentCreate,
    PaymentResponse,
    TimelineResponse,
    VoidRequest,
)
from freight_core.services.actor import Actor
from freight_core.services.coordinator import Coordinator
from freight_core.services.ledger_service import LedgerService

router = APIRouter(prefix="/ledger", tags=["Ledger"])


@router.post("/accounts", response_model=AccountResponse, status_code=201)
def open_account(
    request: AccountOpen,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """
    Open the account pair between two organizations.

    Both sides are created together. Opening an existing pair
    returns the existing owner-side account.
    """
    try:
        return coordinator.run(
            lambda db: AccountResponse.model_validate(
                LedgerService(db).open_account(
                    request.owner_org_id, request.counterparty_org_id, actor
                )
            )
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.get("/accounts", response_model=list[AccountResponse])
def list_accounts(
    org_id: int,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    try:
        return coordinator.run(
            lambda db: [
                AccountResponse.model_validate(a)
                for a in LedgerService(db).list_accounts(org_id, actor)
            ]
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.get("/balance", response_model=BalanceResponse)
def get_balance(
    owner_org_id: int,
    counterparty_org_id: int,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """
    What the counterparty owes the owner.

    Positive: the counterparty owes the owner. Negative: the
    owner owes the counterparty.
    """
    def operation(db):
        actor.require_member(owner_org_id, counterparty_org_id)
        return BalanceResponse(
            owner_org_id=owner_org_id,
            counterparty_org_id=counterparty_org_id,
            balance=LedgerService(db).get_balance(
                owner_org_id, counterparty_org_id
            ),
        )

    try:
        return coordinator.run(operation)
    except FreightCoreError as e:
        raise http_error(e)


@router.get("/accounts/{account_id}/entries", response_model=TimelineResponse)
def get_account_entries(
    account_id: int,
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """
    Ledger entries for an account, newest first.
    """
    limit = min(limit, get_settings().LEDGER_TIMELINE_MAX_LIMIT)

    def operation(db):
        entries, total = LedgerService(db).get_entries(
            account_id, actor, limit, offset
        )
        return TimelineResponse(
            entries=[LedgerEntryResponse.model_validate(e) for e in entries],
            pagination=Pagination(
                total=total,
                limit=limit,
                offset=offset,
                has_more=offset + len(entries) < total,
            ),
        )

    try:
        return coordinator.run(operation)
    except FreightCoreError as e:
        raise http_error(e)


@router.get("/accounts/{account_id}/invoices", response_model=list[InvoiceResponse])
def list_invoices(
    account_id: int,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """Invoices raised on an account, newest first."""
    try:
        return coordinator.run(
            lambda db: [
                InvoiceResponse.model_validate(i)
                for i in LedgerService(db).list_invoices(account_id, actor)
            ]
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.get("/accounts/{account_id}/payments", response_model=list[PaymentResponse])
def list_payments(
    account_id: int,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    try:
        return coordinator.run(
            lambda db: [
                PaymentResponse.model_validate(p)
                for p in LedgerService(db).list_payments(account_id, actor)
            ]
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.post("/invoices", response_model=InvoiceResponse, status_code=201)
def post_invoice(
    request: InvoiceCreate,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """Bill the counterparty; both mirrored balances move together."""
    try:
        return coordinator.run(
            lambda db: InvoiceResponse.model_validate(
                LedgerService(db).post_invoice(request, actor)
            )
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.post("/invoices/{invoice_id}/void", response_model=InvoiceResponse)
def void_invoice(
    invoice_id: int,
    request: VoidRequest,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    try:
        return coordinator.run(
            lambda db: InvoiceResponse.model_validate(
                LedgerService(db).void_invoice(invoice_id, request.reason, actor)
            )
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.post("/invoices/{invoice_id}/paid", response_model=InvoiceResponse)
def mark_invoice_paid(
    invoice_id: int,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    try:
        return coordinator.run(
            lambda db: InvoiceResponse.model_validate(
                LedgerService(db).mark_invoice_paid(invoice_id, actor)
            )
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.post("/payments", response_model=PaymentResponse, status_code=201)
def post_payment(
    request: PaymentCreate,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """Record a payment from the counterparty to the owner."""
    try:
        return coordinator.run(
            lambda db: PaymentResponse.model_validate(
                LedgerService(db).post_payment(request, actor)
            )
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.post("/payments/{payment_id}/void", response_model=PaymentResponse)
def void_payment(
    payment_id: int,
    request: VoidRequest,
    actor: Actor = Depends(get_actor),
    coordinator: Coordinator = Depends(get_coordinator),
):
    try:
        return coordinator.run(
            lambda db: PaymentResponse.model_validate(
                LedgerService(db).void_payment(payment_id, request.reason, actor)
            )
        )
    except FreightCoreError as e:
        raise http_error(e)


@router.get("/integrity", response_model=IntegrityResponse)
def check_integrity(
    actor: Actor = Depends(get_operator),
    coordinator: Coordinator = Depends(get_coordinator),
):
    """
    Reconcile every account against its mirror and its entries.

    Operational tooling; reads the whole ledger, so only the
    configured ledger operators may call it.
    """
    try:
        return coordinator.run(
            lambda db: IntegrityResponse(**LedgerService(db).check_integrity())
        )
    except FreightCoreError as e:
        raise http_error(e)
