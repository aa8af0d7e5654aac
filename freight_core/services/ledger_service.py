"""
Ledger service: money owed between organizations.

This service enforces the fundamental rules:
1. Every posting is mirrored: the owner's account and the
   counterparty's account change by the same amount with
   opposite sign, in the same transaction
2. Balances change only through SQL increment/decrement on
   locked rows, never read-modify-write in Python
3. Entries are immutable (append-only); corrections are
   reversing entries
4. Amounts are positive whole minor currency units

No other service writes to accounts or ledger entries directly.
All money movements go through this service.
"""

import logging
from decimal import Decimal

from sqlalchemy import select, update, func, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from freight_core.config import Settings, get_settings
from freight_core.exceptions import (
    AlreadyExistsError,
    InvalidAmountError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
)
from freight_core.models.account import Account
from freight_core.models.base import utcnow
from freight_core.models.enums import (
    EntryDirection,
    InvoiceStatus,
    ReferenceType,
)
from freight_core.models.invoice import Invoice, Payment
from freight_core.models.ledger_entry import LedgerEntry
from freight_core.models.organization import Organization
from freight_core.models.trip import Trip
from freight_core.schemas.ledger import InvoiceCreate, PaymentCreate
from freight_core.services import outbox
from freight_core.services.actor import Actor

logger = logging.getLogger(__name__)


def to_minor_units(amount) -> int:
    """
    Validate a monetary amount and return it as an int.

    Accepts int or Decimal holding a whole number of minor units.
    Floats are refused outright; they cannot represent money
    exactly.
    """
    if isinstance(amount, bool) or not isinstance(amount, (int, Decimal)):
        raise InvalidAmountError(
            f"Amount must be an integer number of minor units, "
            f"got {type(amount).__name__}",
            amount,
        )
    if isinstance(amount, Decimal):
        if not amount.is_finite() or amount != amount.to_integral_value():
            raise InvalidAmountError(
                f"Amount {amount} is not a whole number of minor units",
                amount,
            )
        amount = int(amount)
    if amount <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {amount}", amount)
    return amount


class LedgerService:
    """
    Posts and reads balances between organization pairs.

    Runs inside the session it is given and never commits;
    the Coordinator owns the transaction.
    """

    def __init__(self, db: Session, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    # --- Accounts ---

    def _get_org(self, org_id: int) -> Organization:
        org = self.db.get(Organization, org_id)
        if not org:
            raise NotFoundError("Organization", org_id)
        return org

    def _find_account(
        self, owner_org_id: int, counterparty_org_id: int
    ) -> Account | None:
        return self.db.execute(
            select(Account).where(
                Account.owner_org_id == owner_org_id,
                Account.counterparty_org_id == counterparty_org_id,
            )
        ).scalar_one_or_none()

    def _get_or_create_account(
        self, owner_org_id: int, counterparty_org_id: int
    ) -> Account:
        """
        Return the account for (owner, counterparty), creating it lazily.

        Two transactions may both find no row and both insert.
        The loser hits the unique constraint; a savepoint keeps
        the rest of its transaction intact and it re-reads the
        winner's row.
        """
        account = self._find_account(owner_org_id, counterparty_org_id)
        if account:
            return account

        savepoint = self.db.begin_nested()
        try:
            account = Account(
                owner_org_id=owner_org_id,
                counterparty_org_id=counterparty_org_id,
                balance=0,
            )
            self.db.add(account)
            self.db.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "Account creation race, re-reading",
                extra={
                    "owner_org_id": owner_org_id,
                    "counterparty_org_id": counterparty_org_id,
                },
            )
            account = self.db.execute(
                select(Account).where(
                    Account.owner_org_id == owner_org_id,
                    Account.counterparty_org_id == counterparty_org_id,
                )
            ).scalar_one()
        return account

    def _account_pair(
        self, owner_org_id: int, counterparty_org_id: int
    ) -> tuple[Account, Account]:
        if owner_org_id == counterparty_org_id:
            raise InvalidRequestError(
                "Owner and counterparty organizations must be different"
            )
        self._get_org(owner_org_id)
        self._get_org(counterparty_org_id)
        return (
            self._get_or_create_account(owner_org_id, counterparty_org_id),
            self._get_or_create_account(counterparty_org_id, owner_org_id),
        )

    def open_account(
        self, owner_org_id: int, counterparty_org_id: int, actor: Actor
    ) -> Account:
        """
        Open the account pair between two organizations.

        Returns the owner's side. Opening an existing pair is not
        an error; the existing account is returned.
        """
        actor.require_member(owner_org_id)
        owner_account, _ = self._account_pair(owner_org_id, counterparty_org_id)
        return owner_account

    def get_account(self, account_id: int, actor: Actor) -> Account:
        account = self.db.get(Account, account_id)
        if not account:
            raise NotFoundError("Account", account_id)
        actor.require_member(account.owner_org_id, account.counterparty_org_id)
        return account

    def list_accounts(self, org_id: int, actor: Actor) -> list[Account]:
        """All accounts owned by org_id, newest first."""
        actor.require_member(org_id)
        accounts = self.db.execute(
            select(Account)
            .where(Account.owner_org_id == org_id)
            .order_by(Account.created_at.desc(), Account.id.desc())
        ).scalars().all()
        return list(accounts)

    def get_balance(self, owner_org_id: int, counterparty_org_id: int) -> int:
        """
        What counterparty_org_id owes owner_org_id, in minor units.

        Read straight from the account row. Entry history is for
        audit; it is never summed on this path.
        """
        balance = self.db.execute(
            select(Account.balance).where(
                Account.owner_org_id == owner_org_id,
                Account.counterparty_org_id == counterparty_org_id,
            )
        ).scalar_one_or_none()
        return balance or 0

    # --- Posting ---

    def _lock_accounts(self, *accounts: Account) -> None:
        """Row-lock the accounts in ascending id order."""
        self.db.execute(
            select(Account.id)
            .where(Account.id.in_([a.id for a in accounts]))
            .order_by(Account.id)
            .with_for_update()
        ).all()

    def _apply_delta(self, account: Account, delta: int) -> int:
        """Atomically add delta to the balance; return the new balance."""
        self.db.execute(
            update(Account)
            .where(Account.id == account.id)
            .values(balance=Account.balance + delta)
            .execution_options(synchronize_session=False)
        )
        # The loaded object still holds the pre-update balance
        self.db.expire(account, ["balance"])
        # Read back inside the same transaction, under the row lock
        return self.db.execute(
            select(Account.balance).where(Account.id == account.id)
        ).scalar_one()

    def _post_mirrored(
        self,
        owner_account: Account,
        mirror_account: Account,
        owner_delta: int,
        reference_type: ReferenceType,
        reference_id: int,
        owner_description: str,
        mirror_description: str,
    ) -> list[LedgerEntry]:
        """
        Apply owner_delta to the owner and -owner_delta to the mirror.

        Writes one entry per side. The caller is responsible for
        calling db.commit() after this method returns successfully.
        """
        self._lock_accounts(owner_account, mirror_account)

        legs = sorted(
            [
                (owner_account, owner_delta, owner_description),
                (mirror_account, -owner_delta, mirror_description),
            ],
            key=lambda leg: leg[0].id,
        )

        entries = []
        for account, delta, description in legs:
            balance_after = self._apply_delta(account, delta)
            entry = LedgerEntry(
                account_id=account.id,
                direction=(
                    EntryDirection.DEBIT if delta > 0 else EntryDirection.CREDIT
                ),
                amount=abs(delta),
                balance_after=balance_after,
                reference_type=reference_type,
                reference_id=reference_id,
                description=description[:255],
            )
            self.db.add(entry)
            entries.append(entry)

        self.db.flush()
        return entries

    def post_invoice(self, request: InvoiceCreate, actor: Actor) -> Invoice:
        """
        Bill the counterparty: the owner is owed `amount` more.

        Accounting:
            DEBIT  owner's account   (counterparty owes the owner more)
            CREDIT mirror account    (counterparty's payable grows)
        """
        amount = to_minor_units(request.amount)
        actor.require_member(request.owner_org_id)

        owner_account, mirror_account = self._account_pair(
            request.owner_org_id, request.counterparty_org_id
        )

        duplicate = self.db.execute(
            select(Invoice.id).where(
                Invoice.account_id == owner_account.id,
                Invoice.invoice_number == request.invoice_number,
            )
        ).first()
        if duplicate:
            raise AlreadyExistsError(
                f"Invoice {request.invoice_number} already exists "
                f"for account {owner_account.id}"
            )

        if request.trip_id is not None and not self.db.get(Trip, request.trip_id):
            raise NotFoundError("Trip", request.trip_id)

        invoice = Invoice(
            account_id=owner_account.id,
            invoice_number=request.invoice_number,
            amount=amount,
            description=request.description,
            due_date=request.due_date,
            trip_id=request.trip_id,
            created_by_user_id=actor.user_id,
        )
        self.db.add(invoice)
        self.db.flush()

        owner_name = owner_account.owner_org.name
        suffix = f": {request.description}" if request.description else ""
        self._post_mirrored(
            owner_account,
            mirror_account,
            amount,
            ReferenceType.INVOICE,
            invoice.id,
            f"Invoice {request.invoice_number}{suffix}",
            f"Invoice {request.invoice_number} from {owner_name}",
        )

        logger.info(
            "Invoice posted",
            extra={
                "invoice_id": invoice.id,
                "owner_org_id": request.owner_org_id,
                "counterparty_org_id": request.counterparty_org_id,
                "amount": amount,
            },
        )
        outbox.enqueue(self.db, "ledger.invoice_posted", {
            "invoice_id": invoice.id,
            "owner_org_id": request.owner_org_id,
            "counterparty_org_id": request.counterparty_org_id,
            "amount": amount,
        })
        return invoice

    def post_payment(self, request: PaymentCreate, actor: Actor) -> Payment:
        """
        Record that the counterparty paid the owner.

        Accounting:
            CREDIT owner's account   (counterparty owes the owner less)
            DEBIT  mirror account    (counterparty's payable shrinks)

        A payment larger than the outstanding balance is refused
        unless ALLOW_ADVANCE_PAYMENTS is set.
        """
        amount = to_minor_units(request.amount)
        actor.require_member(request.owner_org_id, request.counterparty_org_id)

        owner_account, mirror_account = self._account_pair(
            request.owner_org_id, request.counterparty_org_id
        )

        if not self.settings.ALLOW_ADVANCE_PAYMENTS:
            # The rows are locked from here to commit, so the
            # balance checked is the balance the payment applies to
            self._lock_accounts(owner_account, mirror_account)
            outstanding = self.get_balance(
                request.owner_org_id, request.counterparty_org_id
            )
            if amount > outstanding:
                raise InvalidAmountError(
                    f"Payment of {amount} exceeds outstanding balance "
                    f"of {outstanding}",
                    amount,
                )

        payment = Payment(
            account_id=owner_account.id,
            amount=amount,
            tag=request.tag,
            method=request.method,
            reference=request.reference,
            remarks=request.remarks,
            created_by_user_id=actor.user_id,
        )
        self.db.add(payment)
        self.db.flush()

        suffix = f": {request.remarks}" if request.remarks else ""
        self._post_mirrored(
            owner_account,
            mirror_account,
            -amount,
            ReferenceType.PAYMENT,
            payment.id,
            f"Payment received - {request.tag.value} ({request.method}){suffix}",
            f"Payment sent to {owner_account.owner_org.name} - {request.tag.value}",
        )

        logger.info(
            "Payment posted",
            extra={
                "payment_id": payment.id,
                "owner_org_id": request.owner_org_id,
                "counterparty_org_id": request.counterparty_org_id,
                "amount": amount,
            },
        )
        outbox.enqueue(self.db, "ledger.payment_posted", {
            "payment_id": payment.id,
            "owner_org_id": request.owner_org_id,
            "counterparty_org_id": request.counterparty_org_id,
            "amount": amount,
        })
        return payment

    # --- Corrections ---

    def _mirror_of(self, account: Account) -> Account:
        mirror = self._find_account(
            account.counterparty_org_id, account.owner_org_id
        )
        if not mirror:
            raise NotFoundError(
                "Mirror account",
                f"{account.counterparty_org_id}->{account.owner_org_id}",
            )
        return mirror

    def void_invoice(self, invoice_id: int, reason: str, actor: Actor) -> Invoice:
        """
        Cancel an invoice by posting the reversing pair.

        The original entries stay; the invoice is flagged VOID.
        """
        invoice = self.db.execute(
            select(Invoice).where(Invoice.id == invoice_id).with_for_update()
        ).scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        actor.require_member(invoice.account.owner_org_id)
        if invoice.status == InvoiceStatus.VOID:
            raise InvalidStateError(
                f"Invoice {invoice.invoice_number} is already void",
                invoice.status,
            )

        owner_account = invoice.account
        self._post_mirrored(
            owner_account,
            self._mirror_of(owner_account),
            -invoice.amount,
            ReferenceType.INVOICE,
            invoice.id,
            f"Void invoice {invoice.invoice_number}: {reason}",
            f"Void invoice {invoice.invoice_number} from "
            f"{owner_account.owner_org.name}",
        )

        invoice.status = InvoiceStatus.VOID
        invoice.void_reason = reason
        invoice.voided_at = utcnow()
        self.db.flush()

        logger.info(
            "Invoice voided",
            extra={"invoice_id": invoice.id, "amount": invoice.amount},
        )
        outbox.enqueue(self.db, "ledger.invoice_voided", {
            "invoice_id": invoice.id,
            "amount": invoice.amount,
        })
        return invoice

    def void_payment(self, payment_id: int, reason: str, actor: Actor) -> Payment:
        """Cancel a payment by posting the reversing pair."""
        payment = self.db.execute(
            select(Payment).where(Payment.id == payment_id).with_for_update()
        ).scalar_one_or_none()
        if not payment:
            raise NotFoundError("Payment", payment_id)
        owner_account = payment.account
        actor.require_member(
            owner_account.owner_org_id, owner_account.counterparty_org_id
        )
        if payment.is_void:
            raise InvalidStateError(f"Payment {payment.id} is already void")

        self._post_mirrored(
            owner_account,
            self._mirror_of(owner_account),
            payment.amount,
            ReferenceType.PAYMENT,
            payment.id,
            f"Void payment {payment.id}: {reason}",
            f"Void payment {payment.id} to {owner_account.owner_org.name}",
        )

        payment.is_void = True
        payment.void_reason = reason
        payment.voided_at = utcnow()
        self.db.flush()

        logger.info(
            "Payment voided",
            extra={"payment_id": payment.id, "amount": payment.amount},
        )
        outbox.enqueue(self.db, "ledger.payment_voided", {
            "payment_id": payment.id,
            "amount": payment.amount,
        })
        return payment

    def mark_invoice_paid(self, invoice_id: int, actor: Actor) -> Invoice:
        """Flag an open invoice as settled. Balances are untouched."""
        invoice = self.db.get(Invoice, invoice_id)
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        actor.require_member(invoice.account.owner_org_id)
        if invoice.status != InvoiceStatus.OPEN:
            raise InvalidStateError(
                f"Only open invoices can be marked paid "
                f"(status: {invoice.status.value})",
                invoice.status,
            )
        invoice.status = InvoiceStatus.PAID
        self.db.flush()
        return invoice

    # --- History and reconciliation ---

    def get_entries(
        self, account_id: int, actor: Actor, limit: int = 50, offset: int = 0
    ) -> tuple[list[LedgerEntry], int]:
        """Return (entries newest first, total count) for an account."""
        self.get_account(account_id, actor)
        limit = max(1, min(limit, self.settings.LEDGER_TIMELINE_MAX_LIMIT))
        offset = max(0, offset)

        entries = self.db.execute(
            select(LedgerEntry)
            .where(LedgerEntry.account_id == account_id)
            .order_by(LedgerEntry.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars().all()
        total = self.db.execute(
            select(func.count(LedgerEntry.id)).where(
                LedgerEntry.account_id == account_id
            )
        ).scalar_one()
        return list(entries), total

    def list_invoices(self, account_id: int, actor: Actor) -> list[Invoice]:
        """Invoices raised on an account, newest first, void ones included."""
        self.get_account(account_id, actor)
        invoices = self.db.execute(
            select(Invoice)
            .where(Invoice.account_id == account_id)
            .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        ).scalars().all()
        return list(invoices)

    def list_payments(self, account_id: int, actor: Actor) -> list[Payment]:
        self.get_account(account_id, actor)
        payments = self.db.execute(
            select(Payment)
            .where(Payment.account_id == account_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
        ).scalars().all()
        return list(payments)

    def check_integrity(self) -> dict:
        """
        Scan every account for invariant violations.

        Checks that each account has a mirror, that each pair sums
        to zero, and that each stored balance equals the signed sum
        of its entries. Used by operational tooling; never on the
        posting path.
        """
        accounts = self.db.execute(
            select(Account)
            .order_by(Account.id)
            .execution_options(populate_existing=True)
        ).scalars().all()
        by_pair = {(a.owner_org_id, a.counterparty_org_id): a for a in accounts}

        signed = case(
            (LedgerEntry.direction == EntryDirection.DEBIT, LedgerEntry.amount),
            else_=-LedgerEntry.amount,
        )
        entry_sums = dict(
            self.db.execute(
                select(LedgerEntry.account_id, func.sum(signed))
                .group_by(LedgerEntry.account_id)
            ).all()
        )

        violations = []
        for account in accounts:
            mirror = by_pair.get(
                (account.counterparty_org_id, account.owner_org_id)
            )
            if mirror is None:
                violations.append({
                    "kind": "MISSING_MIRROR",
                    "account_id": account.id,
                    "detail": (
                        f"No account for {account.counterparty_org_id}"
                        f"->{account.owner_org_id}"
                    ),
                })
            elif account.id < mirror.id and account.balance + mirror.balance != 0:
                violations.append({
                    "kind": "MIRROR_MISMATCH",
                    "account_id": account.id,
                    "detail": (
                        f"balance {account.balance} vs mirror "
                        f"{mirror.id} balance {mirror.balance}"
                    ),
                })

            from_entries = int(entry_sums.get(account.id) or 0)
            if from_entries != account.balance:
                violations.append({
                    "kind": "ENTRY_SUM_MISMATCH",
                    "account_id": account.id,
                    "detail": (
                        f"stored balance {account.balance}, "
                        f"entries sum to {from_entries}"
                    ),
                })

        if violations:
            logger.warning(
                "Ledger integrity violations found",
                extra={"violation_count": len(violations)},
            )

        return {
            "is_balanced": not violations,
            "accounts_checked": len(accounts),
            "violations": violations,
        }
