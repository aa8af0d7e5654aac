"""
Invoice and payment models.

These are the business documents behind ledger postings. Each
produces exactly one mirrored pair of ledger entries when
created. Neither is edited afterwards except for the void
flag, and voiding posts a reversing pair instead of touching
the original entries.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    String, DateTime, BigInteger, Boolean, ForeignKey,
    UniqueConstraint, Enum as SAEnum, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from freight_core.models.base import Base, utcnow
from freight_core.models.enums import InvoiceStatus, PaymentTag


class Invoice(Base):
    """An amount the owner org bills its counterparty."""

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint(
            "account_id", "invoice_number",
            name="uq_invoices_account_number",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    # The issuer's account (owner = issuer, counterparty = billed org)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )
    invoice_number: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    description: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    due_date: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    trip_id: Mapped[int | None] = mapped_column(
        ForeignKey("trips.id"), nullable=True, index=True
    )
    status: Mapped[InvoiceStatus] = mapped_column(
        SAEnum(
            InvoiceStatus,
            name="invoice_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=InvoiceStatus.OPEN,
    )
    void_reason: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    voided_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    created_by_user_id: Mapped[str] = mapped_column(
        String(64), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    account: Mapped["Account"] = relationship()

    def __repr__(self) -> str:
        return (
            f"<Invoice {self.invoice_number} {self.amount} "
            f"({self.status.value})>"
        )


class Payment(Base):
    """Money the counterparty paid to the owner org."""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    # The payee's account (owner = payee, counterparty = payer)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tag: Mapped[PaymentTag] = mapped_column(
        SAEnum(PaymentTag, name="payment_tag_enum"),
        nullable=False,
    )
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    reference: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    remarks: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_void: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    void_reason: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    voided_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    created_by_user_id: Mapped[str] = mapped_column(
        String(64), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    account: Mapped["Account"] = relationship()

    def __repr__(self) -> str:
        return f"<Payment {self.amount} {self.tag.value}>"
