"""
Inter-organization account model.

An account holds what one organization (the owner) is owed by a
specific counterparty organization. Every relationship is stored
as two rows, one per side, and the ledger service keeps them
mirrored: balance(A, B) == -balance(B, A) after every commit.

The balance is only ever changed with SQL increment/decrement
expressions inside a transaction, never by reading it into
Python and writing back a computed value.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger, DateTime, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from freight_core.models.base import Base, utcnow


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint(
            "owner_org_id", "counterparty_org_id",
            name="uq_accounts_owner_counterparty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    owner_org_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    counterparty_org_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    # Minor currency units. Positive: the counterparty owes the owner.
    balance: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    owner_org: Mapped["Organization"] = relationship(
        foreign_keys=[owner_org_id]
    )
    counterparty_org: Mapped["Organization"] = relationship(
        foreign_keys=[counterparty_org_id]
    )
    entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="account"
    )

    def __repr__(self) -> str:
        return (
            f"<Account owner={self.owner_org_id} "
            f"counterparty={self.counterparty_org_id}>"
        )
