"""
Ledger entry model.

Each entry is one half of a mirrored posting: an invoice or
payment between two organizations writes one entry on each
side's account. Entries are immutable; once posted, they are
never modified or deleted. Corrections are new entries.
"""

from datetime import datetime

from sqlalchemy import (
    String, DateTime, BigInteger, ForeignKey, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from freight_core.models.base import Base, utcnow
from freight_core.models.enums import EntryDirection, ReferenceType


class LedgerEntry(Base):
    """
    An immutable debit or credit against an account.

    balance_after is the account balance read back inside the
    posting transaction, right after the atomic update. It is
    for audit and reconciliation; reads of the current balance
    go to the account row.
    """

    __tablename__ = "ledger_entries"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )
    direction: Mapped[EntryDirection] = mapped_column(
        SAEnum(EntryDirection, name="entry_direction_enum"),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reference_type: Mapped[ReferenceType] = mapped_column(
        SAEnum(ReferenceType, name="reference_type_enum"),
        nullable=False,
    )
    reference_id: Mapped[int] = mapped_column(nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    account: Mapped["Account"] = relationship(back_populates="entries")

    @property
    def signed_amount(self) -> int:
        """The entry's effect on the account balance."""
        if self.direction == EntryDirection.DEBIT:
            return self.amount
        return -self.amount

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.direction.value} {self.amount} "
            f"{self.reference_type.value}:{self.reference_id}>"
        )
