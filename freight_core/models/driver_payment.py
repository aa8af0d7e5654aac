"""
Driver payment terms for a trip.

Records how much the driver is owed for the trip, which side
pays, and how much has been paid so far.
"""

from datetime import datetime

from sqlalchemy import (
    String, DateTime, BigInteger, ForeignKey, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from freight_core.models.base import Base, utcnow
from freight_core.models.enums import DriverPaymentPayer, DriverPaymentStatus


class DriverPayment(Base):
    __tablename__ = "driver_payments"

    id: Mapped[int] = mapped_column(primary_key=True)
    trip_id: Mapped[int] = mapped_column(
        ForeignKey("trips.id"), unique=True, nullable=False
    )
    total_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    paid_by: Mapped[DriverPaymentPayer] = mapped_column(
        SAEnum(DriverPaymentPayer, name="driver_payment_payer_enum"),
        nullable=False,
    )
    split_source_amount: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True
    )
    split_dest_amount: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True
    )
    paid_amount: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )
    status: Mapped[DriverPaymentStatus] = mapped_column(
        SAEnum(DriverPaymentStatus, name="driver_payment_status_enum"),
        nullable=False,
        default=DriverPaymentStatus.PENDING,
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    remarks: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    trip: Mapped["Trip"] = relationship(back_populates="driver_payment")

    @property
    def destination_share(self) -> int:
        """The part of the total the destination org pays."""
        if self.paid_by == DriverPaymentPayer.DESTINATION:
            return self.total_amount
        if self.paid_by == DriverPaymentPayer.SPLIT:
            return self.split_dest_amount or 0
        return 0

    def __repr__(self) -> str:
        return (
            f"<DriverPayment trip={self.trip_id} {self.paid_amount}/"
            f"{self.total_amount} ({self.status.value})>"
        )
