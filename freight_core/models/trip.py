"""
Trip model.

A trip is one shipment from a source organization to either a
destination organization or a guest receiver identified by phone.

The trip has a state machine governing its lifecycle. The
transition table below is the only place legal moves are
defined; services consult it through Trip.can_transition_to.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, Numeric, Text, ForeignKey, JSON,
    CheckConstraint, Index, Enum as SAEnum, Uuid, text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from freight_core.models.base import Base, utcnow
from freight_core.models.enums import TripStatus, ACTIVE_TRIP_STATUSES


# Valid state transitions, the source of truth for the state machine
TRIP_TRANSITIONS: dict[TripStatus, set[TripStatus]] = {
    TripStatus.CREATED: {TripStatus.LOADED, TripStatus.CANCELLED},
    TripStatus.LOADED: {TripStatus.IN_TRANSIT, TripStatus.CANCELLED},
    TripStatus.IN_TRANSIT: {TripStatus.REACHED, TripStatus.CANCELLED},
    TripStatus.REACHED: {TripStatus.COMPLETED},
    TripStatus.COMPLETED: set(),  # Terminal
    TripStatus.CANCELLED: set(),  # Terminal
}

_ACTIVE_SQL = "status IN ({})".format(
    ", ".join(f"'{s.value}'" for s in ACTIVE_TRIP_STATUSES)
)


class Trip(Base):
    __tablename__ = "trips"
    __table_args__ = (
        # At most one active trip per driver and per truck. The
        # exclusivity guard enforces this first; these indexes make
        # a violation impossible to commit even if it were bypassed.
        Index(
            "uq_trips_active_driver", "driver_id", unique=True,
            postgresql_where=text(_ACTIVE_SQL),
            sqlite_where=text(_ACTIVE_SQL),
        ),
        Index(
            "uq_trips_active_truck", "truck_id", unique=True,
            postgresql_where=text(_ACTIVE_SQL),
            sqlite_where=text(_ACTIVE_SQL),
        ),
        CheckConstraint(
            "(destination_org_id IS NULL) <> (receiver_phone IS NULL)",
            name="ck_trips_single_destination",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    source_org_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    destination_org_id: Mapped[int | None] = mapped_column(
        ForeignKey("organizations.id"), nullable=True, index=True
    )
    receiver_phone: Mapped[str | None] = mapped_column(
        String(20), nullable=True
    )
    driver_id: Mapped[int] = mapped_column(
        ForeignKey("drivers.id"), nullable=False
    )
    truck_id: Mapped[int] = mapped_column(
        ForeignKey("trucks.id"), nullable=False
    )
    status: Mapped[TripStatus] = mapped_column(
        SAEnum(
            TripStatus,
            name="trip_status_enum",
            create_constraint=True,
        ),
        nullable=False,
        default=TripStatus.CREATED,
        index=True,
    )
    start_point: Mapped[str] = mapped_column(String(255), nullable=False)
    end_point: Mapped[str] = mapped_column(String(255), nullable=False)
    source_address: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    destination_address: Mapped[dict | None] = mapped_column(
        JSON, nullable=True
    )
    estimated_distance_km: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2), nullable=True
    )
    estimated_arrival: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by_user_id: Mapped[str] = mapped_column(
        String(64), nullable=False
    )
    cancel_reason: Mapped[str | None] = mapped_column(
        String(500), nullable=True
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    cancelled_by_user_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    # Relationships
    source_org: Mapped["Organization"] = relationship(
        foreign_keys=[source_org_id]
    )
    destination_org: Mapped["Organization | None"] = relationship(
        foreign_keys=[destination_org_id]
    )
    driver: Mapped["Driver"] = relationship()
    truck: Mapped["Truck"] = relationship()
    load_card: Mapped["LoadCard | None"] = relationship(
        back_populates="trip", cascade="all, delete-orphan"
    )
    receive_card: Mapped["ReceiveCard | None"] = relationship(
        back_populates="trip", cascade="all, delete-orphan"
    )
    events: Mapped[list["TripEvent"]] = relationship(
        back_populates="trip",
        cascade="all, delete-orphan",
        order_by="TripEvent.id",
    )
    driver_payment: Mapped["DriverPayment | None"] = relationship(
        back_populates="trip", cascade="all, delete-orphan"
    )

    def can_transition_to(self, new_status: TripStatus) -> bool:
        """Check if a state transition is valid."""
        return new_status in TRIP_TRANSITIONS.get(self.status, set())

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_TRIP_STATUSES

    def __repr__(self) -> str:
        return f"<Trip {self.id} ({self.status.value})>"
