"""
Trip event model.

Records every lifecycle change of a trip: status moves,
cancellations, and driver or truck reassignments. The events
form the trip's audit trail and are written in the same
transaction as the change they describe.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from freight_core.models.base import Base, utcnow
from freight_core.models.enums import TripEventType


class TripEvent(Base):
    """
    Immutable record of something that happened to a trip.

    Events are append-only. You never update or delete one.
    """

    __tablename__ = "trip_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    trip_id: Mapped[int] = mapped_column(
        ForeignKey("trips.id"), nullable=False, index=True
    )
    event_type: Mapped[TripEventType] = mapped_column(
        SAEnum(TripEventType, name="trip_event_type_enum"),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    actor_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    trip: Mapped["Trip"] = relationship(back_populates="events")

    def __repr__(self) -> str:
        return f"<TripEvent {self.event_type.value} trip={self.trip_id}>"
