"""
Load and receive card models.

A load card itemizes what left the source; a receive card
itemizes what arrived and records the shortage per line. Each
trip has at most one of each, enforced by a unique trip_id.
Cards and their lines are written once and never modified.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, Numeric, BigInteger, ForeignKey, JSON,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from freight_core.models.base import Base, utcnow
from freight_core.models.enums import QuantityUnit


class LoadCard(Base):
    __tablename__ = "load_cards"

    id: Mapped[int] = mapped_column(primary_key=True)
    trip_id: Mapped[int] = mapped_column(
        ForeignKey("trips.id"), unique=True, nullable=False
    )
    # Attachment ids supplied by the attachment service. The core
    # stores references only, never file content.
    evidence_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_by_user_id: Mapped[str] = mapped_column(
        String(64), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    trip: Mapped["Trip"] = relationship(back_populates="load_card")
    items: Mapped[list["LoadCardItem"]] = relationship(
        back_populates="load_card",
        cascade="all, delete-orphan",
        order_by="LoadCardItem.id",
    )

    def __repr__(self) -> str:
        return f"<LoadCard trip={self.trip_id} items={len(self.items)}>"


class LoadCardItem(Base):
    __tablename__ = "load_card_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    load_card_id: Mapped[int] = mapped_column(
        ForeignKey("load_cards.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(
        Numeric(14, 3), nullable=False
    )
    unit: Mapped[QuantityUnit] = mapped_column(
        SAEnum(QuantityUnit, name="quantity_unit_enum"),
        nullable=False,
    )
    # Price per unit in minor currency units
    rate: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    grade: Mapped[str | None] = mapped_column(String(50), nullable=True)

    load_card: Mapped["LoadCard"] = relationship(back_populates="items")


class ReceiveCard(Base):
    __tablename__ = "receive_cards"

    id: Mapped[int] = mapped_column(primary_key=True)
    trip_id: Mapped[int] = mapped_column(
        ForeignKey("trips.id"), unique=True, nullable=False
    )
    evidence_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_by_user_id: Mapped[str] = mapped_column(
        String(64), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    trip: Mapped["Trip"] = relationship(back_populates="receive_card")
    items: Mapped[list["ReceiveCardItem"]] = relationship(
        back_populates="receive_card",
        cascade="all, delete-orphan",
        order_by="ReceiveCardItem.id",
    )

    @property
    def has_shortage(self) -> bool:
        return any(item.shortage > 0 for item in self.items)

    def __repr__(self) -> str:
        return f"<ReceiveCard trip={self.trip_id} items={len(self.items)}>"


class ReceiveCardItem(Base):
    """
    One received line, matched to the load line it answers.

    shortage = loaded quantity - received quantity. A negative
    shortage is an excess.
    """

    __tablename__ = "receive_card_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    receive_card_id: Mapped[int] = mapped_column(
        ForeignKey("receive_cards.id"), nullable=False, index=True
    )
    load_item_id: Mapped[int] = mapped_column(
        ForeignKey("load_card_items.id"), unique=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(
        Numeric(14, 3), nullable=False
    )
    unit: Mapped[QuantityUnit] = mapped_column(
        SAEnum(QuantityUnit, name="quantity_unit_enum"),
        nullable=False,
    )
    shortage: Mapped[Decimal] = mapped_column(
        Numeric(14, 3), nullable=False
    )

    receive_card: Mapped["ReceiveCard"] = relationship(back_populates="items")
    load_item: Mapped["LoadCardItem"] = relationship()
