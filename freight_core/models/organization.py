"""
Organization, driver, and truck models.

These are the parties and resources a trip refers to. Their
membership and profile management lives outside the core; the
core only needs them to exist and to know who employs which
driver and owns which truck.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from freight_core.models.base import Base, utcnow


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    drivers: Mapped[list["Driver"]] = relationship(back_populates="org")
    trucks: Mapped[list["Truck"]] = relationship(back_populates="org")

    def __repr__(self) -> str:
        return f"<Organization {self.id} {self.name}>"


class Driver(Base):
    """
    A driver employed by one organization.

    The row is locked by the exclusivity guard while a trip
    claims the driver, so concurrent claims queue up on it.
    """

    __tablename__ = "drivers"

    id: Mapped[int] = mapped_column(primary_key=True)
    org_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    org: Mapped["Organization"] = relationship(back_populates="drivers")

    def __repr__(self) -> str:
        return f"<Driver {self.id} {self.name}>"


class Truck(Base):
    __tablename__ = "trucks"

    id: Mapped[int] = mapped_column(primary_key=True)
    org_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    registration_number: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    org: Mapped["Organization"] = relationship(back_populates="trucks")

    def __repr__(self) -> str:
        return f"<Truck {self.registration_number}>"
