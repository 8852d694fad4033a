"""SQLAlchemy models for the airport operations store."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

ROLES = ("admin", "atc", "staff")
DEFAULT_ROLE = "staff"
RUNWAY_STATUSES = ("available", "occupied", "maintenance", "closed")
FLIGHT_STATUSES = ("scheduled", "boarding", "delayed", "departed", "landed", "cancelled", "emergency")
BOARDING_STATUSES = ("checked_in", "boarding", "boarded", "no_show")
ALERT_SEVERITIES = ("info", "warning", "critical", "emergency")

# Statuses that end a flight's hold on its runway.
RUNWAY_RELEASING_STATUSES = frozenset({"departed", "landed", "cancelled"})
TERMINAL_STATUSES = frozenset({"landed", "cancelled"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_active_status(status: str) -> bool:
    return status not in RUNWAY_RELEASING_STATUSES


class Base(DeclarativeBase):
    def as_dict(self) -> Dict[str, Any]:
        return {column.key: getattr(self, column.key) for column in self.__mapper__.column_attrs}


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    full_name: Mapped[str] = mapped_column(String(120), default="", nullable=False)
    email: Mapped[str] = mapped_column(String(120), default="", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    role: Mapped[Optional["UserRole"]] = relationship(
        back_populates="profile", uselist=False, cascade="all, delete-orphan"
    )


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", name="uq_user_role_user"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(Enum(*ROLES, name="app_role"), default=DEFAULT_ROLE, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    profile: Mapped[Profile] = relationship(back_populates="role")


class Runway(Base):
    __tablename__ = "runways"
    __table_args__ = (
        UniqueConstraint("name", name="uq_runway_name"),
        CheckConstraint("length_meters > 0", name="ck_runway_length_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    length_meters: Mapped[int] = mapped_column(Integer, default=3000, nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(*RUNWAY_STATUSES, name="runway_status"), default="available", nullable=False
    )
    surface_type: Mapped[str] = mapped_column(String(30), default="asphalt", nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # No delete cascade: removing a runway nulls the reference on its flights and alerts.
    flights: Mapped[List["Flight"]] = relationship(back_populates="runway")
    alerts: Mapped[List["Alert"]] = relationship(back_populates="runway")


class Flight(Base):
    __tablename__ = "flights"
    __table_args__ = (
        UniqueConstraint("flight_number", name="uq_flight_number"),
        CheckConstraint("capacity > 0", name="ck_flight_capacity_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    flight_number: Mapped[str] = mapped_column(String(10), nullable=False)
    airline: Mapped[str] = mapped_column(String(80), nullable=False)
    origin: Mapped[str] = mapped_column(String(10), nullable=False)
    destination: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(
        Enum(*FLIGHT_STATUSES, name="flight_status"), default="scheduled", nullable=False
    )
    scheduled_departure: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    scheduled_arrival: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    actual_departure: Mapped[Optional[datetime]] = mapped_column(DateTime)
    actual_arrival: Mapped[Optional[datetime]] = mapped_column(DateTime)
    runway_id: Mapped[Optional[int]] = mapped_column(ForeignKey("runways.id", ondelete="SET NULL"))
    gate: Mapped[Optional[str]] = mapped_column(String(10))
    aircraft_type: Mapped[str] = mapped_column(String(40), default="Boeing 737", nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, default=180, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    runway: Mapped[Optional[Runway]] = relationship(back_populates="flights")
    passengers: Mapped[List["Passenger"]] = relationship(back_populates="flight", cascade="all, delete-orphan")
    alerts: Mapped[List["Alert"]] = relationship(back_populates="flight")


class Passenger(Base):
    __tablename__ = "passengers"
    __table_args__ = (UniqueConstraint("ticket_id", name="uq_passenger_ticket"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    flight_id: Mapped[int] = mapped_column(ForeignKey("flights.id", ondelete="CASCADE"), nullable=False)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    passport_number: Mapped[str] = mapped_column(String(20), nullable=False)
    seat_number: Mapped[Optional[str]] = mapped_column(String(4))
    ticket_id: Mapped[str] = mapped_column(String(12), nullable=False)
    boarding_status: Mapped[str] = mapped_column(
        Enum(*BOARDING_STATUSES, name="passenger_boarding_status"), default="checked_in", nullable=False
    )
    nationality: Mapped[str] = mapped_column(String(60), default="Unknown", nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    flight: Mapped[Flight] = relationship(back_populates="passengers")


class Alert(Base):
    __tablename__ = "alerts"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[str] = mapped_column(
        Enum(*ALERT_SEVERITIES, name="alert_severity"), default="info", nullable=False
    )
    flight_id: Mapped[Optional[int]] = mapped_column(ForeignKey("flights.id", ondelete="SET NULL"))
    runway_id: Mapped[Optional[int]] = mapped_column(ForeignKey("runways.id", ondelete="SET NULL"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_acknowledged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    acknowledged_by: Mapped[Optional[str]] = mapped_column(String(64))
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_by: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    flight: Mapped[Optional[Flight]] = relationship(back_populates="alerts")
    runway: Mapped[Optional[Runway]] = relationship(back_populates="alerts")


class ActivityLogEntry(Base):
    __tablename__ = "activity_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(64))
    action: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    entity_id: Mapped[Optional[str]] = mapped_column(String(64))
    details: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
