"""
SQLAlchemy ORM models for the ParkPulse database.

This module defines the tables:
- users: Drivers, parking-lot owners and admins
- parking_lots: Physical lots with location, pricing and amenities
- parking_spots: Individual spaces inside a lot (the unit that gets booked)
- bookings: Reservations of one spot for a time window
- sensors: IoT occupancy sensors attached to spots
- reports: Crowd-sourced observations about a lot

All models use:
- UUID primary keys (auto-generated)
- TIMESTAMP WITH TIME ZONE for datetime fields
- JSONB for flexible metadata storage
- Proper indexes and constraints
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import (
    TIMESTAMP,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy import (
    Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(UTC)


# ============================================================================
# Base Class
# ============================================================================


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# ============================================================================
# Enums
# ============================================================================


class UserRole(str, PyEnum):
    """User role enumeration."""

    USER = "USER"
    ADMIN = "ADMIN"
    PARKING_OWNER = "PARKING_OWNER"


class VehicleType(str, PyEnum):
    """Vehicle class a spot is sized for."""

    TWO_WHEELER = "TWO_WHEELER"
    FOUR_WHEELER = "FOUR_WHEELER"
    DISABLED = "DISABLED"
    EV_CHARGING = "EV_CHARGING"


class SpotStatus(str, PyEnum):
    """Parking spot occupancy status."""

    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    RESERVED = "RESERVED"
    MAINTENANCE = "MAINTENANCE"


class BookingStatus(str, PyEnum):
    """Booking lifecycle status."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class SensorType(str, PyEnum):
    """Occupancy sensor hardware type."""

    ULTRASONIC = "ULTRASONIC"
    CAMERA = "CAMERA"
    MAGNETIC = "MAGNETIC"


class ReportType(str, PyEnum):
    """Crowd-sourced report category."""

    AVAILABILITY = "AVAILABILITY"
    ISSUE = "ISSUE"
    PRICING = "PRICING"
    AMENITY = "AMENITY"


# ============================================================================
# Core Models
# ============================================================================


class User(Base):
    """
    User model - drivers, lot owners and admins.

    Only the {id, email, name} projection leaves the booking transaction.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name="user_role", create_type=True),
        nullable=False,
        default=UserRole.USER,
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    owned_lots: Mapped[list["ParkingLot"]] = relationship("ParkingLot", back_populates="owner")
    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="user")
    reports: Mapped[list["Report"]] = relationship("Report", back_populates="user")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"


class ParkingLot(Base):
    """
    ParkingLot model - a physical lot in one city.

    total_spots is the provisioned capacity; the live count of spots is the
    number of parking_spots rows.
    """

    __tablename__ = "parking_lots"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    total_spots: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_hour: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    amenities: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)
    owner_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    owner: Mapped["User | None"] = relationship("User", back_populates="owned_lots")
    spots: Mapped[list["ParkingSpot"]] = relationship("ParkingSpot", back_populates="parking_lot")
    reports: Mapped[list["Report"]] = relationship("Report", back_populates="parking_lot")

    __table_args__ = (
        CheckConstraint("total_spots >= 0", name="check_total_spots_non_negative"),
        CheckConstraint("price_per_hour >= 0", name="check_price_non_negative"),
        Index("idx_parking_lots_city", "city"),
    )

    def __repr__(self) -> str:
        return f"<ParkingLot(id={self.id}, name='{self.name}', city='{self.city}')>"


class ParkingSpot(Base):
    """
    ParkingSpot model - one bookable space.

    status only moves AVAILABLE -> RESERVED inside the booking transaction,
    under a row lock, together with the booking insert.
    """

    __tablename__ = "parking_spots"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    parking_lot_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("parking_lots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    spot_number: Mapped[str] = mapped_column(String(20), nullable=False)
    type: Mapped[VehicleType] = mapped_column(
        SQLEnum(VehicleType, name="vehicle_type", create_type=True),
        nullable=False,
    )
    status: Mapped[SpotStatus] = mapped_column(
        SQLEnum(SpotStatus, name="spot_status", create_type=True),
        nullable=False,
        default=SpotStatus.AVAILABLE,
    )
    last_updated: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    parking_lot: Mapped["ParkingLot"] = relationship("ParkingLot", back_populates="spots")
    bookings: Mapped[list["Booking"]] = relationship("Booking", back_populates="parking_spot")
    sensors: Mapped[list["Sensor"]] = relationship("Sensor", back_populates="parking_spot")

    __table_args__ = (
        UniqueConstraint("parking_lot_id", "spot_number", name="uq_parking_spots_lot_number"),
        # Partial index used by the availability queries and the report heuristic
        Index(
            "idx_parking_spots_lot_available",
            "parking_lot_id",
            postgresql_where=text("status = 'AVAILABLE'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<ParkingSpot(id={self.id}, number='{self.spot_number}', status='{self.status.value}')>"


class Booking(Base):
    """
    Booking model - reservation of one spot for a time window.

    Created only by the booking transaction; cancellation/completion (and the
    matching spot release) happen in other flows.
    """

    __tablename__ = "bookings"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    user_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parking_spot_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("parking_spots.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    start_time: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        SQLEnum(BookingStatus, name="booking_status", create_type=True),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="bookings")
    parking_spot: Mapped["ParkingSpot"] = relationship("ParkingSpot", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="check_booking_window"),
        CheckConstraint("total_price >= 0", name="check_booking_price_non_negative"),
        Index("idx_bookings_spot_status", "parking_spot_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, spot={self.parking_spot_id}, status='{self.status.value}')>"


class Sensor(Base):
    """Sensor model - IoT occupancy sensor attached to a spot."""

    __tablename__ = "sensors"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    parking_spot_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("parking_spots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sensor_type: Mapped[SensorType] = mapped_column(
        SQLEnum(SensorType, name="sensor_type", create_type=True),
        nullable=False,
    )
    last_ping: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, nullable=False
    )
    battery_level: Mapped[int] = mapped_column(Integer, default=100, nullable=False)

    # Relationships
    parking_spot: Mapped["ParkingSpot"] = relationship("ParkingSpot", back_populates="sensors")

    __table_args__ = (
        CheckConstraint(
            "battery_level >= 0 AND battery_level <= 100", name="check_battery_level_range"
        ),
    )

    def __repr__(self) -> str:
        return f"<Sensor(id={self.id}, type='{self.sensor_type.value}', spot={self.parking_spot_id})>"


class Report(Base):
    """Report model - crowd-sourced observation about a lot."""

    __tablename__ = "reports"

    id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True), primary_key=True, default=uuid4
    )
    user_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parking_lot_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("parking_lots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    report_type: Mapped[ReportType] = mapped_column(
        SQLEnum(ReportType, name="report_type", create_type=True),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="reports")
    parking_lot: Mapped["ParkingLot"] = relationship("ParkingLot", back_populates="reports")

    def __repr__(self) -> str:
        return f"<Report(id={self.id}, lot={self.parking_lot_id}, type='{self.report_type.value}')>"
