"""Pydantic read models returned by the transaction handlers."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from database.models import BookingStatus, ReportType, SpotStatus, VehicleType


class UserSummary(BaseModel):
    """Minimal user projection exposed with a booking."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str


class ParkingLotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    address: str
    city: str
    latitude: float
    longitude: float
    total_spots: int
    price_per_hour: Decimal
    amenities: dict = {}


class ParkingSpotRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    parking_lot_id: UUID
    spot_number: str
    type: VehicleType
    status: SpotStatus
    last_updated: datetime


class ParkingSpotWithLot(ParkingSpotRead):
    parking_lot: ParkingLotRead


class BookingRead(BaseModel):
    """Booking enriched with its spot, the spot's lot and the booking user."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    parking_spot_id: UUID
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    total_price: Decimal
    created_at: datetime
    parking_spot: ParkingSpotWithLot
    user: UserSummary


class ReportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    parking_lot_id: UUID
    report_type: ReportType
    description: str
    created_at: datetime


class ReportOutcome(BaseModel):
    """Result of the report transaction: the report plus any spots it flipped."""

    report: ReportRead
    occupied_spot_ids: list[UUID] = []


class SensorReading(BaseModel):
    """One sensor observation to apply to its spot."""

    spot_id: UUID
    sensor_id: UUID
    status: SpotStatus
    battery_level: int | None = Field(default=None, ge=0, le=100)

    @field_validator("status")
    @classmethod
    def status_is_sensor_observable(cls, value: SpotStatus) -> SpotStatus:
        # MAINTENANCE is an operator decision, never a sensor reading
        if value == SpotStatus.MAINTENANCE:
            raise ValueError("sensors cannot report MAINTENANCE")
        return value
