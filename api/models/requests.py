"""Pydantic models for ParkPulse API request bodies."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from database.models import ReportType
from parking.schemas import SensorReading
from shared.config import get_settings

MAX_SENSOR_BATCH = 500


class BookingCreate(BaseModel):
    """Body of POST /api/bookings."""
    model_config = ConfigDict(extra="forbid")

    spot_id: UUID
    user_id: UUID  # no auth layer; caller identity comes from the body
    start_time: datetime
    end_time: datetime
    total_price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)

    @field_validator("start_time", "end_time")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @model_validator(mode="after")
    def check_window(self) -> "BookingCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        max_hours = get_settings().MAX_BOOKING_HOURS
        if self.end_time - self.start_time > timedelta(hours=max_hours):
            raise ValueError(f"booking cannot be longer than {max_hours} hours")
        return self


class ReportCreate(BaseModel):
    """Body of POST /api/reports."""
    model_config = ConfigDict(extra="forbid")

    user_id: UUID
    parking_lot_id: UUID
    report_type: ReportType
    description: str = Field(min_length=10, max_length=1000)
    update_spot_status: bool = False


class SensorUpdateBatch(BaseModel):
    """Body of POST /api/sensors/updates."""
    model_config = ConfigDict(extra="forbid")

    readings: list[SensorReading] = Field(min_length=1, max_length=MAX_SENSOR_BATCH)
