"""
Business errors raised inside transaction units of work.

Every ParkingError is fatal: the transaction executor never retries it. The
error_code is stable and safe to hand to API clients.
"""

from typing import Any


class ParkingError(Exception):
    """Base class for business-rule failures."""

    error_code = "PARKING_ERROR"
    default_message = "Parking operation failed"

    def __init__(self, message: str | None = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class NotFoundError(ParkingError):
    error_code = "NOT_FOUND"
    default_message = "Resource not found"


class SpotNotFoundError(NotFoundError):
    error_code = "SPOT_NOT_FOUND"
    default_message = "Parking spot not found"


class SensorNotFoundError(NotFoundError):
    error_code = "SENSOR_NOT_FOUND"
    default_message = "Sensor not found or not attached to the given spot"


class ConflictError(ParkingError):
    error_code = "CONFLICT"
    default_message = "Operation conflicts with current state"


class SpotUnavailableError(ConflictError):
    error_code = "SPOT_UNAVAILABLE"
    default_message = "Parking spot is not available"


class InvalidStateTransitionError(ConflictError):
    error_code = "INVALID_STATE_TRANSITION"
    default_message = "Invalid status transition"
