"""
Cache key management.

Centralized cache key generation so that readers and invalidators always
agree on the exact key string.
"""

import base64
import json
from typing import Any
from uuid import UUID

PARKING_LOT = "parking_lot"
PARKING_SPOTS = "parking_spots"
USER = "user"
BOOKING = "booking"
SEARCH = "search"
AVAILABILITY = "availability"
REPORTS = "reports"
SENSORS = "sensors"

# TTLs in seconds
TTL_SHORT = 60
TTL_MEDIUM = 300
TTL_LONG = 900
TTL_HOUR = 3600
TTL_DAY = 86400


def parking_lot_key(lot_id: UUID | str) -> str:
    return f"{PARKING_LOT}:{lot_id}"


def parking_lots_by_city_key(city: str) -> str:
    return f"{PARKING_LOT}:city:{city}"


def parking_spots_key(lot_id: UUID | str) -> str:
    return f"{PARKING_SPOTS}:lot:{lot_id}"


def spot_availability_key(lot_id: UUID | str) -> str:
    return f"{AVAILABILITY}:lot:{lot_id}"


def user_key(user_id: UUID | str) -> str:
    return f"{USER}:{user_id}"


def user_bookings_key(user_id: UUID | str) -> str:
    return f"{BOOKING}:user:{user_id}"


def booking_key(booking_id: UUID | str) -> str:
    return f"{BOOKING}:{booking_id}"


def search_key(query: str, filters: dict[str, Any] | None = None) -> str:
    """Key for a search result page; query and filters are base64-folded."""
    filter_str = json.dumps(filters, sort_keys=True) if filters else ""
    digest = base64.b64encode(f"{query}:{filter_str}".encode()).decode()
    return f"{SEARCH}:{digest}"


def reports_key(lot_id: UUID | str) -> str:
    return f"{REPORTS}:lot:{lot_id}"


def sensor_key(sensor_id: UUID | str) -> str:
    return f"{SENSORS}:{sensor_id}"


def parking_lot_pattern() -> str:
    return f"{PARKING_LOT}:*"


def availability_pattern_by_lot(lot_id: UUID | str) -> str:
    """Pattern for derived availability keys (per vehicle type, per window)."""
    return f"{AVAILABILITY}:lot:{lot_id}:*"


def lot_availability_keys(lot_id: UUID | str) -> list[str]:
    """Explicit keys that go stale whenever a spot in the lot changes status."""
    return [
        spot_availability_key(lot_id),
        parking_spots_key(lot_id),
        parking_lot_key(lot_id),
    ]
