"""
API routes for bookings.

POST /api/bookings reserves a spot through the booking transaction and then
drops the cache entries that the reservation made stale.
"""

import logging

from fastapi import APIRouter, status

from api.dependencies import CacheDep, ExecutorDep
from api.models.requests import BookingCreate
from parking.schemas import BookingRead
from parking.transactions.booking_transaction import create_booking_transaction
from shared.cache_keys import lot_availability_keys, user_bookings_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=BookingRead)
async def create_booking(payload: BookingCreate, executor: ExecutorDep, cache: CacheDep):
    """
    Book a parking spot.

    **Errors:**
    - **404**: Spot not found
    - **409**: Spot not available
    - **400**: Invalid booking window or body, or unknown user
    - **503**: Database contention persisted through every retry
    """
    booking = await create_booking_transaction(
        executor,
        spot_id=payload.spot_id,
        user_id=payload.user_id,
        start_time=payload.start_time,
        end_time=payload.end_time,
        total_price=payload.total_price,
    )

    lot_id = booking.parking_spot.parking_lot_id
    await cache.invalidate([*lot_availability_keys(lot_id), user_bookings_key(payload.user_id)])

    return booking
