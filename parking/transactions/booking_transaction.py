"""
Booking Transaction Handler.

Reserves one parking spot for a user:
- Locking read of the spot (SELECT ... FOR UPDATE)
- Business checks: spot exists and is AVAILABLE
- Spot flipped to RESERVED, booking inserted as CONFIRMED
- Booking returned enriched with spot, lot and user

The row lock serialises concurrent bookings of the same spot: the second
caller blocks until the first commits, re-reads RESERVED and fails with
SpotUnavailableError. Business failures are never retried by the executor.

create_booking_transaction() is the single entry point for creating bookings.
It's called by POST /api/bookings in api/routes/bookings.py.
"""

import logging
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from database.models import Booking, BookingStatus, ParkingSpot, SpotStatus, utcnow
from parking.errors import SpotNotFoundError, SpotUnavailableError
from parking.schemas import BookingRead
from parking.transactions.executor import TransactionExecutor, TransactionOptions

logger = logging.getLogger(__name__)


async def _load_booking_details(session: AsyncSession, booking_id: UUID) -> BookingRead:
    """Reload a booking with spot, lot and user eagerly loaded."""
    stmt = (
        select(Booking)
        .where(Booking.id == booking_id)
        .options(
            selectinload(Booking.parking_spot).selectinload(ParkingSpot.parking_lot),
            selectinload(Booking.user),
        )
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    booking = result.scalar_one()
    return BookingRead.model_validate(booking)


async def create_booking_transaction(
    executor: TransactionExecutor,
    *,
    spot_id: UUID,
    user_id: UUID,
    start_time: datetime,
    end_time: datetime,
    total_price: Decimal,
    options: TransactionOptions | None = None,
) -> BookingRead:
    """
    Book a parking spot atomically.

    Args:
        executor: Transaction executor bound to the database engine
        spot_id: Spot to reserve
        user_id: Booking user
        start_time: Booking start (timezone-aware)
        end_time: Booking end (timezone-aware, after start_time)
        total_price: Price computed by the caller
        options: Executor options (defaults from settings)

    Returns:
        BookingRead with parking_spot, parking_spot.parking_lot and user

    Raises:
        TransactionError: cause is SpotNotFoundError / SpotUnavailableError
            (attempt_count 1) or the last transient database error.

    Example:
        >>> booking = await create_booking_transaction(
        ...     executor,
        ...     spot_id=UUID("..."),
        ...     user_id=UUID("..."),
        ...     start_time=datetime(2025, 3, 1, 9, 0, tzinfo=UTC),
        ...     end_time=datetime(2025, 3, 1, 11, 0, tzinfo=UTC),
        ...     total_price=Decimal("200.00"),
        ... )
        >>> booking.status
        <BookingStatus.CONFIRMED: 'CONFIRMED'>
    """
    trace_id = f"{user_id}_{spot_id}_{start_time.isoformat()}"
    log_extra = {"trace_id": trace_id, "spot_id": str(spot_id), "user_id": str(user_id)}
    logger.info(f"[{trace_id}] Starting booking transaction", extra=log_extra)

    async def book_spot(session: AsyncSession) -> BookingRead:
        # Step 1: Lock the spot row for the rest of the transaction
        stmt = (
            select(ParkingSpot.status, ParkingSpot.parking_lot_id)
            .where(ParkingSpot.id == spot_id)
            .with_for_update()
        )
        result = await session.execute(stmt)
        spot = result.one_or_none()

        # Step 2: Business checks
        if spot is None:
            logger.warning(f"[{trace_id}] Spot not found", extra=log_extra)
            raise SpotNotFoundError(spot_id=str(spot_id))

        if spot.status != SpotStatus.AVAILABLE:
            logger.warning(
                f"[{trace_id}] Spot is {spot.status.value}, not available",
                extra=log_extra,
            )
            raise SpotUnavailableError(spot_id=str(spot_id), status=spot.status.value)

        # Step 3: Reserve the spot
        await session.execute(
            update(ParkingSpot)
            .where(ParkingSpot.id == spot_id)
            .values(status=SpotStatus.RESERVED, last_updated=utcnow())
        )

        # Step 4: Insert the booking
        booking_id = uuid4()
        session.add(
            Booking(
                id=booking_id,
                user_id=user_id,
                parking_spot_id=spot_id,
                start_time=start_time,
                end_time=end_time,
                status=BookingStatus.CONFIRMED,
                total_price=total_price,
            )
        )
        await session.flush()

        # Step 5: Enrich for the caller
        return await _load_booking_details(session, booking_id)

    booking = await executor.execute_transaction(book_spot, options)

    logger.info(
        f"[{trace_id}] Booking {booking.id} confirmed",
        extra={**log_extra, "booking_id": str(booking.id), "parking_lot_id": str(booking.parking_spot.parking_lot_id)},
    )
    return booking
