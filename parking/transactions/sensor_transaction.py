"""
Sensor-driven spot status updates.

A batch of sensor readings is applied in ONE transaction: every referenced
spot gets the observed status, and every reporting sensor gets a fresh
last_ping (and battery level when reported). A reading for an unknown spot, for
a spot under MAINTENANCE, or from a sensor that is not attached to that spot
aborts the whole batch. Only operators move a spot out of MAINTENANCE.
"""

import logging
from collections.abc import Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import ParkingSpot, Sensor, SpotStatus, utcnow
from parking.errors import InvalidStateTransitionError, SensorNotFoundError, SpotNotFoundError
from parking.schemas import ParkingSpotRead, SensorReading
from parking.transactions.executor import TransactionExecutor, TransactionOptions

logger = logging.getLogger(__name__)


async def _apply_reading(session: AsyncSession, reading: SensorReading) -> ParkingSpotRead:
    now = utcnow()

    result = await session.execute(
        update(ParkingSpot)
        .where(ParkingSpot.id == reading.spot_id, ParkingSpot.status != SpotStatus.MAINTENANCE)
        .values(status=reading.status, last_updated=now)
        .returning(ParkingSpot)
    )
    spot = result.scalar_one_or_none()
    if spot is None:
        current = await session.scalar(select(ParkingSpot.status).where(ParkingSpot.id == reading.spot_id))
        if current is None:
            raise SpotNotFoundError(spot_id=str(reading.spot_id))
        raise InvalidStateTransitionError(
            spot_id=str(reading.spot_id),
            from_status=current.value,
            to_status=reading.status.value,
        )

    sensor_values: dict = {"last_ping": now}
    if reading.battery_level is not None:
        sensor_values["battery_level"] = reading.battery_level

    result = await session.execute(
        update(Sensor)
        .where(Sensor.id == reading.sensor_id, Sensor.parking_spot_id == reading.spot_id)
        .values(**sensor_values)
        .returning(Sensor.id)
    )
    if result.scalar_one_or_none() is None:
        raise SensorNotFoundError(sensor_id=str(reading.sensor_id), spot_id=str(reading.spot_id))

    return ParkingSpotRead.model_validate(spot)


async def update_spots_from_sensors(
    executor: TransactionExecutor,
    updates: Sequence[SensorReading],
    options: TransactionOptions | None = None,
) -> list[ParkingSpotRead]:
    """
    Apply sensor readings atomically.

    Args:
        executor: Transaction executor bound to the database engine
        updates: Readings, applied in order
        options: Executor options (defaults from settings)

    Returns:
        Updated spots, one per reading, in input order

    Raises:
        TransactionError: cause SpotNotFoundError / SensorNotFoundError /
            InvalidStateTransitionError (spot under MAINTENANCE), or the last
            transient database error. No reading is applied.
    """
    if not updates:
        return []

    async def apply_all(session: AsyncSession) -> list[ParkingSpotRead]:
        spots = []
        for reading in updates:
            spots.append(await _apply_reading(session, reading))
        return spots

    spots = await executor.execute_transaction(apply_all, options)
    logger.info(
        f"Applied {len(spots)} sensor reading(s) across "
        f"{len({s.parking_lot_id for s in spots})} lot(s)"
    )
    return spots

