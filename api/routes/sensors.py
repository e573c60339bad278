"""API routes for IoT sensor ingestion."""

import logging

from fastapi import APIRouter

from api.dependencies import CacheDep, ExecutorDep
from api.models.requests import SensorUpdateBatch
from parking.schemas import ParkingSpotRead
from parking.transactions.sensor_transaction import update_spots_from_sensors
from shared.cache_keys import lot_availability_keys, sensor_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sensors", tags=["sensors"])


@router.post("/updates", response_model=list[ParkingSpotRead])
async def apply_sensor_updates(payload: SensorUpdateBatch, executor: ExecutorDep, cache: CacheDep):
    """
    Apply a batch of sensor readings (1-500) atomically.

    Either every reading is applied or none is: an unknown spot, or a sensor
    not attached to its spot, rejects the whole batch.
    """
    spots = await update_spots_from_sensors(executor, payload.readings)

    stale_keys: list[str] = []
    for lot_id in sorted({str(spot.parking_lot_id) for spot in spots}):
        stale_keys.extend(lot_availability_keys(lot_id))
    stale_keys.extend(sensor_key(reading.sensor_id) for reading in payload.readings)
    await cache.invalidate(stale_keys)

    return spots
