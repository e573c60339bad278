"""
API routes for parking-lot reads.

Reads go straight to PostgreSQL through a plain session (no executor, no
locks) and are cached with the short TTL; every write path invalidates the
lot's keys after commit.
"""

import logging
from collections import Counter
from typing import Any
from uuid import UUID

from fastapi import APIRouter, HTTPException
from sqlalchemy import select

from api.dependencies import CacheDep, SessionFactoryDep
from database.models import ParkingLot, ParkingSpot, SpotStatus
from parking.schemas import ParkingSpotRead
from shared.cache_keys import TTL_SHORT, parking_spots_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/parking-lots", tags=["parking-lots"])


@router.get("/{lot_id}/spots")
async def list_lot_spots(lot_id: UUID, cache: CacheDep, session_factory: SessionFactoryDep):
    """
    List a lot's spots with a count per status.

    **Returns:**
    ```json
    {
        "parking_lot_id": "6f1c...",
        "total": 40,
        "counts": {"AVAILABLE": 23, "OCCUPIED": 15, "RESERVED": 2, "MAINTENANCE": 0},
        "spots": [{"id": "...", "spot_number": "2W-1", "status": "AVAILABLE", ...}]
    }
    ```

    **Errors:**
    - **404**: Parking lot not found
    """

    async def load_spots() -> dict[str, Any]:
        async with session_factory() as session:
            lot_exists = await session.scalar(select(ParkingLot.id).where(ParkingLot.id == lot_id))
            if lot_exists is None:
                raise HTTPException(status_code=404, detail=f"Parking lot {lot_id} not found")

            result = await session.execute(
                select(ParkingSpot)
                .where(ParkingSpot.parking_lot_id == lot_id)
                .order_by(ParkingSpot.spot_number)
            )
            spots = [ParkingSpotRead.model_validate(spot) for spot in result.scalars()]

        counts = Counter(spot.status for spot in spots)
        return {
            "parking_lot_id": str(lot_id),
            "total": len(spots),
            "counts": {s.value: counts.get(s, 0) for s in SpotStatus},
            "spots": [spot.model_dump(mode="json") for spot in spots],
        }

    return await cache.get_or_set(parking_spots_key(lot_id), load_spots, ttl=TTL_SHORT)
