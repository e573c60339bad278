"""API routes for crowd reports."""

import logging

from fastapi import APIRouter, status

from api.dependencies import CacheDep, ExecutorDep
from api.models.requests import ReportCreate
from parking.schemas import ReportOutcome
from parking.transactions.report_transaction import create_report_transaction
from shared.cache_keys import lot_availability_keys, reports_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ReportOutcome)
async def create_report(payload: ReportCreate, executor: ExecutorDep, cache: CacheDep):
    """
    Record a report about a parking lot.

    With update_spot_status=true on an AVAILABILITY report, a few free spots
    of the lot are marked occupied (see report_transaction).
    """
    outcome = await create_report_transaction(
        executor,
        user_id=payload.user_id,
        parking_lot_id=payload.parking_lot_id,
        report_type=payload.report_type,
        description=payload.description,
        update_spot_status=payload.update_spot_status,
    )

    stale_keys = [reports_key(payload.parking_lot_id)]
    if outcome.occupied_spot_ids:
        stale_keys.extend(lot_availability_keys(payload.parking_lot_id))
    await cache.invalidate(stale_keys)

    return outcome
