"""
Crowd report transaction.

Always records the report. An AVAILABILITY report may also ask to correct
spot status: up to `sample_size` AVAILABLE spots of the lot are flipped to
OCCUPIED in the same transaction. Which spots get flipped is arbitrary
(rows locked by concurrent bookings are skipped), so this is a rough
correction of the lot's free count rather than exact accounting.
"""

import logging
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import ParkingSpot, Report, ReportType, SpotStatus, utcnow
from parking.schemas import ReportOutcome, ReportRead
from parking.transactions.executor import TransactionExecutor, TransactionOptions
from shared.config import get_settings

logger = logging.getLogger(__name__)


async def _occupy_available_spots(
    session: AsyncSession, parking_lot_id: UUID, sample_size: int
) -> list[UUID]:
    result = await session.execute(
        select(ParkingSpot.id)
        .where(
            ParkingSpot.parking_lot_id == parking_lot_id,
            ParkingSpot.status == SpotStatus.AVAILABLE,
        )
        .limit(sample_size)
        .with_for_update(skip_locked=True)
    )
    spot_ids = list(result.scalars().all())
    if not spot_ids:
        return []

    await session.execute(
        update(ParkingSpot)
        .where(ParkingSpot.id.in_(spot_ids))
        .values(status=SpotStatus.OCCUPIED, last_updated=utcnow())
    )
    return spot_ids


async def create_report_transaction(
    executor: TransactionExecutor,
    *,
    user_id: UUID,
    parking_lot_id: UUID,
    report_type: ReportType,
    description: str,
    update_spot_status: bool = False,
    sample_size: int | None = None,
    options: TransactionOptions | None = None,
) -> ReportOutcome:
    """
    Create a report and optionally mark a sample of free spots occupied.

    Args:
        executor: Transaction executor bound to the database engine
        user_id: Reporting user
        parking_lot_id: Lot the report is about
        report_type: AVAILABILITY, ISSUE, PRICING or AMENITY
        description: Free text
        update_spot_status: Apply the availability correction
        sample_size: Max spots flipped (default REPORT_SPOT_SAMPLE_SIZE)
        options: Executor options (defaults from settings)

    Returns:
        ReportOutcome with the report and the ids of spots set to OCCUPIED
    """
    if sample_size is None:
        sample_size = get_settings().REPORT_SPOT_SAMPLE_SIZE
    if sample_size < 0:
        raise ValueError("sample_size must be >= 0")

    report_type = ReportType(report_type)
    correct_spots = (
        update_spot_status and report_type == ReportType.AVAILABILITY and sample_size > 0
    )

    async def record_report(session: AsyncSession) -> ReportOutcome:
        report = Report(
            id=uuid4(),
            user_id=user_id,
            parking_lot_id=parking_lot_id,
            report_type=report_type,
            description=description,
            created_at=utcnow(),
        )
        session.add(report)
        await session.flush()

        occupied: list[UUID] = []
        if correct_spots:
            occupied = await _occupy_available_spots(session, parking_lot_id, sample_size)

        return ReportOutcome(report=ReportRead.model_validate(report), occupied_spot_ids=occupied)

    outcome = await executor.execute_transaction(record_report, options)

    logger.info(
        f"Report {outcome.report.id} ({report_type.value}) recorded, "
        f"{len(outcome.occupied_spot_ids)} spot(s) marked occupied",
        extra={"parking_lot_id": str(parking_lot_id), "user_id": str(user_id)},
    )
    return outcome
