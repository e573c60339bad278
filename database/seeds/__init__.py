"""
Seed data orchestration module.

Provides seed_all() to wipe the ParkPulse tables and load demo data in
dependency order. Can be run standalone: python -m database.seeds
"""

import random

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncEngine

from database.connection import (
    create_engine_from_settings,
    create_session_factory,
    create_tables,
    wait_for_database,
)
from database.models import Booking, ParkingLot, ParkingSpot, Report, Sensor, User
from database.seeds.parking_lots import seed_parking_lots
from database.seeds.users import seed_users

# Children before parents
CLEAR_ORDER = (Sensor, Booking, Report, ParkingSpot, ParkingLot, User)


async def seed_all(engine: AsyncEngine | None = None, seed: int | None = None) -> dict[str, int]:
    """
    Clear existing data and load seed data in dependency order.

    Order:
    1. users - independent
    2. parking lots (+ spots, sensors) - owned by the two owner users
    3. reports - written by the regular user

    Args:
        engine: Engine to use (default: one built from settings, disposed after)
        seed: Random seed for reproducible spot statuses and sensors

    Returns:
        Final row count per table
    """
    owns_engine = engine is None
    engine = engine or create_engine_from_settings()
    rng = random.Random(seed)

    try:
        await wait_for_database(engine)
        await create_tables(engine)
        session_factory = create_session_factory(engine)

        print("Starting database seeding...")
        print("-" * 50)

        async with session_factory() as session, session.begin():
            print(" Clearing existing data...")
            for model in CLEAR_ORDER:
                await session.execute(delete(model))

            _admin, regular_user, owner1, owner2 = await seed_users(session)
            await seed_parking_lots(session, [owner1, owner2], regular_user, rng)

        async with session_factory() as session:
            summary = {}
            for model in reversed(CLEAR_ORDER):
                summary[model.__tablename__] = await session.scalar(
                    select(func.count()).select_from(model)
                )
    finally:
        if owns_engine:
            await engine.dispose()

    print("-" * 50)
    print(" Database seeding complete!")
    for table, count in summary.items():
        print(f"   - {table}: {count}")

    return summary
