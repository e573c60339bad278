"""
Fixtures for integration tests against a real PostgreSQL.

Tests are skipped when the test database (DATABASE_URL from tests/conftest.py)
is unreachable. The schema is dropped and recreated before each test and every
ParkPulse table is truncated after it.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from database.connection import create_engine_from_settings, create_session_factory, create_tables, drop_tables
from database.models import ParkingLot, ParkingSpot, Sensor, SensorType, SpotStatus, User, VehicleType
from parking.transactions.executor import TransactionExecutor

TRUNCATE_ALL = text(
    "TRUNCATE sensors, bookings, reports, parking_spots, parking_lots, users CASCADE"
)


@pytest.fixture
async def engine():
    engine = create_engine_from_settings()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        await engine.dispose()
        pytest.skip(f"PostgreSQL not available: {e}")

    # Fresh schema per test
    await drop_tables(engine)
    await create_tables(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.execute(TRUNCATE_ALL)
    await engine.dispose()


@pytest.fixture
def db_session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db_executor(engine):
    return TransactionExecutor(engine)


@pytest.fixture
async def lot_with_spots(db_session_factory):
    """
    One user, one lot with 6 AVAILABLE four-wheeler spots and 2 OCCUPIED
    ones, and a sensor on the first spot.

    Returns a dict of ids: user_id, lot_id, spot_ids (available first),
    sensor_id.
    """
    user = User(id=uuid4(), email="driver@parkpulse.com", name="Test Driver")
    lot = ParkingLot(
        id=uuid4(),
        name="Phoenix Marketcity Parking",
        address="Whitefield Main Road",
        city="Bangalore",
        latitude=12.9976,
        longitude=77.6963,
        total_spots=8,
        price_per_hour=Decimal("50"),
        amenities={"security": True},
    )
    spots = [
        ParkingSpot(
            id=uuid4(),
            parking_lot_id=lot.id,
            spot_number=f"4W-{i}",
            type=VehicleType.FOUR_WHEELER,
            status=SpotStatus.AVAILABLE if i <= 6 else SpotStatus.OCCUPIED,
        )
        for i in range(1, 9)
    ]
    sensor = Sensor(id=uuid4(), parking_spot_id=spots[0].id, sensor_type=SensorType.ULTRASONIC, battery_level=90)

    async with db_session_factory() as session, session.begin():
        session.add_all([user, lot])
        await session.flush()
        session.add_all(spots)
        await session.flush()
        session.add(sensor)

    return {
        "user_id": user.id,
        "lot_id": lot.id,
        "spot_ids": [spot.id for spot in spots],
        "sensor_id": sensor.id,
    }
