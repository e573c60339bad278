"""
Seed data for parking_lots, parking_spots, sensors and reports.

Populates lots across five Indian cities (Mumbai, Delhi, Bangalore, Pune,
Chennai). For each lot:
- Spots: 40% two-wheeler (2W-n), 50% four-wheeler (4W-n), 5% disabled
  (DIS-n), the remainder EV charging (EV-n), each randomly AVAILABLE or
  OCCUPIED
- Sensors on roughly 30% of spots, last ping within the past hour,
  battery 60-99%
Then 20 random reports from the regular user.

The generate_* functions are pure: they take a random.Random, so a seeded
generator always produces the same data.
"""

import random
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from database.models import (
    ParkingLot,
    ParkingSpot,
    Report,
    ReportType,
    Sensor,
    SensorType,
    SpotStatus,
    User,
    VehicleType,
    utcnow,
)

# (prefix, vehicle type, share of total_spots, probability of AVAILABLE)
# EV_CHARGING takes whatever the floor()s leave over
SPOT_MIX: list[tuple[str, VehicleType, float | None, float]] = [
    ("2W", VehicleType.TWO_WHEELER, 0.40, 0.7),
    ("4W", VehicleType.FOUR_WHEELER, 0.50, 0.6),
    ("DIS", VehicleType.DISABLED, 0.05, 0.2),
    ("EV", VehicleType.EV_CHARGING, None, 0.5),
]

SENSOR_COVERAGE = 0.3
REPORT_COUNT = 20

# owner: index into the two seeded owners
PARKING_LOTS_DATA: list[dict[str, Any]] = [
    # Mumbai
    {
        "name": "Gateway of India Parking",
        "address": "Apollo Bunder, Colaba",
        "city": "Mumbai",
        "latitude": 18.922,
        "longitude": 72.8347,
        "total_spots": 50,
        "price_per_hour": Decimal("60"),
        "amenities": {"security": True, "cctv": True, "covered": False, "ev_charging": False},
        "owner": 0,
    },
    {
        "name": "Bandra Kurla Complex Parking",
        "address": "BKC, Bandra East",
        "city": "Mumbai",
        "latitude": 19.0596,
        "longitude": 72.8656,
        "total_spots": 120,
        "price_per_hour": Decimal("80"),
        "amenities": {"security": True, "cctv": True, "covered": True, "ev_charging": True, "valet": True},
        "owner": 1,
    },
    {
        "name": "Marine Drive Parking Plaza",
        "address": "Netaji Subhash Chandra Marg",
        "city": "Mumbai",
        "latitude": 18.9432,
        "longitude": 72.8236,
        "total_spots": 80,
        "price_per_hour": Decimal("70"),
        "amenities": {"security": True, "cctv": True, "covered": True},
        "owner": 0,
    },
    {
        "name": "Andheri Metro Station Parking",
        "address": "Western Express Highway, Andheri",
        "city": "Mumbai",
        "latitude": 19.1197,
        "longitude": 72.8464,
        "total_spots": 200,
        "price_per_hour": Decimal("50"),
        "amenities": {"security": True, "cctv": True, "covered": False, "metro_access": True},
        "owner": 1,
    },
    # Delhi
    {
        "name": "India Gate Parking",
        "address": "Rajpath, Central Delhi",
        "city": "Delhi",
        "latitude": 28.6129,
        "longitude": 77.2295,
        "total_spots": 100,
        "price_per_hour": Decimal("50"),
        "amenities": {"security": True, "cctv": True, "covered": False},
        "owner": 0,
    },
    {
        "name": "Connaught Place Central Parking",
        "address": "Block A, Connaught Place",
        "city": "Delhi",
        "latitude": 28.6315,
        "longitude": 77.2167,
        "total_spots": 250,
        "price_per_hour": Decimal("80"),
        "amenities": {"security": True, "cctv": True, "covered": True, "ev_charging": True},
        "owner": 1,
    },
    {
        "name": "Rajiv Chowk Metro Parking",
        "address": "Rajiv Chowk Metro Station",
        "city": "Delhi",
        "latitude": 28.6328,
        "longitude": 77.2197,
        "total_spots": 180,
        "price_per_hour": Decimal("60"),
        "amenities": {"security": True, "cctv": True, "covered": False, "metro_access": True},
        "owner": 0,
    },
    {
        "name": "Saket District Centre Parking",
        "address": "Saket, South Delhi",
        "city": "Delhi",
        "latitude": 28.5244,
        "longitude": 77.2066,
        "total_spots": 300,
        "price_per_hour": Decimal("70"),
        "amenities": {"security": True, "cctv": True, "covered": True, "valet": True},
        "owner": 1,
    },
    # Bangalore
    {
        "name": "MG Road Central Parking",
        "address": "Mahatma Gandhi Road",
        "city": "Bangalore",
        "latitude": 12.9716,
        "longitude": 77.5946,
        "total_spots": 150,
        "price_per_hour": Decimal("60"),
        "amenities": {"security": True, "cctv": True, "covered": True},
        "owner": 0,
    },
    {
        "name": "Indiranagar 100 Feet Road Parking",
        "address": "Indiranagar",
        "city": "Bangalore",
        "latitude": 12.9784,
        "longitude": 77.6408,
        "total_spots": 100,
        "price_per_hour": Decimal("50"),
        "amenities": {"security": True, "cctv": True, "covered": False},
        "owner": 1,
    },
    {
        "name": "Koramangala Forum Mall Parking",
        "address": "Koramangala 7th Block",
        "city": "Bangalore",
        "latitude": 12.9344,
        "longitude": 77.6101,
        "total_spots": 280,
        "price_per_hour": Decimal("70"),
        "amenities": {"security": True, "cctv": True, "covered": True, "valet": True, "ev_charging": True},
        "owner": 0,
    },
    {
        "name": "Whitefield ITPL Parking",
        "address": "Whitefield, ITPL Main Road",
        "city": "Bangalore",
        "latitude": 12.985,
        "longitude": 77.7294,
        "total_spots": 350,
        "price_per_hour": Decimal("55"),
        "amenities": {"security": True, "cctv": True, "covered": True, "ev_charging": True},
        "owner": 1,
    },
    # Pune
    {
        "name": "Shivaji Nagar Parking Plaza",
        "address": "Shivaji Nagar",
        "city": "Pune",
        "latitude": 18.5304,
        "longitude": 73.8567,
        "total_spots": 120,
        "price_per_hour": Decimal("45"),
        "amenities": {"security": True, "cctv": True, "covered": True},
        "owner": 0,
    },
    {
        "name": "Koregaon Park Parking",
        "address": "Koregaon Park",
        "city": "Pune",
        "latitude": 18.5362,
        "longitude": 73.8932,
        "total_spots": 90,
        "price_per_hour": Decimal("50"),
        "amenities": {"security": True, "cctv": True, "covered": False},
        "owner": 1,
    },
    {
        "name": "Hinjewadi IT Park Parking",
        "address": "Hinjewadi Phase 1",
        "city": "Pune",
        "latitude": 18.5912,
        "longitude": 73.7389,
        "total_spots": 400,
        "price_per_hour": Decimal("40"),
        "amenities": {"security": True, "cctv": True, "covered": True, "ev_charging": True},
        "owner": 0,
    },
    {
        "name": "FC Road Shopping District",
        "address": "Fergusson College Road",
        "city": "Pune",
        "latitude": 18.5196,
        "longitude": 73.8354,
        "total_spots": 80,
        "price_per_hour": Decimal("40"),
        "amenities": {"security": True, "cctv": True, "covered": False},
        "owner": 1,
    },
    # Chennai
    {
        "name": "T Nagar Shopping District",
        "address": "T Nagar, Pondy Bazaar",
        "city": "Chennai",
        "latitude": 13.0418,
        "longitude": 80.2341,
        "total_spots": 150,
        "price_per_hour": Decimal("50"),
        "amenities": {"security": True, "cctv": True, "covered": True},
        "owner": 0,
    },
    {
        "name": "Anna Nagar Parking Hub",
        "address": "Anna Nagar West",
        "city": "Chennai",
        "latitude": 13.085,
        "longitude": 80.2101,
        "total_spots": 120,
        "price_per_hour": Decimal("45"),
        "amenities": {"security": True, "cctv": True, "covered": False},
        "owner": 1,
    },
    {
        "name": "OMR IT Corridor Parking",
        "address": "Old Mahabalipuram Road, Thoraipakkam",
        "city": "Chennai",
        "latitude": 12.9388,
        "longitude": 80.2305,
        "total_spots": 300,
        "price_per_hour": Decimal("55"),
        "amenities": {"security": True, "cctv": True, "covered": True, "ev_charging": True},
        "owner": 0,
    },
    {
        "name": "Marina Beach Parking",
        "address": "Marina Beach Road",
        "city": "Chennai",
        "latitude": 13.0499,
        "longitude": 80.2824,
        "total_spots": 200,
        "price_per_hour": Decimal("40"),
        "amenities": {"security": True, "cctv": True, "covered": False},
        "owner": 1,
    },
]


def spot_type_counts(total_spots: int) -> list[tuple[str, VehicleType, int, float]]:
    """Split total_spots by SPOT_MIX. Counts always sum to total_spots."""
    counts = []
    allocated = 0
    for prefix, vehicle_type, share, availability in SPOT_MIX:
        if share is None:
            count = total_spots - allocated
        else:
            count = int(total_spots * share)
            allocated += count
        counts.append((prefix, vehicle_type, count, availability))
    return counts


def generate_spots(parking_lot_id: UUID, total_spots: int, rng: random.Random) -> list[dict[str, Any]]:
    """Spot rows for one lot, numbered per type (2W-1, 2W-2, ..., EV-n)."""
    spots = []
    for prefix, vehicle_type, count, availability in spot_type_counts(total_spots):
        for i in range(1, count + 1):
            status = SpotStatus.AVAILABLE if rng.random() < availability else SpotStatus.OCCUPIED
            spots.append(
                {
                    "id": uuid4(),
                    "parking_lot_id": parking_lot_id,
                    "spot_number": f"{prefix}-{i}",
                    "type": vehicle_type,
                    "status": status,
                }
            )
    return spots


def generate_sensors(spot_ids: list[UUID], rng: random.Random, now: datetime) -> list[dict[str, Any]]:
    """Sensors for a random ~30% of spot_ids."""
    sensors = []
    for spot_id in spot_ids:
        if rng.random() >= SENSOR_COVERAGE:
            continue
        sensors.append(
            {
                "parking_spot_id": spot_id,
                "sensor_type": rng.choice(list(SensorType)),
                "last_ping": now - timedelta(seconds=rng.uniform(0, 3600)),
                "battery_level": rng.randint(60, 99),
            }
        )
    return sensors


def generate_reports(
    lots: list[tuple[UUID, str]], user_id: UUID, rng: random.Random, count: int = REPORT_COUNT
) -> list[dict[str, Any]]:
    """`count` reports on random lots; lots is a list of (lot_id, lot_name)."""
    reports = []
    for _ in range(count):
        lot_id, lot_name = rng.choice(lots)
        report_type = rng.choice(list(ReportType))
        reports.append(
            {
                "user_id": user_id,
                "parking_lot_id": lot_id,
                "report_type": report_type,
                "description": f"Sample {report_type.value.lower()} report for {lot_name}",
            }
        )
    return reports


async def seed_parking_lots(
    session: AsyncSession, owners: list[User], reporter: User, rng: random.Random
) -> dict[str, int]:
    """
    Insert lots, spots, sensors and reports.

    Returns:
        Row counts per table
    """
    now = utcnow()
    totals = {"parking_lots": 0, "parking_spots": 0, "sensors": 0, "reports": 0}
    lots: list[tuple[UUID, str]] = []

    for lot_data in PARKING_LOTS_DATA:
        data = dict(lot_data)
        owner = owners[data.pop("owner")]
        lot = ParkingLot(id=uuid4(), owner_id=owner.id, **data)
        session.add(lot)

        spots = generate_spots(lot.id, lot.total_spots, rng)
        session.add_all(ParkingSpot(**spot) for spot in spots)

        sensors = generate_sensors([spot["id"] for spot in spots], rng, now)
        session.add_all(Sensor(**sensor) for sensor in sensors)

        await session.flush()

        lots.append((lot.id, lot.name))
        totals["parking_lots"] += 1
        totals["parking_spots"] += len(spots)
        totals["sensors"] += len(sensors)
        print(f" Created {lot.name} ({lot.city}) with {len(spots)} spots, {len(sensors)} sensors")

    reports = generate_reports(lots, reporter.id, rng)
    session.add_all(Report(**report) for report in reports)
    await session.flush()
    totals["reports"] = len(reports)
    print(f" Created {len(reports)} sample reports")

    return totals
