"""
Seed data for the users table.

Four accounts: one admin, one driver and two parking-lot owners. The owners
are assigned lots alternately by database.seeds.parking_lots.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from database.models import User, UserRole

USERS_DATA: list[dict[str, Any]] = [
    {
        "email": "admin@parkpulse.com",
        "name": "Admin User",
        "phone": "+919876543210",
        "role": UserRole.ADMIN,
    },
    {
        "email": "user@parkpulse.com",
        "name": "Regular User",
        "phone": "+919876543211",
        "role": UserRole.USER,
    },
    {
        "email": "owner1@parkpulse.com",
        "name": "Parking Owner 1",
        "phone": "+919876543212",
        "role": UserRole.PARKING_OWNER,
    },
    {
        "email": "owner2@parkpulse.com",
        "name": "Parking Owner 2",
        "phone": "+919876543213",
        "role": UserRole.PARKING_OWNER,
    },
]


async def seed_users(session: AsyncSession) -> list[User]:
    """
    Insert the seed users.

    Returns:
        Users in USERS_DATA order (admin, user, owner1, owner2)
    """
    users = [User(**data) for data in USERS_DATA]
    session.add_all(users)
    await session.flush()

    print(f" Created {len(users)} users")
    return users
