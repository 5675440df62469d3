"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 3 drivers (two approved, one pending verification), 5 passengers, 1 admin
  - 5 upcoming rides around Mumbai airport departing within the next hours
  - a bearer token per user, printed for use against /docs
"""

import asyncio
from datetime import timedelta

from sqlalchemy import text

from greenride.config import settings
from greenride.domain.clock import utcnow
from greenride.domain.distance import haversine_km
from greenride.domain.enums import Role, RideStatus, VehicleCategory, VerificationStatus
from greenride.domain.fares import estimate_fuel_cost
from greenride.domain.matching import ride_h3_cell
from greenride.infrastructure.database import async_session_factory, engine
from greenride.infrastructure.identity import JwtIdentityProvider
from greenride.infrastructure.models import RideModel, UserModel

# Mumbai airport coordinates (approx)
AIRPORT_LAT, AIRPORT_LNG = 19.0896, 72.8656


USERS = [
    {"name": "Aarav Sharma", "email": "aarav@example.com", "role": Role.DRIVER, "status": VerificationStatus.APPROVED},
    {"name": "Priya Patel", "email": "priya@example.com", "role": Role.DRIVER, "status": VerificationStatus.APPROVED},
    {"name": "Rohan Mehta", "email": "rohan@example.com", "role": Role.DRIVER, "status": VerificationStatus.PENDING},
    {"name": "Sneha Gupta", "email": "sneha@example.com", "role": Role.PASSENGER, "status": VerificationStatus.UNVERIFIED},
    {"name": "Vikram Singh", "email": "vikram@example.com", "role": Role.PASSENGER, "status": VerificationStatus.UNVERIFIED},
    {"name": "Ananya Reddy", "email": "ananya@example.com", "role": Role.PASSENGER, "status": VerificationStatus.UNVERIFIED},
    {"name": "Karan Joshi", "email": "karan@example.com", "role": Role.PASSENGER, "status": VerificationStatus.UNVERIFIED},
    {"name": "Meera Nair", "email": "meera@example.com", "role": Role.PASSENGER, "status": VerificationStatus.UNVERIFIED},
    {"name": "Diya Iyer", "email": "diya@example.com", "role": Role.ADMIN, "status": VerificationStatus.APPROVED},
]

RIDES = [
    # (driver index, origin, destination, hours from now, category, seats)
    (0, ("Airport T2", AIRPORT_LAT, AIRPORT_LNG), ("Andheri", 19.0760, 72.8777), 1, VehicleCategory.SEDAN, 4),
    (0, ("Airport T1", 19.0990, 72.8740), ("Powai", 19.1176, 72.9060), 3, VehicleCategory.SEDAN, 4),
    (1, ("Airport T2", 19.0900, 72.8660), ("Bandra", 19.0540, 72.8400), 1, VehicleCategory.EV, 5),
    (1, ("Santacruz", 19.0600, 72.8500), ("Dadar", 19.0200, 72.8500), 2, VehicleCategory.HATCHBACK, 4),
    (1, ("Airport T2", 19.0895, 72.8655), ("IIT Bombay", 19.1334, 72.9133), 1, VehicleCategory.SUV, 7),
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        user_models = []
        for u in USERS:
            m = UserModel(
                name=u["name"],
                email=u["email"],
                role=u["role"],
                verification_status=u["status"],
            )
            session.add(m)
            user_models.append(m)
        await session.flush()
        print(f"  Created {len(user_models)} users")

        # ── Rides ─────────────────────────────────────────────────────
        now = utcnow()
        for driver_idx, origin, destination, hours, category, seats in RIDES:
            distance = haversine_km(origin[1], origin[2], destination[1], destination[2])
            session.add(
                RideModel(
                    driver_id=user_models[driver_idx].id,
                    origin_name=origin[0],
                    origin_lat=origin[1],
                    origin_lng=origin[2],
                    origin_cell=ride_h3_cell(origin[1], origin[2], settings.h3_resolution),
                    destination_name=destination[0],
                    destination_lat=destination[1],
                    destination_lng=destination[2],
                    departure_time=now + timedelta(hours=hours),
                    vehicle_category=category,
                    total_seats=seats,
                    max_passengers=seats - 1,
                    available_seats=seats - 1,
                    estimated_fare=estimate_fuel_cost(
                        distance, category, settings.fuel_price_per_litre
                    ),
                    status=RideStatus.UPCOMING,
                    points_awarded=False,
                )
            )
        await session.flush()
        print(f"  Created {len(RIDES)} rides")

        await session.commit()

        # ── Tokens ────────────────────────────────────────────────────
        provider = JwtIdentityProvider(settings.jwt_secret, settings.jwt_algorithm)
        print("\nBearer tokens:")
        for m in user_models:
            print(f"  {m.role.value:<9} {m.email:<22} {provider.issue_token(m.id)}")

        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
