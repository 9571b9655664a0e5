"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample identities (3 hosts, 3 riders) with their OTPs
  - 3 AVAILABLE host rides around Bengaluru
  - 3 AVAILABLE rider requests, two of them along a host's route

Routes are straight-line paths interpolated locally, so no directions
API key is needed.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import text

from src.config import settings
from src.domain.entities import Route
from src.domain.enums import RideKind, RideStatus
from src.domain.matching import ride_h3_cell
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import IdentityModel, RideModel
from src.infrastructure.repositories import RideRepository
from src.services.lifecycle import generate_otp


IDENTITIES = [
    {"id": "+919800000001", "name": "Aarav Sharma", "email": "aarav@example.com"},
    {"id": "+919800000002", "name": "Priya Patel", "email": "priya@example.com"},
    {"id": "+919800000003", "name": "Rohan Mehta", "email": "rohan@example.com"},
    {"id": "+919800000004", "name": "Sneha Gupta", "email": "sneha@example.com"},
    {"id": "+919800000005", "name": "Vikram Singh", "email": "vikram@example.com"},
    {"id": "+919800000006", "name": "Ananya Reddy", "email": "ananya@example.com"},
]

RIDES = [
    # Hosts
    {"owner": 0, "kind": RideKind.HOST, "from": (12.9000, 77.5000), "to": (12.9500, 77.6000),
     "from_addr": "Banashankari", "to_addr": "Indiranagar", "seats": 3, "price": "80.00"},
    {"owner": 1, "kind": RideKind.HOST, "from": (12.9716, 77.5946), "to": (13.1986, 77.7066),
     "from_addr": "MG Road", "to_addr": "Kempegowda Airport", "seats": 2, "price": "250.00"},
    {"owner": 2, "kind": RideKind.HOST, "from": (12.9352, 77.6245), "to": (12.8456, 77.6603),
     "from_addr": "Koramangala", "to_addr": "Electronic City", "seats": 4, "price": "60.00"},
    # Riders
    {"owner": 3, "kind": RideKind.RIDER, "from": (12.9050, 77.5100), "to": (12.9450, 77.5900),
     "from_addr": "JP Nagar", "to_addr": "Domlur"},
    {"owner": 4, "kind": RideKind.RIDER, "from": (12.9800, 77.6000), "to": (13.1900, 77.7000),
     "from_addr": "Shivajinagar", "to_addr": "Airport Road"},
    {"owner": 5, "kind": RideKind.RIDER, "from": (12.9352, 77.6245), "to": (12.9716, 77.5946),
     "from_addr": "Koramangala", "to_addr": "MG Road"},
]


def straight_route(start, end, points: int = 50) -> Route:
    steps = points - 1
    return Route.from_pairs(
        (
            start[0] + (end[0] - start[0]) * i / steps,
            start[1] + (end[1] - start[1]) * i / steps,
        )
        for i in range(points)
    )


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM identities"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        now = datetime.now(timezone.utc)

        # ── Identities ────────────────────────────────────────────────
        identities = []
        for i in IDENTITIES:
            m = IdentityModel(
                id=i["id"],
                otp=generate_otp(),
                verified=True,
                name=i["name"],
                email=i["email"],
                created_at=now,
            )
            session.add(m)
            identities.append(m)
        await session.flush()
        print(f"  Created {len(identities)} identities")
        for m in identities:
            print(f"    {m.id}  otp={m.otp}")

        # ── Rides ─────────────────────────────────────────────────────
        repo = RideRepository(session)
        for offset, r in enumerate(RIDES):
            created = now + timedelta(seconds=offset)
            route = straight_route(r["from"], r["to"])
            ride = RideModel(
                id=str(uuid.uuid4()),
                owner_id=identities[r["owner"]].id,
                kind=r["kind"],
                origin_lat=r["from"][0],
                origin_lng=r["from"][1],
                origin_address=r["from_addr"],
                origin_time=created,
                origin_cell=ride_h3_cell(*r["from"], settings.h3_resolution),
                destination_lat=r["to"][0],
                destination_lng=r["to"][1],
                destination_address=r["to_addr"],
                destination_time=created,
                route=route.to_dicts(),
                seats_available=r.get("seats"),
                price_per_seat=Decimal(r["price"]) if "price" in r else None,
                status=RideStatus.AVAILABLE,
                created_at=created,
                updated_at=created,
            )
            await repo.create(ride)
        print(f"  Created {len(RIDES)} rides")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
