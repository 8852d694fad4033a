"""Utilities to populate the database with sample data for tests and demos."""
from __future__ import annotations

import random
from datetime import timedelta
from typing import Dict, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from .identity import provision_user
from .models import Runway, utcnow
from .passengers import create_passenger
from .policy import Actor
from .services import create_flight

SEED_ADMIN = "seed-admin"

RUNWAYS: Sequence[dict] = (
    {"name": "Runway 01L", "length_meters": 3800, "status": "available", "surface_type": "asphalt", "notes": "Primary landing runway"},
    {"name": "Runway 01R", "length_meters": 3600, "status": "available", "surface_type": "asphalt", "notes": "Primary takeoff runway"},
    {"name": "Runway 19L", "length_meters": 3200, "status": "available", "surface_type": "concrete", "notes": "Secondary landing runway"},
    {"name": "Runway 19R", "length_meters": 3000, "status": "available", "surface_type": "concrete", "notes": "Secondary runway"},
    {"name": "Runway 10", "length_meters": 2800, "status": "maintenance", "surface_type": "asphalt", "notes": "Under maintenance"},
)
AIRPORTS: Sequence[str] = ("ATL", "PEK", "DXB", "LAX", "HND", "ORD", "LHR", "HKG", "PVG", "CDG")
AIRLINES: Sequence[tuple] = (("AA", "American Airlines"), ("BA", "British Airways"), ("EK", "Emirates"), ("LH", "Lufthansa"))
AIRCRAFT = ("Airbus A320", "Airbus A350", "Boeing 737", "Boeing 787")
FIRST_NAMES = ("Ava", "Noah", "Liam", "Mia", "Lucas", "Emma", "Ethan", "Isabella")
LAST_NAMES = ("Johnson", "Williams", "Smith", "Brown", "Garcia", "Lee")
NATIONALITIES = ("US", "GB", "DE", "AE", "JP", "FR")


def seed_runways(session: Session) -> int:
    """Insert the standard runway set if the table is empty."""

    if session.scalar(select(func.count(Runway.id))):
        return 0
    session.add_all(Runway(**row) for row in RUNWAYS)
    session.flush()
    return len(RUNWAYS)


def generate_sample_data(
    session_factory: sessionmaker[Session],
    *,
    flights: int = 12,
    passengers: int = 60,
) -> Dict[str, int]:
    """Populate the database with deterministic pseudo-random data."""

    random.seed(42)
    with session_factory() as session:
        profile = provision_user(session, SEED_ADMIN, email="admin@example.com", full_name="Seed Admin")
        profile.role.role = "admin"
        runway_count = seed_runways(session)
        actor = Actor(user_id=SEED_ADMIN, role="admin")

        flight_ids = []
        for index in range(flights):
            origin, destination = random.sample(AIRPORTS, 2)
            code, airline = random.choice(AIRLINES)
            departure = (utcnow() + timedelta(hours=random.randint(1, 72))).replace(second=0, microsecond=0)
            flight = create_flight(
                session,
                actor,
                {
                    "flight_number": f"{code}{100 + index}",
                    "airline": airline,
                    "origin": origin,
                    "destination": destination,
                    "scheduled_departure": departure,
                    "scheduled_arrival": departure + timedelta(hours=random.randint(2, 12)),
                    "aircraft_type": random.choice(AIRCRAFT),
                    "capacity": random.choice((90, 120, 180)),
                    "gate": f"{random.choice('ABC')}{random.randint(1, 20)}",
                },
            )
            flight_ids.append(flight.id)
        for index in range(passengers if flight_ids else 0):
            create_passenger(
                session,
                actor,
                {
                    "flight_id": random.choice(flight_ids),
                    "first_name": random.choice(FIRST_NAMES),
                    "last_name": random.choice(LAST_NAMES),
                    "passport_number": f"P{1000000 + index}",
                    "nationality": random.choice(NATIONALITIES),
                },
            )
        session.commit()
    return {"runways": runway_count, "flights": flights, "passengers": passengers if flights else 0}
