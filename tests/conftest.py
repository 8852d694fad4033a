import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from airport_ops.database import create_session_factory
from airport_ops.identity import provision_user
from airport_ops.models import Base
from airport_ops.policy import Actor

DEPARTURE = datetime(2026, 3, 1, 9, 0)

USERS = (("admin-1", "admin"), ("atc-1", "atc"), ("staff-1", "staff"))


@pytest.fixture
def session_factory(tmp_path):
    engine, factory = create_session_factory(f"sqlite+pysqlite:///{tmp_path / 'airport-test.db'}")
    Base.metadata.create_all(engine)
    yield factory
    engine.dispose()


@pytest.fixture
def actors(session_factory):
    with session_factory() as session:
        for user_id, role in USERS:
            profile = provision_user(session, user_id, email=f"{user_id}@example.com")
            profile.role.role = role
        session.commit()
    return {role: Actor(user_id=user_id, role=role) for user_id, role in USERS}


@pytest.fixture
def flight_payload():
    def build(**overrides):
        payload = {
            "flight_number": "AA100",
            "airline": "American Airlines",
            "origin": "jfk",
            "destination": "lax",
            "scheduled_departure": DEPARTURE,
            "scheduled_arrival": DEPARTURE + timedelta(hours=6),
        }
        payload.update(overrides)
        return payload

    return build
