"""Passenger manifest management and ticket identifiers."""
from __future__ import annotations

import re
import secrets
import string
from typing import Any, Callable, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import activity, payloads
from .database import unique_writes
from .errors import Conflict, NotFound, ValidationError
from .models import BOARDING_STATUSES, Flight, Passenger
from .policy import Actor, require

TICKET_ALPHABET = string.ascii_uppercase + string.digits
TICKET_PATTERN = re.compile(r"^TKT-[A-Z0-9]{8}$")
MAX_TICKET_ATTEMPTS = 10

PASSENGER_FIELDS = (
    "flight_id",
    "first_name",
    "last_name",
    "passport_number",
    "seat_number",
    "boarding_status",
    "nationality",
)


def generate_ticket_id() -> str:
    return "TKT-" + "".join(secrets.choice(TICKET_ALPHABET) for _ in range(8))


def _unused_ticket_id(session: Session, generator: Callable[[], str]) -> str:
    for _ in range(MAX_TICKET_ATTEMPTS):
        candidate = generator()
        if session.scalar(select(Passenger.id).where(Passenger.ticket_id == candidate)) is None:
            return candidate
    raise Conflict("could not allocate a unique ticket id")


def get_passenger(session: Session, passenger_id: int) -> Passenger:
    passenger = session.get(Passenger, passenger_id)
    if passenger is None:
        raise NotFound(f"passenger {passenger_id} not found")
    return passenger


def list_passengers(session: Session, *, flight_id: Optional[int] = None) -> List[Passenger]:
    stmt = select(Passenger).order_by(Passenger.created_at.desc(), Passenger.id.desc())
    if flight_id is not None:
        stmt = stmt.where(Passenger.flight_id == flight_id)
    return list(session.scalars(stmt))


def find_by_ticket(session: Session, ticket_id: str) -> Passenger:
    normalized = ticket_id.strip().upper()
    if not TICKET_PATTERN.match(normalized):
        raise ValidationError(f"malformed ticket id '{ticket_id}'")
    passenger = session.scalar(select(Passenger).where(Passenger.ticket_id == normalized))
    if passenger is None:
        raise NotFound(f"no passenger holds ticket {normalized}")
    return passenger


def _check_values(session: Session, data: dict) -> dict:
    for key in ("first_name", "last_name", "passport_number"):
        if key in data:
            data[key] = payloads.required_text(key, data[key])
    if "flight_id" in data:
        data["flight_id"] = payloads.positive_int("flight_id", data["flight_id"])
    if "flight_id" in data and session.get(Flight, data["flight_id"]) is None:
        raise NotFound(f"flight {data['flight_id']} not found")
    if "boarding_status" in data:
        payloads.choice("boarding_status", data["boarding_status"], BOARDING_STATUSES)
    if "seat_number" in data:
        data["seat_number"] = payloads.optional_text(data["seat_number"])
    if "nationality" in data:
        data["nationality"] = payloads.optional_text(data["nationality"]) or "Unknown"
    return data


def create_passenger(
    session: Session,
    actor: Actor,
    payload: Mapping[str, Any],
    *,
    ticket_generator: Callable[[], str] = generate_ticket_id,
) -> Passenger:
    require(actor, "passenger", "insert")
    data = _check_values(
        session,
        payloads.clean(
            payload,
            allowed=PASSENGER_FIELDS,
            required=("flight_id", "first_name", "last_name", "passport_number"),
        ),
    )
    passenger = Passenger(**data, ticket_id=_unused_ticket_id(session, ticket_generator))
    with unique_writes(session, "ticket id collision, retry the request"):
        session.add(passenger)
    activity.record(
        session,
        actor.user_id,
        f"Added passenger {passenger.first_name} {passenger.last_name}",
        "passenger",
        passenger.id,
        {"ticket_id": passenger.ticket_id},
    )
    return passenger


def update_passenger(session: Session, actor: Actor, passenger_id: int, patch: Mapping[str, Any]) -> Passenger:
    require(actor, "passenger", "update")
    data = _check_values(session, payloads.clean(patch, allowed=PASSENGER_FIELDS))
    passenger = get_passenger(session, passenger_id)
    for key, value in data.items():
        setattr(passenger, key, value)
    session.flush()
    activity.record(
        session,
        actor.user_id,
        f"Updated passenger {passenger.first_name} {passenger.last_name}",
        "passenger",
        passenger.id,
        {"fields": sorted(data)},
    )
    return passenger


def update_boarding_status(session: Session, actor: Actor, passenger_id: int, boarding_status: str) -> Passenger:
    require(actor, "passenger", "update")
    payloads.choice("boarding_status", boarding_status, BOARDING_STATUSES)
    passenger = get_passenger(session, passenger_id)
    passenger.boarding_status = boarding_status
    session.flush()
    activity.record(
        session,
        actor.user_id,
        f"Updated boarding status: {passenger.first_name} {passenger.last_name} → {boarding_status}",
        "passenger",
        passenger.id,
    )
    return passenger


def delete_passenger(session: Session, actor: Actor, passenger_id: int) -> None:
    require(actor, "passenger", "delete")
    passenger = get_passenger(session, passenger_id)
    name = f"{passenger.first_name} {passenger.last_name}"
    session.delete(passenger)
    session.flush()
    activity.record(session, actor.user_id, f"Removed passenger {name}", "passenger", passenger_id)
