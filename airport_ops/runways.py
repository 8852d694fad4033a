"""Runway records and the guard that keeps assigned runways out of ``available``."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import activity, payloads
from .database import unique_writes
from .errors import Conflict, NotFound
from .models import RUNWAY_RELEASING_STATUSES, RUNWAY_STATUSES, Flight, Runway
from .policy import Actor, require

logger = logging.getLogger(__name__)

RUNWAY_FIELDS = ("name", "length_meters", "status", "surface_type", "notes")


def get_runway(session: Session, runway_id: int) -> Runway:
    runway = session.get(Runway, runway_id)
    if runway is None:
        raise NotFound(f"runway {runway_id} not found")
    return runway


def list_runways(session: Session, *, status: Optional[str] = None) -> List[Runway]:
    stmt = select(Runway).order_by(Runway.name)
    if status:
        stmt = stmt.where(Runway.status == status)
    return list(session.scalars(stmt))


def active_flight_on(session: Session, runway_id: int, *, exclude_flight_id: Optional[int] = None) -> Optional[Flight]:
    stmt = select(Flight).where(
        Flight.runway_id == runway_id,
        Flight.status.not_in(RUNWAY_RELEASING_STATUSES),
    )
    if exclude_flight_id is not None:
        stmt = stmt.where(Flight.id != exclude_flight_id)
    return session.scalars(stmt.limit(1)).first()


def runway_assignments(session: Session) -> Dict[int, Flight]:
    """Map runway id -> the active flight currently holding it."""

    flights = session.scalars(
        select(Flight).where(
            Flight.runway_id.is_not(None),
            Flight.status.not_in(RUNWAY_RELEASING_STATUSES),
        )
    )
    return {flight.runway_id: flight for flight in flights}


def _check_values(data: Dict[str, Any]) -> Dict[str, Any]:
    for key in ("name", "surface_type"):
        if key in data:
            data[key] = payloads.required_text(key, data[key])
    if "length_meters" in data:
        data["length_meters"] = payloads.positive_int("length_meters", data["length_meters"])
    if "status" in data:
        payloads.choice("status", data["status"], RUNWAY_STATUSES)
    if "notes" in data:
        data["notes"] = payloads.optional_text(data["notes"])
    return data


def create_runway(session: Session, actor: Actor, payload: Mapping[str, Any]) -> Runway:
    require(actor, "runway", "insert")
    data = _check_values(payloads.clean(payload, allowed=RUNWAY_FIELDS, required=("name",)))
    runway = Runway(**data)
    with unique_writes(session, f"runway name '{runway.name}' already exists"):
        session.add(runway)
    activity.record(session, actor.user_id, f"Created runway {runway.name}", "runway", runway.id)
    return runway


def _guard_available(session: Session, runway: Runway, status: str) -> None:
    if status != "available" or runway.status == "available":
        return
    holder = active_flight_on(session, runway.id)
    if holder is not None:
        raise Conflict(f"{runway.name} is assigned to active flight {holder.flight_number}")


def update_runway(session: Session, actor: Actor, runway_id: int, patch: Mapping[str, Any]) -> Runway:
    require(actor, "runway", "update")
    data = _check_values(payloads.clean(patch, allowed=RUNWAY_FIELDS))
    runway = get_runway(session, runway_id)
    if "status" in data:
        _guard_available(session, runway, data["status"])
    name = data.get("name", runway.name)
    with unique_writes(session, f"runway name '{name}' already exists"):
        for key, value in data.items():
            setattr(runway, key, value)
    activity.record(session, actor.user_id, f"Updated runway {runway.name}", "runway", runway.id, {"fields": sorted(data)})
    return runway


def set_runway_status(session: Session, actor: Actor, runway_id: int, status: str) -> Runway:
    """Change a runway's status, refusing ``available`` while a flight holds it."""

    require(actor, "runway", "update", ("status",))
    payloads.choice("status", status, RUNWAY_STATUSES)
    runway = get_runway(session, runway_id)
    _guard_available(session, runway, status)
    runway.status = status
    session.flush()
    activity.record(session, actor.user_id, f"Changed {runway.name} status to {status}", "runway", runway.id)
    return runway


def delete_runway(session: Session, actor: Actor, runway_id: int) -> None:
    require(actor, "runway", "delete")
    runway = get_runway(session, runway_id)
    name = runway.name
    session.delete(runway)
    session.flush()
    activity.record(session, actor.user_id, f"Deleted runway {name}", "runway", runway_id)


def claim_runway(session: Session, flight: Flight, runway_id: int) -> Runway:
    """Assign ``runway_id`` to ``flight`` and mark the runway occupied."""

    runway = get_runway(session, runway_id)
    if flight.runway_id == runway.id:
        return runway
    holder = active_flight_on(session, runway.id, exclude_flight_id=flight.id)
    if holder is not None:
        raise Conflict(f"{runway.name} is already assigned to {holder.flight_number}")
    if runway.status != "available":
        raise Conflict(f"{runway.name} is {runway.status}")
    runway.status = "occupied"
    flight.runway = runway
    return runway


def _mark_available(session: Session, runway_id: int) -> None:
    runway = session.get(Runway, runway_id)
    if runway is None:
        return
    runway.status = "available"
    session.flush()


def release_runway(session: Session, runway_id: int) -> bool:
    """Return a runway to ``available``.

    Best-effort: a store failure is logged and reported as ``False`` so the
    flight change that triggered the release still goes through.
    """

    try:
        with session.begin_nested():
            _mark_available(session, runway_id)
    except SQLAlchemyError:
        logger.warning("Could not release runway %s", runway_id, exc_info=True)
        return False
    return True
