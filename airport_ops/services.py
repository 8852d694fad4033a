"""Flight management and the operator actions of the ATC panel."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import Select, or_, select
from sqlalchemy.orm import Session

from . import activity, alerts, payloads, runways
from .database import unique_writes
from .errors import Conflict, NotFound, ValidationError
from .models import FLIGHT_STATUSES, RUNWAY_RELEASING_STATUSES, Flight, is_active_status, utcnow
from .policy import Actor, require
from .state_machine import DEFAULT_DELAY_MINUTES, alert_for, check_transition, get_transition, shift_schedule

logger = logging.getLogger(__name__)

FLIGHT_FIELDS = (
    "flight_number",
    "airline",
    "origin",
    "destination",
    "status",
    "scheduled_departure",
    "scheduled_arrival",
    "runway_id",
    "gate",
    "aircraft_type",
    "capacity",
    "notes",
)
REQUIRED_FLIGHT_FIELDS = (
    "flight_number",
    "airline",
    "origin",
    "destination",
    "scheduled_departure",
    "scheduled_arrival",
)


def get_flight(session: Session, flight_id: int, *, lock: bool = False) -> Flight:
    if lock:
        flight = session.get(Flight, flight_id, with_for_update=True, populate_existing=True)
    else:
        flight = session.get(Flight, flight_id)
    if flight is None:
        raise NotFound(f"flight {flight_id} not found")
    return flight


def list_flights(
    session: Session,
    *,
    status: Optional[str] = None,
    search: Optional[str] = None,
    active_only: bool = False,
) -> List[Flight]:
    stmt: Select[tuple[Flight]] = select(Flight).order_by(Flight.scheduled_departure)
    if status:
        stmt = stmt.where(Flight.status == status)
    if active_only:
        stmt = stmt.where(Flight.status.not_in(RUNWAY_RELEASING_STATUSES))
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Flight.flight_number.ilike(pattern),
                Flight.airline.ilike(pattern),
                Flight.origin.ilike(pattern),
                Flight.destination.ilike(pattern),
            )
        )
    return list(session.scalars(stmt))


def _check_values(data: Dict[str, Any]) -> Dict[str, Any]:
    for key in ("flight_number", "origin", "destination"):
        if key in data:
            data[key] = payloads.required_text(key, data[key]).upper()
    for key in ("airline", "aircraft_type"):
        if key in data:
            data[key] = payloads.required_text(key, data[key])
    if "status" in data:
        payloads.choice("status", data["status"], FLIGHT_STATUSES)
    for key in ("scheduled_departure", "scheduled_arrival"):
        if key in data:
            data[key] = payloads.timestamp(key, data[key])
    if "capacity" in data:
        data["capacity"] = payloads.positive_int("capacity", data["capacity"])
    for key in ("gate", "notes"):
        if key in data:
            data[key] = payloads.optional_text(data[key])
    if data.get("runway_id") is not None:
        data["runway_id"] = payloads.positive_int("runway_id", data["runway_id"])
    return data


def _check_schedule(flight: Flight) -> None:
    if flight.scheduled_arrival < flight.scheduled_departure:
        raise ValidationError("scheduled_arrival must not be before scheduled_departure")


def _enter_status(flight: Flight, status: str) -> Optional[int]:
    """Apply ``status`` and its invariants; return the runway id to release, if any."""

    flight.status = status
    if status == "departed" and flight.actual_departure is None:
        flight.actual_departure = utcnow()
    if status == "landed" and flight.actual_arrival is None:
        flight.actual_arrival = utcnow()
    if status in RUNWAY_RELEASING_STATUSES and flight.runway_id is not None:
        runway_id = flight.runway_id
        flight.runway = None
        flight.runway_id = None
        return runway_id
    return None


def _assign_runway(session: Session, flight: Flight, runway_id: Optional[int], status: str) -> Optional[int]:
    """Point ``flight`` at ``runway_id``; return a previously held runway to release."""

    previous = flight.runway_id
    if runway_id == previous:
        return None
    if runway_id is not None:
        if not is_active_status(status):
            raise Conflict(f"cannot assign a runway to a {status} flight")
        runways.claim_runway(session, flight, runway_id)
    else:
        flight.runway = None
        flight.runway_id = None
    return previous


def create_flight(session: Session, actor: Actor, payload: Mapping[str, Any]) -> Flight:
    require(actor, "flight", "insert")
    data = _check_values(payloads.clean(payload, allowed=FLIGHT_FIELDS, required=REQUIRED_FLIGHT_FIELDS))
    runway_id = data.pop("runway_id", None)
    status = data.pop("status", "scheduled")
    flight = Flight(**data, created_by=actor.user_id)
    _check_schedule(flight)
    with unique_writes(session, f"flight number '{flight.flight_number}' already exists"):
        _enter_status(flight, status)
        if runway_id is not None:
            _assign_runway(session, flight, runway_id, status)
        session.add(flight)
    activity.record(
        session,
        actor.user_id,
        f"Added flight {flight.flight_number} ({flight.origin} → {flight.destination})",
        "flight",
        flight.id,
    )
    return flight


def update_flight(session: Session, actor: Actor, flight_id: int, patch: Mapping[str, Any]) -> Flight:
    """Apply a patch to a flight.

    Staff may only send ``status``; that plain status edit is not checked
    against the operator transition table, but timestamps and runway release
    still follow the new status.
    """

    data = payloads.clean(patch, allowed=FLIGHT_FIELDS)
    if not data:
        raise ValidationError("nothing to update")
    require(actor, "flight", "update", data.keys())
    data = _check_values(data)
    flight = get_flight(session, flight_id, lock=True)
    previous_status = flight.status
    new_status = data.pop("status", previous_status)
    to_release = []
    flight_number = data.get("flight_number", flight.flight_number)
    with unique_writes(session, f"flight number '{flight_number}' already exists"):
        if "runway_id" in data:
            to_release.append(_assign_runway(session, flight, data.pop("runway_id"), new_status))
        for key, value in data.items():
            setattr(flight, key, value)
        _check_schedule(flight)
        if new_status != previous_status:
            to_release.append(_enter_status(flight, new_status))
    for runway_id in to_release:
        if runway_id is not None:
            runways.release_runway(session, runway_id)

    if set(patch) == {"status"}:
        action = f"Changed {flight.flight_number} status to {new_status}"
    else:
        action = f"Updated flight {flight.flight_number}"
    activity.record(session, actor.user_id, action, "flight", flight.id, {"fields": sorted(patch)})
    return flight


def delete_flight(session: Session, actor: Actor, flight_id: int) -> None:
    """Delete a flight and its passengers, freeing any runway it held."""

    require(actor, "flight", "delete")
    flight = get_flight(session, flight_id)
    flight_number = flight.flight_number
    held = flight.runway_id if is_active_status(flight.status) else None
    session.delete(flight)
    session.flush()
    if held is not None:
        runways.release_runway(session, held)
    activity.record(session, actor.user_id, f"Deleted flight {flight_number}", "flight", flight_id)


def transition_flight_status(
    session: Session,
    actor: Actor,
    flight_id: int,
    action: str,
    *,
    minutes: int = DEFAULT_DELAY_MINUTES,
    reason: Optional[str] = None,
    note: Optional[str] = None,
    expected_status: Optional[str] = None,
) -> Flight:
    """Run an operator action (takeoff, landing, delay, cancel, emergency).

    The stored status is re-read under a row lock; a flight that moved on
    since the caller looked at it fails with :class:`Conflict`. The runway
    release that follows departed/landed/cancelled is best-effort.
    """

    require(actor, "flight", "transition")
    get_transition(action)
    flight = get_flight(session, flight_id, lock=True)
    if expected_status is not None and flight.status != expected_status:
        raise Conflict(f"{flight.flight_number} is {flight.status}, not {expected_status}")
    transition = check_transition(action, flight.status)
    previous_status = flight.status
    reason = payloads.optional_text(reason)
    note = payloads.optional_text(note)
    details: Dict[str, Any] = {"action": action, "from": previous_status, "to": transition.target}

    if action == "delay":
        flight.scheduled_departure, flight.scheduled_arrival = shift_schedule(
            flight.scheduled_departure, flight.scheduled_arrival, minutes
        )
        flight.notes = reason or flight.notes
        details.update(minutes=minutes, reason=reason)
    if note:
        details["note"] = note
    to_release = _enter_status(flight, transition.target)
    session.flush()

    if to_release is not None:
        details["runway_id"] = to_release
        details["runway_released"] = runways.release_runway(session, to_release)

    alert = alert_for(transition, flight.flight_number, minutes=minutes, reason=reason, note=note)
    if alert is not None:
        alerts.emit_alert(session, actor.user_id, flight_id=flight.id, **alert)

    if action == "delay":
        message = f"Delayed {flight.flight_number} by {minutes} min: {reason or 'Not specified'}"
    else:
        message = f"ATC: {transition.title} for {flight.flight_number}"
    activity.record(session, actor.user_id, message, "flight", flight.id, details)
    logger.info("%s: %s %s -> %s", actor.user_id, flight.flight_number, previous_status, transition.target)
    return flight
