"""Request bodies accepted by the HTTP API."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .state_machine import DEFAULT_DELAY_MINUTES


class ProvisionRequest(BaseModel):
    user_id: str
    email: str = ""
    full_name: str = ""


class RoleRequest(BaseModel):
    role: str


class FlightCreate(BaseModel):
    flight_number: str
    airline: str
    origin: str
    destination: str
    scheduled_departure: datetime
    scheduled_arrival: datetime
    status: Optional[str] = None
    runway_id: Optional[int] = None
    gate: Optional[str] = None
    aircraft_type: Optional[str] = None
    capacity: Optional[int] = None
    notes: Optional[str] = None


class FlightPatch(BaseModel):
    flight_number: Optional[str] = None
    airline: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    scheduled_departure: Optional[datetime] = None
    scheduled_arrival: Optional[datetime] = None
    status: Optional[str] = None
    runway_id: Optional[int] = None
    gate: Optional[str] = None
    aircraft_type: Optional[str] = None
    capacity: Optional[int] = None
    notes: Optional[str] = None


class TransitionRequest(BaseModel):
    action: str
    minutes: int = DEFAULT_DELAY_MINUTES
    reason: Optional[str] = None
    note: Optional[str] = None
    expected_status: Optional[str] = None


class RunwayCreate(BaseModel):
    name: str
    length_meters: Optional[int] = None
    status: Optional[str] = None
    surface_type: Optional[str] = None
    notes: Optional[str] = None


class RunwayPatch(BaseModel):
    name: Optional[str] = None
    length_meters: Optional[int] = None
    status: Optional[str] = None
    surface_type: Optional[str] = None
    notes: Optional[str] = None


class StatusRequest(BaseModel):
    status: str


class PassengerCreate(BaseModel):
    flight_id: int
    first_name: str
    last_name: str
    passport_number: str
    seat_number: Optional[str] = None
    boarding_status: Optional[str] = None
    nationality: Optional[str] = None


class PassengerPatch(BaseModel):
    flight_id: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    passport_number: Optional[str] = None
    seat_number: Optional[str] = None
    boarding_status: Optional[str] = None
    nationality: Optional[str] = None


class AlertCreate(BaseModel):
    title: str
    message: str
    severity: Optional[str] = None
    flight_id: Optional[int] = None
    runway_id: Optional[int] = None


class AlertPatch(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = None
    severity: Optional[str] = None
    flight_id: Optional[int] = None
    runway_id: Optional[int] = None
    is_active: Optional[bool] = None


class ActivityCreate(BaseModel):
    user_id: str
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


def provided(body: BaseModel, *, drop_none: bool = False) -> Dict[str, Any]:
    """Fields the client actually sent, without placeholders for omitted ones."""

    data = body.model_dump(exclude_unset=True)
    if drop_none:
        data = {key: value for key, value in data.items() if value is not None}
    return data
