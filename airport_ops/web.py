"""FastAPI application exposing the airport operations core."""
from __future__ import annotations

import json
from io import BytesIO, StringIO
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional

import pandas as pd
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session, sessionmaker

from . import activity, alerts, dashboard, identity, passengers, runways, services
from .config import configure_logging, load_settings
from .database import init_db, session_scope
from .errors import AirportOpsError, Conflict, Forbidden, NotFound, StoreUnavailable, ValidationError
from .events import ChangeBus, attach_change_feed
from .policy import Actor, require
from .schemas import (
    ActivityCreate,
    AlertCreate,
    AlertPatch,
    FlightCreate,
    FlightPatch,
    PassengerCreate,
    PassengerPatch,
    ProvisionRequest,
    RoleRequest,
    RunwayCreate,
    RunwayPatch,
    StatusRequest,
    TransitionRequest,
    provided,
)
from .state_machine import allowed_actions

ExportTable = Literal["flights", "runways", "passengers", "alerts", "activity"]

_STATUS_CODES: Dict[type, int] = {
    ValidationError: 422,
    Forbidden: 403,
    NotFound: 404,
    Conflict: 409,
    StoreUnavailable: 503,
}

_EXPORTERS: Dict[str, tuple[str, Callable[[Session], Iterable[Any]]]] = {
    "flights": ("flight", services.list_flights),
    "runways": ("runway", runways.list_runways),
    "passengers": ("passenger", passengers.list_passengers),
    "alerts": ("alert", alerts.list_alerts),
    "activity": ("activity_log", activity.list_activity),
}


def _status_code(exc: AirportOpsError) -> int:
    for cls in type(exc).__mro__:
        if cls in _STATUS_CODES:
            return _STATUS_CODES[cls]
    return 400


def _as_dataframe(rows: Iterable[Any]) -> pd.DataFrame:
    data: List[Dict[str, Any]] = []
    for row in rows:
        record = row.as_dict()
        for key, value in record.items():
            if isinstance(value, dict):
                record[key] = json.dumps(value, sort_keys=True)
        data.append(record)
    return pd.DataFrame(data)


def _flight_view(flight) -> Dict[str, Any]:
    view = flight.as_dict()
    view["allowed_actions"] = allowed_actions(flight.status)
    return view


def create_app(
    session_factory: Optional[sessionmaker[Session]] = None,
    *,
    bus: Optional[ChangeBus] = None,
) -> FastAPI:
    """Return an application wired to ``session_factory`` (or the configured database)."""

    if session_factory is None:
        settings = load_settings()
        configure_logging(settings.log_level)
        session_factory = init_db(settings.database_url, echo=settings.echo_sql)
    bus = bus or ChangeBus()
    attach_change_feed(session_factory, bus)

    app = FastAPI(title="Airport Ops", description="Flights, runways, passengers and alerts")
    app.state.session_factory = session_factory
    app.state.change_bus = bus

    @app.exception_handler(AirportOpsError)
    async def handle_domain_error(request: Request, exc: AirportOpsError) -> JSONResponse:
        return JSONResponse(status_code=_status_code(exc), content={"error": exc.kind, "detail": str(exc)})

    def current_actor(x_user_id: Optional[str] = Header(None)) -> Actor:
        if not x_user_id:
            raise HTTPException(status_code=401, detail="X-User-Id header is required")
        try:
            with session_scope(session_factory) as session:
                return identity.resolve_actor(session, x_user_id)
        except NotFound as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc

    # identity

    @app.post("/users", status_code=201)
    def provision(body: ProvisionRequest) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            profile = identity.provision_user(session, body.user_id, email=body.email, full_name=body.full_name)
            return {**profile.as_dict(), "role": identity.get_role(session, profile.id)}

    @app.get("/users")
    def users(actor: Actor = Depends(current_actor)) -> List[Dict[str, str]]:
        require(actor, "user_role", "read")
        with session_scope(session_factory) as session:
            return identity.list_users(session)

    @app.put("/users/{user_id}/role")
    def change_role(user_id: str, body: RoleRequest, actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            return identity.set_role(session, actor, user_id, body.role).as_dict()

    # flights

    @app.get("/flights")
    def flights(
        status: Optional[str] = Query(None),
        search: Optional[str] = Query(None),
        active_only: bool = Query(False),
        actor: Actor = Depends(current_actor),
    ) -> List[Dict[str, Any]]:
        require(actor, "flight", "read")
        with session_scope(session_factory) as session:
            found = services.list_flights(session, status=status, search=search, active_only=active_only)
            return [_flight_view(flight) for flight in found]

    @app.post("/flights", status_code=201)
    def add_flight(body: FlightCreate, actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            return _flight_view(services.create_flight(session, actor, provided(body, drop_none=True)))

    @app.get("/flights/{flight_id}")
    def flight_detail(flight_id: int, actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        require(actor, "flight", "read")
        with session_scope(session_factory) as session:
            return _flight_view(services.get_flight(session, flight_id))

    @app.patch("/flights/{flight_id}")
    def edit_flight(flight_id: int, body: FlightPatch, actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            return _flight_view(services.update_flight(session, actor, flight_id, provided(body)))

    @app.delete("/flights/{flight_id}", status_code=204)
    def remove_flight(flight_id: int, actor: Actor = Depends(current_actor)) -> Response:
        with session_scope(session_factory) as session:
            services.delete_flight(session, actor, flight_id)
        return Response(status_code=204)

    @app.post("/flights/{flight_id}/transitions")
    def transition(flight_id: int, body: TransitionRequest, actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            flight = services.transition_flight_status(
                session,
                actor,
                flight_id,
                body.action,
                minutes=body.minutes,
                reason=body.reason,
                note=body.note,
                expected_status=body.expected_status,
            )
            return _flight_view(flight)

    # runways

    @app.get("/runways")
    def runway_list(status: Optional[str] = Query(None), actor: Actor = Depends(current_actor)) -> List[Dict[str, Any]]:
        require(actor, "runway", "read")
        with session_scope(session_factory) as session:
            return [runway.as_dict() for runway in runways.list_runways(session, status=status)]

    @app.get("/runways/assignments")
    def runway_holders(actor: Actor = Depends(current_actor)) -> Dict[int, Dict[str, Any]]:
        require(actor, "runway", "read")
        with session_scope(session_factory) as session:
            return {
                runway_id: {"id": flight.id, "flight_number": flight.flight_number, "status": flight.status}
                for runway_id, flight in runways.runway_assignments(session).items()
            }

    @app.post("/runways", status_code=201)
    def add_runway(body: RunwayCreate, actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            return runways.create_runway(session, actor, provided(body, drop_none=True)).as_dict()

    @app.patch("/runways/{runway_id}")
    def edit_runway(runway_id: int, body: RunwayPatch, actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            return runways.update_runway(session, actor, runway_id, provided(body)).as_dict()

    @app.put("/runways/{runway_id}/status")
    def runway_status(runway_id: int, body: StatusRequest, actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            return runways.set_runway_status(session, actor, runway_id, body.status).as_dict()

    @app.delete("/runways/{runway_id}", status_code=204)
    def remove_runway(runway_id: int, actor: Actor = Depends(current_actor)) -> Response:
        with session_scope(session_factory) as session:
            runways.delete_runway(session, actor, runway_id)
        return Response(status_code=204)

    # passengers

    @app.get("/passengers")
    def passenger_list(
        flight_id: Optional[int] = Query(None), actor: Actor = Depends(current_actor)
    ) -> List[Dict[str, Any]]:
        require(actor, "passenger", "read")
        with session_scope(session_factory) as session:
            return [p.as_dict() for p in passengers.list_passengers(session, flight_id=flight_id)]

    @app.post("/passengers", status_code=201)
    def add_passenger(body: PassengerCreate, actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            return passengers.create_passenger(session, actor, provided(body, drop_none=True)).as_dict()

    @app.patch("/passengers/{passenger_id}")
    def edit_passenger(
        passenger_id: int, body: PassengerPatch, actor: Actor = Depends(current_actor)
    ) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            return passengers.update_passenger(session, actor, passenger_id, provided(body)).as_dict()

    @app.put("/passengers/{passenger_id}/boarding")
    def boarding(passenger_id: int, body: StatusRequest, actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            return passengers.update_boarding_status(session, actor, passenger_id, body.status).as_dict()

    @app.delete("/passengers/{passenger_id}", status_code=204)
    def remove_passenger(passenger_id: int, actor: Actor = Depends(current_actor)) -> Response:
        with session_scope(session_factory) as session:
            passengers.delete_passenger(session, actor, passenger_id)
        return Response(status_code=204)

    @app.get("/tickets/{ticket_id}")
    def ticket(ticket_id: str, actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        require(actor, "passenger", "read")
        with session_scope(session_factory) as session:
            return passengers.find_by_ticket(session, ticket_id).as_dict()

    # alerts

    @app.get("/alerts")
    def alert_list(
        active_only: bool = Query(False),
        severity: Optional[str] = Query(None),
        actor: Actor = Depends(current_actor),
    ) -> List[Dict[str, Any]]:
        require(actor, "alert", "read")
        with session_scope(session_factory) as session:
            return [a.as_dict() for a in alerts.list_alerts(session, active_only=active_only, severity=severity)]

    @app.post("/alerts", status_code=201)
    def add_alert(body: AlertCreate, actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            return alerts.create_alert(session, actor, provided(body, drop_none=True)).as_dict()

    @app.patch("/alerts/{alert_id}")
    def edit_alert(alert_id: int, body: AlertPatch, actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            return alerts.update_alert(session, actor, alert_id, provided(body)).as_dict()

    @app.post("/alerts/{alert_id}/acknowledge")
    def acknowledge(alert_id: int, actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            return alerts.acknowledge_alert(session, actor, alert_id).as_dict()

    @app.delete("/alerts/{alert_id}", status_code=204)
    def remove_alert(alert_id: int, actor: Actor = Depends(current_actor)) -> Response:
        with session_scope(session_factory) as session:
            alerts.delete_alert(session, actor, alert_id)
        return Response(status_code=204)

    # activity, overview, exports

    @app.get("/activity")
    def activity_list(
        entity_type: Optional[str] = Query(None),
        limit: int = Query(200, ge=1, le=1000),
        actor: Actor = Depends(current_actor),
    ) -> List[Dict[str, Any]]:
        require(actor, "activity_log", "read")
        with session_scope(session_factory) as session:
            return [e.as_dict() for e in activity.list_activity(session, entity_type=entity_type, limit=limit)]

    @app.get("/activity/entity-types")
    def activity_entity_types(actor: Actor = Depends(current_actor)) -> List[str]:
        require(actor, "activity_log", "read")
        with session_scope(session_factory) as session:
            return activity.entity_types(session)

    @app.post("/activity", status_code=201)
    def add_activity(body: ActivityCreate, actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            entry = activity.record_activity(session, actor, **body.model_dump())
            if entry is None:
                raise StoreUnavailable("activity entry was not recorded")
            return entry.as_dict()

    @app.get("/dashboard")
    def overview(actor: Actor = Depends(current_actor)) -> Dict[str, Any]:
        with session_scope(session_factory) as session:
            return {**dashboard.summary(session), "load": dashboard.summarize_load(session)}

    @app.get("/export/{table}/{file_format}")
    def export(
        table: ExportTable,
        file_format: Literal["csv", "xlsx"],
        actor: Actor = Depends(current_actor),
    ) -> StreamingResponse:
        entity, loader = _EXPORTERS[table]
        require(actor, entity, "read")
        with session_scope(session_factory) as session:
            dataframe = _as_dataframe(loader(session))

        filename = f"{table}.{file_format}"
        headers = {"Content-Disposition": f"attachment; filename=\"{filename}\""}

        if file_format == "csv":
            buffer = StringIO()
            dataframe.to_csv(buffer, index=False)
            buffer.seek(0)
            return StreamingResponse(iter([buffer.getvalue()]), media_type="text/csv", headers=headers)

        buffer = BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            dataframe.to_excel(writer, index=False, sheet_name=table.capitalize())
        buffer.seek(0)
        return StreamingResponse(
            buffer,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers=headers,
        )

    return app


__all__ = ["create_app"]
