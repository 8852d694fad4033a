"""Read-only aggregates for the operations overview."""
from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from . import activity, alerts
from .models import Flight, Passenger, Runway


def summarize_load(session: Session) -> List[dict]:
    rows = session.execute(
        select(
            Flight.flight_number,
            Flight.origin,
            Flight.destination,
            Flight.status,
            Flight.capacity,
            func.count(Passenger.id).label("passengers"),
        )
        .outerjoin(Passenger)
        .group_by(Flight.id)
        .order_by(Flight.scheduled_departure)
    ).all()
    return [
        {
            "flight": row.flight_number,
            "route": f"{row.origin}-{row.destination}",
            "status": row.status,
            "capacity": row.capacity,
            "passengers": row.passengers,
        }
        for row in rows
    ]


def summary(session: Session, *, recent: int = 10) -> Dict[str, Any]:
    by_status = dict(session.execute(select(Flight.status, func.count(Flight.id)).group_by(Flight.status)).all())
    open_alerts = alerts.list_alerts(session, active_only=True)
    return {
        "total_flights": sum(by_status.values()),
        "active_flights": by_status.get("boarding", 0) + by_status.get("departed", 0),
        "scheduled_flights": by_status.get("scheduled", 0),
        "delayed_flights": by_status.get("delayed", 0),
        "cancelled_flights": by_status.get("cancelled", 0),
        "emergencies": by_status.get("emergency", 0),
        "total_passengers": session.scalar(select(func.count(Passenger.id))) or 0,
        "available_runways": session.scalar(
            select(func.count(Runway.id)).where(Runway.status == "available")
        ) or 0,
        "active_alerts": len(open_alerts),
        "latest_alerts": [alert.as_dict() for alert in open_alerts[:5]],
        "recent_activity": [entry.as_dict() for entry in activity.list_activity(session, limit=recent)],
    }
