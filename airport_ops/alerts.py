"""Operational alerts and their acknowledgement."""
from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import activity, payloads
from .errors import Conflict, NotFound, ValidationError
from .models import ALERT_SEVERITIES, Alert, Flight, Runway, utcnow
from .policy import Actor, require

logger = logging.getLogger(__name__)

ALERT_FIELDS = ("title", "message", "severity", "flight_id", "runway_id", "is_active")


def get_alert(session: Session, alert_id: int) -> Alert:
    alert = session.get(Alert, alert_id)
    if alert is None:
        raise NotFound(f"alert {alert_id} not found")
    return alert


def list_alerts(
    session: Session,
    *,
    active_only: bool = False,
    severity: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[Alert]:
    stmt = select(Alert).order_by(Alert.created_at.desc(), Alert.id.desc())
    if active_only:
        stmt = stmt.where(Alert.is_active.is_(True), Alert.is_acknowledged.is_(False))
    if severity:
        stmt = stmt.where(Alert.severity == severity)
    if limit:
        stmt = stmt.limit(limit)
    return list(session.scalars(stmt))


def _check_values(session: Session, data: dict) -> dict:
    for key in ("title", "message"):
        if key in data:
            data[key] = payloads.required_text(key, data[key])
    if "severity" in data:
        payloads.choice("severity", data["severity"], ALERT_SEVERITIES)
    if data.get("flight_id") is not None and session.get(Flight, data["flight_id"]) is None:
        raise NotFound(f"flight {data['flight_id']} not found")
    if data.get("runway_id") is not None and session.get(Runway, data["runway_id"]) is None:
        raise NotFound(f"runway {data['runway_id']} not found")
    if "is_active" in data:
        if data["is_active"] is None:
            raise ValidationError("is_active must be true or false")
        data["is_active"] = bool(data["is_active"])
    return data


def emit_alert(
    session: Session,
    created_by: Optional[str],
    *,
    title: str,
    message: str,
    severity: str = "info",
    flight_id: Optional[int] = None,
    runway_id: Optional[int] = None,
) -> Alert:
    """Insert an alert raised as a side effect of another, already authorized, action."""

    alert = Alert(
        title=title,
        message=message,
        severity=severity,
        flight_id=flight_id,
        runway_id=runway_id,
        created_by=created_by,
    )
    session.add(alert)
    session.flush()
    if severity == "emergency":
        logger.warning("Emergency alert raised: %s", title)
    return alert


def create_alert(session: Session, actor: Actor, payload: Mapping[str, Any]) -> Alert:
    require(actor, "alert", "insert")
    data = _check_values(
        session, payloads.clean(payload, allowed=ALERT_FIELDS, required=("title", "message"))
    )
    data.pop("is_active", None)
    alert = emit_alert(session, actor.user_id, **data)
    activity.record(session, actor.user_id, f"Created {alert.severity} alert: {alert.title}", "alert", alert.id)
    return alert


def update_alert(session: Session, actor: Actor, alert_id: int, patch: Mapping[str, Any]) -> Alert:
    require(actor, "alert", "update")
    data = _check_values(session, payloads.clean(patch, allowed=ALERT_FIELDS))
    alert = get_alert(session, alert_id)
    if alert.is_acknowledged and data.get("is_active"):
        raise Conflict("an acknowledged alert cannot be reactivated")
    for key, value in data.items():
        setattr(alert, key, value)
    session.flush()
    activity.record(session, actor.user_id, f"Updated alert {alert.title}", "alert", alert.id, {"fields": sorted(data)})
    return alert


def delete_alert(session: Session, actor: Actor, alert_id: int) -> None:
    require(actor, "alert", "delete")
    alert = get_alert(session, alert_id)
    title = alert.title
    session.delete(alert)
    session.flush()
    activity.record(session, actor.user_id, f"Deleted alert {title}", "alert", alert_id)


def acknowledge_alert(session: Session, actor: Actor, alert_id: int) -> Alert:
    """Acknowledge an alert once; a repeated call raises :class:`Conflict`."""

    require(actor, "alert", "update")
    alert = session.get(Alert, alert_id, with_for_update=True, populate_existing=True)
    if alert is None:
        raise NotFound(f"alert {alert_id} not found")
    if alert.is_acknowledged:
        raise Conflict(f"alert {alert_id} was already acknowledged by {alert.acknowledged_by}")
    alert.is_acknowledged = True
    alert.is_active = False
    alert.acknowledged_by = actor.user_id
    alert.acknowledged_at = utcnow()
    session.flush()
    activity.record(session, actor.user_id, "Acknowledged alert", "alert", alert.id)
    return alert
