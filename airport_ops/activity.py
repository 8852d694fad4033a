"""Append-only audit trail of mutating actions."""
from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from sqlalchemy import event, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import Forbidden
from .models import ActivityLogEntry
from .policy import Actor, require

logger = logging.getLogger(__name__)


@event.listens_for(ActivityLogEntry, "before_update")
def _refuse_update(mapper, connection, target):
    raise Forbidden("activity log entries are immutable")


@event.listens_for(ActivityLogEntry, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise Forbidden("activity log entries cannot be deleted")


def record(
    session: Session,
    user_id: Optional[str],
    action: str,
    entity_type: str,
    entity_id: Any = None,
    details: Optional[Mapping[str, Any]] = None,
) -> Optional[ActivityLogEntry]:
    """Append an entry; a store failure is logged and never aborts the caller."""

    entry = ActivityLogEntry(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=None if entity_id is None else str(entity_id),
        details=dict(details or {}),
    )
    try:
        with session.begin_nested():
            session.add(entry)
            session.flush()
    except SQLAlchemyError:
        logger.exception("Could not record activity %r for %s %s", action, entity_type, entity_id)
        return None
    return entry


def record_activity(
    session: Session,
    actor: Actor,
    *,
    user_id: str,
    action: str,
    entity_type: str,
    entity_id: Any = None,
    details: Optional[Mapping[str, Any]] = None,
) -> Optional[ActivityLogEntry]:
    require(actor, "activity_log", "insert")
    if user_id != actor.user_id:
        raise Forbidden("activity entries must be written by the acting user")
    return record(session, user_id, action, entity_type, entity_id, details)


def list_activity(
    session: Session,
    *,
    entity_type: Optional[str] = None,
    limit: int = 200,
) -> List[ActivityLogEntry]:
    stmt = select(ActivityLogEntry).order_by(ActivityLogEntry.created_at.desc(), ActivityLogEntry.id.desc())
    if entity_type:
        stmt = stmt.where(ActivityLogEntry.entity_type == entity_type)
    return list(session.scalars(stmt.limit(limit)))


def entity_types(session: Session) -> List[str]:
    rows = session.scalars(select(ActivityLogEntry.entity_type).distinct().order_by(ActivityLogEntry.entity_type))
    return list(rows)

