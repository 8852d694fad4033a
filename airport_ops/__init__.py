"""Airport operations core: flights, runways, passengers, alerts and roles."""
from typing import Any

from .database import create_session_factory, init_db, session_scope
from .errors import AirportOpsError, Conflict, Forbidden, NotFound, StoreUnavailable, ValidationError
from .events import ChangeBus, ChangeEvent, attach_change_feed
from .identity import get_role, provision_user, resolve_actor, set_role
from .policy import Actor, can_perform
from .services import create_flight, delete_flight, transition_flight_status, update_flight


def create_app(*args: Any, **kwargs: Any):  # pragma: no cover - thin wrapper
    from .web import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Actor",
    "AirportOpsError",
    "ChangeBus",
    "ChangeEvent",
    "Conflict",
    "Forbidden",
    "NotFound",
    "StoreUnavailable",
    "ValidationError",
    "attach_change_feed",
    "can_perform",
    "create_app",
    "create_flight",
    "create_session_factory",
    "delete_flight",
    "get_role",
    "init_db",
    "provision_user",
    "resolve_actor",
    "session_scope",
    "set_role",
    "transition_flight_status",
    "update_flight",
]
