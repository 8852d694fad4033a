"""Role based authorization rules evaluated before every store mutation.

Every entity is readable by any authenticated role. Writes are decided by the
``POLICY`` table below; a role missing from an entry is denied.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from .errors import Forbidden
from .models import ROLES

ENTITIES = ("runway", "flight", "passenger", "alert", "user_role", "activity_log")
OPERATIONS = ("read", "insert", "update", "delete")

_ALL = frozenset(ROLES)
_OPS = frozenset({"admin", "atc"})
_ADMIN = frozenset({"admin"})
_NOBODY: FrozenSet[str] = frozenset()

POLICY: Dict[str, Dict[str, FrozenSet[str]]] = {
    "runway": {"read": _ALL, "insert": _OPS, "update": _OPS, "delete": _OPS},
    "flight": {
        "read": _ALL,
        "insert": _OPS,
        "update": _ALL,
        "delete": _OPS,
        "transition": _OPS,
    },
    "passenger": {"read": _ALL, "insert": _ALL, "update": _ALL, "delete": _ALL},
    "alert": {"read": _ALL, "insert": _ALL, "update": _OPS, "delete": _OPS},
    "user_role": {"read": _ALL, "insert": _ADMIN, "update": _ADMIN, "delete": _ADMIN},
    # Inserts are further restricted to entries written by the acting user.
    "activity_log": {"read": _ALL, "insert": _ALL, "update": _NOBODY, "delete": _NOBODY},
}

# (role, entity, operation) -> the only fields that role may touch.
FIELD_LIMITS: Dict[Tuple[str, str, str], FrozenSet[str]] = {
    ("staff", "flight", "update"): frozenset({"status"}),
}


@dataclass(frozen=True)
class Actor:
    """The acting user and the role resolved for them."""

    user_id: str
    role: str


def can_perform(
    role: str,
    entity: str,
    operation: str,
    fields: Optional[Iterable[str]] = None,
) -> bool:
    allowed = POLICY.get(entity, {}).get(operation, _NOBODY)
    if role not in allowed:
        return False
    limit = FIELD_LIMITS.get((role, entity, operation))
    if limit is not None and fields is not None:
        return set(fields) <= limit
    return True


def field_limit(role: str, entity: str, operation: str) -> Optional[FrozenSet[str]]:
    return FIELD_LIMITS.get((role, entity, operation))


def require(
    actor: Actor,
    entity: str,
    operation: str,
    fields: Optional[Iterable[str]] = None,
) -> None:
    """Raise :class:`Forbidden` unless ``actor`` may run ``operation``."""

    if fields is not None:
        fields = sorted(fields)
    if not can_perform(actor.role, entity, operation, fields):
        detail = f" on fields {', '.join(fields)}" if fields else ""
        raise Forbidden(f"role '{actor.role}' may not {operation} {entity}{detail}")
