"""Identity and role store: one role per user, staff by default."""
from __future__ import annotations

import logging
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import activity
from .errors import NotFound, ValidationError
from .models import DEFAULT_ROLE, ROLES, Profile, UserRole
from .policy import Actor, require

logger = logging.getLogger(__name__)


def provision_user(session: Session, user_id: str, *, email: str = "", full_name: str = "") -> Profile:
    """Post-registration hook: create the profile and the default role.

    Safe to call again for an identity that already exists; the stored
    profile is returned untouched.
    """

    if not user_id:
        raise ValidationError("user_id is required")
    profile = session.get(Profile, user_id)
    if profile is not None:
        return profile
    profile = Profile(id=user_id, email=email or "", full_name=full_name or "")
    profile.role = UserRole(user_id=user_id, role=DEFAULT_ROLE)
    session.add(profile)
    session.flush()
    logger.info("Provisioned user %s with role %s", user_id, DEFAULT_ROLE)
    return profile


def get_role(session: Session, user_id: str) -> str:
    role = session.scalar(select(UserRole.role).where(UserRole.user_id == user_id))
    if role is None:
        raise NotFound(f"no role assigned to user '{user_id}'")
    return role


def resolve_actor(session: Session, user_id: str) -> Actor:
    return Actor(user_id=user_id, role=get_role(session, user_id))


def set_role(session: Session, actor: Actor, user_id: str, role: str) -> UserRole:
    require(actor, "user_role", "update")
    if role not in ROLES:
        raise ValidationError(f"unknown role '{role}'")
    profile = session.get(Profile, user_id)
    if profile is None:
        raise NotFound(f"user '{user_id}' not found")
    entry = session.scalar(select(UserRole).where(UserRole.user_id == user_id))
    previous = entry.role if entry else None
    if entry is None:
        entry = UserRole(user_id=user_id, role=role)
        session.add(entry)
    else:
        entry.role = role
    session.flush()
    activity.record(
        session,
        actor.user_id,
        f"Changed role of {profile.email or user_id} to {role}",
        "user_role",
        user_id,
        {"previous": previous, "role": role},
    )
    logger.info("User %s changed role of %s from %s to %s", actor.user_id, user_id, previous, role)
    return entry


def list_users(session: Session) -> List[Dict[str, str]]:
    rows = session.execute(
        select(Profile.id, Profile.full_name, Profile.email, UserRole.role)
        .outerjoin(UserRole, UserRole.user_id == Profile.id)
        .order_by(Profile.email)
    ).all()
    return [
        {
            "id": row.id,
            "full_name": row.full_name,
            "email": row.email,
            "role": row.role or DEFAULT_ROLE,
        }
        for row in rows
    ]
