import pytest
from sqlalchemy import select

from airport_ops.activity import entity_types, list_activity, record, record_activity
from airport_ops.errors import Forbidden, NotFound, ValidationError
from airport_ops.identity import get_role, list_users, provision_user, resolve_actor, set_role
from airport_ops.models import ActivityLogEntry, UserRole


def test_new_users_get_staff_role(session_factory):
    with session_factory() as session:
        provision_user(session, "u-1", email="u1@example.com", full_name="User One")
        session.commit()
        assert get_role(session, "u-1") == "staff"
        assert resolve_actor(session, "u-1").role == "staff"


def test_provisioning_is_idempotent(session_factory):
    with session_factory() as session:
        first = provision_user(session, "u-1", email="first@example.com")
        again = provision_user(session, "u-1", email="second@example.com")
        session.commit()
        roles = session.scalars(select(UserRole).where(UserRole.user_id == "u-1")).all()
    assert first is again
    assert again.email == "first@example.com"
    assert len(roles) == 1


def test_unknown_user_has_no_role(session_factory):
    with session_factory() as session:
        with pytest.raises(NotFound):
            get_role(session, "ghost")
        with pytest.raises(ValidationError):
            provision_user(session, "")


def test_only_admin_changes_roles(session_factory, actors):
    with session_factory() as session:
        with pytest.raises(Forbidden):
            set_role(session, actors["atc"], "staff-1", "admin")
        with pytest.raises(ValidationError):
            set_role(session, actors["admin"], "staff-1", "pilot")
        with pytest.raises(NotFound):
            set_role(session, actors["admin"], "ghost", "atc")
        set_role(session, actors["admin"], "staff-1", "atc")
        session.commit()
        assert get_role(session, "staff-1") == "atc"
        entry = list_activity(session, entity_type="user_role")[0]
    assert entry.entity_id == "staff-1"
    assert entry.details == {"previous": "staff", "role": "atc"}


def test_list_users(session_factory, actors):
    with session_factory() as session:
        users = {user["id"]: user["role"] for user in list_users(session)}
    assert users == {"admin-1": "admin", "atc-1": "atc", "staff-1": "staff"}


def test_activity_entries_are_immutable(session_factory, actors):
    with session_factory() as session:
        entry = record(session, "staff-1", "Checked gate", "flight", 1)
        session.commit()

    with session_factory() as session:
        stored = session.get(ActivityLogEntry, entry.id)
        stored.action = "Rewritten"
        with pytest.raises(Forbidden):
            session.flush()
        session.rollback()

        session.delete(session.get(ActivityLogEntry, entry.id))
        with pytest.raises(Forbidden):
            session.flush()
        session.rollback()
        assert session.get(ActivityLogEntry, entry.id).action == "Checked gate"


def test_record_failure_does_not_abort_caller(session_factory, actors):
    with session_factory() as session:
        assert record(session, "staff-1", None, "flight") is None
        kept = record(session, "staff-1", "Still usable", "flight")
        session.commit()
        actions = [e.action for e in list_activity(session)]
    assert kept is not None
    assert actions == ["Still usable"]


def test_record_activity_must_be_written_by_actor(session_factory, actors):
    with session_factory() as session:
        with pytest.raises(Forbidden):
            record_activity(session, actors["staff"], user_id="admin-1", action="Forged", entity_type="flight")
        entry = record_activity(
            session, actors["staff"], user_id="staff-1", action="Printed manifest", entity_type="passenger"
        )
        record(session, "atc-1", "Approved", "flight", 7)
        session.commit()
        assert entry.user_id == "staff-1"
        assert [e.action for e in list_activity(session, limit=1)] == ["Approved"]
        assert entity_types(session) == ["flight", "passenger"]
