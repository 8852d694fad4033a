import itertools

import pytest

from airport_ops.errors import Forbidden
from airport_ops.models import ROLES
from airport_ops.policy import ENTITIES, OPERATIONS, Actor, can_perform, require

ALL = {"admin", "atc", "staff"}
OPS = {"admin", "atc"}

EXPECTED = {
    ("runway", "read"): ALL,
    ("runway", "insert"): OPS,
    ("runway", "update"): OPS,
    ("runway", "delete"): OPS,
    ("flight", "read"): ALL,
    ("flight", "insert"): OPS,
    # staff only through the status field, see test_staff_flight_updates_limited_to_status
    ("flight", "update"): ALL,
    ("flight", "delete"): OPS,
    ("passenger", "read"): ALL,
    ("passenger", "insert"): ALL,
    ("passenger", "update"): ALL,
    ("passenger", "delete"): ALL,
    ("alert", "read"): ALL,
    ("alert", "insert"): ALL,
    ("alert", "update"): OPS,
    ("alert", "delete"): OPS,
    ("user_role", "read"): ALL,
    ("user_role", "insert"): {"admin"},
    ("user_role", "update"): {"admin"},
    ("user_role", "delete"): {"admin"},
    ("activity_log", "read"): ALL,
    ("activity_log", "insert"): ALL,
    ("activity_log", "update"): set(),
    ("activity_log", "delete"): set(),
}


def test_policy_matches_role_table_for_every_combination():
    combinations = list(itertools.product(ROLES, ENTITIES, OPERATIONS))
    assert len(combinations) == 3 * 6 * 4
    for role, entity, operation in combinations:
        expected = role in EXPECTED[(entity, operation)]
        assert can_perform(role, entity, operation) is expected, (role, entity, operation)


def test_staff_flight_updates_limited_to_status():
    assert can_perform("staff", "flight", "update", ["status"])
    assert not can_perform("staff", "flight", "update", ["status", "gate"])
    assert not can_perform("staff", "flight", "update", ["runway_id"])
    assert can_perform("atc", "flight", "update", ["status", "gate", "runway_id"])


def test_transition_reserved_for_operators():
    assert can_perform("admin", "flight", "transition")
    assert can_perform("atc", "flight", "transition")
    assert not can_perform("staff", "flight", "transition")


def test_unknown_role_entity_or_operation_is_denied():
    assert not can_perform("pilot", "flight", "read")
    assert not can_perform("admin", "hangar", "read")
    assert not can_perform("admin", "flight", "archive")


def test_require_raises_forbidden_with_reason():
    with pytest.raises(Forbidden, match="staff"):
        require(Actor(user_id="u1", role="staff"), "runway", "update")
    require(Actor(user_id="u2", role="atc"), "runway", "update")
