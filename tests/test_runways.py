import pytest

from airport_ops.errors import Conflict, Forbidden, ValidationError
from airport_ops.runways import (
    active_flight_on,
    create_runway,
    list_runways,
    release_runway,
    runway_assignments,
    set_runway_status,
    update_runway,
)
from airport_ops.services import create_flight, update_flight


@pytest.fixture
def runway_id(session_factory, actors):
    with session_factory() as session:
        runway = create_runway(session, actors["atc"], {"name": "R1", "length_meters": 3200})
        session.commit()
    return runway.id


def test_create_runway_defaults(session_factory, actors, runway_id):
    with session_factory() as session:
        (runway,) = list_runways(session)
    assert (runway.name, runway.status, runway.surface_type) == ("R1", "available", "asphalt")
    assert runway.length_meters == 3200


def test_runway_writes_need_operator_role(session_factory, actors, runway_id):
    with session_factory() as session:
        with pytest.raises(Forbidden):
            create_runway(session, actors["staff"], {"name": "R2"})
        with pytest.raises(Forbidden):
            set_runway_status(session, actors["staff"], runway_id, "closed")


def test_runway_validation(session_factory, actors, runway_id):
    with session_factory() as session:
        with pytest.raises(ValidationError):
            create_runway(session, actors["atc"], {"name": "R2", "length_meters": 0})
        with pytest.raises(ValidationError):
            set_runway_status(session, actors["atc"], runway_id, "flooded")
        with pytest.raises(Conflict):
            create_runway(session, actors["admin"], {"name": "R1"})


def test_cannot_mark_held_runway_available(session_factory, actors, flight_payload, runway_id):
    with session_factory() as session:
        create_flight(session, actors["atc"], flight_payload(status="boarding", runway_id=runway_id))
        session.commit()

    with session_factory() as session:
        with pytest.raises(Conflict, match="AA100"):
            set_runway_status(session, actors["atc"], runway_id, "available")
        with pytest.raises(Conflict):
            update_runway(session, actors["atc"], runway_id, {"status": "available"})
        closed = set_runway_status(session, actors["atc"], runway_id, "maintenance")
        session.commit()
    assert closed.status == "maintenance"


def test_runway_cannot_be_assigned_twice(session_factory, actors, flight_payload, runway_id):
    with session_factory() as session:
        first = create_flight(session, actors["atc"], flight_payload(runway_id=runway_id))
        second = create_flight(session, actors["atc"], flight_payload(flight_number="BA200"))
        session.commit()

    with session_factory() as session:
        with pytest.raises(Conflict, match="already assigned to AA100"):
            update_flight(session, actors["atc"], second.id, {"runway_id": runway_id})
        assert active_flight_on(session, runway_id).id == first.id
        assert {key: flight.flight_number for key, flight in runway_assignments(session).items()} == {
            runway_id: "AA100"
        }


def test_runway_in_maintenance_cannot_be_assigned(session_factory, actors, flight_payload, runway_id):
    with session_factory() as session:
        set_runway_status(session, actors["atc"], runway_id, "maintenance")
        with pytest.raises(Conflict, match="maintenance"):
            create_flight(session, actors["atc"], flight_payload(runway_id=runway_id))


def test_reassigning_releases_previous_runway(session_factory, actors, flight_payload, runway_id):
    with session_factory() as session:
        other = create_runway(session, actors["atc"], {"name": "R2"})
        flight = create_flight(session, actors["atc"], flight_payload(runway_id=runway_id))
        session.commit()

    with session_factory() as session:
        update_flight(session, actors["atc"], flight.id, {"runway_id": other.id})
        session.commit()
        statuses = {runway.name: runway.status for runway in list_runways(session)}
    assert statuses == {"R1": "available", "R2": "occupied"}


def test_release_unknown_runway_is_noop(session_factory):
    with session_factory() as session:
        assert release_runway(session, 999) is True


def test_renaming_to_taken_runway_name_conflicts(session_factory, actors, runway_id):
    with session_factory() as session:
        other = create_runway(session, actors["atc"], {"name": "R2"})
        session.commit()

    with session_factory() as session:
        with pytest.raises(Conflict, match="R1"):
            update_runway(session, actors["atc"], other.id, {"name": " R1 "})
        update_runway(session, actors["atc"], other.id, {"notes": "Resurfaced"})
        session.commit()
        names = [(runway.name, runway.notes) for runway in list_runways(session)]
    assert names == [("R1", None), ("R2", "Resurfaced")]


@pytest.mark.parametrize(
    "patch",
    [{"name": None}, {"name": "  "}, {"surface_type": None}, {"surface_type": ""}, {"length_meters": None}],
)
def test_null_or_blank_runway_patch_is_rejected(session_factory, actors, runway_id, patch):
    with session_factory() as session:
        with pytest.raises(ValidationError):
            update_runway(session, actors["atc"], runway_id, patch)
        with pytest.raises(ValidationError):
            create_runway(session, actors["atc"], {"name": "R7", **patch})
