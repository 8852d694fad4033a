import pytest
from sqlalchemy import select

from airport_ops.errors import Conflict, NotFound, ValidationError
from airport_ops.models import ActivityLogEntry
from airport_ops.passengers import (
    TICKET_PATTERN,
    create_passenger,
    delete_passenger,
    find_by_ticket,
    generate_ticket_id,
    list_passengers,
    update_boarding_status,
    update_passenger,
)
from airport_ops.services import create_flight


@pytest.fixture
def flight_id(session_factory, actors, flight_payload):
    with session_factory() as session:
        flight = create_flight(session, actors["atc"], flight_payload())
        session.commit()
    return flight.id


def _passenger(flight_id, /, **overrides):
    payload = {"flight_id": flight_id, "first_name": " Ava ", "last_name": "Lee", "passport_number": "X1234567"}
    payload.update(overrides)
    return payload


def test_generated_ticket_ids_match_pattern_and_do_not_repeat():
    tickets = [generate_ticket_id() for _ in range(10_000)]
    assert all(TICKET_PATTERN.match(ticket) for ticket in tickets)
    assert len(set(tickets)) == len(tickets)


def test_staff_adds_passenger_with_ticket(session_factory, actors, flight_id):
    with session_factory() as session:
        passenger = create_passenger(session, actors["staff"], _passenger(flight_id))
        session.commit()
        entry = session.scalars(select(ActivityLogEntry).order_by(ActivityLogEntry.id.desc())).first()
    assert TICKET_PATTERN.match(passenger.ticket_id)
    assert passenger.first_name == "Ava"
    assert passenger.boarding_status == "checked_in"
    assert passenger.nationality == "Unknown"
    assert entry.action == "Added passenger Ava Lee"
    assert entry.details == {"ticket_id": passenger.ticket_id}


def test_ticket_collision_retries(session_factory, actors, flight_id):
    tickets = iter(["TKT-AAAA0001", "TKT-AAAA0001", "TKT-AAAA0002"])
    with session_factory() as session:
        first = create_passenger(session, actors["staff"], _passenger(flight_id), ticket_generator=lambda: next(tickets))
        second = create_passenger(
            session, actors["staff"], _passenger(flight_id, passport_number="Y1"), ticket_generator=lambda: next(tickets)
        )
        session.commit()
    assert (first.ticket_id, second.ticket_id) == ("TKT-AAAA0001", "TKT-AAAA0002")


def test_ticket_allocation_gives_up(session_factory, actors, flight_id):
    with session_factory() as session:
        create_passenger(session, actors["staff"], _passenger(flight_id), ticket_generator=lambda: "TKT-SAME0000")
        with pytest.raises(Conflict):
            create_passenger(session, actors["staff"], _passenger(flight_id), ticket_generator=lambda: "TKT-SAME0000")


def test_passenger_validation(session_factory, actors, flight_id):
    with session_factory() as session:
        with pytest.raises(ValidationError, match="passport_number"):
            create_passenger(session, actors["staff"], _passenger(flight_id, passport_number=""))
        with pytest.raises(ValidationError):
            create_passenger(session, actors["staff"], _passenger(flight_id, boarding_status="asleep"))
        with pytest.raises(NotFound):
            create_passenger(session, actors["staff"], _passenger(999))


def test_find_by_ticket(session_factory, actors, flight_id):
    with session_factory() as session:
        passenger = create_passenger(session, actors["staff"], _passenger(flight_id))
        session.commit()
        assert find_by_ticket(session, passenger.ticket_id.lower()).id == passenger.id
        with pytest.raises(ValidationError):
            find_by_ticket(session, "TKT-123")
        with pytest.raises(NotFound):
            find_by_ticket(session, "TKT-ZZZZZZZZ")


def test_boarding_update_and_removal(session_factory, actors, flight_id):
    with session_factory() as session:
        passenger = create_passenger(session, actors["staff"], _passenger(flight_id))
        update_boarding_status(session, actors["staff"], passenger.id, "boarded")
        update_passenger(session, actors["staff"], passenger.id, {"seat_number": "12A"})
        session.commit()
        assert (passenger.boarding_status, passenger.seat_number) == ("boarded", "12A")
        with pytest.raises(ValidationError):
            update_boarding_status(session, actors["staff"], passenger.id, "gone")

        delete_passenger(session, actors["staff"], passenger.id)
        session.commit()
        assert list_passengers(session, flight_id=flight_id) == []
        actions = [entry.action for entry in session.scalars(select(ActivityLogEntry).order_by(ActivityLogEntry.id))]
    assert actions[-3:] == [
        "Updated boarding status: Ava Lee → boarded",
        "Updated passenger Ava Lee",
        "Removed passenger Ava Lee",
    ]


@pytest.mark.parametrize(
    "patch",
    [{"first_name": None}, {"last_name": "   "}, {"passport_number": None}, {"flight_id": None}, {"boarding_status": None}],
)
def test_null_or_blank_passenger_fields_are_rejected(session_factory, actors, flight_id, patch):
    with session_factory() as session:
        passenger = create_passenger(session, actors["staff"], _passenger(flight_id))
        with pytest.raises(ValidationError):
            update_passenger(session, actors["staff"], passenger.id, patch)
        with pytest.raises(ValidationError):
            create_passenger(session, actors["staff"], _passenger(flight_id, **patch))
        assert (passenger.first_name, passenger.last_name, passenger.passport_number) == ("Ava", "Lee", "X1234567")
