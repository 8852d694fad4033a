"""Command line interface for inspecting and operating the airport store."""
from __future__ import annotations

import argparse
import sys
from typing import Iterable, List, Sequence

from tabulate import tabulate

from . import activity, identity, runways, services
from .config import configure_logging, load_settings
from .database import init_db, session_scope
from .dataset import generate_sample_data
from .errors import AirportOpsError
from .state_machine import DEFAULT_DELAY_MINUTES, TRANSITIONS


def _fmt(value) -> str:
    if value is None:
        return "-"
    if hasattr(value, "strftime"):
        return value.strftime("%Y-%m-%d %H:%M")
    return str(value)


def _render_table(rows: Iterable[Sequence], headers: List[str]) -> str:
    return tabulate([[_fmt(cell) for cell in row] for row in rows], headers=headers, tablefmt="github")


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Operate the airport operations store.")
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        help="SQLAlchemy database URL (default: $AIRPORT_OPS_DATABASE_URL or a local SQLite file).",
    )
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level (default: INFO).")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the schema.")

    seed = commands.add_parser("seed", help="Load runways and sample flights into an empty database.")
    seed.add_argument("--flights", type=int, default=12)
    seed.add_argument("--passengers", type=int, default=60)

    provision = commands.add_parser("provision", help="Register a user with the default staff role.")
    provision.add_argument("user_id")
    provision.add_argument("--email", default="")
    provision.add_argument("--name", default="")

    set_role = commands.add_parser("set-role", help="Change a user's role (admin only).")
    set_role.add_argument("acting_user")
    set_role.add_argument("user_id")
    set_role.add_argument("role", choices=["admin", "atc", "staff"])

    flights = commands.add_parser("flights", help="List flights.")
    flights.add_argument("--status")
    flights.add_argument("--active", action="store_true", help="Only flights still holding the field.")

    commands.add_parser("runways", help="List runways and the flight holding each.")

    log = commands.add_parser("activity", help="Show the activity log, newest first.")
    log.add_argument("--entity-type")
    log.add_argument("--limit", type=int, default=20)

    transition = commands.add_parser("transition", help="Run an ATC action on a flight.")
    transition.add_argument("acting_user")
    transition.add_argument("flight_id", type=int)
    transition.add_argument("action", choices=sorted(TRANSITIONS))
    transition.add_argument("--minutes", type=int, default=DEFAULT_DELAY_MINUTES)
    transition.add_argument("--reason")
    transition.add_argument("--note")

    return parser.parse_args(list(argv))


def _run(args: argparse.Namespace) -> str:
    session_factory = init_db(args.database_url)

    if args.command == "init-db":
        return "Schema ready."
    if args.command == "seed":
        counts = generate_sample_data(session_factory, flights=args.flights, passengers=args.passengers)
        return ", ".join(f"{value} {key}" for key, value in counts.items())

    with session_scope(session_factory) as session:
        if args.command == "provision":
            profile = identity.provision_user(session, args.user_id, email=args.email, full_name=args.name)
            return f"{profile.id}: {identity.get_role(session, profile.id)}"
        if args.command == "set-role":
            actor = identity.resolve_actor(session, args.acting_user)
            entry = identity.set_role(session, actor, args.user_id, args.role)
            return f"{entry.user_id}: {entry.role}"
        if args.command == "flights":
            rows = [
                (f.flight_number, f.airline, f"{f.origin}-{f.destination}", f.status, f.scheduled_departure, f.runway_id)
                for f in services.list_flights(session, status=args.status, active_only=args.active)
            ]
            return _render_table(rows, ["Flight", "Airline", "Route", "Status", "Departure", "Runway"])
        if args.command == "runways":
            holders = runways.runway_assignments(session)
            rows = [
                (r.name, r.status, r.length_meters, r.surface_type, holders[r.id].flight_number if r.id in holders else None)
                for r in runways.list_runways(session)
            ]
            return _render_table(rows, ["Runway", "Status", "Length (m)", "Surface", "Assigned flight"])
        if args.command == "activity":
            rows = [
                (e.created_at, e.user_id, e.entity_type, e.entity_id, e.action)
                for e in activity.list_activity(session, entity_type=args.entity_type, limit=args.limit)
            ]
            return _render_table(rows, ["When", "User", "Entity", "Id", "Action"])
        if args.command == "transition":
            actor = identity.resolve_actor(session, args.acting_user)
            flight = services.transition_flight_status(
                session,
                actor,
                args.flight_id,
                args.action,
                minutes=args.minutes,
                reason=args.reason,
                note=args.note,
            )
            return f"{flight.flight_number} is now {flight.status}"
    raise ValueError(f"Unsupported command '{args.command}'.")


def main(argv: Iterable[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log_level)
    try:
        output = _run(args)
    except AirportOpsError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(output)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
