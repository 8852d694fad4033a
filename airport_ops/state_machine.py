"""Operator actions on a flight and the status transitions they allow."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, List, Optional, Tuple

from .errors import Conflict, ValidationError

MIN_DELAY_MINUTES = 5
DEFAULT_DELAY_MINUTES = 30


@dataclass(frozen=True)
class Transition:
    action: str
    target: str
    sources: FrozenSet[str]
    title: str
    alert_severity: Optional[str] = None


TRANSITIONS: Dict[str, Transition] = {
    "takeoff": Transition("takeoff", "departed", frozenset({"scheduled", "boarding"}), "Approve Takeoff"),
    "landing": Transition(
        "landing", "landed", frozenset({"scheduled", "boarding", "departed", "landed"}), "Approve Landing"
    ),
    "delay": Transition("delay", "delayed", frozenset({"scheduled", "boarding"}), "Delay Flight", "warning"),
    "cancel": Transition(
        "cancel", "cancelled", frozenset({"scheduled", "boarding", "delayed"}), "Cancel Flight", "critical"
    ),
    "emergency": Transition(
        "emergency",
        "emergency",
        frozenset({"scheduled", "boarding", "delayed", "departed", "landed"}),
        "Activate Emergency",
        "emergency",
    ),
}


def get_transition(action: str) -> Transition:
    try:
        return TRANSITIONS[action]
    except KeyError:
        raise ValidationError(f"unknown flight action '{action}'") from None


def check_transition(action: str, current_status: str) -> Transition:
    """Return the transition for ``action`` or raise if ``current_status`` forbids it."""

    transition = get_transition(action)
    if current_status not in transition.sources:
        raise Conflict(f"cannot {action} a flight that is {current_status}")
    return transition


def allowed_actions(status: str) -> List[str]:
    return [action for action, transition in TRANSITIONS.items() if status in transition.sources]


def shift_schedule(departure: datetime, arrival: datetime, minutes: int) -> Tuple[datetime, datetime]:
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        raise ValidationError("delay minutes must be an integer")
    if minutes < MIN_DELAY_MINUTES:
        raise ValidationError(f"delay must be at least {MIN_DELAY_MINUTES} minutes")
    offset = timedelta(minutes=minutes)
    return departure + offset, arrival + offset


def alert_for(
    transition: Transition,
    flight_number: str,
    *,
    minutes: int = DEFAULT_DELAY_MINUTES,
    reason: Optional[str] = None,
    note: Optional[str] = None,
) -> Optional[Dict[str, str]]:
    """Build the alert emitted by a transition, if it emits one."""

    if transition.alert_severity is None:
        return None
    if transition.action == "delay":
        return {
            "title": f"Flight Delayed: {flight_number}",
            "message": f"{flight_number} delayed by {minutes} minutes. Reason: {reason or 'Not specified'}",
            "severity": transition.alert_severity,
        }
    if transition.action == "emergency":
        title = f"EMERGENCY: {flight_number}"
    else:
        title = f"Flight Cancelled: {flight_number}"
    return {
        "title": title,
        "message": note or f"{flight_number} status changed to {transition.target}",
        "severity": transition.alert_severity,
    }
