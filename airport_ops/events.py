"""Change feed published to subscribers after a transaction commits."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from sqlalchemy import event
from sqlalchemy.orm import Session, SessionTransaction, sessionmaker

logger = logging.getLogger(__name__)

PUBLISHED_TABLES: FrozenSet[str] = frozenset({"flights", "runways", "alerts", "passengers", "activity_log"})

_PENDING_KEY = "airport_ops.pending_changes"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    operation: str
    row: Dict[str, Any]


Subscriber = Callable[[ChangeEvent], None]


class ChangeBus:
    """Fan committed row changes out to subscribers.

    A failing subscriber is logged and skipped; delivery to the remaining
    subscribers and the committing caller are unaffected.
    """

    def __init__(self) -> None:
        self._subscribers: List[Tuple[Subscriber, Optional[FrozenSet[str]]]] = []

    def subscribe(self, callback: Subscriber, tables: Optional[Iterable[str]] = None) -> Subscriber:
        self._subscribers.append((callback, frozenset(tables) if tables else None))
        return callback

    def unsubscribe(self, callback: Subscriber) -> None:
        self._subscribers = [entry for entry in self._subscribers if entry[0] != callback]

    def publish(self, change: ChangeEvent) -> None:
        for callback, tables in list(self._subscribers):
            if tables is not None and change.table not in tables:
                continue
            try:
                callback(change)
            except Exception:
                logger.exception("Change subscriber %r failed on %s %s", callback, change.operation, change.table)


def _descends_from(transaction: Optional[SessionTransaction], ancestor: SessionTransaction) -> bool:
    while transaction is not None:
        if transaction is ancestor:
            return True
        transaction = transaction.parent
    return False


def attach_change_feed(
    session_factory: sessionmaker[Session],
    bus: ChangeBus,
    *,
    tables: FrozenSet[str] = PUBLISHED_TABLES,
) -> None:
    """Publish rows flushed by sessions of ``session_factory`` once they commit."""

    def _collect(session: Session, obj: Any, operation: str, owner: Optional[SessionTransaction]) -> None:
        table = getattr(obj, "__tablename__", None)
        if table not in tables:
            return
        session.info.setdefault(_PENDING_KEY, []).append(
            (owner, ChangeEvent(table=table, operation=operation, row=obj.as_dict()))
        )

    @event.listens_for(session_factory, "after_flush")
    def collect_changes(session, flush_context):
        owner = session.get_nested_transaction() or session.get_transaction()
        for obj in session.new:
            _collect(session, obj, "INSERT", owner)
        for obj in session.dirty:
            if session.is_modified(obj, include_collections=False):
                _collect(session, obj, "UPDATE", owner)
        for obj in session.deleted:
            _collect(session, obj, "DELETE", owner)

    @event.listens_for(session_factory, "after_commit")
    def publish_changes(session):
        # also fired when a SAVEPOINT is released; wait for the outer commit
        if session.in_nested_transaction():
            return
        for _, change in session.info.pop(_PENDING_KEY, []):
            bus.publish(change)

    @event.listens_for(session_factory, "after_soft_rollback")
    def discard_changes(session, previous_transaction):
        pending = session.info.get(_PENDING_KEY)
        if pending:
            session.info[_PENDING_KEY] = [
                (owner, change) for owner, change in pending if not _descends_from(owner, previous_transaction)
            ]

    @event.listens_for(session_factory, "after_transaction_end")
    def forget_changes(session, transaction):
        if transaction.parent is None:
            session.info.pop(_PENDING_KEY, None)
