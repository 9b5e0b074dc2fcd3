"""
In-process change feed.

Committed inserts / updates / deletes on the watched tables are published to
subscribers after the surrounding transaction commits. Work that is rolled
back is never published.

    sub = change_feed.subscribe("loan_applications", on_change)
    ...
    sub.unsubscribe()

Payload shape:
    {"table": "...", "eventType": "INSERT" | "UPDATE" | "DELETE", "new": {...}}
"""

import logging
import threading
from typing import Callable, List

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

REALTIME_TABLES = ("loan_applications", "daily_payments", "transactions")
EVENT_TYPES = ("INSERT", "UPDATE", "DELETE")

_PENDING_KEY = "realtime_pending"


class Subscription:
    def __init__(self, feed: "ChangeFeed", table: str, event_filter: str, callback: Callable[[dict], None]):
        self.feed = feed
        self.table = table
        self.event_filter = event_filter
        self.callback = callback
        self.active = True

    def matches(self, table: str, event_type: str) -> bool:
        return self.active and self.table == table and self.event_filter in ("*", event_type)

    def deliver(self, payload: dict):
        # a delivery racing with unsubscribe() is dropped
        if not self.active:
            return
        self.callback(payload)

    def unsubscribe(self):
        self.active = False
        self.feed._remove(self)


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

    def subscribe(self, table: str, callback: Callable[[dict], None], event_filter: str = "*") -> Subscription:
        if table not in REALTIME_TABLES:
            raise ValueError(f"Table {table!r} is not published on the change feed")

        event_filter = event_filter if event_filter == "*" else event_filter.upper()
        if event_filter != "*" and event_filter not in EVENT_TYPES:
            raise ValueError(f"Unknown event filter {event_filter!r}")

        sub = Subscription(self, table, event_filter, callback)
        with self._lock:
            self._subscriptions.append(sub)
        return sub

    def _remove(self, sub: Subscription):
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    def subscriber_count(self, table: str = None) -> int:
        with self._lock:
            return len([s for s in self._subscriptions if table is None or s.table == table])

    def publish(self, table: str, event_type: str, record: dict) -> int:
        payload = {"table": table, "eventType": event_type, "new": record}

        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(table, event_type)]

        for sub in targets:
            try:
                sub.deliver(payload)
            except Exception:
                # live updates are best effort; one bad listener must not starve the rest
                logger.exception("Change feed subscriber failed for %s %s", table, event_type)

        return len(targets)


change_feed = ChangeFeed()


def _row_snapshot(obj) -> dict:
    state = inspect(obj)
    # only already-loaded values; no lazy loads inside flush
    return {
        attr.key: state.dict.get(attr.key)
        for attr in state.mapper.column_attrs
    }


@event.listens_for(Session, "after_flush")
def _collect_changes(session, flush_context):
    pending = session.info.setdefault(_PENDING_KEY, [])

    for event_type, objs in (
        ("INSERT", session.new),
        ("UPDATE", session.dirty),
        ("DELETE", session.deleted),
    ):
        for obj in objs:
            table = getattr(obj, "__tablename__", None)
            if table not in REALTIME_TABLES:
                continue
            if event_type == "UPDATE" and not session.is_modified(obj):
                continue
            pending.append((table, event_type, _row_snapshot(obj)))


@event.listens_for(Session, "after_commit")
def _publish_changes(session):
    pending = session.info.pop(_PENDING_KEY, [])
    for table, event_type, record in pending:
        change_feed.publish(table, event_type, record)


@event.listens_for(Session, "after_rollback")
def _discard_changes(session):
    session.info.pop(_PENDING_KEY, None)
