"""In-process publish/subscribe for committed row changes.

Listeners are attached to every SQLAlchemy session: rows added during a
flush, and changes staged with :meth:`ChangeFeed.stage`, are held in
``session.info`` and published once the transaction commits. A rollback
drops them, so subscribers only ever hear about committed state.
Subscribers receive a :class:`Change` carrying the primary key, not the
instance.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

INSERTED = "inserted"

_PENDING_KEY = "change_feed_pending"


@dataclass(frozen=True)
class Change:
    kind: str
    row_id: str | None = None  # None: many rows changed at once


Callback = Callable[[Change], None]


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._channels: dict[str, list[Callback]] = {}
        self._tables: dict[type, str] = {}

    def watch(self, model: type, channel: str) -> None:
        """Publish inserts of ``model`` rows on ``channel``."""
        self._tables[model] = channel

    def channel_for(self, obj: object) -> str | None:
        return self._tables.get(type(obj))

    def stage(self, session: Session, channel: str, change: Change) -> None:
        """Queue a change to publish when ``session`` commits."""
        session.info.setdefault(_PENDING_KEY, []).append((channel, change))

    def subscribe(self, channel: str, callback: Callback) -> Callable[[], None]:
        """Register a callback; returns a function that removes it."""
        with self._lock:
            self._channels.setdefault(channel, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._channels.get(channel, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._channels.get(channel, []))

    def publish(self, channel: str, change: Change) -> None:
        with self._lock:
            callbacks = list(self._channels.get(channel, []))
        for callback in callbacks:
            try:
                callback(change)
            except Exception:
                logger.exception("Change feed subscriber failed on channel %s", channel)


change_feed = ChangeFeed()


@event.listens_for(Session, "after_flush")
def _collect_inserts(session, flush_context):
    for obj in session.new:
        channel = change_feed.channel_for(obj)
        if channel:
            change_feed.stage(session, channel, Change(INSERTED, obj.id))


@event.listens_for(Session, "after_commit")
def _publish_changes(session):
    for channel, change in session.info.pop(_PENDING_KEY, []):
        change_feed.publish(channel, change)


@event.listens_for(Session, "after_rollback")
def _discard_changes(session):
    session.info.pop(_PENDING_KEY, None)
