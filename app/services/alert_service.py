import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.database import SessionLocal
from app.models.alert import Alert, AlertSeverity
from app.schemas.alert import AlertCreate, AlertOut, UnreadAlertsOut
from app.services.change_feed import INSERTED, Change, ChangeFeed, change_feed

logger = logging.getLogger(__name__)

ALERTS_CHANNEL = "alerts"
MARKED_READ = "marked_read"

change_feed.watch(Alert, ALERTS_CHANNEL)


def _with_links(q):
    return q.options(joinedload(Alert.product), joinedload(Alert.variant), joinedload(Alert.location))


def list_alerts(db: Session, unread_only: bool = False, limit: int = 100) -> list[Alert]:
    q = _with_links(db.query(Alert))
    if unread_only:
        q = q.filter(Alert.is_read == False)  # noqa: E712
    return q.order_by(Alert.created_at.desc()).limit(limit).all()


def fetch_unread(db: Session) -> list[Alert]:
    return _with_links(db.query(Alert)).filter(Alert.is_read == False).order_by(Alert.created_at.desc()).all()  # noqa: E712


def get_alert(db: Session, alert_id: str) -> Alert | None:
    return db.query(Alert).filter(Alert.id == alert_id).first()


def create_alert(db: Session, data: AlertCreate) -> Alert:
    alert = Alert(
        alert_type=data.type,
        message=data.message,
        severity=data.severity,
        product_id=data.product_id,
        variant_id=data.variant_id,
        batch_id=data.batch_id,
        location_id=data.location_id,
    )
    db.add(alert)
    db.commit()
    db.refresh(alert)
    logger.info("Alert %s raised (%s, %s)", alert.id, data.type.value, data.severity.value)
    return alert


def mark_alert_read(db: Session, alert_id: str) -> Alert | None:
    alert = get_alert(db, alert_id)
    if not alert:
        return None
    if not alert.is_read:
        alert.is_read = True
        change_feed.stage(db, ALERTS_CHANNEL, Change(MARKED_READ, alert.id))
    db.commit()
    db.refresh(alert)
    return alert


def mark_all_read(db: Session) -> int:
    count = db.query(Alert).filter(Alert.is_read == False).update({Alert.is_read: True})  # noqa: E712
    if count:
        change_feed.stage(db, ALERTS_CHANNEL, Change(MARKED_READ))
    db.commit()
    return count


# --- Unread summary ---

@dataclass(frozen=True)
class UnreadAlerts:
    """The unread list and its critical badge count, always changed together."""

    alerts: tuple[AlertOut, ...] = ()
    critical_count: int = 0

    @classmethod
    def from_alerts(cls, alerts) -> "UnreadAlerts":
        alerts = tuple(alerts)
        return cls(alerts, sum(1 for a in alerts if a.severity == AlertSeverity.CRITICAL))

    @property
    def unread_count(self) -> int:
        return len(self.alerts)

    def mark_read(self, alert_id: str) -> "UnreadAlerts":
        removed = next((a for a in self.alerts if a.id == alert_id), None)
        if removed is None:
            return self
        remaining = tuple(a for a in self.alerts if a.id != alert_id)
        critical = self.critical_count - (1 if removed.severity == AlertSeverity.CRITICAL else 0)
        return UnreadAlerts(remaining, critical)

    def to_out(self) -> UnreadAlertsOut:
        return UnreadAlertsOut(alerts=list(self.alerts), critical_count=self.critical_count)


def unread_summary(db: Session) -> UnreadAlerts:
    return UnreadAlerts.from_alerts(AlertOut.model_validate(a) for a in fetch_unread(db))


class AlertFeed:
    """Live unread summary for one subscriber.

    A new alert, or a read of many at once, triggers a full re-fetch; a
    single read is applied to the current state. Each fetch takes an epoch when
    it starts and its result is applied only if no newer fetch or write has
    started since and the feed has not been closed.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal, feed: ChangeFeed = change_feed):
        self._session_factory = session_factory
        self._feed = feed
        self._lock = threading.Lock()
        self._epoch = 0
        self._closed = False
        self._unsubscribe: Callable[[], None] | None = None
        self._listeners: list[Callable[[UnreadAlerts], None]] = []
        self.state = UnreadAlerts()
        self.error: str | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    def open(self) -> "AlertFeed":
        self._unsubscribe = self._feed.subscribe(ALERTS_CHANNEL, self._on_change)
        self.refresh()
        return self

    def on_update(self, callback: Callable[[UnreadAlerts], None]) -> None:
        self._listeners.append(callback)

    def begin(self) -> int:
        with self._lock:
            self._epoch += 1
            return self._epoch

    def commit(self, epoch: int, state: UnreadAlerts) -> bool:
        with self._lock:
            if self._closed or epoch != self._epoch:
                return False
            self.state = state
            self.error = None
        self._notify(state)
        return True

    def fail(self, epoch: int, exc: Exception) -> bool:
        with self._lock:
            if self._closed or epoch != self._epoch:
                return False
            self.error = str(exc)
        logger.error("Unread alerts fetch failed: %s", exc)
        return True

    def refresh(self) -> None:
        epoch = self.begin()
        db = self._session_factory()
        try:
            state = unread_summary(db)
        except SQLAlchemyError as exc:
            self.fail(epoch, exc)
            return
        finally:
            db.close()
        self.commit(epoch, state)

    def mark_read(self, alert_id: str) -> bool:
        db = self._session_factory()
        try:
            alert = mark_alert_read(db, alert_id)
        finally:
            db.close()
        if alert is None:
            return False
        self._apply_read(alert_id)
        return True

    def close(self) -> None:
        with self._lock:
            self._closed = True
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def _apply_read(self, alert_id: str) -> None:
        # a fetch started before the write could bring the alert back
        epoch = self.begin()
        state = self.state.mark_read(alert_id)
        if state is not self.state:
            self.commit(epoch, state)

    def _on_change(self, change: Change) -> None:
        if self._closed:
            return
        if change.kind == MARKED_READ and change.row_id:
            self._apply_read(change.row_id)
        elif change.kind in (INSERTED, MARKED_READ):
            self.refresh()

    def _notify(self, state: UnreadAlerts) -> None:
        for callback in list(self._listeners):
            callback(state)
