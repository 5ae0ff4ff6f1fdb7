import asyncio
import json
from datetime import datetime

from app.api import alerts as alerts_api
from app.database import SessionLocal
from app.models.alert import Alert, AlertSeverity, AlertType
from app.schemas.alert import AlertCreate, AlertOut
from app.services import alert_service
from app.services.alert_service import ALERTS_CHANNEL, MARKED_READ, AlertFeed, UnreadAlerts
from app.services.change_feed import INSERTED, Change, ChangeFeed, change_feed


def _out(alert_id, severity):
    return AlertOut(
        id=alert_id, type=AlertType.LOW_STOCK, message="Stock bas", severity=severity,
        is_read=False, created_at=datetime(2024, 1, 1),
    )


def _create(db, severity=AlertSeverity.CRITICAL, message="Stock critique"):
    return alert_service.create_alert(db, AlertCreate(type=AlertType.LOW_STOCK, message=message, severity=severity))


def test_mark_read_keeps_count_and_list_in_step():
    state = UnreadAlerts.from_alerts([
        _out("a", AlertSeverity.CRITICAL),
        _out("b", AlertSeverity.WARNING),
        _out("c", AlertSeverity.CRITICAL),
    ])
    assert state.critical_count == 2

    after = state.mark_read("a")
    assert after.unread_count == 2
    assert after.critical_count == 1

    after = after.mark_read("b")
    assert after.unread_count == 1
    assert after.critical_count == 1


def test_mark_read_of_unknown_alert_changes_nothing():
    state = UnreadAlerts.from_alerts([_out("a", AlertSeverity.CRITICAL)])
    assert state.mark_read("zzz") is state


def test_stale_fetch_is_discarded():
    feed = AlertFeed(feed=ChangeFeed())
    first = feed.begin()
    second = feed.begin()
    assert not feed.commit(first, UnreadAlerts.from_alerts([_out("old", AlertSeverity.CRITICAL)]))
    assert feed.commit(second, UnreadAlerts())
    assert feed.state.unread_count == 0


def test_fetch_after_close_is_discarded():
    feed = AlertFeed(feed=ChangeFeed())
    epoch = feed.begin()
    feed.close()
    assert not feed.commit(epoch, UnreadAlerts.from_alerts([_out("a", AlertSeverity.INFO)]))
    assert not feed.fail(epoch, RuntimeError("boom"))
    assert feed.error is None


def test_change_feed_publishes_only_committed_inserts(db):
    received = []
    unsubscribe = change_feed.subscribe(ALERTS_CHANNEL, received.append)
    try:
        db.add(Alert(alert_type=AlertType.SYSTEM, message="annulée"))
        db.flush()
        db.rollback()
        assert received == []

        alert = _create(db)
        assert received == [Change(INSERTED, alert.id)]
    finally:
        unsubscribe()
    assert change_feed.subscriber_count(ALERTS_CHANNEL) == 0


def test_feed_refetches_on_insert(db):
    updates = []
    feed = AlertFeed(session_factory=SessionLocal)
    feed.on_update(updates.append)
    feed.open()
    try:
        assert feed.state.unread_count == 0
        alert = _create(db)
        _create(db, severity=AlertSeverity.INFO, message="Commande reçue")
        assert feed.state.unread_count == 2
        assert feed.state.critical_count == 1

        assert feed.mark_read(alert.id)
        assert feed.state.unread_count == 1
        assert feed.state.critical_count == 0
        assert updates[-1] is feed.state
    finally:
        feed.close()

    _create(db)
    assert feed.state.unread_count == 1


def test_unread_summary_endpoint(operator_client, db):
    critical = _create(db)
    _create(db, severity=AlertSeverity.WARNING, message="Péremption proche")

    body = operator_client.get("/api/v1/alerts/unread").json()
    assert body["unread_count"] == 2
    assert body["critical_count"] == 1

    assert operator_client.post(f"/api/v1/alerts/{critical.id}/read").json()["is_read"] is True
    body = operator_client.get("/api/v1/alerts/unread").json()
    assert body["unread_count"] == 1
    assert body["critical_count"] == 0

    assert operator_client.post("/api/v1/alerts/read-all").json() == {"updated": 1}
    assert len(operator_client.get("/api/v1/alerts").json()) == 2
    assert operator_client.get("/api/v1/alerts", params={"unread_only": True}).json() == []


def test_ingestion_is_admin_only(operator_client, db):
    payload = {"type": "low_stock", "message": "Gants sous le seuil", "severity": "critical"}
    assert operator_client.post("/api/v1/alerts", json=payload).status_code == 403


def test_ingestion_rejects_unknown_severity(admin_client):
    payload = {"type": "low_stock", "message": "x", "severity": "CRITICAL"}
    assert admin_client.post("/api/v1/alerts", json=payload).status_code == 422
    payload["severity"] = "critical"
    assert admin_client.post("/api/v1/alerts", json=payload).status_code == 201


def test_feed_follows_reads_made_through_the_api(operator_client, db):
    critical = _create(db)
    _create(db, severity=AlertSeverity.WARNING, message="Péremption proche")
    updates = []
    feed = AlertFeed(session_factory=SessionLocal)
    feed.on_update(updates.append)
    feed.open()
    try:
        assert feed.state.unread_count == 2
        assert feed.state.critical_count == 1

        assert operator_client.post(f"/api/v1/alerts/{critical.id}/read").status_code == 200
        assert feed.state.unread_count == 1
        assert feed.state.critical_count == 0

        # reading it again publishes nothing
        seen = len(updates)
        operator_client.post(f"/api/v1/alerts/{critical.id}/read")
        assert len(updates) == seen

        assert operator_client.post("/api/v1/alerts/read-all").json() == {"updated": 1}
        assert feed.state.unread_count == 0
        assert updates[-1] is feed.state
    finally:
        feed.close()


def test_read_changes_are_published_after_commit(db):
    first = _create(db)
    _create(db, severity=AlertSeverity.INFO)
    received = []
    unsubscribe = change_feed.subscribe(ALERTS_CHANNEL, received.append)
    try:
        alert_service.mark_alert_read(db, first.id)
        alert_service.mark_all_read(db)
        alert_service.mark_all_read(db)
    finally:
        unsubscribe()
    assert received == [Change(MARKED_READ, first.id), Change(MARKED_READ)]


class _ConnectedClient:
    async def is_disconnected(self):
        return False


def test_stream_sends_unread_summary_first(db):
    _create(db)
    _create(db, severity=AlertSeverity.INFO, message="Commande reçue")

    async def first_event():
        response = await alerts_api.stream_unread(_ConnectedClient())
        assert response.media_type == "text/event-stream"
        events = response.body_iterator
        try:
            return await anext(events)
        finally:
            await events.aclose()

    event = asyncio.run(first_event())
    assert event.startswith("data: ")
    assert event.endswith("\n\n")
    body = json.loads(event[len("data: "):])
    assert body["unread_count"] == 2
    assert body["critical_count"] == 1
    assert change_feed.subscriber_count(ALERTS_CHANNEL) == 0
