import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.api.auth import get_current_user, require_admin
from app.database import get_db
from app.schemas.alert import AlertCreate, AlertOut, UnreadAlertsOut
from app.services import alert_service
from app.services.alert_service import AlertFeed, UnreadAlerts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["Alerts"], dependencies=[Depends(get_current_user)])

KEEPALIVE_SECONDS = 15


@router.get("", response_model=list[AlertOut])
def list_alerts(unread_only: bool = False, limit: int = 100, db: Session = Depends(get_db)):
    return alert_service.list_alerts(db, unread_only=unread_only, limit=limit)


@router.get("/unread", response_model=UnreadAlertsOut)
def unread_alerts(db: Session = Depends(get_db)):
    return alert_service.unread_summary(db).to_out()


@router.post("", response_model=AlertOut, status_code=201, dependencies=[Depends(require_admin)])
def create_alert(data: AlertCreate, db: Session = Depends(get_db)):
    """Entry point for alert producers (stock checks, expiry scans)."""
    return alert_service.create_alert(db, data)


@router.post("/read-all")
def mark_all_read(db: Session = Depends(get_db)):
    return {"updated": alert_service.mark_all_read(db)}


@router.post("/{alert_id}/read", response_model=AlertOut)
def mark_read(alert_id: str, db: Session = Depends(get_db)):
    alert = alert_service.mark_alert_read(db, alert_id)
    if not alert:
        raise HTTPException(404, "Alert not found")
    return alert


@router.get("/stream")
async def stream_unread(request: Request):
    """Server-sent events: the unread summary, pushed again after every new or read alert."""
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[UnreadAlerts] = asyncio.Queue()
    feed = AlertFeed()
    feed.on_update(lambda state: loop.call_soon_threadsafe(queue.put_nowait, state))

    async def events():
        try:
            await asyncio.to_thread(feed.open)
            while not await request.is_disconnected():
                try:
                    state = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield f"data: {state.to_out().model_dump_json()}\n\n"
        finally:
            feed.close()
            logger.debug("Alert stream closed")

    return StreamingResponse(events(), media_type="text/event-stream")
