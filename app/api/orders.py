import asyncio
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.auth import get_current_user
from app.api.errors import bad_request
from app.database import get_db
from app.models.order import Order, OrderStatus
from app.models.user import Profile
from app.schemas.order import OrderCreate, OrderDetailOut, OrderOut, OrderReceive, OrderUpdate
from app.services import order_service
from app.services.webhook_service import build_payload, send_webhook

router = APIRouter(prefix="/orders", tags=["Orders"], dependencies=[Depends(get_current_user)])


def _fire_webhook(payload: dict):
    """Run async webhook in background."""
    asyncio.run(send_webhook(payload))


def _notify(background_tasks: BackgroundTasks, order: Order) -> None:
    # Built now, while the session is still open
    background_tasks.add_task(_fire_webhook, build_payload(order))


@router.post("", response_model=OrderDetailOut, status_code=201)
def create_order(
    data: OrderCreate,
    background_tasks: BackgroundTasks,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        order = order_service.create_order(db, data, ordered_by=user.id)
    except ValueError as e:
        raise bad_request(e)
    _notify(background_tasks, order)
    return order


@router.get("", response_model=list[OrderOut])
def list_orders(
    status: OrderStatus | None = None,
    supplier_id: str | None = None,
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    db: Session = Depends(get_db),
):
    return order_service.list_orders(db, status=status, supplier_id=supplier_id, start_date=start_date, end_date=end_date)


@router.get("/active", response_model=list[OrderOut])
def list_active_orders(db: Session = Depends(get_db)):
    """Orders still waiting on the supplier."""
    return order_service.list_active_orders(db)


@router.get("/{order_id}", response_model=OrderDetailOut)
def get_order(order_id: str, db: Session = Depends(get_db)):
    order = order_service.get_order(db, order_id)
    if not order:
        raise HTTPException(404, "Order not found")
    return order


@router.patch("/{order_id}", response_model=OrderDetailOut)
def update_order(order_id: str, data: OrderUpdate, db: Session = Depends(get_db)):
    try:
        order = order_service.update_order(db, order_id, data)
    except ValueError as e:
        raise bad_request(e)
    if not order:
        raise HTTPException(404, "Order not found")
    return order


@router.post("/{order_id}/place", response_model=OrderDetailOut)
def place_order(order_id: str, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    try:
        order = order_service.place_order(db, order_id)
    except ValueError as e:
        raise bad_request(e)
    if not order:
        raise HTTPException(404, "Order not found")
    _notify(background_tasks, order)
    return order


@router.post("/{order_id}/receive", response_model=OrderDetailOut)
def receive_order(
    order_id: str,
    data: OrderReceive,
    background_tasks: BackgroundTasks,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        order = order_service.receive_order(db, order_id, data, received_by=user.id)
    except ValueError as e:
        raise bad_request(e)
    if not order:
        raise HTTPException(404, "Order not found")
    _notify(background_tasks, order)
    return order


@router.post("/{order_id}/cancel", response_model=OrderDetailOut)
def cancel_order(order_id: str, background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    try:
        order = order_service.cancel_order(db, order_id)
    except ValueError as e:
        raise bad_request(e)
    if not order:
        raise HTTPException(404, "Order not found")
    _notify(background_tasks, order)
    return order
