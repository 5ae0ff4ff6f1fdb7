from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.auth import get_current_user
from app.database import get_db
from app.services import report_service

router = APIRouter(prefix="/reports", tags=["Reports"], dependencies=[Depends(get_current_user)])


@router.get("/to-order")
def products_to_order(db: Session = Depends(get_db)):
    return report_service.products_to_order(db)


@router.get("/near-expiry")
def near_expiry(days: int | None = Query(None, ge=0), db: Session = Depends(get_db)):
    return report_service.near_expiry(db, days=days)


@router.get("/expired-count")
def expired_count(db: Session = Depends(get_db)):
    return {"expired_products_count": report_service.expired_products_count(db)}
