from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.auth import get_current_user
from app.database import get_db
from app.schemas.dashboard import DashboardOut, InventorySummary
from app.services import inventory_service

router = APIRouter(prefix="/dashboard", tags=["Dashboard"], dependencies=[Depends(get_current_user)])


@router.get("", response_model=DashboardOut)
def dashboard(search: str = "", db: Session = Depends(get_db)):
    return inventory_service.dashboard(db, search=search)


@router.get("/summary", response_model=InventorySummary)
def inventory_summary(db: Session = Depends(get_db)):
    return inventory_service.inventory_summary(db)
