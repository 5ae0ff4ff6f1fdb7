from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.auth import get_current_user
from app.database import get_db
from app.schemas.location import LocationWithProducts
from app.services import inventory_service
from app.services.stock_status import StockStatus

router = APIRouter(prefix="/inventory", tags=["Inventory"], dependencies=[Depends(get_current_user)])


@router.get("", response_model=list[LocationWithProducts])
def list_inventory(status: StockStatus | None = None, search: str = "", db: Session = Depends(get_db)):
    return inventory_service.stock_by_location(db, status=status, search=search)
