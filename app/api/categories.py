from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.auth import get_current_user
from app.api.errors import bad_request
from app.database import get_db
from app.schemas.product import CategoryCreate, CategoryOut
from app.services import product_service

router = APIRouter(prefix="/categories", tags=["Categories"], dependencies=[Depends(get_current_user)])


@router.get("", response_model=list[CategoryOut])
def list_categories(db: Session = Depends(get_db)):
    return product_service.list_categories(db)


@router.post("", response_model=CategoryOut, status_code=201)
def create_category(data: CategoryCreate, db: Session = Depends(get_db)):
    try:
        return product_service.create_category(db, data)
    except ValueError as e:
        raise bad_request(e)
