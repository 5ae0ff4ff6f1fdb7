from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.auth import get_current_user
from app.api.errors import bad_request
from app.database import get_db
from app.models.inventory_movement import MovementType
from app.models.user import Profile
from app.schemas.movement import MovementCreate, MovementOut
from app.services import movement_service

router = APIRouter(prefix="/movements", tags=["Inventory movements"])


@router.get("", response_model=list[MovementOut])
def list_movements(
    product_id: str | None = None,
    location_id: str | None = None,
    type: MovementType | None = None,
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return movement_service.list_movements(
        db,
        product_id=product_id,
        location_id=location_id,
        movement_type=type,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("", response_model=MovementOut, status_code=201)
def create_movement(data: MovementCreate, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        movement = movement_service.record_movement(db, data, moved_by=user.id)
    except ValueError as e:
        db.rollback()
        raise bad_request(e)
    return movement


@router.get("/{movement_id}", response_model=MovementOut)
def get_movement(movement_id: str, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    movement = movement_service.get_movement(db, movement_id)
    if not movement:
        raise HTTPException(404, "Movement not found")
    return movement
