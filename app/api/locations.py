from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.auth import get_current_user
from app.database import get_db
from app.schemas.location import LocationCreate, LocationDetailOut, LocationOut, LocationUpdate, LocationWithProducts
from app.services import location_service

router = APIRouter(prefix="/locations", tags=["Locations"], dependencies=[Depends(get_current_user)])


@router.get("", response_model=list[LocationOut])
def list_locations(active_only: bool = False, db: Session = Depends(get_db)):
    return location_service.list_locations(db, active_only=active_only)


@router.get("/overview", response_model=list[LocationWithProducts])
def locations_overview(search: str = "", db: Session = Depends(get_db)):
    """Active locations with their best-stocked products and overall status."""
    return location_service.search_locations(location_service.list_active_with_preview(db), search)


@router.post("", response_model=LocationOut, status_code=201)
def create_location(data: LocationCreate, db: Session = Depends(get_db)):
    return location_service.create_location(db, data)


@router.get("/{location_id}", response_model=LocationDetailOut)
def get_location(location_id: str, db: Session = Depends(get_db)):
    location = location_service.get_location_detail(db, location_id)
    if not location:
        raise HTTPException(404, "Location not found")
    return location


@router.patch("/{location_id}", response_model=LocationOut)
def update_location(location_id: str, data: LocationUpdate, db: Session = Depends(get_db)):
    location = location_service.update_location(db, location_id, data)
    if not location:
        raise HTTPException(404, "Location not found")
    return location
