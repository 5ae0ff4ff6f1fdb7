from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.auth import ProfileOut, require_admin
from app.database import get_db
from app.models.user import Profile, UserRole
from app.services import auth_service

router = APIRouter(prefix="/users", tags=["Users"])


class CreateUserRequest(BaseModel):
    email: str
    password: str
    full_name: str | None = None
    role: UserRole = UserRole.OPERATOR


class UpdateUserRequest(BaseModel):
    full_name: str | None = None
    role: UserRole | None = None
    is_active: bool | None = None


@router.get("", response_model=list[ProfileOut])
def list_users(admin: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    return auth_service.list_users(db)


@router.post("", response_model=ProfileOut, status_code=201)
def create_user(data: CreateUserRequest, admin: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        return auth_service.create_user(db, data.email, data.password, data.full_name, data.role)
    except ValueError as e:
        raise HTTPException(400, str(e))


@router.get("/{user_id}", response_model=ProfileOut)
def get_user(user_id: str, admin: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    user = auth_service.get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(404, "User not found")
    return user


@router.patch("/{user_id}", response_model=ProfileOut)
def update_user(
    user_id: str, data: UpdateUserRequest, admin: Profile = Depends(require_admin), db: Session = Depends(get_db)
):
    try:
        user = auth_service.update_user(
            db, user_id, full_name=data.full_name, role=data.role, is_active=data.is_active, acting_user_id=admin.id
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not user:
        raise HTTPException(404, "User not found")
    return user
