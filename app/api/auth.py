from fastapi import APIRouter, Cookie, Depends, Header, HTTPException, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.user import Profile, UserRole
from app.services import auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])


class LoginRequest(BaseModel):
    email: str
    password: str


class ProfileOut(BaseModel):
    id: str
    email: str
    full_name: str | None = None
    display_name: str
    avatar_url: str | None = None
    role: UserRole
    is_active: bool

    model_config = {"from_attributes": True}


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class ProfileUpdate(BaseModel):
    full_name: str | None = Field(None, max_length=200)
    avatar_url: str | None = None


def get_current_user(
    token: str | None = Cookie(default=None, alias="token"),
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> Profile:
    """Dependency: the signed-in profile, from the JWT cookie or a bearer header."""
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:]
    if not token:
        raise HTTPException(401, "Not authenticated")
    payload = auth_service.decode_token(token)
    if not payload:
        raise HTTPException(401, "Invalid or expired token")
    user = auth_service.get_user_by_id(db, payload["sub"])
    if not user or not user.is_active:
        raise HTTPException(401, "User not found or disabled")
    return user


def require_admin(user: Profile = Depends(get_current_user)) -> Profile:
    if user.role != UserRole.ADMIN:
        raise HTTPException(403, "Admin only")
    return user


@router.post("/login")
def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, data.email, data.password)
    if not user:
        raise HTTPException(401, "Invalid email or password")
    token = auth_service.create_access_token(user)
    response.set_cookie(
        "token", token, httponly=True, samesite="lax", max_age=3600 * settings.ACCESS_TOKEN_EXPIRE_HOURS
    )
    return {"token": token, "user": ProfileOut.model_validate(user)}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie("token")
    return {"ok": True}


@router.get("/me", response_model=ProfileOut)
def me(user: Profile = Depends(get_current_user)):
    return user


@router.patch("/me", response_model=ProfileOut)
def update_me(data: ProfileUpdate, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    return auth_service.update_profile(db, user, full_name=data.full_name, avatar_url=data.avatar_url)


@router.post("/change-password")
def change_password(data: ChangePasswordRequest, user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        auth_service.change_password(db, user, data.current_password, data.new_password)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"ok": True}


@router.post("/forgot-password")
def forgot_password(data: ForgotPasswordRequest, db: Session = Depends(get_db)):
    # Same answer whether or not the account exists
    auth_service.request_password_reset(db, data.email)
    return {"ok": True}


@router.post("/reset-password")
def reset_password(data: ResetPasswordRequest, db: Session = Depends(get_db)):
    try:
        auth_service.reset_password(db, data.token, data.password)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"ok": True}
