import hashlib
import hmac
import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from sqlalchemy.orm import Session

from app.config import settings
from app.models.user import Profile, UserRole

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
RESET_PURPOSE = "reset"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def create_access_token(user: Profile) -> str:
    payload = {
        "sub": user.id,
        "email": user.email,
        "role": user.role.value,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")


def decode_token(token: str) -> dict | None:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=["HS256"])
    except jwt.InvalidTokenError:
        return None
    # Reset tokens are not sessions
    if payload.get("purpose"):
        return None
    return payload


def _password_fingerprint(user: Profile) -> str:
    """Keyed digest of the current hash; reveals nothing about the hash itself."""
    return hmac.new(settings.SECRET_KEY.encode(), user.password_hash.encode(), hashlib.sha256).hexdigest()


def create_reset_token(user: Profile) -> str:
    payload = {
        "sub": user.id,
        "purpose": RESET_PURPOSE,
        # Changing the password invalidates outstanding links
        "pwd": _password_fingerprint(user),
        "exp": datetime.now(timezone.utc) + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")


def authenticate(db: Session, email: str, password: str) -> Profile | None:
    user = get_user_by_email(db, email)
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        return None
    return user


def get_user_by_id(db: Session, user_id: str) -> Profile | None:
    return db.query(Profile).filter(Profile.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Profile | None:
    return db.query(Profile).filter(Profile.email == email.strip().lower()).first()


def create_user(
    db: Session, email: str, password: str, full_name: str | None = None, role: UserRole = UserRole.OPERATOR
) -> Profile:
    email = email.strip().lower()
    if get_user_by_email(db, email):
        raise ValueError(f"A user with email '{email}' already exists")
    _check_password(password)
    user = Profile(
        email=email,
        full_name=full_name or None,
        password_hash=hash_password(password),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def list_users(db: Session) -> list[Profile]:
    return db.query(Profile).order_by(Profile.created_at.desc()).all()


def update_user(
    db: Session,
    user_id: str,
    full_name: str | None = None,
    role: UserRole | None = None,
    is_active: bool | None = None,
    acting_user_id: str | None = None,
) -> Profile | None:
    user = get_user_by_id(db, user_id)
    if not user:
        return None
    if user.id == acting_user_id and (is_active is False or (role and role != user.role)):
        raise ValueError("You cannot disable yourself or change your own role")
    if full_name is not None:
        user.full_name = full_name or None
    if role is not None:
        user.role = role
    if is_active is not None:
        user.is_active = is_active
    db.commit()
    db.refresh(user)
    return user


def update_profile(db: Session, user: Profile, full_name: str | None = None, avatar_url: str | None = None) -> Profile:
    if full_name is not None:
        user.full_name = full_name or None
    if avatar_url is not None:
        user.avatar_url = avatar_url or None
    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, user: Profile, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise ValueError("Current password is incorrect")
    _check_password(new_password)
    user.password_hash = hash_password(new_password)
    db.commit()


def request_password_reset(db: Session, email: str) -> str | None:
    """Issue a reset link for an active account; returns the token or None."""
    user = get_user_by_email(db, email)
    if not user or not user.is_active:
        logger.info("Password reset requested for unknown email %s", email)
        return None
    token = create_reset_token(user)
    link = f"{settings.BASE_URL.rstrip('/')}/reset-password?token={token}"
    logger.info("Password reset link for %s: %s", user.email, link)
    return token


def reset_password(db: Session, token: str, new_password: str) -> Profile:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise ValueError("Reset link has expired")
    except jwt.InvalidTokenError:
        raise ValueError("Invalid reset link")
    if payload.get("purpose") != RESET_PURPOSE:
        raise ValueError("Invalid reset link")

    user = get_user_by_id(db, payload["sub"])
    if not user or not user.is_active:
        raise ValueError("Invalid reset link")
    if not hmac.compare_digest(_password_fingerprint(user), str(payload.get("pwd"))):
        raise ValueError("Invalid reset link")
    _check_password(new_password)
    user.password_hash = hash_password(new_password)
    db.commit()
    db.refresh(user)
    logger.info("Password reset for %s", user.email)
    return user


def ensure_default_admin(db: Session) -> None:
    """Create the first admin when there are no profiles yet."""
    if db.query(Profile).count() == 0:
        create_user(
            db,
            email=settings.DEFAULT_ADMIN_EMAIL,
            password=settings.DEFAULT_ADMIN_PASSWORD,
            full_name="Administrateur",
            role=UserRole.ADMIN,
        )
        logger.info("Created default admin %s", settings.DEFAULT_ADMIN_EMAIL)
