import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from footprint.api.deps import get_current_user, get_settings
from footprint.db.crud import create_user, get_user_by_email, issue_token, update_profile
from footprint.db.models import User
from footprint.db.session import get_db
from footprint.services.emissions import round_half_up
from footprint.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

MIN_PASSWORD_LENGTH = 6


class RegisterIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ProfileIn(BaseModel):
    name: Optional[str] = None


class UserOut(BaseModel):
    id: int
    email: str
    name: str


class AuthOut(BaseModel):
    message: str
    token: str
    user: UserOut


class ProfileOut(UserOut):
    created_at: Optional[datetime]
    total_emissions: float


def _user_out(user: User) -> UserOut:
    return UserOut(id=user.id, email=user.email, name=user.name)


@router.post("/register", response_model=AuthOut, status_code=201)
def register(
    data: RegisterIn,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not data.email or not data.password:
        raise HTTPException(400, "Email and password are required")
    if len(data.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(400, f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if get_user_by_email(db, data.email):
        raise HTTPException(400, "User with this email already exists")

    user = create_user(db, data.email, data.password, data.name or "")
    token = issue_token(db, user, settings.token_ttl_days)
    logger.info("Registered user %s", user.id)
    return AuthOut(message="User registered successfully", token=token, user=_user_out(user))


@router.post("/login", response_model=AuthOut)
def login(
    data: LoginIn,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not data.email or not data.password:
        raise HTTPException(400, "Email and password are required")
    user = get_user_by_email(db, data.email)
    if not user or not user.verify_password(data.password):
        raise HTTPException(401, "Invalid email or password")
    token = issue_token(db, user, settings.token_ttl_days)
    return AuthOut(message="Login successful", token=token, user=_user_out(user))


@router.get("/profile", response_model=ProfileOut)
def profile(user: User = Depends(get_current_user)):
    return ProfileOut(
        id=user.id,
        email=user.email,
        name=user.name,
        created_at=user.created_at,
        total_emissions=round_half_up(user.total_emissions or 0.0, 3),
    )


@router.put("/profile")
def edit_profile(data: ProfileIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    update_profile(db, user, data.name)
    return {"message": "Profile updated successfully"}
