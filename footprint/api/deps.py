from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from footprint.db.crud import get_user_by_token
from footprint.db.models import User
from footprint.db.session import get_db
from footprint.services.emissions import EmissionCalculator, default_calculator
from footprint.settings import Settings, settings as default_settings

bearer = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", default_settings)


def get_calculator(request: Request) -> EmissionCalculator:
    return getattr(request.app.state, "calculator", default_calculator)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="No token provided")
    user = get_user_by_token(db, credentials.credentials)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return user
