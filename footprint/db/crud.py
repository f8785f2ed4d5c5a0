# footprint/db/crud.py
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from footprint.db.models import Activity, User, utcnow
from footprint.services.periods import PeriodWindow

# --------------------------------------------------
# Users
# --------------------------------------------------

def create_user(db: Session, email: str, password: str, name: str = "") -> User:
    user = User(email=email, password_hash=User.hash_password(password), name=name or "")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def issue_token(db: Session, user: User, ttl_days: int) -> str:
    user.token = uuid.uuid4().hex
    user.token_expires_at = utcnow() + timedelta(days=ttl_days)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user.token


def get_user_by_token(db: Session, token: str) -> Optional[User]:
    user = db.query(User).filter(User.token == token).first()
    if not user or not user.token_expires_at or user.token_expires_at < utcnow():
        return None
    return user


def update_profile(db: Session, user: User, name: Optional[str]) -> User:
    user.name = name or ""
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def adjust_total_emissions(db: Session, user_id: int, delta: float, touch: bool = False):
    """Add ``delta`` to the user's running total in one UPDATE, floored at 0.

    Does not commit; callers commit together with the activity write.
    """
    new_total = User.total_emissions + delta
    values = {"total_emissions": case((new_total < 0, 0.0), else_=new_total)}
    if touch:
        values["last_activity"] = utcnow()
    db.execute(
        update(User)
        .where(User.id == user_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )

# --------------------------------------------------
# Activities
# --------------------------------------------------

def create_activity(db: Session, user_id: int, category: str, activity_type: str,
                    value: float, unit: Optional[str], co2_emission: float,
                    date: Optional[datetime] = None, notes: str = "") -> Activity:
    activity = Activity(
        user_id=user_id,
        category=category,
        activity_type=activity_type,
        value=float(value),
        unit=unit,
        co2_emission=co2_emission,
        date=date or utcnow(),
        notes=notes or "",
    )
    db.add(activity)
    adjust_total_emissions(db, user_id, co2_emission, touch=True)
    db.commit()
    db.refresh(activity)
    return activity


def get_activity(db: Session, activity_id: int) -> Optional[Activity]:
    return db.get(Activity, activity_id)


def list_activities(db: Session, user_id: int, start: Optional[datetime] = None,
                    end: Optional[datetime] = None, category: Optional[str] = None,
                    limit: int = 50) -> List[Activity]:
    q = db.query(Activity).filter(Activity.user_id == user_id)
    if start:
        q = q.filter(Activity.date >= start)
    if end:
        q = q.filter(Activity.date <= end)
    if category:
        q = q.filter(Activity.category == category)
    return q.order_by(Activity.date.desc()).limit(limit).all()


def activities_in_window(db: Session, user_id: int, window: PeriodWindow) -> List[Activity]:
    return (
        db.query(Activity)
        .filter(Activity.user_id == user_id, *window.bounds(Activity.date))
        .all()
    )


def update_activity(db: Session, activity: Activity, changes: dict) -> Activity:
    old_emission = activity.co2_emission
    for key, value in changes.items():
        setattr(activity, key, value)
    activity.updated_at = utcnow()
    delta = activity.co2_emission - old_emission
    if delta:
        adjust_total_emissions(db, activity.user_id, delta)
    db.add(activity)
    db.commit()
    db.refresh(activity)
    return activity


def delete_activity(db: Session, activity: Activity):
    adjust_total_emissions(db, activity.user_id, -activity.co2_emission)
    db.delete(activity)
    db.commit()
