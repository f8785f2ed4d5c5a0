import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from footprint.api.deps import get_calculator, get_current_user
from footprint.db import crud
from footprint.db.models import Activity, User, utcnow
from footprint.db.session import get_db
from footprint.services.emissions import EmissionCalculator
from footprint.services.periods import DEFAULT_PERIOD, PERIOD_LENGTHS, period_window, trend_window

logger = logging.getLogger(__name__)

# --------------------------------------------------
# Router
# --------------------------------------------------

router = APIRouter(prefix="/activities", tags=["activities"])

# --------------------------------------------------
# Request / Response Schemas
# --------------------------------------------------

class ActivityIn(BaseModel):
    category: str = Field(..., description="transport | energy | food | waste | consumption")
    activity_type: str
    value: float
    unit: Optional[str] = Field(None, description="defaults to the category's unit")
    date: Optional[datetime] = None
    notes: Optional[str] = None


class ActivityUpdate(BaseModel):
    category: Optional[str] = None
    activity_type: Optional[str] = None
    value: Optional[float] = None
    unit: Optional[str] = None
    date: Optional[datetime] = None
    notes: Optional[str] = None


class ActivityOut(BaseModel):
    id: int
    user_id: int
    category: str
    activity_type: str
    value: float
    unit: Optional[str]
    co2_emission: float
    date: datetime
    notes: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    model_config = {"from_attributes": True}


class ActivityCreated(BaseModel):
    message: str
    activity: ActivityOut


class SummaryOut(BaseModel):
    period: str
    is_previous: bool
    start_date: datetime
    end_date: datetime
    activity_count: int
    total: float
    by_category: Dict[str, float]
    by_activity_type: Dict[str, float]


class TrendPointOut(BaseModel):
    date: str
    total: float
    transport: float
    energy: float
    food: float
    waste: float
    consumption: float

# --------------------------------------------------
# Helpers
# --------------------------------------------------

def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _owned_activity(db: Session, activity_id: int, user: User, action: str) -> Activity:
    activity = crud.get_activity(db, activity_id)
    if not activity:
        raise HTTPException(status_code=404, detail="Activity not found")
    if activity.user_id != user.id:
        raise HTTPException(status_code=403, detail=f"Not authorized to {action} this activity")
    return activity

# --------------------------------------------------
# Types
# --------------------------------------------------

@router.get("/types")
def activity_types(
    user: User = Depends(get_current_user),
    calculator: EmissionCalculator = Depends(get_calculator),
):
    """All categories with their activity types and emission factors."""
    return calculator.get_all_activity_types()

# --------------------------------------------------
# Create Activity
# --------------------------------------------------

@router.post("", response_model=ActivityCreated, status_code=201)
def create_activity(
    payload: ActivityIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    calculator: EmissionCalculator = Depends(get_calculator),
):
    unit = payload.unit or calculator.canonical_unit(payload.category)
    emission = calculator.calculate_emission(
        payload.category, payload.activity_type, payload.value, unit
    )

    activity = crud.create_activity(
        db,
        user_id=user.id,
        category=emission.category,
        activity_type=emission.activity_type,
        value=emission.value,
        unit=emission.unit,
        co2_emission=emission.co2_emission,
        date=_as_utc(payload.date) or utcnow(),
        notes=payload.notes or "",
    )
    logger.info(
        "User %s logged %s/%s: %s kg CO2",
        user.id, activity.category, activity.activity_type, activity.co2_emission,
    )

    return ActivityCreated(
        message="Activity logged successfully",
        activity=ActivityOut.model_validate(activity),
    )

# --------------------------------------------------
# List Activities
# --------------------------------------------------

@router.get("", response_model=List[ActivityOut])
def list_activities(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    category: Optional[str] = None,
    limit: int = Query(50, ge=1, le=1000),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return crud.list_activities(
        db,
        user_id=user.id,
        start=_as_utc(start_date),
        end=_as_utc(end_date),
        category=category,
        limit=limit,
    )

# --------------------------------------------------
# Summary & Trends
# --------------------------------------------------

@router.get("/summary", response_model=SummaryOut)
def summary(
    period: str = DEFAULT_PERIOD,
    previous: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    calculator: EmissionCalculator = Depends(get_calculator),
):
    window = period_window(period, utcnow(), previous=previous)
    rows = crud.activities_in_window(db, user.id, window)
    totals = calculator.calculate_total_emissions(rows)

    return SummaryOut(
        period=period if period in PERIOD_LENGTHS else DEFAULT_PERIOD,
        is_previous=previous,
        start_date=window.start,
        end_date=window.end,
        activity_count=len(rows),
        **totals.as_dict(),
    )


@router.get("/trends", response_model=List[TrendPointOut])
def trends(
    days: int = Query(30, ge=1, le=3650),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    calculator: EmissionCalculator = Depends(get_calculator),
):
    window = trend_window(days, utcnow())
    rows = crud.activities_in_window(db, user.id, window)
    return [p.as_dict() for p in calculator.daily_trends(rows)]

# --------------------------------------------------
# Update / Delete
# --------------------------------------------------

@router.put("/{activity_id}")
def update_activity(
    activity_id: int,
    payload: ActivityUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    calculator: EmissionCalculator = Depends(get_calculator),
):
    activity = _owned_activity(db, activity_id, user, "update")
    changes = payload.model_dump(exclude_none=True)
    if "date" in changes:
        changes["date"] = _as_utc(changes["date"])

    category = changes.get("category", activity.category)
    activity_type = changes.get("activity_type", activity.activity_type)
    value = changes.get("value", activity.value)
    if (category, activity_type, value) != (activity.category, activity.activity_type, activity.value):
        emission = calculator.calculate_emission(
            category, activity_type, value, changes.get("unit", activity.unit)
        )
        changes["co2_emission"] = emission.co2_emission

    crud.update_activity(db, activity, changes)
    return {"message": "Activity updated successfully"}


@router.delete("/{activity_id}")
def delete_activity(
    activity_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    activity = _owned_activity(db, activity_id, user, "delete")
    crud.delete_activity(db, activity)
    return {"message": "Activity deleted successfully"}
