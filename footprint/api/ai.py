from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from footprint.api.deps import get_calculator, get_current_user, get_settings
from footprint.db.crud import activities_in_window
from footprint.db.models import User, utcnow
from footprint.db.session import get_db
from footprint.services import ai_service
from footprint.services.emissions import EmissionCalculator
from footprint.services.periods import trend_window
from footprint.settings import Settings

router = APIRouter(prefix="/ai", tags=["ai"])

CONTEXT_DAYS = 30


class ChatIn(BaseModel):
    message: Optional[str] = None


class AskIn(BaseModel):
    question: Optional[str] = None


def _recent_summary(db: Session, user: User, calculator: EmissionCalculator) -> Dict[str, Any]:
    rows = activities_in_window(db, user.id, trend_window(CONTEXT_DAYS, utcnow()))
    summary = calculator.calculate_total_emissions(rows).as_dict()
    summary["activity_count"] = len(rows)
    return summary


@router.get("/recommendations")
def recommendations(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    calculator: EmissionCalculator = Depends(get_calculator),
    settings: Settings = Depends(get_settings),
):
    summary = _recent_summary(db, user, calculator)
    summary["period"] = f"Last {CONTEXT_DAYS} days"
    return ai_service.generate_recommendations(summary, config=settings)


@router.post("/chat")
def chat(
    data: ChatIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    calculator: EmissionCalculator = Depends(get_calculator),
    settings: Settings = Depends(get_settings),
):
    if not data.message:
        raise HTTPException(400, "Message is required")
    context = _recent_summary(db, user, calculator)
    return ai_service.chat(data.message, context, config=settings)


@router.post("/ask")
def ask(
    data: AskIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    calculator: EmissionCalculator = Depends(get_calculator),
    settings: Settings = Depends(get_settings),
):
    if not data.question:
        raise HTTPException(400, "Question is required")
    summary = _recent_summary(db, user, calculator)
    return ai_service.generate_recommendations(summary, data.question, config=settings)
