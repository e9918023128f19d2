from fastapi import APIRouter, Depends, Query

from app.core.rate_limit import rate_limit
from app.core.rate_limit_policies import API_REQUEST
from app.schemas.schedule import (
    DosageSuggestion,
    ScheduleSuggestion,
    ScheduleSuggestionRequest,
)
from app.services.schedule_service import suggest_dosage, suggest_schedule

router = APIRouter(tags=["Medications"])


@router.get(
    "/medications/dosage-suggestion",
    response_model=DosageSuggestion,
    dependencies=[Depends(rate_limit(API_REQUEST))],
)
async def dosage_suggestion(
    name: str = Query(..., min_length=1, max_length=200, description="Medication name"),
) -> DosageSuggestion:
    """Suggest a common dosage for a medication.

    Unknown medications get the generic "as directed by doctor" suggestion
    with ``matched=false``.
    """
    return suggest_dosage(name)


@router.post(
    "/medications/schedule-suggestion",
    response_model=ScheduleSuggestion,
    dependencies=[Depends(rate_limit(API_REQUEST))],
)
async def schedule_suggestion(payload: ScheduleSuggestionRequest) -> ScheduleSuggestion:
    """Suggest reminder times for a medication and a free-text frequency.

    Raises:
        ValidationAppError: 400 when the medication name is blank.
    """
    return suggest_schedule(payload.medication_name, payload.frequency)
