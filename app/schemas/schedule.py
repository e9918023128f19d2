"""Pydantic schemas for dosage and schedule suggestions."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class DosageSuggestion(BaseModel):
    """Common dosage for a medication, from the built-in rule table."""

    medication_name: str = Field(..., description="Medication name as provided by the client.")
    dosage: str = Field(..., description="Typical single dose, e.g. '500mg'.")
    frequency: str = Field(..., description="How often the dose is usually taken.")
    timing: List[str] = Field(
        ..., description="Suggested intake times in HH:MM (24h) format."
    )
    notes: str | None = Field(
        default=None, description="Safety and intake notes for the patient."
    )
    matched: bool = Field(
        ...,
        description="False when the medication is unknown and the generic fallback was used.",
    )


class ScheduleSuggestionRequest(BaseModel):
    """Input for a schedule suggestion."""

    medication_name: str = Field(..., min_length=1, max_length=200)
    frequency: str = Field(
        ...,
        max_length=200,
        description="Free-text frequency, e.g. 'Twice daily' or 'every 6 hours'.",
    )


class ScheduleSuggestion(BaseModel):
    """Reminder times and days for a medication."""

    medication_name: str
    times: List[str] = Field(..., description="Reminder times in HH:MM (24h) format.")
    days: List[int] = Field(
        ..., description="Days of week the reminders apply to (0=Sunday, 6=Saturday)."
    )
    frequency: str
    dosage: str
    notes: str | None = None
