"""Schemas for program reviews and the scheduled sweep."""

from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class ReviewGenerateRequest(BaseModel):
    program_id: Optional[int] = Field(None, description="Defaults to the caller's active program")
    force_review: bool = Field(False, description="Generate even if this week already has a review")


class ReviewDecisionRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    program_id: int
    review_week: int
    review_date: date
    days_analyzed: int
    avg_calories: int
    avg_protein: int
    avg_carbs: int
    avg_fat: int
    compliance_rate: int
    starting_weight_kg: Optional[float] = None
    current_weight_kg: Optional[float] = None
    trend_weight_kg: Optional[float] = None
    weight_change_kg: Optional[float] = None
    ai_analysis: str
    ai_reasoning: str
    recommended_calories: int
    recommended_protein: int
    recommended_carbs: int
    recommended_fat: int
    confidence_level: str
    status: str
    user_response_date: Optional[datetime] = None
    user_notes: Optional[str] = None


class SweepOutcomeResponse(BaseModel):
    program_id: int
    user_id: int
    status: str
    reason: Optional[str] = None
    review_id: Optional[int] = None
    skip_code: Optional[str] = None


class SweepSummaryResponse(BaseModel):
    run_date: date
    programs_checked: int
    reviews_generated: int
    skipped_insufficient_data: int
    skipped_existing: int
    skipped_locked: int
    errors: int
    expired_reviews: int
    programs_completed: int
    details: List[SweepOutcomeResponse]
