"""Schemas for programs, templates and macro history."""

from datetime import date
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class ProgramCreateRequest(BaseModel):
    """Request payload for starting a program. All four targets are required."""

    template_id: Optional[str] = Field(None, examples=["moderate_cut"])
    start_date: Optional[date] = Field(None, examples=["2026-10-19"])
    duration_weeks: Optional[int] = Field(None, examples=[12])
    starting_weight_kg: Optional[float] = Field(None, examples=[84.0])
    target_weight_kg: Optional[float] = Field(None, examples=[78.0])
    calories: Optional[int] = Field(None, examples=[2100])
    protein: Optional[int] = Field(None, examples=[170])
    carbs: Optional[int] = Field(None, examples=[200])
    fat: Optional[int] = Field(None, examples=[68])
    notes: Optional[str] = None


class ProgramUpdateRequest(BaseModel):
    """Partial program update. Setting any target records a manual adjustment."""

    status: Optional[str] = Field(None, examples=["completed"])
    ending_weight_kg: Optional[float] = None
    notes: Optional[str] = None
    macros_locked: Optional[bool] = None
    calories: Optional[int] = None
    protein: Optional[int] = None
    carbs: Optional[int] = None
    fat: Optional[int] = None


class ProgramResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    template_id: str
    start_date: date
    end_date: date
    duration_weeks: int
    status: str
    starting_weight_kg: Optional[float] = None
    target_weight_kg: Optional[float] = None
    ending_weight_kg: Optional[float] = None
    calorie_target: int
    protein_target: int
    carbs_target: int
    fat_target: int
    last_review_date: Optional[date] = None
    next_review_date: Optional[date] = None
    review_count: int
    macros_locked: bool
    notes: Optional[str] = None


class ProgramOverviewResponse(BaseModel):
    active: Optional[ProgramResponse] = None
    history: List[ProgramResponse] = []


class MacroHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    program_id: int
    review_id: Optional[int] = None
    calorie_target: int
    protein_target: int
    carbs_target: int
    fat_target: int
    effective_date: date
    change_reason: str


class TemplateResponse(BaseModel):
    id: str
    name: str
    description: str
    calorie_modifier: float
    protein_per_kg: float
    fat_per_kg: float
    goal: str


class TemplateMacrosRequest(BaseModel):
    """Body statistics used to derive a template's starting targets."""

    age: int = Field(..., ge=13, le=100, examples=[32])
    sex: str = Field(..., examples=["female"], description="male or female")
    weight_kg: float = Field(..., ge=20, le=500, examples=[68.0])
    height_cm: float = Field(..., ge=100, le=250, examples=[168.0])
    activity_level: str = Field(..., examples=["moderate"],
                                description="sedentary, light, moderate, active or very_active")


class TemplateMacrosResponse(BaseModel):
    template_id: str
    calories: int
    protein: int
    carbs: int
    fat: int
