"""Schemas for users, goals, food entries and weight entries."""

from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class UserCreateRequest(BaseModel):
    """Request payload for registering a user profile."""

    name: str = Field(..., min_length=1, examples=["Jane Doe"])
    email: str = Field(..., min_length=3, examples=["jane@example.com"])


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    created_at: Optional[datetime] = None


class GoalsUpdateRequest(BaseModel):
    """Partial update of standing goals; omitted fields keep their value."""

    calories: Optional[int] = Field(None, gt=0, examples=[2200])
    protein: Optional[int] = Field(None, gt=0, examples=[170])
    carbs: Optional[int] = Field(None, gt=0, examples=[230])
    fat: Optional[int] = Field(None, gt=0, examples=[70])


class GoalsResponse(BaseModel):
    calories: int
    protein: int
    carbs: int
    fat: int


class FoodEntryCreateRequest(BaseModel):
    """A logged food item. Nutrients are per serving."""

    date: date
    meal_type: str = Field(..., examples=["lunch"], description="breakfast, lunch, dinner or snack")
    name: str = Field(..., min_length=1, examples=["Chicken rice bowl"])
    servings: float = Field(1.0, gt=0, examples=[1.5])
    calories: float = Field(..., ge=0, examples=[520])
    protein: float = Field(..., ge=0, examples=[42])
    carbs: float = Field(..., ge=0, examples=[55])
    fat: float = Field(..., ge=0, examples=[12])


class FoodEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: date
    meal_type: str
    name: str
    servings: float
    calories: float
    protein: float
    carbs: float
    fat: float


class AchievementResponse(BaseModel):
    id: str
    name: str
    description: str
    icon: str


class UserStatsResponse(BaseModel):
    current_streak: int
    longest_streak: int
    total_days_logged: int
    last_logged_date: Optional[date] = None
    achievements: List[str] = []


class StreakUpdateResponse(BaseModel):
    stats: UserStatsResponse
    new_achievements: List[AchievementResponse] = []


class FoodEntryCreatedResponse(BaseModel):
    entry: FoodEntryResponse
    streak: StreakUpdateResponse


class WeightEntryCreateRequest(BaseModel):
    date: date
    weight_kg: float = Field(..., examples=[82.4], description="Body weight in kg (20-500)")
    notes: Optional[str] = None


class WeightEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: date
    weight_kg: float
    trend_weight: Optional[float] = None
    notes: Optional[str] = None
