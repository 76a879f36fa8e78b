"""Pydantic schema package for request and response models."""

from .nutrition_schema import (
    UserCreateRequest,
    UserResponse,
    GoalsResponse,
    GoalsUpdateRequest,
    FoodEntryCreateRequest,
    FoodEntryResponse,
    WeightEntryCreateRequest,
    WeightEntryResponse,
    UserStatsResponse,
)
from .program_schema import ProgramCreateRequest, ProgramUpdateRequest, ProgramResponse
from .review_schema import ReviewGenerateRequest, ReviewDecisionRequest, ReviewResponse

__all__ = [
    "UserCreateRequest",
    "UserResponse",
    "GoalsResponse",
    "GoalsUpdateRequest",
    "FoodEntryCreateRequest",
    "FoodEntryResponse",
    "WeightEntryCreateRequest",
    "WeightEntryResponse",
    "UserStatsResponse",
    "ProgramCreateRequest",
    "ProgramUpdateRequest",
    "ProgramResponse",
    "ReviewGenerateRequest",
    "ReviewDecisionRequest",
    "ReviewResponse",
]
