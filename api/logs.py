"""Food and weight log endpoints.

A new food entry counts the current day toward the caller's logging
streak, so the create response carries the streak update as well.
"""

from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from api.deps import get_current_user_id
from api.stats import streak_update_response
from core.logger import get_logger
from database.deps import get_db_read, get_db_write
from schemas import FoodEntryCreateRequest, FoodEntryResponse, WeightEntryCreateRequest, WeightEntryResponse
from schemas.nutrition_schema import FoodEntryCreatedResponse
from services import food_log, weight_trend

logger = get_logger("api.logs")
router = APIRouter(prefix="/api", tags=["logs"])


@router.post("/food-entries", response_model=FoodEntryCreatedResponse, status_code=201)
def add_food_entry(payload: FoodEntryCreateRequest, user_id: int = Depends(get_current_user_id),
                   db: Session = Depends(get_db_write)):
    """Log a food item and record today as a logging day.

    Raises:
        ValidationError: For an unknown meal type or out-of-range amounts.
    """
    entry, update = food_log.add_food_entry(
        db,
        user_id,
        entry_date=payload.date,
        meal_type=payload.meal_type,
        name=payload.name,
        calories=payload.calories,
        protein=payload.protein,
        carbs=payload.carbs,
        fat=payload.fat,
        servings=payload.servings,
    )
    return FoodEntryCreatedResponse(
        entry=FoodEntryResponse.model_validate(entry),
        streak=streak_update_response(update),
    )


@router.get("/food-entries", response_model=List[FoodEntryResponse])
def list_food_entries(entry_date: date = Query(..., alias="date"), user_id: int = Depends(get_current_user_id),
                      db: Session = Depends(get_db_read)):
    return food_log.list_food_entries(db, user_id, entry_date)


@router.delete("/food-entries/{entry_id}", status_code=204)
def delete_food_entry(entry_id: int, user_id: int = Depends(get_current_user_id),
                      db: Session = Depends(get_db_write)):
    food_log.delete_food_entry(db, user_id, entry_id)


@router.post("/weight-entries", response_model=WeightEntryResponse, status_code=201)
def record_weight(payload: WeightEntryCreateRequest, user_id: int = Depends(get_current_user_id),
                  db: Session = Depends(get_db_write)):
    """Record (or replace) the caller's weight for a date and refresh the trend line."""
    return weight_trend.record_weight(db, user_id, payload.date, payload.weight_kg, payload.notes)


@router.get("/weight-entries", response_model=List[WeightEntryResponse])
def list_weights(start_date: Optional[date] = None, end_date: Optional[date] = None,
                 limit: int = Query(30, ge=1, le=365), user_id: int = Depends(get_current_user_id),
                 db: Session = Depends(get_db_read)):
    return weight_trend.list_weights(db, user_id, start_date, end_date, limit)


@router.delete("/weight-entries/{entry_id}", status_code=204)
def delete_weight(entry_id: int, user_id: int = Depends(get_current_user_id),
                  db: Session = Depends(get_db_write)):
    weight_trend.delete_weight(db, user_id, entry_id)
