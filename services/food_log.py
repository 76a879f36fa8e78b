"""Food log writes and reads. Every new entry feeds the streak tracker."""

from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from core.clock import utc_today
from core.exceptions import ValidationError
from core.logger import get_logger
from core.repository import get_owned, save
from database import models
from services.streak_tracker import StreakTracker, StreakUpdate

logger = get_logger("services.food_log")

MEAL_TYPES = ('breakfast', 'lunch', 'dinner', 'snack')


def add_food_entry(db: Session, user_id: int, entry_date: date, meal_type: str, name: str,
                   calories: float, protein: float, carbs: float, fat: float, servings: float = 1.0,
                   today: Optional[date] = None) -> Tuple[models.FoodEntry, StreakUpdate]:
    """Persist a food entry, then record today as a logging day.

    Returns:
        The stored entry and the streak update it triggered.
    """
    if meal_type not in MEAL_TYPES:
        raise ValidationError(f"Meal type must be one of {', '.join(MEAL_TYPES)}", field="meal_type")
    if not name:
        raise ValidationError("Food name is required", field="name")
    if servings is None or servings <= 0:
        raise ValidationError("Servings must be greater than zero", field="servings")
    for field_name, value in (('calories', calories), ('protein', protein), ('carbs', carbs), ('fat', fat)):
        if value is None or value < 0:
            raise ValidationError(f"{field_name} cannot be negative", field=field_name)

    entry = save(db, models.FoodEntry(
        user_id=user_id,
        date=entry_date,
        meal_type=meal_type,
        name=name,
        servings=servings,
        calories=calories,
        protein=protein,
        carbs=carbs,
        fat=fat,
    ))
    logger.info("Food entry %s logged for user=%s on %s", entry.id, user_id, entry_date)
    update = StreakTracker(db).record_logging_day(user_id, today or utc_today())
    return entry, update


def list_food_entries(db: Session, user_id: int, entry_date: date) -> List[models.FoodEntry]:
    return (
        db.query(models.FoodEntry)
        .filter(models.FoodEntry.user_id == user_id, models.FoodEntry.date == entry_date)
        .order_by(models.FoodEntry.created_at, models.FoodEntry.id)
        .all()
    )


def delete_food_entry(db: Session, user_id: int, entry_id: int) -> None:
    entry = get_owned(db, models.FoodEntry, entry_id, user_id, "FoodEntry")
    db.delete(entry)
    db.commit()
