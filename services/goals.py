"""Users and their standing macro goals."""

import math
from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError, ValidationError
from core.logger import get_logger
from core.repository import save
from database import models
from services.nutrition_aggregator import round_half_up

logger = get_logger("services.goals")

DEFAULT_GOALS = {'calories': 2000, 'protein': 150, 'carbs': 250, 'fat': 65}
MACRO_KEYS = ('calories', 'protein', 'carbs', 'fat')


@dataclass
class MacroTargets:
    """The four daily targets shared by goals, programs and reviews."""

    calories: int
    protein: int
    carbs: int
    fat: int

    def as_dict(self) -> Dict[str, int]:
        return {'calories': self.calories, 'protein': self.protein, 'carbs': self.carbs, 'fat': self.fat}


def validate_targets(targets: Dict[str, Optional[float]]) -> MacroTargets:
    """Require all four targets as numbers that round (half up) to at least 1.

    Raises:
        ValidationError: If a target is missing or rounds below 1.
    """
    values = {}
    for key in MACRO_KEYS:
        value = targets.get(key)
        if value is None:
            raise ValidationError(f"Missing required target '{key}'", field=key)
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ValidationError(f"Target '{key}' must be a number", field=key)
        rounded = round_half_up(value)
        if rounded < 1:
            raise ValidationError(f"Target '{key}' must be a positive integer", field=key)
        values[key] = rounded
    return MacroTargets(**values)


def create_user(db: Session, name: str, email: str) -> models.User:
    if not name or not email:
        raise ValidationError("Name and email are required")
    try:
        user = save(db, models.User(name=name, email=email))
    except IntegrityError:
        db.rollback()
        raise ValidationError(f"A user with email '{email}' already exists", field="email")
    logger.info("User created id=%s", user.id)
    return user


def get_user(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def get_goals(db: Session, user_id: int) -> MacroTargets:
    """Return the user's standing goals, or the defaults when none are stored."""
    row = db.query(models.UserGoals).filter(models.UserGoals.user_id == user_id).first()
    if row is None:
        return MacroTargets(**DEFAULT_GOALS)
    return MacroTargets(row.calorie_target, row.protein_target, row.carbs_target, row.fat_target)


def has_goals(db: Session, user_id: int) -> bool:
    return db.query(models.UserGoals.id).filter(models.UserGoals.user_id == user_id).first() is not None


def write_goals(db: Session, user_id: int, targets: MacroTargets) -> models.UserGoals:
    """Upsert the user's goals without committing.

    Callers commit as part of the enclosing unit of work, so goals never
    drift from the program targets written in the same transaction.
    """
    row = db.query(models.UserGoals).filter(models.UserGoals.user_id == user_id).first()
    if row is None:
        row = models.UserGoals(user_id=user_id)
        db.add(row)
    row.calorie_target = targets.calories
    row.protein_target = targets.protein
    row.carbs_target = targets.carbs
    row.fat_target = targets.fat
    db.flush()
    return row


def set_goals(db: Session, user_id: int, updates: Dict[str, Optional[float]]) -> MacroTargets:
    """Partially update the user's goals; omitted fields keep their current value."""
    current = get_goals(db, user_id).as_dict()
    merged = {k: (updates.get(k) if updates.get(k) is not None else current[k]) for k in MACRO_KEYS}
    targets = validate_targets(merged)
    write_goals(db, user_id, targets)
    db.commit()
    logger.info("Goals updated for user=%s: %s", user_id, targets.as_dict())
    return targets
