"""Nutrition aggregation over the food log.

Reduces raw food-log rows into per-day macro totals and scores days for
compliance. Dates with no entries are absent from the results, never
zero-filled.
"""

import math
from dataclasses import dataclass
from datetime import date
from typing import List, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from database import models

PROTEIN_COMPLIANCE_RATIO = 0.8


@dataclass(frozen=True)
class DailyTotals:
    date: date
    calories: float
    protein: float
    carbs: float
    fat: float


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def daily_totals(db: Session, user_id: int, start_date: date, end_date: date) -> List[DailyTotals]:
    """Sum calories/protein/carbs/fat per logged date in [start_date, end_date].

    Each entry's nutrients are multiplied by its serving count. Results are
    ordered by date ascending and contain only dates with at least one entry.
    """
    FoodEntry = models.FoodEntry
    rows = (
        db.query(
            FoodEntry.date,
            func.sum(FoodEntry.calories * FoodEntry.servings),
            func.sum(FoodEntry.protein * FoodEntry.servings),
            func.sum(FoodEntry.carbs * FoodEntry.servings),
            func.sum(FoodEntry.fat * FoodEntry.servings),
        )
        .filter(FoodEntry.user_id == user_id, FoodEntry.date >= start_date, FoodEntry.date <= end_date)
        .group_by(FoodEntry.date)
        .order_by(FoodEntry.date)
        .all()
    )
    return [
        DailyTotals(day, float(cal or 0), float(prot or 0), float(carb or 0), float(fat or 0))
        for day, cal, prot, carb, fat in rows
    ]


def distinct_logged_days(db: Session, user_id: int, start_date: date, end_date: date) -> int:
    """Count dates in the range that have at least one food entry."""
    FoodEntry = models.FoodEntry
    return (
        db.query(func.count(func.distinct(FoodEntry.date)))
        .filter(FoodEntry.user_id == user_id, FoodEntry.date >= start_date, FoodEntry.date <= end_date)
        .scalar()
        or 0
    )


def is_compliant(day: DailyTotals, protein_target: float, calorie_target: float) -> bool:
    """A day complies when protein reaches 80% of target and calories stay at or under target."""
    return day.protein >= PROTEIN_COMPLIANCE_RATIO * protein_target and day.calories <= calorie_target


def compliance_rate(totals: Sequence[DailyTotals], protein_target: float, calorie_target: float) -> int:
    """Percentage (0-100) of days with data that were compliant.

    Days without data count in neither numerator nor denominator; an empty
    input scores 0.
    """
    if not totals:
        return 0
    compliant = sum(1 for day in totals if is_compliant(day, protein_target, calorie_target))
    return round_half_up(100 * compliant / len(totals))


def average_macros(totals: Sequence[DailyTotals]) -> dict:
    """Integer-rounded per-macro averages over the days with data."""
    n = len(totals)
    if n == 0:
        return {'calories': 0, 'protein': 0, 'carbs': 0, 'fat': 0}
    return {
        'calories': round_half_up(sum(d.calories for d in totals) / n),
        'protein': round_half_up(sum(d.protein for d in totals) / n),
        'carbs': round_half_up(sum(d.carbs for d in totals) / n),
        'fat': round_half_up(sum(d.fat for d in totals) / n),
    }
