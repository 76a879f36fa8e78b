"""Weight log with an exponentially smoothed trend.

The trend dampens day-to-day water and food noise so reviews compare real
change, not fluctuations. Writing or back-filling an entry recomputes the
trend for that date and every later entry.
"""

from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from core.clock import utc_today
from core.exceptions import NotFoundError, ValidationError
from core.logger import get_logger
from database import models

logger = get_logger("services.weight_trend")

TREND_ALPHA = 0.1
MIN_WEIGHT_KG = 20
MAX_WEIGHT_KG = 500


@dataclass(frozen=True)
class WeightObservation:
    date: date
    weight_kg: float
    trend_weight: Optional[float]


def _recompute_trend(db: Session, user_id: int, from_date: date) -> None:
    WeightEntry = models.WeightEntry
    previous = (
        db.query(WeightEntry)
        .filter(WeightEntry.user_id == user_id, WeightEntry.date < from_date)
        .order_by(WeightEntry.date.desc())
        .first()
    )
    trend = previous.trend_weight if previous is not None else None
    later = (
        db.query(WeightEntry)
        .filter(WeightEntry.user_id == user_id, WeightEntry.date >= from_date)
        .order_by(WeightEntry.date)
        .all()
    )
    for entry in later:
        trend = entry.weight_kg if trend is None else trend + TREND_ALPHA * (entry.weight_kg - trend)
        entry.trend_weight = round(trend, 2)


def record_weight(db: Session, user_id: int, entry_date: date, weight_kg: float,
                  notes: Optional[str] = None) -> models.WeightEntry:
    """Insert or replace the user's weight for `entry_date` and refresh trends.

    Raises:
        ValidationError: If the weight is outside 20-500 kg.
    """
    if weight_kg is None or not (MIN_WEIGHT_KG <= weight_kg <= MAX_WEIGHT_KG):
        raise ValidationError(f"Weight must be between {MIN_WEIGHT_KG} and {MAX_WEIGHT_KG} kg", field="weight_kg")

    entry = (
        db.query(models.WeightEntry)
        .filter(models.WeightEntry.user_id == user_id, models.WeightEntry.date == entry_date)
        .first()
    )
    if entry is None:
        entry = models.WeightEntry(user_id=user_id, date=entry_date)
        db.add(entry)
    entry.weight_kg = weight_kg
    entry.notes = notes
    db.flush()
    _recompute_trend(db, user_id, entry_date)
    db.commit()
    db.refresh(entry)
    logger.info("Weight recorded user=%s date=%s weight=%.1f trend=%.2f",
                user_id, entry_date, weight_kg, entry.trend_weight)
    return entry


def delete_weight(db: Session, user_id: int, entry_id: int) -> None:
    entry = db.get(models.WeightEntry, entry_id)
    if entry is None or entry.user_id != user_id:
        raise NotFoundError("WeightEntry", entry_id)
    entry_date = entry.date
    db.delete(entry)
    db.flush()
    _recompute_trend(db, user_id, entry_date)
    db.commit()


def list_weights(db: Session, user_id: int, start_date: Optional[date] = None,
                 end_date: Optional[date] = None, limit: int = 30) -> List[models.WeightEntry]:
    query = db.query(models.WeightEntry).filter(models.WeightEntry.user_id == user_id)
    if start_date is not None:
        query = query.filter(models.WeightEntry.date >= start_date)
    if end_date is not None:
        query = query.filter(models.WeightEntry.date <= end_date)
    return query.order_by(models.WeightEntry.date.desc()).limit(min(limit, 365)).all()


def recent_observations(db: Session, user_id: int, limit: int = 30,
                        until: Optional[date] = None) -> List[WeightObservation]:
    """Most recent observations on or before `until`, newest first."""
    until = until or utc_today()
    rows = list_weights(db, user_id, end_date=until, limit=limit)
    return [WeightObservation(r.date, r.weight_kg, r.trend_weight) for r in rows]


def latest_observation(db: Session, user_id: int, until: Optional[date] = None) -> Optional[WeightObservation]:
    observations = recent_observations(db, user_id, limit=1, until=until)
    return observations[0] if observations else None
