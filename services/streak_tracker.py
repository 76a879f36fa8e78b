"""Logging streaks and achievement badges.

A user's stats change at most once per calendar day. The write is a
conditional update keyed on the `last_logged_date` that was read, so two
log events racing on the same day produce one increment.
"""

import json
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.clock import utc_today
from core.logger import get_logger
from database import models
from services import nutrition_aggregator as aggregator
from services.goals import get_goals, has_goals

logger = get_logger("services.streak_tracker")


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    description: str
    icon: str


ACHIEVEMENTS: Dict[str, Achievement] = {a.id: a for a in [
    Achievement('first_entry', 'First Steps', 'Log your first meal', '🎯'),
    Achievement('week_warrior', 'Week Warrior', '7 day logging streak', '🔥'),
    Achievement('two_week_streak', 'Committed', '14 day logging streak', '💪'),
    Achievement('month_master', 'Month Master', '30 day logging streak', '⭐'),
    Achievement('fifty_day_streak', 'Dedicated', '50 day logging streak', '🏆'),
    Achievement('century_streak', 'Century Club', '100 day logging streak', '👑'),
    Achievement('hundred_days', 'Centurion', '100 total days logged', '💯'),
    Achievement('protein_pro_7', 'Protein Pro', 'Hit your protein goal 7 days in a row', '🥩'),
]}

STREAK_THRESHOLDS = [
    (7, 'week_warrior'),
    (14, 'two_week_streak'),
    (30, 'month_master'),
    (50, 'fifty_day_streak'),
    (100, 'century_streak'),
]
TOTAL_DAYS_THRESHOLDS = [(100, 'hundred_days')]
PROTEIN_STREAK_DAYS = 7


@dataclass
class StreakUpdate:
    stats: models.UserStats
    new_achievements: List[Achievement] = field(default_factory=list)


def unlocked_ids(stats: models.UserStats) -> List[str]:
    return json.loads(stats.achievements or "[]")


class StreakTracker:

    def __init__(self, db: Session):
        self.db = db

    def get_stats(self, user_id: int) -> models.UserStats:
        """Return the user's stats row, creating an empty one on first access."""
        stats = self.db.query(models.UserStats).filter(models.UserStats.user_id == user_id).first()
        if stats is not None:
            return stats
        stats = models.UserStats(user_id=user_id, current_streak=0, longest_streak=0,
                                 total_days_logged=0, achievements="[]")
        self.db.add(stats)
        try:
            self.db.commit()
        except IntegrityError:
            # Created by a concurrent request.
            self.db.rollback()
            return self.db.query(models.UserStats).filter(models.UserStats.user_id == user_id).one()
        self.db.refresh(stats)
        return stats

    def _hit_protein_every_day(self, user_id: int, today: date) -> bool:
        if not has_goals(self.db, user_id):
            return False
        threshold = aggregator.PROTEIN_COMPLIANCE_RATIO * get_goals(self.db, user_id).protein
        start = today - timedelta(days=PROTEIN_STREAK_DAYS - 1)
        totals = aggregator.daily_totals(self.db, user_id, start, today)
        return len(totals) == PROTEIN_STREAK_DAYS and all(day.protein >= threshold for day in totals)

    def record_logging_day(self, user_id: int, today: Optional[date] = None) -> StreakUpdate:
        """Count `today` as a logged day for the user and unlock any badges earned.

        Repeated calls on the same day return the current stats unchanged.
        """
        today = today or utc_today()
        stats = self.get_stats(user_id)
        last = stats.last_logged_date
        if last == today:
            return StreakUpdate(stats)

        current = stats.current_streak
        total = stats.total_days_logged
        unlocked = unlocked_ids(stats)
        new_ids = []

        if last is None:
            current = 1
            total += 1
            new_ids.append('first_entry')
        elif last == today - timedelta(days=1):
            current += 1
            total += 1
        else:
            current = 1
            total += 1
        longest = max(stats.longest_streak, current)

        for threshold, achievement_id in STREAK_THRESHOLDS:
            if current >= threshold:
                new_ids.append(achievement_id)
        for threshold, achievement_id in TOTAL_DAYS_THRESHOLDS:
            if total >= threshold:
                new_ids.append(achievement_id)
        if self._hit_protein_every_day(user_id, today):
            new_ids.append('protein_pro_7')
        new_ids = [a for a in dict.fromkeys(new_ids) if a not in unlocked]

        query = self.db.query(models.UserStats).filter(models.UserStats.id == stats.id)
        if last is None:
            query = query.filter(models.UserStats.last_logged_date.is_(None))
        else:
            query = query.filter(models.UserStats.last_logged_date == last)
        updated = query.update(
            {
                models.UserStats.current_streak: current,
                models.UserStats.longest_streak: longest,
                models.UserStats.total_days_logged: total,
                models.UserStats.last_logged_date: today,
                models.UserStats.achievements: json.dumps(unlocked + new_ids),
            },
            synchronize_session=False,
        )
        self.db.commit()
        self.db.refresh(stats)
        if not updated:
            logger.info("Stats for user=%s already updated by a concurrent log event", user_id)
            return StreakUpdate(stats)

        for achievement_id in new_ids:
            logger.info("Achievement unlocked for user=%s: %s", user_id, achievement_id)
        return StreakUpdate(stats, [ACHIEVEMENTS[a] for a in new_ids])
