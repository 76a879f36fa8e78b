"""Streak and achievement endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from api.deps import get_current_user_id
from database import models
from database.deps import get_db_write
from schemas.nutrition_schema import AchievementResponse, StreakUpdateResponse, UserStatsResponse
from services.streak_tracker import ACHIEVEMENTS, Achievement, StreakTracker, StreakUpdate, unlocked_ids

router = APIRouter(prefix="/api/stats", tags=["stats"])


def _achievement_response(achievement: Achievement) -> AchievementResponse:
    return AchievementResponse(id=achievement.id, name=achievement.name,
                               description=achievement.description, icon=achievement.icon)


def stats_response(stats: models.UserStats) -> UserStatsResponse:
    return UserStatsResponse(
        current_streak=stats.current_streak,
        longest_streak=stats.longest_streak,
        total_days_logged=stats.total_days_logged,
        last_logged_date=stats.last_logged_date,
        achievements=unlocked_ids(stats),
    )


def streak_update_response(update: StreakUpdate) -> StreakUpdateResponse:
    return StreakUpdateResponse(
        stats=stats_response(update.stats),
        new_achievements=[_achievement_response(a) for a in update.new_achievements],
    )


# Stats rows are created lazily on first read, hence the write session.
@router.get("", response_model=UserStatsResponse)
def get_stats(user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db_write)):
    return stats_response(StreakTracker(db).get_stats(user_id))


@router.post("/log-day", response_model=StreakUpdateResponse)
def log_day(user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db_write)):
    """Count today as a logged day without adding a food entry."""
    return streak_update_response(StreakTracker(db).record_logging_day(user_id))


@router.get("/achievements", response_model=List[AchievementResponse])
def list_achievements():
    """The full achievement catalog."""
    return [_achievement_response(a) for a in ACHIEVEMENTS.values()]
