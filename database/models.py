"""SQLAlchemy ORM models for the macro program service.

Models are plain declarative classes without business logic. The two
"at most one" rules of the engine are enforced here as partial unique
indexes: one active program per user, and one unforced review per
program week.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base

from core.clock import utcnow

Base = declarative_base()


class User(Base):
    """Application user. Identity is resolved upstream; only the profile lives here."""

    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class UserGoals(Base):
    """Standing daily macro goals for a user, kept in step with the active program."""

    __tablename__ = "user_goals"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    calorie_target = Column(Integer, nullable=False)
    protein_target = Column(Integer, nullable=False)
    carbs_target = Column(Integer, nullable=False)
    fat_target = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class FoodEntry(Base):
    """One logged food item. Nutrients are per serving."""

    __tablename__ = "food_entries"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    meal_type = Column(String, nullable=False)
    name = Column(String, nullable=False)
    servings = Column(Float, nullable=False, default=1.0)
    calories = Column(Float, nullable=False)
    protein = Column(Float, nullable=False)
    carbs = Column(Float, nullable=False)
    fat = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class WeightEntry(Base):
    """Daily body-weight observation with its smoothed trend value."""

    __tablename__ = "weight_entries"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_weight_entries_user_date"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    weight_kg = Column(Float, nullable=False)
    trend_weight = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class UserProgram(Base):
    """A time-bound macro program (cut, bulk or maintenance)."""

    __tablename__ = "user_programs"
    __table_args__ = (
        Index(
            "uq_user_programs_one_active",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    template_id = Column(String, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    duration_weeks = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="active")  # active | completed | cancelled
    starting_weight_kg = Column(Float, nullable=True)
    target_weight_kg = Column(Float, nullable=True)
    ending_weight_kg = Column(Float, nullable=True)
    calorie_target = Column(Integer, nullable=False)
    protein_target = Column(Integer, nullable=False)
    carbs_target = Column(Integer, nullable=False)
    fat_target = Column(Integer, nullable=False)
    last_review_date = Column(Date, nullable=True)
    next_review_date = Column(Date, nullable=True)
    review_count = Column(Integer, nullable=False, default=0)
    macros_locked = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class ProgramReview(Base):
    """Weekly performance snapshot and the validated macro recommendation."""

    __tablename__ = "program_reviews"
    __table_args__ = (
        Index(
            "uq_program_reviews_week",
            "program_id",
            "review_week",
            unique=True,
            sqlite_where=text("is_forced = 0"),
            postgresql_where=text("is_forced = false"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    program_id = Column(Integer, ForeignKey("user_programs.id"), nullable=False, index=True)
    review_week = Column(Integer, nullable=False)
    review_date = Column(Date, nullable=False)
    is_forced = Column(Boolean, nullable=False, default=False)
    days_analyzed = Column(Integer, nullable=False)
    avg_calories = Column(Integer, nullable=False)
    avg_protein = Column(Integer, nullable=False)
    avg_carbs = Column(Integer, nullable=False)
    avg_fat = Column(Integer, nullable=False)
    compliance_rate = Column(Integer, nullable=False)
    starting_weight_kg = Column(Float, nullable=True)
    current_weight_kg = Column(Float, nullable=True)
    trend_weight_kg = Column(Float, nullable=True)
    weight_change_kg = Column(Float, nullable=True)
    ai_analysis = Column(Text, nullable=False, default="")
    ai_reasoning = Column(Text, nullable=False, default="")
    recommended_calories = Column(Integer, nullable=False)
    recommended_protein = Column(Integer, nullable=False)
    recommended_carbs = Column(Integer, nullable=False)
    recommended_fat = Column(Integer, nullable=False)
    confidence_level = Column(String, nullable=False, default="medium")  # low | medium | high
    status = Column(String, nullable=False, default="pending")  # pending | accepted | rejected | expired
    user_response_date = Column(DateTime(timezone=True), nullable=True)
    user_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class ProgramMacroHistory(Base):
    """Append-only audit row written whenever a program's targets change."""

    __tablename__ = "program_macro_history"
    id = Column(Integer, primary_key=True, index=True)
    program_id = Column(Integer, ForeignKey("user_programs.id"), nullable=False, index=True)
    review_id = Column(Integer, ForeignKey("program_reviews.id"), nullable=True)
    calorie_target = Column(Integer, nullable=False)
    protein_target = Column(Integer, nullable=False)
    carbs_target = Column(Integer, nullable=False)
    fat_target = Column(Integer, nullable=False)
    effective_date = Column(Date, nullable=False)
    change_reason = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class UserStats(Base):
    """Logging streak ledger. Achievements are a JSON-encoded list of ids."""

    __tablename__ = "user_stats"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    total_days_logged = Column(Integer, nullable=False, default=0)
    last_logged_date = Column(Date, nullable=True)
    achievements = Column(Text, nullable=False, default="[]")
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
