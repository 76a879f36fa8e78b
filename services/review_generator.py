"""Weekly review generation.

Gathers the analysis window's nutrition and weight data, asks the AI
reasoning service for new targets and validates the answer before anything
is stored. The recommendation is bounded twice: by absolute safety bands per
macro and by a +/-20% band around the program's current calorie target.
Generating a review never changes targets; that happens only when the user
accepts it.
"""

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.clock import utc_today
from core.exceptions import AlreadyReviewedError, InsufficientDataError, InvalidStateError, ValidationError
from core.logger import get_logger
from core.repository import transaction
from database import models
from services import nutrition_aggregator as aggregator
from services.ai_reasoning import ReviewAdvisor, extract_review_payload
from services.program_manager import ACTIVE, ProgramManager
from services.program_templates import expected_weekly_rate, goal_for_template
from services.weight_trend import latest_observation

logger = get_logger("services.review_generator")

MIN_DAYS_WITH_DATA = 4
DEFAULT_WINDOW_DAYS = 7
MAX_WINDOW_DAYS = 30
MAX_CALORIE_CHANGE_RATIO = 0.20
MAX_ANALYSIS_LENGTH = 5000
MAX_REASONING_LENGTH = 500
CONFIDENCE_LEVELS = ('low', 'medium', 'high')
KG_TO_LB = 2.20462

# Absolute bounds applied to every recommendation, whatever the program.
SAFETY_BANDS = {
    'calories': (1200, 5000),
    'protein': (50, 400),
    'carbs': (50, 600),
    'fat': (30, 200),
}

AI_KEYS = {
    'calories': 'recommendedCalories',
    'protein': 'recommendedProtein',
    'carbs': 'recommendedCarbs',
    'fat': 'recommendedFat',
}


@dataclass
class ReviewContext:
    """Everything the prompt and the stored review are built from."""

    program: models.UserProgram
    goal: str
    current_week: int
    days_remaining: int
    window_start: date
    window_end: date
    days_analyzed: int
    averages: Dict[str, int]
    compliance_rate: int
    starting_weight: Optional[float]
    current_weight: Optional[float]
    trend_weight: Optional[float]
    weight_change: Optional[float]
    weekly_rate: Optional[float]


@dataclass
class ValidatedRecommendation:
    analysis: str
    reasoning: str
    calories: int
    protein: int
    carbs: int
    fat: int
    confidence: str


def review_week(start_date: date, today: date) -> int:
    """1-based week index since the program started."""
    return (today - start_date).days // 7 + 1


def analysis_window(program: models.UserProgram, today: date) -> tuple:
    """Return (start, end) of the period a review analyses.

    The day after the last review, or for a first review the later of the
    program start and a week ago. Never longer than 30 days.
    """
    if program.last_review_date is not None:
        start = program.last_review_date + timedelta(days=1)
    else:
        start = max(program.start_date, today - timedelta(days=DEFAULT_WINDOW_DAYS))
    start = max(start, today - timedelta(days=MAX_WINDOW_DAYS))
    return start, today


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number) or number <= 0:
        return None
    return number


def validate_recommendation(payload: Dict[str, Any], program: models.UserProgram) -> ValidatedRecommendation:
    """Bound an AI recommendation before it can be stored.

    Missing or non-numeric macros fall back to the program's current target.
    Every macro is held inside its safety band; calories are additionally
    held within +/-20% of the current calorie target, and the safety band is
    re-applied afterwards so the absolute limits always win.
    """
    current = {
        'calories': program.calorie_target,
        'protein': program.protein_target,
        'carbs': program.carbs_target,
        'fat': program.fat_target,
    }
    values = {}
    for key, ai_key in AI_KEYS.items():
        raw = _as_number(payload.get(ai_key))
        low, high = SAFETY_BANDS[key]
        value = aggregator.round_half_up(raw if raw is not None else current[key])
        values[key] = int(_clamp(value, low, high))

    max_change = program.calorie_target * MAX_CALORIE_CHANGE_RATIO
    if abs(values['calories'] - program.calorie_target) > max_change:
        # Round toward the current target so the bound itself stays inside the band.
        if values['calories'] > program.calorie_target:
            bounded = math.floor(program.calorie_target + max_change)
        else:
            bounded = math.ceil(program.calorie_target - max_change)
        logger.info("Calorie recommendation %s clamped to %s (current %s)",
                    values['calories'], bounded, program.calorie_target)
        values['calories'] = bounded
    values['calories'] = int(_clamp(values['calories'], *SAFETY_BANDS['calories']))

    confidence = payload.get('confidenceLevel')
    confidence = confidence.lower() if isinstance(confidence, str) else ''
    if confidence not in CONFIDENCE_LEVELS:
        confidence = 'medium'

    analysis = payload.get('analysis')
    reasoning = payload.get('reasoning')
    return ValidatedRecommendation(
        analysis=(analysis if isinstance(analysis, str) else '')[:MAX_ANALYSIS_LENGTH],
        reasoning=(reasoning if isinstance(reasoning, str) else '')[:MAX_REASONING_LENGTH],
        confidence=confidence,
        **values,
    )


def _deviation(actual: int, target: int) -> int:
    return aggregator.round_half_up((actual - target) / target * 100) if target else 0


def _signed(value: int) -> str:
    return f"+{value}" if value > 0 else str(value)


def _kg(value: Optional[float], digits: int = 1, unit: str = "kg") -> str:
    if value is None:
        return "N/A"
    return f"{value:.{digits}f} {unit} ({value * KG_TO_LB:.{digits}f} lbs)"


def build_review_prompt(ctx: ReviewContext) -> str:
    """Render the structured coaching prompt for one review."""
    program = ctx.program
    avg = ctx.averages
    expected, low, high = expected_weekly_rate(ctx.goal)
    rate = _kg(ctx.weekly_rate, 2, "kg/week") if ctx.weekly_rate is not None else "N/A"

    return f"""Review this client's week and recommend daily macro targets.

PROGRAM
- Template: {program.template_id} (goal: {ctx.goal})
- Week {ctx.current_week} of {program.duration_weeks}, {ctx.days_remaining} days remaining

CURRENT TARGETS
- Calories: {program.calorie_target}
- Protein: {program.protein_target}g
- Carbs: {program.carbs_target}g
- Fat: {program.fat_target}g

INTAKE {ctx.window_start.isoformat()} to {ctx.window_end.isoformat()}
- Days with data: {ctx.days_analyzed}
- Average calories: {avg['calories']} ({_signed(_deviation(avg['calories'], program.calorie_target))}% vs target)
- Average protein: {avg['protein']}g ({_signed(_deviation(avg['protein'], program.protein_target))}% vs target)
- Average carbs: {avg['carbs']}g
- Average fat: {avg['fat']}g
- Compliance: {ctx.compliance_rate}% of logged days (protein at least 80% of target and calories at or under target)

WEIGHT
- Starting: {_kg(ctx.starting_weight)}
- Latest: {_kg(ctx.current_weight)}
- Trend (smoothed): {_kg(ctx.trend_weight)}
- Change since start: {_kg(ctx.weight_change)}
- Average weekly rate: {rate}
- Expected for {ctx.goal}: {expected:+.1f} kg/week (acceptable {low:+.1f} to {high:+.1f})

GUIDANCE
- Judge progress on the trend weight, not single weigh-ins.
- Compliance above 70% is good, above 85% excellent. Below 50%, address adherence and keep targets steady.
- Cutting faster than 1 kg/week: add 100-200 kcal. Not losing on a cut or gaining on maintenance: remove 100-200 kcal.
- Bulking faster than 0.5 kg/week: remove about 100 kcal. Not gaining on a bulk: add 100-200 kcal.
- Keep protein near 0.8-1.2 g per lb of bodyweight and fat at 20-30% of calories; carbs take the remainder.
- Prefer 5-10% changes. With under two weeks left, change little.

CONFIDENCE
- high: 6 or more days of data, a clear weight trend and good adherence
- medium: 4-5 days of data or mixed adherence
- low: fewer than 4 days of data or adherence under 50%

Respond with only this JSON object:
{{
  "analysis": "2-3 paragraphs on what is working and what is not",
  "recommendedCalories": <integer>,
  "recommendedProtein": <integer>,
  "recommendedCarbs": <integer>,
  "recommendedFat": <integer>,
  "confidenceLevel": "low" | "medium" | "high",
  "reasoning": "1-2 sentences explaining the numbers"
}}"""


class ReviewGenerator:
    """Builds, validates and stores pending reviews for one session."""

    def __init__(self, db: Session, advisor: ReviewAdvisor):
        self.db = db
        self.advisor = advisor
        self.programs = ProgramManager(db)

    def _resolve_program(self, user_id: int, program_id: Optional[int], today: date) -> models.UserProgram:
        if program_id is None:
            program = self.programs.get_active_program(user_id, today)
            if program is None:
                raise InvalidStateError("No active program found")
            return program
        program = self.programs.get_program(user_id, program_id)
        program = self.programs.expire_if_ended(program, today)
        if program.status != ACTIVE:
            raise InvalidStateError(f"Program is {program.status}; only active programs are reviewed",
                                    current_state=program.status)
        return program

    def review_exists(self, program_id: int, week: int) -> bool:
        return (
            self.db.query(models.ProgramReview.id)
            .filter(models.ProgramReview.program_id == program_id, models.ProgramReview.review_week == week)
            .first()
            is not None
        )

    def gather_context(self, program: models.UserProgram, today: date) -> ReviewContext:
        """Aggregate the analysis window and weight figures for a program.

        Raises:
            InsufficientDataError: If fewer than four days in the window have food entries.
        """
        week = review_week(program.start_date, today)
        start, end = analysis_window(program, today)
        totals: List[aggregator.DailyTotals] = aggregator.daily_totals(self.db, program.user_id, start, end)
        if len(totals) < MIN_DAYS_WITH_DATA:
            raise InsufficientDataError(
                f"Need at least {MIN_DAYS_WITH_DATA} days of food entries in the review period",
                minimum_required=MIN_DAYS_WITH_DATA,
                days_available=len(totals),
            )

        observation = latest_observation(self.db, program.user_id, until=today)
        current_weight = observation.weight_kg if observation else None
        trend_weight = observation.trend_weight if observation else None
        starting_weight = program.starting_weight_kg
        weight_change = None
        weekly_rate = None
        if current_weight is not None and starting_weight is not None:
            weight_change = round(current_weight - starting_weight, 2)
            weekly_rate = weight_change / week

        return ReviewContext(
            program=program,
            goal=goal_for_template(program.template_id),
            current_week=week,
            days_remaining=max(0, (program.end_date - today).days),
            window_start=start,
            window_end=end,
            days_analyzed=len(totals),
            averages=aggregator.average_macros(totals),
            compliance_rate=aggregator.compliance_rate(totals, program.protein_target, program.calorie_target),
            starting_weight=starting_weight,
            current_weight=current_weight,
            trend_weight=trend_weight,
            weight_change=weight_change,
            weekly_rate=weekly_rate,
        )

    def generate_review(self, user_id: int, program_id: Optional[int] = None, force_review: bool = False,
                        today: Optional[date] = None) -> models.ProgramReview:
        """Produce and persist a pending review for the user's program.

        Raises:
            NotFoundError: If the program does not belong to the user.
            InvalidStateError: If there is no active program to review.
            AlreadyReviewedError: If this week is already reviewed and `force_review` is off.
            InsufficientDataError: If fewer than four days have data.
            UpstreamFormatError / UpstreamTimeoutError / UpstreamUnavailableError: AI failures.
        """
        today = today or utc_today()
        program = self._resolve_program(user_id, program_id, today)
        week = review_week(program.start_date, today)
        if week < 1:
            raise ValidationError("Program has not started yet", field="start_date")

        if not force_review and self.review_exists(program.id, week):
            raise AlreadyReviewedError(program.id, week)

        ctx = self.gather_context(program, today)
        prompt = build_review_prompt(ctx)
        logger.info("Requesting AI review for program %s week %s (%s days, compliance %s%%)",
                    program.id, week, ctx.days_analyzed, ctx.compliance_rate)
        text = self.advisor.complete(prompt)
        parsed = extract_review_payload(text)
        if not parsed.ok:
            raise parsed.error
        rec = validate_recommendation(parsed.value, program)

        review = models.ProgramReview(
            user_id=user_id,
            program_id=program.id,
            review_week=week,
            review_date=today,
            is_forced=force_review,
            days_analyzed=ctx.days_analyzed,
            avg_calories=ctx.averages['calories'],
            avg_protein=ctx.averages['protein'],
            avg_carbs=ctx.averages['carbs'],
            avg_fat=ctx.averages['fat'],
            compliance_rate=ctx.compliance_rate,
            starting_weight_kg=ctx.starting_weight,
            current_weight_kg=ctx.current_weight,
            trend_weight_kg=ctx.trend_weight,
            weight_change_kg=ctx.weight_change,
            ai_analysis=rec.analysis,
            ai_reasoning=rec.reasoning,
            recommended_calories=rec.calories,
            recommended_protein=rec.protein,
            recommended_carbs=rec.carbs,
            recommended_fat=rec.fat,
            confidence_level=rec.confidence,
            status='pending',
        )
        try:
            with transaction(self.db):
                self.db.add(review)
        except IntegrityError:
            raise AlreadyReviewedError(program.id, week)
        self.db.refresh(review)
        logger.info("Review %s generated for program %s week %s: %s kcal / %sp / %sc / %sf (%s confidence)",
                    review.id, program.id, week, rec.calories, rec.protein, rec.carbs, rec.fat, rec.confidence)
        return review
