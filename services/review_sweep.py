"""Daily sweep that generates reviews for programs that are due.

Each program is processed on its own: a failure is logged, rolled back and
recorded in the run summary, and the sweep moves on. Nothing marks a program
as permanently failed; it is simply picked up again by the next day's run.

Run it from the command line with `python -m services.review_sweep`.
"""

from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from core.clock import utc_today
from core.exceptions import AlreadyReviewedError, AppException, InsufficientDataError
from core.logger import get_logger
from database import models
from services import nutrition_aggregator as aggregator
from services.ai_reasoning import ReviewAdvisor
from services.program_manager import ACTIVE, ProgramManager
from services.review_decisions import EXPIRED, PENDING
from services.review_generator import MIN_DAYS_WITH_DATA, ReviewGenerator, review_week

logger = get_logger("services.review_sweep")

GATE_WINDOW_DAYS = 7
REVIEW_EXPIRY_DAYS = 7

SKIP_LOCKED = 'macros_locked'
SKIP_INSUFFICIENT_DATA = 'insufficient_data'
SKIP_EXISTING = 'already_reviewed'


@dataclass
class SweepOutcome:
    program_id: int
    user_id: int
    status: str  # generated | skipped | error
    reason: Optional[str] = None
    review_id: Optional[int] = None
    skip_code: Optional[str] = None


@dataclass
class SweepSummary:
    run_date: date
    programs_checked: int = 0
    reviews_generated: int = 0
    skipped_insufficient_data: int = 0
    skipped_existing: int = 0
    skipped_locked: int = 0
    errors: int = 0
    expired_reviews: int = 0
    programs_completed: int = 0
    details: List[SweepOutcome] = field(default_factory=list)

    def as_dict(self) -> dict:
        data = asdict(self)
        data['run_date'] = self.run_date.isoformat()
        return data


class ReviewSweep:

    def __init__(self, db: Session, advisor: ReviewAdvisor):
        self.db = db
        self.programs = ProgramManager(db)
        self.generator = ReviewGenerator(db, advisor)

    def expire_stale_reviews(self, today: date) -> int:
        """Move pending reviews that are over a week old, or whose program ended, to expired."""
        inactive_programs = select(models.UserProgram.id).where(models.UserProgram.status != ACTIVE)
        expired = (
            self.db.query(models.ProgramReview)
            .filter(
                models.ProgramReview.status == PENDING,
                or_(
                    models.ProgramReview.review_date < today - timedelta(days=REVIEW_EXPIRY_DAYS),
                    models.ProgramReview.program_id.in_(inactive_programs),
                ),
            )
            .update({models.ProgramReview.status: EXPIRED}, synchronize_session=False)
        )
        self.db.commit()
        if expired:
            logger.info("Expired %s stale pending reviews", expired)
        return expired

    def due_programs(self, today: date) -> List[models.UserProgram]:
        """Active programs that have started and whose next review date has arrived."""
        return (
            self.db.query(models.UserProgram)
            .filter(
                models.UserProgram.status == ACTIVE,
                models.UserProgram.start_date <= today,
                or_(models.UserProgram.next_review_date.is_(None), models.UserProgram.next_review_date <= today),
            )
            .order_by(models.UserProgram.id)
            .all()
        )

    def _process(self, program: models.UserProgram, today: date) -> SweepOutcome:
        outcome = SweepOutcome(program_id=program.id, user_id=program.user_id, status='skipped')

        if program.macros_locked:
            outcome.skip_code = SKIP_LOCKED
            outcome.reason = 'Macros locked'
            return outcome

        days = aggregator.distinct_logged_days(
            self.db, program.user_id, today - timedelta(days=GATE_WINDOW_DAYS - 1), today)
        if days < MIN_DAYS_WITH_DATA:
            outcome.skip_code = SKIP_INSUFFICIENT_DATA
            outcome.reason = f"Insufficient data: {days}/{GATE_WINDOW_DAYS} days"
            return outcome

        week = review_week(program.start_date, today)
        if self.generator.review_exists(program.id, week):
            outcome.skip_code = SKIP_EXISTING
            outcome.reason = f"Review already exists for week {week}"
            return outcome

        review = self.generator.generate_review(program.user_id, program.id, today=today)
        outcome.status = 'generated'
        outcome.review_id = review.id
        outcome.reason = f"Week {week} review generated"
        return outcome

    def run(self, today: Optional[date] = None) -> SweepSummary:
        """Generate reviews for every active program that is due.

        Returns:
            Summary with per-program outcomes; errors are recorded, never raised.
        """
        today = today or utc_today()
        summary = SweepSummary(run_date=today)
        logger.info("Review sweep starting for %s", today)

        for program in list(self.db.query(models.UserProgram).filter(models.UserProgram.status == ACTIVE)):
            if self.programs.expire_if_ended(program, today).status != ACTIVE:
                summary.programs_completed += 1
        summary.expired_reviews = self.expire_stale_reviews(today)

        programs = self.due_programs(today)
        summary.programs_checked = len(programs)
        for program in programs:
            program_id, user_id = program.id, program.user_id
            try:
                outcome = self._process(program, today)
            except InsufficientDataError as exc:
                self.db.rollback()
                outcome = SweepOutcome(program_id, user_id, 'skipped', exc.message,
                                       skip_code=SKIP_INSUFFICIENT_DATA)
            except AlreadyReviewedError as exc:
                self.db.rollback()
                outcome = SweepOutcome(program_id, user_id, 'skipped', exc.message, skip_code=SKIP_EXISTING)
            except AppException as exc:
                self.db.rollback()
                logger.warning("Review for program %s failed: %s", program_id, exc.message)
                outcome = SweepOutcome(program_id, user_id, 'error', exc.message)
            except Exception as exc:
                self.db.rollback()
                logger.exception("Unexpected error processing program %s", program_id)
                outcome = SweepOutcome(program_id, user_id, 'error', str(exc) or exc.__class__.__name__)

            if outcome.status == 'generated':
                summary.reviews_generated += 1
            elif outcome.status == 'error':
                summary.errors += 1
            elif outcome.skip_code == SKIP_LOCKED:
                summary.skipped_locked += 1
            elif outcome.skip_code == SKIP_EXISTING:
                summary.skipped_existing += 1
            else:
                summary.skipped_insufficient_data += 1
            summary.details.append(outcome)

        logger.info(
            "Review sweep finished: checked=%s generated=%s insufficient=%s existing=%s locked=%s errors=%s",
            summary.programs_checked, summary.reviews_generated, summary.skipped_insufficient_data,
            summary.skipped_existing, summary.skipped_locked, summary.errors,
        )
        return summary


if __name__ == "__main__":
    import argparse
    import json

    from database.database import WriteSessionLocal, init_db
    from services.ai_reasoning import build_review_advisor

    p = argparse.ArgumentParser("Generate weekly reviews for programs that are due")
    p.add_argument("--date", type=date.fromisoformat, default=None, help="Run as of this date (YYYY-MM-DD)")
    args = p.parse_args()

    init_db()
    session = WriteSessionLocal()
    try:
        result = ReviewSweep(session, build_review_advisor()).run(args.date)
    finally:
        session.close()
    print(json.dumps(result.as_dict(), indent=2))
