"""Program lifecycle management.

Creates, reads, expires and cancels macro programs, and owns the single
mutation point for committing new targets to a program. A user never has
more than one active program: creating one cancels the previous active
program in the same transaction, and a partial unique index backs that up
against concurrent creates.
"""

from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.clock import utc_today
from core.exceptions import InvalidStateError, NotFoundError, ValidationError
from core.logger import get_logger
from core.repository import get_owned, transaction
from database import models
from services.goals import MacroTargets, validate_targets, write_goals

logger = get_logger("services.program_manager")

ACTIVE = 'active'
COMPLETED = 'completed'
CANCELLED = 'cancelled'
REVIEW_INTERVAL_DAYS = 7


def _expire_pending_reviews(db: Session, program_id: int) -> int:
    return (
        db.query(models.ProgramReview)
        .filter(models.ProgramReview.program_id == program_id, models.ProgramReview.status == 'pending')
        .update({models.ProgramReview.status: 'expired'}, synchronize_session=False)
    )


class ProgramManager:
    """Lifecycle operations over `UserProgram` rows for one session."""

    def __init__(self, db: Session):
        self.db = db

    def create_program(self, user_id: int, template_id: str, start_date: date, duration_weeks: int,
                       targets: Dict[str, Optional[float]], starting_weight_kg: Optional[float] = None,
                       target_weight_kg: Optional[float] = None, notes: Optional[str] = None) -> models.UserProgram:
        """Start a new program, cancelling any active one, and seed the user's goals.

        Raises:
            ValidationError: If template, start date, duration or any target is missing.
            InvalidStateError: If a concurrent create for the same user won the race.
        """
        if not template_id:
            raise ValidationError("Program template is required", field="template_id")
        if start_date is None:
            raise ValidationError("Start date is required", field="start_date")
        if not duration_weeks or duration_weeks <= 0:
            raise ValidationError("Duration in weeks must be a positive integer", field="duration_weeks")
        macros = validate_targets(targets)

        db = self.db
        try:
            with transaction(db):
                previous = (
                    db.query(models.UserProgram)
                    .filter(models.UserProgram.user_id == user_id, models.UserProgram.status == ACTIVE)
                    .all()
                )
                for old in previous:
                    old.status = CANCELLED
                    _expire_pending_reviews(db, old.id)
                    logger.info("Cancelled program %s for user=%s", old.id, user_id)
                db.flush()

                program = models.UserProgram(
                    user_id=user_id,
                    template_id=template_id,
                    start_date=start_date,
                    end_date=start_date + timedelta(days=duration_weeks * 7),
                    duration_weeks=duration_weeks,
                    status=ACTIVE,
                    starting_weight_kg=starting_weight_kg,
                    target_weight_kg=target_weight_kg,
                    calorie_target=macros.calories,
                    protein_target=macros.protein,
                    carbs_target=macros.carbs,
                    fat_target=macros.fat,
                    review_count=0,
                    macros_locked=False,
                    notes=notes,
                )
                db.add(program)
                db.flush()
                write_goals(db, user_id, macros)
        except IntegrityError:
            raise InvalidStateError("Another program was activated concurrently; retry the request")

        db.refresh(program)
        logger.info("Program %s (%s) created for user=%s, %s weeks from %s",
                    program.id, template_id, user_id, duration_weeks, start_date)
        return program

    def expire_if_ended(self, program: models.UserProgram, today: Optional[date] = None) -> models.UserProgram:
        """Flip an active program whose end date has passed to completed.

        The flip is a conditional update on `status = 'active'`, so two
        readers racing on the boundary day both see the same outcome and
        pending reviews are expired once.
        """
        today = today or utc_today()
        if program.status != ACTIVE or program.end_date >= today:
            return program
        with transaction(self.db):
            flipped = (
                self.db.query(models.UserProgram)
                .filter(models.UserProgram.id == program.id, models.UserProgram.status == ACTIVE)
                .update({models.UserProgram.status: COMPLETED}, synchronize_session=False)
            )
            if flipped:
                _expire_pending_reviews(self.db, program.id)
        self.db.refresh(program)
        if flipped:
            logger.info("Program %s completed (ended %s)", program.id, program.end_date)
        return program

    def get_active_program(self, user_id: int, today: Optional[date] = None) -> Optional[models.UserProgram]:
        """Return the user's active program, completing it first if it has ended."""
        program = (
            self.db.query(models.UserProgram)
            .filter(models.UserProgram.user_id == user_id, models.UserProgram.status == ACTIVE)
            .order_by(models.UserProgram.start_date.desc())
            .first()
        )
        if program is None:
            return None
        program = self.expire_if_ended(program, today)
        return program if program.status == ACTIVE else None

    def get_program(self, user_id: int, program_id: int) -> models.UserProgram:
        return get_owned(self.db, models.UserProgram, program_id, user_id, "Program")

    def list_history(self, user_id: int, limit: int = 10) -> List[models.UserProgram]:
        return (
            self.db.query(models.UserProgram)
            .filter(models.UserProgram.user_id == user_id,
                    models.UserProgram.status.in_([COMPLETED, CANCELLED]))
            .order_by(models.UserProgram.end_date.desc())
            .limit(limit)
            .all()
        )

    def update_program(self, user_id: int, program_id: int, status: Optional[str] = None,
                       ending_weight_kg: Optional[float] = None, notes: Optional[str] = None,
                       macros_locked: Optional[bool] = None,
                       targets: Optional[Dict[str, Optional[float]]] = None,
                       today: Optional[date] = None) -> models.UserProgram:
        """Partially update a program owned by the user.

        Manual target changes are audited as `manual_adjustment`, copied to
        the user's goals and expire any pending review, since its
        recommendation was computed against the old targets.

        Raises:
            NotFoundError: If the program does not belong to the user.
            ValidationError: For unknown statuses or non-positive targets.
            InvalidStateError: When changing status of a program that is not active.
        """
        today = today or utc_today()
        program = self.get_program(user_id, program_id)

        if status is not None and status not in (COMPLETED, CANCELLED):
            raise ValidationError("Status can only be set to 'completed' or 'cancelled'", field="status")
        if status is not None and program.status != ACTIVE and status != program.status:
            raise InvalidStateError(f"Program is already {program.status}", current_state=program.status)

        new_targets = None
        if targets and any(v is not None for v in targets.values()):
            current = {'calories': program.calorie_target, 'protein': program.protein_target,
                       'carbs': program.carbs_target, 'fat': program.fat_target}
            merged = {k: (targets.get(k) if targets.get(k) is not None else current[k]) for k in current}
            new_targets = validate_targets(merged)

        with transaction(self.db):
            if new_targets is not None:
                self._write_targets(program, new_targets, None, today, 'manual_adjustment')
                write_goals(self.db, user_id, new_targets)
                expired = _expire_pending_reviews(self.db, program.id)
                logger.info("Manual macro adjustment on program %s: %s (expired %s pending reviews)",
                            program.id, new_targets.as_dict(), expired)
            if status is not None and status != program.status:
                program.status = status
                _expire_pending_reviews(self.db, program.id)
                logger.info("Program %s marked %s", program.id, status)
            if ending_weight_kg is not None:
                program.ending_weight_kg = ending_weight_kg
            if notes is not None:
                program.notes = notes
            if macros_locked is not None:
                program.macros_locked = macros_locked
        self.db.refresh(program)
        return program

    def _write_targets(self, program: models.UserProgram, targets: MacroTargets, review_id: Optional[int],
                       effective_date: date, change_reason: str) -> models.ProgramMacroHistory:
        program.calorie_target = targets.calories
        program.protein_target = targets.protein
        program.carbs_target = targets.carbs
        program.fat_target = targets.fat
        entry = models.ProgramMacroHistory(
            program_id=program.id,
            review_id=review_id,
            calorie_target=targets.calories,
            protein_target=targets.protein,
            carbs_target=targets.carbs,
            fat_target=targets.fat,
            effective_date=effective_date,
            change_reason=change_reason,
        )
        self.db.add(entry)
        return entry

    def advance_review_cadence(self, program: models.UserProgram, review_date: date) -> None:
        """Record a completed review cycle: last/next review dates and the count."""
        program.last_review_date = review_date
        program.next_review_date = review_date + timedelta(days=REVIEW_INTERVAL_DAYS)
        program.review_count = (program.review_count or 0) + 1

    def apply_new_targets(self, program_id: int, targets: MacroTargets, review_id: Optional[int],
                          effective_date: date, change_reason: str = 'ai_review',
                          commit: bool = True) -> models.UserProgram:
        """Commit new targets to a program together with its review bookkeeping.

        Targets, last/next review dates, review count and the audit row are
        written in one unit. With `commit=False` the caller's enclosing
        transaction decides.
        """
        program = self.db.get(models.UserProgram, program_id)
        if program is None:
            raise NotFoundError("Program", program_id)
        try:
            self._write_targets(program, targets, review_id, effective_date, change_reason)
            self.advance_review_cadence(program, effective_date)
            self.db.flush()
            if commit:
                self.db.commit()
        except Exception:
            if commit:
                self.db.rollback()
            raise
        if commit:
            self.db.refresh(program)
        logger.info("Applied targets %s to program %s (review=%s)", targets.as_dict(), program_id, review_id)
        return program

    def macro_history(self, user_id: int, program_id: int) -> List[models.ProgramMacroHistory]:
        self.get_program(user_id, program_id)
        return (
            self.db.query(models.ProgramMacroHistory)
            .filter(models.ProgramMacroHistory.program_id == program_id)
            .order_by(models.ProgramMacroHistory.effective_date, models.ProgramMacroHistory.id)
            .all()
        )
