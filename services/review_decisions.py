"""Accept/reject decisions on pending reviews.

A review moves out of `pending` exactly once. The status change is a
conditional update on `status = 'pending'`, so of two concurrent or retried
decisions only the first succeeds; the other sees zero affected rows and
fails with `InvalidStateError`.
"""

from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from core.clock import utc_today, utcnow
from core.exceptions import InvalidStateError, NotFoundError
from core.logger import get_logger
from core.repository import get_owned, transaction
from database import models
from services.goals import MacroTargets, write_goals
from services.program_manager import ACTIVE, ProgramManager

logger = get_logger("services.review_decisions")

PENDING = 'pending'
ACCEPTED = 'accepted'
REJECTED = 'rejected'
EXPIRED = 'expired'
REVIEW_STATUSES = (PENDING, ACCEPTED, REJECTED, EXPIRED)
MAX_LIST_LIMIT = 50


class ReviewDecisionProcessor:

    def __init__(self, db: Session):
        self.db = db
        self.programs = ProgramManager(db)

    def _claim(self, review: models.ProgramReview, new_status: str, notes: Optional[str]) -> None:
        claimed = (
            self.db.query(models.ProgramReview)
            .filter(models.ProgramReview.id == review.id, models.ProgramReview.status == PENDING)
            .update(
                {
                    models.ProgramReview.status: new_status,
                    models.ProgramReview.user_response_date: utcnow(),
                    models.ProgramReview.user_notes: notes,
                },
                synchronize_session=False,
            )
        )
        if not claimed:
            current = self.db.query(models.ProgramReview.status).filter(models.ProgramReview.id == review.id).scalar()
            raise InvalidStateError("Review has already been processed", current_state=current)

    def _load_pending(self, user_id: int, review_id: int) -> models.ProgramReview:
        review = get_owned(self.db, models.ProgramReview, review_id, user_id, "Review")
        if review.status != PENDING:
            raise InvalidStateError("Review has already been processed", current_state=review.status)
        return review

    def accept(self, user_id: int, review_id: int, user_notes: Optional[str] = None,
               today: Optional[date] = None) -> models.ProgramReview:
        """Accept a pending review and commit its targets everywhere they live.

        The review status, the program targets and cadence, the audit row and
        the user's standing goals change together or not at all.

        Raises:
            NotFoundError: If the review or its program is missing or not owned.
            InvalidStateError: If the review is not pending or its program is no longer active.
        """
        today = today or utc_today()
        review = self._load_pending(user_id, review_id)
        program = self.db.get(models.UserProgram, review.program_id)
        if program is None:
            raise NotFoundError("Program", review.program_id)
        if program.status != ACTIVE:
            raise InvalidStateError(f"Program is {program.status}; its reviews can no longer be accepted",
                                    current_state=program.status)

        targets = MacroTargets(
            calories=review.recommended_calories,
            protein=review.recommended_protein,
            carbs=review.recommended_carbs,
            fat=review.recommended_fat,
        )
        with transaction(self.db):
            self._claim(review, ACCEPTED, user_notes)
            self.programs.apply_new_targets(program.id, targets, review.id, today,
                                            change_reason='ai_review', commit=False)
            write_goals(self.db, user_id, targets)
        self.db.refresh(review)
        logger.info("Review %s accepted; program %s now %s", review.id, program.id, targets.as_dict())
        return review

    def reject(self, user_id: int, review_id: int, reason: Optional[str] = None,
               today: Optional[date] = None) -> models.ProgramReview:
        """Reject a pending review. Targets stay put; the review cadence still advances.

        Raises:
            NotFoundError: If the review is missing or not owned.
            InvalidStateError: If the review is not pending.
        """
        today = today or utc_today()
        review = self._load_pending(user_id, review_id)
        with transaction(self.db):
            self._claim(review, REJECTED, reason)
            program = self.db.get(models.UserProgram, review.program_id)
            if program is not None:
                self.programs.advance_review_cadence(program, today)
        self.db.refresh(review)
        logger.info("Review %s rejected; program %s targets unchanged", review.id, review.program_id)
        return review


def list_reviews(db: Session, user_id: int, status: Optional[str] = None, program_id: Optional[int] = None,
                 limit: int = 10) -> List[models.ProgramReview]:
    """The user's reviews, newest first, optionally filtered by status and program."""
    query = db.query(models.ProgramReview).filter(models.ProgramReview.user_id == user_id)
    if status is not None:
        query = query.filter(models.ProgramReview.status == status)
    if program_id is not None:
        query = query.filter(models.ProgramReview.program_id == program_id)
    return (
        query.order_by(models.ProgramReview.review_date.desc(), models.ProgramReview.id.desc())
        .limit(max(1, min(limit, MAX_LIST_LIMIT)))
        .all()
    )
