"""Weekly review endpoints.

Reviews are generated on demand here or by the daily sweep, and then
accepted or rejected by the program's owner.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from api.deps import get_current_user_id, get_review_advisor, require_operator
from core.exceptions import ValidationError
from core.logger import get_logger
from database.deps import get_db_read, get_db_write
from schemas import ReviewDecisionRequest, ReviewGenerateRequest, ReviewResponse
from schemas.review_schema import SweepSummaryResponse
from services.ai_reasoning import ReviewAdvisor
from services.review_decisions import REVIEW_STATUSES, ReviewDecisionProcessor, list_reviews
from services.review_generator import ReviewGenerator
from services.review_sweep import ReviewSweep

logger = get_logger("api.reviews")
router = APIRouter(prefix="/api/reviews", tags=["reviews"])


@router.get("", response_model=List[ReviewResponse])
def get_reviews(status: Optional[str] = None, program_id: Optional[int] = None,
                limit: int = Query(10, ge=1, le=50), user_id: int = Depends(get_current_user_id),
                db: Session = Depends(get_db_read)):
    if status is not None and status not in REVIEW_STATUSES:
        raise ValidationError(f"Status must be one of {', '.join(REVIEW_STATUSES)}", field="status")
    return list_reviews(db, user_id, status=status, program_id=program_id, limit=limit)


@router.post("/generate", response_model=ReviewResponse, status_code=201)
def generate_review(payload: ReviewGenerateRequest, user_id: int = Depends(get_current_user_id),
                    db: Session = Depends(get_db_write), advisor: ReviewAdvisor = Depends(get_review_advisor)):
    """Generate a pending review for the caller's program.

    Raises:
        AlreadyReviewedError: If the current week is already reviewed and `force_review` is false.
        InsufficientDataError: If fewer than four days of the period have food entries.
        UpstreamFormatError: If the AI response holds no usable JSON object.
        UpstreamTimeoutError: If the AI call exceeds its timeout.
        UpstreamUnavailableError: If the AI service is unconfigured or unreachable.
    """
    return ReviewGenerator(db, advisor).generate_review(
        user_id, program_id=payload.program_id, force_review=payload.force_review)


@router.post("/{review_id}/accept", response_model=ReviewResponse)
def accept_review(review_id: int, payload: Optional[ReviewDecisionRequest] = None,
                  user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db_write)):
    notes = payload.notes if payload else None
    return ReviewDecisionProcessor(db).accept(user_id, review_id, user_notes=notes)


@router.post("/{review_id}/reject", response_model=ReviewResponse)
def reject_review(review_id: int, payload: Optional[ReviewDecisionRequest] = None,
                  user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db_write)):
    notes = payload.notes if payload else None
    return ReviewDecisionProcessor(db).reject(user_id, review_id, reason=notes)


@router.post("/sweep", response_model=SweepSummaryResponse, dependencies=[Depends(require_operator)])
def run_sweep(db: Session = Depends(get_db_write), advisor: ReviewAdvisor = Depends(get_review_advisor)):
    """Run the daily review sweep now and return its summary.

    Raises:
        PermissionDeniedError: Without a valid `X-Operator-Token`.
    """
    summary = ReviewSweep(db, advisor).run()
    return summary.as_dict()
