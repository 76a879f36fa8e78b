"""User profile and standing goals endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.deps import get_current_user_id
from core.logger import get_logger
from database.deps import get_db_read, get_db_write
from schemas import GoalsResponse, GoalsUpdateRequest, UserCreateRequest, UserResponse
from services import goals as goals_service

logger = get_logger("api.users")
router = APIRouter(prefix="/api", tags=["users"])


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(payload: UserCreateRequest, db: Session = Depends(get_db_write)):
    """Register a user profile.

    Raises:
        ValidationError: If the email is already registered.
    """
    logger.info("Creating user: %s", payload.email)
    return goals_service.create_user(db, payload.name, payload.email)


@router.get("/users/me", response_model=UserResponse)
def get_me(user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db_read)):
    return goals_service.get_user(db, user_id)


@router.get("/goals", response_model=GoalsResponse)
def get_goals(user_id: int = Depends(get_current_user_id), db: Session = Depends(get_db_read)):
    """Return the caller's standing goals, or the defaults when none are stored."""
    return GoalsResponse(**goals_service.get_goals(db, user_id).as_dict())


@router.put("/goals", response_model=GoalsResponse)
def update_goals(payload: GoalsUpdateRequest, user_id: int = Depends(get_current_user_id),
                 db: Session = Depends(get_db_write)):
    targets = goals_service.set_goals(db, user_id, payload.model_dump(exclude_none=True))
    return GoalsResponse(**targets.as_dict())
