"""Request-scoped dependencies shared by the routers.

Authentication happens upstream; by the time a request reaches this
service the caller's id is carried in the `X-User-Id` header. Operator
endpoints instead require the shared `X-Operator-Token`.
"""

import hmac
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from core import config
from core.exceptions import PermissionDeniedError
from core.logger import get_logger
from database.deps import get_db_read
from services.ai_reasoning import ReviewAdvisor, build_review_advisor
from services.goals import get_user

logger = get_logger("api.deps")


def get_current_user_id(x_user_id: int = Header(..., description="Id of the calling user"),
                        db: Session = Depends(get_db_read)) -> int:
    """Resolve the caller from the `X-User-Id` header.

    Raises:
        NotFoundError: If no such user exists.
    """
    return get_user(db, x_user_id).id


def require_operator(x_operator_token: Optional[str] = Header(None, description="Operator shared secret")) -> None:
    """Allow the request only when `X-Operator-Token` matches `OPERATOR_TOKEN`.

    Raises:
        PermissionDeniedError: If no token is configured, or the header is missing or wrong.
    """
    expected = config.OPERATOR_TOKEN
    if not expected:
        raise PermissionDeniedError("Operator endpoints are disabled; set OPERATOR_TOKEN to enable them")
    if not x_operator_token or not hmac.compare_digest(x_operator_token, expected):
        logger.warning("Rejected operator request with missing or invalid token")
        raise PermissionDeniedError("Valid operator token required")


def get_review_advisor() -> ReviewAdvisor:
    """Yield the AI advisor used for review generation. Overridden in tests."""
    return build_review_advisor()
