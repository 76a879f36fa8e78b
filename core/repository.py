"""Small persistence helpers shared by the services.

Services own their queries; these helpers cover the repeated pieces:
committing a single object, running several writes as one unit, and
loading a row that must belong to the calling user.
"""

from contextlib import contextmanager
from typing import Any, Iterator, List, Type, TypeVar

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from database.models import Base

T = TypeVar('T', bound=Base)


def save(session: Session, obj: T) -> T:
    """Add, commit and refresh a single object.

    Args:
        session: Database session.
        obj: Model instance to persist.

    Returns:
        The persisted object with refreshed attributes.
    """
    session.add(obj)
    session.commit()
    session.refresh(obj)
    return obj


def save_all(session: Session, objects: List[T]) -> List[T]:
    """Add several objects in one commit and refresh them."""
    session.add_all(objects)
    session.commit()
    for obj in objects:
        session.refresh(obj)
    return objects


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """Commit everything done inside the block, or roll all of it back.

    Any exception raised in the block rolls the session back and is re-raised
    unchanged, so the data model is left in its prior state.
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def get_owned(session: Session, model: Type[T], id: Any, user_id: int, resource: str) -> T:
    """Load `model` by primary key, requiring `user_id` ownership.

    Raises:
        NotFoundError: If the row is absent or belongs to another user.
    """
    obj = session.get(model, id)
    if obj is None or obj.user_id != user_id:
        raise NotFoundError(resource, id)
    return obj
