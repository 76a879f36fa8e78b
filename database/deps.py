"""FastAPI dependencies that expose the read/write session generators.

`get_db_write` is used by every endpoint that mutates state, `get_db_read`
by list/detail endpoints that can tolerate replica lag.
"""

from .database import get_read_session, get_write_session


def get_db_write():
    """Yield a write-capable DB session for FastAPI dependency injection."""
    yield from get_write_session()


def get_db_read():
    """Yield a read-only DB session for FastAPI dependency injection."""
    yield from get_read_session()
