"""Database helpers: engines, session factories and schema creation.

Reads and writes go through separate engines so a read replica can be
configured with READ_DATABASE_URL; by default both point at the same DB.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from core.config import DATABASE_URL, READ_DATABASE_URL
from .models import Base


def _connect_args(url: str) -> dict:
    # SQLite connections are shared across FastAPI's worker threads.
    return {"check_same_thread": False} if url.startswith("sqlite") else {}


write_engine = create_engine(DATABASE_URL, connect_args=_connect_args(DATABASE_URL))
read_engine = create_engine(READ_DATABASE_URL, connect_args=_connect_args(READ_DATABASE_URL))

WriteSessionLocal = sessionmaker(bind=write_engine)
ReadSessionLocal = sessionmaker(bind=read_engine)


def init_db():
    """Create all tables and indexes declared on the ORM models."""
    Base.metadata.create_all(bind=write_engine)


def get_write_session():
    """Yield a write-enabled session for the request scope and close it afterwards."""
    db = WriteSessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_read_session():
    """Yield a read-only session for the request scope.

    Used by read endpoints where routing reads to a replica may be desired.
    """
    db = ReadSessionLocal()
    try:
        yield db
    finally:
        db.close()
