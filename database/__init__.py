"""Persistence layer for programs, reviews and the logs they are built from.

`models` holds the ORM tables; `init_db` creates them (with their partial
unique indexes) on the write engine.
"""

from . import models
from .database import ReadSessionLocal, WriteSessionLocal, init_db

__all__ = ["models", "init_db", "WriteSessionLocal", "ReadSessionLocal"]
