"""Clock helpers.

All calendar comparisons in the engine use UTC dates so the API, the
sweep and the tests agree on what "today" is.
"""

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return utcnow().date()
