"""DateTime utilities for timezone-aware timestamp handling.

Every "now" in the application goes through these helpers so that tests and
workers can pin the clock by passing explicit dates instead.
"""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """
    Get current UTC datetime without timezone info (offset-naive).

    Returns offset-naive datetime compatible with TIMESTAMP WITHOUT TIME ZONE columns.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_today() -> date:
    """Get the current UTC calendar date."""
    return utc_now().date()


# Lambda version for SQLAlchemy default/onupdate parameters
utc_now_lambda = lambda: datetime.now(timezone.utc).replace(tzinfo=None)  # noqa: E731
