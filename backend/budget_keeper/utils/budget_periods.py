"""Budget period calculator.

Budget windows are anchored on the budget's ``start_date``: window ``n`` runs
from ``start_date + n`` cadence units to the day before ``start_date + n + 1``
units. Month arithmetic clamps to the end of the month (Jan 31 + 1 month is
Feb 28/29), and because every boundary is computed from the anchor rather than
from the previous window, consecutive windows never overlap or leave gaps.

All functions are pure: "today" is always passed in.
"""

import logging
from datetime import date, timedelta
from typing import NamedTuple, Optional

from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

# Months per cadence unit
CADENCE_MONTHS = {
    "monthly": 1,
    "quarterly": 3,
    "yearly": 12,
}

DEFAULT_CADENCE = "monthly"


class PeriodWindow(NamedTuple):
    """Closed date interval of one budget period."""

    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def total_days(self) -> int:
        """Number of calendar days in the window, both ends included."""
        return (self.end - self.start).days + 1


def coerce_period(period) -> str:
    """
    Normalize a cadence to one of CADENCE_MONTHS.

    Unrecognized values fall back to monthly.
    """
    value = getattr(period, "value", period)
    value = str(value).lower() if value is not None else ""

    if value not in CADENCE_MONTHS:
        logger.warning(f"Unrecognized budget period {period!r}, falling back to monthly")
        return DEFAULT_CADENCE

    return value


def add_periods(day: date, period, count: int) -> date:
    """Shift ``day`` by ``count`` cadence units (negative counts go back)."""
    months = CADENCE_MONTHS[coerce_period(period)] * count
    return day + relativedelta(months=months)


def get_period_boundaries(period_start: date, period) -> PeriodWindow:
    """Window that begins at ``period_start`` and lasts one cadence unit."""
    return PeriodWindow(period_start, add_periods(period_start, period, 1) - timedelta(days=1))


def window_at(start_date: date, period, index: int) -> PeriodWindow:
    """The ``index``-th window of a budget anchored on ``start_date``."""
    return PeriodWindow(
        add_periods(start_date, period, index),
        add_periods(start_date, period, index + 1) - timedelta(days=1),
    )


def periods_since_start(start_date: date, period, today: date) -> int:
    """
    Number of complete cadence units between ``start_date`` and ``today``.

    Monthly counts whole months, quarterly whole months // 3, yearly whole
    years. Returns 0 when ``today`` is before ``start_date``.
    """
    if today <= start_date:
        return 0

    unit = CADENCE_MONTHS[coerce_period(period)]
    months = (today.year - start_date.year) * 12 + (today.month - start_date.month)
    count = max(0, months // unit)

    # Month lengths make the estimate off by one around the anchor day
    while count > 0 and add_periods(start_date, period, count) > today:
        count -= 1
    while add_periods(start_date, period, count + 1) <= today:
        count += 1

    return count


def calculate_current_period(start_date: date, period, today: date) -> PeriodWindow:
    """
    Cadence-aligned window that contains ``today``.

    A start date in the future yields the first window, beginning at
    ``start_date``.
    """
    if start_date > today:
        return window_at(start_date, period, 0)

    return window_at(start_date, period, periods_since_start(start_date, period, today))


def previous_period(start_date: date, period, current_start: date) -> Optional[PeriodWindow]:
    """Window immediately before the one starting at ``current_start``, if any."""
    index = periods_since_start(start_date, period, current_start)
    if index <= 0:
        return None

    return window_at(start_date, period, index - 1)
