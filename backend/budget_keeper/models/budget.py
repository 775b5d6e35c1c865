"""Budget models."""

import enum
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from budget_keeper.config import settings
from budget_keeper.core.database import Base
from budget_keeper.core.db_types import UUID
from budget_keeper.utils.budget_periods import PeriodWindow
from budget_keeper.utils.datetime_utils import utc_now_lambda, utc_today

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class BudgetPeriod(str, enum.Enum):
    """Budget period type."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class BudgetHealth(str, enum.Enum):
    """Spending status of the current period."""

    HEALTHY = "healthy"
    WARNING = "warning"
    DANGER = "danger"
    EXCEEDED = "exceeded"


HEALTH_COLORS = {
    BudgetHealth.EXCEEDED: "red",
    BudgetHealth.DANGER: "orange",
    BudgetHealth.WARNING: "yellow",
    BudgetHealth.HEALTHY: "green",
}


class Budget(Base):
    """Spending limit for a recurring period, optionally scoped to a category."""

    __tablename__ = "budgets"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # Category filtering (optional - if null, applies to all spending)
    category_id = Column(
        UUID(), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )

    # Budget details
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default=lambda: settings.DEFAULT_CURRENCY)

    # Period configuration; stored as text so that unknown cadences load and fall back to monthly
    period = Column(String(20), nullable=False, default=BudgetPeriod.MONTHLY.value)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)  # Null = ongoing

    # Current period tracking
    current_period_start = Column(Date, nullable=True)
    current_period_end = Column(Date, nullable=True)
    current_period_spent = Column(Numeric(12, 2), nullable=False, default=ZERO)

    # Rollover configuration
    rollover_unused = Column(Boolean, nullable=False, default=False)
    rollover_amount = Column(Numeric(12, 2), nullable=False, default=ZERO)

    # Alerts
    alert_threshold = Column(
        Integer, nullable=False, default=lambda: settings.BUDGET_DEFAULT_ALERT_THRESHOLD
    )  # Percent of the effective budget
    alert_sent = Column(Boolean, nullable=False, default=False)

    # Status
    is_active = Column(Boolean, nullable=False, default=True)

    # Display
    color = Column(String(7), nullable=True)
    icon = Column(String(50), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    # Relationships
    user = relationship("User", back_populates="budgets")
    category = relationship("Category", back_populates="budgets")

    __table_args__ = (
        Index("ix_budgets_user_active", "user_id", "is_active"),
        Index("ix_budgets_user_category", "user_id", "category_id"),
        Index("ix_budgets_period_end_active", "current_period_end", "is_active"),
    )

    def __repr__(self):
        return f"<Budget {self.name} {self.period}>"

    # Period state

    @property
    def current_window(self) -> Optional[PeriodWindow]:
        if self.current_period_start is None or self.current_period_end is None:
            return None
        return PeriodWindow(self.current_period_start, self.current_period_end)

    def is_current_period_active(self, today: Optional[date] = None) -> bool:
        """True while the current period has not ended. False if never initialized."""
        if self.current_period_end is None:
            return False
        return (today or utc_today()) <= self.current_period_end

    def needs_period_rollover(self, today: Optional[date] = None) -> bool:
        """True once an active budget's current period has ended."""
        if not self.is_active or self.current_period_end is None:
            return False
        return (today or utc_today()) > self.current_period_end

    # Spending metrics

    @property
    def spent(self) -> Decimal:
        return Decimal(self.current_period_spent or 0)

    def get_effective_budget(self) -> Decimal:
        """Base amount plus the balance rolled over from the previous period."""
        return Decimal(self.amount or 0) + Decimal(self.rollover_amount or 0)

    def get_remaining_amount(self) -> Decimal:
        return self.get_effective_budget() - self.spent

    def get_spent_percentage(self) -> Decimal:
        effective = self.get_effective_budget()
        if effective <= 0:
            return ZERO
        return self.spent / effective * HUNDRED

    def is_over_budget(self) -> bool:
        return self.spent >= self.get_effective_budget()

    def is_near_limit(self, threshold: Optional[int] = None) -> bool:
        if threshold is None:
            threshold = self._threshold
        return self.get_spent_percentage() >= threshold and not self.is_over_budget()

    @property
    def _threshold(self) -> int:
        if self.alert_threshold is None:
            return settings.BUDGET_DEFAULT_ALERT_THRESHOLD
        return self.alert_threshold

    def get_budget_health(self) -> BudgetHealth:
        percentage = self.get_spent_percentage()
        threshold = self._threshold

        if percentage >= 100:
            return BudgetHealth.EXCEEDED
        if percentage >= threshold:
            return BudgetHealth.DANGER
        if percentage >= threshold - settings.BUDGET_WARNING_MARGIN:
            return BudgetHealth.WARNING
        return BudgetHealth.HEALTHY

    def get_health_color(self) -> str:
        return HEALTH_COLORS[self.get_budget_health()]

    def get_days_elapsed(self, today: Optional[date] = None) -> int:
        if self.current_period_start is None:
            return 0
        return max(0, ((today or utc_today()) - self.current_period_start).days)

    def get_daily_average_spent(self, today: Optional[date] = None) -> Decimal:
        if self.current_period_start is None:
            return ZERO
        return self.spent / max(1, self.get_days_elapsed(today))

    def get_days_left_in_period(self, today: Optional[date] = None) -> int:
        if self.current_period_end is None:
            return 0
        return max(0, (self.current_period_end - (today or utc_today())).days)

    def get_daily_average_remaining(self, today: Optional[date] = None) -> Decimal:
        days_left = self.get_days_left_in_period(today)
        if days_left <= 0:
            return ZERO

        remaining = self.get_remaining_amount()
        if remaining <= 0:
            return ZERO

        return remaining / days_left

    def get_projected_spending(self, today: Optional[date] = None) -> Decimal:
        """Spending at the end of the period if the daily average holds."""
        window = self.current_window
        if window is None:
            return self.spent
        return self.get_daily_average_spent(today) * max(1, window.total_days)

    def will_exceed_budget(self, today: Optional[date] = None) -> bool:
        return self.get_projected_spending(today) > self.get_effective_budget()

    # Rollover

    def calculate_rollover_amount(self) -> Decimal:
        """Unused balance to carry into the next period; zero unless rollover is enabled."""
        if not self.rollover_unused:
            return ZERO
        return max(ZERO, self.get_remaining_amount())

    # Alerts

    def should_alert(self) -> bool:
        """One-shot alert decision; dispatch and setting ``alert_sent`` happen elsewhere."""
        if self.alert_sent:
            return False
        return self.is_near_limit() or self.is_over_budget()
