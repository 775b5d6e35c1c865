"""Budget schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from budget_keeper.models.budget import Budget, BudgetHealth, BudgetPeriod
from budget_keeper.services.budget_service import round_money, round_percent

AMOUNT_MIN = Decimal("0.01")
AMOUNT_MAX = Decimal("9999999.99")

NON_NULLABLE_UPDATE_FIELDS = frozenset(
    {
        "name",
        "amount",
        "currency",
        "period",
        "start_date",
        "rollover_unused",
        "alert_threshold",
        "is_active",
    }
)


class BudgetBase(BaseModel):
    """Base budget schema."""

    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    amount: Decimal = Field(ge=AMOUNT_MIN, le=AMOUNT_MAX)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    period: BudgetPeriod
    start_date: date
    end_date: Optional[date] = None
    category_id: Optional[UUID] = None
    rollover_unused: bool = False
    alert_threshold: Optional[int] = Field(None, ge=0, le=100)
    is_active: bool = True
    color: Optional[str] = Field(None, max_length=7)
    icon: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def check_end_date(self):
        if self.end_date is not None and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class BudgetCreate(BudgetBase):
    """Schema for creating a budget."""


class BudgetUpdate(BaseModel):
    """Schema for updating a budget."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    amount: Optional[Decimal] = Field(None, ge=AMOUNT_MIN, le=AMOUNT_MAX)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    period: Optional[BudgetPeriod] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    category_id: Optional[UUID] = None
    rollover_unused: Optional[bool] = None
    alert_threshold: Optional[int] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None
    color: Optional[str] = Field(None, max_length=7)
    icon: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def reject_null_required_fields(self):
        # May be omitted, but not cleared
        cleared = sorted(
            name
            for name in self.model_fields_set & NON_NULLABLE_UPDATE_FIELDS
            if getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self

    @model_validator(mode="after")
    def check_end_date(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class CategorySummary(BaseModel):
    """Category embedded in budget responses."""

    id: UUID
    name: str
    icon: Optional[str] = None
    color: Optional[str] = None
    parent_id: Optional[UUID] = None

    model_config = ConfigDict(from_attributes=True)


class BudgetResponse(BaseModel):
    """Stored budget fields plus the metrics derived from them."""

    id: UUID
    user_id: UUID
    category_id: Optional[UUID] = None
    name: str
    description: Optional[str] = None
    amount: Decimal
    currency: str
    period: str
    start_date: date
    end_date: Optional[date] = None
    current_period_start: Optional[date] = None
    current_period_end: Optional[date] = None
    current_period_spent: Decimal
    rollover_unused: bool
    rollover_amount: Decimal
    alert_threshold: int
    alert_sent: bool
    is_active: bool
    color: Optional[str] = None
    icon: Optional[str] = None
    category: Optional[CategorySummary] = None
    created_at: datetime
    updated_at: datetime

    # Computed
    effective_budget: Decimal
    remaining_amount: Decimal
    spent_percentage: Decimal
    is_over_budget: bool
    is_near_limit: bool
    budget_health: BudgetHealth
    health_color: str
    daily_avg_spent: Decimal
    daily_avg_remaining: Decimal
    days_left_in_period: int
    projected_spending: Decimal
    will_exceed: bool
    should_alert: bool

    @classmethod
    def from_budget(
        cls,
        budget: Budget,
        category=None,
        today: Optional[date] = None,
    ) -> "BudgetResponse":
        """Serialize a budget; pass ``category`` when it has been loaded."""
        return cls(
            id=budget.id,
            user_id=budget.user_id,
            category_id=budget.category_id,
            name=budget.name,
            description=budget.description,
            amount=budget.amount,
            currency=budget.currency,
            period=budget.period,
            start_date=budget.start_date,
            end_date=budget.end_date,
            current_period_start=budget.current_period_start,
            current_period_end=budget.current_period_end,
            current_period_spent=budget.spent,
            rollover_unused=budget.rollover_unused,
            rollover_amount=budget.rollover_amount,
            alert_threshold=budget.alert_threshold,
            alert_sent=budget.alert_sent,
            is_active=budget.is_active,
            color=budget.color,
            icon=budget.icon,
            category=CategorySummary.model_validate(category) if category else None,
            created_at=budget.created_at,
            updated_at=budget.updated_at,
            effective_budget=round_money(budget.get_effective_budget()),
            remaining_amount=round_money(budget.get_remaining_amount()),
            spent_percentage=round_percent(budget.get_spent_percentage()),
            is_over_budget=budget.is_over_budget(),
            is_near_limit=budget.is_near_limit(),
            budget_health=budget.get_budget_health(),
            health_color=budget.get_health_color(),
            daily_avg_spent=round_money(budget.get_daily_average_spent(today)),
            daily_avg_remaining=round_money(budget.get_daily_average_remaining(today)),
            days_left_in_period=budget.get_days_left_in_period(today),
            projected_spending=round_money(budget.get_projected_spending(today)),
            will_exceed=budget.will_exceed_budget(today),
            should_alert=budget.should_alert(),
        )


class BudgetHealthMetrics(BaseModel):
    """Health metrics of one budget."""

    status: BudgetHealth
    color: str
    percentage: Decimal
    spent: Decimal
    remaining: Decimal
    effective_budget: Decimal
    daily_avg_spent: Decimal
    daily_avg_remaining: Decimal
    projected_spending: Decimal
    will_exceed: bool
    days_left: int


class BudgetHealthResponse(BaseModel):
    """Health entry for the active-budgets overview."""

    id: UUID
    name: str
    category: Optional[str] = None
    category_id: Optional[UUID] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    health: BudgetHealthMetrics


class BudgetStatsResponse(BaseModel):
    """Totals across the user's active budgets."""

    active_count: int
    total_budgeted: Decimal
    total_spent: Decimal
    total_remaining: Decimal
    over_budget_count: int
    warning_count: int
    overall_percentage: Decimal


class BreakdownEntry(BaseModel):
    """Spending of one category or merchant in the current window."""

    id: Optional[UUID] = None
    name: str
    amount: Decimal
    count: int
    icon: Optional[str] = None
    color: Optional[str] = None
    image_url: Optional[str] = None


class BudgetBreakdownResponse(BaseModel):
    breakdown: List[BreakdownEntry]
    total: Decimal


class BudgetComparisonResponse(BaseModel):
    """Current window against the previous one."""

    has_previous: bool
    previous_period_start: Optional[date] = None
    previous_period_end: Optional[date] = None
    previous_spending: Decimal
    current_spending: Decimal
    difference: Decimal
    percentage_change: Decimal
    trend: Optional[str] = None


class TransactionImpactResponse(BaseModel):
    """Effect of a prospective expense on a budget."""

    current_spent: Decimal
    transaction_amount: Decimal
    projected_spent: Decimal
    projected_remaining: Decimal
    projected_percentage: Decimal
    effective_budget: Decimal
    currently_over_budget: bool
    will_be_over_budget: bool
    exceeds_by: Decimal


class BudgetForCategoryResponse(BaseModel):
    budget: Optional[BudgetResponse] = None


