"""Service for managing budgets and tracking spending."""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from budget_keeper.models.budget import ZERO, Budget, BudgetPeriod
from budget_keeper.models.transaction import Category, Merchant, Transaction, TransactionType
from budget_keeper.models.user import User
from budget_keeper.utils.budget_periods import (
    PeriodWindow,
    calculate_current_period,
    previous_period,
)
from budget_keeper.utils.datetime_utils import utc_now, utc_today

logger = logging.getLogger(__name__)

# Fields a caller may change through update_budget
UPDATABLE_FIELDS = {
    "category_id",
    "name",
    "description",
    "amount",
    "currency",
    "period",
    "start_date",
    "end_date",
    "rollover_unused",
    "alert_threshold",
    "is_active",
    "color",
    "icon",
}

STATUS_OVER_BUDGET = "over_budget"
STATUS_NEAR_LIMIT = "near_limit"


def round_money(value) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def round_percent(value) -> Decimal:
    return Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def _period_value(period) -> str:
    return getattr(period, "value", period)


@dataclass
class RolloverResult:
    """Outcome of one rollover sweep."""

    processed: int = 0
    deactivated: int = 0
    failed: int = 0
    failed_ids: List[UUID] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "deactivated": self.deactivated,
            "failed": self.failed,
            "failed_ids": [str(budget_id) for budget_id in self.failed_ids],
        }


@dataclass
class SpendingRefreshResult:
    """Outcome of one spending refresh batch."""

    refreshed: int = 0
    failed: int = 0
    failed_ids: List[UUID] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "refreshed": self.refreshed,
            "failed": self.failed,
            "failed_ids": [str(budget_id) for budget_id in self.failed_ids],
        }


class BudgetService:
    """Service for creating budgets, aggregating their spending and rolling their periods."""

    # Spending aggregation

    @staticmethod
    def _category_scope(category_id: UUID):
        """Ids of the category and its direct children (one level only)."""
        return select(Category.id).where(
            and_(
                Category.deleted_at.is_(None),
                or_(Category.id == category_id, Category.parent_id == category_id),
            )
        )

    @staticmethod
    def _expense_filters(budget: Budget, start: date, end: date) -> list:
        filters = [
            Transaction.user_id == budget.user_id,
            Transaction.type == TransactionType.EXPENSE,
            Transaction.deleted_at.is_(None),
            Transaction.transaction_date >= start,
            Transaction.transaction_date <= end,
        ]

        if budget.category_id:
            filters.append(
                Transaction.category_id.in_(BudgetService._category_scope(budget.category_id))
            )

        return filters

    @staticmethod
    async def calculate_spending(
        db: AsyncSession,
        budget: Budget,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Decimal:
        """
        Sum of the owner's expenses within [start, end].

        Defaults to the budget's current window. Returns zero when the window is
        not initialized or nothing matches.
        """
        start = start or budget.current_period_start
        end = end or budget.current_period_end

        if start is None or end is None:
            return ZERO

        result = await db.execute(
            select(func.sum(Transaction.amount)).where(
                and_(*BudgetService._expense_filters(budget, start, end))
            )
        )
        spent = result.scalar()

        if spent is None:
            return ZERO

        return max(ZERO, round_money(spent))

    @staticmethod
    async def get_current_spending(db: AsyncSession, budget: Budget) -> Decimal:
        """Spending in the budget's current window."""
        return await BudgetService.calculate_spending(db, budget)

    @staticmethod
    async def _apply_current_period(
        db: AsyncSession, budget: Budget, today: date
    ) -> PeriodWindow:
        """Move the budget onto the window containing ``today`` and recount its spending."""
        window = calculate_current_period(budget.start_date, budget.period, today)
        budget.current_period_start = window.start
        budget.current_period_end = window.end
        budget.current_period_spent = await BudgetService.calculate_spending(
            db, budget, window.start, window.end
        )
        return window

    # CRUD

    @staticmethod
    async def get_owned_category(
        db: AsyncSession, user: User, category_id: UUID
    ) -> Optional[Category]:
        """The user's category with this id, unless it was deleted."""
        result = await db.execute(
            select(Category).where(
                and_(
                    Category.id == category_id,
                    Category.user_id == user.id,
                    Category.deleted_at.is_(None),
                )
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def create_budget(
        db: AsyncSession,
        user: User,
        name: str,
        amount: Decimal,
        period: BudgetPeriod,
        start_date: date,
        category_id: Optional[UUID] = None,
        description: Optional[str] = None,
        currency: Optional[str] = None,
        end_date: Optional[date] = None,
        rollover_unused: bool = False,
        alert_threshold: Optional[int] = None,
        is_active: bool = True,
        color: Optional[str] = None,
        icon: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Budget:
        """
        Create a new budget with its initial period and spending.

        Raises:
            ValueError: If ``category_id`` is not one of the user's categories
        """
        if category_id is not None and not await BudgetService.get_owned_category(
            db, user, category_id
        ):
            raise ValueError("Category not found")

        budget = Budget(
            user_id=user.id,
            name=name,
            description=description,
            amount=amount,
            period=_period_value(period),
            start_date=start_date,
            end_date=end_date,
            category_id=category_id,
            rollover_unused=rollover_unused,
            rollover_amount=ZERO,
            alert_sent=False,
            is_active=is_active,
            color=color,
            icon=icon,
        )
        if currency:
            budget.currency = currency.upper()
        if alert_threshold is not None:
            budget.alert_threshold = alert_threshold

        await BudgetService._apply_current_period(db, budget, today or utc_today())

        db.add(budget)
        await db.commit()
        await db.refresh(budget)

        logger.info(
            f"Created budget {budget.id} for window "
            f"{budget.current_period_start}..{budget.current_period_end}"
        )
        return budget

    @staticmethod
    async def get_budgets(
        db: AsyncSession,
        user: User,
        is_active: Optional[bool] = None,
        period: Optional[BudgetPeriod] = None,
        category_id: Optional[UUID] = None,
        uncategorized: bool = False,
        search: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Budget]:
        """Get the user's budgets, optionally filtered."""
        query = select(Budget).where(
            and_(Budget.user_id == user.id, Budget.deleted_at.is_(None))
        )

        if is_active is not None:
            query = query.where(Budget.is_active == is_active)

        if period is not None:
            query = query.where(Budget.period == _period_value(period))

        if uncategorized:
            query = query.where(Budget.category_id.is_(None))
        elif category_id is not None:
            query = query.where(Budget.category_id == category_id)

        if search:
            query = query.where(Budget.name.ilike(f"%{search}%"))

        effective = Budget.amount + Budget.rollover_amount
        if status == STATUS_OVER_BUDGET:
            query = query.where(Budget.current_period_spent >= effective)
        elif status == STATUS_NEAR_LIMIT:
            query = query.where(
                and_(
                    Budget.current_period_spent * 100 >= effective * Budget.alert_threshold,
                    Budget.current_period_spent < effective,
                )
            )

        query = query.order_by(Budget.current_period_end, Budget.name)

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_budget(
        db: AsyncSession,
        budget_id: UUID,
        user: User,
    ) -> Optional[Budget]:
        """Get a specific budget owned by the user."""
        result = await db.execute(
            select(Budget).where(
                and_(
                    Budget.id == budget_id,
                    Budget.user_id == user.id,
                    Budget.deleted_at.is_(None),
                )
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def update_budget(
        db: AsyncSession,
        budget_id: UUID,
        user: User,
        today: Optional[date] = None,
        **kwargs,
    ) -> Optional[Budget]:
        """
        Update a budget.

        Changing the period or start date moves the budget onto the window that
        contains today, recounts spending and re-arms the alert. Changing the
        category only recounts spending.

        Raises:
            ValueError: If the new category is not the user's, or the resulting
                end date is not after the resulting start date
        """
        budget = await BudgetService.get_budget(db, budget_id, user)
        if not budget:
            return None

        category_id = kwargs.get("category_id")
        if category_id is not None and not await BudgetService.get_owned_category(
            db, user, category_id
        ):
            raise ValueError("Category not found")

        start_date = kwargs.get("start_date", budget.start_date)
        end_date = kwargs.get("end_date", budget.end_date)
        if end_date is not None and end_date <= start_date:
            raise ValueError("end_date must be after start_date")

        changed = set()
        for key, value in kwargs.items():
            if key not in UPDATABLE_FIELDS:
                continue
            if key == "period":
                value = _period_value(value)
            if key == "currency" and value:
                value = value.upper()
            if getattr(budget, key) != value:
                setattr(budget, key, value)
                changed.add(key)

        if changed & {"period", "start_date"}:
            await BudgetService._apply_current_period(db, budget, today or utc_today())
            budget.alert_sent = False
        elif "category_id" in changed:
            budget.current_period_spent = await BudgetService.calculate_spending(db, budget)

        budget.updated_at = utc_now()

        await db.commit()
        await db.refresh(budget)

        return budget

    @staticmethod
    async def delete_budget(
        db: AsyncSession,
        budget_id: UUID,
        user: User,
    ) -> bool:
        """Soft-delete a budget; it drops out of listings, aggregation and rollover."""
        budget = await BudgetService.get_budget(db, budget_id, user)
        if not budget:
            return False

        budget.deleted_at = utc_now()
        await db.commit()

        return True

    @staticmethod
    async def toggle_budget(
        db: AsyncSession,
        budget_id: UUID,
        user: User,
        today: Optional[date] = None,
    ) -> Optional[Budget]:
        """Flip ``is_active``. Reactivation starts a fresh period without rollover."""
        budget = await BudgetService.get_budget(db, budget_id, user)
        if not budget:
            return None

        budget.is_active = not budget.is_active

        if budget.is_active:
            await BudgetService._apply_current_period(db, budget, today or utc_today())
            budget.rollover_amount = ZERO
            budget.alert_sent = False

        await db.commit()
        await db.refresh(budget)

        return budget

    # Spending refresh

    @staticmethod
    async def update_current_period_spending(db: AsyncSession, budget: Budget) -> Budget:
        """Recount the current window's spending from the ledger."""
        budget.current_period_spent = await BudgetService.calculate_spending(db, budget)
        await db.commit()
        await db.refresh(budget)
        return budget

    @staticmethod
    async def refresh_budget(
        db: AsyncSession,
        budget_id: UUID,
        user: User,
    ) -> Optional[Budget]:
        budget = await BudgetService.get_budget(db, budget_id, user)
        if not budget:
            return None
        return await BudgetService.update_current_period_spending(db, budget)

    @staticmethod
    async def refresh_all_spending(db: AsyncSession) -> SpendingRefreshResult:
        """
        Recount spending for every active budget.

        Each budget is committed on its own; a failure is rolled back, logged
        and counted without stopping the batch.
        """
        outcome = SpendingRefreshResult()

        result = await db.execute(
            select(Budget.id).where(and_(Budget.is_active.is_(True), Budget.deleted_at.is_(None)))
        )
        budget_ids = [row[0] for row in result.all()]

        for budget_id in budget_ids:
            try:
                budget = await db.get(Budget, budget_id)
                await BudgetService.update_current_period_spending(db, budget)
                outcome.refreshed += 1
            except Exception as e:
                await db.rollback()
                outcome.failed += 1
                outcome.failed_ids.append(budget_id)
                logger.error(
                    f"Error refreshing spending for budget {budget_id}: {str(e)}", exc_info=True
                )

        logger.info(
            f"Budget spending refresh complete: {outcome.refreshed} refreshed, "
            f"{outcome.failed} failed"
        )
        return outcome

    # Rollover

    @staticmethod
    async def _apply_rollover(db: AsyncSession, budget: Budget, today: date) -> Budget:
        budget.rollover_amount = budget.calculate_rollover_amount()
        await BudgetService._apply_current_period(db, budget, today)
        budget.alert_sent = False
        return budget

    @staticmethod
    async def rollover_period(
        db: AsyncSession,
        budget: Budget,
        today: Optional[date] = None,
    ) -> Budget:
        """
        Advance a budget to the window containing ``today``.

        Unused balance is carried forward when ``rollover_unused`` is set, the
        alert is re-armed, and spending is recounted for the new window so that
        expenses already posted there are not lost when the sweep runs late.
        """
        today = today or utc_today()
        previous_end = budget.current_period_end

        await BudgetService._apply_rollover(db, budget, today)
        await db.commit()
        await db.refresh(budget)

        logger.info(
            f"Rolled over budget {budget.id} from period ending {previous_end} "
            f"to {budget.current_period_start}..{budget.current_period_end} "
            f"(rollover {budget.rollover_amount})"
        )
        return budget

    @staticmethod
    async def advance_expired_budget(
        db: AsyncSession,
        budget: Budget,
        today: Optional[date] = None,
    ) -> bool:
        """
        Move an expired budget forward.

        A budget past its ``end_date`` is deactivated and keeps its last
        window; any other budget is rolled over. Returns True when the budget
        was rolled over.
        """
        today = today or utc_today()

        if budget.end_date and today > budget.end_date:
            budget.is_active = False
            await db.commit()
            await db.refresh(budget)
            logger.info(f"Deactivated budget {budget.id}: ended on {budget.end_date}")
            return False

        await BudgetService.rollover_period(db, budget, today)
        return True

    @staticmethod
    async def check_and_process_rollovers(
        db: AsyncSession,
        today: Optional[date] = None,
    ) -> RolloverResult:
        """
        Roll over every active budget whose current period ended before ``today``.

        Budgets past their ``end_date`` are deactivated instead. Each budget is
        committed on its own; a failure is rolled back, logged and counted, and
        the sweep moves on to the next budget.
        """
        today = today or utc_today()
        outcome = RolloverResult()

        result = await db.execute(
            select(Budget.id).where(
                and_(
                    Budget.is_active.is_(True),
                    Budget.deleted_at.is_(None),
                    Budget.current_period_end.is_not(None),
                    Budget.current_period_end < today,
                )
            )
        )
        budget_ids = [row[0] for row in result.all()]

        for budget_id in budget_ids:
            try:
                budget = await db.get(Budget, budget_id)

                if await BudgetService.advance_expired_budget(db, budget, today):
                    outcome.processed += 1
                else:
                    outcome.deactivated += 1

            except Exception as e:
                await db.rollback()
                outcome.failed += 1
                outcome.failed_ids.append(budget_id)
                logger.error(f"Error rolling over budget {budget_id}: {str(e)}", exc_info=True)

        logger.info(
            f"Budget rollover sweep complete: {outcome.processed} rolled over, "
            f"{outcome.deactivated} deactivated, {outcome.failed} failed"
        )
        return outcome

    # Reporting

    @staticmethod
    async def get_spending_breakdown(db: AsyncSession, budget: Budget) -> List[Dict[str, Any]]:
        """
        Current-window spending grouped by category (overall budgets) or by
        merchant (category budgets), largest first.
        """
        window = budget.current_window
        if window is None:
            return []

        filters = BudgetService._expense_filters(budget, window.start, window.end)

        if not budget.category_id:
            group_column, model, fallback = Transaction.category_id, Category, "Uncategorized"
        else:
            group_column, model, fallback = Transaction.merchant_id, Merchant, "Unknown Merchant"

        result = await db.execute(
            select(group_column, func.sum(Transaction.amount), func.count(Transaction.id))
            .where(and_(*filters))
            .group_by(group_column)
        )
        rows = result.all()

        ids = [row[0] for row in rows if row[0] is not None]
        entities = {}
        if ids:
            entity_result = await db.execute(select(model).where(model.id.in_(ids)))
            entities = {entity.id: entity for entity in entity_result.scalars().all()}

        breakdown = []
        for entity_id, total, count in rows:
            entity = entities.get(entity_id)
            entry = {
                "id": entity.id if entity else None,
                "name": entity.name if entity else fallback,
                "amount": round_money(total or 0),
                "count": count,
            }
            if model is Category:
                entry["icon"] = entity.icon if entity else None
                entry["color"] = entity.color if entity else None
            else:
                entry["image_url"] = entity.image_url if entity else None
            breakdown.append(entry)

        breakdown.sort(key=lambda entry: entry["amount"], reverse=True)
        return breakdown

    @staticmethod
    async def get_budget_comparison(db: AsyncSession, budget: Budget) -> Dict[str, Any]:
        """Current window spending against the window before it."""
        current_spending = round_money(budget.spent)

        previous = None
        if budget.current_period_start is not None:
            previous = previous_period(
                budget.start_date, budget.period, budget.current_period_start
            )

        if previous is None:
            return {
                "has_previous": False,
                "previous_spending": ZERO,
                "current_spending": current_spending,
                "difference": ZERO,
                "percentage_change": ZERO,
            }

        previous_spending = await BudgetService.calculate_spending(
            db, budget, previous.start, previous.end
        )
        difference = current_spending - previous_spending

        percentage_change = ZERO
        if previous_spending > 0:
            percentage_change = difference / previous_spending * 100

        if difference > 0:
            trend = "up"
        elif difference < 0:
            trend = "down"
        else:
            trend = "flat"

        return {
            "has_previous": True,
            "previous_period_start": previous.start,
            "previous_period_end": previous.end,
            "previous_spending": round_money(previous_spending),
            "current_spending": current_spending,
            "difference": round_money(difference),
            "percentage_change": round_percent(percentage_change),
            "trend": trend,
        }

    @staticmethod
    def calculate_budget_health(budget: Budget, today: Optional[date] = None) -> Dict[str, Any]:
        """Health metrics for the current window."""
        today = today or utc_today()
        projected = budget.get_projected_spending(today)
        effective = budget.get_effective_budget()

        return {
            "status": budget.get_budget_health().value,
            "color": budget.get_health_color(),
            "percentage": round_percent(budget.get_spent_percentage()),
            "spent": round_money(budget.spent),
            "remaining": round_money(budget.get_remaining_amount()),
            "effective_budget": round_money(effective),
            "daily_avg_spent": round_money(budget.get_daily_average_spent(today)),
            "daily_avg_remaining": round_money(budget.get_daily_average_remaining(today)),
            "projected_spending": round_money(projected),
            "will_exceed": projected > effective,
            "days_left": budget.get_days_left_in_period(today),
        }

    @staticmethod
    async def get_user_budget_stats(db: AsyncSession, user: User) -> Dict[str, Any]:
        """Totals across the user's active budgets."""
        budgets = await BudgetService.get_budgets(db, user, is_active=True)

        total_budgeted = sum((b.get_effective_budget() for b in budgets), ZERO)
        total_spent = sum((b.spent for b in budgets), ZERO)
        total_remaining = sum((b.get_remaining_amount() for b in budgets), ZERO)

        overall_percentage = ZERO
        if total_budgeted > 0:
            overall_percentage = total_spent / total_budgeted * 100

        return {
            "active_count": len(budgets),
            "total_budgeted": round_money(total_budgeted),
            "total_spent": round_money(total_spent),
            "total_remaining": round_money(total_remaining),
            "over_budget_count": sum(1 for b in budgets if b.is_over_budget()),
            "warning_count": sum(1 for b in budgets if b.is_near_limit()),
            "overall_percentage": round_percent(overall_percentage),
        }

    @staticmethod
    async def get_budget_for_category(
        db: AsyncSession,
        user: User,
        category_id: Optional[UUID],
    ) -> Optional[Budget]:
        """Active budget for a category, or the overall budget when ``category_id`` is None."""
        if category_id is None:
            category_filter = Budget.category_id.is_(None)
        else:
            category_filter = Budget.category_id == category_id

        result = await db.execute(
            select(Budget)
            .where(
                and_(
                    Budget.user_id == user.id,
                    Budget.deleted_at.is_(None),
                    Budget.is_active.is_(True),
                    category_filter,
                )
            )
            .order_by(Budget.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def check_transaction_impact(budget: Budget, transaction_amount: Decimal) -> Dict[str, Any]:
        """How a prospective expense would change the budget's position."""
        transaction_amount = Decimal(transaction_amount)
        current_spent = budget.spent
        effective = budget.get_effective_budget()
        projected_spent = current_spent + transaction_amount

        projected_percentage = ZERO
        if effective > 0:
            projected_percentage = projected_spent / effective * 100

        return {
            "current_spent": round_money(current_spent),
            "transaction_amount": round_money(transaction_amount),
            "projected_spent": round_money(projected_spent),
            "projected_remaining": round_money(effective - projected_spent),
            "projected_percentage": round_percent(projected_percentage),
            "effective_budget": round_money(effective),
            "currently_over_budget": budget.is_over_budget(),
            "will_be_over_budget": projected_spent >= effective,
            "exceeds_by": round_money(max(ZERO, projected_spent - effective)),
        }

    @staticmethod
    async def get_budgets_to_alert(db: AsyncSession, user: User) -> List[Budget]:
        """Active budgets for which an alert should be dispatched."""
        budgets = await BudgetService.get_budgets(db, user, is_active=True)
        return [budget for budget in budgets if budget.should_alert()]


budget_service = BudgetService()
