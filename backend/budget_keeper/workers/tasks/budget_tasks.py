"""Celery tasks for budget period rollover and spending refresh."""

import asyncio
import time
from typing import Optional
from uuid import UUID

from budget_keeper.core.database import AsyncSessionLocal
from budget_keeper.core.logging_config import get_logger, log_celery_task
from budget_keeper.models.budget import Budget
from budget_keeper.services.budget_service import BudgetService, SpendingRefreshResult
from budget_keeper.workers.celery_app import celery_app

logger = get_logger(__name__)


@celery_app.task(name="process_budget_rollovers")
def process_budget_rollovers_task():
    """
    Roll every expired budget over to its current period.
    Runs daily, shortly after midnight UTC.
    """
    return asyncio.run(_process_budget_rollovers_async())


async def _process_budget_rollovers_async() -> dict:
    """Async implementation of the rollover sweep."""
    started = time.monotonic()
    log_celery_task(logger, "process_budget_rollovers", "started")

    async with AsyncSessionLocal() as db:
        outcome = await BudgetService.check_and_process_rollovers(db)

    log_celery_task(
        logger,
        "process_budget_rollovers",
        "completed",
        duration_ms=(time.monotonic() - started) * 1000,
        processed=outcome.processed,
        deactivated=outcome.deactivated,
        failed=outcome.failed,
    )
    return outcome.as_dict()


@celery_app.task(name="update_budget_spending")
def update_budget_spending_task(budget_id: Optional[str] = None):
    """
    Recount current-period spending for one budget, or for every active budget.
    Runs daily after the rollover sweep.
    """
    return asyncio.run(_update_budget_spending_async(budget_id))


async def _update_budget_spending_async(budget_id: Optional[str] = None) -> dict:
    """Async implementation of the spending refresh."""
    started = time.monotonic()
    log_celery_task(logger, "update_budget_spending", "started", budget_id=budget_id)

    async with AsyncSessionLocal() as db:
        if budget_id is None:
            outcome = await BudgetService.refresh_all_spending(db)
        else:
            budget = await db.get(Budget, UUID(str(budget_id)))
            if budget is None or budget.deleted_at is not None:
                logger.warning(f"Budget {budget_id} not found, nothing to refresh")
                return {"found": False, **SpendingRefreshResult().as_dict()}

            await BudgetService.update_current_period_spending(db, budget)
            outcome = SpendingRefreshResult(refreshed=1)

    log_celery_task(
        logger,
        "update_budget_spending",
        "completed",
        duration_ms=(time.monotonic() - started) * 1000,
        refreshed=outcome.refreshed,
        failed=outcome.failed,
    )
    return {"found": True, **outcome.as_dict()}
