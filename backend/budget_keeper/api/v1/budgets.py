"""Budget API endpoints."""

from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from budget_keeper.core.database import get_db
from budget_keeper.dependencies import get_current_user
from budget_keeper.models.budget import Budget, BudgetPeriod
from budget_keeper.models.transaction import Category
from budget_keeper.models.user import User
from budget_keeper.schemas.budget import (
    BudgetBreakdownResponse,
    BudgetComparisonResponse,
    BudgetCreate,
    BudgetForCategoryResponse,
    BudgetHealthResponse,
    BudgetResponse,
    BudgetStatsResponse,
    BudgetUpdate,
    TransactionImpactResponse,
)
from budget_keeper.services.budget_service import (
    STATUS_NEAR_LIMIT,
    STATUS_OVER_BUDGET,
    budget_service,
)

router = APIRouter()


async def _load_categories(
    db: AsyncSession, user: User, budgets: List[Budget]
) -> Dict[UUID, Category]:
    category_ids = {b.category_id for b in budgets if b.category_id is not None}
    if not category_ids:
        return {}

    result = await db.execute(
        select(Category).where(and_(Category.id.in_(category_ids), Category.user_id == user.id))
    )
    return {category.id: category for category in result.scalars().all()}


async def _to_response(db: AsyncSession, user: User, budget: Budget) -> BudgetResponse:
    categories = await _load_categories(db, user, [budget])
    return BudgetResponse.from_budget(budget, categories.get(budget.category_id))


async def _get_budget_or_404(db: AsyncSession, budget_id: UUID, user: User) -> Budget:
    budget = await budget_service.get_budget(db=db, budget_id=budget_id, user=user)
    if not budget:
        raise HTTPException(status_code=404, detail="Budget not found")
    return budget


@router.get("/stats", response_model=BudgetStatsResponse)
async def get_budget_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Totals across the current user's active budgets."""
    return await budget_service.get_user_budget_stats(db=db, user=current_user)


@router.get("/health", response_model=List[BudgetHealthResponse])
async def get_budgets_health(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Health metrics for every active budget."""
    budgets = await budget_service.get_budgets(db=db, user=current_user, is_active=True)
    categories = await _load_categories(db, current_user, budgets)

    health = []
    for budget in budgets:
        category = categories.get(budget.category_id)
        health.append(
            {
                "id": budget.id,
                "name": budget.name,
                "category": category.name if category else None,
                "category_id": budget.category_id,
                "color": budget.color,
                "icon": budget.icon,
                "health": budget_service.calculate_budget_health(budget),
            }
        )
    return health


@router.get("/for-category", response_model=BudgetForCategoryResponse)
async def get_budget_for_category(
    category_id: Optional[UUID] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active budget covering a category; without a category, the overall budget."""
    budget = await budget_service.get_budget_for_category(
        db=db, user=current_user, category_id=category_id
    )
    if not budget:
        return {"budget": None}

    return {"budget": await _to_response(db, current_user, budget)}


@router.get("/alerts", response_model=List[BudgetResponse])
async def list_budgets_to_alert(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Active budgets that are near or over their limit and have not been alerted yet."""
    budgets = await budget_service.get_budgets_to_alert(db=db, user=current_user)
    categories = await _load_categories(db, current_user, budgets)
    return [BudgetResponse.from_budget(b, categories.get(b.category_id)) for b in budgets]


@router.post("/", response_model=BudgetResponse, status_code=201)
async def create_budget(
    budget_data: BudgetCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a new budget."""
    try:
        budget = await budget_service.create_budget(
            db=db,
            user=current_user,
            **budget_data.model_dump(),
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return await _to_response(db, current_user, budget)


@router.get("/", response_model=List[BudgetResponse])
async def list_budgets(
    is_active: Optional[bool] = None,
    period: Optional[BudgetPeriod] = None,
    category_id: Optional[str] = Query(None, description="Category id, or 'null' for overall budgets"),
    search: Optional[str] = None,
    status: Optional[str] = Query(None, pattern=f"^({STATUS_OVER_BUDGET}|{STATUS_NEAR_LIMIT})$"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the current user's budgets."""
    uncategorized = category_id in ("null", "")
    category_uuid = None
    if category_id and not uncategorized:
        try:
            category_uuid = UUID(category_id)
        except ValueError:
            raise HTTPException(status_code=422, detail="Invalid category_id")

    budgets = await budget_service.get_budgets(
        db=db,
        user=current_user,
        is_active=is_active,
        period=period,
        category_id=category_uuid,
        uncategorized=uncategorized,
        search=search,
        status=status,
    )
    categories = await _load_categories(db, current_user, budgets)
    return [BudgetResponse.from_budget(b, categories.get(b.category_id)) for b in budgets]


@router.get("/{budget_id}", response_model=BudgetResponse)
async def get_budget(
    budget_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get a specific budget."""
    budget = await _get_budget_or_404(db, budget_id, current_user)
    return await _to_response(db, current_user, budget)


@router.patch("/{budget_id}", response_model=BudgetResponse)
async def update_budget(
    budget_id: UUID,
    budget_data: BudgetUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update a budget."""
    try:
        budget = await budget_service.update_budget(
            db=db,
            budget_id=budget_id,
            user=current_user,
            **budget_data.model_dump(exclude_unset=True),
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if not budget:
        raise HTTPException(status_code=404, detail="Budget not found")

    return await _to_response(db, current_user, budget)


@router.delete("/{budget_id}", status_code=204)
async def delete_budget(
    budget_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete a budget."""
    success = await budget_service.delete_budget(
        db=db,
        budget_id=budget_id,
        user=current_user,
    )

    if not success:
        raise HTTPException(status_code=404, detail="Budget not found")


@router.post("/{budget_id}/toggle", response_model=BudgetResponse)
async def toggle_budget(
    budget_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Activate or deactivate a budget."""
    budget = await budget_service.toggle_budget(db=db, budget_id=budget_id, user=current_user)

    if not budget:
        raise HTTPException(status_code=404, detail="Budget not found")

    return await _to_response(db, current_user, budget)


@router.post("/{budget_id}/refresh", response_model=BudgetResponse)
async def refresh_budget(
    budget_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Recount the current period's spending from the ledger."""
    budget = await budget_service.refresh_budget(db=db, budget_id=budget_id, user=current_user)

    if not budget:
        raise HTTPException(status_code=404, detail="Budget not found")

    return await _to_response(db, current_user, budget)


@router.post("/{budget_id}/rollover", response_model=BudgetResponse)
async def rollover_budget(
    budget_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Roll an expired budget over to its current period without waiting for the sweep.

    A budget past its end date is deactivated instead, as the sweep would do.
    """
    budget = await _get_budget_or_404(db, budget_id, current_user)

    if not budget.needs_period_rollover():
        raise HTTPException(status_code=409, detail="Budget period has not ended")

    await budget_service.advance_expired_budget(db=db, budget=budget)
    return await _to_response(db, current_user, budget)


@router.get("/{budget_id}/breakdown", response_model=BudgetBreakdownResponse)
async def get_budget_breakdown(
    budget_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Current period spending by category or merchant."""
    budget = await _get_budget_or_404(db, budget_id, current_user)
    breakdown = await budget_service.get_spending_breakdown(db=db, budget=budget)
    return {"breakdown": breakdown, "total": budget.spent}


@router.get("/{budget_id}/comparison", response_model=BudgetComparisonResponse)
async def get_budget_comparison(
    budget_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Current period spending against the previous period."""
    budget = await _get_budget_or_404(db, budget_id, current_user)
    return await budget_service.get_budget_comparison(db=db, budget=budget)


@router.get("/{budget_id}/check-impact", response_model=TransactionImpactResponse)
async def check_transaction_impact(
    budget_id: UUID,
    amount: Decimal = Query(Decimal("0"), ge=0),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Preview how an expense of ``amount`` would affect the budget."""
    budget = await _get_budget_or_404(db, budget_id, current_user)
    return budget_service.check_transaction_impact(budget, amount)
