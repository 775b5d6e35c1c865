"""Unit tests for budgets API endpoints."""

import pytest
from unittest.mock import Mock, AsyncMock, patch
from uuid import uuid4
from decimal import Decimal
from datetime import date, datetime

from fastapi import HTTPException

from budget_keeper.api.v1.budgets import (
    check_transaction_impact,
    create_budget,
    delete_budget,
    get_budget,
    get_budget_breakdown,
    list_budgets,
    rollover_budget,
    router,
    update_budget,
)
from budget_keeper.models.user import User
from budget_keeper.models.budget import Budget, BudgetPeriod
from budget_keeper.schemas.budget import BudgetCreate, BudgetResponse, BudgetUpdate


def make_budget(user_id, **kwargs) -> Budget:
    """Transient, uncategorized budget so no category lookup hits the database."""
    values = {
        "id": uuid4(),
        "user_id": user_id,
        "category_id": None,
        "name": "Groceries Budget",
        "amount": Decimal("500.00"),
        "currency": "CHF",
        "period": "monthly",
        "start_date": date(2024, 1, 1),
        "current_period_start": date(2024, 3, 1),
        "current_period_end": date(2024, 3, 31),
        "current_period_spent": Decimal("100.00"),
        "rollover_unused": False,
        "rollover_amount": Decimal("0"),
        "alert_threshold": 80,
        "alert_sent": False,
        "is_active": True,
        "created_at": datetime(2024, 1, 1),
        "updated_at": datetime(2024, 1, 1),
    }
    values.update(kwargs)
    return Budget(**values)


@pytest.fixture
def mock_db():
    return AsyncMock()


@pytest.fixture
def mock_user():
    user = Mock(spec=User)
    user.id = uuid4()
    return user


@pytest.mark.unit
class TestCreateBudget:
    """Test create_budget endpoint."""

    @pytest.fixture
    def budget_create_data(self):
        return BudgetCreate(
            name="Groceries Budget",
            amount=Decimal("500.00"),
            period=BudgetPeriod.MONTHLY,
            start_date=date(2024, 1, 1),
            alert_threshold=80,
        )

    @pytest.mark.asyncio
    async def test_creates_budget_successfully(self, mock_db, mock_user, budget_create_data):
        """Should create a new budget and serialize its metrics."""
        expected_budget = make_budget(mock_user.id)

        with patch(
            "budget_keeper.api.v1.budgets.budget_service.create_budget",
            return_value=expected_budget,
        ) as mock_create:
            result = await create_budget(
                budget_data=budget_create_data,
                current_user=mock_user,
                db=mock_db,
            )

            assert isinstance(result, BudgetResponse)
            assert result.id == expected_budget.id
            assert result.remaining_amount == Decimal("400.00")
            assert result.spent_percentage == Decimal("20.0")
            mock_create.assert_called_once()

    @pytest.mark.asyncio
    async def test_passes_all_fields_to_service(self, mock_db, mock_user, budget_create_data):
        """Should pass all budget fields to service."""
        with patch(
            "budget_keeper.api.v1.budgets.budget_service.create_budget",
            return_value=make_budget(mock_user.id),
        ) as mock_create:
            await create_budget(
                budget_data=budget_create_data,
                current_user=mock_user,
                db=mock_db,
            )

            call_kwargs = mock_create.call_args.kwargs
            assert call_kwargs["db"] == mock_db
            assert call_kwargs["user"] == mock_user
            assert call_kwargs["name"] == "Groceries Budget"
            assert call_kwargs["amount"] == Decimal("500.00")
            assert call_kwargs["period"] == BudgetPeriod.MONTHLY
            assert call_kwargs["start_date"] == date(2024, 1, 1)

    def test_rejects_end_date_before_start(self):
        with pytest.raises(ValueError):
            BudgetCreate(
                name="Bad",
                amount=Decimal("10.00"),
                period=BudgetPeriod.MONTHLY,
                start_date=date(2024, 3, 1),
                end_date=date(2024, 2, 1),
            )

    def test_rejects_non_positive_amount(self):
        with pytest.raises(ValueError):
            BudgetCreate(
                name="Bad",
                amount=Decimal("0"),
                period=BudgetPeriod.MONTHLY,
                start_date=date(2024, 3, 1),
            )

    @pytest.mark.asyncio
    async def test_unknown_category_is_unprocessable(self, mock_db, mock_user, budget_create_data):
        """Should turn a rejected category into a 422."""
        with patch(
            "budget_keeper.api.v1.budgets.budget_service.create_budget",
            side_effect=ValueError("Category not found"),
        ):
            with pytest.raises(HTTPException) as exc_info:
                await create_budget(
                    budget_data=budget_create_data,
                    current_user=mock_user,
                    db=mock_db,
                )

            assert exc_info.value.status_code == 422
            assert exc_info.value.detail == "Category not found"


@pytest.mark.unit
class TestBudgetUpdateSchema:
    """Test BudgetUpdate validation."""

    @pytest.mark.parametrize(
        "field",
        [
            "name",
            "amount",
            "currency",
            "period",
            "start_date",
            "rollover_unused",
            "alert_threshold",
            "is_active",
        ],
    )
    def test_rejects_explicit_null_for_required_fields(self, field):
        with pytest.raises(ValueError, match=f"{field} cannot be null"):
            BudgetUpdate.model_validate({field: None})

    def test_clearable_fields_accept_null(self):
        update = BudgetUpdate.model_validate(
            {"description": None, "end_date": None, "category_id": None, "color": None, "icon": None}
        )

        assert update.model_dump(exclude_unset=True) == {
            "description": None,
            "end_date": None,
            "category_id": None,
            "color": None,
            "icon": None,
        }

    def test_omitted_fields_stay_unset(self):
        assert BudgetUpdate.model_validate({"name": "Food"}).model_dump(exclude_unset=True) == {
            "name": "Food"
        }


@pytest.mark.unit
class TestListBudgets:
    """Test list_budgets endpoint."""

    @pytest.mark.asyncio
    async def test_null_category_lists_overall_budgets(self, mock_db, mock_user):
        with patch(
            "budget_keeper.api.v1.budgets.budget_service.get_budgets",
            return_value=[make_budget(mock_user.id)],
        ) as mock_get:
            result = await list_budgets(
                is_active=None,
                period=None,
                category_id="null",
                search=None,
                status=None,
                current_user=mock_user,
                db=mock_db,
            )

            assert len(result) == 1
            assert mock_get.call_args.kwargs["uncategorized"] is True
            assert mock_get.call_args.kwargs["category_id"] is None

    @pytest.mark.asyncio
    async def test_parses_category_id(self, mock_db, mock_user):
        category_id = uuid4()

        with patch(
            "budget_keeper.api.v1.budgets.budget_service.get_budgets",
            return_value=[],
        ) as mock_get:
            await list_budgets(
                is_active=True,
                period=BudgetPeriod.YEARLY,
                category_id=str(category_id),
                search="trip",
                status="near_limit",
                current_user=mock_user,
                db=mock_db,
            )

            call_kwargs = mock_get.call_args.kwargs
            assert call_kwargs["category_id"] == category_id
            assert call_kwargs["uncategorized"] is False
            assert call_kwargs["status"] == "near_limit"

    @pytest.mark.asyncio
    async def test_invalid_category_id(self, mock_db, mock_user):
        with pytest.raises(HTTPException) as exc_info:
            await list_budgets(
                is_active=None,
                period=None,
                category_id="not-a-uuid",
                search=None,
                status=None,
                current_user=mock_user,
                db=mock_db,
            )

        assert exc_info.value.status_code == 422


@pytest.mark.unit
class TestBudgetNotFound:
    """Endpoints answer 404 when the service finds no budget."""

    @pytest.mark.asyncio
    async def test_get_budget_not_found(self, mock_db, mock_user):
        with patch(
            "budget_keeper.api.v1.budgets.budget_service.get_budget",
            return_value=None,
        ):
            with pytest.raises(HTTPException) as exc_info:
                await get_budget(budget_id=uuid4(), current_user=mock_user, db=mock_db)

            assert exc_info.value.status_code == 404
            assert exc_info.value.detail == "Budget not found"

    @pytest.mark.asyncio
    async def test_update_budget_not_found(self, mock_db, mock_user):
        with patch(
            "budget_keeper.api.v1.budgets.budget_service.update_budget",
            return_value=None,
        ):
            with pytest.raises(HTTPException) as exc_info:
                await update_budget(
                    budget_id=uuid4(),
                    budget_data=BudgetUpdate(name="New"),
                    current_user=mock_user,
                    db=mock_db,
                )

            assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_update_passes_only_set_fields(self, mock_db, mock_user):
        with patch(
            "budget_keeper.api.v1.budgets.budget_service.update_budget",
            return_value=make_budget(mock_user.id, name="New"),
        ) as mock_update:
            result = await update_budget(
                budget_id=uuid4(),
                budget_data=BudgetUpdate(name="New"),
                current_user=mock_user,
                db=mock_db,
            )

            assert result.name == "New"
            call_kwargs = mock_update.call_args.kwargs
            assert call_kwargs["name"] == "New"
            assert "amount" not in call_kwargs

    @pytest.mark.asyncio
    async def test_update_rejected_by_service_is_unprocessable(self, mock_db, mock_user):
        with patch(
            "budget_keeper.api.v1.budgets.budget_service.update_budget",
            side_effect=ValueError("end_date must be after start_date"),
        ):
            with pytest.raises(HTTPException) as exc_info:
                await update_budget(
                    budget_id=uuid4(),
                    budget_data=BudgetUpdate(end_date=date(2023, 6, 1)),
                    current_user=mock_user,
                    db=mock_db,
                )

            assert exc_info.value.status_code == 422
            assert exc_info.value.detail == "end_date must be after start_date"

    @pytest.mark.asyncio
    async def test_delete_budget_not_found(self, mock_db, mock_user):
        with patch(
            "budget_keeper.api.v1.budgets.budget_service.delete_budget",
            return_value=False,
        ):
            with pytest.raises(HTTPException) as exc_info:
                await delete_budget(budget_id=uuid4(), current_user=mock_user, db=mock_db)

            assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_budget_success(self, mock_db, mock_user):
        with patch(
            "budget_keeper.api.v1.budgets.budget_service.delete_budget",
            return_value=True,
        ):
            result = await delete_budget(budget_id=uuid4(), current_user=mock_user, db=mock_db)

            assert result is None


@pytest.mark.unit
class TestBudgetActions:
    """Test rollover, breakdown and impact endpoints."""

    @pytest.mark.asyncio
    async def test_rollover_refused_while_period_running(self, mock_db, mock_user):
        budget = make_budget(mock_user.id, current_period_end=date(2999, 12, 31))

        with patch(
            "budget_keeper.api.v1.budgets.budget_service.get_budget",
            return_value=budget,
        ), patch(
            "budget_keeper.api.v1.budgets.budget_service.advance_expired_budget",
        ) as mock_advance:
            with pytest.raises(HTTPException) as exc_info:
                await rollover_budget(budget_id=budget.id, current_user=mock_user, db=mock_db)

            assert exc_info.value.status_code == 409
            mock_advance.assert_not_called()

    @pytest.mark.asyncio
    async def test_rollover_expired_budget(self, mock_db, mock_user):
        budget = make_budget(mock_user.id, current_period_end=date(2000, 1, 31))

        with patch(
            "budget_keeper.api.v1.budgets.budget_service.get_budget",
            return_value=budget,
        ), patch(
            "budget_keeper.api.v1.budgets.budget_service.advance_expired_budget",
            return_value=True,
        ) as mock_advance:
            result = await rollover_budget(budget_id=budget.id, current_user=mock_user, db=mock_db)

            assert result.id == budget.id
            mock_advance.assert_called_once_with(db=mock_db, budget=budget)

    @pytest.mark.asyncio
    async def test_breakdown_total_is_current_spending(self, mock_db, mock_user):
        budget = make_budget(mock_user.id)
        entries = [{"id": None, "name": "Uncategorized", "amount": Decimal("100.00"), "count": 3}]

        with patch(
            "budget_keeper.api.v1.budgets.budget_service.get_budget",
            return_value=budget,
        ), patch(
            "budget_keeper.api.v1.budgets.budget_service.get_spending_breakdown",
            return_value=entries,
        ):
            result = await get_budget_breakdown(
                budget_id=budget.id, current_user=mock_user, db=mock_db
            )

            assert result == {"breakdown": entries, "total": Decimal("100.00")}

    @pytest.mark.asyncio
    async def test_check_impact(self, mock_db, mock_user):
        budget = make_budget(mock_user.id)

        with patch(
            "budget_keeper.api.v1.budgets.budget_service.get_budget",
            return_value=budget,
        ):
            result = await check_transaction_impact(
                budget_id=budget.id,
                amount=Decimal("450.00"),
                current_user=mock_user,
                db=mock_db,
            )

            assert result["projected_spent"] == Decimal("550.00")
            assert result["will_be_over_budget"] is True
            assert result["exceeds_by"] == Decimal("50.00")


@pytest.mark.unit
class TestRouterConfiguration:
    """Test router configuration."""

    def test_static_paths_registered_before_budget_id(self):
        paths = [route.path for route in router.routes]
        first_dynamic = paths.index("/{budget_id}")

        for static_path in ("/stats", "/health", "/for-category", "/alerts"):
            assert paths.index(static_path) < first_dynamic

    def test_router_has_action_routes(self):
        paths = {route.path for route in router.routes}

        assert {
            "/{budget_id}/toggle",
            "/{budget_id}/refresh",
            "/{budget_id}/rollover",
            "/{budget_id}/breakdown",
            "/{budget_id}/comparison",
            "/{budget_id}/check-impact",
        } <= paths
