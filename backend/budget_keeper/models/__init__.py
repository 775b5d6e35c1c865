"""SQLAlchemy models package."""

from budget_keeper.models.user import User
from budget_keeper.models.transaction import (
    Category,
    CategoryType,
    Merchant,
    Transaction,
    TransactionType,
)
from budget_keeper.models.budget import Budget, BudgetHealth, BudgetPeriod

__all__ = [
    "User",
    "Category",
    "CategoryType",
    "Merchant",
    "Transaction",
    "TransactionType",
    "Budget",
    "BudgetHealth",
    "BudgetPeriod",
]
