"""Ledger models: transactions, categories and merchants."""

import enum
import uuid

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from budget_keeper.core.database import Base
from budget_keeper.core.db_types import UUID
from budget_keeper.utils.datetime_utils import utc_now_lambda


class TransactionType(str, enum.Enum):
    """Transaction type."""

    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"
    CARD_PAYMENT = "card_payment"


class CategoryType(str, enum.Enum):
    """Category type."""

    INCOME = "income"
    EXPENSE = "expense"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Category(Base):
    """Transaction category, optionally nested one level under a parent."""

    __tablename__ = "categories"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id = Column(UUID(), ForeignKey("categories.id", ondelete="CASCADE"), nullable=True)

    name = Column(String(255), nullable=False)
    icon = Column(String(50), nullable=True)
    color = Column(String(7), default="#6366f1", nullable=True)  # Hex color code
    type = Column(
        SQLEnum(CategoryType, values_callable=_enum_values),
        default=CategoryType.EXPENSE,
        nullable=False,
    )

    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    parent = relationship("Category", remote_side=[id], backref="children")
    transactions = relationship("Transaction", back_populates="category")
    budgets = relationship("Budget", back_populates="category")

    __table_args__ = (
        Index("ix_categories_user_type", "user_id", "type"),
        Index("ix_categories_user_parent", "user_id", "parent_id"),
    )


class Merchant(Base):
    """Merchant a transaction was made with."""

    __tablename__ = "merchants"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    image_url = Column(String(2048), nullable=True)

    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    transactions = relationship("Transaction", back_populates="merchant")


class Transaction(Base):
    """Ledger entry. Amounts are always positive; ``type`` carries the direction."""

    __tablename__ = "transactions"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(SQLEnum(TransactionType, values_callable=_enum_values), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), default="CHF", nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    transaction_date = Column(Date, nullable=False)

    category_id = Column(
        UUID(), ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True
    )
    merchant_id = Column(
        UUID(), ForeignKey("merchants.id", ondelete="SET NULL"), nullable=True, index=True
    )

    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    category = relationship("Category", back_populates="transactions")
    merchant = relationship("Merchant", back_populates="transactions")

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "transaction_date"),
        Index("ix_transactions_user_type", "user_id", "type"),
        Index("ix_transactions_user_category", "user_id", "category_id"),
        Index("ix_transactions_user_merchant", "user_id", "merchant_id"),
    )
