"""
Derived View Models

Budget status, monthly report and yearly trend are computed on every
request from the ledger and never persisted or cached.

Field names are snake_case in Python; dumping with by_alias=True gives
the camelCase names used on the wire (budgetAmount, isOverBudget, ...).
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.models.ledger import Category


class _ViewModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BudgetStatus(_ViewModel):
    """Budget versus actual spending for one category and period."""

    id: UUID = Field(..., description="Budget this status belongs to")
    category: Optional[Category] = None
    budget_amount: Decimal
    spent_amount: Decimal
    remaining: Decimal = Field(
        ...,
        description="budget_amount - spent_amount; negative when over budget"
    )
    percentage: int = Field(
        ...,
        ge=0,
        description="Spent share of the budget, rounded to a whole percent"
    )
    is_over_budget: bool


class CategoryTotal(_ViewModel):
    """Running total for one category within a report."""

    category: Category
    total: Decimal = Decimal("0")


class MonthlyReport(_ViewModel):
    """Income and expense breakdown for a single month."""

    month: int = Field(..., ge=1, le=12)
    year: int
    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    # Group order is not meaningful
    expenses_by_category: list[CategoryTotal] = Field(default_factory=list)
    income_by_category: list[CategoryTotal] = Field(default_factory=list)
    transactions_count: int = Field(default=0, ge=0)


class MonthTrend(_ViewModel):
    """Income and expense totals of one month in a yearly trend."""

    month: int = Field(..., ge=1, le=12)
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")


class YearlyTrend(_ViewModel):
    """Twelve monthly totals for one year, January to December."""

    year: int
    months: list[MonthTrend]

    @field_validator('months')
    @classmethod
    def validate_months(cls, v: list[MonthTrend]) -> list[MonthTrend]:
        """A trend always covers every month exactly once, in order."""
        if [m.month for m in v] != list(range(1, 13)):
            raise ValueError("Yearly trend must list months 1 to 12 in order")
        return v
