"""
Budget Tracker

Per-category monthly spending ceilings and their status against the
ledger.

DESIGN DECISION: Uniqueness of (owner, category, month, year) is
checked twice. The pre-check gives a clean Conflict in the common case,
but two concurrent creates can both pass it, so the store's own unique
guard is authoritative and its DuplicateError is reported as the same
Conflict. Nothing is written on either path.

Status is never stored. Spent amounts are summed from the ledger on
every request, one concurrent read per budget.
"""

import asyncio
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Optional, Union
from uuid import UUID

import structlog

from src.errors import BudgetConflictError, ResourceNotFoundError
from src.models.ledger import Budget, BudgetCreate, BudgetUpdate, EntryKind
from src.models.period import Period
from src.models.reports import BudgetStatus
from src.queries.ledger import LedgerQueryService, parse_id
from src.services.storage import DuplicateError, LedgerStorageInterface
from src.validation import InputValidator

logger = structlog.get_logger()


def build_status(budget: Budget, spent: Decimal) -> BudgetStatus:
    """
    Compare one budget against the amount spent in its period.

    percentage rounds half up to a whole number and is 0 for a zero
    budget. is_over_budget is strict: spending exactly the budget is
    not over it.
    """
    # Enough precision for every integer digit of the ratio and remainder
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, abs(spent.adjusted() - budget.amount.adjusted()) + 30)
        remaining = budget.amount - spent
        if budget.amount > 0:
            ratio = spent / budget.amount * 100
            percentage = int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        else:
            percentage = 0

    return BudgetStatus(
        id=budget.id,
        category=budget.category,
        budget_amount=budget.amount,
        spent_amount=spent,
        remaining=remaining,
        percentage=percentage,
        is_over_budget=spent > budget.amount,
    )


class BudgetTracker:
    """Budget CRUD plus budget-versus-actual status."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        ledger: LedgerQueryService,
        validator: Optional[InputValidator] = None,
    ):
        self._storage = storage
        self._ledger = ledger
        self._validator = validator or InputValidator()

    async def _owned_budget(self, budget_id: Union[UUID, str], owner_id: str) -> Budget:
        # A foreign budget is indistinguishable from a missing one
        budget = await self._storage.get_budget(parse_id(budget_id, "Budget"))
        if budget is None or budget.owner_id != owner_id:
            raise ResourceNotFoundError("Budget not found")
        return budget

    async def list_budgets(
        self,
        owner_id: str,
        month: Optional[Any] = None,
        year: Optional[Any] = None,
    ) -> list[Budget]:
        """The owner's budgets ordered by category name; month and year narrow independently."""
        month, year = self._validator.optional_month_year(month, year)
        return await self._storage.list_budgets(owner_id, month=month, year=year)

    async def create_budget(
        self,
        owner_id: str,
        data: Union[BudgetCreate, dict[str, Any]],
    ) -> Budget:
        data = self._validator.budget_create(data)
        await self._ledger.resolve_category(data.category_id, owner_id)

        existing = await self._storage.find_budget(
            owner_id, data.category_id, data.month, data.year
        )
        if existing is not None:
            raise BudgetConflictError()

        budget = Budget(
            owner_id=owner_id,
            category_id=data.category_id,
            amount=data.amount,
            month=data.month,
            year=data.year,
        )
        try:
            return await self._storage.save_budget(budget)
        except DuplicateError:
            logger.info(
                "budget_create_lost_race",
                owner_id=owner_id,
                category_id=str(data.category_id),
                period=str(Period(month=data.month, year=data.year)),
            )
            raise BudgetConflictError()

    async def update_budget(
        self,
        budget_id: Union[UUID, str],
        owner_id: str,
        data: Union[BudgetUpdate, dict[str, Any]],
    ) -> Budget:
        """Change the target amount; category and period are fixed."""
        data = self._validator.budget_update(data)
        budget = await self._owned_budget(budget_id, owner_id)
        return await self._storage.update_budget(
            budget.model_copy(update={"amount": data.amount})
        )

    async def delete_budget(self, budget_id: Union[UUID, str], owner_id: str) -> None:
        budget = await self._owned_budget(budget_id, owner_id)
        await self._storage.delete_budget(budget.id)

    async def get_status(
        self,
        owner_id: str,
        month: Any,
        year: Any,
    ) -> list[BudgetStatus]:
        """
        Budget-versus-actual for every budget of the period.

        Spent is the EXPENSE total of the budget's category inside the
        period window. Order follows list_budgets.
        """
        period = self._validator.period(month, year)
        budgets = await self._storage.list_budgets(
            owner_id, month=period.month, year=period.year
        )
        if not budgets:
            return []

        spent_amounts = await asyncio.gather(*(
            self._ledger.sum_amounts(
                owner_id,
                kind=EntryKind.EXPENSE,
                category_id=budget.category_id,
                period=period,
            )
            for budget in budgets
        ))
        return [
            build_status(budget, spent)
            for budget, spent in zip(budgets, spent_amounts)
        ]
