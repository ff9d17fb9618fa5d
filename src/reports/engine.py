"""
Reporting Engine

Monthly breakdown and yearly trend, both computed on demand from the
ledger query primitives. Nothing here is stored or cached.

DESIGN DECISION: The monthly report reads the month's entries once and
groups them in memory. The yearly trend instead issues one income sum
and one expense sum per month, all 24 concurrently; the whole result
waits for every read and fails if any of them fails.
"""

import asyncio
from decimal import Decimal
from typing import Any, Iterable, Optional

from src.models.ledger import Category, EntryKind, LedgerEntry
from src.models.period import Period
from src.models.reports import CategoryTotal, MonthlyReport, MonthTrend, YearlyTrend
from src.queries.ledger import LedgerQueryService
from src.validation import InputValidator


def group_by_category(entries: Iterable[LedgerEntry]) -> list[CategoryTotal]:
    """
    Sum entry amounts per category name.

    Entries whose category could not be resolved are grouped under
    "Uncategorized".
    """
    groups: dict[str, CategoryTotal] = {}
    for entry in entries:
        category = entry.category or Category(
            id=entry.category_id,
            name="Uncategorized",
            kind=entry.kind,
        )
        if category.name not in groups:
            groups[category.name] = CategoryTotal(category=category)
        groups[category.name].total += entry.amount
    return list(groups.values())


class ReportingEngine:
    """Builds monthly reports and yearly trends for one owner at a time."""

    def __init__(
        self,
        ledger: LedgerQueryService,
        validator: Optional[InputValidator] = None,
    ):
        self._ledger = ledger
        self._validator = validator or InputValidator()

    async def get_monthly_report(
        self,
        owner_id: str,
        month: Any,
        year: Any,
    ) -> MonthlyReport:
        period = self._validator.period(month, year)
        entries = await self._ledger.entries_in_period(owner_id, period)

        income = [e for e in entries if e.kind == EntryKind.INCOME]
        expenses = [e for e in entries if e.kind == EntryKind.EXPENSE]

        total_income = sum((e.amount for e in income), Decimal("0"))
        total_expense = sum((e.amount for e in expenses), Decimal("0"))

        return MonthlyReport(
            month=period.month,
            year=period.year,
            total_income=total_income,
            total_expense=total_expense,
            balance=total_income - total_expense,
            expenses_by_category=group_by_category(expenses),
            income_by_category=group_by_category(income),
            transactions_count=len(entries),
        )

    async def _month_totals(self, owner_id: str, period: Period) -> MonthTrend:
        income, expense = await asyncio.gather(
            self._ledger.sum_amounts(owner_id, kind=EntryKind.INCOME, period=period),
            self._ledger.sum_amounts(owner_id, kind=EntryKind.EXPENSE, period=period),
        )
        return MonthTrend(month=period.month, income=income, expense=expense)

    async def get_yearly_trend(self, owner_id: str, year: Any) -> YearlyTrend:
        """Twelve monthly totals, January to December; empty months are zero."""
        year = self._validator.year(year)
        months = await asyncio.gather(*(
            self._month_totals(owner_id, period)
            for period in Period.months_of(year)
        ))
        return YearlyTrend(year=year, months=list(months))
