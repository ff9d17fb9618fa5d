"""Tests for the Reporting Engine."""

import pytest
from datetime import datetime
from decimal import Decimal

from src.errors import InputValidationError
from src.queries import LedgerQueryService
from src.reports import ReportingEngine, group_by_category
from src.services.storage import InMemoryLedgerStorage


class CountingStorage(InMemoryLedgerStorage):
    """A store that counts aggregate reads."""

    def __init__(self):
        super().__init__()
        self.sum_calls = 0

    async def sum_entries(self, owner_id, filters=None):
        self.sum_calls += 1
        return await super().sum_entries(owner_id, filters)


class TestMonthlyReport:
    """Tests for the monthly breakdown."""

    async def test_totals_and_groups(self, engine, add_entry):
        """Test totals, balance, count and per-category groups."""
        await add_entry("Salary", "3000", datetime(2024, 3, 1))
        await add_entry("Food & Groceries", "120", datetime(2024, 3, 5))
        await add_entry("Food & Groceries", "80", datetime(2024, 3, 20))
        await add_entry("Transport", "50", datetime(2024, 3, 31, 23, 59, 59))

        report = await engine.get_monthly_report("alice", 3, 2024)

        assert report.total_income == Decimal("3000")
        assert report.total_expense == Decimal("250")
        assert report.balance == Decimal("2750")
        assert report.transactions_count == 4

        expenses = {g.category.name: g.total for g in report.expenses_by_category}
        assert expenses == {
            "Food & Groceries": Decimal("200"),
            "Transport": Decimal("50"),
        }
        income = {g.category.name: g.total for g in report.income_by_category}
        assert income == {"Salary": Decimal("3000")}

    async def test_excludes_other_months_and_owners(self, engine, add_entry):
        """Test only the owner's entries inside the window count."""
        await add_entry("Transport", "10", datetime(2024, 3, 15))
        await add_entry("Transport", "99", datetime(2024, 2, 29, 23, 59, 59))
        await add_entry("Transport", "99", datetime(2024, 4, 1))
        await add_entry("Transport", "99", datetime(2024, 3, 15), owner_id="bob")

        report = await engine.get_monthly_report("alice", 3, 2024)

        assert report.total_expense == Decimal("10")
        assert report.transactions_count == 1

    async def test_empty_month(self, engine, categories):
        """Test a month without entries is all zeros."""
        report = await engine.get_monthly_report("alice", 7, 2024)
        assert report.total_income == Decimal("0")
        assert report.total_expense == Decimal("0")
        assert report.balance == Decimal("0")
        assert report.expenses_by_category == []
        assert report.income_by_category == []
        assert report.transactions_count == 0

    async def test_invalid_month(self, engine):
        """Test month 0 is a validation error."""
        with pytest.raises(InputValidationError):
            await engine.get_monthly_report("alice", 0, 2024)

    async def test_camel_case_dump(self, engine, add_entry):
        """Test the wire form uses camelCase names."""
        await add_entry("Transport", "10", datetime(2024, 3, 15))
        dumped = (await engine.get_monthly_report("alice", 3, 2024)).model_dump(
            by_alias=True
        )
        assert dumped["totalExpense"] == Decimal("10")
        assert dumped["transactionsCount"] == 1
        assert "expensesByCategory" in dumped


class TestGroupByCategory:
    """Tests for category grouping."""

    async def test_groups_by_name(self, ledger, add_entry):
        """Test entries with the same category name share a group."""
        await add_entry("Transport", "10", datetime(2024, 3, 1))
        await add_entry("Transport", "15", datetime(2024, 3, 2))
        entries = (await ledger.list_entries("alice")).entries

        [group] = group_by_category(entries)

        assert group.category.name == "Transport"
        assert group.total == Decimal("25")

    def test_empty(self):
        """Test no entries gives no groups."""
        assert group_by_category([]) == []


class TestYearlyTrend:
    """Tests for the twelve-month trend."""

    async def test_twelve_months_in_order(self, engine, add_entry):
        """Test every month appears once, empty months as zero."""
        await add_entry("Salary", "3000", datetime(2024, 1, 31, 23, 59, 59))
        await add_entry("Housing", "1200", datetime(2024, 1, 2))
        await add_entry("Housing", "1200", datetime(2024, 12, 31, 23, 59, 59))
        await add_entry("Housing", "999", datetime(2025, 1, 1))

        trend = await engine.get_yearly_trend("alice", 2024)

        assert trend.year == 2024
        assert [m.month for m in trend.months] == list(range(1, 13))
        assert trend.months[0].income == Decimal("3000")
        assert trend.months[0].expense == Decimal("1200")
        assert trend.months[11].expense == Decimal("1200")
        assert all(
            m.income == Decimal("0") and m.expense == Decimal("0")
            for m in trend.months[1:11]
        )

    async def test_leap_february(self, engine, add_entry):
        """Test Feb 29 belongs to February in a leap year."""
        await add_entry("Transport", "5", datetime(2024, 2, 29, 12, 0))
        trend = await engine.get_yearly_trend("alice", 2024)
        assert trend.months[1].expense == Decimal("5")
        assert trend.months[2].expense == Decimal("0")

    async def test_two_sums_per_month(self):
        """Test the trend is built from 24 aggregate reads."""
        storage = CountingStorage()
        engine = ReportingEngine(LedgerQueryService(storage))
        await engine.get_yearly_trend("alice", 2024)
        assert storage.sum_calls == 24

    async def test_invalid_year(self, engine):
        """Test year 0 is a validation error."""
        with pytest.raises(InputValidationError):
            await engine.get_yearly_trend("alice", 0)
