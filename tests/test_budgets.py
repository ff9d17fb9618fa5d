"""
Tests for the Budget Tracker

Covers budget uniqueness (including the race past the pre-check),
ownership, and budget-versus-actual status.
"""

import asyncio
import pytest
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from src.budgets import BudgetTracker, build_status
from src.errors import BudgetConflictError, InputValidationError, ResourceNotFoundError
from src.models.ledger import Budget
from src.queries import LedgerQueryService
from src.services.storage import InMemoryLedgerStorage, seed_default_categories


class RacingStorage(InMemoryLedgerStorage):
    """A store whose pre-check never sees the competing budget."""

    async def find_budget(self, owner_id, category_id, month, year):
        return None


class CountingStorage(InMemoryLedgerStorage):
    """A store that counts aggregate reads."""

    def __init__(self):
        super().__init__()
        self.sum_calls = 0

    async def sum_entries(self, owner_id, filters=None):
        self.sum_calls += 1
        return await super().sum_entries(owner_id, filters)


def make_budget(amount: str) -> Budget:
    return Budget(
        owner_id="alice",
        category_id=uuid4(),
        amount=Decimal(amount),
        month=3,
        year=2024,
    )


class TestBuildStatus:
    """Tests for the budget-versus-actual arithmetic."""

    def test_under_budget(self):
        """Test 350 spent of 500."""
        status = build_status(make_budget("500"), Decimal("350"))
        assert status.remaining == Decimal("150")
        assert status.percentage == 70
        assert status.is_over_budget is False

    def test_over_budget(self):
        """Test 350 spent of 200."""
        status = build_status(make_budget("200"), Decimal("350"))
        assert status.remaining == Decimal("-150")
        assert status.percentage == 175
        assert status.is_over_budget is True

    def test_zero_budget(self):
        """Test a zero budget reports 0% but is still over when spent."""
        status = build_status(make_budget("0"), Decimal("500"))
        assert status.percentage == 0
        assert status.is_over_budget is True
        assert status.remaining == Decimal("-500")

    def test_exactly_on_budget_is_not_over(self):
        """Test over-budget is a strict comparison."""
        status = build_status(make_budget("200"), Decimal("200"))
        assert status.percentage == 100
        assert status.is_over_budget is False

    def test_percentage_rounds_half_up(self):
        """Test 12.5% rounds to 13, not to the even 12."""
        assert build_status(make_budget("8"), Decimal("1")).percentage == 13
        assert build_status(make_budget("3"), Decimal("1")).percentage == 33

    def test_extreme_ratio(self):
        """Test a huge spend against the smallest budget still computes."""
        status = build_status(make_budget("0.01"), Decimal("1E+30"))
        assert status.percentage == 10 ** 34
        assert status.remaining == Decimal("-999999999999999999999999999999.99")
        assert status.is_over_budget is True

    def test_smaller_than_a_cent_is_not_a_budget(self):
        """Test budget amounts carry at most two decimal places."""
        with pytest.raises(ValidationError):
            make_budget("0.0000000001")


class TestCreateBudget:
    """Tests for budget creation and uniqueness."""

    async def test_create(self, tracker, categories):
        """Test a budget is stored with its category."""
        budget = await tracker.create_budget("alice", {
            "category_id": categories["Housing"].id,
            "amount": "1200",
            "month": 3,
            "year": 2024,
        })
        assert budget.amount == Decimal("1200")
        assert budget.category.name == "Housing"

    async def test_duplicate_is_conflict_without_mutation(self, tracker, categories):
        """Test a second budget for the same key is refused untouched."""
        request = {
            "category_id": categories["Housing"].id,
            "month": 3,
            "year": 2024,
        }
        await tracker.create_budget("alice", {**request, "amount": "1200"})

        with pytest.raises(BudgetConflictError) as exc_info:
            await tracker.create_budget("alice", {**request, "amount": "900"})

        assert exc_info.value.kind == "conflict"
        assert exc_info.value.message == (
            "Budget already exists for this category and period"
        )
        budgets = await tracker.list_budgets("alice")
        assert len(budgets) == 1
        assert budgets[0].amount == Decimal("1200")

    async def test_same_category_other_period_allowed(self, tracker, categories):
        """Test the key includes month and year."""
        for month in (3, 4):
            await tracker.create_budget("alice", {
                "category_id": categories["Housing"].id,
                "amount": "1200",
                "month": month,
                "year": 2024,
            })
        assert len(await tracker.list_budgets("alice")) == 2

    async def test_same_key_other_owner_allowed(self, tracker, categories):
        """Test the key includes the owner."""
        for owner_id in ("alice", "bob"):
            await tracker.create_budget(owner_id, {
                "category_id": categories["Housing"].id,
                "amount": "1200",
                "month": 3,
                "year": 2024,
            })
        assert len(await tracker.list_budgets("bob")) == 1

    async def test_store_guard_catches_race(self):
        """Test a create that slips past the pre-check still conflicts."""
        storage = RacingStorage()
        await seed_default_categories(storage)
        housing = next(
            c for c in await storage.list_categories("") if c.name == "Housing"
        )
        tracker = BudgetTracker(storage, LedgerQueryService(storage))
        request = {"category_id": housing.id, "amount": "1", "month": 3, "year": 2024}

        await tracker.create_budget("alice", request)
        with pytest.raises(BudgetConflictError):
            await tracker.create_budget("alice", request)

        assert len(await storage.list_budgets("alice")) == 1

    async def test_concurrent_creates(self, tracker, categories):
        """Test two simultaneous creates yield one budget and one conflict."""
        request = {
            "category_id": categories["Housing"].id,
            "amount": "100",
            "month": 3,
            "year": 2024,
        }
        results = await asyncio.gather(
            tracker.create_budget("alice", request),
            tracker.create_budget("alice", request),
            return_exceptions=True,
        )
        conflicts = [r for r in results if isinstance(r, BudgetConflictError)]
        assert len(conflicts) == 1
        assert len(await tracker.list_budgets("alice")) == 1

    async def test_negative_amount_rejected(self, tracker, categories):
        """Test budget amounts must be non-negative."""
        with pytest.raises(InputValidationError):
            await tracker.create_budget("alice", {
                "category_id": categories["Housing"].id,
                "amount": "-1",
                "month": 3,
                "year": 2024,
            })

    async def test_unknown_category(self, tracker, categories):
        """Test budgets need a visible category."""
        with pytest.raises(ResourceNotFoundError):
            await tracker.create_budget("alice", {
                "category_id": uuid4(),
                "amount": "1",
                "month": 3,
                "year": 2024,
            })


class TestBudgetOwnership:
    """Tests for update, delete and listing."""

    @pytest.fixture
    async def budget(self, tracker, categories):
        return await tracker.create_budget("alice", {
            "category_id": categories["Housing"].id,
            "amount": "1200",
            "month": 3,
            "year": 2024,
        })

    async def test_update_amount(self, tracker, budget):
        """Test the target amount can change."""
        updated = await tracker.update_budget(budget.id, "alice", {"amount": "1000"})
        assert updated.amount == Decimal("1000")
        assert (updated.month, updated.year) == (3, 2024)

    async def test_foreign_update_is_not_found(self, tracker, budget):
        """Test another account's budget looks missing."""
        with pytest.raises(ResourceNotFoundError):
            await tracker.update_budget(budget.id, "bob", {"amount": "1"})

    async def test_delete(self, tracker, budget):
        """Test deleted budgets disappear."""
        await tracker.delete_budget(budget.id, "alice")
        assert await tracker.list_budgets("alice") == []

    async def test_foreign_delete_is_not_found(self, tracker, budget):
        """Test another account cannot delete a budget."""
        with pytest.raises(ResourceNotFoundError):
            await tracker.delete_budget(budget.id, "bob")
        assert len(await tracker.list_budgets("alice")) == 1

    async def test_list_ordered_by_category_name(self, tracker, categories):
        """Test budgets sort by category name."""
        for name in ("Utilities", "Entertainment", "Housing"):
            await tracker.create_budget("alice", {
                "category_id": categories[name].id,
                "amount": "100",
                "month": 1,
                "year": 2024,
            })
        names = [b.category.name for b in await tracker.list_budgets("alice")]
        assert names == ["Entertainment", "Housing", "Utilities"]

    async def test_list_filters_independently(self, tracker, categories):
        """Test month and year narrow on their own."""
        periods = [(1, 2024), (2, 2024), (1, 2025)]
        for month, year in periods:
            await tracker.create_budget("alice", {
                "category_id": categories["Housing"].id,
                "amount": "100",
                "month": month,
                "year": year,
            })
        assert len(await tracker.list_budgets("alice", month=1)) == 2
        assert len(await tracker.list_budgets("alice", year=2024)) == 2
        assert len(await tracker.list_budgets("alice", month=1, year=2025)) == 1


class TestBudgetStatus:
    """Tests for status against the ledger."""

    async def test_spent_counts_only_matching_expenses(self, tracker, add_entry, categories):
        """Test spent is EXPENSE in the budget's category and month only."""
        await tracker.create_budget("alice", {
            "category_id": categories["Food & Groceries"].id,
            "amount": "500",
            "month": 3,
            "year": 2024,
        })
        await add_entry("Food & Groceries", "200", datetime(2024, 3, 1))
        await add_entry("Food & Groceries", "150", datetime(2024, 3, 31, 23, 59, 59))
        await add_entry("Food & Groceries", "999", datetime(2024, 4, 1))
        await add_entry("Food & Groceries", "999", datetime(2024, 2, 29))
        await add_entry("Restaurants", "999", datetime(2024, 3, 10))
        await add_entry("Food & Groceries", "999", datetime(2024, 3, 10), owner_id="bob")

        [status] = await tracker.get_status("alice", 3, 2024)

        assert status.spent_amount == Decimal("350")
        assert status.remaining == Decimal("150")
        assert status.percentage == 70
        assert status.is_over_budget is False
        assert status.category.name == "Food & Groceries"

    async def test_over_budget(self, tracker, add_entry, categories):
        """Test the 350-of-200 case end to end."""
        await tracker.create_budget("alice", {
            "category_id": categories["Transport"].id,
            "amount": "200",
            "month": 12,
            "year": 2024,
        })
        await add_entry("Transport", "350", datetime(2024, 12, 31, 23, 59, 59))

        [status] = await tracker.get_status("alice", 12, 2024)

        assert status.remaining == Decimal("-150")
        assert status.percentage == 175
        assert status.is_over_budget is True

    async def test_one_status_per_budget_in_order(self, tracker, categories):
        """Test status follows the listing order."""
        for name in ("Utilities", "Housing"):
            await tracker.create_budget("alice", {
                "category_id": categories[name].id,
                "amount": "100",
                "month": 3,
                "year": 2024,
            })
        statuses = await tracker.get_status("alice", 3, 2024)
        assert [s.category.name for s in statuses] == ["Housing", "Utilities"]
        assert all(s.spent_amount == Decimal("0") for s in statuses)

    async def test_no_budgets_no_reads(self):
        """Test an empty period returns [] without aggregate reads."""
        storage = CountingStorage()
        tracker = BudgetTracker(storage, LedgerQueryService(storage))
        assert await tracker.get_status("alice", 3, 2024) == []
        assert storage.sum_calls == 0

    async def test_invalid_period(self, tracker):
        """Test month 13 is a validation error."""
        with pytest.raises(InputValidationError):
            await tracker.get_status("alice", 13, 2024)
