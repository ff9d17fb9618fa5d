"""
Shared fixtures.

Everything runs against the in-memory store unless a test module builds
its own SQL store. Default categories are seeded for every test.
"""

import pytest

from src.budgets import BudgetTracker
from src.config import get_settings
from src.queries import LedgerQueryService
from src.reports import ReportingEngine
from src.services.storage import InMemoryLedgerStorage, seed_default_categories


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings so env changes made by a test are picked up."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
async def categories(storage):
    """Seeded default categories by name."""
    await seed_default_categories(storage)
    return {c.name: c for c in await storage.list_categories(owner_id="")}


@pytest.fixture
def ledger(storage):
    return LedgerQueryService(storage)


@pytest.fixture
def tracker(storage, ledger):
    return BudgetTracker(storage, ledger)


@pytest.fixture
def engine(ledger):
    return ReportingEngine(ledger)


@pytest.fixture
def add_entry(ledger, categories):
    """
    Record an entry in a seeded category.

    The entry kind follows the category kind.
    """
    async def _add(category_name, amount, occurred_on, owner_id="alice", **extra):
        category = categories[category_name]
        return await ledger.create_entry(owner_id, {
            "category_id": category.id,
            "kind": category.kind,
            "amount": amount,
            "occurred_on": occurred_on,
            **extra,
        })
    return _add
