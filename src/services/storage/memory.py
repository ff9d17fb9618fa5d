"""
In-Memory Storage Implementation

Used by the test suite and for demos without a database. It honours the
same contract as the SQL store, including the authoritative uniqueness
index on (owner_id, category_id, month, year) for budgets.

Every read returns copies so callers can never mutate stored rows.
"""

import asyncio
from decimal import Decimal
from typing import Optional
from uuid import UUID

from src.models.audit import AuditEvent
from src.models.ledger import Budget, Category, EntryFilters, LedgerEntry
from src.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dictionary-backed ledger store guarded by an asyncio lock."""

    def __init__(self):
        self._categories: dict[UUID, Category] = {}
        self._entries: dict[UUID, LedgerEntry] = {}
        self._budgets: dict[UUID, Budget] = {}
        # Unique index: (owner_id, category_id, month, year) -> budget id
        self._budget_keys: dict[tuple[str, UUID, int, int], UUID] = {}
        self._lock = asyncio.Lock()

    def _attach(self, record):
        """Copy a stored entry/budget and attach its category."""
        category = self._categories.get(record.category_id)
        return record.model_copy(
            update={"category": category.model_copy() if category else None},
            deep=True,
        )

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def save_category(self, category: Category) -> Category:
        async with self._lock:
            self._categories[category.id] = category.model_copy()
        return category.model_copy()

    async def get_category(self, category_id: UUID) -> Optional[Category]:
        category = self._categories.get(category_id)
        return category.model_copy() if category else None

    async def list_categories(self, owner_id: str) -> list[Category]:
        visible = [
            category.model_copy()
            for category in self._categories.values()
            if category.is_default or category.owner_id == owner_id
        ]
        visible.sort(key=lambda c: c.name)
        return visible

    # -------------------------------------------------------------------------
    # Ledger entries
    # -------------------------------------------------------------------------

    def _matching(
        self,
        owner_id: str,
        filters: Optional[EntryFilters],
    ) -> list[LedgerEntry]:
        filters = filters or EntryFilters()
        return [
            entry
            for entry in self._entries.values()
            if entry.owner_id == owner_id and filters.matches(entry)
        ]

    async def save_entry(self, entry: LedgerEntry) -> LedgerEntry:
        async with self._lock:
            stored = entry.model_copy(update={"category": None}, deep=True)
            self._entries[entry.id] = stored
            return self._attach(stored)

    async def get_entry(self, entry_id: UUID) -> Optional[LedgerEntry]:
        entry = self._entries.get(entry_id)
        return self._attach(entry) if entry else None

    async def update_entry(self, entry: LedgerEntry) -> LedgerEntry:
        async with self._lock:
            if entry.id not in self._entries:
                raise NotFoundError(f"Entry not found: {entry.id}")
            stored = entry.model_copy(update={"category": None}, deep=True)
            self._entries[entry.id] = stored
            return self._attach(stored)

    async def delete_entry(self, entry_id: UUID) -> bool:
        async with self._lock:
            return self._entries.pop(entry_id, None) is not None

    async def list_entries(
        self,
        owner_id: str,
        filters: Optional[EntryFilters] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        entries = self._matching(owner_id, filters)

        # Sort by date descending (newest first)
        entries.sort(key=lambda e: e.occurred_on, reverse=True)

        end = None if limit is None else offset + limit
        return [self._attach(entry) for entry in entries[offset:end]]

    async def count_entries(
        self,
        owner_id: str,
        filters: Optional[EntryFilters] = None,
    ) -> int:
        return len(self._matching(owner_id, filters))

    async def sum_entries(
        self,
        owner_id: str,
        filters: Optional[EntryFilters] = None,
    ) -> Decimal:
        return sum(
            (entry.amount for entry in self._matching(owner_id, filters)),
            Decimal("0"),
        )

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def save_budget(self, budget: Budget) -> Budget:
        async with self._lock:
            if budget.unique_key in self._budget_keys:
                raise DuplicateError(
                    "Budget already exists for "
                    f"{budget.owner_id}/{budget.category_id}/{budget.month}/{budget.year}"
                )
            stored = budget.model_copy(update={"category": None}, deep=True)
            self._budgets[budget.id] = stored
            self._budget_keys[budget.unique_key] = budget.id
            return self._attach(stored)

    async def get_budget(self, budget_id: UUID) -> Optional[Budget]:
        budget = self._budgets.get(budget_id)
        return self._attach(budget) if budget else None

    async def find_budget(
        self,
        owner_id: str,
        category_id: UUID,
        month: int,
        year: int,
    ) -> Optional[Budget]:
        budget_id = self._budget_keys.get((owner_id, category_id, month, year))
        return await self.get_budget(budget_id) if budget_id else None

    async def update_budget(self, budget: Budget) -> Budget:
        async with self._lock:
            current = self._budgets.get(budget.id)
            if current is None:
                raise NotFoundError(f"Budget not found: {budget.id}")
            if current.unique_key != budget.unique_key:
                if budget.unique_key in self._budget_keys:
                    raise DuplicateError("Budget already exists for this period")
                del self._budget_keys[current.unique_key]
                self._budget_keys[budget.unique_key] = budget.id
            stored = budget.model_copy(update={"category": None}, deep=True)
            self._budgets[budget.id] = stored
            return self._attach(stored)

    async def delete_budget(self, budget_id: UUID) -> bool:
        async with self._lock:
            budget = self._budgets.pop(budget_id, None)
            if budget is None:
                return False
            del self._budget_keys[budget.unique_key]
            return True

    async def list_budgets(
        self,
        owner_id: str,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[Budget]:
        budgets = [
            self._attach(budget)
            for budget in self._budgets.values()
            if budget.owner_id == owner_id
            and (month is None or budget.month == month)
            and (year is None or budget.year == year)
        ]
        budgets.sort(key=lambda b: b.category.name if b.category else "")
        return budgets


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log held in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event.model_copy(deep=True))
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        owner_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if owner_id is None or e.owner_id == owner_id
        ]
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
