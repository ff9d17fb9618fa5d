"""
Ledger Query Component

DESIGN DECISION: This is the only component that writes ledger entries.
Budget tracking and reporting read the ledger exclusively through the
filtering and aggregation primitives defined here (entries_in_period,
sum_amounts), so every read applies the same ownership predicate and
the same calendar window.

Ownership rules:
- An id that matches no entry is NotFound
- An entry owned by another account is Forbidden (or NotFound when
  LedgerSettings.hide_foreign_entries is on)
"""

import asyncio
import math
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID

from src.config import get_settings
from src.errors import AccessDeniedError, ResourceNotFoundError
from src.models.ledger import (
    Balance,
    Category,
    EntryCreate,
    EntryFilters,
    EntryKind,
    EntryPage,
    EntryUpdate,
    LedgerEntry,
    utcnow,
)
from src.models.period import Period
from src.services.storage import LedgerStorageInterface
from src.validation import InputValidator


def parse_id(value: Union[UUID, str], what: str) -> UUID:
    """Parse an id; anything that isn't a UUID cannot name a stored row."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise ResourceNotFoundError(f"{what} not found")


class LedgerQueryService:
    """
    Filtering, pagination, ownership-gated access and mutations for
    ledger entries, plus the balance and recent-activity aggregates.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        validator: Optional[InputValidator] = None,
        hide_foreign_entries: Optional[bool] = None,
    ):
        self._storage = storage
        self._validator = validator or InputValidator()
        settings = get_settings().ledger
        self._default_currency = settings.default_currency
        self._hide_foreign_entries = (
            settings.hide_foreign_entries
            if hide_foreign_entries is None
            else hide_foreign_entries
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_entries(
        self,
        owner_id: str,
        filters: Union[EntryFilters, dict[str, Any], None] = None,
        page: Optional[Any] = None,
        limit: Optional[Any] = None,
    ) -> EntryPage:
        """
        One page of the owner's entries, newest first.

        Filters are AND-combined; each date bound applies on its own.
        """
        filters = self._validator.filters(filters)
        request = self._validator.page(page, limit)
        offset = (request.page - 1) * request.limit

        entries, total = await asyncio.gather(
            self._storage.list_entries(
                owner_id,
                filters,
                limit=request.limit,
                offset=offset,
            ),
            self._storage.count_entries(owner_id, filters),
        )

        return EntryPage(
            entries=entries,
            total=total,
            page=request.page,
            limit=request.limit,
            total_pages=math.ceil(total / request.limit),
        )

    async def get_entry(self, entry_id: Union[UUID, str], owner_id: str) -> LedgerEntry:
        entry = await self._storage.get_entry(parse_id(entry_id, "Transaction"))
        if entry is None:
            raise ResourceNotFoundError("Transaction not found")
        if entry.owner_id != owner_id:
            if self._hide_foreign_entries:
                raise ResourceNotFoundError("Transaction not found")
            raise AccessDeniedError("Access denied")
        return entry

    async def get_balance(self, owner_id: str) -> Balance:
        """Lifetime income and expense totals; no date bound."""
        total_income, total_expense = await asyncio.gather(
            self.sum_amounts(owner_id, kind=EntryKind.INCOME),
            self.sum_amounts(owner_id, kind=EntryKind.EXPENSE),
        )
        return Balance(total_income=total_income, total_expense=total_expense)

    async def get_recent_entries(
        self,
        owner_id: str,
        limit: Optional[Any] = None,
    ) -> list[LedgerEntry]:
        limit = self._validator.limit(limit)
        return await self._storage.list_entries(owner_id, limit=limit)

    # -------------------------------------------------------------------------
    # Primitives shared with budgets and reports
    # -------------------------------------------------------------------------

    async def entries_in_period(self, owner_id: str, period: Period) -> list[LedgerEntry]:
        """Every entry of the owner inside the period window, category attached."""
        start, end = period.date_range()
        return await self._storage.list_entries(
            owner_id,
            EntryFilters(date_from=start, date_to=end),
        )

    async def sum_amounts(
        self,
        owner_id: str,
        kind: Optional[EntryKind] = None,
        category_id: Optional[UUID] = None,
        period: Optional[Period] = None,
    ) -> Decimal:
        """
        Sum of matching entry amounts.

        Returns Decimal("0") when nothing matches, never None.
        """
        date_from, date_to = period.date_range() if period else (None, None)
        filters = EntryFilters(
            kind=kind,
            category_id=category_id,
            date_from=date_from,
            date_to=date_to,
        )
        total = await self._storage.sum_entries(owner_id, filters)
        return total if total is not None else Decimal("0")

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def resolve_category(self, category_id: UUID, owner_id: str) -> Category:
        category = await self._storage.get_category(category_id)
        if category is None or not (category.is_default or category.owner_id == owner_id):
            raise ResourceNotFoundError("Category not found")
        return category

    async def create_entry(
        self,
        owner_id: str,
        data: Union[EntryCreate, dict[str, Any]],
    ) -> LedgerEntry:
        """
        Record a new entry.

        Currency defaults to the configured code, description to "" and
        the date to now. The category kind is not re-checked here.
        """
        data = self._validator.entry_create(data)
        await self.resolve_category(data.category_id, owner_id)

        now = utcnow()
        entry = LedgerEntry(
            owner_id=owner_id,
            category_id=data.category_id,
            kind=data.kind,
            amount=data.amount,
            currency=data.currency or self._default_currency,
            description=data.description or "",
            occurred_on=data.occurred_on or now,
            created_at=now,
            updated_at=now,
        )
        return await self._storage.save_entry(entry)

    async def update_entry(
        self,
        entry_id: Union[UUID, str],
        owner_id: str,
        data: Union[EntryUpdate, dict[str, Any]],
    ) -> LedgerEntry:
        """Apply only the supplied fields; an empty date keeps the stored one."""
        data = self._validator.entry_update(data)
        entry = await self.get_entry(entry_id, owner_id)

        changes = data.changes()
        if "category_id" in changes:
            await self.resolve_category(changes["category_id"], owner_id)

        updated = entry.model_copy(update={**changes, "updated_at": utcnow()})
        return await self._storage.update_entry(updated)

    async def delete_entry(self, entry_id: Union[UUID, str], owner_id: str) -> None:
        entry = await self.get_entry(entry_id, owner_id)
        await self._storage.delete_entry(entry.id)
