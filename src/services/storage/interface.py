"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run against a SQL database in production
2. Use in-memory storage for testing and demos
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just the filtered reads, counts, sums and single-row writes the ledger,
budget and report components need.

CRITICAL: save_budget MUST enforce uniqueness of
(owner_id, category_id, month, year) itself and raise DuplicateError on
a collision. Callers may pre-check, but the store is the real guard.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional
from uuid import UUID

from src.models.audit import AuditEvent
from src.models.ledger import Budget, Category, EntryFilters, LedgerEntry


class LedgerStorageInterface(ABC):
    """
    Abstract interface for categories, ledger entries and budgets.

    Any storage implementation (SQL, in-memory, ...) must implement
    these methods. Entries and budgets are returned with their
    category attached.
    """

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_category(self, category: Category) -> Category:
        """Insert a category (default when owner_id is None)."""
        pass

    @abstractmethod
    async def get_category(self, category_id: UUID) -> Optional[Category]:
        """Resolve a category id, or None if unknown."""
        pass

    @abstractmethod
    async def list_categories(self, owner_id: str) -> list[Category]:
        """
        Default categories plus the owner's personal ones.

        Returns:
            Categories ordered by name ascending
        """
        pass

    # -------------------------------------------------------------------------
    # Ledger entries
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Insert a new entry.

        Returns:
            The stored entry with its category attached

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_entry(self, entry_id: UUID) -> Optional[LedgerEntry]:
        """
        Retrieve an entry by id regardless of owner.

        Ownership decisions belong to the caller.
        """
        pass

    @abstractmethod
    async def update_entry(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Replace the stored entry with the same id.

        Raises:
            NotFoundError: If the entry doesn't exist
        """
        pass

    @abstractmethod
    async def delete_entry(self, entry_id: UUID) -> bool:
        """
        Delete an entry by id.

        Returns:
            True if a row was removed
        """
        pass

    @abstractmethod
    async def list_entries(
        self,
        owner_id: str,
        filters: Optional[EntryFilters] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        """
        List an owner's entries matching every supplied filter.

        Args:
            owner_id: Account whose ledger is read
            filters: AND-combined filters; date bounds are inclusive
            limit: Maximum number of results (None for all)
            offset: Number of results to skip

        Returns:
            Entries ordered by occurred_on, newest first
        """
        pass

    @abstractmethod
    async def count_entries(
        self,
        owner_id: str,
        filters: Optional[EntryFilters] = None,
    ) -> int:
        """Count an owner's entries matching the filters."""
        pass

    @abstractmethod
    async def sum_entries(
        self,
        owner_id: str,
        filters: Optional[EntryFilters] = None,
    ) -> Decimal:
        """
        Sum amounts of an owner's entries matching the filters.

        Returns:
            The total, Decimal("0") when nothing matches
        """
        pass

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_budget(self, budget: Budget) -> Budget:
        """
        Insert a new budget.

        Raises:
            DuplicateError: If a budget with the same
                (owner_id, category_id, month, year) already exists
        """
        pass

    @abstractmethod
    async def get_budget(self, budget_id: UUID) -> Optional[Budget]:
        """Retrieve a budget by id regardless of owner."""
        pass

    @abstractmethod
    async def find_budget(
        self,
        owner_id: str,
        category_id: UUID,
        month: int,
        year: int,
    ) -> Optional[Budget]:
        """Look a budget up by its unique key."""
        pass

    @abstractmethod
    async def update_budget(self, budget: Budget) -> Budget:
        """
        Replace the stored budget with the same id.

        Raises:
            NotFoundError: If the budget doesn't exist
        """
        pass

    @abstractmethod
    async def delete_budget(self, budget_id: UUID) -> bool:
        """Delete a budget by id. Returns True if a row was removed."""
        pass

    @abstractmethod
    async def list_budgets(
        self,
        owner_id: str,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[Budget]:
        """
        List an owner's budgets, optionally narrowed by month and/or year.

        Returns:
            Budgets ordered by category name ascending
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (one request).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        owner_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events, optionally for one owner.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a row that violates a uniqueness constraint."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class TransientStorageError(StorageError):
    """A failure that may succeed when retried (lock timeout, dropped connection)."""
    pass
