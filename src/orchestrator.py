"""
Main Orchestrator for the Personal Ledger

This module ties the components together behind one facade and
defines the operations a front end calls:
1. Ledger entries (list, get, create, update, delete, balance, recent)
2. Budgets (list, create, update, delete, status)
3. Reports (monthly report, yearly trend)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every operation is scoped to one owner id, supplied by the caller
- Every mutation and every rejected request is audited
- Components never see each other's storage details

Authentication is not handled here: the owner id is trusted.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Optional, Union
from uuid import UUID

import structlog

from src.audit import AuditLogger, create_correlation_id
from src.budgets import BudgetTracker
from src.config import get_settings
from src.errors import BudgetConflictError, LedgerError
from src.models.ledger import (
    Balance,
    Budget,
    Category,
    EntryFilters,
    EntryPage,
    LedgerEntry,
)
from src.models.period import Period
from src.models.reports import BudgetStatus, MonthlyReport, YearlyTrend
from src.queries import LedgerQueryService, parse_id
from src.reports import ReportingEngine
from src.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    SqlAuditStorage,
    SqlClient,
    SqlLedgerStorage,
    StorageError,
    seed_default_categories,
)
from src.validation import InputValidator

logger = structlog.get_logger()


class LedgerFacade:
    """
    Owner-scoped entry point to the ledger, budget and report components.

    Rejections (not_found, forbidden, conflict, validation) are audited
    and re-raised unchanged. Storage failures are audited and re-raised
    as StorageError.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[InputValidator] = None,
    ):
        validator = validator or InputValidator()
        self._storage = storage
        self._validator = validator
        self._audit_logger = audit_logger or AuditLogger()  # Local-only logging

        self.ledger = LedgerQueryService(storage, validator)
        self.budgets = BudgetTracker(storage, self.ledger, validator)
        self.reports = ReportingEngine(self.ledger, validator)

    @asynccontextmanager
    async def _audited(
        self,
        operation: str,
        owner_id: str,
        entity_type: str,
        correlation_id: UUID,
    ):
        """Audit whatever a component raises, then let it propagate."""
        try:
            yield
        except BudgetConflictError:
            # Audited with the budget key by create_budget
            raise
        except LedgerError as e:
            await self._audit_logger.log_rejected(
                owner_id=owner_id,
                kind=e.kind,
                message=e.message,
                entity_type=entity_type,
                correlation_id=correlation_id,
            )
            raise
        except StorageError as e:
            await self._audit_logger.log_storage_error(
                operation=operation,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def list_categories(self, owner_id: str) -> list[Category]:
        """Default categories plus the owner's own, by name."""
        return await self._storage.list_categories(owner_id)

    # -------------------------------------------------------------------------
    # Ledger entries
    # -------------------------------------------------------------------------

    async def list_entries(
        self,
        owner_id: str,
        filters: Union[EntryFilters, dict[str, Any], None] = None,
        page: Optional[Any] = None,
        limit: Optional[Any] = None,
        correlation_id: Optional[UUID] = None,
    ) -> EntryPage:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("list entries", owner_id, "entry", correlation_id):
            return await self.ledger.list_entries(owner_id, filters, page, limit)

    async def get_entry(
        self,
        entry_id: Union[UUID, str],
        owner_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEntry:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("get entry", owner_id, "entry", correlation_id):
            return await self.ledger.get_entry(entry_id, owner_id)

    async def create_entry(
        self,
        owner_id: str,
        data: Any,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEntry:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("create entry", owner_id, "entry", correlation_id):
            entry = await self.ledger.create_entry(owner_id, data)

        await self._audit_logger.log_entry_created(
            owner_id=owner_id,
            entry_id=entry.id,
            kind=entry.kind.value,
            amount=entry.amount,
            correlation_id=correlation_id,
        )
        return entry

    async def update_entry(
        self,
        entry_id: Union[UUID, str],
        owner_id: str,
        data: Any,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerEntry:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("update entry", owner_id, "entry", correlation_id):
            changes = self._validator.entry_update(data)
            entry = await self.ledger.update_entry(entry_id, owner_id, changes)

        await self._audit_logger.log_entry_updated(
            owner_id=owner_id,
            entry_id=entry.id,
            fields=sorted(changes.changes()),
            correlation_id=correlation_id,
        )
        return entry

    async def delete_entry(
        self,
        entry_id: Union[UUID, str],
        owner_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("delete entry", owner_id, "entry", correlation_id):
            await self.ledger.delete_entry(entry_id, owner_id)

        await self._audit_logger.log_entry_deleted(
            owner_id=owner_id,
            entry_id=parse_id(entry_id, "Transaction"),
            correlation_id=correlation_id,
        )

    async def get_balance(self, owner_id: str) -> Balance:
        correlation_id = create_correlation_id()
        async with self._audited("get balance", owner_id, "entry", correlation_id):
            return await self.ledger.get_balance(owner_id)

    async def get_recent_entries(
        self,
        owner_id: str,
        limit: Optional[Any] = None,
    ) -> list[LedgerEntry]:
        correlation_id = create_correlation_id()
        async with self._audited("recent entries", owner_id, "entry", correlation_id):
            return await self.ledger.get_recent_entries(owner_id, limit)

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def list_budgets(
        self,
        owner_id: str,
        month: Optional[Any] = None,
        year: Optional[Any] = None,
    ) -> list[Budget]:
        correlation_id = create_correlation_id()
        async with self._audited("list budgets", owner_id, "budget", correlation_id):
            return await self.budgets.list_budgets(owner_id, month, year)

    async def create_budget(
        self,
        owner_id: str,
        data: Any,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("create budget", owner_id, "budget", correlation_id):
            request = self._validator.budget_create(data)
            period = Period(month=request.month, year=request.year)
            try:
                budget = await self.budgets.create_budget(owner_id, request)
            except BudgetConflictError:
                await self._audit_logger.log_budget_conflict(
                    owner_id=owner_id,
                    category_id=request.category_id,
                    period=period,
                    correlation_id=correlation_id,
                )
                raise

        await self._audit_logger.log_budget_created(
            owner_id=owner_id,
            budget_id=budget.id,
            period=period,
            amount=budget.amount,
            correlation_id=correlation_id,
        )
        return budget

    async def update_budget(
        self,
        budget_id: Union[UUID, str],
        owner_id: str,
        data: Any,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("update budget", owner_id, "budget", correlation_id):
            budget = await self.budgets.update_budget(budget_id, owner_id, data)

        await self._audit_logger.log_budget_updated(
            owner_id=owner_id,
            budget_id=budget.id,
            amount=budget.amount,
            correlation_id=correlation_id,
        )
        return budget

    async def delete_budget(
        self,
        budget_id: Union[UUID, str],
        owner_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("delete budget", owner_id, "budget", correlation_id):
            await self.budgets.delete_budget(budget_id, owner_id)

        await self._audit_logger.log_budget_deleted(
            owner_id=owner_id,
            budget_id=parse_id(budget_id, "Budget"),
            correlation_id=correlation_id,
        )

    async def get_budget_status(
        self,
        owner_id: str,
        month: Any,
        year: Any,
        correlation_id: Optional[UUID] = None,
    ) -> list[BudgetStatus]:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("budget status", owner_id, "budget", correlation_id):
            period = self._validator.period(month, year)
            statuses = await self.budgets.get_status(owner_id, period.month, period.year)

        await self._audit_logger.log_report_generated(
            owner_id=owner_id,
            report_type="budget_status",
            period=str(period),
            correlation_id=correlation_id,
        )
        return statuses

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    async def get_monthly_report(
        self,
        owner_id: str,
        month: Any,
        year: Any,
        correlation_id: Optional[UUID] = None,
    ) -> MonthlyReport:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("monthly report", owner_id, "report", correlation_id):
            report = await self.reports.get_monthly_report(owner_id, month, year)

        await self._audit_logger.log_report_generated(
            owner_id=owner_id,
            report_type="monthly",
            period=str(Period(month=report.month, year=report.year)),
            correlation_id=correlation_id,
        )
        return report

    async def get_yearly_trend(
        self,
        owner_id: str,
        year: Any,
        correlation_id: Optional[UUID] = None,
    ) -> YearlyTrend:
        correlation_id = correlation_id or create_correlation_id()
        async with self._audited("yearly trend", owner_id, "report", correlation_id):
            trend = await self.reports.get_yearly_trend(owner_id, year)

        await self._audit_logger.log_report_generated(
            owner_id=owner_id,
            report_type="yearly",
            period=str(trend.year),
            correlation_id=correlation_id,
        )
        return trend


async def create_app_components(
    backend: Optional[str] = None,
) -> tuple[LedgerFacade, AuditStorageInterface]:
    """
    Factory function to create all application components.

    Args:
        backend: "memory" or "sql". Defaults to StorageSettings.backend.

    Returns:
        (facade, audit_storage)

    Raises:
        ConnectionError: If the SQL database cannot be reached
    """
    backend = backend or get_settings().storage.backend

    if backend == "sql":
        client = SqlClient()
        await asyncio.to_thread(client.create_schema)
        storage = SqlLedgerStorage(client)
        audit_storage = SqlAuditStorage(client)
    else:
        storage = InMemoryLedgerStorage()
        audit_storage = InMemoryAuditStorage()

    await seed_default_categories(storage)
    logger.info("app_components_ready", backend=backend)

    facade = LedgerFacade(
        storage=storage,
        audit_logger=AuditLogger(audit_storage),
    )
    return facade, audit_storage
