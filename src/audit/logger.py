"""
Audit Logger

DESIGN DECISION: Every mutation of an account's ledger or budgets is
logged, and so is every rejected request. This provides:
1. Complete traceability
2. Debugging capability
3. A per-account history of changes

The audit logger:
- Is async so it fits the component call chain
- Gracefully handles failures (a failed audit write never fails the
  operation that triggered it)
- Supports correlation IDs to trace the events of one request
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.config import get_settings
from src.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from src.models.period import Period
from src.services.storage import AuditStorageInterface


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog to render JSON lines through stdlib logging."""
    logging.basicConfig(format="%(message)s", level=log_level)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(get_settings().app.log_level)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit store (for persistence and per-account history)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_entry_created(
        self,
        owner_id: str,
        entry_id: UUID,
        kind: str,
        amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.entry_created(
            owner_id=owner_id,
            entry_id=entry_id,
            kind=kind,
            amount=str(amount),
            correlation_id=correlation_id,
        ))

    async def log_entry_updated(
        self,
        owner_id: str,
        entry_id: UUID,
        fields: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.entry_updated(
            owner_id=owner_id,
            entry_id=entry_id,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_entry_deleted(
        self,
        owner_id: str,
        entry_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.entry_deleted(
            owner_id=owner_id,
            entry_id=entry_id,
            correlation_id=correlation_id,
        ))

    async def log_budget_created(
        self,
        owner_id: str,
        budget_id: UUID,
        period: Period,
        amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.budget_created(
            owner_id=owner_id,
            budget_id=budget_id,
            period=str(period),
            amount=str(amount),
            correlation_id=correlation_id,
        ))

    async def log_budget_updated(
        self,
        owner_id: str,
        budget_id: UUID,
        amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.budget_updated(
            owner_id=owner_id,
            budget_id=budget_id,
            amount=str(amount),
            correlation_id=correlation_id,
        ))

    async def log_budget_deleted(
        self,
        owner_id: str,
        budget_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.budget_deleted(
            owner_id=owner_id,
            budget_id=budget_id,
            correlation_id=correlation_id,
        ))

    async def log_budget_conflict(
        self,
        owner_id: str,
        category_id: UUID,
        period: Period,
        correlation_id: UUID,
    ) -> None:
        """Log a create that hit an existing budget for the same key."""
        await self.log(AuditEventBuilder.budget_conflict(
            owner_id=owner_id,
            category_id=category_id,
            period=str(period),
            correlation_id=correlation_id,
        ))

    async def log_report_generated(
        self,
        owner_id: str,
        report_type: str,
        period: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.report_generated(
            owner_id=owner_id,
            report_type=report_type,
            period=period,
            correlation_id=correlation_id,
        ))

    async def log_rejected(
        self,
        owner_id: str,
        kind: str,
        message: str,
        entity_type: Optional[str],
        correlation_id: UUID,
    ) -> None:
        """Log a request refused with not_found, forbidden or validation."""
        await self.log(AuditEventBuilder.request_rejected(
            owner_id=owner_id,
            kind=kind,
            message=message,
            entity_type=entity_type,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a request and pass it through every
    audit call the request makes.
    """
    return uuid4()
