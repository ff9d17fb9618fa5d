"""
Audit Models for the Personal Ledger

Every change to an account's ledger or budgets is logged for audit
purposes. This provides:
1. Complete traceability of all mutations
2. Debugging information when things go wrong
3. A record of rejected operations (conflicts, denied access)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from src.models.ledger import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger entries
    ENTRY_CREATED = "entry_created"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"

    # Budgets
    BUDGET_CREATED = "budget_created"
    BUDGET_UPDATED = "budget_updated"
    BUDGET_DELETED = "budget_deleted"
    BUDGET_CONFLICT = "budget_conflict"

    # Read side
    REPORT_GENERATED = "report_generated"

    # Rejections
    ACCESS_DENIED = "access_denied"
    VALIDATION_FAILED = "validation_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every mutation creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who acted
    owner_id: Optional[str] = Field(
        default=None,
        description="Account that triggered the event"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity ('entry', 'budget', 'report')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events of one request"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_created(owner_id, entry_id, ...)
        event = AuditEventBuilder.budget_conflict(owner_id, ...)
    """

    @staticmethod
    def entry_created(
        owner_id: str,
        entry_id: UUID,
        kind: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_CREATED,
            owner_id=owner_id,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"{kind.capitalize()} entry recorded: {amount}",
            details={"kind": kind, "amount": amount},
        )

    @staticmethod
    def entry_updated(
        owner_id: str,
        entry_id: UUID,
        fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_UPDATED,
            owner_id=owner_id,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Entry updated ({', '.join(fields) or 'no changes'})",
            details={"fields": fields},
        )

    @staticmethod
    def entry_deleted(
        owner_id: str,
        entry_id: UUID,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            owner_id=owner_id,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description="Entry deleted",
        )

    @staticmethod
    def budget_created(
        owner_id: str,
        budget_id: UUID,
        period: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CREATED,
            owner_id=owner_id,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Budget of {amount} set for {period}",
            details={"period": period, "amount": amount},
        )

    @staticmethod
    def budget_updated(
        owner_id: str,
        budget_id: UUID,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_UPDATED,
            owner_id=owner_id,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Budget amount changed to {amount}",
            details={"amount": amount},
        )

    @staticmethod
    def budget_deleted(
        owner_id: str,
        budget_id: UUID,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_DELETED,
            owner_id=owner_id,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description="Budget deleted",
        )

    @staticmethod
    def budget_conflict(
        owner_id: str,
        category_id: UUID,
        period: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CONFLICT,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="budget",
            correlation_id=correlation_id,
            description=f"Budget already exists for this category in {period}",
            details={"category_id": str(category_id), "period": period},
            error_code="conflict",
        )

    @staticmethod
    def report_generated(
        owner_id: str,
        report_type: str,
        period: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPORT_GENERATED,
            severity=AuditSeverity.DEBUG,
            owner_id=owner_id,
            entity_type="report",
            correlation_id=correlation_id,
            description=f"{report_type} report generated for {period}",
            details={"report_type": report_type, "period": period},
        )

    @staticmethod
    def request_rejected(
        owner_id: str,
        kind: str,
        message: str,
        entity_type: Optional[str] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        event_type = (
            AuditEventType.ACCESS_DENIED
            if kind == "forbidden"
            else AuditEventType.VALIDATION_FAILED
        )
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type=entity_type,
            correlation_id=correlation_id,
            description=f"Request rejected: {kind}",
            error_code=kind,
            error_message=message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation},
            correlation_id=correlation_id,
        )
