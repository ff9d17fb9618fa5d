"""
Data Models Package

This package contains all Pydantic models used in the Personal Ledger.
All data flowing through the system must conform to these schemas.
"""

from src.models.ledger import (
    Balance,
    Budget,
    BudgetCreate,
    BudgetUpdate,
    Category,
    EntryCreate,
    EntryFilters,
    EntryKind,
    EntryPage,
    EntryUpdate,
    LedgerEntry,
)
from src.models.period import Period
from src.models.reports import (
    BudgetStatus,
    CategoryTotal,
    MonthlyReport,
    MonthTrend,
    YearlyTrend,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Balance",
    "Budget",
    "BudgetCreate",
    "BudgetUpdate",
    "Category",
    "EntryCreate",
    "EntryFilters",
    "EntryKind",
    "EntryPage",
    "EntryUpdate",
    "LedgerEntry",
    "Period",
    # Derived views
    "BudgetStatus",
    "CategoryTotal",
    "MonthlyReport",
    "MonthTrend",
    "YearlyTrend",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
