"""
Component Boundary Errors

Every failure a caller can see is one of four kinds:

- not_found:  the entry or budget does not exist (or, for budgets,
              belongs to someone else)
- forbidden:  the ledger entry exists but belongs to someone else
- conflict:   a budget already exists for the category and period
- validation: malformed input, rejected before any store access

A uniqueness violation raised by the store is reported as conflict.
Any other storage failure is an infrastructure fault and propagates as
src.services.storage.StorageError.
"""

from typing import Optional


class LedgerError(Exception):
    """Base class for typed failures reported to callers."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class ResourceNotFoundError(LedgerError):
    """Referenced entry or budget does not exist for this owner."""

    kind = "not_found"


class AccessDeniedError(LedgerError):
    """Entry exists but is owned by another account."""

    kind = "forbidden"


class BudgetConflictError(LedgerError):
    """A budget already exists for (owner, category, month, year)."""

    kind = "conflict"

    def __init__(
        self,
        message: str = "Budget already exists for this category and period",
    ):
        super().__init__(message)


class InputValidationError(LedgerError):
    """
    Caller input failed validation.

    `issues` holds one {"field", "message"} dict per problem found.
    """

    kind = "validation"

    def __init__(self, message: str, issues: Optional[list[dict]] = None):
        super().__init__(message)
        self.issues = issues or []

    def to_dict(self) -> dict:
        return {**super().to_dict(), "issues": self.issues}
