"""
Core Data Models for the Personal Ledger

These models define the strict schemas for everything that is stored:
categories, ledger entries and budgets, plus the typed inputs the
components accept from callers.

DESIGN DECISION: Amounts are Decimal end to end. Currency codes are
stored for information only; nothing here converts between currencies.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)


# =============================================================================
# ENUMS
# =============================================================================

class EntryKind(str, Enum):
    """Direction of money for an entry or a category."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


def coerce_datetime(value: Any) -> Optional[datetime]:
    """
    Normalize caller supplied dates to naive UTC datetimes.

    Accepts ISO strings ("2024-01-15", "2024-01-15T10:30:00Z"),
    date and datetime objects. Empty strings mean "not supplied".
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip())
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time())
    if isinstance(value, datetime) and value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def utcnow() -> datetime:
    """Current instant as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Amounts are stored as NUMERIC(14, 2): at most 12 integer digits and
# 2 decimal places. Anything finer is rejected, never rounded.
EntryAmount = Annotated[Decimal, Field(gt=0, max_digits=14, decimal_places=2)]
BudgetAmount = Annotated[Decimal, Field(ge=0, max_digits=14, decimal_places=2)]


# =============================================================================
# STORED RECORDS
# =============================================================================

class Category(BaseModel):
    """
    A category entries and budgets are tagged with.

    Default categories are shared (no owner); personal categories
    belong to exactly one account.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    kind: EntryKind
    icon: str = Field(default="📦", max_length=16)
    color: str = Field(default="#6B7280", pattern="^#[0-9A-Fa-f]{6}$")
    owner_id: Optional[str] = Field(
        default=None,
        description="Owning account; None for shared default categories"
    )

    @property
    def is_default(self) -> bool:
        return self.owner_id is None


class LedgerEntry(BaseModel):
    """
    A single dated income or expense record.

    Owned exclusively by one account. The category is attached by the
    store on every read so callers never need a second lookup.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)
    category_id: UUID
    kind: EntryKind
    amount: EntryAmount = Field(..., description="Face value, currency agnostic")
    currency: str = Field(default="USD", min_length=1, max_length=10)
    description: str = Field(default="", max_length=500)
    occurred_on: datetime
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    category: Optional[Category] = None


class Budget(BaseModel):
    """
    A spending ceiling for one category in one calendar month.

    At most one budget exists per (owner, category, month, year);
    the store enforces this.
    """

    id: UUID = Field(default_factory=uuid4)
    owner_id: str = Field(..., min_length=1)
    category_id: UUID
    amount: BudgetAmount
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1, le=9999)
    created_at: datetime = Field(default_factory=utcnow)

    category: Optional[Category] = None

    @property
    def unique_key(self) -> tuple[str, UUID, int, int]:
        return (self.owner_id, self.category_id, self.month, self.year)


# =============================================================================
# CALLER INPUTS
# =============================================================================

class EntryCreate(BaseModel):
    """Fields a caller supplies to record a new entry."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    category_id: UUID
    kind: EntryKind
    amount: EntryAmount
    currency: Optional[str] = Field(default=None, max_length=10)
    description: Optional[str] = Field(default=None, max_length=500)
    occurred_on: Optional[datetime] = None

    @field_validator('occurred_on', mode='before')
    @classmethod
    def parse_occurred_on(cls, v: Any) -> Optional[datetime]:
        return coerce_datetime(v)


class EntryUpdate(BaseModel):
    """
    Partial update of an entry.

    Only fields the caller actually set are applied. An empty or
    missing date leaves the stored date untouched.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    category_id: Optional[UUID] = None
    kind: Optional[EntryKind] = None
    amount: Optional[EntryAmount] = None
    currency: Optional[str] = Field(default=None, max_length=10)
    description: Optional[str] = Field(default=None, max_length=500)
    occurred_on: Optional[datetime] = None

    @field_validator('occurred_on', mode='before')
    @classmethod
    def parse_occurred_on(cls, v: Any) -> Optional[datetime]:
        return coerce_datetime(v)

    def changes(self) -> dict[str, Any]:
        """Supplied, non-null fields as a dict ready to apply."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class EntryFilters(BaseModel):
    """AND-combined filters for listing entries."""
    model_config = ConfigDict(extra="forbid")

    category_id: Optional[UUID] = None
    kind: Optional[EntryKind] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    @field_validator('date_from', 'date_to', mode='before')
    @classmethod
    def parse_bounds(cls, v: Any) -> Optional[datetime]:
        return coerce_datetime(v)

    def matches(self, entry: LedgerEntry) -> bool:
        """Check an entry against every supplied filter."""
        if self.category_id is not None and entry.category_id != self.category_id:
            return False
        if self.kind is not None and entry.kind != self.kind:
            return False
        if self.date_from is not None and entry.occurred_on < self.date_from:
            return False
        if self.date_to is not None and entry.occurred_on > self.date_to:
            return False
        return True


class BudgetCreate(BaseModel):
    """Fields a caller supplies to create a budget."""
    model_config = ConfigDict(extra="forbid")

    category_id: UUID
    amount: BudgetAmount
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1, le=9999)


class BudgetUpdate(BaseModel):
    """Only the target amount of a budget can change."""
    model_config = ConfigDict(extra="forbid")

    amount: BudgetAmount


# =============================================================================
# READ RESULTS
# =============================================================================

class EntryPage(BaseModel):
    """One page of entries plus pagination metadata."""

    entries: list[LedgerEntry] = Field(default_factory=list)
    total: int = Field(ge=0)
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total_pages: int = Field(ge=0)


class Balance(BaseModel):
    """Lifetime totals for one account."""

    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")

    @computed_field
    @property
    def balance(self) -> Decimal:
        return self.total_income - self.total_expense
