"""
SQL Storage Implementation

DESIGN DECISION: SQLAlchemy Core over a relational database is the
persistent backend because:
1. Filtering, counting and summing happen in the database
2. The budget key (owner, category, month, year) is a real UNIQUE
   constraint, so concurrent creations cannot both commit
3. Any SQLAlchemy URL works (SQLite locally, PostgreSQL in production)

Retry policy: calls that fail with a transient driver error
(OperationalError: locked database, dropped connection) are retried
with exponential backoff, up to StorageSettings.retry_attempts.
Constraint violations are never retried. Statements run in a worker
thread, so the async stores never block the event loop.
"""

import asyncio
import json
import threading
from contextlib import nullcontext
from decimal import Decimal
from typing import Any, Callable, Optional, TypeVar
from uuid import UUID

import structlog
from sqlalchemy import (
    Column,
    DateTime,
    Engine,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    UniqueConstraint,
    and_,
    create_engine,
    delete,
    func,
    insert,
    or_,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.pool import StaticPool
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.config import StorageSettings, get_settings
from src.models.audit import AuditEvent, AuditEventType, AuditSeverity
from src.models.ledger import (
    Budget,
    Category,
    EntryFilters,
    EntryKind,
    LedgerEntry,
)
from src.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    TransientStorageError,
)


T = TypeVar("T")

logger = structlog.get_logger(__name__)

metadata = MetaData()

categories_table = Table(
    "categories",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(100), nullable=False),
    Column("kind", String(10), nullable=False),
    Column("icon", String(16), nullable=False),
    Column("color", String(7), nullable=False),
    Column("owner_id", String(64), nullable=True, index=True),
)

entries_table = Table(
    "ledger_entries",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("owner_id", String(64), nullable=False, index=True),
    Column("category_id", String(36), ForeignKey("categories.id"), nullable=False),
    Column("kind", String(10), nullable=False),
    Column("amount", Numeric(14, 2), nullable=False),
    Column("currency", String(10), nullable=False),
    Column("description", String(500), nullable=False, default=""),
    Column("occurred_on", DateTime, nullable=False, index=True),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

budgets_table = Table(
    "budgets",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("owner_id", String(64), nullable=False, index=True),
    Column("category_id", String(36), ForeignKey("categories.id"), nullable=False),
    Column("amount", Numeric(14, 2), nullable=False),
    Column("month", Integer, nullable=False),
    Column("year", Integer, nullable=False),
    Column("created_at", DateTime, nullable=False),
    UniqueConstraint(
        "owner_id", "category_id", "month", "year",
        name="uq_budget_owner_category_period",
    ),
)

audit_table = Table(
    "audit_events",
    metadata,
    Column("event_id", String(36), primary_key=True),
    Column("timestamp", DateTime, nullable=False, index=True),
    Column("event_type", String(40), nullable=False),
    Column("severity", String(10), nullable=False),
    Column("owner_id", String(64), nullable=True, index=True),
    Column("entity_type", String(20), nullable=True),
    Column("entity_id", String(36), nullable=True),
    Column("correlation_id", String(36), nullable=True, index=True),
    Column("description", String(500), nullable=False),
    Column("details_json", String, nullable=False, default="{}"),
    Column("error_code", String(40), nullable=True),
    Column("error_message", String, nullable=True),
)

# Category columns selected alongside entries and budgets
_CATEGORY_COLUMNS = [
    categories_table.c.id.label("cat_id"),
    categories_table.c.name.label("cat_name"),
    categories_table.c.kind.label("cat_kind"),
    categories_table.c.icon.label("cat_icon"),
    categories_table.c.color.label("cat_color"),
    categories_table.c.owner_id.label("cat_owner_id"),
]


def create_sql_engine(
    database_url: str,
    echo: bool = False,
) -> Engine:
    """
    Build an engine for a database URL.

    In-memory SQLite gets a single shared connection so every call
    sees the same database.
    """
    kwargs: dict[str, Any] = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    try:
        return create_engine(database_url, **kwargs)
    except Exception as e:
        raise ConnectionError(f"Failed to create database engine: {e}")


class SqlClient:
    """
    Low-level database wrapper.

    Owns the engine, creates the schema and runs every statement
    under the retry policy.
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        settings: Optional[StorageSettings] = None,
    ):
        self._settings = settings or get_settings().storage
        self._engine = engine or create_sql_engine(
            self._settings.database_url,
            echo=self._settings.echo_sql,
        )
        # In-memory SQLite is one shared connection; use it one call at a time
        self._serial = (
            threading.Lock()
            if isinstance(self._engine.pool, StaticPool)
            else nullcontext()
        )

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_schema(self) -> None:
        """Create all tables and constraints if they don't exist."""
        try:
            metadata.create_all(self._engine)
        except OperationalError as e:
            raise ConnectionError(f"Failed to create schema: {e}")

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._settings.retry_attempts),
            wait=wait_exponential(
                multiplier=0.1,
                max=self._settings.retry_max_wait_seconds,
            ),
            retry=retry_if_exception_type(TransientStorageError),
            before_sleep=self._log_retry,
            reraise=True,
        )

    @staticmethod
    def _log_retry(retry_state) -> None:
        logger.warning(
            "storage_retry",
            attempt=retry_state.attempt_number,
            error=str(retry_state.outcome.exception()),
        )

    async def run(self, operation: str, work: Callable[[Any], T]) -> T:
        """
        Execute `work(connection)` inside one transaction.

        The blocking driver call runs in a worker thread so concurrent
        reads overlap, and backoff between attempts awaits instead of
        sleeping.

        Raises:
            DuplicateError: On a uniqueness violation
            TransientStorageError: When retries are exhausted
            StorageError: On any other database failure
        """
        def attempt() -> T:
            try:
                with self._serial, self._engine.begin() as conn:
                    return work(conn)
            except IntegrityError as e:
                raise DuplicateError(f"{operation}: {e.orig}") from e
            except OperationalError as e:
                raise TransientStorageError(f"{operation}: {e.orig}") from e

        try:
            return await self._retrying()(asyncio.to_thread, attempt)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to {operation}: {e}") from e


def _row_to_category(row, prefix: str = "") -> Optional[Category]:
    mapping = row._mapping
    if mapping[f"{prefix}id"] is None:
        return None
    return Category(
        id=UUID(mapping[f"{prefix}id"]),
        name=mapping[f"{prefix}name"],
        kind=EntryKind(mapping[f"{prefix}kind"]),
        icon=mapping[f"{prefix}icon"],
        color=mapping[f"{prefix}color"],
        owner_id=mapping[f"{prefix}owner_id"],
    )


def _to_decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


class SqlLedgerStorage(LedgerStorageInterface):
    """
    SQL implementation of ledger storage.

    One row per category, entry and budget. Categories are joined in on
    every entry and budget read.
    """

    def __init__(self, client: Optional[SqlClient] = None):
        self._client = client or SqlClient()

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def save_category(self, category: Category) -> Category:
        values = {
            "id": str(category.id),
            "name": category.name,
            "kind": category.kind.value,
            "icon": category.icon,
            "color": category.color,
            "owner_id": category.owner_id,
        }
        await self._client.run(
            "save category",
            lambda conn: conn.execute(insert(categories_table).values(**values)),
        )
        return category

    async def get_category(self, category_id: UUID) -> Optional[Category]:
        stmt = select(categories_table).where(
            categories_table.c.id == str(category_id)
        )
        row = await self._client.run("get category", lambda conn: conn.execute(stmt).first())
        return _row_to_category(row) if row else None

    async def list_categories(self, owner_id: str) -> list[Category]:
        stmt = (
            select(categories_table)
            .where(or_(
                categories_table.c.owner_id.is_(None),
                categories_table.c.owner_id == owner_id,
            ))
            .order_by(categories_table.c.name)
        )
        rows = await self._client.run("list categories", lambda conn: conn.execute(stmt).all())
        return [_row_to_category(row) for row in rows]

    # -------------------------------------------------------------------------
    # Ledger entries
    # -------------------------------------------------------------------------

    @staticmethod
    def _entry_values(entry: LedgerEntry) -> dict:
        return {
            "id": str(entry.id),
            "owner_id": entry.owner_id,
            "category_id": str(entry.category_id),
            "kind": entry.kind.value,
            "amount": entry.amount,
            "currency": entry.currency,
            "description": entry.description,
            "occurred_on": entry.occurred_on,
            "created_at": entry.created_at,
            "updated_at": entry.updated_at,
        }

    @staticmethod
    def _row_to_entry(row) -> LedgerEntry:
        mapping = row._mapping
        return LedgerEntry(
            id=UUID(mapping["id"]),
            owner_id=mapping["owner_id"],
            category_id=UUID(mapping["category_id"]),
            kind=EntryKind(mapping["kind"]),
            amount=_to_decimal(mapping["amount"]),
            currency=mapping["currency"],
            description=mapping["description"],
            occurred_on=mapping["occurred_on"],
            created_at=mapping["created_at"],
            updated_at=mapping["updated_at"],
            category=_row_to_category(row, prefix="cat_"),
        )

    @staticmethod
    def _entry_select():
        return select(entries_table, *_CATEGORY_COLUMNS).select_from(
            entries_table.outerjoin(
                categories_table,
                entries_table.c.category_id == categories_table.c.id,
            )
        )

    @staticmethod
    def _entry_conditions(owner_id: str, filters: Optional[EntryFilters]) -> list:
        conditions = [entries_table.c.owner_id == owner_id]
        if filters is None:
            return conditions
        if filters.category_id is not None:
            conditions.append(entries_table.c.category_id == str(filters.category_id))
        if filters.kind is not None:
            conditions.append(entries_table.c.kind == filters.kind.value)
        if filters.date_from is not None:
            conditions.append(entries_table.c.occurred_on >= filters.date_from)
        if filters.date_to is not None:
            conditions.append(entries_table.c.occurred_on <= filters.date_to)
        return conditions

    async def _load_entry(self, entry_id: UUID) -> Optional[LedgerEntry]:
        stmt = self._entry_select().where(entries_table.c.id == str(entry_id))
        row = await self._client.run("get entry", lambda conn: conn.execute(stmt).first())
        return self._row_to_entry(row) if row else None

    async def save_entry(self, entry: LedgerEntry) -> LedgerEntry:
        values = self._entry_values(entry)
        await self._client.run(
            "save entry",
            lambda conn: conn.execute(insert(entries_table).values(**values)),
        )
        return await self._load_entry(entry.id)

    async def get_entry(self, entry_id: UUID) -> Optional[LedgerEntry]:
        return await self._load_entry(entry_id)

    async def update_entry(self, entry: LedgerEntry) -> LedgerEntry:
        values = self._entry_values(entry)
        values.pop("id")
        rowcount = await self._client.run(
            "update entry",
            lambda conn: conn.execute(
                update(entries_table)
                .where(entries_table.c.id == str(entry.id))
                .values(**values)
            ).rowcount,
        )
        if rowcount == 0:
            raise NotFoundError(f"Entry not found: {entry.id}")
        return await self._load_entry(entry.id)

    async def delete_entry(self, entry_id: UUID) -> bool:
        rowcount = await self._client.run(
            "delete entry",
            lambda conn: conn.execute(
                delete(entries_table).where(entries_table.c.id == str(entry_id))
            ).rowcount,
        )
        return rowcount > 0

    async def list_entries(
        self,
        owner_id: str,
        filters: Optional[EntryFilters] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[LedgerEntry]:
        stmt = (
            self._entry_select()
            .where(and_(*self._entry_conditions(owner_id, filters)))
            .order_by(entries_table.c.occurred_on.desc())
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = await self._client.run("list entries", lambda conn: conn.execute(stmt).all())
        return [self._row_to_entry(row) for row in rows]

    async def count_entries(
        self,
        owner_id: str,
        filters: Optional[EntryFilters] = None,
    ) -> int:
        stmt = select(func.count()).select_from(entries_table).where(
            and_(*self._entry_conditions(owner_id, filters))
        )
        return await self._client.run("count entries", lambda conn: conn.execute(stmt).scalar_one())

    async def sum_entries(
        self,
        owner_id: str,
        filters: Optional[EntryFilters] = None,
    ) -> Decimal:
        stmt = select(func.sum(entries_table.c.amount)).where(
            and_(*self._entry_conditions(owner_id, filters))
        )
        total = await self._client.run("sum entries", lambda conn: conn.execute(stmt).scalar())
        return _to_decimal(total)

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    @staticmethod
    def _row_to_budget(row) -> Budget:
        mapping = row._mapping
        return Budget(
            id=UUID(mapping["id"]),
            owner_id=mapping["owner_id"],
            category_id=UUID(mapping["category_id"]),
            amount=_to_decimal(mapping["amount"]),
            month=mapping["month"],
            year=mapping["year"],
            created_at=mapping["created_at"],
            category=_row_to_category(row, prefix="cat_"),
        )

    @staticmethod
    def _budget_select():
        return select(budgets_table, *_CATEGORY_COLUMNS).select_from(
            budgets_table.outerjoin(
                categories_table,
                budgets_table.c.category_id == categories_table.c.id,
            )
        )

    async def _load_budget(self, *conditions) -> Optional[Budget]:
        stmt = self._budget_select().where(and_(*conditions))
        row = await self._client.run("get budget", lambda conn: conn.execute(stmt).first())
        return self._row_to_budget(row) if row else None

    async def save_budget(self, budget: Budget) -> Budget:
        values = {
            "id": str(budget.id),
            "owner_id": budget.owner_id,
            "category_id": str(budget.category_id),
            "amount": budget.amount,
            "month": budget.month,
            "year": budget.year,
            "created_at": budget.created_at,
        }
        # IntegrityError from the unique constraint surfaces as DuplicateError
        await self._client.run(
            "save budget",
            lambda conn: conn.execute(insert(budgets_table).values(**values)),
        )
        return await self._load_budget(budgets_table.c.id == str(budget.id))

    async def get_budget(self, budget_id: UUID) -> Optional[Budget]:
        return await self._load_budget(budgets_table.c.id == str(budget_id))

    async def find_budget(
        self,
        owner_id: str,
        category_id: UUID,
        month: int,
        year: int,
    ) -> Optional[Budget]:
        return await self._load_budget(
            budgets_table.c.owner_id == owner_id,
            budgets_table.c.category_id == str(category_id),
            budgets_table.c.month == month,
            budgets_table.c.year == year,
        )

    async def update_budget(self, budget: Budget) -> Budget:
        rowcount = await self._client.run(
            "update budget",
            lambda conn: conn.execute(
                update(budgets_table)
                .where(budgets_table.c.id == str(budget.id))
                .values(
                    amount=budget.amount,
                    category_id=str(budget.category_id),
                    month=budget.month,
                    year=budget.year,
                )
            ).rowcount,
        )
        if rowcount == 0:
            raise NotFoundError(f"Budget not found: {budget.id}")
        return await self._load_budget(budgets_table.c.id == str(budget.id))

    async def delete_budget(self, budget_id: UUID) -> bool:
        rowcount = await self._client.run(
            "delete budget",
            lambda conn: conn.execute(
                delete(budgets_table).where(budgets_table.c.id == str(budget_id))
            ).rowcount,
        )
        return rowcount > 0

    async def list_budgets(
        self,
        owner_id: str,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[Budget]:
        conditions = [budgets_table.c.owner_id == owner_id]
        if month is not None:
            conditions.append(budgets_table.c.month == month)
        if year is not None:
            conditions.append(budgets_table.c.year == year)
        stmt = (
            self._budget_select()
            .where(and_(*conditions))
            .order_by(categories_table.c.name.asc())
        )
        rows = await self._client.run("list budgets", lambda conn: conn.execute(stmt).all())
        return [self._row_to_budget(row) for row in rows]


class SqlAuditStorage(AuditStorageInterface):
    """
    SQL implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[SqlClient] = None):
        self._client = client or SqlClient()

    @staticmethod
    def _row_to_event(row) -> AuditEvent:
        mapping = row._mapping
        return AuditEvent(
            event_id=UUID(mapping["event_id"]),
            timestamp=mapping["timestamp"],
            event_type=AuditEventType(mapping["event_type"]),
            severity=AuditSeverity(mapping["severity"]),
            owner_id=mapping["owner_id"],
            entity_type=mapping["entity_type"],
            entity_id=UUID(mapping["entity_id"]) if mapping["entity_id"] else None,
            correlation_id=(
                UUID(mapping["correlation_id"]) if mapping["correlation_id"] else None
            ),
            description=mapping["description"],
            details=json.loads(mapping["details_json"] or "{}"),
            error_code=mapping["error_code"],
            error_message=mapping["error_message"],
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        values = {
            "event_id": str(event.event_id),
            "timestamp": event.timestamp,
            "event_type": event.event_type.value,
            "severity": event.severity.value,
            "owner_id": event.owner_id,
            "entity_type": event.entity_type,
            "entity_id": str(event.entity_id) if event.entity_id else None,
            "correlation_id": str(event.correlation_id) if event.correlation_id else None,
            "description": event.description,
            "details_json": json.dumps(event.details, default=str),
            "error_code": event.error_code,
            "error_message": event.error_message,
        }
        await self._client.run(
            "append audit event",
            lambda conn: conn.execute(insert(audit_table).values(**values)),
        )
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        stmt = (
            select(audit_table)
            .where(audit_table.c.correlation_id == str(correlation_id))
            .order_by(audit_table.c.timestamp.asc())
        )
        rows = await self._client.run("get audit events", lambda conn: conn.execute(stmt).all())
        return [self._row_to_event(row) for row in rows]

    async def get_recent_events(
        self,
        owner_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        stmt = select(audit_table).order_by(audit_table.c.timestamp.desc()).limit(limit)
        if owner_id is not None:
            stmt = stmt.where(audit_table.c.owner_id == owner_id)
        rows = await self._client.run("get audit events", lambda conn: conn.execute(stmt).all())
        return [self._row_to_event(row) for row in rows]
