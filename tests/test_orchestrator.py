"""
Tests for the facade and its audit trail

Uses the in-memory stores. Verifies that mutations and rejections are
audited under one correlation id and that errors pass through unchanged.
"""

import pytest
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from src.audit import AuditLogger
from src.errors import (
    AccessDeniedError,
    BudgetConflictError,
    InputValidationError,
    ResourceNotFoundError,
)
from src.models.audit import AuditEvent, AuditEventType
from src.orchestrator import LedgerFacade, create_app_components
from src.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    StorageError,
    seed_default_categories,
)


class FailingAuditStorage(AuditStorageInterface):
    """An audit store that is always down."""

    async def append_event(self, event: AuditEvent) -> bool:
        raise StorageError("audit store unavailable")

    async def get_events_by_correlation_id(self, correlation_id):
        return []

    async def get_recent_events(self, owner_id=None, limit=100):
        return []


class BrokenLedgerStorage(InMemoryLedgerStorage):
    """A ledger store whose aggregate reads fail."""

    async def sum_entries(self, owner_id, filters=None):
        raise StorageError("database unavailable")


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def facade(storage, audit_storage, categories):
    return LedgerFacade(storage, audit_logger=AuditLogger(audit_storage))


async def events_of(audit_storage, correlation_id):
    return [
        e.event_type
        for e in await audit_storage.get_events_by_correlation_id(correlation_id)
    ]


class TestEntryAuditing:
    """Tests for entry operations through the facade."""

    async def test_create_is_audited(self, facade, audit_storage, categories):
        """Test a recorded entry leaves an entry_created event."""
        correlation_id = uuid4()
        entry = await facade.create_entry("alice", {
            "category_id": categories["Salary"].id,
            "kind": "INCOME",
            "amount": "3000",
        }, correlation_id=correlation_id)

        [event] = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert event.event_type == AuditEventType.ENTRY_CREATED
        assert event.entity_id == entry.id
        assert event.owner_id == "alice"
        assert event.details["amount"] == "3000"

    async def test_update_lists_changed_fields(self, facade, audit_storage, categories):
        """Test updates record which fields changed."""
        entry = await facade.create_entry("alice", {
            "category_id": categories["Transport"].id,
            "kind": "EXPENSE",
            "amount": "10",
        })
        correlation_id = uuid4()
        await facade.update_entry(
            entry.id, "alice",
            {"amount": "12", "description": "taxi"},
            correlation_id=correlation_id,
        )

        [event] = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert event.event_type == AuditEventType.ENTRY_UPDATED
        assert event.details["fields"] == ["amount", "description"]

    async def test_delete_is_audited(self, facade, audit_storage, categories):
        """Test deletion leaves an entry_deleted event."""
        entry = await facade.create_entry("alice", {
            "category_id": categories["Transport"].id,
            "kind": "EXPENSE",
            "amount": "10",
        })
        correlation_id = uuid4()
        await facade.delete_entry(str(entry.id), "alice", correlation_id=correlation_id)

        assert await events_of(audit_storage, correlation_id) == [
            AuditEventType.ENTRY_DELETED,
        ]
        assert (await facade.list_entries("alice")).total == 0

    async def test_forbidden_is_audited_and_raised(self, facade, audit_storage, categories):
        """Test access to a foreign entry is denied and logged."""
        entry = await facade.create_entry("alice", {
            "category_id": categories["Transport"].id,
            "kind": "EXPENSE",
            "amount": "10",
        })
        correlation_id = uuid4()

        with pytest.raises(AccessDeniedError):
            await facade.get_entry(entry.id, "bob", correlation_id=correlation_id)

        [event] = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert event.event_type == AuditEventType.ACCESS_DENIED
        assert event.owner_id == "bob"

    async def test_validation_is_audited_and_raised(self, facade, audit_storage, categories):
        """Test malformed input is rejected and logged without a write."""
        correlation_id = uuid4()

        with pytest.raises(InputValidationError):
            await facade.create_entry("alice", {
                "category_id": categories["Transport"].id,
                "kind": "EXPENSE",
                "amount": "0",
            }, correlation_id=correlation_id)

        assert await events_of(audit_storage, correlation_id) == [
            AuditEventType.VALIDATION_FAILED,
        ]
        assert (await facade.list_entries("alice")).total == 0


class TestBudgetAuditing:
    """Tests for budget operations through the facade."""

    async def test_conflict_audited_once(self, facade, audit_storage, categories):
        """Test a duplicate budget logs one conflict event."""
        request = {
            "category_id": categories["Housing"].id,
            "amount": "1200",
            "month": 3,
            "year": 2024,
        }
        await facade.create_budget("alice", request)
        correlation_id = uuid4()

        with pytest.raises(BudgetConflictError):
            await facade.create_budget("alice", request, correlation_id=correlation_id)

        [event] = await audit_storage.get_events_by_correlation_id(correlation_id)
        assert event.event_type == AuditEventType.BUDGET_CONFLICT
        assert event.details["period"] == "2024-03"

    async def test_budget_lifecycle(self, facade, audit_storage, categories):
        """Test create, update and delete each leave an event."""
        correlation_id = uuid4()
        budget = await facade.create_budget("alice", {
            "category_id": categories["Housing"].id,
            "amount": "1200",
            "month": 3,
            "year": 2024,
        }, correlation_id=correlation_id)
        await facade.update_budget(
            budget.id, "alice", {"amount": "1000"}, correlation_id=correlation_id
        )
        await facade.delete_budget(budget.id, "alice", correlation_id=correlation_id)

        assert await events_of(audit_storage, correlation_id) == [
            AuditEventType.BUDGET_CREATED,
            AuditEventType.BUDGET_UPDATED,
            AuditEventType.BUDGET_DELETED,
        ]

    async def test_foreign_budget_not_found(self, facade, audit_storage, categories):
        """Test another account's budget looks missing through the facade."""
        budget = await facade.create_budget("alice", {
            "category_id": categories["Housing"].id,
            "amount": "1200",
            "month": 3,
            "year": 2024,
        })
        with pytest.raises(ResourceNotFoundError):
            await facade.delete_budget(budget.id, "bob")

    async def test_status_and_reports(self, facade, audit_storage, categories):
        """Test read operations return results and log report events."""
        await facade.create_budget("alice", {
            "category_id": categories["Transport"].id,
            "amount": "200",
            "month": 3,
            "year": 2024,
        })
        await facade.create_entry("alice", {
            "category_id": categories["Transport"].id,
            "kind": "EXPENSE",
            "amount": "350",
            "occurred_on": datetime(2024, 3, 15),
        })
        correlation_id = uuid4()

        [status] = await facade.get_budget_status(
            "alice", 3, 2024, correlation_id=correlation_id
        )
        report = await facade.get_monthly_report(
            "alice", 3, 2024, correlation_id=correlation_id
        )
        trend = await facade.get_yearly_trend("alice", 2024, correlation_id=correlation_id)

        assert status.is_over_budget is True
        assert report.total_expense == Decimal("350")
        assert trend.months[2].expense == Decimal("350")
        assert await events_of(audit_storage, correlation_id) == [
            AuditEventType.REPORT_GENERATED,
        ] * 3


class TestFailureHandling:
    """Tests for infrastructure failures."""

    async def test_audit_failure_does_not_fail_operation(self, storage, categories):
        """Test a broken audit store never blocks a write."""
        facade = LedgerFacade(storage, audit_logger=AuditLogger(FailingAuditStorage()))
        entry = await facade.create_entry("alice", {
            "category_id": categories["Transport"].id,
            "kind": "EXPENSE",
            "amount": "10",
        })
        assert entry.amount == Decimal("10")

    async def test_storage_failure_audited_and_raised(self, audit_storage):
        """Test storage errors propagate and are logged."""
        storage = BrokenLedgerStorage()
        await seed_default_categories(storage)
        facade = LedgerFacade(storage, audit_logger=AuditLogger(audit_storage))
        correlation_id = uuid4()

        with pytest.raises(StorageError):
            await facade.get_yearly_trend("alice", 2024, correlation_id=correlation_id)

        assert await events_of(audit_storage, correlation_id) == [
            AuditEventType.STORAGE_ERROR,
        ]


class TestAppComponents:
    """Tests for the component factory."""

    async def test_memory_backend_is_seeded(self):
        """Test the factory seeds default categories."""
        facade, audit_storage = await create_app_components(backend="memory")
        categories = await facade.list_categories("alice")
        names = {c.name for c in categories}
        assert {"Salary", "Food & Groceries", "Subscriptions"} <= names
        assert len(categories) == 14
        assert isinstance(audit_storage, InMemoryAuditStorage)

    async def test_sql_backend(self, monkeypatch):
        """Test the SQL backend builds its schema and seeds once."""
        monkeypatch.setenv("LEDGER_STORAGE_DATABASE_URL", "sqlite://")
        facade, _ = await create_app_components(backend="sql")
        assert len(await facade.list_categories("alice")) == 14

    async def test_seeding_is_idempotent(self, storage):
        """Test seeding twice inserts nothing the second time."""
        first = await seed_default_categories(storage)
        second = await seed_default_categories(storage)
        assert len(first) == 14
        assert second == []
