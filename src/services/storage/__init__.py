"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
SQL (SQLAlchemy) is the persistent backend; the in-memory backend serves
tests and demos. Both honour the same contract.
"""

from src.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    TransientStorageError,
)
from src.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from src.services.storage.sql import (
    SqlAuditStorage,
    SqlClient,
    SqlLedgerStorage,
    create_sql_engine,
)
from src.services.storage.seed import DEFAULT_CATEGORIES, seed_default_categories

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    "TransientStorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    # SQL implementation
    "SqlAuditStorage",
    "SqlClient",
    "SqlLedgerStorage",
    "create_sql_engine",
    # Seed data
    "DEFAULT_CATEGORIES",
    "seed_default_categories",
]
