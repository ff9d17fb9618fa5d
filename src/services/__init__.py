"""Services package."""

from src.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
    TransientStorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
    "TransientStorageError",
]
