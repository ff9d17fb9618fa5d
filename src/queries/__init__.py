"""Ledger query package."""

from src.queries.ledger import LedgerQueryService, parse_id

__all__ = ["LedgerQueryService", "parse_id"]
