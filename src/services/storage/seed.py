"""
Default Categories

Shared categories every account can tag entries and budgets with.
Seeding is idempotent: a default is only inserted when no default of
the same name and kind exists yet.
"""

import structlog

from src.models.ledger import Category, EntryKind
from src.services.storage.interface import LedgerStorageInterface

logger = structlog.get_logger()


DEFAULT_CATEGORIES: list[tuple[str, EntryKind, str, str]] = [
    # Income
    ("Salary", EntryKind.INCOME, "💰", "#10B981"),
    ("Freelance", EntryKind.INCOME, "💻", "#6366F1"),
    ("Investments", EntryKind.INCOME, "📈", "#8B5CF6"),
    ("Other Income", EntryKind.INCOME, "💵", "#14B8A6"),
    # Expense
    ("Food & Groceries", EntryKind.EXPENSE, "🛒", "#EF4444"),
    ("Transport", EntryKind.EXPENSE, "🚗", "#F59E0B"),
    ("Housing", EntryKind.EXPENSE, "🏠", "#3B82F6"),
    ("Utilities", EntryKind.EXPENSE, "💡", "#06B6D4"),
    ("Entertainment", EntryKind.EXPENSE, "🎬", "#EC4899"),
    ("Healthcare", EntryKind.EXPENSE, "🏥", "#F43F5E"),
    ("Education", EntryKind.EXPENSE, "📚", "#8B5CF6"),
    ("Shopping", EntryKind.EXPENSE, "🛍️", "#D946EF"),
    ("Restaurants", EntryKind.EXPENSE, "🍽️", "#FB923C"),
    ("Subscriptions", EntryKind.EXPENSE, "📱", "#64748B"),
]


async def seed_default_categories(storage: LedgerStorageInterface) -> list[Category]:
    """
    Insert any missing default categories.

    Returns:
        The categories inserted by this call (empty when already seeded)
    """
    # An empty owner id sees only the shared defaults
    existing = {
        (category.name, category.kind)
        for category in await storage.list_categories(owner_id="")
        if category.is_default
    }

    created = []
    for name, kind, icon, color in DEFAULT_CATEGORIES:
        if (name, kind) in existing:
            continue
        created.append(
            await storage.save_category(
                Category(name=name, kind=kind, icon=icon, color=color)
            )
        )

    if created:
        logger.info("default_categories_seeded", count=len(created))
    return created
