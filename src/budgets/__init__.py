"""Budget tracking package."""

from src.budgets.tracker import BudgetTracker, build_status

__all__ = ["BudgetTracker", "build_status"]
