"""
Personal Ledger - Source Package

Income and expense tracking for individual accounts: a filterable,
paginated ledger, per-category monthly budgets with budget-versus-actual
status, and monthly and yearly reports.

DESIGN PRINCIPLES:
1. Every read is scoped to one owner
2. Fail early, fail visibly
3. No silent corrections
4. Every mutation must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Personal Ledger Team"
