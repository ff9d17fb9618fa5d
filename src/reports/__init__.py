"""Reporting package."""

from src.reports.engine import ReportingEngine, group_by_category

__all__ = ["ReportingEngine", "group_by_category"]
