"""
Input Validation

DESIGN DECISION: Every caller input is parsed into a typed model before
any store access. Malformed input (non-positive amount, month outside
1..12, unparseable date, bad page bounds) is rejected here with an
InputValidationError that lists each problem.

IMPORTANT: Validation NEVER silently fixes issues. An over-sized page
is rejected, not clamped.
"""

from typing import Any, Optional, TypeVar, Union

from pydantic import BaseModel, Field, ValidationError

from src.config import get_settings
from src.errors import InputValidationError
from src.models.ledger import (
    BudgetCreate,
    BudgetUpdate,
    EntryCreate,
    EntryFilters,
    EntryUpdate,
)
from src.models.period import Period


ModelT = TypeVar("ModelT", bound=BaseModel)


class PageRequest(BaseModel):
    """Requested page of a listing."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1)


class InputValidator:
    """
    Turns raw caller input (dicts, strings, models) into typed inputs.

    Raises InputValidationError on the first malformed input; the
    error carries every issue pydantic found in it.
    """

    def __init__(self):
        self._settings = get_settings().ledger

    def _parse(
        self,
        model: type[ModelT],
        data: Union[ModelT, dict[str, Any]],
        what: str,
    ) -> ModelT:
        if isinstance(data, model):
            return data
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise InputValidationError(
                f"Invalid {what}",
                issues=self._issues(e),
            ) from e

    @staticmethod
    def _issues(error: ValidationError) -> list[dict]:
        return [
            {
                "field": ".".join(str(part) for part in issue["loc"]) or "input",
                "message": issue["msg"],
            }
            for issue in error.errors()
        ]

    def entry_create(self, data: Union[EntryCreate, dict[str, Any]]) -> EntryCreate:
        return self._parse(EntryCreate, data, "entry")

    def entry_update(self, data: Union[EntryUpdate, dict[str, Any]]) -> EntryUpdate:
        return self._parse(EntryUpdate, data, "entry update")

    def filters(
        self,
        data: Union[EntryFilters, dict[str, Any], None],
    ) -> EntryFilters:
        return self._parse(EntryFilters, data or {}, "filters")

    def page(self, page: Optional[Any] = None, limit: Optional[Any] = None) -> PageRequest:
        """Validate pagination, applying configured defaults for missing values."""
        request = self._parse(
            PageRequest,
            {
                "page": 1 if page is None else page,
                "limit": self._settings.default_page_size if limit is None else limit,
            },
            "pagination",
        )
        if request.limit > self._settings.max_page_size:
            raise InputValidationError(
                "Invalid pagination",
                issues=[{
                    "field": "limit",
                    "message": (
                        f"Limit must not exceed {self._settings.max_page_size}"
                    ),
                }],
            )
        return request

    def limit(self, limit: Optional[Any] = None) -> int:
        """Validate a bare result limit (recent entries)."""
        if limit is None:
            limit = self._settings.recent_entries_limit
        return self.page(limit=limit).limit

    def budget_create(self, data: Union[BudgetCreate, dict[str, Any]]) -> BudgetCreate:
        return self._parse(BudgetCreate, data, "budget")

    def budget_update(self, data: Union[BudgetUpdate, dict[str, Any]]) -> BudgetUpdate:
        return self._parse(BudgetUpdate, data, "budget update")

    def period(self, month: Any, year: Any) -> Period:
        return self._parse(Period, {"month": month, "year": year}, "period")

    def year(self, year: Any) -> int:
        # January is always valid, so this checks the year alone
        return self.period(1, year).year

    def optional_month_year(
        self,
        month: Optional[Any],
        year: Optional[Any],
    ) -> tuple[Optional[int], Optional[int]]:
        """Validate independent, optional month and year filters."""
        if month is not None:
            month = self.period(month, 2000).month
        if year is not None:
            year = self.year(year)
        return month, year


def get_user_friendly_summary(error: InputValidationError) -> str:
    """
    Render validation issues as a short message for the front end.
    """
    if not error.issues:
        return error.message
    lines = [f"{error.message}:"]
    for issue in error.issues:
        lines.append(f"  • {issue['field']}: {issue['message']}")
    return "\n".join(lines)
