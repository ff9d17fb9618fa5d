"""
Calendar Periods

A period is a (month, year) pair. Budget status and both reports read
the ledger through the same inclusive window:

    start = first day of the month at 00:00:00
    end   = last day of the month at 23:59:59

The last day is the day before the first of the following month, so
month lengths and leap years come from the calendar, never from a
hard-coded table. December resolves to the 31st of the same year.
"""

import calendar
from datetime import datetime, time

from pydantic import BaseModel, ConfigDict, Field


class Period(BaseModel):
    """One calendar month."""
    model_config = ConfigDict(frozen=True)

    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1, le=9999)

    @property
    def start(self) -> datetime:
        """First instant of the month."""
        return datetime(self.year, self.month, 1)

    @property
    def end(self) -> datetime:
        """Last whole second of the month (no sub-second precision)."""
        _, days_in_month = calendar.monthrange(self.year, self.month)
        return datetime.combine(
            self.start.replace(day=days_in_month),
            time(23, 59, 59),
        )

    def date_range(self) -> tuple[datetime, datetime]:
        """Inclusive (start, end) bounds for ledger queries."""
        return self.start, self.end

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    @classmethod
    def months_of(cls, year: int) -> list["Period"]:
        """The twelve periods of a year, January first."""
        return [cls(month=month, year=year) for month in range(1, 13)]

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"
