"""Calendar bucketing keys for payroll periods and reports."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from wage_ledger.errors import ValidationError


@dataclass(frozen=True)
class PeriodMarkers:
    """Week, month and year a transaction is reported under."""

    week_number: int
    month_number: int
    year: int


def as_date(value: date | datetime | str) -> date:
    """Coerce a date, datetime or ISO string into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            raise ValidationError(f"Invalid date: {value!r}", field="date") from None
    raise ValidationError(f"Invalid date: {value!r}", field="date")


def week_number(value: date | datetime | str) -> int:
    """ISO-8601 week number (weeks start Monday, week 1 holds the first Thursday)."""
    return as_date(value).isocalendar()[1]


def month_number(value: date | datetime | str) -> int:
    return as_date(value).month


def year(value: date | datetime | str) -> int:
    """Calendar year. Note this is not the ISO week-numbering year."""
    return as_date(value).year


def period_markers(value: date | datetime | str) -> PeriodMarkers:
    d = as_date(value)
    return PeriodMarkers(
        week_number=week_number(d),
        month_number=month_number(d),
        year=year(d),
    )
