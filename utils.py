"""Financial-year calendar helpers."""

from __future__ import annotations

from calendar import monthrange
from datetime import date, timedelta

from models import FinancialYear

# Months in financial-year order: column order and Tab order in the editor
FY_MONTHS = [
    (4, "Apr"),
    (5, "May"),
    (6, "Jun"),
    (7, "Jul"),
    (8, "Aug"),
    (9, "Sep"),
    (10, "Oct"),
    (11, "Nov"),
    (12, "Dec"),
    (1, "Jan"),
    (2, "Feb"),
    (3, "Mar"),
]


def months_in_order() -> list[tuple[int, str]]:
    """Get the 12 (month, name) pairs from April to March."""
    return list(FY_MONTHS)


def month_to_year(month: int, fy: FinancialYear) -> int:
    """Get the calendar year a month falls in for the given financial year."""
    return fy.start if month >= 4 else fy.end


def is_target_in_financial_year(month: int, year: int, fy: FinancialYear) -> bool:
    return 1 <= month <= 12 and year == month_to_year(month, fy)


def financial_year_from_month(month: int, year: int) -> FinancialYear:
    """Get the financial year that contains a calendar month."""
    if month >= 4:
        return FinancialYear.starting(year)
    return FinancialYear.starting(year - 1)


def financial_year_containing(today: date) -> FinancialYear:
    return financial_year_from_month(today.month, today.year)


def financial_years(today: date) -> list[FinancialYear]:
    """Selectable years: two before the current one, the current one and the next."""
    current = financial_year_containing(today)
    return [FinancialYear.starting(current.start + offset) for offset in range(-2, 2)]


def financial_year_date_range(fy: FinancialYear) -> tuple[date, date]:
    return date(fy.start, 4, 1), date(fy.end, 3, 31)


def get_uk_holidays(year: int) -> dict[date, str]:
    """Get England bank holidays for a given year."""
    import holidays
    uk_holidays = holidays.UK(years=year, subdiv='ENG')  # type: ignore[attr-defined]
    return {d: name for d, name in uk_holidays.items()}


def working_days_in_month(month: int, fy: FinancialYear) -> int:
    """Count weekdays in a financial-year month, excluding England bank holidays."""
    year = month_to_year(month, fy)
    bank_holidays = get_uk_holidays(year)

    count = 0
    current = date(year, month, 1)
    last = date(year, month, monthrange(year, month)[1])
    while current <= last:
        # Monday=0 to Friday=4 are weekdays
        if current.weekday() < 5 and current not in bank_holidays:
            count += 1
        current += timedelta(days=1)
    return count
