"""Calendar arithmetic that overflows instead of raising."""
from datetime import date, datetime, timedelta


def roll_date(year: int, month: int, day: int) -> date:
    """
    Build a date, letting out-of-range months and days spill over.

    Month 13 becomes January of the following year and day 31 of a
    30-day month becomes the 1st of the next month, so ``2月30号`` lands
    in early March rather than failing.

    Args:
        year: Calendar year
        month: Month number, may be outside 1..12
        day: Day of month, may be outside the month's length

    Returns:
        The normalized date
    """
    years, month_index = divmod(month - 1, 12)
    first_of_month = date(year + years, month_index + 1, 1)
    return first_of_month + timedelta(days=day - 1)


def add_months(value: datetime, months: int) -> datetime:
    """Shift a datetime by whole months, keeping its day number."""
    shifted = roll_date(value.year, value.month + months, value.day)
    return datetime.combine(shifted, value.time())


def add_years(value: datetime, years: int) -> datetime:
    """Shift a datetime by whole years; 29 February rolls to 1 March."""
    shifted = roll_date(value.year + years, value.month, value.day)
    return datetime.combine(shifted, value.time())
