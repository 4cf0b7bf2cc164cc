"""
Calendar date helpers for dd/mm/yyyy deadlines
"""

import calendar
import logging
import re
from datetime import date, timedelta
from typing import Optional, Union

from utils.errors import DecodeError

logger = logging.getLogger(__name__)

DATE_FORMAT = "%d/%m/%Y"
EXPIRING_SOON_DAYS = 15

_DMY_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
# Older records stored createdAt as yyyy-mm-dd
_ISO_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

DateLike = Union[str, date]


def today() -> str:
    """Today's local calendar date as dd/mm/yyyy"""
    return format_date(date.today())


def parse(value: DateLike) -> date:
    """
    Parse a dd/mm/yyyy (or legacy yyyy-mm-dd) string into a date

    Raises:
        DecodeError: if the string is not a real calendar date
    """
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise DecodeError(f"Date must be a string, got {type(value).__name__}")

    text = value.strip()
    match = _DMY_PATTERN.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
    else:
        match = _ISO_PATTERN.match(text)
        if not match:
            raise DecodeError(f"Invalid date '{value}': expected dd/mm/yyyy", {"value": value})
        year, month, day = (int(part) for part in match.groups())

    try:
        return date(year, month, day)
    except ValueError as e:
        raise DecodeError(f"Invalid date '{value}': {e}", {"value": value}) from e


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def normalize(value: DateLike) -> str:
    """Canonical dd/mm/yyyy form of any accepted date input"""
    return format_date(parse(value))


def days_remaining(value: DateLike, reference: Optional[date] = None) -> int:
    """Whole days from today (or reference) until the date; negative once overdue"""
    reference = reference or date.today()
    return (parse(value) - reference).days


def add_days(value: DateLike, days: int) -> str:
    return format_date(parse(value) + timedelta(days=days))


def add_months(value: DateLike, months: int) -> str:
    """Calendar month arithmetic, clamping the day to the target month's length"""
    start = parse(value)
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return format_date(date(year, month, day))


def is_expiring_soon(
    value: DateLike,
    threshold: int = EXPIRING_SOON_DAYS,
    reference: Optional[date] = None,
) -> bool:
    """True when threshold or fewer days remain, overdue dates included"""
    return days_remaining(value, reference) <= threshold


def in_range(value: DateLike, start: DateLike, end: DateLike) -> bool:
    """Inclusive [start, end] check"""
    return parse(start) <= parse(value) <= parse(end)
