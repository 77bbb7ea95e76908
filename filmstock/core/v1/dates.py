from __future__ import annotations

import calendar
from datetime import date
from typing import Iterable, Optional, Tuple

# Expiry strings come in four shapes (checked in this order):
#   YYYY        year only            -> Dec 31 of that year
#   MMYYYY      legacy 6 digits      -> day 1 of that month
#   MM/YYYY     month/year           -> day 1 of that month
#   MM/DD/YYYY  exact date
# Anything else does not parse.

YEAR = "year"
MONTH = "month"
DAY = "day"


def _parse_with_precision(date_string: str) -> Tuple[Optional[date], Optional[str]]:
    s = date_string or ""
    try:
        if len(s) == 4 and s.isdigit():
            return date(int(s), 12, 31), YEAR

        if len(s) == 6 and s.isdigit():
            month = int(s[:2])
            year = int(s[2:])
            if 1 <= month <= 12:
                return date(year, month, 1), MONTH

        parts = [p for p in s.split("/") if p]
        if len(parts) == 2 and all(p.isdigit() for p in parts):
            return date(int(parts[1]), int(parts[0]), 1), MONTH
        if len(parts) == 3 and all(p.isdigit() for p in parts):
            return date(int(parts[2]), int(parts[0]), int(parts[1])), DAY
    except ValueError:
        # Out-of-range month/day or year 0
        return None, None
    return None, None


def parse_expiry_date(date_string: str) -> Optional[date]:
    """Parse an expiry string into a date, or None if it matches no known shape."""
    return _parse_with_precision(date_string)[0]


def format_expiry_date(date_string: str) -> str:
    """Render an expiry string for display.

    Short MM/YYYY strings and bare years pass through, legacy MMYYYY gains a
    slash, anything else parseable is reformatted to MM/YYYY and unparseable
    input is returned unchanged.
    """
    if not date_string:
        return "Unknown"
    if "/" in date_string and len(date_string) <= 7:
        return date_string
    if len(date_string) == 4:
        return date_string
    if len(date_string) == 6 and date_string.isdigit():
        return f"{date_string[:2]}/{date_string[2:]}"
    parsed = parse_expiry_date(date_string)
    if parsed is not None:
        return parsed.strftime("%m/%Y")
    return date_string


def expiry_end_date(date_string: str) -> Optional[date]:
    """Last day covered by an expiry string, used for expiry comparisons.

    A year runs to Dec 31, a month to its last day, an exact date to itself.
    """
    parsed, precision = _parse_with_precision(date_string)
    if parsed is None:
        return None
    if precision == MONTH:
        last_day = calendar.monthrange(parsed.year, parsed.month)[1]
        return parsed.replace(day=last_day)
    return parsed


def is_date_expired(date_string: str, today: Optional[date] = None) -> bool:
    end = expiry_end_date(date_string)
    if end is None:
        return False
    return end < (today or date.today())


def any_expired(date_strings: Iterable[str], today: Optional[date] = None) -> bool:
    return any(is_date_expired(s, today) for s in (date_strings or []))


def split_expiry_field(value) -> list[str]:
    """Normalise a stored/imported expiry value to a list of strings.

    Accepts None, a list, or a comma-separated string (the legacy storage form).
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = [str(v).strip() for v in value]
    else:
        items = [p.strip() for p in str(value).split(",")]
    return [i for i in items if i]
