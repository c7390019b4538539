"""Date helpers for fiscal-year windows, SAM.gov date strings and month buckets."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any


# Format SAM.gov expects for postedFrom/postedTo
SAM_DATE_FORMAT = "%m/%d/%Y"

UNKNOWN_MONTH = "Unknown"

# Date-only formats tried after ISO-8601 parsing fails
FALLBACK_DATE_FORMATS = [
    "%m/%d/%Y",  # US format: 01/15/2023
    "%Y/%m/%d",  # ISO-like with slashes: 2023/01/15
    "%Y%m%d",  # 20230115
]


def fiscal_year_window(fiscal_year: int) -> tuple[str, str]:
    """Return the federal fiscal year as ISO start/end dates.

    FY N runs from Oct 1 of N-1 through Sep 30 of N.

    Examples:
        >>> fiscal_year_window(2024)
        ('2023-10-01', '2024-09-30')
    """
    return f"{fiscal_year - 1}-10-01", f"{fiscal_year}-09-30"


def format_sam_date(value: date) -> str:
    """Format a date as MM/dd/yyyy."""
    return value.strftime(SAM_DATE_FORMAT)


def trailing_window(today: date, days: int) -> tuple[str, str]:
    """Return (from, to) SAM.gov date strings covering the last `days` days."""
    return format_sam_date(today - timedelta(days=days)), format_sam_date(today)


def parse_award_date(value: Any) -> datetime | None:
    """Parse an upstream award date into an aware UTC datetime.

    Accepts date/datetime objects, ISO-8601 strings (with or without time, with
    a trailing ``Z`` or an offset) and a few common date-only formats. Naive
    values are taken to be UTC. Returns None when the value can't be parsed.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            for fmt in FALLBACK_DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
            else:
                return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def month_bucket(value: Any) -> str:
    """Return the UTC year-month (``YYYY-MM``) of a date, or ``"Unknown"``.

    Examples:
        >>> month_bucket("2024-03-15")
        '2024-03'
        >>> month_bucket("2024-03-31T23:30:00-05:00")
        '2024-04'
        >>> month_bucket("not a date")
        'Unknown'
    """
    parsed = parse_award_date(value)
    if parsed is None:
        return UNKNOWN_MONTH
    return parsed.strftime("%Y-%m")
