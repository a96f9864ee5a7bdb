"""Date and month parsing utilities."""

import re
from datetime import UTC, date, datetime, timedelta
from typing import Any, Mapping, Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from finclose.domain.errors import ValidationError, invalid_month

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_MONTH_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})")

# Field names under which legacy payloads carried the record date
DATE_FIELDS = ("date", "fecha", "invoice_date", "invoiceDate")


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports absolute dates ("2024-01-15", "January 15, 2024", etc.) and
    "today", "yesterday", "this month", "last month".

    Args:
        date_str: Date string in various formats

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = date.today()

    relative_dates = {
        "today": today,
        "yesterday": today - timedelta(days=1),
        "this month": today.replace(day=1),
        "last month": (today - relativedelta(months=1)).replace(day=1),
    }
    if date_str in relative_dates:
        return relative_dates[date_str]

    try:
        dt = date_parser.parse(date_str)
        return dt.date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")


def coerce_date(value: Any) -> Optional[date]:
    """Best-effort conversion of a date-like value. Never raises.

    Args:
        value: date, datetime, epoch seconds or a date string

    Returns:
        Date object, or None if the value is not a usable date
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        try:
            # Epoch values in milliseconds are common in exported JSON
            seconds = value / 1000 if abs(value) > 10**11 else value
            return datetime.fromtimestamp(seconds, UTC).date()
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
        try:
            return date_parser.parse(text).date()
        except (ValueError, TypeError, OverflowError):
            return None
    return None


def to_month_key(value: Any) -> Optional[str]:
    """Extract a YYYY-MM month key from a date-like value.

    Strings that start with YYYY-MM use that prefix, so full ISO
    timestamps and date-only strings agree. Anything longer than the bare
    month must still be a valid date.

    Args:
        value: date, datetime, epoch number or string

    Returns:
        Month key, or None if the value is not a valid date
    """
    if isinstance(value, str):
        text = value.strip()
        match = _MONTH_PREFIX_RE.match(text)
        if match:
            if not 1 <= int(match.group(2)) <= 12:
                return None
            rest = text[match.end():]
            if rest and (not rest.startswith("-") or coerce_date(text) is None):
                return None
            return f"{match.group(1)}-{match.group(2)}"
    parsed = coerce_date(value)
    if parsed is None:
        return None
    return parsed.strftime("%Y-%m")


def record_month_key(record: Any) -> Optional[str]:
    """Month key of a record given as an entity or as a legacy mapping."""
    if isinstance(record, Mapping):
        for field_name in DATE_FIELDS:
            if record.get(field_name):
                return to_month_key(record[field_name])
        return None
    return to_month_key(getattr(record, "date", None))


def parse_month(month: str) -> str:
    """Validate a user-supplied month key.

    Args:
        month: Month in YYYY-MM form, or "this month" / "last month"

    Returns:
        Normalized YYYY-MM key

    Raises:
        ValidationError: If the month is malformed
    """
    text = (month or "").strip().lower()
    if text in ("this month", "this-month"):
        return date.today().strftime("%Y-%m")
    if text in ("last month", "last-month"):
        return (date.today() - relativedelta(months=1)).strftime("%Y-%m")

    match = _MONTH_RE.match(text)
    if match is None or not 1 <= int(match.group(2)) <= 12:
        raise ValidationError(invalid_month(month))
    return text


def get_month_range(month: str) -> tuple[date, date]:
    """Get first and last day of a YYYY-MM month.

    Raises:
        ValidationError: If the month is malformed
    """
    key = parse_month(month)
    start_date = date(int(key[:4]), int(key[5:7]), 1)
    end_date = start_date + relativedelta(months=1) - timedelta(days=1)
    return (start_date, end_date)
