"""Date helpers for API query ranges.

The API speaks ISO dates (YYYY-MM-DD) only, so unlike free-form statement
dates there is exactly one accepted input format.
"""

from datetime import date, datetime, timedelta

ISO_FORMAT = "%Y-%m-%d"


def today() -> str:
    """Today's local date as YYYY-MM-DD."""
    return date.today().strftime(ISO_FORMAT)


def days_ago(days: int) -> str:
    """The local date `days` days before today as YYYY-MM-DD."""
    return (date.today() - timedelta(days=days)).strftime(ISO_FORMAT)


def parse_date(raw_date: str) -> date:
    """Parse a YYYY-MM-DD string into a date object.

    Args:
        raw_date: The raw date string to parse.

    Returns:
        Parsed date object.

    Raises:
        ValueError: If the date is empty or not in YYYY-MM-DD form.
    """
    date_str = (raw_date or "").strip()
    try:
        return datetime.strptime(date_str, ISO_FORMAT).date()
    except ValueError:
        raise ValueError(f"Invalid date: {raw_date}. Use YYYY-MM-DD format.") from None


def resolve_range(
    days: int,
    start: date | None = None,
    end: date | None = None,
) -> tuple[str, str]:
    """Resolve --days/--from/--to options into an ISO (from, to) pair.

    Explicit dates win; otherwise the range is the last `days` days up to today.
    """
    from_str = start.strftime(ISO_FORMAT) if start else days_ago(days)
    to_str = end.strftime(ISO_FORMAT) if end else today()
    return from_str, to_str
