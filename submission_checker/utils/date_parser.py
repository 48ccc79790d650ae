"""Date parsing utilities for claim and reference data.

Claim files and payer spreadsheets are day-first (DD/MM/YYYY). Reference
sheets also show up with DD-MMM-YYYY and ISO dates, with or without a
time component.
"""

from __future__ import annotations

from datetime import date, datetime

# Reasonable date bounds for healthcare claims
MIN_VALID_YEAR = 1900
MAX_VALID_YEAR = 2100

DATE_FORMATS = [
    "%d/%m/%Y",  # 15/01/2024
    "%d-%m-%Y",  # 15-01-2024
    "%d-%b-%Y",  # 15-Jan-2024
    "%d %b %Y",  # 15 Jan 2024
    "%Y-%m-%d",  # ISO 8601
    "%Y%m%d",  # Compact
    "%d/%m/%y",  # 15/01/24
]

DATETIME_FORMATS = [
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y %H:%M:%S",
    "%d-%m-%Y %H:%M",
    "%d-%b-%Y %H:%M",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%dT%H:%M:%S",
]


def _within_bounds(parsed: datetime) -> bool:
    return MIN_VALID_YEAR <= parsed.year <= MAX_VALID_YEAR


def parse_date_time(value: str | None) -> datetime | None:
    """Parse a value that must carry a time component.

    Examples:
        >>> parse_date_time("15/01/2024 09:30")
        datetime.datetime(2024, 1, 15, 9, 30)
        >>> parse_date_time("15/01/2024") is None
        True
    """
    if not value:
        return None
    text = " ".join(str(value).split())
    for fmt in DATETIME_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if _within_bounds(parsed):
            return parsed
    return None


def parse_flexible_date(value: str | None) -> datetime | None:
    """Parse a date from the formats seen in claim and reference files.

    A trailing time component is accepted and kept. Returns None for empty
    or unparseable input, and for real-looking dates outside 1900-2100.

    Examples:
        >>> parse_flexible_date("15/01/2024")
        datetime.datetime(2024, 1, 15, 0, 0)
        >>> parse_flexible_date("11-Aug-2025")
        datetime.datetime(2025, 8, 11, 0, 0)
        >>> parse_flexible_date("2024-01-15 08:00:00")
        datetime.datetime(2024, 1, 15, 8, 0)
        >>> parse_flexible_date("31/02/2024") is None
        True
    """
    if not value:
        return None

    with_time = parse_date_time(value)
    if with_time is not None:
        return with_time

    text = " ".join(str(value).split())
    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            # strptime raises ValueError for invalid dates like Feb 30
            continue
        if _within_bounds(parsed):
            return parsed

    return None


def parse_date_only(value: str | None) -> date | None:
    """Parse a value and drop any time component."""
    parsed = parse_flexible_date(value)
    return parsed.date() if parsed else None


def normalize_date(value: str | None) -> str:
    """Canonicalize a date to YYYY-MM-DD.

    Unparseable input is passed through trimmed, never raised, so that two
    identical malformed values still compare equal as keys.
    """
    if value is None:
        return ""
    text = str(value).strip()
    parsed = parse_flexible_date(text)
    if parsed is None:
        return text
    return parsed.strftime("%Y-%m-%d")
