"""Shared utility functions for the submission checker."""

from .date_parser import normalize_date, parse_date_time, parse_flexible_date
from .normalization import (
    normalize_code,
    normalize_identifier,
    normalize_member_id,
    normalize_name,
    parse_decimal,
)
from .sanitization import escape_bare_ampersands, sanitize_filename

__all__ = [
    "escape_bare_ampersands",
    "normalize_code",
    "normalize_date",
    "normalize_identifier",
    "normalize_member_id",
    "normalize_name",
    "parse_date_time",
    "parse_decimal",
    "parse_flexible_date",
    "sanitize_filename",
]
