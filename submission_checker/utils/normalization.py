"""Key normalization helpers.

Every function here is applied identically to reference cells when an
index is built and to claim fields when it is queried. None of them raise:
bad input degrades to a trimmed string (or None for numbers).
"""

from __future__ import annotations

import re
import unicodedata
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

_WHITESPACE = re.compile(r"\s+")
_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def clean(value: object) -> str:
    """Trimmed string form of a cell or element value ("" for None)."""
    if value is None:
        return ""
    return str(value).strip()


def strip_leading_zeros(text: str) -> str:
    stripped = text.lstrip("0")
    if not stripped and text:
        return "0"
    return stripped


def normalize_member_id(value: object) -> str:
    """Normalize a member / card number.

    Examples:
        >>> normalize_member_id(" 0012345 ")
        '12345'
        >>> normalize_member_id("784-1990-1234567-1")
        '784199012345671'
    """
    text = clean(value).replace("-", "").replace(" ", "")
    return strip_leading_zeros(text)


def normalize_code(value: object) -> str:
    """Normalize a procedure / drug code.

    Leading zeros are only dropped from purely numeric codes so that
    alphanumeric codes such as ``0232T`` keep their shape.
    """
    text = clean(value)
    if text.isdigit():
        return strip_leading_zeros(text)
    return text.upper()


def normalize_name(value: object) -> str:
    """Trim, collapse internal whitespace and uppercase."""
    return _WHITESPACE.sub(" ", clean(value)).upper()


def normalize_identifier(value: object) -> str:
    """Licenses, facility ids and authorization ids: trimmed and uppercased."""
    return clean(value).upper()


def normalize_unicode(value: object) -> str:
    """NFKC-fold free text and uppercase it for exact phrase comparisons."""
    return unicodedata.normalize("NFKC", clean(value)).upper()


def parse_decimal(value: object, lenient: bool = False) -> Decimal | None:
    """Parse a numeric cell or element into a Decimal.

    Args:
        value: Raw value (string, int, float or Decimal)
        lenient: Drop every character that is not a digit, ``.`` or ``-``
            first. Price lists carry currency labels and thousands
            separators in the cell text.

    Returns:
        The parsed Decimal, or None when nothing numeric remains
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    text = clean(value)
    if lenient:
        text = _NON_NUMERIC.sub("", text)
    else:
        text = text.replace(",", "")
    if not text:
        return None
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return None
    if not parsed.is_finite():
        return None
    return parsed


def round_half_up(value: Decimal, places: int) -> Decimal:
    quantum = Decimal(1).scaleb(-places)
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def format_number(value: Decimal | None) -> str:
    """Render a Decimal without exponent or trailing zeros.

    Examples:
        >>> format_number(Decimal("100.00"))
        '100'
        >>> format_number(Decimal("12.50"))
        '12.5'
    """
    if value is None:
        return ""
    if value == value.to_integral_value():
        return str(value.quantize(Decimal(1)))
    return format(value.normalize(), "f")
