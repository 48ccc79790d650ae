"""Input sanitization utilities."""

from __future__ import annotations

import re

# An ampersand that does not start a predefined XML entity or a
# character reference. Claim exports from some practice systems write
# "A & B" into free-text fields.
BARE_AMPERSAND = re.compile(r"&(?!(amp;|lt;|gt;|quot;|apos;|#\d+;|#x[0-9a-fA-F]+;))")

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def escape_bare_ampersands(text: str) -> str:
    """Replace unescaped ``&`` with the word ``and`` so the document parses.

    Examples:
        >>> escape_bare_ampersands("<Name>Smith & Sons</Name>")
        '<Name>Smith and Sons</Name>'
        >>> escape_bare_ampersands("<Name>A &amp; B</Name>")
        '<Name>A &amp; B</Name>'
    """
    return BARE_AMPERSAND.sub("and", text)


def sanitize_filename(filename: str | None, max_length: int = 200) -> str:
    """Reduce an uploaded filename to a bare, printable name.

    Used before a client-supplied name reaches a log line or a
    Content-Disposition header.

    Args:
        filename: The raw filename from the upload
        max_length: Maximum length of the returned name

    Returns:
        The sanitized name, or ``"unknown"`` if nothing usable remains
    """
    if not filename:
        return "unknown"

    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    base = _CONTROL_CHARS.sub("", base.replace("..", "")).strip()

    if len(base) > max_length:
        stem, dot, ext = base.rpartition(".")
        if dot and len(ext) <= 10:
            base = stem[: max_length - len(ext) - 1] + "." + ext
        else:
            base = base[:max_length]

    return base or "unknown"
