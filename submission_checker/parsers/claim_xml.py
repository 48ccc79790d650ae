"""Claim document reader.

Wraps ``xml.etree.ElementTree`` behind the three operations the extractor
needs: first child by tag, all descendants by tag, and trimmed text.
Namespace prefixes are ignored so that files with and without a default
namespace read the same way.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from dataclasses import dataclass

from ..errors import MalformedDocument
from ..utils.sanitization import escape_bare_ampersands

logger = logging.getLogger(__name__)


def local_name(tag: str) -> str:
    if tag.startswith("{"):
        return tag.rsplit("}", 1)[-1]
    return tag


def first_child(element: ET.Element | None, *tags: str) -> ET.Element | None:
    """Return the first direct child whose tag is one of ``tags``.

    Tags are tried in the order given, so alternatives act as fallbacks.
    """
    if element is None:
        return None
    for tag in tags:
        for child in element:
            if local_name(child.tag) == tag:
                return child
    return None


def descendants(element: ET.Element | None, tag: str) -> list[ET.Element]:
    """All descendants with the given tag, in document order."""
    if element is None:
        return []
    return [node for node in element.iter() if node is not element and local_name(node.tag) == tag]


def raw_text(element: ET.Element | None, *tags: str) -> str:
    """Untrimmed text of the first present child among ``tags``."""
    for tag in tags:
        child = first_child(element, tag)
        if child is not None:
            return "".join(child.itertext())
    return ""


def child_text(element: ET.Element | None, *tags: str) -> str:
    """Trimmed text of the first child among ``tags`` that has any.

    Absent elements read as the empty string; absence is never an error
    at this layer.
    """
    for tag in tags:
        child = first_child(element, tag)
        if child is None:
            continue
        text = "".join(child.itertext()).strip()
        if text:
            return text
    return ""


@dataclass(frozen=True)
class ClaimDocument:
    """A parsed claim submission."""

    root: ET.Element

    @property
    def header(self) -> ET.Element | None:
        return first_child(self.root, "Header")

    @property
    def receiver_id(self) -> str:
        return child_text(self.header, "ReceiverID")

    @property
    def sender_id(self) -> str:
        return child_text(self.header, "SenderID")

    def claims(self) -> Iterator[ET.Element]:
        if local_name(self.root.tag) == "Claim":
            yield self.root
            return
        yield from descendants(self.root, "Claim")


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.warning("Claim document is not valid UTF-8; decoding as cp1252")
        return data.decode("cp1252", errors="replace")


def parse_claim_document(data: bytes | str) -> ClaimDocument:
    """Parse claim XML bytes into a ClaimDocument.

    Bare ampersands are rewritten to ``and`` first, since practice
    management systems routinely export them unescaped.

    Raises:
        MalformedDocument: If the input is empty or not well formed.
    """
    text = _decode(data) if isinstance(data, bytes) else data
    if not text.strip():
        raise MalformedDocument("Claim document is empty")

    cleaned = escape_bare_ampersands(text)
    try:
        root = ET.fromstring(cleaned)
    except ET.ParseError as e:
        raise MalformedDocument(f"Claim document is not well-formed XML: {e}") from e

    return ClaimDocument(root=root)
