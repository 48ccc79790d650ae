"""Reference indexer.

Builds a read-only multi-map from a normalized composite key to the
reference rows carrying it. A ``KeyPart`` names both the reference
column(s) and the activity attribute of one key component and owns the
single normalizer applied to both sides.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from ..utils.normalization import clean
from .models import ActivityRecord, ReferenceRow

logger = logging.getLogger(__name__)

Normalizer = Callable[[object], str]
Key = tuple[str, ...]
PartialKey = tuple["str | None", ...]


@dataclass(frozen=True)
class KeyPart:
    """One component of a composite join key.

    Attributes:
        name: Identifier used by match policies (e.g. ``"member"``)
        columns: Reference columns to read, first non-blank wins
        attribute: ActivityRecord attribute holding the claim side
        normalize: Applied to both the cell and the attribute
        label: Human-readable name for diagnostics
    """

    name: str
    columns: tuple[str, ...]
    attribute: str
    normalize: Normalizer = clean
    label: str = ""

    def from_row(self, values: Mapping[str, str]) -> str:
        for column in self.columns:
            raw = values.get(column, "")
            if clean(raw):
                return self.normalize(raw)
        return ""

    def from_activity(self, activity: ActivityRecord, attribute: str | None = None) -> str:
        return self.normalize(getattr(activity, attribute or self.attribute, ""))


@dataclass(frozen=True)
class KeySpec:
    parts: tuple[KeyPart, ...]

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(part.name for part in self.parts)

    def row_key(self, values: Mapping[str, str]) -> Key:
        return tuple(part.from_row(values) for part in self.parts)

    def activity_key(
        self, activity: ActivityRecord, attributes: Mapping[str, str] | None = None
    ) -> Key:
        """Normalized key of an activity.

        ``attributes`` maps part names to a different activity attribute,
        e.g. to look up the performing instead of the ordering clinician.
        """
        attributes = attributes or {}
        return tuple(part.from_activity(activity, attributes.get(part.name)) for part in self.parts)


def _is_incomplete(key: Iterable[str]) -> bool:
    return any(not component for component in key)


class ReferenceIndex:
    """Immutable multi-map from normalized key to rows in source order."""

    def __init__(
        self,
        spec: KeySpec,
        rows: tuple[ReferenceRow, ...],
        entries: Mapping[Key, tuple[ReferenceRow, ...]],
        name: str = "",
    ) -> None:
        self.spec = spec
        self.rows = rows
        self.name = name
        self._entries = MappingProxyType(dict(entries))

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def key_count(self) -> int:
        return len(self._entries)

    def lookup(self, key: Key) -> tuple[ReferenceRow, ...]:
        """Rows carrying exactly ``key``; empty when any component is blank."""
        if not key or _is_incomplete(key):
            return ()
        return self._entries.get(tuple(key), ())

    def lookup_partial(self, pattern: PartialKey) -> tuple[ReferenceRow, ...]:
        """Rows matching every non-None component of ``pattern``.

        None components are wildcards. A pattern with no fixed component, or
        with a blank fixed component, matches nothing.
        """
        fixed = [(position, value) for position, value in enumerate(pattern) if value is not None]
        if not fixed or _is_incomplete(value for _, value in fixed):
            return ()
        found: list[ReferenceRow] = []
        for key, rows in self._entries.items():
            if all(key[position] == value for position, value in fixed):
                found.extend(rows)
        found.sort(key=lambda row: row.position)
        return tuple(found)


def build_index(
    rows: Iterable[Mapping[str, str]],
    spec: KeySpec,
    derive: Callable[[Mapping[str, str]], Mapping[str, Any]] | None = None,
    name: str = "",
) -> ReferenceIndex:
    """Index reference rows by the normalized key described by ``spec``.

    Rows are never deduplicated; rows with a blank key component are kept in
    ``ReferenceIndex.rows`` but not indexed, mirroring the refusal of
    incomplete keys at lookup time.

    Args:
        rows: Reference rows as column -> cell text
        spec: Key definition
        derive: Optional function computing per-row derived values once
        name: Dataset name for log messages

    Returns:
        A read-only ReferenceIndex
    """
    built: list[ReferenceRow] = []
    entries: dict[Key, list[ReferenceRow]] = {}
    unkeyed = 0

    for position, values in enumerate(rows):
        frozen = MappingProxyType(dict(values))
        derived = MappingProxyType(dict(derive(frozen))) if derive else MappingProxyType({})
        row = ReferenceRow(position=position, values=frozen, derived=derived)
        built.append(row)

        key = spec.row_key(frozen)
        if _is_incomplete(key):
            unkeyed += 1
            continue
        entries.setdefault(key, []).append(row)

    if unkeyed:
        logger.warning(f"{name or 'reference'}: {unkeyed} row(s) have an incomplete key and were not indexed")
    logger.debug(f"{name or 'reference'}: indexed {len(built) - unkeyed} rows under {len(entries)} keys")

    return ReferenceIndex(
        spec=spec,
        rows=tuple(built),
        entries={key: tuple(group) for key, group in entries.items()},
        name=name,
    )


def lookup(index: ReferenceIndex, key: Key) -> tuple[ReferenceRow, ...]:
    return index.lookup(key)
