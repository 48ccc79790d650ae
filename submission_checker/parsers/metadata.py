"""Reference metadata documents.

Small JSON lookup tables keyed by a code string: authorization rules,
tooth-code affinities, affiliated facilities, endodontic prices and
clinician specialties. They are bundled under ``METADATA_DIR`` and may be
replaced per session by uploading a file of the same kind.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

from ..config import METADATA_DIR
from ..errors import MalformedDocument
from ..utils.normalization import clean, normalize_code, normalize_identifier

logger = logging.getLogger(__name__)


def _single(field_name: str) -> Callable[[Mapping[str, Any]], list[str]]:
    def keys(entry: Mapping[str, Any]) -> list[str]:
        return [clean(entry.get(field_name))]

    return keys


def _tooth_code_keys(entry: Mapping[str, Any]) -> list[str]:
    codes = entry.get("codes")
    if codes is None:
        codes = entry.get("code")
    if codes is None:
        return []
    if not isinstance(codes, list):
        codes = [codes]
    return [clean(code) for code in codes]


@dataclass(frozen=True)
class MetadataKind:
    """How one kind of metadata document is laid out."""

    name: str
    filename: str
    keys: Callable[[Mapping[str, Any]], list[str]]
    records_path: str | None = None
    normalize: Callable[[object], str] = normalize_identifier


METADATA_KINDS: dict[str, MetadataKind] = {
    kind.name: kind
    for kind in (
        MetadataKind("auth_rules", "auth_rules.json", _single("code")),
        MetadataKind("tooth_codes", "tooth_codes.json", _tooth_code_keys),
        MetadataKind("facilities", "facilities.json", _single("license"), records_path="facilities"),
        MetadataKind("endo_pricing", "endo_pricing.json", _single("code"), normalize=normalize_code),
        MetadataKind("clinician_licenses", "clinician_licenses.json", _single("Phy Lic")),
    )
}


@dataclass(frozen=True)
class MetadataDocument:
    """Read-only code -> entry mapping.

    Keys are normalized with the kind's normalizer on both build and lookup.
    """

    name: str
    entries: Mapping[str, Mapping[str, Any]]
    normalize: Callable[[object], str] = normalize_identifier

    def get(self, code: object) -> Mapping[str, Any] | None:
        return self.entries.get(self.normalize(code))

    def __contains__(self, code: object) -> bool:
        return self.normalize(code) in self.entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


def build_metadata(name: str, payload: Any) -> MetadataDocument:
    """Index an already-decoded JSON payload.

    Entries without a usable key are skipped. When two entries share a key
    the first one is kept.

    Raises:
        MalformedDocument: If the payload does not have the expected shape.
    """
    kind = METADATA_KINDS.get(name)
    if kind is None:
        raise ValueError(f"Unknown metadata kind: {name}")

    records = payload
    if kind.records_path:
        if not isinstance(payload, dict) or not isinstance(payload.get(kind.records_path), list):
            raise MalformedDocument(
                f"Malformed {kind.filename}, expected {{ {kind.records_path}: [...] }}"
            )
        records = payload[kind.records_path]
    if not isinstance(records, list):
        raise MalformedDocument(f"Malformed {kind.filename}, expected a JSON array")

    entries: dict[str, Mapping[str, Any]] = {}
    skipped = 0
    for record in records:
        if not isinstance(record, dict):
            skipped += 1
            continue
        keys = [kind.normalize(key) for key in kind.keys(record) if clean(key)]
        if not keys:
            skipped += 1
            continue
        frozen = MappingProxyType(dict(record))
        for key in keys:
            entries.setdefault(key, frozen)

    if skipped:
        logger.warning(f"{kind.filename}: skipped {skipped} entries without a key")
    return MetadataDocument(name=name, entries=MappingProxyType(entries), normalize=kind.normalize)


def parse_metadata(name: str, data: bytes | str) -> MetadataDocument:
    """Decode and index an uploaded metadata document."""
    try:
        payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedDocument(f"Metadata document '{name}' is not valid JSON: {e}") from e
    return build_metadata(name, payload)


def load_bundled(name: str, directory: str | Path | None = None) -> MetadataDocument | None:
    """Load the bundled copy of a metadata document, or None if absent."""
    kind = METADATA_KINDS[name]
    path = Path(directory or METADATA_DIR) / kind.filename
    if not path.exists():
        logger.debug(f"No bundled {kind.filename} in {path.parent}")
        return None
    document = parse_metadata(name, path.read_bytes())
    logger.info(f"Loaded {len(document)} {name} entries from {path}")
    return document
