"""Upload-once session state shared by the API routes.

Every upload replaces the previous file of its kind and bumps a
generation counter. A run captures the generation when it starts and is
cancelled as soon as the counter moves on, so results computed from
replaced inputs are never stored.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .checkers import CHECKERS, get_checker
from .config import CheckerOverride, load_checker_overrides
from .engine.models import RunResult
from .errors import RunCancelled
from .parsers.claim_xml import ClaimDocument, parse_claim_document
from .parsers.metadata import METADATA_KINDS, MetadataDocument, load_bundled, parse_metadata
from .parsers.tabular import Workbook, read_workbook
from .pipeline import IsCurrent, RunAllResult, run_all, run_checker

logger = logging.getLogger(__name__)

XML_KIND = "xml"
SPREADSHEET_KINDS = ("auth", "clinician", "status", "eligibility", "pricing", "drugs")
UPLOAD_KINDS = (XML_KIND, *SPREADSHEET_KINDS, *METADATA_KINDS)


@dataclass(frozen=True)
class StoredUpload:
    kind: str
    filename: str
    size: int
    digest: str
    uploaded_at: datetime


@dataclass(frozen=True)
class Snapshot:
    """Inputs of one run, captured together with their generation."""

    generation: int
    document: ClaimDocument | None
    workbooks: Mapping[str, Workbook]
    metadata: Mapping[str, MetadataDocument]


class UploadSession:
    """Holds the uploaded files, their parsed forms and the latest results."""

    def __init__(
        self,
        metadata_dir: str | Path | None = None,
        overrides: Mapping[str, CheckerOverride] | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._generation = 0
        self._uploads: dict[str, StoredUpload] = {}
        self._parsed: dict[tuple[str, str], Any] = {}
        self._results: dict[str, RunResult] = {}
        self.overrides = dict(overrides) if overrides is not None else load_checker_overrides()
        self._bundled: dict[str, MetadataDocument] = {}
        for kind in METADATA_KINDS:
            document = load_bundled(kind, metadata_dir)
            if document is not None:
                self._bundled[kind] = document

    @property
    def generation(self) -> int:
        return self._generation

    def _parse(self, kind: str, filename: str, data: bytes) -> Any:
        if kind == XML_KIND:
            return parse_claim_document(data)
        if kind in SPREADSHEET_KINDS:
            return read_workbook(data, filename)
        return parse_metadata(kind, data)

    def upload(self, kind: str, filename: str, data: bytes) -> StoredUpload:
        """Store and parse one upload, invalidating any run in flight.

        Parsing happens here so a malformed file is rejected at upload.
        Re-uploading identical bytes reuses the parsed form.

        Raises:
            ValueError: If ``kind`` is not an upload kind.
            MalformedDocument: If the file cannot be parsed.
        """
        if kind not in UPLOAD_KINDS:
            raise ValueError(f"Unknown upload kind: {kind}")

        digest = hashlib.sha256(data).hexdigest()
        cache_key = (kind, digest)
        parsed = self._parsed.get(cache_key)
        if parsed is None:
            parsed = self._parse(kind, filename, data)

        stored = StoredUpload(
            kind=kind,
            filename=filename,
            size=len(data),
            digest=digest,
            uploaded_at=datetime.now(timezone.utc),
        )
        with self._lock:
            for key in [key for key in self._parsed if key[0] == kind and key != cache_key]:
                del self._parsed[key]
            self._parsed[cache_key] = parsed
            self._uploads[kind] = stored
            self._invalidate()

        logger.info(f"Stored {kind} upload '{filename}' ({len(data)} bytes)")
        return stored

    def remove(self, kind: str) -> bool:
        with self._lock:
            stored = self._uploads.pop(kind, None)
            if stored is None:
                return False
            self._parsed.pop((kind, stored.digest), None)
            self._invalidate()
        logger.info(f"Removed {kind} upload")
        return True

    def _invalidate(self) -> None:
        # caller holds the lock
        self._generation += 1
        self._results.clear()

    def files(self) -> list[StoredUpload]:
        with self._lock:
            return [self._uploads[kind] for kind in UPLOAD_KINDS if kind in self._uploads]

    def snapshot(self) -> Snapshot:
        with self._lock:
            parsed = {kind: self._parsed[(kind, stored.digest)] for kind, stored in self._uploads.items()}
            generation = self._generation

        metadata = dict(self._bundled)
        metadata.update({kind: parsed[kind] for kind in METADATA_KINDS if kind in parsed})
        return Snapshot(
            generation=generation,
            document=parsed.get(XML_KIND),
            workbooks={kind: parsed[kind] for kind in SPREADSHEET_KINDS if kind in parsed},
            metadata=metadata,
        )

    def is_current(self, generation: int) -> IsCurrent:
        return lambda: self._generation == generation

    def _store(self, generation: int, results: Mapping[str, RunResult]) -> None:
        with self._lock:
            if self._generation != generation:
                raise RunCancelled("Run cancelled by a newer upload")
            self._results.update(results)

    def run(self, name: str) -> RunResult:
        """Run one checker on the current uploads and keep its result."""
        spec = get_checker(name, self.overrides)
        snapshot = self.snapshot()
        result = run_checker(
            spec,
            snapshot.document,
            snapshot.workbooks,
            snapshot.metadata,
            is_current=self.is_current(snapshot.generation),
        )
        self._store(snapshot.generation, {name: result})
        return result

    def run_all(self) -> RunAllResult:
        specs = [get_checker(name, self.overrides) for name in CHECKERS]
        snapshot = self.snapshot()
        batch = run_all(
            specs,
            snapshot.document,
            snapshot.workbooks,
            snapshot.metadata,
            is_current=self.is_current(snapshot.generation),
        )
        self._store(snapshot.generation, batch.results)
        return batch

    def result(self, name: str) -> RunResult | None:
        get_checker(name)
        with self._lock:
            return self._results.get(name)

    def availability(self) -> list[dict[str, Any]]:
        """Per checker: whether its uploads are present and which are missing."""
        with self._lock:
            uploaded = set(self._uploads)
        metadata = set(self._bundled) | (uploaded & set(METADATA_KINDS))

        status = []
        for name in CHECKERS:
            spec = get_checker(name, self.overrides)
            missing = [kind for kind in spec.uploads if kind not in uploaded]
            missing += [kind for kind in spec.required_metadata if kind not in metadata]
            status.append(
                {
                    "name": spec.name,
                    "title": spec.title,
                    "ready": not missing,
                    "missing": missing,
                }
            )
        return status
