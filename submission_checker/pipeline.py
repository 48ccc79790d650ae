"""Run a checker end to end.

Extraction, indexing, matching, rule evaluation and aggregation are
composed here; the API and the CLI both call ``run_checker``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .checkers.base import CheckerSpec, DatasetSpec
from .engine.aggregator import aggregate
from .engine.engine import validate_activity
from .engine.extractor import claim_ids, extract
from .engine.indexer import ReferenceIndex, build_index
from .engine.models import ActivityRecord, AuxData, RunResult
from .engine.resolver import resolve
from .errors import CheckerError, MissingReferenceDataset, RunCancelled
from .parsers.claim_xml import ClaimDocument
from .parsers.metadata import MetadataDocument
from .parsers.tabular import Workbook, select_table

logger = logging.getLogger(__name__)

IsCurrent = Callable[[], bool]


def _always_current() -> bool:
    return True


def _check_current(is_current: IsCurrent, checker: str) -> None:
    if not is_current():
        raise RunCancelled(f"{checker}: run cancelled by a newer upload")


def build_dataset_index(spec: CheckerSpec, dataset: DatasetSpec, workbook: Workbook) -> ReferenceIndex:
    """Select the dataset's table from its workbook and index it.

    Raises:
        MissingReferenceDataset: If the sheet or a required column is absent.
    """
    table = select_table(workbook, dataset.sheet, checker=spec.name, dataset=dataset.name)
    missing = [column for column in dataset.required_columns if column not in table.headers]
    if missing:
        label = dataset.label or dataset.name
        raise MissingReferenceDataset(
            spec.name,
            dataset.name,
            f"{label[:1].upper()}{label[1:]} missing required fields ({', '.join(missing)})",
        )
    index = build_index(table.rows, dataset.key, derive=dataset.derive, name=dataset.name)
    logger.info(
        f"{spec.name}: indexed {len(index)} rows from sheet '{table.sheet_name}' "
        f"under {index.key_count} keys"
    )
    return index


def _metadata_for(spec: CheckerSpec, metadata: Mapping[str, MetadataDocument]) -> dict[str, Any]:
    selected: dict[str, Any] = {}
    for kind in spec.required_metadata:
        document = metadata.get(kind)
        if document is None or len(document) == 0:
            raise MissingReferenceDataset(
                spec.name,
                kind,
                spec.metadata_messages.get(kind) or f"{spec.title}: metadata '{kind}' is not loaded",
            )
        selected[kind] = document
    for kind in spec.optional_metadata:
        if metadata.get(kind) is not None:
            selected[kind] = metadata[kind]
    return selected


def run_checker(
    spec: CheckerSpec,
    document: ClaimDocument | None,
    workbooks: Mapping[str, Workbook],
    metadata: Mapping[str, MetadataDocument] | None = None,
    is_current: IsCurrent | None = None,
) -> RunResult:
    """Validate every applicable activity of ``document`` with one checker.

    Args:
        spec: Checker definition with overrides applied
        document: Parsed claim document
        workbooks: Parsed spreadsheets by upload kind
        metadata: Metadata documents by kind
        is_current: Returns False once the inputs were replaced; the run
            then stops and its outcomes are discarded

    Returns:
        RunResult with one outcome per applicable activity

    Raises:
        MissingReferenceDataset: A required upload, sheet or metadata is absent
        UnsupportedDocument: The checker's precondition rejected the document
        RunCancelled: ``is_current`` turned False during the run
    """
    is_current = is_current or _always_current
    _check_current(is_current, spec.name)

    if document is None:
        raise MissingReferenceDataset(spec.name, "xml", "Claim XML file has not been uploaded")

    indexes: dict[str, ReferenceIndex] = {}
    for dataset in spec.all_datasets:
        workbook = workbooks.get(dataset.upload)
        if workbook is None:
            raise MissingReferenceDataset(
                spec.name,
                dataset.name,
                f"{spec.title}: {dataset.label or dataset.name} file ({dataset.upload}) has not been uploaded",
            )
        indexes[dataset.name] = build_dataset_index(spec, dataset, workbook)

    aux = AuxData(
        metadata=_metadata_for(spec, metadata or {}),
        options=dict(spec.options),
        indexes=indexes,
    )
    if spec.precondition is not None:
        spec.precondition(document, aux)

    activities = extract(document)
    _check_current(is_current, spec.name)

    rules = spec.active_rules()
    primary = indexes[spec.primary.name] if spec.primary is not None else None
    preceding: dict[str, list[ActivityRecord]] = {}
    outcomes = []

    for activity in activities:
        _check_current(is_current, spec.name)
        earlier = preceding.setdefault(activity.claim_id, [])
        if spec.applies is not None and not spec.applies(activity, aux):
            earlier.append(activity)
            continue

        match = None
        if primary is not None:
            match = resolve(activity, primary, spec.policy, metadata=aux.metadata)
        outcomes.append(
            validate_activity(
                activity,
                match,
                aux,
                rules,
                exemptions=spec.exemptions,
                claim_activities=tuple(earlier),
            )
        )
        earlier.append(activity)

    # Claims with no applicable activity only count when every activity applies
    ids = claim_ids(document) if spec.applies is None else ()
    result = aggregate(outcomes, spec.precision, spec.basis, claim_ids=ids, checker=spec.name)
    _check_current(is_current, spec.name)

    logger.info(
        f"{spec.name}: {result.valid_count}/{result.total_count} valid "
        f"({result.percentage}%, basis={result.basis})"
    )
    return result


@dataclass
class RunAllResult:
    """Per-checker results and the errors of checkers that could not run."""

    results: dict[str, RunResult] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)


def runnable(spec: CheckerSpec, uploaded: Iterable[str]) -> bool:
    """Every upload the checker reads is present."""
    present = set(uploaded)
    return all(kind in present for kind in spec.uploads)


def run_all(
    specs: Iterable[CheckerSpec],
    document: ClaimDocument | None,
    workbooks: Mapping[str, Workbook],
    metadata: Mapping[str, MetadataDocument] | None = None,
    is_current: IsCurrent | None = None,
) -> RunAllResult:
    """Run each checker whose uploads are present.

    One checker failing does not stop the others; its message is recorded
    in ``errors``. Cancellation stops the whole batch.
    """
    uploaded = set(workbooks)
    if document is not None:
        uploaded.add("xml")

    batch = RunAllResult()
    for spec in specs:
        if not runnable(spec, uploaded):
            batch.skipped.append(spec.name)
            continue
        try:
            batch.results[spec.name] = run_checker(spec, document, workbooks, metadata, is_current)
        except RunCancelled:
            raise
        except CheckerError as e:
            logger.warning(f"{spec.name}: run failed: {e}")
            batch.errors[spec.name] = str(e)
    return batch
