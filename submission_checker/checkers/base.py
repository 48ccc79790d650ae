"""Declarative checker definition."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from ..config import CheckerOverride
from ..engine.aggregator import BASIS_ACTIVITIES
from ..engine.engine import Exemption
from ..engine.indexer import KeySpec
from ..engine.models import ActivityRecord, AuxData
from ..engine.registry import RuleRegistry
from ..engine.resolver import DEFAULT_POLICY, MatchPolicy
from ..parsers.claim_xml import ClaimDocument
from ..parsers.tabular import SheetPolicy

logger = logging.getLogger(__name__)

Applies = Callable[[ActivityRecord, AuxData], bool]
Precondition = Callable[[ClaimDocument, AuxData], None]
Derive = Callable[[Mapping[str, str]], Mapping[str, Any]]


@dataclass(frozen=True)
class DatasetSpec:
    """A reference table read from one uploaded file kind.

    Attributes:
        name: Dataset name, also the key in ``AuxData.indexes``
        upload: Upload kind the table is read from (``auth``, ``pricing``, ...)
        sheet: Sheet selection and header-row policy
        key: Composite key the table is indexed by
        derive: Per-row values computed once at index-build time
        required_columns: Headers the sheet must carry, else the run fails
        label: Human-readable dataset name for error messages
    """

    name: str
    upload: str
    sheet: SheetPolicy
    key: KeySpec
    derive: Derive | None = None
    required_columns: tuple[str, ...] = ()
    label: str = ""


@dataclass(frozen=True)
class CheckerSpec:
    """Everything that distinguishes one checker from another.

    ``primary`` drives matching: each applicable activity is resolved
    against it with ``policy``. ``datasets`` are additional tables rules
    may consult through ``AuxData.indexes``.
    """

    name: str
    title: str
    rules: RuleRegistry
    primary: DatasetSpec | None = None
    datasets: tuple[DatasetSpec, ...] = ()
    policy: MatchPolicy = DEFAULT_POLICY
    required_metadata: tuple[str, ...] = ()
    optional_metadata: tuple[str, ...] = ()
    # Error text when a required metadata document is absent
    metadata_messages: Mapping[str, str] = field(default_factory=dict)
    exemptions: tuple[Exemption, ...] = ()
    applies: Applies | None = None
    precondition: Precondition | None = None
    precision: int = 0
    basis: str = BASIS_ACTIVITIES
    options: Mapping[str, Any] = field(default_factory=dict)
    disabled_rules: tuple[str, ...] = ()

    @property
    def all_datasets(self) -> tuple[DatasetSpec, ...]:
        if self.primary is None:
            return self.datasets
        return (self.primary, *self.datasets)

    @property
    def uploads(self) -> tuple[str, ...]:
        """Upload kinds that must be present before the checker can run."""
        kinds = ["xml"]
        for dataset in self.all_datasets:
            if dataset.upload not in kinds:
                kinds.append(dataset.upload)
        return tuple(kinds)

    def active_rules(self):
        return self.rules.active_rules(self.disabled_rules)

    def with_overrides(self, override: CheckerOverride | None) -> CheckerSpec:
        """Apply configuration overrides, returning a new spec."""
        if override is None:
            return self

        changes: dict[str, Any] = {}
        if override.precision is not None:
            changes["precision"] = override.precision
        if override.percentage_basis is not None:
            changes["basis"] = override.percentage_basis
        if override.options:
            changes["options"] = MappingProxyType({**self.options, **override.options})
        if override.disabled_rules:
            unknown = set(override.disabled_rules) - set(self.rules.names())
            if unknown:
                logger.warning(f"{self.name}: ignoring unknown disabled rules {sorted(unknown)}")
            changes["disabled_rules"] = tuple(override.disabled_rules)

        if override.sheets:
            def patched(dataset: DatasetSpec | None) -> DatasetSpec | None:
                if dataset is None or dataset.name not in override.sheets:
                    return dataset
                sheet = override.sheets[dataset.name]
                updates = {
                    key: (tuple(value) if key == "sheet_names" else value)
                    for key, value in sheet.model_dump(exclude_none=True).items()
                }
                return replace(dataset, sheet=replace(dataset.sheet, **updates))

            changes["primary"] = patched(self.primary)
            changes["datasets"] = tuple(patched(dataset) for dataset in self.datasets)

        return replace(self, **changes)
