"""Checker registry.

Each module defines one ``SPEC``; configuration overrides are applied on
lookup so a changed YAML file takes effect on the next run.
"""

from __future__ import annotations

from collections.abc import Mapping

from ..config import CheckerOverride
from ..errors import UnknownChecker
from . import (
    auths,
    clinician,
    drug_formulary,
    drug_quantities,
    eligibility,
    modifiers,
    pricing,
    teeth,
    timings,
)
from .base import CheckerSpec, DatasetSpec

CHECKERS: dict[str, CheckerSpec] = {
    spec.name: spec
    for spec in (
        auths.SPEC,
        clinician.SPEC,
        eligibility.SPEC,
        modifiers.SPEC,
        pricing.SPEC,
        drug_quantities.SPEC,
        drug_formulary.SPEC,
        teeth.SPEC,
        timings.SPEC,
    )
}


def checker_names() -> tuple[str, ...]:
    return tuple(CHECKERS)


def get_checker(name: str, overrides: Mapping[str, CheckerOverride] | None = None) -> CheckerSpec:
    """Look up a checker by name with its configuration overrides applied.

    Raises:
        UnknownChecker: If no checker has that name.
    """
    spec = CHECKERS.get(name)
    if spec is None:
        raise UnknownChecker(f"Unknown checker: {name}")
    return spec.with_overrides((overrides or {}).get(name))


__all__ = ["CHECKERS", "CheckerSpec", "DatasetSpec", "checker_names", "get_checker"]
