"""Clinician privilege checker.

The performing clinician must hold an ACTIVE license at one of the
group's affiliated facilities, effective on or before the encounter date.
Ordering and performing clinicians must also share a registry category.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from ..engine.indexer import KeyPart, KeySpec
from ..engine.models import ActivityRecord, Matched, ReferenceRow, RuleContext
from ..engine.registry import RuleRegistry
from ..engine.resolver import MatchPolicy
from ..parsers.tabular import SheetPolicy
from ..utils.date_parser import parse_flexible_date
from ..utils.normalization import normalize_identifier
from .base import CheckerSpec, DatasetSpec

REGISTRY_LICENSE = "Clinician License"
REGISTRY_NAME = ("Clinician Name", "Name")
REGISTRY_CATEGORY = ("Clinician Category", "Category")

STATUS_LICENSE = "License Number"
STATUS_FACILITY = "Facility License Number"
STATUS_EFFECTIVE = "Effective Date"
STATUS_STATUS = "Status"

REGISTRY_KEY = KeySpec(
    parts=(
        KeyPart("license", (REGISTRY_LICENSE,), "performing_clinician_id", normalize_identifier, "Clinician"),
    )
)
STATUS_KEY = KeySpec(
    parts=(
        KeyPart("license", (STATUS_LICENSE,), "performing_clinician_id", normalize_identifier, "Clinician"),
    )
)


def derive_status(values: Mapping[str, str]) -> dict[str, Any]:
    return {
        "facility": normalize_identifier(values.get(STATUS_FACILITY)),
        "effective": parse_flexible_date(values.get(STATUS_EFFECTIVE)),
        "active": values.get(STATUS_STATUS, "").strip().lower() == "active",
    }


def active_affiliated_license(
    activity: ActivityRecord, row: ReferenceRow, metadata: Mapping[str, Any]
) -> bool:
    """License row is at an affiliated facility, active, and effective by the encounter."""
    facilities = metadata.get("facilities")
    encounter = activity.encounter_start_at
    effective = row.derived["effective"]
    if facilities is None or encounter is None or effective is None:
        return False
    return (
        row.derived["facility"] in facilities
        and row.derived["active"]
        and effective.date() <= encounter.date()
    )


def most_recent(activity: ActivityRecord, row: ReferenceRow) -> datetime:
    return row.derived["effective"] or datetime.min


def _category(context: RuleContext, clinician_id: str) -> str:
    registry = context.aux.indexes.get("clinicians")
    if registry is None:
        return ""
    rows = registry.lookup((normalize_identifier(clinician_id),))
    if not rows:
        return ""
    return rows[0].first(*REGISTRY_CATEGORY)


def category_rule(context: RuleContext) -> list[str]:
    activity = context.activity
    ordering = activity.ordering_clinician_id
    performing = activity.performing_clinician_id
    if not ordering or not performing or ordering == performing:
        return []
    ordering_category = _category(context, ordering)
    performing_category = _category(context, performing)
    if ordering_category and performing_category and ordering_category != performing_category:
        return ["Category mismatch"]
    return []


def license_rule(context: RuleContext) -> list[str]:
    if isinstance(context.match, Matched):
        return []
    return ["No ACTIVE affiliated facility license for encounter date"]


SPEC = CheckerSpec(
    name="clinician",
    title="Clinician Licensing",
    primary=DatasetSpec(
        name="status",
        upload="status",
        sheet=SheetPolicy(sheet_names=("Clinician Licensing Status",)),
        key=STATUS_KEY,
        derive=derive_status,
        label="clinician licensing status",
    ),
    datasets=(
        DatasetSpec(
            name="clinicians",
            upload="clinician",
            sheet=SheetPolicy(sheet_names=("Clinicians",)),
            key=REGISTRY_KEY,
            label="clinician registry",
        ),
    ),
    policy=MatchPolicy(secondary=active_affiliated_license, prefer=most_recent),
    required_metadata=("facilities",),
    metadata_messages={
        "facilities": "Facility list not loaded. Please check facilities.json and reload."
    },
    rules=RuleRegistry([category_rule, license_rule]),
    precision=0,
)
