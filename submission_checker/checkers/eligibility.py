"""Clinician eligibility checker.

Both the ordering and the performing clinician of every activity must
appear in the eligibility roster with an active card whose period covers
the encounter.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..engine.indexer import KeyPart, KeySpec, ReferenceIndex
from ..engine.models import Matched, MatchResult, RuleContext
from ..engine.registry import RuleRegistry
from ..engine.resolver import resolve
from ..parsers.tabular import SheetPolicy
from ..utils.date_parser import parse_flexible_date
from ..utils.normalization import normalize_identifier
from .base import CheckerSpec, DatasetSpec

CLINICIAN = "Clinician"
EFFECTIVE = "EffectiveDate"
EXPIRY = "ExpiryDate"
CARD_STATUS = "Card Status"

ROSTER_KEY = KeySpec(
    parts=(KeyPart("clinician", (CLINICIAN,), "ordering_clinician_id", normalize_identifier, "Clinician"),)
)


def derive_period(values: Mapping[str, str]) -> dict[str, Any]:
    return {
        "from": parse_flexible_date(values.get(EFFECTIVE)),
        "to": parse_flexible_date(values.get(EXPIRY)),
    }


def _fmt(value) -> str:
    return value.strftime("%d/%m/%Y")


def check_role(context: RuleContext, match: MatchResult | None, clinician_id: str, role: str) -> list[str]:
    """Remarks for one clinician role, at most one per role."""
    if not isinstance(match, Matched):
        return [f"{role} ({clinician_id}) not found in eligibility file"]

    row = match.row
    valid_from = row.derived["from"]
    valid_to = row.derived["to"]
    if valid_from is None or valid_to is None:
        return [f"{role} ({clinician_id}) has invalid eligibility dates."]

    activity = context.activity
    started = activity.encounter_start_at
    ended = activity.encounter_end_at
    if (started is not None and started.date() < valid_from.date()) or (
        ended is not None and ended.date() > valid_to.date()
    ):
        return [f"{role} eligibility period invalid ({_fmt(valid_from)} - {_fmt(valid_to)})"]

    if row.get(CARD_STATUS).strip().lower() != "active":
        return [f"{role} card is not active"]
    return []


def ordering_rule(context: RuleContext) -> list[str]:
    return check_role(context, context.match, context.activity.ordering_clinician_id, "Ordering")


def performing_rule(context: RuleContext) -> list[str]:
    roster: ReferenceIndex = context.aux.indexes["eligibility"]
    match = resolve(context.activity, roster, attributes={"clinician": "performing_clinician_id"})
    return check_role(context, match, context.activity.performing_clinician_id, "Performing")


SPEC = CheckerSpec(
    name="eligibility",
    title="Clinician Eligibility",
    primary=DatasetSpec(
        name="eligibility",
        upload="eligibility",
        sheet=SheetPolicy(),
        key=ROSTER_KEY,
        derive=derive_period,
        required_columns=(EFFECTIVE, EXPIRY, CARD_STATUS),
        label="eligibility file",
    ),
    rules=RuleRegistry([ordering_rule, performing_rule]),
    precision=0,
)
