"""Drug formulary checker.

Every drug line (activity type 5) must be an active drug in the list and
be included in the formulary of the plan the claims are billed under.
"""

from __future__ import annotations

from ..engine.models import ActivityRecord, AuxData, Matched, RuleContext
from ..engine.registry import RuleRegistry
from ..parsers.tabular import SheetPolicy
from .base import CheckerSpec, DatasetSpec
from .drug_quantities import DRUG_KEY, DRUG_TYPE

STATUS = "Status"
ACTIVE_STATUSES = ("active", "grace")

# Plan -> drug-list column flagging formulary inclusion
PLAN_COLUMNS = {
    "THIQA": "Included in Thiqa/ ABM - other than 1&7- Drug Formulary",
    "DAMAN": "Included In Basic Drug Formulary",
}


def is_drug(activity: ActivityRecord, aux: AuxData) -> bool:
    return activity.activity_type == DRUG_TYPE


def listed_rule(context: RuleContext) -> list[str]:
    if not isinstance(context.match, Matched):
        return [f"Drug code {context.activity.code} not found in drug list"]
    return []


def status_rule(context: RuleContext) -> list[str]:
    row = context.row
    if row is None:
        return []
    status = row.get(STATUS).strip()
    if status.lower() not in ACTIVE_STATUSES:
        return [f"Drug status is {status or '(blank)'}; expected Active"]
    return []


def formulary_rule(context: RuleContext) -> list[str]:
    row = context.row
    if row is None:
        return []
    plan = str(context.options.get("plan", "THIQA")).strip().upper()
    column = PLAN_COLUMNS.get(plan)
    if column is None:
        raise ValueError(f"Unknown formulary plan: {plan}")
    if row.get(column).strip().lower() != "yes":
        return [f"Drug is not included in the {plan} formulary"]
    return []


SPEC = CheckerSpec(
    name="drug_formulary",
    title="Drug Formulary",
    primary=DatasetSpec(
        name="drugs",
        upload="drugs",
        sheet=SheetPolicy(sheet_names=("Drugs",), sheet_index=1),
        key=DRUG_KEY,
        label="drug list",
    ),
    applies=is_drug,
    rules=RuleRegistry([listed_rule, status_rule, formulary_rule]),
    precision=0,
    options={"plan": "THIQA"},
)
