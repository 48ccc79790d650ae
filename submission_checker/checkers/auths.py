"""Prior-authorization checker.

Each activity's PriorAuthorizationID is looked up in the payer's
HCPRequests export and narrowed to the row for the same item code and
member. Whether an authorization is needed at all comes from the
``auth_rules`` metadata: approval details reading "NOT REQUIRED" waive it.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from ..engine.indexer import KeyPart, KeySpec
from ..engine.models import ActivityRecord, NoMatch, ReferenceRow, RuleContext
from ..engine.registry import RuleRegistry
from ..engine.resolver import MatchPolicy
from ..parsers.tabular import SheetPolicy
from ..utils.date_parser import parse_flexible_date
from ..utils.normalization import clean, normalize_code, normalize_member_id
from .base import CheckerSpec, DatasetSpec

NOT_REQUIRED = re.compile(r"NOT\s+REQUIRED", re.IGNORECASE)

AUTH_ID = "AuthorizationID"
ITEM_CODE = "Item Code"
MEMBER_ID = "Card Number / DHA Member ID"
ORDERING_CLINICIAN = "Ordering Clinician"
PAYER_SHARE = "Payer Share"
ORDERED_ON = "Ordered On"

WHITESPACE_FIELDS = (ITEM_CODE, MEMBER_ID, ORDERING_CLINICIAN, PAYER_SHARE, AUTH_ID)
VALID_STATUSES = ("approved", "totally approved", "rejected")
ACCEPTED_STATUSES = ("partially approved",)

AUTH_KEY = KeySpec(
    parts=(KeyPart("auth", (AUTH_ID,), "authorization_id", clean, "AuthorizationID"),)
)


def requires_authorization(code: str, metadata: Mapping[str, Any]) -> bool:
    """An activity needs an authorization unless its rule says otherwise.

    Codes without a rule, and runs without the rules document, default to
    requiring one.
    """
    rules = metadata.get("auth_rules")
    entry = rules.get(code) if rules is not None else None
    details = str((entry or {}).get("approval_details") or "")
    return NOT_REQUIRED.search(details) is None


def _status(row: ReferenceRow) -> str:
    return row.first("Status", "status").lower()


def same_item_and_member(activity: ActivityRecord, row: ReferenceRow, metadata: Mapping[str, Any]) -> bool:
    return normalize_code(row.get(ITEM_CODE)) == normalize_code(activity.code) and normalize_member_id(
        row.get(MEMBER_ID)
    ) == normalize_member_id(activity.member_id)


# --- exemptions ---


def not_required_and_absent(context: RuleContext) -> str | None:
    activity = context.activity
    if not activity.authorization_id and not requires_authorization(activity.code, context.metadata):
        return "Authorization not required"
    return None


def zero_net(context: RuleContext) -> str | None:
    activity = context.activity
    if not activity.net_text or activity.net_amount == 0:
        return "Claimed Net is 0"
    return None


# --- rules ---


def clinician_mismatch_rule(context: RuleContext) -> list[str]:
    row = context.row
    if row is None:
        return []
    xml_clinician = context.activity.ordering_clinician_id
    xlsx_clinician = row.get(ORDERING_CLINICIAN)
    if xlsx_clinician.strip().upper() != xml_clinician.strip().upper():
        return [f"Clinician mismatch: XML=[{xml_clinician}], XLSX=[{xlsx_clinician}]"]
    return []


def requirement_rule(context: RuleContext) -> list[str]:
    activity = context.activity
    needed = requires_authorization(activity.code, context.metadata)
    if needed and not activity.authorization_id:
        return [f"Missing required AuthorizationID for {activity.code}"]
    if not needed and activity.authorization_id:
        return ["AuthorizationID provided but not required"]
    return []


def leading_whitespace_rule(context: RuleContext) -> list[str]:
    raw = context.activity.raw_authorization_id
    if raw.strip() and raw != raw.lstrip():
        return ["Leading whitespace in AuthorizationID"]
    return []


def not_found_rule(context: RuleContext) -> list[str]:
    activity = context.activity
    if not activity.authorization_id or not isinstance(context.match, NoMatch):
        return []
    if context.match.candidate_count == 0:
        return [f"AuthID {activity.authorization_id} not in HCPRequests sheet"]
    return [f"{activity.authorization_id} has no authorization for {activity.code}."]


def rejected_rule(context: RuleContext) -> list[str]:
    row = context.row
    if row is not None and "rejected" in _status(row):
        return ["Has authID but status is rejected"]
    return []


def extra_whitespace_rule(context: RuleContext) -> list[str]:
    row = context.row
    if row is None:
        return []
    remarks = []
    for column in WHITESPACE_FIELDS:
        value = row.get(column)
        if value != value.strip():
            remarks.append(f'Extra whitespace in field: "{column}"')
    return remarks


def field_mismatch_rule(context: RuleContext) -> list[str]:
    """Compare the approved row with the claim after normalization."""
    row = context.row
    if row is None:
        return []
    activity = context.activity
    remarks = []
    if normalize_member_id(row.get(MEMBER_ID)) != normalize_member_id(activity.member_id):
        remarks.append(f"MemberID mismatch: XLSX={row.get(MEMBER_ID)}")
    if normalize_code(row.get(ITEM_CODE)) != normalize_code(activity.code):
        remarks.append(f"Item Code mismatch: XLSX={row.get(ITEM_CODE)}")
    if clean(row.get(AUTH_ID)) != clean(activity.authorization_id):
        remarks.append(f"AuthorizationID mismatch: XLSX={row.get(AUTH_ID)}")
    return remarks


def date_rule(context: RuleContext) -> list[str]:
    row = context.row
    if row is None:
        return []
    ordered_on = parse_flexible_date(row.get(ORDERED_ON))
    started = context.activity.activity_start_at
    remarks = []
    if ordered_on is None:
        remarks.append("Invalid XLSX Ordered On date")
    if started is None:
        remarks.append("Invalid XML Start date")
    if (
        ordered_on is not None
        and started is not None
        and ordered_on.date() > started.date()
        and _status(row) != "totally approved"
    ):
        remarks.append("Ordered On date must be before or equal to Activity Start date")
    return remarks


def status_rule(context: RuleContext) -> list[str]:
    row = context.row
    if row is None:
        return []
    status = _status(row)
    if status in VALID_STATUSES or status in ACCEPTED_STATUSES:
        return []
    return ["Invalid status (must be Approved, Totally Approved, or Rejected)"]


SPEC = CheckerSpec(
    name="auths",
    title="Authorizations",
    primary=DatasetSpec(
        name="auth",
        upload="auth",
        sheet=SheetPolicy(sheet_names=("HCPRequests",), sheet_index=1),
        key=AUTH_KEY,
    ),
    policy=MatchPolicy(secondary=same_item_and_member),
    optional_metadata=("auth_rules",),
    exemptions=(not_required_and_absent, zero_net),
    rules=RuleRegistry(
        [
            clinician_mismatch_rule,
            requirement_rule,
            leading_whitespace_rule,
            not_found_rule,
            rejected_rule,
            extra_whitespace_rule,
            field_mismatch_rule,
            date_rule,
            status_rule,
        ]
    ),
    precision=0,
)
