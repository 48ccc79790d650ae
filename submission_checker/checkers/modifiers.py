"""CPT modifier / VOI consistency checker.

Activities carrying a "Modifiers" observation (modifier 24 or 52) are
matched to the eligibility roster by member, encounter date and ordering
clinician. The VOI on the matched row (or, failing a match, the value
submitted in the observation) must agree with the modifier.
"""

from __future__ import annotations

import re

from ..engine.indexer import KeyPart, KeySpec
from ..engine.models import ActivityRecord, AuxData, Matched, Observation, PartialMatch, RuleContext
from ..engine.registry import RuleRegistry
from ..engine.resolver import MatchPolicy
from ..parsers.tabular import SheetPolicy
from ..utils.date_parser import normalize_date
from ..utils.normalization import normalize_member_id, normalize_name
from .base import CheckerSpec, DatasetSpec

MEMBER_ID = "Card Number / DHA Member ID"
ORDERED_ON = "Ordered On"
CLINICIAN = "Clinician"
VOI_NUMBER = "VOI Number"

EXPECTED_OBSERVATION_CODE = "CPT modifier"

# Normalized observation value -> modifier
MODIFIER_VALUES = {"VOID": "24", "24": "24", "VOIEF1": "52", "52": "52"}
# Modifier -> VOI it requires
REQUIRED_VOI = {"24": "VOI_D", "52": "VOI_EF1"}

_SEPARATORS = re.compile(r"[_\s]")
_NON_ALNUM = re.compile(r"[^A-Z0-9]")

ROSTER_KEY = KeySpec(
    parts=(
        KeyPart("member", (MEMBER_ID,), "member_id", normalize_member_id, "Member"),
        KeyPart("date", (ORDERED_ON,), "encounter_start", normalize_date, "Ordered On"),
        KeyPart("clinician", (CLINICIAN,), "ordering_clinician_id", normalize_name, "Clinician"),
    )
)


def modifier_for(observation: Observation) -> str | None:
    """Modifier expressed by an observation, or None if it is not a modifier of interest."""
    if observation.value_type.strip().lower() != "modifiers":
        return None
    value = _SEPARATORS.sub("", observation.value.upper())
    return MODIFIER_VALUES.get(value)


def modifier_observations(activity: ActivityRecord) -> list[tuple[str, Observation]]:
    """Qualifying observations, deduplicated on (modifier, observation code)."""
    seen: set[tuple[str, str]] = set()
    found = []
    for observation in activity.observations:
        modifier = modifier_for(observation)
        if modifier is None:
            continue
        key = (modifier, observation.code)
        if key in seen:
            continue
        seen.add(key)
        found.append((modifier, observation))
    return found


def _for_compare(value: str) -> str:
    return _NON_ALNUM.sub("", value.upper())


def has_modifier(activity: ActivityRecord, aux: AuxData) -> bool:
    payers = [payer.strip().upper() for payer in aux.options.get("payer_ids") or []]
    if payers and activity.payer_id.strip().upper() not in payers:
        return False
    return bool(modifier_observations(activity))


def observation_code_rule(context: RuleContext) -> list[str]:
    return [
        f'Observation Code incorrect; expected "{EXPECTED_OBSERVATION_CODE}" but found "{observation.code}"'
        for _, observation in modifier_observations(context.activity)
        if observation.code != EXPECTED_OBSERVATION_CODE
    ]


def voi_rule(context: RuleContext) -> list[str]:
    row = context.row
    remarks = []
    for modifier, observation in modifier_observations(context.activity):
        voi = row.get(VOI_NUMBER).strip() if row is not None else observation.value
        expected = REQUIRED_VOI[modifier]
        if _for_compare(voi) != _for_compare(expected):
            remarks.append(f"Modifier {modifier} does not match VOI (expected {expected}).")
    return remarks


def eligibility_match_rule(context: RuleContext) -> list[str]:
    match = context.match
    if isinstance(match, PartialMatch):
        return ["No matching eligibility found (member and clinician matched, Ordered On date differs)"]
    if not isinstance(match, Matched):
        return ["No matching eligibility found"]
    return []


SPEC = CheckerSpec(
    name="modifiers",
    title="Modifiers",
    primary=DatasetSpec(
        name="roster",
        upload="eligibility",
        sheet=SheetPolicy(header_row=1, header_column=MEMBER_ID),
        key=ROSTER_KEY,
        label="eligibility roster",
    ),
    policy=MatchPolicy(partial_parts=("member", "clinician")),
    applies=has_modifier,
    rules=RuleRegistry([observation_code_rule, voi_rule, eligibility_match_rule]),
    precision=0,
    options={"payer_ids": ["A001", "E001"]},
)
