"""Tooth / procedure code compatibility checker.

Dental codes are checked against the tooth-code metadata: each code lists
the teeth it may be billed on (anterior, bicuspid, posterior or all), and
sextant or quadrant codes may be billed once per region per claim.
Observation codes carry the tooth numbers (universal numbering, letters
for primary teeth).
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from ..engine.aggregator import BASIS_CLAIMS
from ..engine.models import ActivityRecord, RuleContext
from ..engine.registry import RuleRegistry
from ..utils.normalization import normalize_unicode
from .base import CheckerSpec

SEXTANTS: dict[str, frozenset[str]] = {
    "Upper Right Sextant": frozenset({"1", "2", "3", "4", "5"}),
    "Upper Anterior Sextant": frozenset({"6", "7", "8", "9", "10", "11"}),
    "Upper Left Sextant": frozenset({"12", "13", "14", "15", "16"}),
    "Lower Left Sextant": frozenset({"17", "18", "19", "20", "21"}),
    "Lower Anterior Sextant": frozenset({"22", "23", "24", "25", "26", "27"}),
    "Lower Right Sextant": frozenset({"28", "29", "30", "31", "32"}),
    "Upper Right Sextant (Primary)": frozenset({"A", "B", "C"}),
    "Upper Anterior Sextant (Primary)": frozenset({"D", "E", "F", "G"}),
    "Upper Left Sextant (Primary)": frozenset({"H", "I", "J"}),
    "Lower Left Sextant (Primary)": frozenset({"K", "L", "M"}),
    "Lower Anterior Sextant (Primary)": frozenset({"N", "O", "P", "Q"}),
    "Lower Right Sextant (Primary)": frozenset({"R", "S", "T"}),
}

QUADRANTS: dict[str, frozenset[str]] = {
    "Upper Right": frozenset(
        {"1", "2", "3", "4", "5", "6", "7", "8", "9", "10", "11", "A", "B", "C", "D", "E"}
    ),
    "Upper Left": frozenset(
        {"12", "13", "14", "15", "16", "17", "18", "19", "20", "21", "22", "F", "G", "H", "I", "J"}
    ),
    "Lower Left": frozenset(
        {"23", "24", "25", "26", "27", "28", "29", "30", "31", "32", "K", "L", "M", "N", "O"}
    ),
    "Lower Right": frozenset(
        {"33", "34", "35", "36", "37", "38", "39", "40", "41", "42", "43", "44", "45", "46",
         "47", "48", "P", "Q", "R", "S", "T"}
    ),
}

ANTERIOR = frozenset(
    {"6", "7", "8", "9", "10", "11", "22", "23", "24", "25", "26", "27",
     "C", "D", "E", "F", "G", "H", "M", "N", "O", "P", "Q", "R"}
)
BICUSPID = frozenset({"4", "5", "12", "13", "20", "21", "28", "29"})
POSTERIOR = frozenset(
    {"1", "2", "3", "14", "15", "16", "17", "18", "19", "30", "31", "32",
     "A", "B", "I", "J", "K", "L", "S", "T"}
)
ALL_TEETH = ANTERIOR | BICUSPID | POSTERIOR

# Unlisted medical codes that must be described by an observation instead of a tooth
SPECIAL_CODES = {
    "17999": "Unlisted procedure, skin, mucous membrane, and subcutaneous tissue",
    "0232T": "Injection(s), platelet-rich plasma, any site, including image guidance, "
    "harvesting and preparation when performed",
    "J3490": "Unclassified drugs",
    "81479": "Unlisted molecular pathology procedure",
    "41899": "Unlisted procedure, dentoalveolar structures",
}

PLACEHOLDER_CODE = "00000"
CODE_LENGTH = 5
DRUG_PATIENT_SHARE = "Drug Patient Share"
PDF = "PDF"
ACTIVITY_DESCRIPTION = "ACTIVITY DESCRIPTION"
# Region codes ending in this digit may be billed repeatedly in a region
REPEATABLE_MARKER = "9"

_TOOTH_GROUP = re.compile(r"anterior|posterior|bicuspid|all", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def teeth_for(affiliated: object) -> frozenset[str]:
    """Teeth allowed by an ``affiliated_teeth`` value such as "Anterior/Bicuspid"."""
    text = str(affiliated or "").strip().lower()
    if not text or text == "all":
        return ALL_TEETH
    allowed: frozenset[str] = frozenset()
    if "anterior" in text:
        allowed |= ANTERIOR
    if "bicuspid" in text:
        allowed |= BICUSPID
    if "posterior" in text:
        allowed |= POSTERIOR
    return allowed or ALL_TEETH


def tooth_region(tooth: str) -> str:
    if tooth in ANTERIOR:
        return "Anterior"
    if tooth in BICUSPID:
        return "Bicuspid"
    if tooth in POSTERIOR:
        return "Posterior"
    return "Unknown"


def _region_of(tooth: str, regions: Mapping[str, frozenset[str]]) -> str | None:
    for name, teeth in regions.items():
        if tooth in teeth:
            return name
    return None


def observation_codes(activity: ActivityRecord) -> list[str]:
    """Observation codes as compared: trimmed, uppercased, blanks dropped."""
    codes = []
    for observation in activity.observations:
        code = observation.code.strip()
        if code != DRUG_PATIENT_SHARE:
            code = code.upper()
        if code:
            codes.append(code)
    return codes


def _is_attachment(code: str) -> bool:
    return code in (DRUG_PATIENT_SHARE, PDF)


def _screened(activity: ActivityRecord) -> bool:
    """Code passed the placeholder and length checks."""
    code = activity.code
    return code != PLACEHOLDER_CODE and (len(code) == CODE_LENGTH or "-" in code)


def _attachments_only(activity: ActivityRecord) -> bool:
    codes = observation_codes(activity)
    return bool(codes) and all(_is_attachment(code) for code in codes)


def _code_entry(context: RuleContext, code: str) -> Mapping[str, Any] | None:
    tooth_codes = context.metadata.get("tooth_codes")
    return tooth_codes.get(code) if tooth_codes is not None else None


def _description(context: RuleContext, code: str) -> str:
    """Description of a known code, else the authorization-rule fallback."""
    entry = _code_entry(context, code)
    if entry is not None:
        return str(entry.get("description") or "(no description)")
    auth_rules = context.metadata.get("auth_rules")
    fallback = auth_rules.get(code) if auth_rules is not None else None
    return str((fallback or {}).get("description") or "").strip() or "(unknown code)"


def region_type(description: str) -> str | None:
    lowered = description.lower()
    if "sextant" in lowered:
        return "sextant"
    if "quadrant" in lowered:
        return "quadrant"
    return None


def _applicable(context: RuleContext, activity: ActivityRecord | None = None) -> bool:
    """Activity reaches the per-code rules: screened, not attachment-only, not special."""
    activity = activity or context.activity
    return (
        _screened(activity)
        and not _attachments_only(activity)
        and activity.code not in SPECIAL_CODES
    )


def activity_regions(context: RuleContext, activity: ActivityRecord) -> tuple[str | None, set[str]]:
    """Region type of the activity's code and the regions its teeth fall in."""
    kind = region_type(_description(context, activity.code))
    if kind is None:
        return None, set()
    regions = SEXTANTS if kind == "sextant" else QUADRANTS
    found = set()
    for code in observation_codes(activity):
        if _is_attachment(code):
            continue
        region = _region_of(code, regions)
        if region is not None:
            found.add(region)
    return kind, found


def _has_activity_description(activity: ActivityRecord) -> bool:
    def normalized(text: str) -> str:
        return _WHITESPACE.sub(" ", normalize_unicode(text)).strip()

    return any(
        normalized(observation.description) == ACTIVITY_DESCRIPTION
        or normalized(observation.code) == ACTIVITY_DESCRIPTION
        for observation in activity.observations
    )


# --- rules ---


def placeholder_rule(context: RuleContext) -> list[str]:
    if context.activity.code == PLACEHOLDER_CODE:
        return [
            f'Code "{PLACEHOLDER_CODE}" is invalid. Please ask IT to delete this activity '
            'or set it to "In Progress".'
        ]
    return []


def code_length_rule(context: RuleContext) -> list[str]:
    code = context.activity.code
    if code != PLACEHOLDER_CODE and not _screened(context.activity):
        return [f'Code "{code}" is invalid: it must have exactly {CODE_LENGTH} characters.']
    return []


def special_code_rule(context: RuleContext) -> list[str]:
    activity = context.activity
    code = activity.code
    if code not in SPECIAL_CODES or not _screened(activity) or _attachments_only(activity):
        return []
    if _has_activity_description(activity):
        return []

    codes = observation_codes(activity)
    if not codes:
        return [f"{code} requires at least one observation code but none were provided."]

    remarks = []
    teeth = [c for c in codes if not _is_attachment(c) and c in ALL_TEETH]
    if teeth:
        remarks.append(f"{code} cannot be used with tooth codes: {', '.join(teeth)}")
    remarks.append(
        f'{code} requires an Observation with Description or Code exactly "{ACTIVITY_DESCRIPTION}".'
    )
    return remarks


def observation_required_rule(context: RuleContext) -> list[str]:
    activity = context.activity
    if not _applicable(context) or _code_entry(context, activity.code) is None:
        return []
    if not observation_codes(activity):
        return [f"{activity.code} requires at least one observation but none were provided."]
    return []


def tooth_set_rule(context: RuleContext) -> list[str]:
    activity = context.activity
    entry = _code_entry(context, activity.code)
    if not _applicable(context) or entry is None:
        return []

    allowed = teeth_for(entry.get("affiliated_teeth"))
    description = _description(context, activity.code)
    group = _TOOTH_GROUP.search(description)
    group_text = group.group(0) if group else "see code description"

    return [
        f"{tooth_region(tooth)} {tooth} not allowed for {group_text} code {activity.code}."
        for tooth in observation_codes(activity)
        if not _is_attachment(tooth) and tooth not in allowed
    ]


def unknown_region_rule(context: RuleContext) -> list[str]:
    activity = context.activity
    if not _applicable(context) or _code_entry(context, activity.code) is not None:
        return []
    kind = region_type(_description(context, activity.code))
    if kind is not None and not observation_codes(activity):
        return [
            f'No tooth (Observation) specified for unknown code "{activity.code}" '
            f"(region type: {kind})."
        ]
    return []


def region_duplicate_rule(context: RuleContext) -> list[str]:
    """A region code may appear once per sextant/quadrant within a claim."""
    activity = context.activity
    code = activity.code
    if not _applicable(context) or code.endswith(REPEATABLE_MARKER):
        return []
    kind, regions = activity_regions(context, activity)
    if kind is None or not regions:
        return []

    seen: set[str] = set()
    for earlier in context.claim_activities:
        if earlier.code == code and _applicable(context, earlier):
            seen |= activity_regions(context, earlier)[1]

    return [
        f'Duplicate {kind} code "{code}" in {region}'
        for region in sorted(regions & seen)
    ]


SPEC = CheckerSpec(
    name="teeth",
    title="Tooth Codes",
    required_metadata=("tooth_codes",),
    optional_metadata=("auth_rules",),
    metadata_messages={
        "tooth_codes": "Tooth code list not loaded. Please check tooth_codes.json and reload."
    },
    rules=RuleRegistry(
        [
            placeholder_rule,
            code_length_rule,
            special_code_rule,
            observation_required_rule,
            tooth_set_rule,
            unknown_region_rule,
            region_duplicate_rule,
        ]
    ),
    precision=1,
    basis=BASIS_CLAIMS,
)
