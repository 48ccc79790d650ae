"""Encounter timing checker.

Needs only the claim document. Encounter start/end types, activity types
for the claim type, activity start inside the encounter window and
encounter duration (10 minutes to 4 hours) are checked per activity.
"""

from __future__ import annotations

import re
from datetime import datetime

from ..engine.models import ActivityRecord, RuleContext
from ..engine.registry import RuleRegistry
from ..utils.date_parser import parse_date_time
from .base import CheckerSpec

EXPECTED_ENCOUNTER_TYPE = "1"
CLAIM_TYPES = {"DENTAL": "6", "MEDICAL": "3"}
DRUG_TYPE = "5"
UNCLASSIFIED_DRUG_TYPE = "4"
UNCLASSIFIED_DRUG_CODE = "J3490"

MIN_DURATION_MINUTES = 10
MAX_DURATION_MINUTES = 240
DAY_MINUTES = 1440

# Drug codes look like 123-4567-89012-34
DRUG_CODE_FORMAT = re.compile(r"^[^-]{3}-[^-]{4}-[^-]{5}-[^-]{2}$")


def required_type(context: RuleContext) -> str:
    claim_type = str(context.options.get("claim_type", "DENTAL")).strip().upper()
    if claim_type not in CLAIM_TYPES:
        raise ValueError(f"Unknown claim type: {claim_type}")
    return CLAIM_TYPES[claim_type]


def encounter_window(activity: ActivityRecord) -> tuple[datetime, datetime] | None:
    """Parsed encounter start and end, None unless both carry a date and time."""
    started = parse_date_time(activity.encounter_start)
    ended = parse_date_time(activity.encounter_end)
    if started is None or ended is None:
        return None
    return started, ended


def duration_minutes(window: tuple[datetime, datetime]) -> int:
    started, ended = window
    return int((ended - started).total_seconds() // 60)


def encounter_type_rule(context: RuleContext) -> list[str]:
    activity = context.activity
    remarks = []
    for label, value in (
        ("StartType", activity.encounter_start_type),
        ("EndType", activity.encounter_end_type),
    ):
        if value != EXPECTED_ENCOUNTER_TYPE:
            remarks.append(
                f"Invalid Encounter {label}: expected {EXPECTED_ENCOUNTER_TYPE} "
                f"but found {value or '(missing)'}."
            )
    return remarks


def encounter_window_rule(context: RuleContext) -> list[str]:
    activity = context.activity
    remarks = []
    for label, text in (("Start", activity.encounter_start), ("End", activity.encounter_end)):
        if not text:
            remarks.append(f"Missing Encounter {label}")
        elif parse_date_time(text) is None:
            remarks.append(f"Invalid Encounter {label} format")

    window = encounter_window(activity)
    if window is not None and duration_minutes(window) < 0:
        remarks.append("Encounter end is before encounter start.")
    return remarks


def activity_type_rule(context: RuleContext) -> list[str]:
    activity = context.activity
    kind = activity.activity_type
    code = activity.code

    if kind == DRUG_TYPE:
        if not DRUG_CODE_FORMAT.match(code):
            return [f'Type 5 activity with invalid or missing Code: "{code}".']
        return []
    if kind == UNCLASSIFIED_DRUG_TYPE and code == UNCLASSIFIED_DRUG_CODE:
        return []

    expected = required_type(context)
    if kind != expected:
        return [f"Invalid Type: expected {expected} but found {kind or '(missing)'}."]
    return []


def activity_start_rule(context: RuleContext) -> list[str]:
    activity = context.activity
    if not activity.activity_start:
        return ["Missing Activity Start"]
    started = parse_date_time(activity.activity_start)
    if started is None:
        return ["Invalid Activity Start format"]

    window = encounter_window(activity)
    if window is None:
        return []
    remarks = []
    if started < window[0]:
        remarks.append("Activity start is before encounter start.")
    if started > window[1]:
        remarks.append("Activity start is after encounter end.")
    return remarks


def duration_rule(context: RuleContext) -> list[str]:
    activity = context.activity
    window = encounter_window(activity)
    if not activity.activity_start or window is None:
        return []

    minutes = duration_minutes(window)
    if 0 <= minutes < MIN_DURATION_MINUTES:
        return [
            f"Encounter duration too short ({minutes} min). "
            f"Should be {MIN_DURATION_MINUTES} minutes minimum."
        ]
    if minutes >= DAY_MINUTES:
        start_date = activity.encounter_start.split(" ")[0]
        end_date = activity.encounter_end.split(" ")[0]
        return [f"Encounter crosses days: {start_date} → {end_date}"]
    if minutes > MAX_DURATION_MINUTES:
        hours, rest = divmod(minutes, 60)
        return [f"Encounter duration too long ({hours}h {rest}m). Should be 4 hours maximum."]
    return []


SPEC = CheckerSpec(
    name="timings",
    title="Timings",
    rules=RuleRegistry(
        [
            encounter_type_rule,
            encounter_window_rule,
            activity_type_rule,
            activity_start_rule,
            duration_rule,
        ]
    ),
    precision=0,
    options={"claim_type": "DENTAL"},
)
