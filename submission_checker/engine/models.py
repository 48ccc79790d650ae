"""Data models for the validation engine."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Union

from ..utils.date_parser import parse_date_time, parse_flexible_date


@dataclass(frozen=True)
class Observation:
    """Auxiliary code/value attached to an activity (tooth number, modifier, ...)."""

    code: str = ""
    value: str = ""
    value_type: str = ""
    type: str = ""
    description: str = ""


@dataclass(frozen=True)
class ActivityRecord:
    """One billable line of a claim, flattened with its claim and encounter fields.

    Every text field is trimmed and defaults to "". ``quantity`` and
    ``net_amount`` are None when the claim text is not a number; the raw
    text is kept alongside for display.
    """

    claim_id: str
    activity_id: str
    member_id: str = ""
    code: str = ""
    quantity: Decimal | None = None
    net_amount: Decimal | None = None
    ordering_clinician_id: str = ""
    performing_clinician_id: str = ""
    encounter_start: str = ""
    authorization_id: str = ""
    observations: tuple[Observation, ...] = ()

    activity_type: str = ""
    activity_start: str = ""
    encounter_end: str = ""
    encounter_start_type: str = ""
    encounter_end_type: str = ""
    facility_id: str = ""
    payer_id: str = ""
    provider_id: str = ""
    raw_authorization_id: str = ""
    quantity_text: str = ""
    net_text: str = ""
    receiver_id: str = ""

    @property
    def encounter_start_at(self) -> datetime | None:
        return parse_flexible_date(self.encounter_start)

    @property
    def encounter_end_at(self) -> datetime | None:
        return parse_flexible_date(self.encounter_end)

    @property
    def activity_start_at(self) -> datetime | None:
        return parse_date_time(self.activity_start) or parse_flexible_date(self.activity_start)


@dataclass(frozen=True)
class ReferenceRow:
    """One row of a reference dataset.

    ``values`` maps column header to the cell text exactly as read (not
    trimmed). ``derived`` holds checker-specific values computed once when
    the index is built.
    """

    position: int
    values: Mapping[str, str]
    derived: Mapping[str, Any] = field(default_factory=dict)

    def get(self, column: str) -> str:
        """Raw cell text, "" if the column is absent."""
        return self.values.get(column, "")

    def first(self, *columns: str) -> str:
        """Trimmed text of the first listed column that has a value."""
        for column in columns:
            text = self.values.get(column, "").strip()
            if text:
                return text
        return ""


@dataclass(frozen=True)
class Matched:
    row: ReferenceRow


@dataclass(frozen=True)
class PartialMatch:
    """Only some key parts found a row. Diagnostic only, never used as a match."""

    matched_key_parts: frozenset[str]
    missing_key_parts: frozenset[str]
    candidate_count: int = 0


@dataclass(frozen=True)
class NoMatch:
    """No row found.

    ``candidate_count`` is the number of rows that shared the key but were
    rejected by a secondary filter; 0 means the key itself was absent.
    """

    candidate_count: int = 0


MatchResult = Union[Matched, PartialMatch, NoMatch]


@dataclass(frozen=True)
class AuxData:
    """Run-wide read-only inputs shared by every rule of a checker.

    Attributes:
        metadata: Metadata documents by kind (``auth_rules``, ``tooth_codes``, ...)
        options: Checker options after configuration overrides
        indexes: Reference indexes by dataset name, including secondary tables
    """

    metadata: Mapping[str, Any] = field(default_factory=dict)
    options: Mapping[str, Any] = field(default_factory=dict)
    indexes: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RuleContext:
    """Inputs to a single rule evaluation."""

    activity: ActivityRecord
    match: MatchResult | None
    aux: AuxData = field(default_factory=AuxData)
    # Activities of the same claim that precede this one, in document order
    claim_activities: tuple[ActivityRecord, ...] = ()

    @property
    def row(self) -> ReferenceRow | None:
        if isinstance(self.match, Matched):
            return self.match.row
        return None

    @property
    def metadata(self) -> Mapping[str, Any]:
        return self.aux.metadata

    @property
    def options(self) -> Mapping[str, Any]:
        return self.aux.options

@dataclass(frozen=True)
class ValidationOutcome:
    """Remarks for one activity. Empty remarks means valid."""

    claim_id: str
    activity_id: str
    activity: ActivityRecord
    match: MatchResult | None
    remarks: tuple[str, ...] = ()
    notes: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.remarks


@dataclass(frozen=True)
class ClaimSummary:
    claim_id: str
    is_valid: bool
    activity_count: int
    invalid_count: int


@dataclass(frozen=True)
class RunResult:
    """Terminal artifact of one checker run."""

    checker: str
    outcomes: tuple[ValidationOutcome, ...]
    claims: tuple[ClaimSummary, ...]
    valid_count: int
    total_count: int
    percentage: Decimal
    precision: int
    basis: str = "activities"

    @property
    def invalid_outcomes(self) -> tuple[ValidationOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if not outcome.is_valid)

    @property
    def valid_claims(self) -> int:
        return sum(1 for claim in self.claims if claim.is_valid)
