"""Schemas for checker runs and their results."""

from __future__ import annotations

from pydantic import BaseModel, Field

from ..engine.models import ClaimSummary, RunResult, ValidationOutcome
from ..pipeline import RunAllResult


class CheckerAvailability(BaseModel):
    """Whether a checker can run with the files uploaded so far."""

    name: str
    title: str
    ready: bool
    missing: list[str] = Field(default_factory=list)


class OutcomeModel(BaseModel):
    claim_id: str
    activity_id: str
    code: str
    valid: bool
    remarks: list[str]
    notes: list[str] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: ValidationOutcome) -> OutcomeModel:
        return cls(
            claim_id=outcome.claim_id,
            activity_id=outcome.activity_id,
            code=outcome.activity.code,
            valid=outcome.is_valid,
            remarks=list(outcome.remarks),
            notes=list(outcome.notes),
        )


class ClaimSummaryModel(BaseModel):
    claim_id: str
    valid: bool
    activity_count: int
    invalid_count: int

    @classmethod
    def from_summary(cls, summary: ClaimSummary) -> ClaimSummaryModel:
        return cls(
            claim_id=summary.claim_id,
            valid=summary.is_valid,
            activity_count=summary.activity_count,
            invalid_count=summary.invalid_count,
        )


class RunResponse(BaseModel):
    """Summary and outcomes of one checker run.

    ``percentage`` is a string so the rounded value keeps its exact digits.
    """

    checker: str
    valid_count: int
    total_count: int
    invalid_count: int
    percentage: str
    precision: int
    basis: str
    claims: list[ClaimSummaryModel]
    outcomes: list[OutcomeModel]

    @classmethod
    def from_result(cls, result: RunResult) -> RunResponse:
        return cls(
            checker=result.checker,
            valid_count=result.valid_count,
            total_count=result.total_count,
            invalid_count=len(result.invalid_outcomes),
            percentage=str(result.percentage),
            precision=result.precision,
            basis=result.basis,
            claims=[ClaimSummaryModel.from_summary(claim) for claim in result.claims],
            outcomes=[OutcomeModel.from_outcome(outcome) for outcome in result.outcomes],
        )


class RunAllResponse(BaseModel):
    results: dict[str, RunResponse]
    errors: dict[str, str] = Field(default_factory=dict)
    skipped: list[str] = Field(default_factory=list)

    @classmethod
    def from_batch(cls, batch: RunAllResult) -> RunAllResponse:
        return cls(
            results={name: RunResponse.from_result(result) for name, result in batch.results.items()},
            errors=dict(batch.errors),
            skipped=list(batch.skipped),
        )


class InvalidRowsResponse(BaseModel):
    checker: str
    rows: list[dict[str, str]]
