"""Claim-level rollup of activity outcomes."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from ..utils.normalization import round_half_up
from .models import ClaimSummary, RunResult, ValidationOutcome

BASIS_ACTIVITIES = "activities"
BASIS_CLAIMS = "claims"


def percentage(valid: int, total: int, precision: int) -> Decimal:
    """valid/total as a percentage rounded half-up to ``precision`` places.

    Examples:
        >>> percentage(2, 3, 2)
        Decimal('66.67')
        >>> percentage(0, 0, 0)
        Decimal('0')
    """
    if total <= 0:
        return round_half_up(Decimal(0), precision)
    return round_half_up(Decimal(valid) * 100 / Decimal(total), precision)


def summarize_claims(
    outcomes: Sequence[ValidationOutcome], claim_ids: Iterable[str] = ()
) -> tuple[ClaimSummary, ...]:
    """AND the activity validity of each claim.

    Claims listed in ``claim_ids`` without any outcome are vacuously valid.
    Order follows ``claim_ids`` first, then first appearance in ``outcomes``.
    """
    order: list[str] = []
    totals: dict[str, int] = {}
    invalid: dict[str, int] = {}

    for claim_id in claim_ids:
        if claim_id not in totals:
            order.append(claim_id)
            totals[claim_id] = 0
            invalid[claim_id] = 0

    for outcome in outcomes:
        if outcome.claim_id not in totals:
            order.append(outcome.claim_id)
            totals[outcome.claim_id] = 0
            invalid[outcome.claim_id] = 0
        totals[outcome.claim_id] += 1
        if not outcome.is_valid:
            invalid[outcome.claim_id] += 1

    return tuple(
        ClaimSummary(
            claim_id=claim_id,
            is_valid=invalid[claim_id] == 0,
            activity_count=totals[claim_id],
            invalid_count=invalid[claim_id],
        )
        for claim_id in order
    )


def aggregate(
    outcomes: Sequence[ValidationOutcome],
    precision: int = 0,
    basis: str = BASIS_ACTIVITIES,
    claim_ids: Iterable[str] = (),
    checker: str = "",
) -> RunResult:
    """Build the RunResult for a sequence of outcomes.

    Pure: the same inputs always give an equal RunResult.

    Args:
        outcomes: Outcomes in extraction order
        precision: Decimal places of the validity percentage
        basis: Count valid ``activities`` or valid ``claims``
        claim_ids: Every claim id of the document, so that claims without
            applicable activities still appear
        checker: Checker name recorded on the result

    Returns:
        RunResult with outcomes, claim summaries and counts
    """
    if basis not in (BASIS_ACTIVITIES, BASIS_CLAIMS):
        raise ValueError(f"Unknown percentage basis: {basis}")

    ordered = tuple(outcomes)
    claims = summarize_claims(ordered, claim_ids)

    if basis == BASIS_CLAIMS:
        valid_count = sum(1 for claim in claims if claim.is_valid)
        total_count = len(claims)
    else:
        valid_count = sum(1 for outcome in ordered if outcome.is_valid)
        total_count = len(ordered)

    return RunResult(
        checker=checker,
        outcomes=ordered,
        claims=claims,
        valid_count=valid_count,
        total_count=total_count,
        percentage=percentage(valid_count, total_count, precision),
        precision=precision,
        basis=basis,
    )
