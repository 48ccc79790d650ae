"""Match resolver: narrows keyed candidates down to one authoritative row."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from .indexer import ReferenceIndex
from .models import ActivityRecord, Matched, MatchResult, NoMatch, PartialMatch, ReferenceRow

SecondaryPredicate = Callable[[ActivityRecord, ReferenceRow, Mapping[str, Any]], bool]
Preference = Callable[[ActivityRecord, ReferenceRow], Any]


@dataclass(frozen=True)
class MatchPolicy:
    """How a checker turns candidate rows into a MatchResult.

    Attributes:
        partial_parts: Key parts kept for the diagnostic lookup when the
            exact key finds nothing; the other parts become wildcards
        secondary: Extra filter over keyed candidates, receiving the
            activity, the row and the run's metadata documents
        prefer: Among surviving candidates pick the greatest value; ties
            keep index order. Without it the first row wins.
    """

    partial_parts: tuple[str, ...] = ()
    secondary: SecondaryPredicate | None = None
    prefer: Preference | None = None


DEFAULT_POLICY = MatchPolicy()


def _pick(
    activity: ActivityRecord, rows: list[ReferenceRow], prefer: Preference | None
) -> ReferenceRow:
    if prefer is None:
        return rows[0]
    best = rows[0]
    best_rank = prefer(activity, best)
    for row in rows[1:]:
        rank = prefer(activity, row)
        if rank > best_rank:
            best, best_rank = row, rank
    return best


def resolve(
    activity: ActivityRecord,
    index: ReferenceIndex,
    policy: MatchPolicy = DEFAULT_POLICY,
    metadata: Mapping[str, Any] | None = None,
    attributes: Mapping[str, str] | None = None,
) -> MatchResult:
    """Resolve one activity against a reference index.

    Args:
        activity: Activity whose key is looked up
        index: Index built for the checker's KeySpec
        policy: Secondary filter, preference and partial-match parts
        metadata: Passed through to the secondary predicate
        attributes: Per-part override of the activity attribute read

    Returns:
        Matched with the chosen row, PartialMatch when only the diagnostic
        lookup found rows, otherwise NoMatch
    """
    spec = index.spec
    key = spec.activity_key(activity, attributes)
    candidates = index.lookup(key)

    if candidates:
        surviving = list(candidates)
        if policy.secondary is not None:
            surviving = [row for row in candidates if policy.secondary(activity, row, metadata or {})]
            if not surviving:
                return NoMatch(candidate_count=len(candidates))
        return Matched(row=_pick(activity, surviving, policy.prefer))

    if policy.partial_parts:
        pattern = tuple(
            component if name in policy.partial_parts else None
            for name, component in zip(spec.names, key)
        )
        partial = index.lookup_partial(pattern)
        if partial:
            kept = frozenset(name for name in spec.names if name in policy.partial_parts)
            return PartialMatch(
                matched_key_parts=kept,
                missing_key_parts=frozenset(spec.names) - kept,
                candidate_count=len(partial),
            )

    return NoMatch()
