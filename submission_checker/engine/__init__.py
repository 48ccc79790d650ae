"""Claim-to-reference matching and validation engine."""

from .aggregator import aggregate
from .engine import evaluate, validate_activity
from .extractor import extract
from .indexer import KeyPart, KeySpec, ReferenceIndex, build_index, lookup
from .models import (
    ActivityRecord,
    AuxData,
    ClaimSummary,
    Matched,
    MatchResult,
    NoMatch,
    Observation,
    PartialMatch,
    ReferenceRow,
    RuleContext,
    RunResult,
    ValidationOutcome,
)
from .registry import RuleRegistry
from .resolver import MatchPolicy, resolve

__all__ = [
    "ActivityRecord",
    "AuxData",
    "ClaimSummary",
    "KeyPart",
    "KeySpec",
    "MatchPolicy",
    "MatchResult",
    "Matched",
    "NoMatch",
    "Observation",
    "PartialMatch",
    "ReferenceIndex",
    "ReferenceRow",
    "RuleContext",
    "RuleRegistry",
    "RunResult",
    "ValidationOutcome",
    "aggregate",
    "build_index",
    "evaluate",
    "extract",
    "lookup",
    "resolve",
    "validate_activity",
]
