"""Rule evaluation for a single activity."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from .models import ActivityRecord, AuxData, MatchResult, RuleContext, ValidationOutcome
from .registry import RuleCallable

# Returns a note when the activity is exempt from the checker's rules, else None
Exemption = Callable[[RuleContext], "str | None"]


def evaluate(
    activity: ActivityRecord,
    match: MatchResult | None,
    aux: AuxData,
    rules: Iterable[RuleCallable],
    claim_activities: tuple[ActivityRecord, ...] = (),
) -> tuple[str, ...]:
    """Run every rule and concatenate remarks in rule order.

    Rules are independent: none sees another's remarks. An exception from
    a rule is a programming error and propagates to the caller.
    """
    context = RuleContext(
        activity=activity, match=match, aux=aux, claim_activities=claim_activities
    )
    remarks: list[str] = []
    for rule in rules:
        produced = rule(context)
        if produced:
            remarks.extend(produced)
    return tuple(remarks)


def validate_activity(
    activity: ActivityRecord,
    match: MatchResult | None,
    aux: AuxData,
    rules: Iterable[RuleCallable],
    exemptions: Iterable[Exemption] = (),
    claim_activities: tuple[ActivityRecord, ...] = (),
) -> ValidationOutcome:
    """Evaluate one activity, honouring checker exemptions first.

    The first exemption that returns a note short-circuits the rules and
    yields a valid outcome carrying that note.
    """
    context = RuleContext(
        activity=activity, match=match, aux=aux, claim_activities=claim_activities
    )
    for exemption in exemptions:
        note = exemption(context)
        if note is not None:
            return ValidationOutcome(
                claim_id=activity.claim_id,
                activity_id=activity.activity_id,
                activity=activity,
                match=match,
                notes=(note,) if note else (),
            )

    remarks = evaluate(activity, match, aux, rules, claim_activities)
    return ValidationOutcome(
        claim_id=activity.claim_id,
        activity_id=activity.activity_id,
        activity=activity,
        match=match,
        remarks=remarks,
    )
