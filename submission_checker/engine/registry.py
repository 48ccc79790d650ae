"""Ordered rule registry."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from .models import RuleContext

RuleCallable = Callable[[RuleContext], list[str]]


def rule_name(rule: RuleCallable) -> str:
    return getattr(rule, "__name__", repr(rule))


class RuleRegistry:
    """Rules in the order their remarks must appear. Registering twice is a no-op."""

    def __init__(self, rules: Iterable[RuleCallable] = ()) -> None:
        self._rules: list[RuleCallable] = []
        self.extend(rules)

    def register(self, rule: RuleCallable) -> RuleCallable:
        if rule not in self._rules:
            self._rules.append(rule)
        return rule

    def extend(self, rules: Iterable[RuleCallable]) -> None:
        for rule in rules:
            self.register(rule)

    def active_rules(self, disabled: Iterable[str] = ()) -> tuple[RuleCallable, ...]:
        skip = set(disabled)
        return tuple(rule for rule in self._rules if rule_name(rule) not in skip)

    def names(self) -> tuple[str, ...]:
        return tuple(rule_name(rule) for rule in self._rules)

    def __len__(self) -> int:
        return len(self._rules)
