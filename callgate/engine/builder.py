"""Rule engine — Rule list utilities and preset rule sets.

Rule lists are tuples.  ``append_rule`` and ``combine_rules`` return new
tuples and never modify their inputs, so a preset can be shared between
methods and extended per method.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from callgate.engine.context import CallContext
from callgate.engine.rules import (
    Accessor,
    AllowedCallers,
    BlobSize,
    BlockAll,
    BlockedCallers,
    BlockIngress,
    CustomCheck,
    DynamicAuth,
    IntRange,
    NatRange,
    RateLimit,
    RequireAuth,
    RequirePermission,
    RequireRole,
    Rule,
    StructuralRule,
    TextSize,
)
from callgate.security.rate_limiter import RateLimitConfig, TimeWindow
from callgate.validation.structural import ValueCheck

RuleList = tuple[Rule, ...]


def append_rule(rules: Iterable[Rule], rule: Rule) -> RuleList:
    return (*rules, rule)


def combine_rules(*rule_lists: Iterable[Rule]) -> RuleList:
    """Concatenate rule lists, preserving order."""
    combined: list[Rule] = []
    for rules in rule_lists:
        combined.extend(rules)
    return tuple(combined)


class RuleBuilder:
    """Fluent construction of a rule list.

    Example::

        rules = (
            RuleBuilder()
            .require_auth()
            .text_size(lambda a: a["text"], 1, 280)
            .rate_limit()
            .build()
        )
    """

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._rules: list[Rule] = list(rules)

    def add(self, rule: Rule) -> RuleBuilder:
        self._rules.append(rule)
        return self

    def extend(self, rules: Iterable[Rule]) -> RuleBuilder:
        self._rules.extend(rules)
        return self

    def text_size(self, accessor: Accessor, min_length: int | None = None, max_length: int | None = None) -> RuleBuilder:
        return self.add(TextSize(accessor, min_length, max_length))

    def blob_size(self, accessor: Accessor, min_size: int | None = None, max_size: int | None = None) -> RuleBuilder:
        return self.add(BlobSize(accessor, min_size, max_size))

    def nat_range(self, accessor: Accessor, min_value: int | None = None, max_value: int | None = None) -> RuleBuilder:
        return self.add(NatRange(accessor, min_value, max_value))

    def int_range(self, accessor: Accessor, min_value: int | None = None, max_value: int | None = None) -> RuleBuilder:
        return self.add(IntRange(accessor, min_value, max_value))

    def require_auth(self, *, require_session: bool = False) -> RuleBuilder:
        return self.add(RequireAuth(require_session))

    def require_role(self, role: str) -> RuleBuilder:
        return self.add(RequireRole(role))

    def require_permission(self, permission: str) -> RuleBuilder:
        return self.add(RequirePermission(permission))

    def allow_callers(self, *caller_ids: str) -> RuleBuilder:
        return self.add(AllowedCallers(frozenset(caller_ids)))

    def block_callers(self, *caller_ids: str) -> RuleBuilder:
        return self.add(BlockedCallers(frozenset(caller_ids)))

    def block_all(self) -> RuleBuilder:
        return self.add(BlockAll())

    def block_ingress(self) -> RuleBuilder:
        return self.add(BlockIngress())

    def rate_limit(self, config: RateLimitConfig | None = None) -> RuleBuilder:
        return self.add(RateLimit(config))

    def custom(
        self,
        predicate: Callable[[CallContext], bool | str],
        message: str = "custom check failed",
    ) -> RuleBuilder:
        return self.add(CustomCheck(predicate, message))

    def dynamic_auth(self, authorize: Callable[..., bool | str], message: str = "not authorized") -> RuleBuilder:
        return self.add(DynamicAuth(authorize, message))

    def check(self, accessor: Accessor, *checks: ValueCheck) -> RuleBuilder:
        """One structural rule per check, all reading the same field."""
        return self.extend(StructuralRule(accessor, c) for c in checks)

    def build(self) -> RuleList:
        return tuple(self._rules)

    def __len__(self) -> int:
        return len(self._rules)


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------


def authenticated_only() -> RuleList:
    return (RequireAuth(),)


def basic_validation(text_accessor: Accessor, max_length: int = 1000) -> RuleList:
    """Authenticated caller and a non-empty text field of at most *max_length*."""
    return (RequireAuth(), TextSize(text_accessor, 1, max_length))


def admin_only(role: str = "admin") -> RuleList:
    return (RequireAuth(), RequireRole(role))


def rate_limited_user(
    max_requests: int = 10,
    window: TimeWindow | None = None,
    *,
    exempt_roles: Iterable[str] = ("admin",),
    exempt_callers: Iterable[str] = (),
) -> RuleList:
    """Authenticated caller under a per-method limit; *exempt_roles* bypass it."""
    config = RateLimitConfig(
        max_requests=max_requests,
        window=window or TimeWindow.minutes(1),
        exempt_roles=frozenset(exempt_roles),
        exempt_callers=frozenset(exempt_callers),
    )
    return (RequireAuth(), RateLimit(config))
