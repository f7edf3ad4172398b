"""Rule engine — method validator registry, rules and call context."""

from callgate.engine.builder import (
    RuleBuilder,
    admin_only,
    append_rule,
    authenticated_only,
    basic_validation,
    combine_rules,
    rate_limited_user,
)
from callgate.engine.context import CallContext, Verdict
from callgate.engine.dispatcher import GUARD, INSPECT, Inspector, MethodValidator
from callgate.engine.rules import (
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
    ValidationRule,
)

__all__ = [
    "CallContext",
    "Verdict",
    "Inspector",
    "MethodValidator",
    "INSPECT",
    "GUARD",
    # Rules
    "Rule",
    "ValidationRule",
    "TextSize",
    "BlobSize",
    "NatRange",
    "IntRange",
    "RequireAuth",
    "RequireRole",
    "RequirePermission",
    "AllowedCallers",
    "BlockedCallers",
    "BlockAll",
    "BlockIngress",
    "RateLimit",
    "CustomCheck",
    "DynamicAuth",
    "StructuralRule",
    # Builders
    "RuleBuilder",
    "append_rule",
    "combine_rules",
    "authenticated_only",
    "basic_validation",
    "admin_only",
    "rate_limited_user",
]
