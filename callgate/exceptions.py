"""callgate — Exception hierarchy.

Evaluation paths never raise for well-typed input: they return a
:class:`~callgate.engine.context.Verdict`, a ``RateLimitResult``, a
``PermissionResult`` or a ``ValidationIssue``.  Exceptions are reserved for
integration mistakes and for the explicit ``*_or_raise`` conveniences.

Hierarchy:
    CallGateError
    ├── ConfigurationError
    │   ├── RuleConfigurationError
    │   └── PolicyLoadError
    ├── RegistrationError
    │   └── DuplicateMethodError
    ├── SecurityError
    │   ├── CallRejectedError
    │   ├── RateLimitExceededError
    │   ├── PermissionNotGrantedError
    │   └── SessionExpiredError
    └── ValidationFailedError
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from callgate.engine.context import Verdict
    from callgate.validation.errors import ValidationIssue


class CallGateError(Exception):
    """Base exception for all callgate errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(CallGateError):
    """Base for configuration and wiring errors."""


class RuleConfigurationError(ConfigurationError):
    """A rule needs a collaborator the Inspector was not given."""

    def __init__(self, method: str, rule_kind: str, missing: str) -> None:
        super().__init__(
            f"Rule '{rule_kind}' on method '{method}' requires a {missing}, "
            "but none was configured",
            context={"method": method, "rule_kind": rule_kind, "missing": missing},
        )
        self.method = method
        self.rule_kind = rule_kind
        self.missing = missing


class PolicyLoadError(ConfigurationError):
    """A policy document could not be read or failed validation."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(
            f"Cannot load policy from '{source}': {reason}",
            context={"source": source, "reason": reason},
        )
        self.source = source
        self.reason = reason


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class RegistrationError(CallGateError):
    """Base for method registration errors."""


class DuplicateMethodError(RegistrationError):
    """A method was registered twice on the same check path."""

    def __init__(self, method: str, path: str) -> None:
        super().__init__(
            f"Method '{method}' already has a {path} validator",
            context={"method": method, "path": path},
        )
        self.method = method
        self.path = path


# ---------------------------------------------------------------------------
# Security
# ---------------------------------------------------------------------------


class SecurityError(CallGateError):
    """Base for all admission and authorization errors."""


class CallRejectedError(SecurityError):
    """The Inspector rejected a call."""

    def __init__(self, method: str, verdict: Verdict) -> None:
        super().__init__(
            f"Call to '{method}' rejected: {verdict.reason}",
            context={"method": method, "reason": verdict.reason, "rule": verdict.rule},
        )
        self.method = method
        self.verdict = verdict


class RateLimitExceededError(SecurityError):
    """A caller has exceeded a configured rate limit."""

    def __init__(
        self,
        caller_id: str,
        method: str,
        limit: int,
        window: str,
        retry_after: float,
    ) -> None:
        super().__init__(
            f"Rate limit exceeded for '{caller_id}' on '{method}': "
            f"max {limit} per {window}, retry after {retry_after:.1f}s",
            context={
                "caller_id": caller_id,
                "method": method,
                "limit": limit,
                "window": window,
                "retry_after": retry_after,
            },
        )
        self.caller_id = caller_id
        self.method = method
        self.limit = limit
        self.window = window
        self.retry_after = retry_after


class PermissionNotGrantedError(SecurityError):
    """A caller lacks a required permission."""

    def __init__(self, caller_id: str, permission: str, reason: str = "") -> None:
        super().__init__(
            f"Permission '{permission}' not granted to '{caller_id}'"
            + (f": {reason}" if reason else ""),
            context={"caller_id": caller_id, "permission": permission, "reason": reason},
        )
        self.caller_id = caller_id
        self.permission = permission
        self.reason = reason


class SessionExpiredError(SecurityError):
    """The caller's session has expired."""

    def __init__(self, caller_id: str, expired_at: float) -> None:
        super().__init__(
            f"Session for '{caller_id}' expired at {expired_at:.0f}",
            context={"caller_id": caller_id, "expired_at": expired_at},
        )
        self.caller_id = caller_id
        self.expired_at = expired_at


# ---------------------------------------------------------------------------
# Structural validation
# ---------------------------------------------------------------------------


class ValidationFailedError(CallGateError):
    """A structural value failed validation (raised by ``ensure_valid`` only)."""

    def __init__(self, issue: ValidationIssue) -> None:
        super().__init__(
            str(issue),
            context={"kind": issue.kind.value, "path": issue.path},
        )
        self.issue = issue
