"""Rule engine — Method validator registry and call evaluation.

The ``Inspector`` holds two independent tables of :class:`MethodValidator`:

  - inspect  — boundary checks, run before a call is admitted at all
  - guard    — runtime checks, run inside the method with full context

Registration binds a method's accessor and rule tuple into one closure, so
validators for methods with unrelated argument types live side by side
behind the same ``evaluate(context) -> Verdict`` signature.  Nothing is
evaluated at registration time beyond checking that every rule's
collaborators (session manager, rate limiter) were supplied.

Evaluation walks the rules in registration order and stops at the first
rejection.  Rate-limit rules only check during the walk; the admissions
they collect are recorded once every rule has passed, so rejected calls
never count against the caller.

Usage::

    inspector = Inspector(sessions=SessionManager(), rate_limiter=RateLimiter())
    inspector.register_guard(
        "send_message",
        [RequireAuth(), TextSize(lambda a: a["text"], 1, 100)],
    )
    verdict = inspector.guard(CallContext("send_message", caller, typed_args={"text": "hi"}))
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from callgate.engine.context import CallContext, Verdict
from callgate.engine.rules import (
    RATE_LIMITER,
    SESSIONS,
    AccessorFailed,
    Accessor,
    Rule,
    RuleScope,
)
from callgate.exceptions import CallRejectedError, DuplicateMethodError, RuleConfigurationError
from callgate.logging import bind_call_context, clear_call_context, get_logger
from callgate.security.rate_limiter import RateLimiter
from callgate.security.sessions import SessionManager

if TYPE_CHECKING:
    from callgate.config import Settings
    from callgate.security.models import RoleDefinition
    from callgate.security.providers.base import AuthProvider

log = get_logger(__name__)

INSPECT = "inspect"
GUARD = "guard"

Path = Literal["inspect", "guard"]


def _identity(args: Any) -> Any:
    return args


@dataclass(frozen=True)
class MethodValidator:
    """A registered method: its rules bound to its accessor in ``evaluate``."""

    method: str
    is_read_only: bool
    path: str
    rules: tuple[Rule, ...]
    evaluate: Callable[[CallContext], Verdict]

    def __call__(self, context: CallContext) -> Verdict:
        return self.evaluate(context)


class Inspector:
    """Registry of method validators and the entry point for call evaluation.

    Args:
        sessions:                    Session manager for identity rules.
        rate_limiter:                Limiter for ``RateLimit`` rules.
        unregistered_method_policy:  Verdict for methods with no validator.
        skip_read_only_inspection:   Admit read-only calls at the boundary
                                     without running their inspect rules.
        record_rate_limits_on_accept: Record rate-limited calls after accept.
    """

    def __init__(
        self,
        *,
        sessions: SessionManager | None = None,
        rate_limiter: RateLimiter | None = None,
        unregistered_method_policy: Literal["accept", "reject"] = "accept",
        skip_read_only_inspection: bool = False,
        record_rate_limits_on_accept: bool = True,
    ) -> None:
        self._sessions = sessions
        self._rate_limiter = rate_limiter
        self._unregistered_policy = unregistered_method_policy
        self._skip_read_only = skip_read_only_inspection
        self._record_on_accept = record_rate_limits_on_accept
        self._tables: dict[str, dict[str, MethodValidator]] = {INSPECT: {}, GUARD: {}}

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        roles: Iterable[RoleDefinition] = (),
        provider: AuthProvider | None = None,
        clock: Callable[[], float] = time.time,
    ) -> Inspector:
        """Build an Inspector wired to a fresh RateLimiter and SessionManager."""
        if settings is None:
            from callgate.config import get_settings

            settings = get_settings()
        limits = settings.rate_limit
        rate_limiter = RateLimiter(
            global_limit=limits.global_limit,
            method_limits=limits.method_limits,
            cleanup_interval=limits.cleanup_interval_seconds,
            clock=clock,
        )
        sessions = SessionManager.from_config(
            settings.sessions, roles, provider=provider, clock=clock
        )
        engine = settings.engine
        return cls(
            sessions=sessions,
            rate_limiter=rate_limiter,
            unregistered_method_policy=engine.unregistered_method_policy,
            skip_read_only_inspection=engine.skip_read_only_inspection,
            record_rate_limits_on_accept=engine.record_rate_limits_on_accept,
        )

    @property
    def sessions(self) -> SessionManager | None:
        return self._sessions

    @property
    def rate_limiter(self) -> RateLimiter | None:
        return self._rate_limiter

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        method: str,
        is_read_only: bool,
        rules: Sequence[Rule],
        accessor: Accessor | None = None,
        *,
        path: Path = GUARD,
    ) -> MethodValidator:
        """Bind *rules* and *accessor* into a validator for *method* on *path*.

        Raises:
            DuplicateMethodError:   *method* already has a validator on *path*.
            RuleConfigurationError: a rule needs a collaborator this Inspector lacks.
            TypeError:              an element of *rules* is not a rule.
        """
        table = self._tables[path]
        if method in table:
            raise DuplicateMethodError(method, path)

        bound = tuple(rules)
        for rule in bound:
            if not isinstance(rule, Rule):
                raise TypeError(f"{method}: expected a Rule, got {type(rule).__name__}")
            self._check_requirements(method, rule)

        validator = MethodValidator(
            method=method,
            is_read_only=is_read_only,
            path=path,
            rules=bound,
            evaluate=self._bind(method, bound, accessor or _identity),
        )
        table[method] = validator
        log.info(
            "method_registered",
            method=method,
            path=path,
            read_only=is_read_only,
            rules=[r.kind for r in bound],
        )
        return validator

    def register_inspect(
        self,
        method: str,
        rules: Sequence[Rule],
        accessor: Accessor | None = None,
        *,
        is_read_only: bool = False,
    ) -> MethodValidator:
        return self.register(method, is_read_only, rules, accessor, path=INSPECT)

    def register_guard(
        self,
        method: str,
        rules: Sequence[Rule],
        accessor: Accessor | None = None,
        *,
        is_read_only: bool = False,
    ) -> MethodValidator:
        return self.register(method, is_read_only, rules, accessor, path=GUARD)

    def unregister(self, method: str, *, path: Path = GUARD) -> bool:
        return self._tables[path].pop(method, None) is not None

    def get_validator(self, method: str, *, path: Path = GUARD) -> MethodValidator | None:
        return self._tables[path].get(method)

    def methods(self, path: Path = GUARD) -> list[str]:
        return sorted(self._tables[path])

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def inspect(self, context: CallContext) -> Verdict:
        """Run the boundary-time validator for ``context.method``."""
        if self._skip_read_only and context.is_read_only:
            return Verdict.accept()
        return self._run(INSPECT, context)

    def guard(self, context: CallContext) -> Verdict:
        """Run the runtime validator for ``context.method``."""
        return self._run(GUARD, context)

    def evaluate(self, context: CallContext) -> Verdict:
        """Route to :meth:`inspect` or :meth:`guard` on ``context.is_boundary_check``."""
        if context.is_boundary_check:
            return self.inspect(context)
        return self.guard(context)

    def evaluate_or_raise(self, context: CallContext) -> None:
        """Evaluate; raise :class:`CallRejectedError` on rejection."""
        verdict = self.evaluate(context)
        if not verdict.allowed:
            raise CallRejectedError(context.method, verdict)

    @staticmethod
    def size_only(context: CallContext) -> int:
        """Byte length of the raw arguments.  No rules are evaluated."""
        return len(context.raw_arg_bytes)

    def inspect_only_arg_size(self, context: CallContext, max_bytes: int) -> Verdict:
        """Ready-made boundary verdict on raw argument size alone."""
        size = self.size_only(context)
        if size > max_bytes:
            return Verdict.reject(f"arg_size: max {max_bytes} violated, got {size}", rule="arg_size")
        return Verdict.accept()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_requirements(self, method: str, rule: Rule) -> None:
        available = {SESSIONS: self._sessions, RATE_LIMITER: self._rate_limiter}
        for needed in sorted(rule.requires):
            if available.get(needed) is None:
                raise RuleConfigurationError(method, rule.kind, needed)

    def _bind(
        self,
        method: str,
        rules: tuple[Rule, ...],
        accessor: Accessor,
    ) -> Callable[[CallContext], Verdict]:
        sessions = self._sessions
        rate_limiter = self._rate_limiter
        record_on_accept = self._record_on_accept

        def evaluate(context: CallContext) -> Verdict:
            scope = RuleScope(context, accessor, sessions=sessions, rate_limiter=rate_limiter)
            for rule in rules:
                try:
                    reason = rule.evaluate(scope)
                except AccessorFailed as exc:
                    log.exception("accessor_failed", method=method, rule=rule.kind)
                    return Verdict.reject(f"{rule.kind}: accessor failed: {exc}", rule=rule.kind)
                except Exception as exc:
                    log.exception("rule_failed", method=method, rule=rule.kind)
                    return Verdict.reject(
                        f"{rule.kind}: rule raised {type(exc).__name__}: {exc}", rule=rule.kind
                    )
                if reason is not None:
                    return Verdict.reject(reason, rule=rule.kind)

            if record_on_accept and rate_limiter is not None:
                for limited in sorted(scope.pending_records):
                    rate_limiter.record(context.caller, limited)
            return Verdict.accept()

        return evaluate

    def _run(self, path: str, context: CallContext) -> Verdict:
        validator = self._tables[path].get(context.method)
        if validator is None:
            log.debug(
                "unregistered_method",
                method=context.method,
                path=path,
                policy=self._unregistered_policy,
            )
            if self._unregistered_policy == "reject":
                return Verdict.reject(
                    f"unregistered_method: no {path} validator for '{context.method}'",
                    rule="unregistered_method",
                )
            return Verdict.accept()

        bind_call_context(method=context.method, caller=context.caller.id)
        try:
            verdict = validator.evaluate(context)
        finally:
            clear_call_context()

        if not verdict.allowed:
            log.debug(
                "call_rejected",
                method=context.method,
                caller=context.caller.id,
                path=path,
                rule=verdict.rule,
                reason=verdict.reason,
            )
        return verdict
