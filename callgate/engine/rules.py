"""Rule engine — the closed set of validation and authorization rules.

Every rule is a frozen dataclass with a ``kind`` tag and one method,
``evaluate(scope)``, returning ``None`` to pass or a diagnostic string
``"<kind>: <detail>"`` to reject.  Rules never raise for well-typed input.

Families:

  Primitive fields   TextSize, BlobSize, NatRange, IntRange
  Identity           RequireAuth, RequireRole, RequirePermission
  Access lists       AllowedCallers, BlockedCallers
  Blocking           BlockAll, BlockIngress
  Rate limiting      RateLimit
  Callbacks          CustomCheck, DynamicAuth
  Structural         StructuralRule (wraps a ``ValueCheck``)

Field accessors receive the output of the method's accessor, not the raw
context.  Callbacks receive the full :class:`CallContext`.

Rules that need a collaborator declare it in ``requires`` so the
Inspector can refuse to register them when it was built without one.

Usage::

    rules = (
        RequireAuth(),
        TextSize(lambda args: args["text"], min_length=1, max_length=100),
        RateLimit(),
    )
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Union

from callgate.engine.context import CallContext
from callgate.security.rate_limiter import RateLimitConfig
from callgate.validation.structural import (
    ArrayItemType,
    ArrayLength,
    HasShape,
    HasSize,
    HasType,
    InRange,
    MapKeyExists,
    MapSize,
    MatchesText,
    MaxDepth,
    Nested,
    Predicate,
    PropertyExists,
    PropertySize,
    PropertyType,
    Shape,
    TextConstraints,
    ValidationContext,
    ValueCheck,
)
from callgate.values import Blob, Integer, Text, Value, from_python

if TYPE_CHECKING:
    from callgate.security.rate_limiter import RateLimiter
    from callgate.security.sessions import SessionManager

Accessor = Callable[[Any], Any]

# Collaborator names used in ``Rule.requires``.
SESSIONS = "SessionManager"
RATE_LIMITER = "RateLimiter"


class AccessorFailed(Exception):
    """An integrator-supplied accessor raised while extracting a field."""

    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"{type(cause).__name__}: {cause}")
        self.cause = cause


_UNSET: Any = object()


class RuleScope:
    """Per-evaluation state shared by the rules of one method.

    The method accessor is applied to ``context.typed_args`` at most once,
    on first use.  Rate-limit admissions are collected in ``pending_records``
    and recorded by the Inspector only after every rule has passed.
    """

    def __init__(
        self,
        context: CallContext,
        accessor: Accessor,
        *,
        sessions: SessionManager | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.context = context
        self.sessions = sessions
        self.rate_limiter = rate_limiter
        self.pending_records: set[str] = set()
        self._accessor = accessor
        self._args: Any = _UNSET

    @property
    def args(self) -> Any:
        if self._args is _UNSET:
            self._args = _extract(self._accessor, self.context.typed_args)
        return self._args

    def field(self, accessor: Accessor) -> Any:
        return _extract(accessor, self.args)


def _extract(accessor: Accessor, source: Any) -> Any:
    try:
        return accessor(source)
    except Exception as exc:
        raise AccessorFailed(exc) from exc


def _bounds(kind: str, measured: int, minimum: int | None, maximum: int | None) -> str | None:
    if minimum is not None and measured < minimum:
        return f"{kind}: min {minimum} violated, got {measured}"
    if maximum is not None and measured > maximum:
        return f"{kind}: max {maximum} violated, got {measured}"
    return None


def _verdict_text(kind: str, outcome: bool | str | None, default: str) -> str | None:
    """Map a callback's ``True`` / ``False`` / message result to a diagnostic."""
    if outcome is True:
        return None
    if isinstance(outcome, str) and outcome:
        return f"{kind}: {outcome}"
    return f"{kind}: {default}"


class Rule(ABC):
    kind: ClassVar[str] = ""

    @property
    def requires(self) -> frozenset[str]:
        return frozenset()

    @abstractmethod
    def evaluate(self, scope: RuleScope) -> str | None:
        """Return ``None`` to pass, or a ``"<kind>: <detail>"`` diagnostic."""
        ...


# ---------------------------------------------------------------------------
# Primitive field rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextSize(Rule):
    """Character length of a text field, inclusive bounds."""

    kind: ClassVar[str] = "text_size"
    accessor: Accessor
    min_length: int | None = None
    max_length: int | None = None

    def evaluate(self, scope: RuleScope) -> str | None:
        text = scope.field(self.accessor)
        if isinstance(text, Text):
            text = text.value
        if not isinstance(text, str):
            return f"{self.kind}: expected text, got {type(text).__name__}"
        return _bounds(self.kind, len(text), self.min_length, self.max_length)


@dataclass(frozen=True)
class BlobSize(Rule):
    """Byte length of a binary field, inclusive bounds."""

    kind: ClassVar[str] = "blob_size"
    accessor: Accessor
    min_size: int | None = None
    max_size: int | None = None

    def evaluate(self, scope: RuleScope) -> str | None:
        data = scope.field(self.accessor)
        if isinstance(data, Blob):
            data = data.value
        if not isinstance(data, (bytes, bytearray, memoryview)):
            return f"{self.kind}: expected bytes, got {type(data).__name__}"
        return _bounds(self.kind, len(data), self.min_size, self.max_size)


def _as_int(value: Any) -> int | None:
    if isinstance(value, Integer):
        return value.value
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


@dataclass(frozen=True)
class NatRange(Rule):
    kind: ClassVar[str] = "nat_range"
    accessor: Accessor
    min_value: int | None = None
    max_value: int | None = None

    def evaluate(self, scope: RuleScope) -> str | None:
        raw = scope.field(self.accessor)
        number = _as_int(raw)
        if number is None:
            return f"{self.kind}: expected a natural number, got {type(raw).__name__}"
        if number < 0:
            return f"{self.kind}: expected a natural number, got {number}"
        return _bounds(self.kind, number, self.min_value, self.max_value)


@dataclass(frozen=True)
class IntRange(Rule):
    kind: ClassVar[str] = "int_range"
    accessor: Accessor
    min_value: int | None = None
    max_value: int | None = None

    def evaluate(self, scope: RuleScope) -> str | None:
        raw = scope.field(self.accessor)
        number = _as_int(raw)
        if number is None:
            return f"{self.kind}: expected an integer, got {type(raw).__name__}"
        return _bounds(self.kind, number, self.min_value, self.max_value)


# ---------------------------------------------------------------------------
# Identity rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RequireAuth(Rule):
    """Reject anonymous callers.  With ``require_session`` a live session is also needed."""

    kind: ClassVar[str] = "require_auth"
    require_session: bool = False

    @property
    def requires(self) -> frozenset[str]:
        return frozenset({SESSIONS}) if self.require_session else frozenset()

    def evaluate(self, scope: RuleScope) -> str | None:
        caller = scope.context.caller
        if caller.is_anonymous:
            return f"{self.kind}: caller is not authenticated"
        if self.require_session and scope.sessions is not None:
            if scope.sessions.get_session(caller) is None:
                return f"{self.kind}: no active session for '{caller.id}'"
        return None


@dataclass(frozen=True)
class RequireRole(Rule):
    kind: ClassVar[str] = "require_role"
    role: str

    @property
    def requires(self) -> frozenset[str]:
        return frozenset({SESSIONS})

    def evaluate(self, scope: RuleScope) -> str | None:
        caller = scope.context.caller
        if scope.sessions is not None and scope.sessions.has_role(caller, self.role):
            return None
        return f"{self.kind}: role '{self.role}' required, caller '{caller.id}' lacks it"


@dataclass(frozen=True)
class RequirePermission(Rule):
    kind: ClassVar[str] = "require_permission"
    permission: str

    @property
    def requires(self) -> frozenset[str]:
        return frozenset({SESSIONS})

    def evaluate(self, scope: RuleScope) -> str | None:
        if scope.sessions is None:
            return f"{self.kind}: no session manager"
        result = scope.sessions.has_permission(scope.context.caller, self.permission)
        if result.is_granted:
            return None
        return f"{self.kind}: {result.status.value}: {result.reason}"


# ---------------------------------------------------------------------------
# Access lists and blocking
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AllowedCallers(Rule):
    kind: ClassVar[str] = "allowed_callers"
    callers: frozenset[str]

    def evaluate(self, scope: RuleScope) -> str | None:
        caller_id = scope.context.caller.id
        if caller_id in self.callers:
            return None
        return f"{self.kind}: caller '{caller_id}' is not on the allow list"


@dataclass(frozen=True)
class BlockedCallers(Rule):
    kind: ClassVar[str] = "blocked_callers"
    callers: frozenset[str]

    def evaluate(self, scope: RuleScope) -> str | None:
        caller_id = scope.context.caller.id
        if caller_id in self.callers:
            return f"{self.kind}: caller '{caller_id}' is blocked"
        return None


@dataclass(frozen=True)
class BlockAll(Rule):
    kind: ClassVar[str] = "block_all"

    def evaluate(self, scope: RuleScope) -> str | None:
        return f"{self.kind}: method '{scope.context.method}' is blocked"


@dataclass(frozen=True)
class BlockIngress(Rule):
    """Reject callers from outside the system; local services pass."""

    kind: ClassVar[str] = "block_ingress"

    def evaluate(self, scope: RuleScope) -> str | None:
        caller = scope.context.caller
        if caller.is_local:
            return None
        return f"{self.kind}: external caller '{caller.id}' is blocked"


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateLimit(Rule):
    """Check the caller against the limiter; the call is recorded only on accept.

    ``config`` overrides the limiter's own limit for this method.
    """

    kind: ClassVar[str] = "rate_limit"
    config: RateLimitConfig | None = None

    @property
    def requires(self) -> frozenset[str]:
        return frozenset({RATE_LIMITER})

    def evaluate(self, scope: RuleScope) -> str | None:
        if scope.rate_limiter is None:
            return f"{self.kind}: no rate limiter"
        ctx = scope.context
        roles = scope.sessions.roles_of(ctx.caller) if scope.sessions is not None else frozenset()
        result = scope.rate_limiter.check(ctx.caller, ctx.method, roles=roles, override=self.config)
        if not result.allowed:
            return (
                f"{self.kind}: max {result.limit} per {result.window} violated, "
                f"retry after {result.retry_after:.1f}s"
            )
        scope.pending_records.add(ctx.method)
        return None


# ---------------------------------------------------------------------------
# Callbacks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CustomCheck(Rule):
    """Arbitrary synchronous predicate over the full call context.

    The predicate returns True to pass, False to reject with ``message``, or
    a non-empty string to reject with that string.  It must not mutate
    engine state.
    """

    kind: ClassVar[str] = "custom_check"
    predicate: Callable[[CallContext], bool | str]
    message: str = "custom check failed"

    def evaluate(self, scope: RuleScope) -> str | None:
        return _verdict_text(self.kind, self.predicate(scope.context), self.message)


@dataclass(frozen=True)
class DynamicAuth(Rule):
    """Authorization callback that may consult the session manager."""

    kind: ClassVar[str] = "dynamic_auth"
    authorize: Callable[[CallContext, SessionManager | None], bool | str]
    message: str = "not authorized"

    def evaluate(self, scope: RuleScope) -> str | None:
        return _verdict_text(self.kind, self.authorize(scope.context, scope.sessions), self.message)


# ---------------------------------------------------------------------------
# Structural rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StructuralRule(Rule):
    """Run a structural ``ValueCheck`` on the field the accessor extracts.

    Plain Python data returned by the accessor is converted with
    :func:`~callgate.values.from_python` first.
    """

    accessor: Accessor
    check: ValueCheck
    context: ValidationContext = field(default_factory=ValidationContext)

    @property
    def kind(self) -> str:  # type: ignore[override]
        return self.check.kind

    def evaluate(self, scope: RuleScope) -> str | None:
        try:
            value = from_python(scope.field(self.accessor))
        except (TypeError, ValueError) as exc:
            return f"{self.kind}: cannot interpret field as a value: {exc}"
        issue = self.check.apply(value, self.context)
        if issue is None:
            return None
        return f"{self.kind}: {issue}"


def value_type(accessor: Accessor, *types: str) -> StructuralRule:
    return StructuralRule(accessor, HasType(tuple(types)))


def value_size(accessor: Accessor, min_size: int | None = None, max_size: int | None = None) -> StructuralRule:
    return StructuralRule(accessor, HasSize(min_size, max_size))


def value_depth(accessor: Accessor, max_depth: int) -> StructuralRule:
    return StructuralRule(accessor, MaxDepth(max_depth))


def value_pattern(
    accessor: Accessor,
    *,
    min_length: int | None = None,
    max_length: int | None = None,
    pattern: str | None = None,
    allowed_values: tuple[str, ...] | None = None,
) -> StructuralRule:
    constraints = TextConstraints(min_length, max_length, pattern, allowed_values)
    return StructuralRule(accessor, MatchesText(constraints))


def value_range(accessor: Accessor, min_value: Any = None, max_value: Any = None) -> StructuralRule:
    return StructuralRule(accessor, InRange(min_value, max_value))


def value_shape(
    accessor: Accessor,
    *,
    required: tuple[str, ...] = (),
    optional: tuple[str, ...] = (),
    allow_additional: bool = True,
    max_depth: int | None = None,
) -> StructuralRule:
    return StructuralRule(accessor, HasShape(Shape(required, optional, allow_additional, max_depth)))


def property_exists(accessor: Accessor, name: str) -> StructuralRule:
    return StructuralRule(accessor, PropertyExists(name))


def property_type(accessor: Accessor, name: str, *types: str) -> StructuralRule:
    return StructuralRule(accessor, PropertyType(name, tuple(types)))


def property_size(
    accessor: Accessor, name: str, min_size: int | None = None, max_size: int | None = None
) -> StructuralRule:
    return StructuralRule(accessor, PropertySize(name, min_size, max_size))


def array_length(
    accessor: Accessor, min_length: int | None = None, max_length: int | None = None
) -> StructuralRule:
    return StructuralRule(accessor, ArrayLength(min_length, max_length))


def array_item_type(accessor: Accessor, *types: str) -> StructuralRule:
    return StructuralRule(accessor, ArrayItemType(tuple(types)))


def map_key_exists(accessor: Accessor, key: str) -> StructuralRule:
    return StructuralRule(accessor, MapKeyExists(key))


def map_size(accessor: Accessor, min_size: int | None = None, max_size: int | None = None) -> StructuralRule:
    return StructuralRule(accessor, MapSize(min_size, max_size))


def custom_value_check(
    accessor: Accessor,
    predicate: Callable[[Value], bool | str],
    message: str = "custom check failed",
) -> StructuralRule:
    return StructuralRule(accessor, Predicate(predicate, message))


def nested_rules(
    accessor: Accessor,
    *checks: ValueCheck,
    name: str | None = None,
    optional: bool = False,
) -> StructuralRule:
    return StructuralRule(accessor, Nested(tuple(checks), name, optional))


ValidationRule = Union[
    TextSize,
    BlobSize,
    NatRange,
    IntRange,
    RequireAuth,
    RequireRole,
    RequirePermission,
    AllowedCallers,
    BlockedCallers,
    BlockAll,
    BlockIngress,
    RateLimit,
    CustomCheck,
    DynamicAuth,
    StructuralRule,
]
