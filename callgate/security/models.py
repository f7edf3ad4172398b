"""Security layer — Caller identity, role and session records, result types.

Defines the policy state's core types:
  - ``Caller`` / ``CallerKind``   — who is calling; anonymous is a distinguished value
  - ``RoleDefinition``            — named permission set with inherited roles
  - ``UserSession``               — resolved roles + flattened permissions with expiry
  - ``PermissionCacheEntry``      — cached flattening for one caller, replaced wholesale
  - ``PermissionResult``          — GRANTED / DENIED / UNKNOWN_PERMISSION
  - ``AuthResult``                — AUTHENTICATED / DENIED / EXPIRED

``RoleDefinition`` is a pydantic model so roles can be loaded from policy
documents; the runtime records are frozen dataclasses and are replaced,
never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------

ANONYMOUS_ID = "anonymous"


class CallerKind(str, Enum):
    """Where a call comes from.

    USER and ANONYMOUS calls arrive from outside the system; SERVICE and
    SELF calls are local (another trusted service, or the host itself).
    """

    ANONYMOUS = "anonymous"
    USER = "user"
    SERVICE = "service"
    SELF = "self"


@dataclass(frozen=True)
class Caller:
    """An already-authenticated caller identity."""

    id: str
    kind: CallerKind = CallerKind.USER

    @classmethod
    def anonymous(cls) -> Caller:
        return cls(ANONYMOUS_ID, CallerKind.ANONYMOUS)

    @classmethod
    def user(cls, caller_id: str) -> Caller:
        return cls(caller_id, CallerKind.USER)

    @classmethod
    def service(cls, caller_id: str) -> Caller:
        return cls(caller_id, CallerKind.SERVICE)

    @property
    def is_anonymous(self) -> bool:
        return self.kind == CallerKind.ANONYMOUS or self.id == ANONYMOUS_ID

    @property
    def is_local(self) -> bool:
        return self.kind in (CallerKind.SERVICE, CallerKind.SELF)

    def __str__(self) -> str:
        return self.id


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


class RoleDefinition(BaseModel):
    """A named role.  Defined by the integrating service, never generated."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    permissions: frozenset[str] = Field(default_factory=frozenset)
    inherits: tuple[str, ...] = Field(
        default=(),
        description="Names of roles whose permissions this role also carries.",
    )
    metadata: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Sessions and cache
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UserSession:
    caller: Caller
    roles: frozenset[str]
    permissions: frozenset[str]
    created_at: float
    expires_at: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    def is_expired(self, now: float) -> bool:
        if self.expires_at is None:
            return False
        return now >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "caller": self.caller.id,
            "kind": self.caller.kind.value,
            "roles": sorted(self.roles),
            "permissions": sorted(self.permissions),
            "created_at": self.created_at,
            "expires_at": self.expires_at,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class PermissionCacheEntry:
    permissions: frozenset[str]
    roles: frozenset[str]
    cached_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.cached_at >= self.ttl


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNKNOWN_PERMISSION = "unknown_permission"


@dataclass(frozen=True)
class PermissionResult:
    status: PermissionStatus
    permission: str
    reason: str = ""

    @classmethod
    def granted(cls, permission: str) -> PermissionResult:
        return cls(PermissionStatus.GRANTED, permission)

    @classmethod
    def denied(cls, permission: str, reason: str) -> PermissionResult:
        return cls(PermissionStatus.DENIED, permission, reason)

    @classmethod
    def unknown(cls, permission: str) -> PermissionResult:
        return cls(
            PermissionStatus.UNKNOWN_PERMISSION,
            permission,
            f"permission '{permission}' is not defined by any role",
        )

    @property
    def is_granted(self) -> bool:
        return self.status == PermissionStatus.GRANTED


class AuthStatus(str, Enum):
    AUTHENTICATED = "authenticated"
    DENIED = "denied"
    EXPIRED = "expired"


@dataclass(frozen=True)
class AuthResult:
    status: AuthStatus
    session: UserSession | None = None
    reason: str = ""
    expired_at: float | None = None

    @classmethod
    def authenticated(cls, session: UserSession) -> AuthResult:
        return cls(AuthStatus.AUTHENTICATED, session=session)

    @classmethod
    def denied(cls, reason: str) -> AuthResult:
        return cls(AuthStatus.DENIED, reason=reason)

    @classmethod
    def expired(cls, expired_at: float) -> AuthResult:
        return cls(AuthStatus.EXPIRED, reason="session expired", expired_at=expired_at)

    @property
    def ok(self) -> bool:
        return self.status == AuthStatus.AUTHENTICATED
