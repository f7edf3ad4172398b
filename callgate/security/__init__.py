"""Security layer — rate limiting, roles, sessions and auth providers."""

from callgate.security.models import (
    ANONYMOUS_ID,
    AuthResult,
    AuthStatus,
    Caller,
    CallerKind,
    PermissionCacheEntry,
    PermissionResult,
    PermissionStatus,
    RoleDefinition,
    UserSession,
)
from callgate.security.providers import AuthProvider, NullAuthProvider, StaticAuthProvider
from callgate.security.rate_limiter import (
    CallEntry,
    RateLimitConfig,
    RateLimiter,
    RateLimitResult,
    TimeWindow,
    WindowUnit,
)
from callgate.security.sessions import SessionManager

__all__ = [
    "ANONYMOUS_ID",
    "AuthProvider",
    "AuthResult",
    "AuthStatus",
    "CallEntry",
    "Caller",
    "CallerKind",
    "NullAuthProvider",
    "PermissionCacheEntry",
    "PermissionResult",
    "PermissionStatus",
    "RateLimitConfig",
    "RateLimitResult",
    "RateLimiter",
    "RoleDefinition",
    "SessionManager",
    "StaticAuthProvider",
    "TimeWindow",
    "UserSession",
    "WindowUnit",
]
