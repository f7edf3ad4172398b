"""Security layer — Role, session and permission-cache manager.

Holds three in-memory tables owned by one ``SessionManager`` instance:

  - role definitions       (name -> RoleDefinition, overwrite by name)
  - sessions               (caller id -> UserSession, evicted lazily on expiry)
  - permission cache       (caller id -> PermissionCacheEntry, replaced wholesale)

Permission checks read the cache, not the role table.  Redefining a role
therefore does not change a warm caller's answers until their cache entry
reaches its TTL; on the next check after that the permissions are
re-flattened from the session's roles and the session is replaced.

Mutations are serialised by one ``threading.RLock``.  Cleanup is never
scheduled here: ``create_session()`` runs it opportunistically once
``cleanup_interval`` has elapsed, and hosts may call ``cleanup()`` from
their own timer.

Usage::

    manager = SessionManager(default_session_ttl=3600)
    manager.define_role(RoleDefinition(name="user", permissions={"chat.send"}))
    manager.create_session(Caller.user("alice"), {"user"})
    manager.has_permission(Caller.user("alice"), "chat.send").is_granted  # True
"""

from __future__ import annotations

import fnmatch
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Literal

from callgate.exceptions import PermissionNotGrantedError, SessionExpiredError
from callgate.logging import get_logger
from callgate.security import roles as role_graph
from callgate.security.models import (
    AuthResult,
    Caller,
    PermissionCacheEntry,
    PermissionResult,
    RoleDefinition,
    UserSession,
)
from callgate.security.providers.base import AuthProvider

if TYPE_CHECKING:
    from callgate.config import SessionConfig

log = get_logger(__name__)

_DEFAULT_ANONYMOUS_PATTERNS = ("read", "*.read", "read:*")


class SessionManager:
    """In-memory role registry, session store and permission cache.

    Args:
        roles:                   Initial role definitions.
        default_session_ttl:     Lifetime of new sessions in seconds.  None = no expiry.
        permission_cache_ttl:    Lifetime of a caller's flattened permissions.
        cleanup_interval:        Minimum seconds between opportunistic cleanups.
        allow_anonymous_read:    Grant anonymous callers permissions matching
                                 *anonymous_read_patterns* (fnmatch).
        unknown_permission_mode: ``"deny"`` or ``"report"`` (UNKNOWN_PERMISSION
                                 for permissions no role defines).
        provider:                Optional external :class:`AuthProvider`, used
                                 by the async methods only.
        clock:                   Time source, seconds since the epoch.
    """

    def __init__(
        self,
        roles: Iterable[RoleDefinition] = (),
        *,
        default_session_ttl: float | None = 3600.0,
        permission_cache_ttl: float = 300.0,
        cleanup_interval: float = 300.0,
        allow_anonymous_read: bool = False,
        anonymous_read_patterns: Iterable[str] = _DEFAULT_ANONYMOUS_PATTERNS,
        unknown_permission_mode: Literal["deny", "report"] = "deny",
        provider: AuthProvider | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._roles: dict[str, RoleDefinition] = {r.name: r for r in roles}
        self._sessions: dict[str, UserSession] = {}
        self._cache: dict[str, PermissionCacheEntry] = {}
        # Permissions granted to a session outside any role (provider grants).
        self._grants: dict[str, frozenset[str]] = {}
        self._default_session_ttl = default_session_ttl
        self._permission_cache_ttl = permission_cache_ttl
        self._cleanup_interval = cleanup_interval
        self._allow_anonymous_read = allow_anonymous_read
        self._anonymous_read_patterns = tuple(anonymous_read_patterns)
        self._unknown_permission_mode = unknown_permission_mode
        self._provider = provider
        self._clock = clock
        self._last_cleanup = clock()
        self._lock = threading.RLock()

    @classmethod
    def from_config(
        cls,
        config: SessionConfig,
        roles: Iterable[RoleDefinition] = (),
        *,
        provider: AuthProvider | None = None,
        clock: Callable[[], float] = time.time,
    ) -> SessionManager:
        return cls(
            roles,
            default_session_ttl=config.default_session_ttl_seconds,
            permission_cache_ttl=config.permission_cache_ttl_seconds,
            cleanup_interval=config.cleanup_interval_seconds,
            allow_anonymous_read=config.allow_anonymous_read,
            anonymous_read_patterns=config.anonymous_read_patterns,
            unknown_permission_mode=config.unknown_permission_mode,
            provider=provider,
            clock=clock,
        )

    @property
    def provider(self) -> AuthProvider | None:
        return self._provider

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def define_role(self, role: RoleDefinition) -> None:
        """Register *role*, replacing any role with the same name.

        Warm permission cache entries are left alone and pick up the new
        definition when they expire.
        """
        with self._lock:
            replaced = role.name in self._roles
            self._roles[role.name] = role
        log.info(
            "role_defined",
            role=role.name,
            permissions=len(role.permissions),
            inherits=list(role.inherits),
            replaced=replaced,
        )

    def get_role(self, name: str) -> RoleDefinition | None:
        return self._roles.get(name)

    def remove_role(self, name: str) -> bool:
        with self._lock:
            return self._roles.pop(name, None) is not None

    @property
    def roles(self) -> dict[str, RoleDefinition]:
        return dict(self._roles)

    def flatten_permissions(self, role: str, visited: set[str] | None = None) -> frozenset[str]:
        """Own plus inherited permissions of *role*.  Cycles contribute nothing."""
        return role_graph.flatten_permissions(self._roles, role, visited)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(
        self,
        caller: Caller,
        roles: Iterable[str],
        *,
        metadata: dict[str, Any] | None = None,
        ttl: float | None = None,
        extra_permissions: Iterable[str] = (),
    ) -> UserSession:
        """Create (or replace) *caller*'s session.

        Permissions come from the cache when a live entry for the same role
        set exists; otherwise they are flattened and the entry is replaced.
        *ttl* overrides the default session lifetime.
        """
        role_set = frozenset(roles)
        grants = frozenset(extra_permissions)
        with self._lock:
            now = self._clock()
            if now - self._last_cleanup > self._cleanup_interval:
                self.cleanup()

            entry = self._cache.get(caller.id)
            if entry is None or entry.is_expired(now) or entry.roles != role_set:
                entry = self._refresh_cache(caller, role_set, now)

            lifetime = ttl if ttl is not None else self._default_session_ttl
            session = UserSession(
                caller=caller,
                roles=role_set,
                permissions=entry.permissions | grants,
                created_at=now,
                expires_at=now + lifetime if lifetime is not None else None,
                metadata=dict(metadata or {}),
            )
            self._sessions[caller.id] = session
            self._grants[caller.id] = grants

        log.info(
            "session_created",
            caller=caller.id,
            roles=sorted(role_set),
            permissions=len(session.permissions),
            expires_at=session.expires_at,
        )
        return session

    def get_session(self, caller: Caller) -> UserSession | None:
        """Return the live session for *caller*, evicting it if it has expired."""
        with self._lock:
            session = self._sessions.get(caller.id)
            if session is None:
                return None
            if session.is_expired(self._clock()):
                self._drop(caller.id)
                log.info("session_expired", caller=caller.id, expired_at=session.expires_at)
                return None
            return session

    def require_session(self, caller: Caller) -> UserSession:
        """Like :meth:`get_session` but raises if the session has expired or is absent."""
        with self._lock:
            stored = self._sessions.get(caller.id)
            session = self.get_session(caller)
        if session is None:
            if stored is not None and stored.expires_at is not None:
                raise SessionExpiredError(caller.id, stored.expires_at)
            raise PermissionNotGrantedError(caller.id, "session", reason="no active session")
        return session

    def revoke_session(self, caller: Caller) -> bool:
        """Remove *caller*'s session and permission cache entry."""
        with self._lock:
            existed = caller.id in self._sessions
            self._drop(caller.id)
        if existed:
            log.info("session_revoked", caller=caller.id)
        return existed

    def active_sessions(self) -> list[UserSession]:
        with self._lock:
            now = self._clock()
            return [s for s in self._sessions.values() if not s.is_expired(now)]

    # ------------------------------------------------------------------
    # Permission checks
    # ------------------------------------------------------------------

    def has_permission(self, caller: Caller, permission: str) -> PermissionResult:
        if caller.is_anonymous:
            if self._allow_anonymous_read and self._is_anonymous_readable(permission):
                return PermissionResult.granted(permission)
            return PermissionResult.denied(permission, "anonymous caller")

        with self._lock:
            session = self.get_session(caller)
            if session is None:
                if self._is_unknown(permission):
                    return PermissionResult.unknown(permission)
                return PermissionResult.denied(permission, "no active session")

            if permission in self._current_permissions(session):
                return PermissionResult.granted(permission)

        if self._is_unknown(permission):
            return PermissionResult.unknown(permission)
        return PermissionResult.denied(
            permission, f"permission '{permission}' not granted to '{caller.id}'"
        )

    def require_permission(self, caller: Caller, permission: str) -> None:
        """Raise :class:`PermissionNotGrantedError` unless *permission* is granted."""
        result = self.has_permission(caller, permission)
        if not result.is_granted:
            raise PermissionNotGrantedError(caller.id, permission, reason=result.reason)

    def has_role(self, caller: Caller, role: str) -> bool:
        """True if *caller*'s session holds *role* directly or through inheritance.

        Inheritance is resolved against the current role table, so role edits
        show here at once.  Permission checks go through the TTL cache instead
        and only see the edit once the cached entry expires.
        """
        session = self.get_session(caller)
        if session is None:
            return False
        return role in role_graph.expand_roles(self._roles, session.roles)

    def roles_of(self, caller: Caller) -> frozenset[str]:
        """Roles of *caller*'s live session, inherited ones included.

        Resolved against the current role table like :meth:`has_role`.
        """
        session = self.get_session(caller)
        if session is None:
            return frozenset()
        return role_graph.expand_roles(self._roles, session.roles)

    def invalidate_cache(self, caller: Caller | None = None) -> None:
        """Drop cache entries so the next check re-flattens permissions."""
        with self._lock:
            if caller is None:
                self._cache.clear()
            else:
                self._cache.pop(caller.id, None)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def cleanup(self) -> int:
        """Remove expired sessions and stale cache entries.  Returns count removed."""
        with self._lock:
            now = self._clock()
            expired = [cid for cid, s in self._sessions.items() if s.is_expired(now)]
            for caller_id in expired:
                self._drop(caller_id)
            stale = [cid for cid, e in self._cache.items() if e.is_expired(now)]
            for caller_id in stale:
                del self._cache[caller_id]
            self._last_cleanup = now
        removed = len(expired) + len(stale)
        if removed:
            log.debug("session_cleanup", sessions=len(expired), cache_entries=len(stale))
        return removed

    # ------------------------------------------------------------------
    # Provider delegation (async)
    # ------------------------------------------------------------------

    async def login(
        self,
        caller: Caller,
        *,
        metadata: dict[str, Any] | None = None,
        ttl: float | None = None,
    ) -> AuthResult:
        """Authenticate *caller* through the provider and open a session."""
        if self._provider is None:
            return AuthResult.denied("no auth provider configured")
        if caller.is_anonymous:
            return AuthResult.denied("anonymous caller")
        if not await self._provider.authenticate(caller):
            return AuthResult.denied(f"authentication refused for '{caller.id}'")

        roles = await self._provider.get_roles(caller)
        permissions = await self._provider.get_permissions(caller)
        session = self.create_session(
            caller,
            roles,
            metadata=metadata,
            ttl=ttl,
            extra_permissions=permissions,
        )
        return AuthResult.authenticated(session)

    async def authenticate(self, caller: Caller) -> AuthResult:
        """Return the caller's live session, or log in through the provider."""
        with self._lock:
            stored = self._sessions.get(caller.id)
            session = self.get_session(caller)
        if session is not None:
            return AuthResult.authenticated(session)
        if stored is not None and stored.expires_at is not None and self._provider is None:
            return AuthResult.expired(stored.expires_at)
        return await self.login(caller)

    async def has_permission_async(self, caller: Caller, permission: str) -> PermissionResult:
        """In-memory check first, then ask the provider if it did not grant."""
        result = self.has_permission(caller, permission)
        if result.is_granted or self._provider is None or caller.is_anonymous:
            return result
        if await self._provider.has_permission(caller, permission):
            return PermissionResult.granted(permission)
        return result

    async def refresh(self, caller: Caller, *, ttl: float | None = None) -> AuthResult:
        """Extend *caller*'s session, revalidating through the provider if any."""
        with self._lock:
            stored = self._sessions.get(caller.id)
            session = self.get_session(caller)
        if session is None:
            if stored is not None and stored.expires_at is not None:
                return AuthResult.expired(stored.expires_at)
            return AuthResult.denied("no active session")

        if self._provider is not None:
            if not await self._provider.validate_session(caller):
                self.revoke_session(caller)
                return AuthResult.denied("session rejected by provider")
            if not await self._provider.refresh_session(caller):
                return AuthResult.denied("provider refused refresh")

        lifetime = ttl if ttl is not None else self._default_session_ttl
        with self._lock:
            now = self._clock()
            current = self._sessions.get(caller.id, session)
            renewed = replace(current, expires_at=now + lifetime if lifetime is not None else None)
            self._sessions[caller.id] = renewed
        return AuthResult.authenticated(renewed)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _refresh_cache(self, caller: Caller, role_set: frozenset[str], now: float) -> PermissionCacheEntry:
        entry = PermissionCacheEntry(
            permissions=role_graph.flatten_roles(self._roles, role_set),
            roles=role_set,
            cached_at=now,
            ttl=self._permission_cache_ttl,
        )
        self._cache[caller.id] = entry
        log.debug("permission_cache_refreshed", caller=caller.id, permissions=len(entry.permissions))
        return entry

    def _current_permissions(self, session: UserSession) -> frozenset[str]:
        """Permissions from a live cache entry; re-flatten and replace the session if stale."""
        caller_id = session.caller.id
        now = self._clock()
        entry = self._cache.get(caller_id)
        if entry is not None and not entry.is_expired(now) and entry.roles == session.roles:
            return entry.permissions | self._grants.get(caller_id, frozenset())

        entry = self._refresh_cache(session.caller, session.roles, now)
        permissions = entry.permissions | self._grants.get(caller_id, frozenset())
        self._sessions[caller_id] = replace(session, permissions=permissions)
        return permissions

    def _drop(self, caller_id: str) -> None:
        self._sessions.pop(caller_id, None)
        self._cache.pop(caller_id, None)
        self._grants.pop(caller_id, None)

    def _is_anonymous_readable(self, permission: str) -> bool:
        return any(fnmatch.fnmatchcase(permission, p) for p in self._anonymous_read_patterns)

    def _is_unknown(self, permission: str) -> bool:
        if self._unknown_permission_mode != "report":
            return False
        return permission not in role_graph.all_permissions(self._roles)
