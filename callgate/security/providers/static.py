"""Security layer — In-memory authentication provider.

Holds a fixed table of known callers.  Useful for tests, single-process
deployments, and as a reference for writing real providers.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from callgate.security.models import Caller
from callgate.security.providers.base import AuthProvider


@dataclass
class StaticIdentity:
    roles: frozenset[str] = frozenset()
    permissions: frozenset[str] = frozenset()
    active: bool = True
    refreshes: int = field(default=0, compare=False)


class StaticAuthProvider(AuthProvider):
    """Provider backed by a dict of caller id -> :class:`StaticIdentity`."""

    def __init__(self, identities: dict[str, StaticIdentity] | None = None) -> None:
        self._identities: dict[str, StaticIdentity] = dict(identities or {})
        self._lock = asyncio.Lock()

    def add(
        self,
        caller_id: str,
        *,
        roles: frozenset[str] | set[str] = frozenset(),
        permissions: frozenset[str] | set[str] = frozenset(),
    ) -> None:
        self._identities[caller_id] = StaticIdentity(frozenset(roles), frozenset(permissions))

    def deactivate(self, caller_id: str) -> None:
        identity = self._identities.get(caller_id)
        if identity is not None:
            identity.active = False

    def _lookup(self, caller: Caller) -> StaticIdentity | None:
        identity = self._identities.get(caller.id)
        if identity is None or not identity.active or caller.is_anonymous:
            return None
        return identity

    async def authenticate(self, caller: Caller) -> bool:
        return self._lookup(caller) is not None

    async def has_permission(self, caller: Caller, permission: str) -> bool:
        identity = self._lookup(caller)
        return identity is not None and permission in identity.permissions

    async def get_roles(self, caller: Caller) -> frozenset[str]:
        identity = self._lookup(caller)
        return identity.roles if identity is not None else frozenset()

    async def get_permissions(self, caller: Caller) -> frozenset[str]:
        identity = self._lookup(caller)
        return identity.permissions if identity is not None else frozenset()

    async def validate_session(self, caller: Caller) -> bool:
        return self._lookup(caller) is not None

    async def refresh_session(self, caller: Caller) -> bool:
        async with self._lock:
            identity = self._lookup(caller)
            if identity is None:
                return False
            identity.refreshes += 1
            return True
