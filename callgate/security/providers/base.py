"""Security layer — Pluggable authentication provider protocol.

A ``SessionManager`` may be given an ``AuthProvider`` to delegate identity
decisions to an external system such as a directory
service or token store.  The manager only calls it from its async methods
(``login``, ``refresh``, ``has_permission_async``); rule evaluation inside
the Inspector never awaits a provider and uses in-memory state only.

Implementations:
  - NullAuthProvider    — knows no one; used when no provider is configured
  - StaticAuthProvider  — in-memory table of callers, roles and permissions
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from callgate.security.models import Caller


class AuthProvider(ABC):
    """Abstract authentication / authorization backend.

    Implementations must be async-safe.  Lookups for unknown callers return
    empty results rather than raising.
    """

    @abstractmethod
    async def authenticate(self, caller: Caller) -> bool:
        """Return True if *caller* is known and allowed to open a session."""
        ...

    @abstractmethod
    async def has_permission(self, caller: Caller, permission: str) -> bool:
        ...

    @abstractmethod
    async def get_roles(self, caller: Caller) -> frozenset[str]:
        ...

    @abstractmethod
    async def get_permissions(self, caller: Caller) -> frozenset[str]:
        """Permissions granted to *caller* directly, outside any role."""
        ...

    @abstractmethod
    async def validate_session(self, caller: Caller) -> bool:
        """Return True if the provider still considers *caller*'s session live."""
        ...

    @abstractmethod
    async def refresh_session(self, caller: Caller) -> bool:
        """Extend *caller*'s session on the provider side.  False if refused."""
        ...


class NullAuthProvider(AuthProvider):
    """Provider that authenticates no one and grants nothing."""

    async def authenticate(self, caller: Caller) -> bool:
        return False

    async def has_permission(self, caller: Caller, permission: str) -> bool:
        return False

    async def get_roles(self, caller: Caller) -> frozenset[str]:
        return frozenset()

    async def get_permissions(self, caller: Caller) -> frozenset[str]:
        return frozenset()

    async def validate_session(self, caller: Caller) -> bool:
        return False

    async def refresh_session(self, caller: Caller) -> bool:
        return False
