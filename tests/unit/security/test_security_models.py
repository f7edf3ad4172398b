"""Unit tests — caller identity, records and result types (models.py)."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

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

pytestmark = pytest.mark.unit


class TestCaller:
    def test_anonymous(self) -> None:
        caller = Caller.anonymous()
        assert caller.id == ANONYMOUS_ID
        assert caller.is_anonymous
        assert not caller.is_local

    def test_anonymous_by_id(self) -> None:
        assert Caller(ANONYMOUS_ID, CallerKind.USER).is_anonymous

    def test_service_is_local(self) -> None:
        assert Caller.service("indexer").is_local
        assert Caller("host", CallerKind.SELF).is_local
        assert not Caller.user("alice").is_local

    def test_equality_and_str(self) -> None:
        assert Caller.user("alice") == Caller("alice")
        assert str(Caller.user("alice")) == "alice"


class TestRoleDefinition:
    def test_frozen(self) -> None:
        role = RoleDefinition(name="user", permissions={"chat.send"})
        with pytest.raises(ValidationError):
            role.name = "other"

    def test_name_required(self) -> None:
        with pytest.raises(ValidationError):
            RoleDefinition(name="")

    def test_lists_coerced(self) -> None:
        role = RoleDefinition.model_validate({"name": "a", "permissions": ["x", "x"], "inherits": ["b"]})
        assert role.permissions == frozenset({"x"})
        assert role.inherits == ("b",)


class TestExpiry:
    def test_session_expiry_is_inclusive(self) -> None:
        session = UserSession(Caller.user("a"), frozenset(), frozenset(), created_at=0, expires_at=10)
        assert not session.is_expired(9.9)
        assert session.is_expired(10)

    def test_session_without_expiry(self) -> None:
        session = UserSession(Caller.user("a"), frozenset(), frozenset(), created_at=0)
        assert not session.is_expired(1e12)

    def test_cache_entry_ttl(self) -> None:
        entry = PermissionCacheEntry(frozenset(), frozenset(), cached_at=100, ttl=300)
        assert not entry.is_expired(399)
        assert entry.is_expired(400)


class TestResults:
    def test_permission_results(self) -> None:
        assert PermissionResult.granted("x").is_granted
        denied = PermissionResult.denied("x", "nope")
        assert denied.status == PermissionStatus.DENIED and not denied.is_granted
        unknown = PermissionResult.unknown("x")
        assert unknown.status == PermissionStatus.UNKNOWN_PERMISSION
        assert "not defined by any role" in unknown.reason

    def test_auth_results(self) -> None:
        session = UserSession(Caller.user("a"), frozenset(), frozenset(), created_at=0)
        assert AuthResult.authenticated(session).ok
        assert AuthResult.denied("no").status == AuthStatus.DENIED
        expired = AuthResult.expired(42.0)
        assert expired.status == AuthStatus.EXPIRED
        assert expired.expired_at == 42.0
        assert not expired.ok
