"""Unit tests — authentication providers."""

from __future__ import annotations

import pytest

from callgate.security.models import Caller
from callgate.security.providers import (
    AuthProvider,
    NullAuthProvider,
    StaticAuthProvider,
    StaticIdentity,
)

pytestmark = pytest.mark.unit


class TestNullAuthProvider:
    async def test_refuses_everything(self) -> None:
        provider = NullAuthProvider()
        alice = Caller.user("alice")
        assert not await provider.authenticate(alice)
        assert not await provider.has_permission(alice, "chat.send")
        assert await provider.get_roles(alice) == frozenset()
        assert await provider.get_permissions(alice) == frozenset()
        assert not await provider.validate_session(alice)
        assert not await provider.refresh_session(alice)

    def test_abstract_base(self) -> None:
        with pytest.raises(TypeError):
            AuthProvider()  # type: ignore[abstract]


class TestStaticAuthProvider:
    @pytest.fixture
    def provider(self) -> StaticAuthProvider:
        return StaticAuthProvider(
            {"alice": StaticIdentity(frozenset({"user"}), frozenset({"files.upload"}))}
        )

    async def test_known_caller(self, provider) -> None:
        alice = Caller.user("alice")
        assert await provider.authenticate(alice)
        assert await provider.get_roles(alice) == frozenset({"user"})
        assert await provider.has_permission(alice, "files.upload")
        assert not await provider.has_permission(alice, "files.delete")

    async def test_unknown_caller(self, provider) -> None:
        bob = Caller.user("bob")
        assert not await provider.authenticate(bob)
        assert await provider.get_permissions(bob) == frozenset()

    async def test_anonymous_never_authenticates(self) -> None:
        provider = StaticAuthProvider()
        provider.add("anonymous", roles={"user"})
        assert not await provider.authenticate(Caller.anonymous())

    async def test_deactivate(self, provider) -> None:
        alice = Caller.user("alice")
        provider.deactivate("alice")
        assert not await provider.validate_session(alice)
        assert not await provider.refresh_session(alice)

    async def test_refresh_counts(self, provider) -> None:
        alice = Caller.user("alice")
        assert await provider.refresh_session(alice)
        assert await provider.refresh_session(alice)
        assert provider._identities["alice"].refreshes == 2
