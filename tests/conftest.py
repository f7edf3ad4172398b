"""Shared pytest fixtures for the callgate test suite."""

from __future__ import annotations

import pytest

from callgate.config import Settings, override_settings
from callgate.engine import Inspector
from callgate.security import Caller, RateLimiter, RoleDefinition, SessionManager


class FakeClock:
    """Manually advanced time source, seconds since the epoch."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings() -> Settings:
    settings = Settings(logging={"level": "debug", "format": "console"})
    override_settings(settings)
    return settings


# ---------------------------------------------------------------------------
# Time and identities
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def alice() -> Caller:
    return Caller.user("alice")


@pytest.fixture
def bob() -> Caller:
    return Caller.user("bob")


@pytest.fixture
def anonymous() -> Caller:
    return Caller.anonymous()


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


@pytest.fixture
def chat_roles() -> list[RoleDefinition]:
    return [
        RoleDefinition(name="user", permissions=frozenset({"chat.send", "chat.read"})),
        RoleDefinition(name="moderator", permissions=frozenset({"chat.hide"}), inherits=("user",)),
        RoleDefinition(name="admin", permissions=frozenset({"chat.delete"}), inherits=("moderator",)),
    ]


@pytest.fixture
def sessions(clock: FakeClock, chat_roles: list[RoleDefinition]) -> SessionManager:
    return SessionManager(chat_roles, clock=clock)


@pytest.fixture
def rate_limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(clock=clock)


@pytest.fixture
def inspector(sessions: SessionManager, rate_limiter: RateLimiter) -> Inspector:
    return Inspector(sessions=sessions, rate_limiter=rate_limiter)
