"""Unit tests — exception hierarchy and messages."""

from __future__ import annotations

import pytest

from callgate.engine.context import Verdict
from callgate.exceptions import (
    CallGateError,
    CallRejectedError,
    ConfigurationError,
    DuplicateMethodError,
    PermissionNotGrantedError,
    PolicyLoadError,
    RateLimitExceededError,
    RegistrationError,
    RuleConfigurationError,
    SecurityError,
    SessionExpiredError,
    ValidationFailedError,
)
from callgate.validation.errors import missing_property


@pytest.mark.unit
class TestHierarchy:
    @pytest.mark.parametrize(
        ("exc", "base"),
        [
            (RuleConfigurationError("m", "rate_limit", "RateLimiter"), ConfigurationError),
            (PolicyLoadError("p.yaml", "bad"), ConfigurationError),
            (DuplicateMethodError("m", "guard"), RegistrationError),
            (CallRejectedError("m", Verdict.reject("x")), SecurityError),
            (RateLimitExceededError("a", "m", 3, "1 minutes", 5.0), SecurityError),
            (PermissionNotGrantedError("a", "p"), SecurityError),
            (SessionExpiredError("a", 10.0), SecurityError),
            (ValidationFailedError(missing_property("", "x")), CallGateError),
        ],
    )
    def test_bases(self, exc: CallGateError, base: type) -> None:
        assert isinstance(exc, base)
        assert isinstance(exc, CallGateError)

    def test_context_carried(self) -> None:
        exc = RuleConfigurationError("send_message", "rate_limit", "RateLimiter")
        assert exc.context == {
            "method": "send_message",
            "rule_kind": "rate_limit",
            "missing": "RateLimiter",
        }
        assert "send_message" in repr(exc)

    def test_rate_limit_message(self) -> None:
        exc = RateLimitExceededError("alice", "send", 3, "1 minutes", 12.34)
        assert str(exc) == (
            "Rate limit exceeded for 'alice' on 'send': max 3 per 1 minutes, retry after 12.3s"
        )

    def test_validation_failed_message(self) -> None:
        exc = ValidationFailedError(missing_property("meta", "owner"))
        assert str(exc) == "missing_property at meta: missing property 'owner'"
        assert exc.context == {"kind": "missing_property", "path": "meta"}
