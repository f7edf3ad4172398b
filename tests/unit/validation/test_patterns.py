"""Unit tests — named text pattern presets."""

from __future__ import annotations

import pytest

from callgate.validation.patterns import PATTERNS, is_known, matches

pytestmark = pytest.mark.unit


class TestPatternPresets:
    @pytest.mark.parametrize(
        ("name", "text"),
        [
            ("alphanumeric", "abc123"),
            ("identifier", "_private1"),
            ("slug", "hello-world-2"),
            ("email", "alice@example.org"),
            ("url", "https://example.org/path?q=1"),
            ("uuid", "123e4567-e89b-12d3-a456-426614174000"),
            ("hex", "deadBEEF"),
        ],
    )
    def test_matching_text(self, name: str, text: str) -> None:
        assert matches(name, text)

    @pytest.mark.parametrize(
        ("name", "text"),
        [
            ("alphanumeric", "abc 123"),
            ("identifier", "1abc"),
            ("slug", "Hello--World"),
            ("email", "alice@localhost"),
            ("url", "ftp://example.org"),
            ("numeric", ""),
        ],
    )
    def test_non_matching_text(self, name: str, text: str) -> None:
        assert not matches(name, text)

    def test_match_is_anchored(self) -> None:
        assert not matches("numeric", "12a")

    def test_unknown_preset(self) -> None:
        assert not is_known("regex")
        with pytest.raises(KeyError):
            matches("regex", "x")

    def test_preset_table_is_closed(self) -> None:
        assert is_known("email")
        assert "alpha" in PATTERNS
