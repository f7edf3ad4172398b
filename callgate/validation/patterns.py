"""Structural validation — named text pattern presets.

Text constraints reference patterns by name only.  The set of presets is
fixed; there is no way to pass an arbitrary regular expression, which keeps
pattern checks linear-time on untrusted input.  The email and URL presets
check shape, not deliverability or RFC conformance.
"""

from __future__ import annotations

import re

PATTERNS: dict[str, re.Pattern[str]] = {
    "alpha": re.compile(r"[A-Za-z]+"),
    "numeric": re.compile(r"[0-9]+"),
    "alphanumeric": re.compile(r"[A-Za-z0-9]+"),
    "identifier": re.compile(r"[A-Za-z_][A-Za-z0-9_]*"),
    "username": re.compile(r"[A-Za-z0-9_]+"),
    "slug": re.compile(r"[a-z0-9]+(?:-[a-z0-9]+)*"),
    "hex": re.compile(r"[0-9a-fA-F]+"),
    "email": re.compile(r"[^@\s]+@[^@\s.]+(?:\.[^@\s.]+)+"),
    "url": re.compile(r"https?://[^\s/$.?#][^\s]*"),
    "uuid": re.compile(
        r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
    ),
    "no_whitespace": re.compile(r"\S*"),
    "printable": re.compile(r"[\x20-\x7E]*"),
}


def is_known(name: str) -> bool:
    return name in PATTERNS


def matches(name: str, text: str) -> bool:
    """Return True if *text* fully matches the preset *name*.

    Raises:
        KeyError: *name* is not a known preset.
    """
    return PATTERNS[name].fullmatch(text) is not None
