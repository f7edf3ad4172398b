"""Structural validation — issue records.

Every structural check returns ``ValidationIssue | None``.  The issue kind is
a closed set; ``path`` is a dotted location inside the value tree
(``"metadata.tags.[2]"``), empty for the root.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class IssueKind(str, Enum):
    INVALID_TYPE = "invalid_type"
    OUT_OF_RANGE = "out_of_range"
    INVALID_SIZE = "invalid_size"
    MISSING_PROPERTY = "missing_property"
    INVALID_PATTERN = "invalid_pattern"
    CUSTOM = "custom"


@dataclass(frozen=True)
class ValidationIssue:
    kind: IssueKind
    path: str
    message: str
    expected: Any = None
    found: Any = None

    def __str__(self) -> str:
        where = self.path or "<root>"
        return f"{self.kind.value} at {where}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "path": self.path,
            "message": self.message,
            "expected": self.expected,
            "found": self.found,
        }


def join_path(parent: str, segment: str) -> str:
    if not parent:
        return segment
    if not segment:
        return parent
    return f"{parent}.{segment}"


def invalid_type(path: str, expected: Any, found: str) -> ValidationIssue:
    return ValidationIssue(
        IssueKind.INVALID_TYPE, path, f"expected {expected}, found {found}", expected, found
    )


def out_of_range(path: str, message: str, expected: Any, found: Any) -> ValidationIssue:
    return ValidationIssue(IssueKind.OUT_OF_RANGE, path, message, expected, found)


def invalid_size(path: str, message: str, expected: Any, found: Any) -> ValidationIssue:
    return ValidationIssue(IssueKind.INVALID_SIZE, path, message, expected, found)


def missing_property(path: str, name: str) -> ValidationIssue:
    return ValidationIssue(
        IssueKind.MISSING_PROPERTY, path, f"missing property '{name}'", name, None
    )


def invalid_pattern(path: str, message: str, expected: Any, found: Any) -> ValidationIssue:
    return ValidationIssue(IssueKind.INVALID_PATTERN, path, message, expected, found)


def custom(path: str, message: str) -> ValidationIssue:
    return ValidationIssue(IssueKind.CUSTOM, path, message)
