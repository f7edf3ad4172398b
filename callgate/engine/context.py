"""Rule engine — Per-call context and the accept/reject verdict."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from callgate.security.models import Caller


@dataclass(frozen=True)
class CallContext:
    """Everything the engine sees about one incoming call.

    ``typed_args`` is the host's already-decoded argument value; the method's
    accessor turns it into the shape its rules need.  ``resource_budget`` and
    ``deadline`` are passed through for custom rules and never enforced here.
    """

    method: str
    caller: Caller
    raw_arg_bytes: bytes = b""
    is_read_only: bool = False
    resource_budget: int | None = None
    deadline: int | None = None
    is_boundary_check: bool = False
    typed_args: Any = field(default=None, compare=False)

    @property
    def arg_size(self) -> int:
        return len(self.raw_arg_bytes)


@dataclass(frozen=True)
class Verdict:
    """Outcome of evaluating a call.  ``reason`` is for server-side diagnostics."""

    allowed: bool
    reason: str | None = None
    rule: str | None = None

    @classmethod
    def accept(cls) -> Verdict:
        return _ACCEPT

    @classmethod
    def reject(cls, reason: str, *, rule: str | None = None) -> Verdict:
        return cls(False, reason, rule)

    def __bool__(self) -> bool:
        return self.allowed

    def __str__(self) -> str:
        return "accepted" if self.allowed else f"rejected: {self.reason}"


_ACCEPT = Verdict(True)
