"""Policy documents — roles and rate limits declared in YAML.

A policy file is loaded into a pydantic :class:`PolicyDocument` and applied
to a :class:`SessionManager` and/or :class:`RateLimiter` at startup.

Example::

    version: 1
    roles:
      - name: user
        permissions: [chat.send, chat.read]
      - name: admin
        permissions: [chat.delete]
        inherits: [user]
    rate_limits:
      global:
        max_requests: 1000
        window: {amount: 1, unit: hours}
      methods:
        send_message:
          max_requests: 3
          window: {amount: 1, unit: minutes}
          exempt_roles: [admin]

``lint()`` reports problems that are legal at runtime but almost always
mistakes: inheritance cycles (broken silently by flattening), parents that
are never defined, roles that grant nothing, and exemptions naming
undefined roles.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from callgate.exceptions import PolicyLoadError
from callgate.logging import get_logger
from callgate.security import roles as role_graph
from callgate.security.models import RoleDefinition
from callgate.security.rate_limiter import RateLimitConfig, RateLimiter
from callgate.security.sessions import SessionManager

log = get_logger(__name__)


class PolicyRateLimits(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    global_limit: RateLimitConfig | None = Field(default=None, alias="global")
    methods: dict[str, RateLimitConfig] = Field(default_factory=dict)


class PolicyDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: Literal[1] = 1
    roles: list[RoleDefinition] = Field(default_factory=list)
    rate_limits: PolicyRateLimits = Field(default_factory=PolicyRateLimits)

    @model_validator(mode="after")
    def _unique_role_names(self) -> PolicyDocument:
        seen: set[str] = set()
        for role in self.roles:
            if role.name in seen:
                raise ValueError(f"role '{role.name}' is defined more than once")
            seen.add(role.name)
        return self

    @property
    def role_map(self) -> dict[str, RoleDefinition]:
        return {r.name: r for r in self.roles}

    def permissions_for(self, role: str) -> frozenset[str]:
        return role_graph.flatten_permissions(self.role_map, role)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def parse_policy(data: Any, source: str = "<memory>") -> PolicyDocument:
    """Validate already-decoded policy data."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise PolicyLoadError(source, f"expected a mapping at top level, got {type(data).__name__}")
    try:
        return PolicyDocument.model_validate(data)
    except ValidationError as exc:
        raise PolicyLoadError(source, str(exc)) from exc


def load_policy(path: Path | str) -> PolicyDocument:
    """Read and validate a YAML policy file.

    Raises:
        PolicyLoadError: the file is unreadable, not YAML, or not a valid policy.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PolicyLoadError(str(path), str(exc)) from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise PolicyLoadError(str(path), f"invalid YAML: {exc}") from exc
    document = parse_policy(data, source=str(path))
    log.debug("policy_loaded", path=str(path), roles=len(document.roles))
    return document


def apply_policy(
    document: PolicyDocument,
    *,
    sessions: SessionManager | None = None,
    rate_limiter: RateLimiter | None = None,
) -> None:
    """Install the document's roles and rate limits.  Existing entries are overwritten."""
    if sessions is not None:
        for role in document.roles:
            sessions.define_role(role)
    if rate_limiter is not None:
        limits = document.rate_limits
        if limits.global_limit is not None:
            rate_limiter.set_global_limit(limits.global_limit)
        for method, config in limits.methods.items():
            rate_limiter.set_method_limit(method, config)


# ---------------------------------------------------------------------------
# Linting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PolicyFinding:
    severity: Literal["error", "warning"]
    code: str
    subject: str
    message: str


def lint(document: PolicyDocument) -> list[PolicyFinding]:
    """Return findings ordered errors first, then by code and subject."""
    roles = document.role_map
    findings: list[PolicyFinding] = []

    for role, parents in role_graph.find_undefined_parents(roles).items():
        findings.append(
            PolicyFinding(
                "error",
                "undefined_parent",
                role,
                f"inherits undefined role(s): {', '.join(parents)}",
            )
        )

    for cycle in role_graph.find_inheritance_cycles(roles):
        findings.append(
            PolicyFinding(
                "warning",
                "inheritance_cycle",
                cycle[0],
                "inheritance cycle " + " -> ".join([*cycle, cycle[0]]),
            )
        )

    for role in role_graph.find_empty_roles(roles):
        findings.append(PolicyFinding("warning", "empty_role", role, "grants no permissions"))

    limits = document.rate_limits
    scoped = [("global", limits.global_limit)] if limits.global_limit is not None else []
    scoped += sorted(limits.methods.items())
    for scope, config in scoped:
        unknown = sorted(r for r in config.exempt_roles if r not in roles)
        if unknown:
            findings.append(
                PolicyFinding(
                    "warning",
                    "undefined_exempt_role",
                    scope,
                    f"rate limit exempts undefined role(s): {', '.join(unknown)}",
                )
            )

    order = {"error": 0, "warning": 1}
    return sorted(findings, key=lambda f: (order[f.severity], f.code, f.subject))
