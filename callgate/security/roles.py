"""Security layer — Role inheritance flattening and graph diagnostics.

``flatten_permissions`` is the runtime path: a recursive union over the
inheritance graph with a ``visited`` set, so a cyclic graph terminates and a
revisited role contributes nothing.  Cycles are tolerated at runtime, not
rejected.

The remaining helpers build a ``networkx.DiGraph`` of the role table and are
used by policy linting to report cycles, undefined parents and roles that
grant nothing.
"""

from __future__ import annotations

from collections.abc import Mapping

import networkx as nx

from callgate.logging import get_logger
from callgate.security.models import RoleDefinition

log = get_logger(__name__)


def flatten_permissions(
    roles: Mapping[str, RoleDefinition],
    role: str,
    visited: set[str] | None = None,
) -> frozenset[str]:
    """Return the deduplicated union of *role*'s own and inherited permissions.

    Unknown roles contribute nothing.  *visited* is shared across the whole
    descent; pass a fresh set (or None) per top-level call.
    """
    if visited is None:
        visited = set()
    if role in visited:
        log.debug("role_inheritance_cycle", role=role)
        return frozenset()
    visited.add(role)

    definition = roles.get(role)
    if definition is None:
        return frozenset()

    result = set(definition.permissions)
    for parent in definition.inherits:
        result |= flatten_permissions(roles, parent, visited)
    return frozenset(result)


def flatten_roles(roles: Mapping[str, RoleDefinition], names: frozenset[str] | set[str]) -> frozenset[str]:
    """Union of the flattened permissions of every role in *names*."""
    result: set[str] = set()
    for name in names:
        result |= flatten_permissions(roles, name)
    return frozenset(result)


def all_permissions(roles: Mapping[str, RoleDefinition]) -> frozenset[str]:
    """Every permission granted directly by some role."""
    result: set[str] = set()
    for definition in roles.values():
        result |= definition.permissions
    return frozenset(result)


# ---------------------------------------------------------------------------
# Graph diagnostics
# ---------------------------------------------------------------------------


def build_inheritance_graph(roles: Mapping[str, RoleDefinition]) -> nx.DiGraph:
    """Edge ``child -> parent`` for every inheritance link, defined or not."""
    graph = nx.DiGraph()
    for name, definition in roles.items():
        graph.add_node(name, defined=True)
        for parent in definition.inherits:
            if parent not in graph:
                graph.add_node(parent, defined=parent in roles)
            graph.add_edge(name, parent)
    return graph


def find_inheritance_cycles(roles: Mapping[str, RoleDefinition]) -> list[list[str]]:
    """Return each elementary cycle once, rotated to start at its smallest name."""
    cycles: list[list[str]] = []
    for cycle in nx.simple_cycles(build_inheritance_graph(roles)):
        start = cycle.index(min(cycle))
        cycles.append(cycle[start:] + cycle[:start])
    return sorted(cycles)


def find_undefined_parents(roles: Mapping[str, RoleDefinition]) -> dict[str, list[str]]:
    """Map role name to the inherited names that have no definition."""
    missing: dict[str, list[str]] = {}
    for name, definition in roles.items():
        undefined = [p for p in definition.inherits if p not in roles]
        if undefined:
            missing[name] = undefined
    return missing


def find_empty_roles(roles: Mapping[str, RoleDefinition]) -> list[str]:
    """Roles whose flattened permission set is empty."""
    return sorted(name for name in roles if not flatten_permissions(roles, name))


def expand_roles(roles: Mapping[str, RoleDefinition], names: frozenset[str] | set[str]) -> frozenset[str]:
    """*names* plus every role reachable through inheritance."""
    seen: set[str] = set()
    stack = list(names)
    while stack:
        name = stack.pop()
        if name in seen:
            continue
        seen.add(name)
        definition = roles.get(name)
        if definition is not None:
            stack.extend(definition.inherits)
    return frozenset(seen)
