"""
DAG utilities (pure).

Graphs are mappings ``node → ordered dependencies``. Used to validate
the recipe catalog at import time and to order a build plan so that
dependencies are built before their dependents.
No I/O.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Mapping, Sequence
from typing import TypeVar

from certdeploy.core.errors import DependencyCycle

N = TypeVar("N", bound=Hashable)


def validate_dag(graph: Mapping[N, Sequence[N]]) -> list[str]:
    """Validate a dependency graph.

    Checks for:
    - Nodes that depend on themselves
    - References to unknown nodes
    - Cycles (Kahn's algorithm)

    Returns:
        List of error strings (empty = valid).
    """
    errors: list[str] = []

    for node, deps in graph.items():
        if node in deps:
            errors.append(f"'{node}' depends on itself")
        for dep in deps:
            if dep not in graph:
                errors.append(f"'{node}' depends on unknown '{dep}'")

    if errors:
        return errors

    if len(_kahn(graph, graph.keys())) < len(graph):
        errors.append("Dependency cycle detected")

    return errors


def topological_order(
    graph: Mapping[N, Sequence[N]],
    nodes: Iterable[N] | None = None,
) -> list[N]:
    """Order *nodes* (default: all) so every dependency precedes its dependents.

    Only edges between the selected nodes are considered; the caller
    is expected to pass a dependency-closed set. Ties keep the order in
    which nodes were given, so the result is deterministic.

    Raises:
        DependencyCycle: If the selected nodes contain a cycle.
    """
    selected = list(graph.keys() if nodes is None else nodes)
    order = _kahn(graph, selected)
    if len(order) < len(selected):
        stuck = sorted(str(n) for n in selected if n not in set(order))
        raise DependencyCycle(f"Dependency cycle among: {', '.join(stuck)}")
    return order


def _kahn(graph: Mapping[N, Sequence[N]], nodes: Iterable[N]) -> list[N]:
    selected = list(dict.fromkeys(nodes))
    members = set(selected)

    in_degree: dict[N, int] = {n: 0 for n in selected}
    # dep → nodes that depend on it
    adj: dict[N, list[N]] = {n: [] for n in selected}
    for node in selected:
        for dep in graph.get(node, ()):
            if dep in members:
                in_degree[node] += 1
                adj[dep].append(node)

    queue = [n for n in selected if in_degree[n] == 0]
    order: list[N] = []
    while queue:
        node = queue.pop(0)
        order.append(node)
        for successor in adj[node]:
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                queue.append(successor)

    return order
