"""
Level assignment for the plan graph.

Partitions nodes into dependency-ordered levels with a layered topological
sort: every frontier of zero in-degree nodes becomes one level. Nodes that
never reach zero in-degree sit on a cycle; they are collected into a single
trailing level instead of failing the layout.

Ties are always broken by sorting ids, so the partition does not depend on
dict or set iteration order.
"""

from typing import Dict, Iterable, List, Tuple

from .types import Edge


def assign_levels(node_ids: Iterable[str], edges: Iterable[Edge]) -> Tuple[List[List[str]], bool]:
    """
    Compute the level partition of a graph.

    Args:
        node_ids: Every node in the graph.
        edges: Dependency edges; `source` must precede `target`. Edges whose
            endpoints are not in `node_ids` are ignored.

    Returns:
        Tuple of (levels, has_cycle). `levels` covers every node exactly
        once; each level is sorted by id.
    """
    in_degree: Dict[str, int] = {node_id: 0 for node_id in node_ids}
    successors: Dict[str, List[str]] = {node_id: [] for node_id in in_degree}

    for edge in edges:
        if edge.source not in in_degree or edge.target not in in_degree:
            continue
        successors[edge.source].append(edge.target)
        in_degree[edge.target] += 1

    levels: List[List[str]] = []
    frontier = sorted(node_id for node_id, degree in in_degree.items() if degree == 0)

    while frontier:
        levels.append(frontier)
        released = set()
        for node_id in frontier:
            for successor in successors[node_id]:
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    released.add(successor)
        frontier = sorted(released)

    remaining = sorted(node_id for node_id, degree in in_degree.items() if degree > 0)
    has_cycle = bool(remaining)
    if has_cycle:
        levels.append(remaining)

    return levels, has_cycle


def level_index(levels: List[List[str]]) -> Dict[str, int]:
    """Map each node id to the index of its level."""
    return {node_id: idx for idx, level in enumerate(levels) for node_id in level}
