"""Dependency graph ordering shared by CPM and auto-fix."""

from collections.abc import Iterable

from ganttline.exceptions import CircularDependencyError
from ganttline.logger import get_logger

logger = get_logger()


def topological_sort(
    node_ids: list[str],
    edges: Iterable[tuple[str, str]],
    *,
    strict: bool = False,
) -> list[str]:
    """Order nodes so that every edge source precedes its target.

    Uses Kahn's algorithm with a FIFO queue seeded in ``node_ids`` order, so
    independent nodes keep their given order. Edges touching unknown nodes
    are ignored.

    Args:
        node_ids: Nodes in their insertion order
        edges: (source, target) pairs
        strict: Raise on a cycle instead of falling back

    Returns:
        Node IDs in topological order, or ``node_ids`` unchanged if the graph
        has a cycle and ``strict`` is False

    Raises:
        CircularDependencyError: If a cycle exists and ``strict`` is True
    """
    in_degree = dict.fromkeys(node_ids, 0)
    successors: dict[str, list[str]] = {node_id: [] for node_id in node_ids}
    for source, target in edges:
        if source in in_degree and target in in_degree:
            successors[source].append(target)
            in_degree[target] += 1

    queue: list[str] = [node_id for node_id, degree in in_degree.items() if degree == 0]
    result: list[str] = []

    while queue:
        node_id = queue.pop(0)
        result.append(node_id)
        for target in successors[node_id]:
            in_degree[target] -= 1
            if in_degree[target] == 0:
                queue.append(target)

    if len(result) != len(in_degree):
        stuck = [node_id for node_id in node_ids if in_degree[node_id] > 0]
        if strict:
            raise CircularDependencyError(f"Circular dependency among: {', '.join(stuck)}")
        logger.warning(
            f"Circular dependency among {', '.join(stuck)}; falling back to insertion order"
        )
        return list(dict.fromkeys(node_ids))

    return result
