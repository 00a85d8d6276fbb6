"""
Topological Resolver Module

Responsibility:
- Turn a finished resource graph into a deployment order
- Break ties by declaration order so plans are deterministic and diffable
- Group nodes into stages that can be materialized in parallel
- Re-check for cycles and dangling references before producing an order

This is PURE deterministic logic over the graph.
"""

import heapq
import logging
from typing import Dict, List

from stackforge.errors import CyclicDependencyError, UnknownNodeError

logger = logging.getLogger(__name__)


def _dependency_map(graph) -> Dict[str, List[str]]:
    """Map node id -> direct dependency ids, rejecting dangling references."""
    dependencies = {}
    for node in graph.nodes:
        deps = node.dependencies()
        for dep_id in deps:
            if dep_id not in graph:
                raise UnknownNodeError(dep_id, referenced_by=node.id)
        dependencies[node.id] = deps
    return dependencies


def resolve(graph) -> List[str]:
    """
    Return node ids in an order where every node follows its dependencies.

    Kahn's algorithm; among ready nodes the earliest declared goes first.
    Raises CyclicDependencyError if a cycle survived declaration.
    """
    dependencies = _dependency_map(graph)
    index = {node.id: node.index for node in graph.nodes}

    remaining = {node_id: len(deps) for node_id, deps in dependencies.items()}
    dependents: Dict[str, List[str]] = {node_id: [] for node_id in dependencies}
    for node_id, deps in dependencies.items():
        for dep_id in deps:
            dependents[dep_id].append(node_id)

    ready = [(index[node_id], node_id) for node_id, count in remaining.items() if count == 0]
    heapq.heapify(ready)

    order = []
    while ready:
        _, node_id = heapq.heappop(ready)
        order.append(node_id)
        for dependent in dependents[node_id]:
            remaining[dependent] -= 1
            if remaining[dependent] == 0:
                heapq.heappush(ready, (index[dependent], dependent))

    if len(order) != len(dependencies):
        stuck = sorted((node_id for node_id, count in remaining.items() if count > 0), key=index.get)
        raise CyclicDependencyError(f"Cycle detected among nodes: {', '.join(stuck)}", stuck)

    logger.debug("Resolved order for stack %s: %s", graph.name, order)
    return order


def resolve_stages(graph) -> List[List[str]]:
    """
    Group the resolved order into stages.

    Every node in a stage depends only on nodes from earlier stages, so a
    stage's nodes can be materialized concurrently.
    """
    dependencies = _dependency_map(graph)
    stage_of: Dict[str, int] = {}
    stages: List[List[str]] = []

    for node_id in resolve(graph):
        stage = max((stage_of[dep_id] + 1 for dep_id in dependencies[node_id]), default=0)
        stage_of[node_id] = stage
        if stage == len(stages):
            stages.append([])
        stages[stage].append(node_id)

    return stages
