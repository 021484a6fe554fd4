"""
Execution ordering for workflow graphs.

Two strategies:
- TOPOLOGICAL: Kahn's algorithm over the connections. Among ready
  nodes, the one with the lowest role rank (start, listener,
  evaluator, executor, collector, end) runs first, then the one
  listed first in the workflow. Nodes on a cycle never become ready;
  they are appended in role order.
- CATEGORY: fixed role order regardless of edges, kept for graphs
  built against the older behavior.
"""

import heapq
import logging
from enum import Enum

from sigflow.domain.workflow.entities import Node, Workflow
from sigflow.domain.workflow.registry import get_schema

logger = logging.getLogger(__name__)


class OrderingStrategy(Enum):
    TOPOLOGICAL = "topological"
    CATEGORY = "category"


def role_rank(node: Node) -> int:
    return get_schema(node.type).role.value


def category_order(workflow: Workflow) -> list[Node]:
    """Nodes sorted by role rank, stable within a role."""
    return sorted(workflow.nodes, key=role_rank)


def topological_order(workflow: Workflow) -> list[Node]:
    """Dependency-respecting order with role rank as tie-break.

    Connections whose endpoints are not in the workflow are ignored.
    """
    index = {node.id: i for i, node in enumerate(workflow.nodes)}
    in_degree = {node.id: 0 for node in workflow.nodes}
    adjacency: dict[str, list[str]] = {node.id: [] for node in workflow.nodes}

    for connection in workflow.connections:
        if connection.source not in index or connection.target not in index:
            logger.warning(
                "Ignoring connection %s with unknown endpoint.", connection.id
            )
            continue
        adjacency[connection.source].append(connection.target)
        in_degree[connection.target] += 1

    def key(node_id: str) -> tuple[int, int]:
        return role_rank(workflow.nodes[index[node_id]]), index[node_id]

    ready = [key(node_id) + (node_id,) for node_id, d in in_degree.items() if d == 0]
    heapq.heapify(ready)

    ordered: list[Node] = []
    while ready:
        _, _, node_id = heapq.heappop(ready)
        ordered.append(workflow.nodes[index[node_id]])
        for target in adjacency[node_id]:
            in_degree[target] -= 1
            if in_degree[target] == 0:
                heapq.heappush(ready, key(target) + (target,))

    if len(ordered) < len(workflow.nodes):
        placed = {node.id for node in ordered}
        leftover = [n for n in workflow.nodes if n.id not in placed]
        logger.warning(
            "Workflow %s has a cycle through %d node(s); running them in role order.",
            workflow.id,
            len(leftover),
        )
        ordered.extend(sorted(leftover, key=role_rank))

    return ordered


def execution_order(
    workflow: Workflow, strategy: OrderingStrategy = OrderingStrategy.TOPOLOGICAL
) -> list[Node]:
    if strategy is OrderingStrategy.CATEGORY:
        return category_order(workflow)
    return topological_order(workflow)
