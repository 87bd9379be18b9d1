"""Graph Builder producing deterministic execution plans."""

import heapq
from typing import Dict, List

from ..models.core import ExecutionPlan, Workflow
from .exceptions import CycleDetectedError
from .logging import get_logger

logger = get_logger(__name__)


class GraphBuilder:
    """Turns a workflow's nodes and connections into a topological execution plan.

    The builder is a pure function of the workflow: it performs no I/O and
    never mutates its input.
    """

    def build_plan(self, workflow: Workflow) -> ExecutionPlan:
        """
        Compute the execution order of a workflow.

        Nodes become eligible once all their predecessors are planned; among
        simultaneously eligible nodes the smallest node ID goes first, so the
        same definition always yields the same plan.

        Args:
            workflow: The workflow to plan

        Returns:
            ExecutionPlan: Node order plus the direct predecessors of each node

        Raises:
            DanglingConnectionError: If a connection references a missing node
            CycleDetectedError: If the connections form a cycle
        """
        workflow.validate_connections()

        in_degree: Dict[str, int] = {node.id: 0 for node in workflow.nodes}
        outgoing: Dict[str, List[str]] = {node.id: [] for node in workflow.nodes}
        incoming: Dict[str, List[str]] = {node.id: [] for node in workflow.nodes}

        for connection in workflow.connections:
            in_degree[connection.to_id] += 1
            outgoing[connection.from_id].append(connection.to_id)
            incoming[connection.to_id].append(connection.from_id)

        ready = [node_id for node_id, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)

        order: List[str] = []
        while ready:
            node_id = heapq.heappop(ready)
            order.append(node_id)
            for successor in outgoing[node_id]:
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    heapq.heappush(ready, successor)

        if len(order) < len(in_degree):
            unresolved = sorted(node_id for node_id, degree in in_degree.items() if degree > 0)
            cycle = self._find_cycle(unresolved, incoming)
            logger.warning(
                f"Workflow {workflow.id or '<unsaved>'} contains a cycle: {' -> '.join(cycle)}"
            )
            raise CycleDetectedError(cycle, unresolved, workflow_id=workflow.id or None)

        predecessors = {
            node_id: list(dict.fromkeys(incoming[node_id]))
            for node_id in order
        }

        logger.debug(f"Planned workflow {workflow.id or '<unsaved>'}: {order}")
        return ExecutionPlan(workflow_id=workflow.id, order=order, predecessors=predecessors)

    def execution_levels(self, plan: ExecutionPlan) -> List[List[str]]:
        """
        Group planned nodes into dependency levels.

        Every node of a level depends only on nodes of earlier levels, so the
        nodes of one level may run concurrently.
        """
        level_of: Dict[str, int] = {}
        levels: List[List[str]] = []
        for node_id in plan.order:
            level = max((level_of[p] + 1 for p in plan.predecessors.get(node_id, [])), default=0)
            level_of[node_id] = level
            if level == len(levels):
                levels.append([])
            levels[level].append(node_id)
        return levels

    @staticmethod
    def _find_cycle(unresolved: List[str], incoming: Dict[str, List[str]]) -> List[str]:
        """Walk predecessor links among unresolved nodes until one repeats."""
        remaining = set(unresolved)
        path: List[str] = []
        position: Dict[str, int] = {}

        current = unresolved[0]
        while current not in position:
            position[current] = len(path)
            path.append(current)
            # Every unresolved node keeps at least one unresolved predecessor.
            current = min(p for p in incoming[current] if p in remaining)

        cycle = path[position[current]:]
        cycle.reverse()
        start = cycle.index(min(cycle))
        return cycle[start:] + cycle[:start]
