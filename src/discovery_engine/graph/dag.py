"""
Graph Module - Task Graph
=========================
In-memory, append-only collection of nodes for one run.

Nodes may be inserted at any time during the run. A node is runnable once
it is PENDING and every dependency resolves to a COMPLETED node; ids that
have not been inserted yet simply block it. There is no cycle detection
here, a cycle just never becomes runnable.
"""

import logging
from collections import deque
from typing import Dict, Iterator, List, Optional

from ..errors import DuplicateNodeError
from ..orchestrator_types import NodeStatus
from .node import DAGNode

logger = logging.getLogger(__name__)


class TaskGraph:
    """All nodes of a run, keyed by id, in insertion order."""

    def __init__(self):
        self._nodes: Dict[str, DAGNode] = {}

    def add(self, node: DAGNode) -> DAGNode:
        if node.id in self._nodes:
            raise DuplicateNodeError(node.id)
        self._nodes[node.id] = node
        logger.debug(f"[DAG] Added {node.id} ({node.role}) depends_on={node.depends_on}")
        return node

    def get(self, node_id: str) -> Optional[DAGNode]:
        return self._nodes.get(node_id)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[DAGNode]:
        return iter(list(self._nodes.values()))

    def is_runnable(self, node: DAGNode) -> bool:
        """Check whether a node's dependencies are met and it is waiting to run."""
        if node.status != NodeStatus.PENDING:
            return False

        for dep_id in node.depends_on:
            dep = self._nodes.get(dep_id)
            if dep is None:
                # Dependency not inserted yet (may be created later)
                return False
            if dep.status != NodeStatus.COMPLETED:
                return False

        return True

    def runnable(self) -> List[DAGNode]:
        """Every node that can be dispatched right now."""
        return [node for node in self._nodes.values() if self.is_runnable(node)]

    def find_ancestor(self, node_id: str, role: str) -> Optional[DAGNode]:
        """
        Nearest node with the given role among the transitive dependencies.

        Breadth-first over depends_on, so a direct dependency wins over a
        more distant one. The starting node itself is never returned.
        """
        start = self._nodes.get(node_id)
        if start is None:
            return None

        seen = {node_id}
        queue = deque(start.depends_on)
        while queue:
            dep_id = queue.popleft()
            if dep_id in seen:
                continue
            seen.add(dep_id)

            dep = self._nodes.get(dep_id)
            if dep is None:
                continue
            if dep.role == role:
                return dep
            queue.extend(dep.depends_on)

        return None
