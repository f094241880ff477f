"""
Graph Module - Node
===================
A scheduling unit wrapping a strategy with identity, role, brief and
dependencies, plus the node-level state machine:

    PENDING -> RUNNING -> COMPLETED | FAILED
    FAILED -> REPAIRING -> PENDING -> RUNNING (repair path only)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Protocol

from ..errors import (
    DiscoveryEngineError,
    InjectedFailureError,
    StrategyError,
    StrategyReplacementError,
)
from ..orchestrator_types import NodeStatus


# Test-only marker; a brief carrying it makes the node's first execution fail
FAILURE_INJECTION_MARKER = "[INJECT_FAILURE]"


class Strategy(Protocol):
    """Domain logic bound to a node."""

    async def execute(
        self,
        task_id: str,
        dependency_ids: List[str],
        run_state: Any,
        graph: Any,
        run_id: str,
        event_log: Any,
    ) -> Dict[str, Any]:
        ...


@dataclass(eq=False)
class DAGNode:
    """A single unit of work in the run's task graph."""
    # Identity
    id: str
    role: str                     # Open vocabulary, used for strategy dispatch
    brief: str                    # Human-readable task description
    strategy: Strategy

    # Dependencies (ordered, duplicates removed)
    depends_on: List[str] = field(default_factory=list)

    # State
    status: NodeStatus = NodeStatus.PENDING
    execution_count: int = 0
    strategy_replaced: bool = False

    def __post_init__(self):
        self.depends_on = list(dict.fromkeys(self.depends_on))

    @property
    def has_failure_marker(self) -> bool:
        return FAILURE_INJECTION_MARKER in self.brief

    def inject_failure(self) -> None:
        """Append the failure-injection marker to the brief."""
        if not self.has_failure_marker:
            self.brief = f"{self.brief} {FAILURE_INJECTION_MARKER}"

    def replace_strategy(self, strategy: Strategy) -> None:
        """Swap in repaired logic. Allowed once per node."""
        if self.strategy_replaced:
            raise StrategyReplacementError(f"Strategy of node {self.id} has already been replaced")
        self.strategy = strategy
        self.strategy_replaced = True

    async def execute(self, run_state, graph, run_id: str, event_log) -> Dict[str, Any]:
        """
        Run the bound strategy and settle the node's status.

        Returns the strategy result merged with task_id/role/status. Writing it
        to the run state is the caller's job, so a failure never leaves a
        partial entry behind.

        Raises:
            Whatever the strategy raised; the node is FAILED in that case.
        """
        if self.status not in (NodeStatus.PENDING, NodeStatus.REPAIRING):
            raise DiscoveryEngineError(f"Node {self.id} cannot execute from status {self.status.value}")

        self.status = NodeStatus.RUNNING
        self.execution_count += 1

        try:
            if self.execution_count == 1 and self.has_failure_marker:
                raise InjectedFailureError(f"Artificial failure triggered for node {self.id}.")

            result = await self.strategy.execute(
                self.id, list(self.depends_on), run_state, graph, run_id, event_log
            )
            if result is None:
                result = {}
            if not isinstance(result, Mapping):
                raise StrategyError(
                    f"Strategy for {self.id} returned {type(result).__name__}, expected a mapping"
                )
        except Exception:
            self.status = NodeStatus.FAILED
            raise

        result = dict(result)
        approved = result.get("approved", True)
        validation = result.get("validation")
        passed = validation.get("passed", True) if isinstance(validation, Mapping) else True

        self.status = NodeStatus.COMPLETED if approved is not False and passed is not False else NodeStatus.FAILED
        return {**result, "taskId": self.id, "role": self.role, "status": self.status.value}
