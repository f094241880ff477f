"""
Discovery Engine — Patch Catalog
================================
Version 1.0 — October 2026

Alternative strategies a code-patch repair can choose from. The
reasoning service names an entry by id; it never supplies executable
code. Governance only approves ids listed here.

Built-in entries:
- rerun_original: execute the node's original strategy once more
- direct_brief_search: search with the node's brief as the query
- reasoning_only: answer the node's task with pure reasoning
"""

import logging
from typing import Any, Callable, Dict, List

from ..errors import DiscoveryEngineError
from ..graph import DAGNode, Strategy
from ..orchestrator_types import ROLE_RESULT_MODELS, SimulationResult
from .base import dependency_results, format_results, node_brief
from .experiment import DirectSearchStrategy

logger = logging.getLogger(__name__)

PatchFactory = Callable[[DAGNode, Strategy], Strategy]

RERUN_ORIGINAL = "rerun_original"
DIRECT_BRIEF_SEARCH = "direct_brief_search"
REASONING_ONLY = "reasoning_only"

REASONING_ONLY_PROMPT = """Complete the following task of a discovery experiment using reasoning alone.
Goal: "{goal}"
Task ({role}): "{brief}"
Results of the tasks it depends on:
{results}
"""


class RerunOriginalStrategy:
    """Delegates to the strategy the node had before the patch."""

    def __init__(self, original: Strategy):
        self.original = original

    async def execute(self, task_id, dependency_ids, run_state, graph, run_id, event_log) -> Dict[str, Any]:
        return await self.original.execute(task_id, dependency_ids, run_state, graph, run_id, event_log)


class ReasoningOnlyStrategy:
    """Produces the role's result model straight from the reasoning service."""

    def __init__(self, reasoning, role: str):
        self.reasoning = reasoning
        self.role = role
        self.result_model = ROLE_RESULT_MODELS.get(role, SimulationResult)

    async def execute(self, task_id, dependency_ids, run_state, graph, run_id, event_log) -> Dict[str, Any]:
        prompt = REASONING_ONLY_PROMPT.format(
            goal=run_state.goal,
            role=self.role,
            brief=node_brief(graph, task_id),
            results=format_results(dependency_results(run_state, dependency_ids)),
        )
        result = await self.reasoning.generate_structured(prompt, self.result_model)
        return result.model_dump(by_alias=True)


class PatchCatalog:
    """Registered alternative strategies, keyed by patch id."""

    def __init__(self):
        self._patches: Dict[str, PatchFactory] = {}

    def register(self, patch_id: str, factory: PatchFactory) -> None:
        self._patches[patch_id] = factory

    def names(self) -> List[str]:
        return list(self._patches)

    def __contains__(self, patch_id: str) -> bool:
        return patch_id in self._patches

    def build(self, patch_id: str, node: DAGNode, original: Strategy) -> Strategy:
        """Replacement strategy for a node, given the strategy it replaces."""
        factory = self._patches.get(patch_id)
        if factory is None:
            raise DiscoveryEngineError(f"Unknown code patch {patch_id!r}")
        logger.info(f"[REPAIR] Building patch {patch_id} for node {node.id}")
        return factory(node, original)


def default_patch_catalog(reasoning, search_tool) -> PatchCatalog:
    catalog = PatchCatalog()
    catalog.register(RERUN_ORIGINAL, lambda node, original: RerunOriginalStrategy(original))
    catalog.register(DIRECT_BRIEF_SEARCH, lambda node, original: DirectSearchStrategy(search_tool))
    catalog.register(REASONING_ONLY, lambda node, original: ReasoningOnlyStrategy(reasoning, node.role))
    return catalog
