"""
Discovery Engine — Repair Mechanism
===================================
Version 1.0 — October 2026

Diagnose-propose step of the repair cycle. Given a failed node, its
error and the state of its dependencies, asks the reasoning service for
a RepairProposal under a forced output schema.

A None return means the repair subsystem itself failed. The orchestrator
treats that as fatal for the node, never as "no repair needed".
"""

import json
import logging
from typing import Iterable, Optional

from .events import REPAIR_PROPOSE_START
from .orchestrator_types import RepairContext, RepairProposal

logger = logging.getLogger(__name__)


REPAIR_PROMPT = """You are the repair mechanism of a Perpetual Discovery Engine. A node of the engine's task graph
has failed and the discovery loop is paused. Diagnose the failure, then propose one repair.

## 1. Diagnose
Analyze the failure context and determine the most likely root cause.

## 2. Propose
Choose one of two repair strategies:

A) artifact_repair (for transient or data errors)
   If the failure can be resolved by providing a correct output, set modification_type to "artifact_repair"
   and supply the node's corrected output in repaired_artifact, using the fields of the node's role:
   - Hypothesize: hypothesis
   - ExperimentDesign: tasks
   - DataCollection: data, sources
   - Simulation / CrossReference: simulation_result
   - Analyze: conclusion, novelty_score
   - Validate: is_discovery, justification
   Leave code_patch empty.

B) code_patch (for persistent logic errors)
   If the node's logic itself is at fault, set modification_type to "code_patch" and put the id of ONE
   alternative strategy from this catalog in code_patch:
{patches}
   Leave repaired_artifact empty.

Always include your diagnosis and the justification for the proposed solution in notes.

## Failure Context
- Error Message: "{error}"
- Failed Node ID: "{node_id}"
- Failed Node Role: "{role}"
- Failed Node Brief: "{brief}"
- State of Dependencies:
{dependency_state}
"""

PATCH_DESCRIPTIONS = {
    "rerun_original": "execute the node's original logic once more",
    "direct_brief_search": "search the web using the node's brief as the query",
    "reasoning_only": "complete the node's task with pure reasoning over its dependency results",
}


class RepairMechanism:
    """Consults the reasoning service for a repair of a failed node."""

    def __init__(self, reasoning, patch_ids: Iterable[str] = ()):
        self.reasoning = reasoning
        self.patch_ids = list(patch_ids)

    def _format_patches(self) -> str:
        if not self.patch_ids:
            return "   (no alternative strategies available, prefer artifact_repair)"
        return "\n".join(
            f"   - {patch_id}: {PATCH_DESCRIPTIONS.get(patch_id, 'registered alternative strategy')}"
            for patch_id in self.patch_ids
        )

    def build_prompt(self, context: RepairContext) -> str:
        node = context.node
        return REPAIR_PROMPT.format(
            patches=self._format_patches(),
            error=context.error,
            node_id=node.id,
            role=node.role,
            brief=node.brief,
            dependency_state=json.dumps(context.dependency_state, indent=2, default=str),
        )

    async def propose_repair(self, context: RepairContext, run_id: str, event_log) -> Optional[RepairProposal]:
        """
        Ask for a repair proposal.

        Returns:
            The proposal, or None if the reasoning service failed or answered
            with something that is not a RepairProposal
        """
        node = context.node
        event_log.emit(REPAIR_PROPOSE_START, run_id, node_id=node.id)
        logger.info(f"[REPAIR] Proposing repair for {node.id} ({node.role}): {context.error}")

        try:
            proposal = await self.reasoning.generate_structured(self.build_prompt(context), RepairProposal)
        except Exception as e:
            logger.error(f"[REPAIR] Repair mechanism failed to generate a proposal for {node.id}: {e}")
            return None

        if not isinstance(proposal, RepairProposal):
            logger.error(f"[REPAIR] Expected a RepairProposal for {node.id}, got {type(proposal).__name__}")
            return None

        logger.info(f"[REPAIR] Proposal for {node.id}: {proposal.modification_type.value}")
        return proposal
