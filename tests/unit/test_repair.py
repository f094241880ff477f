"""
Unit tests for the repair mechanism.
"""
import pytest

from conftest import FailingReasoningService, FakeStrategy
from discovery_engine.events import REPAIR_PROPOSE_START
from discovery_engine.graph import DAGNode
from discovery_engine.llm_client import MockReasoningService
from discovery_engine.orchestrator_types import (
    ModificationType,
    RepairContext,
    RepairedArtifact,
    RepairProposal,
)
from discovery_engine.repair import RepairMechanism


def failed_context():
    node = DAGNode("E1-T1", "DataCollection", "Search data.", FakeStrategy(), depends_on=["H1"])
    return RepairContext(
        error="Tool search failed: Failed to perform search.",
        node=node,
        dependency_state={"H1": {"hypothesis": "h", "taskId": "H1", "role": "Hypothesize", "status": "COMPLETED"}},
    )


class WrongTypeReasoning:
    async def generate_structured(self, prompt, schema):
        return {"modification_type": "code_patch"}


class TestPrompt:
    """Test RepairMechanism.build_prompt."""

    def test_prompt_carries_failure_context(self):
        """Test that error, node identity and dependency state appear in the prompt."""
        prompt = RepairMechanism(MockReasoningService()).build_prompt(failed_context())

        assert "Tool search failed" in prompt
        assert '"E1-T1"' in prompt
        assert '"DataCollection"' in prompt
        assert '"hypothesis": "h"' in prompt

    def test_prompt_lists_catalog(self):
        """Test that only the catalogued patch ids are offered."""
        mechanism = RepairMechanism(MockReasoningService(), patch_ids=["rerun_original", "reasoning_only"])
        prompt = mechanism.build_prompt(failed_context())

        assert "- rerun_original:" in prompt
        assert "- reasoning_only:" in prompt
        assert "direct_brief_search" not in prompt

    def test_prompt_without_catalog(self):
        """Test that an empty catalog steers towards artifact repair."""
        prompt = RepairMechanism(MockReasoningService()).build_prompt(failed_context())
        assert "prefer artifact_repair" in prompt


class TestProposeRepair:
    """Test RepairMechanism.propose_repair."""

    @pytest.mark.asyncio
    async def test_returns_proposal(self, event_log):
        """Test that a well-formed proposal is returned and propose.start emitted."""
        expected = RepairProposal(
            modification_type=ModificationType.ARTIFACT_REPAIR,
            repaired_artifact=RepairedArtifact(data="recovered"),
            notes=["Diagnosis: outage."],
        )
        mechanism = RepairMechanism(MockReasoningService(repair_proposal=expected))

        proposal = await mechanism.propose_repair(failed_context(), "run-1", event_log)

        assert proposal == expected
        events = event_log.events()
        assert [e.type for e in events] == [REPAIR_PROPOSE_START]
        assert events[0].node_id == "E1-T1"

    @pytest.mark.asyncio
    async def test_service_failure_returns_none(self, event_log):
        """Test that a failing reasoning service yields None, not an exception."""
        mechanism = RepairMechanism(FailingReasoningService())

        assert await mechanism.propose_repair(failed_context(), "run-1", event_log) is None
        assert [e.type for e in event_log.events()] == [REPAIR_PROPOSE_START]

    @pytest.mark.asyncio
    async def test_wrong_type_returns_none(self, event_log):
        """Test that an answer that is not a RepairProposal yields None."""
        mechanism = RepairMechanism(WrongTypeReasoning())

        assert await mechanism.propose_repair(failed_context(), "run-1", event_log) is None
