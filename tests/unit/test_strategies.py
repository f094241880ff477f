"""
Unit tests for the built-in strategies, the registry and the patch catalog.
"""
import pytest

from conftest import FakeStrategy
from discovery_engine.errors import DiscoveryEngineError, StrategyError, ToolError
from discovery_engine.events import NODE_TOOL_RESULT, NODE_TOOL_START
from discovery_engine.graph import DAGNode, TaskGraph
from discovery_engine.llm_client import MockReasoningService
from discovery_engine.orchestrator_types import ExperimentPlan, TaskDefinition
from discovery_engine.run_state import RunState
from discovery_engine.strategies import (
    AnalysisStrategy,
    DataCollectionStrategy,
    DirectSearchStrategy,
    ExperimentDesignStrategy,
    HypothesisStrategy,
    ReasoningOnlyStrategy,
    RerunOriginalStrategy,
    SimulationStrategy,
    StrategyRegistry,
    ValidationStrategy,
    default_patch_catalog,
    default_registry,
    normalize_plan,
)
from discovery_engine.tools import StaticSearchTool


def completed(node_id, role, **payload):
    return {**payload, "taskId": node_id, "role": role, "status": "COMPLETED"}


def graph_with_hypothesis(*nodes):
    """Graph and state holding a completed H1 plus the given nodes."""
    graph = TaskGraph()
    graph.add(DAGNode("H1", "Hypothesize", "Generate hypothesis", FakeStrategy()))
    for node in nodes:
        graph.add(node)
    state = RunState("room-temperature superconductors")
    state.record("H1", completed("H1", "Hypothesize", hypothesis="Hydrides conduct at 300K"))
    return graph, state


async def run_strategy(strategy, node, graph, state, event_log):
    return await strategy.execute(node.id, node.depends_on, state, graph, "run-1", event_log)


class TestNormalizePlan:
    """Test normalize_plan."""

    def test_keeps_well_formed_plan(self):
        """Test that a valid plan passes unchanged."""
        plan = ExperimentPlan(tasks=[
            TaskDefinition(task_id="E1-T1", role="DataCollection", brief="collect"),
            TaskDefinition(task_id="E1-T2", role="Simulation", brief="simulate", depends_on=["E1-T1"]),
        ])

        normalized = normalize_plan(plan, set())

        assert normalized == plan

    def test_drops_duplicate_and_existing_ids(self):
        """Test that repeated ids, ids already in the graph and fixed-phase ids are dropped."""
        plan = ExperimentPlan(tasks=[
            TaskDefinition(task_id="E1-T1", role="DataCollection", brief="first"),
            TaskDefinition(task_id="E1-T1", role="Simulation", brief="repeat"),
            TaskDefinition(task_id="old", role="Simulation", brief="exists"),
            TaskDefinition(task_id="A1", role="Simulation", brief="clashes with analysis"),
            TaskDefinition(task_id="  ", role="Simulation", brief="blank"),
        ])

        normalized = normalize_plan(plan, {"old"})

        assert [(t.task_id, t.brief) for t in normalized.tasks] == [("E1-T1", "first")]

    def test_drops_out_of_plan_dependencies(self):
        """Test that deps on unknown ids and on the task itself are removed."""
        plan = ExperimentPlan(tasks=[
            TaskDefinition(task_id=" E1-T1 ", role=" DataCollection ", brief="collect"),
            TaskDefinition(task_id="E1-T2", role="Simulation", brief="sim",
                           depends_on=["E1-T1", "E1-T1", "E9-T9", "E1-T2", "H1"]),
        ])

        normalized = normalize_plan(plan, set())

        assert normalized.tasks[0].task_id == "E1-T1"
        assert normalized.tasks[0].role == "DataCollection"
        assert normalized.tasks[1].depends_on == ["E1-T1"]


class TestDiscoveryStrategies:
    """Test the fixed-phase strategies."""

    @pytest.mark.asyncio
    async def test_hypothesis_uses_goal_and_knowledge(self, event_log):
        """Test that the prompt carries the goal and the knowledge summary."""
        reasoning = MockReasoningService()
        node = DAGNode("H2", "Hypothesize", "Generate hypothesis for domain", FakeStrategy())
        graph = TaskGraph()
        graph.add(node)
        state = RunState("deep-sea biology")
        state.append_knowledge("Hypothesis: A. Conclusion: B.")

        result = await run_strategy(HypothesisStrategy(reasoning), node, graph, state, event_log)

        assert result == {"hypothesis": "Mock hypothesis 1"}
        prompt, schema = reasoning.calls[0]
        assert schema == "HypothesisResult"
        assert "deep-sea biology" in prompt
        assert "Hypothesis: A. Conclusion: B." in prompt

    @pytest.mark.asyncio
    async def test_hypothesis_without_knowledge(self, event_log):
        """Test the placeholder used when nothing has been learned yet."""
        reasoning = MockReasoningService()
        node = DAGNode("H1", "Hypothesize", "Generate hypothesis for domain", FakeStrategy())
        graph = TaskGraph()
        graph.add(node)

        await run_strategy(HypothesisStrategy(reasoning), node, graph, RunState("g"), event_log)

        assert "No knowledge yet." in reasoning.calls[0][0]

    @pytest.mark.asyncio
    async def test_design_plans_from_hypothesis(self, event_log):
        """Test that the design strategy returns the normalized plan."""
        reasoning = MockReasoningService()
        node = DAGNode("D1", "ExperimentDesign", "Design experiment for H1", FakeStrategy(), depends_on=["H1"])
        graph, state = graph_with_hypothesis(node)

        result = await run_strategy(ExperimentDesignStrategy(reasoning), node, graph, state, event_log)

        assert [t["taskId"] for t in result["tasks"]] == ["E1-T1", "E1-T2"]
        assert "Hydrides conduct at 300K" in reasoning.calls[0][0]

    @pytest.mark.asyncio
    async def test_design_without_hypothesis_fails(self, event_log):
        """Test that a missing Hypothesize ancestor is a StrategyError."""
        node = DAGNode("D1", "ExperimentDesign", "Design", FakeStrategy())
        graph = TaskGraph()
        graph.add(node)

        with pytest.raises(StrategyError, match="Could not find parent Hypothesize"):
            await run_strategy(ExperimentDesignStrategy(MockReasoningService()), node, graph, RunState("g"), event_log)

    @pytest.mark.asyncio
    async def test_simulation_reasons_over_experiment_results(self, event_log):
        """Test that simulation sees experiment results but not the hypothesis entry."""
        reasoning = MockReasoningService()
        collect = DAGNode("E1-T1", "DataCollection", "collect", FakeStrategy(), depends_on=["H1"])
        node = DAGNode("E1-T2", "Simulation", "Simulate outcome [INJECT_FAILURE]", FakeStrategy(),
                       depends_on=["E1-T1", "H1"])
        graph, state = graph_with_hypothesis(collect, node)
        state.record("E1-T1", completed("E1-T1", "DataCollection", data="measured 290K", sources=[]))

        result = await run_strategy(SimulationStrategy(reasoning), node, graph, state, event_log)

        assert set(result) == {"simulation_result"}
        prompt = reasoning.calls[0][0]
        assert "measured 290K" in prompt
        assert "Result from H1" not in prompt
        assert "[INJECT_FAILURE]" not in prompt

    @pytest.mark.asyncio
    async def test_analysis_returns_score(self, event_log):
        """Test that analysis returns conclusion and novelty score."""
        node = DAGNode("A1", "Analyze", "Analyze results for H1", FakeStrategy(), depends_on=["H1"])
        graph, state = graph_with_hypothesis(node)

        result = await run_strategy(AnalysisStrategy(MockReasoningService(novelty_score=0.8)),
                                    node, graph, state, event_log)

        assert result == {"conclusion": "Mock conclusion 1", "novelty_score": 0.8}

    @pytest.mark.asyncio
    async def test_validation_needs_analysis_ancestor(self, event_log):
        """Test that validation reads both the hypothesis and the analysis."""
        reasoning = MockReasoningService(is_discovery=True)
        analysis = DAGNode("A1", "Analyze", "Analyze", FakeStrategy(), depends_on=["H1"])
        node = DAGNode("V1", "Validate", "Validate", FakeStrategy(), depends_on=["A1", "H1"])
        graph, state = graph_with_hypothesis(analysis, node)
        state.record("A1", completed("A1", "Analyze", conclusion="Confirmed", novelty_score=0.9))

        result = await run_strategy(ValidationStrategy(reasoning), node, graph, state, event_log)

        assert result["is_discovery"] is True
        assert "Confirmed" in reasoning.calls[0][0]
        assert "0.9" in reasoning.calls[0][0]


class TestExperimentStrategies:
    """Test the tool-backed strategies."""

    @pytest.mark.asyncio
    async def test_data_collection_emits_tool_events(self, event_log, search_tool):
        """Test that the tool call is bracketed by start/result events."""
        node = DAGNode("E1-T1", "DataCollection", "Find measurements", FakeStrategy(), depends_on=["H1"])
        graph, state = graph_with_hypothesis(node)

        result = await run_strategy(DataCollectionStrategy(MockReasoningService(), search_tool),
                                    node, graph, state, event_log)

        assert result["data"] == "Collected evidence."
        assert result["sources"] == [{"uri": "https://example.org/static", "title": "Static source"}]
        events = event_log.events()
        assert [e.type for e in events] == [NODE_TOOL_START, NODE_TOOL_RESULT]
        assert events[0].data["name"] == "search"
        assert events[0].data["input"] == search_tool.queries[0]
        assert events[1].data["output"]["ok"] is True

    @pytest.mark.asyncio
    async def test_tool_failure_raises(self, event_log):
        """Test that ok=False from the tool fails the node after the result event."""
        node = DAGNode("E1-T1", "DataCollection", "Find measurements", FakeStrategy(), depends_on=["H1"])
        graph, state = graph_with_hypothesis(node)

        with pytest.raises(ToolError) as exc_info:
            await run_strategy(DataCollectionStrategy(MockReasoningService(), StaticSearchTool(ok=False)),
                               node, graph, state, event_log)

        assert exc_info.value.detail == "Failed to perform search."
        assert [e.type for e in event_log.events()] == [NODE_TOOL_START, NODE_TOOL_RESULT]

    @pytest.mark.asyncio
    async def test_direct_search_uses_brief(self, event_log, search_tool):
        """Test that the direct search queries with the brief, without the marker."""
        node = DAGNode("E1-T1", "DataCollection", "superconductivity data [INJECT_FAILURE]", FakeStrategy())
        graph = TaskGraph()
        graph.add(node)

        await run_strategy(DirectSearchStrategy(search_tool), node, graph, RunState("g"), event_log)

        assert search_tool.queries == ["Find peer-reviewed articles about: superconductivity data"]


class TestRegistry:
    """Test StrategyRegistry."""

    def test_default_registry_roles(self, search_tool):
        """Test that every built-in role is registered."""
        registry = default_registry(MockReasoningService(), search_tool)

        assert set(registry.roles()) == {
            "Hypothesize", "ExperimentDesign", "DataCollection", "Simulation",
            "CrossReference", "Analyze", "Validate",
        }
        assert isinstance(registry.create("DataCollection"), DataCollectionStrategy)
        assert isinstance(registry.create("CrossReference"), SimulationStrategy)

    def test_unknown_role_uses_default(self, search_tool):
        """Test that an unregistered role resolves to the Simulation default."""
        registry = default_registry(MockReasoningService(), search_tool)

        assert "Interview" not in registry
        assert isinstance(registry.create("Interview"), SimulationStrategy)

    def test_unknown_role_without_default(self):
        """Test that a registry without a default raises KeyError."""
        with pytest.raises(KeyError):
            StrategyRegistry().create("Anything")

    def test_fresh_instance_per_create(self, search_tool):
        """Test that each node gets its own strategy instance."""
        registry = default_registry(MockReasoningService(), search_tool)
        assert registry.create("Analyze") is not registry.create("Analyze")


class TestPatchCatalog:
    """Test PatchCatalog and the built-in patches."""

    def test_names(self, search_tool):
        """Test the built-in patch ids."""
        catalog = default_patch_catalog(MockReasoningService(), search_tool)
        assert catalog.names() == ["rerun_original", "direct_brief_search", "reasoning_only"]

    def test_unknown_patch(self, search_tool):
        """Test that building an unknown id raises."""
        catalog = default_patch_catalog(MockReasoningService(), search_tool)
        node = DAGNode("n", "Simulation", "b", FakeStrategy())

        with pytest.raises(DiscoveryEngineError):
            catalog.build("exec(payload)", node, node.strategy)

    @pytest.mark.asyncio
    async def test_rerun_original_delegates(self, event_log, search_tool):
        """Test that rerun_original calls the strategy it replaces."""
        catalog = default_patch_catalog(MockReasoningService(), search_tool)
        original = FakeStrategy(result={"simulation_result": "again"})
        node = DAGNode("n", "Simulation", "b", original)
        graph = TaskGraph()
        graph.add(node)

        patched = catalog.build("rerun_original", node, original)
        result = await run_strategy(patched, node, graph, RunState("g"), event_log)

        assert isinstance(patched, RerunOriginalStrategy)
        assert result == {"simulation_result": "again"}
        assert len(original.calls) == 1

    @pytest.mark.asyncio
    async def test_reasoning_only_matches_role_model(self, event_log, search_tool):
        """Test that reasoning_only answers with the failing role's result model."""
        catalog = default_patch_catalog(MockReasoningService(), search_tool)
        node = DAGNode("E1-T1", "DataCollection", "collect", FakeStrategy())
        graph = TaskGraph()
        graph.add(node)

        patched = catalog.build("reasoning_only", node, node.strategy)
        result = await run_strategy(patched, node, graph, RunState("g"), event_log)

        assert isinstance(patched, ReasoningOnlyStrategy)
        assert result == {"data": "Mock collected data", "sources": []}
