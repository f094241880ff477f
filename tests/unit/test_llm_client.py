"""
Unit tests for the reasoning service wrapper and the mock service.
"""
import pytest
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel

from discovery_engine.config import ModelConfig
from discovery_engine.errors import ReasoningServiceError, StrategyError
from discovery_engine.llm_client import MockReasoningService, ReasoningService, coerce_to_schema
from discovery_engine.orchestrator_types import (
    AnalysisResult,
    ExperimentPlan,
    HypothesisResult,
    ModificationType,
    RepairProposal,
    TaskDefinition,
)

MODEL_CONFIG = ModelConfig(provider="google", model_name="gemini-test")


class FakeMessage:
    def __init__(self, content):
        self.content = content


class FakeRunnable:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.prompts = []

    async def ainvoke(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.response


class FakeChatModel(FakeRunnable):
    """Chat model double exposing ainvoke and with_structured_output."""

    def __init__(self, response=None, error=None, structured=None):
        super().__init__(response, error)
        self.structured = structured or FakeRunnable()
        self.schemas = []

    def with_structured_output(self, schema):
        self.schemas.append(schema)
        return self.structured


class TestCoerceToSchema:
    """Test coerce_to_schema."""

    def test_instance_passes_through(self):
        """Test that an instance of the schema is returned as-is."""
        result = HypothesisResult(hypothesis="h")
        assert coerce_to_schema(result, HypothesisResult) is result

    def test_dict_is_validated(self):
        """Test that a dict is parsed into the schema."""
        result = coerce_to_schema({"conclusion": "c", "novelty_score": 0.2}, AnalysisResult)
        assert result == AnalysisResult(conclusion="c", novelty_score=0.2)

    def test_other_model_is_converted(self):
        """Test that a different pydantic model with matching fields is accepted."""
        class Other(BaseModel):
            hypothesis: str

        assert coerce_to_schema(Other(hypothesis="h"), HypothesisResult).hypothesis == "h"

    @pytest.mark.parametrize("response", [
        "plain text",
        None,
        {"conclusion": "c", "novelty_score": 3.0},
        {"hypothesis": ""},
    ])
    def test_nonconforming_raises(self, response):
        """Test that anything not conforming is a ReasoningServiceError."""
        schema = AnalysisResult if isinstance(response, dict) and "conclusion" in response else HypothesisResult

        with pytest.raises(ReasoningServiceError):
            coerce_to_schema(response, schema)


class TestReasoningService:
    """Test ReasoningService over a fake chat model."""

    @pytest.mark.asyncio
    async def test_generate_text(self):
        """Test that message content is returned stripped."""
        llm = FakeChatModel(response=FakeMessage("  An answer.\n"))
        service = ReasoningService(llm, MODEL_CONFIG)

        assert await service.generate_text("question") == "An answer."
        system, human = llm.prompts[0]
        assert isinstance(system, SystemMessage)
        assert isinstance(human, HumanMessage)
        assert human.content == "question"

    @pytest.mark.asyncio
    async def test_generate_text_content_parts(self):
        """Test that list-of-parts content is joined."""
        llm = FakeChatModel(response=FakeMessage([{"type": "text", "text": "Part one, "}, "part two"]))

        assert await ReasoningService(llm, MODEL_CONFIG).generate_text("q") == "Part one, part two"

    @pytest.mark.asyncio
    async def test_empty_text_is_error(self):
        """Test that an empty response is a ReasoningServiceError."""
        llm = FakeChatModel(response=FakeMessage("   "))

        with pytest.raises(ReasoningServiceError):
            await ReasoningService(llm, MODEL_CONFIG).generate_text("q")

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self):
        """Test that a provider exception surfaces as a strategy failure."""
        llm = FakeChatModel(error=TimeoutError("deadline exceeded"))

        with pytest.raises(StrategyError, match="deadline exceeded"):
            await ReasoningService(llm, MODEL_CONFIG).generate_text("q")

    @pytest.mark.asyncio
    async def test_generate_structured(self):
        """Test that structured output is bound to the schema and validated."""
        structured = FakeRunnable(response={"hypothesis": "Bees navigate by polarized light"})
        llm = FakeChatModel(structured=structured)

        result = await ReasoningService(llm, MODEL_CONFIG).generate_structured("q", HypothesisResult)

        assert result == HypothesisResult(hypothesis="Bees navigate by polarized light")
        assert llm.schemas == [HypothesisResult]

    @pytest.mark.asyncio
    async def test_generate_structured_mismatch(self):
        """Test that a structured answer missing fields is rejected."""
        llm = FakeChatModel(structured=FakeRunnable(response={"conclusion": "c"}))

        with pytest.raises(ReasoningServiceError):
            await ReasoningService(llm, MODEL_CONFIG).generate_structured("q", AnalysisResult)


class TestMockReasoningService:
    """Test MockReasoningService."""

    @pytest.mark.asyncio
    async def test_counts_per_schema(self):
        """Test that hypotheses and plans are numbered per call."""
        mock = MockReasoningService()

        first = await mock.generate_structured("p", HypothesisResult)
        second = await mock.generate_structured("p", HypothesisResult)
        plan = await mock.generate_structured("p", ExperimentPlan)

        assert (first.hypothesis, second.hypothesis) == ("Mock hypothesis 1", "Mock hypothesis 2")
        assert [t.task_id for t in plan.tasks] == ["E1-T1", "E1-T2"]
        assert plan.tasks[1].depends_on == ["E1-T1"]

    @pytest.mark.asyncio
    async def test_novelty_sequence(self):
        """Test that a score sequence is consumed per analysis and the last value repeats."""
        mock = MockReasoningService(novelty_score=[0.1, 0.9])

        scores = [(await mock.generate_structured("p", AnalysisResult)).novelty_score for _ in range(3)]

        assert scores == [0.1, 0.9, 0.9]

    @pytest.mark.asyncio
    async def test_plan_callable(self):
        """Test that a plan factory receives the design count."""
        mock = MockReasoningService(plan=lambda n: ExperimentPlan(tasks=[
            TaskDefinition(task_id=f"X{n}", role="Simulation", brief="b"),
        ]))

        await mock.generate_structured("p", ExperimentPlan)
        plan = await mock.generate_structured("p", ExperimentPlan)

        assert plan.tasks[0].task_id == "X2"

    @pytest.mark.asyncio
    async def test_default_repair_proposal(self):
        """Test that the default proposal re-runs the original strategy."""
        proposal = await MockReasoningService().generate_structured("p", RepairProposal)

        assert proposal.modification_type == ModificationType.CODE_PATCH
        assert proposal.code_patch == "rerun_original"
        assert proposal.notes

    @pytest.mark.asyncio
    async def test_unknown_schema(self):
        """Test that an unsupported schema raises ReasoningServiceError."""
        class Unknown(BaseModel):
            value: int

        with pytest.raises(ReasoningServiceError):
            await MockReasoningService().generate_structured("p", Unknown)
