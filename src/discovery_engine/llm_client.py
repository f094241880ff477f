"""
Discovery Engine — LLM Client
=============================
Version 1.0 — October 2026

Wrapper for reasoning-service interactions with retry logic and
response validation.

Supported Providers:
- google: Gemini models (requires GOOGLE_API_KEY)
- openai: GPT models (requires OPENAI_API_KEY)
- anthropic: Claude models (requires ANTHROPIC_API_KEY)
- local: Ollama local models (requires Ollama running, optional OLLAMA_BASE_URL)

Example:
    from discovery_engine.config import ModelConfig
    config = ModelConfig(provider="google", model_name="gemini-2.5-flash")
    reasoning = ReasoningService(get_llm(config), config)
    plan = await reasoning.generate_structured(prompt, ExperimentPlan)
"""

import logging
import os
from typing import Any, List, Optional, Sequence, Tuple, Type, TypeVar, Union

from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, ValidationError

from .config import ModelConfig, RetryConfig
from .errors import ConfigurationError, ReasoningServiceError
from .metrics import llm_metrics
from .orchestrator_types import (
    AnalysisResult,
    CollectedData,
    ExperimentPlan,
    HypothesisResult,
    ModificationType,
    RepairProposal,
    SimulationResult,
    TaskDefinition,
    ValidationResult,
    ROLE_DATA_COLLECTION,
    ROLE_SIMULATION,
)

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def get_llm(model_config: ModelConfig, retry_config: Optional[RetryConfig] = None):
    """
    Get an LLM instance based on configuration with built-in retry logic.

    Args:
        model_config: Model configuration
        retry_config: Retry/timeout settings (defaults to RetryConfig())

    Returns:
        Configured LangChain chat model

    Raises:
        ConfigurationError: If the provider is not supported
    """
    retry_config = retry_config or RetryConfig()
    provider = model_config.provider.lower()

    if provider == "google":
        from langchain_google_genai import ChatGoogleGenerativeAI
        llm = ChatGoogleGenerativeAI(
            model=model_config.model_name,
            temperature=model_config.temperature,
            max_tokens=model_config.max_tokens,
            google_api_key=os.getenv("GOOGLE_API_KEY"),
            max_retries=retry_config.max_retries,
            timeout=retry_config.timeout,
        )
    elif provider == "openai":
        from langchain_openai import ChatOpenAI
        llm = ChatOpenAI(
            model=model_config.model_name,
            temperature=model_config.temperature,
            max_tokens=model_config.max_tokens,
            api_key=os.getenv("OPENAI_API_KEY"),
            max_retries=retry_config.max_retries,
            timeout=retry_config.timeout,
        )
    elif provider == "anthropic":
        from langchain_anthropic import ChatAnthropic
        llm = ChatAnthropic(
            model=model_config.model_name,
            temperature=model_config.temperature,
            max_tokens=model_config.max_tokens or 4096,
            api_key=os.getenv("ANTHROPIC_API_KEY"),
            max_retries=retry_config.max_retries,
            timeout=retry_config.timeout,
        )
    elif provider == "local":
        # Local Ollama server (OpenAI-compatible API)
        from langchain_openai import ChatOpenAI
        base_url = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/v1")
        llm = ChatOpenAI(
            model=model_config.model_name,
            temperature=model_config.temperature,
            max_tokens=model_config.max_tokens,
            api_key="ollama",  # Ollama ignores the key, the client requires one
            base_url=base_url,
            max_retries=retry_config.max_retries,
            timeout=retry_config.timeout * 2,  # Local inference is slower
        )
    else:
        raise ConfigurationError(f"Unsupported LLM provider: {provider}")

    logger.info(f"[LLM] Using {provider} model {model_config.model_name}")
    return llm


SYSTEM_PROMPT = (
    "You are the reasoning service of a Perpetual Discovery Engine. "
    "Follow the task instructions exactly and answer concisely."
)


def _messages(prompt: str) -> List[Any]:
    return [
        SystemMessage(content=SYSTEM_PROMPT),
        HumanMessage(content=prompt),
    ]


def _message_text(response: Any) -> str:
    """Extract plain text from a chat model response."""
    content = response.content if hasattr(response, "content") else response
    if isinstance(content, list):
        # Some providers return content as a list of parts
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        content = "".join(parts)
    return str(content or "").strip()


class ReasoningService:
    """
    Request/response contract used by strategies and the repair mechanism.

    Free-form prompts come back as text; schema-bound prompts come back as a
    validated instance of the schema. Anything else is a ReasoningServiceError,
    which the orchestrator treats as a strategy failure.
    """

    def __init__(self, llm, model_config: ModelConfig):
        self.llm = llm
        self.model_config = model_config

    async def generate_text(self, prompt: str) -> str:
        with llm_metrics.track_request(self.model_config.model_name, self.model_config.provider):
            try:
                response = await self.llm.ainvoke(_messages(prompt))
            except Exception as e:
                raise ReasoningServiceError(f"Reasoning service call failed: {e}") from e

            text = _message_text(response)
            if not text:
                raise ReasoningServiceError("Reasoning service returned an empty response")
        return text

    async def generate_structured(self, prompt: str, schema: Type[SchemaT]) -> SchemaT:
        structured_llm = self.llm.with_structured_output(schema)
        with llm_metrics.track_request(self.model_config.model_name, self.model_config.provider):
            try:
                response = await structured_llm.ainvoke(_messages(prompt))
            except Exception as e:
                raise ReasoningServiceError(f"Reasoning service call failed: {e}") from e
            result = coerce_to_schema(response, schema)
        return result


def coerce_to_schema(response: Any, schema: Type[SchemaT]) -> SchemaT:
    """Validate a structured response against its schema."""
    if isinstance(response, schema):
        return response
    if isinstance(response, BaseModel):
        response = response.model_dump()
    if not isinstance(response, dict):
        raise ReasoningServiceError(
            f"Expected a {schema.__name__} object, got {type(response).__name__}"
        )
    try:
        return schema.model_validate(response)
    except ValidationError as e:
        raise ReasoningServiceError(
            f"Response does not conform to {schema.__name__}: {e.error_count()} validation error(s)"
        ) from e


# =============================================================================
# MOCK SERVICE (offline runs and tests)
# =============================================================================

class MockReasoningService:
    """
    Deterministic reasoning service that never touches the network.

    Args:
        novelty_score: Score returned by every analysis, or one score per cycle
        is_discovery: Verdict returned by validation
        plan: Fixed plan, or a callable taking the 1-based design count
        repair_proposal: Proposal returned to the repair mechanism
            (defaults to re-running the original strategy)
    """

    def __init__(
        self,
        novelty_score: Union[float, Sequence[float]] = 0.4,
        is_discovery: bool = False,
        plan=None,
        repair_proposal: Optional[RepairProposal] = None,
    ):
        self.novelty_score = novelty_score
        self.is_discovery = is_discovery
        self.plan = plan
        self.repair_proposal = repair_proposal
        self.calls: List[Tuple[str, Optional[str]]] = []
        self._counts = {}

    def _next(self, key: str) -> int:
        self._counts[key] = self._counts.get(key, 0) + 1
        return self._counts[key]

    async def generate_text(self, prompt: str) -> str:
        self.calls.append((prompt, None))
        first_line = next((line.strip() for line in prompt.splitlines() if line.strip()), "")
        return f"Mock answer for: {first_line[:120]}"

    async def generate_structured(self, prompt: str, schema: Type[SchemaT]) -> SchemaT:
        self.calls.append((prompt, schema.__name__))

        if schema is HypothesisResult:
            n = self._next("hypothesis")
            return HypothesisResult(hypothesis=f"Mock hypothesis {n}")

        if schema is ExperimentPlan:
            n = self._next("plan")
            if self.plan is None:
                return default_mock_plan(n)
            plan = self.plan(n) if callable(self.plan) else self.plan
            return plan.model_copy(deep=True)

        if schema is AnalysisResult:
            n = self._next("analysis")
            score = self.novelty_score
            if not isinstance(score, (int, float)):
                score = score[min(n, len(score)) - 1]
            return AnalysisResult(conclusion=f"Mock conclusion {n}", novelty_score=score)

        if schema is ValidationResult:
            return ValidationResult(
                is_discovery=self.is_discovery,
                justification="Mock validation verdict",
            )

        if schema is SimulationResult:
            n = self._next("simulation")
            return SimulationResult(simulation_result=f"Mock simulation {n}")

        if schema is CollectedData:
            return CollectedData(data="Mock collected data")

        if schema is RepairProposal:
            if self.repair_proposal is not None:
                return self.repair_proposal.model_copy(deep=True)
            return RepairProposal(
                modification_type=ModificationType.CODE_PATCH,
                code_patch="rerun_original",
                notes=["Diagnosis: transient failure.", "Proposed Solution: re-run the original strategy."],
            )

        raise ReasoningServiceError(f"MockReasoningService has no response for {schema.__name__}")


def default_mock_plan(n: int) -> ExperimentPlan:
    """Two-task experiment: collect data, then simulate on it."""
    return ExperimentPlan(tasks=[
        TaskDefinition(
            task_id=f"E{n}-T1",
            role=ROLE_DATA_COLLECTION,
            brief="Search for existing data on the hypothesis.",
        ),
        TaskDefinition(
            task_id=f"E{n}-T2",
            role=ROLE_SIMULATION,
            brief="Simulate the predicted outcome from the collected data.",
            depends_on=[f"E{n}-T1"],
        ),
    ])
