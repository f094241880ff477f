"""
Discovery Engine — Discovery Strategies
=======================================
Version 1.0 — October 2026

Strategies for the fixed phases of a discovery cycle (hypothesize,
design, analyze, validate) and the reasoning-only Simulation strategy
that experiment plans use for simulation, cross-referencing and any
role without a dedicated strategy.

Each strategy validates the reasoning-service response against its
role's result model and returns the model as a plain dict.
"""

import logging
import re
from typing import Any, Dict, List, Set

from ..orchestrator_types import (
    AnalysisResult,
    ExperimentPlan,
    HypothesisResult,
    SimulationResult,
    ValidationResult,
    ROLE_ANALYZE,
    ROLE_DESIGN,
    ROLE_HYPOTHESIZE,
)
from .base import dependency_results, format_results, node_brief, require_ancestor_result

logger = logging.getLogger(__name__)

# Ids the orchestrator gives fixed-phase nodes (H1, D1, A1, V1, ...)
FIXED_PHASE_ID = re.compile(r"^[HDAV]\d+$")


HYPOTHESIS_PROMPT = """You are a creative researcher in a Perpetual Discovery Engine.
Your prime directive is to generate novel hypotheses.
The discovery domain is: "{goal}".
Current knowledge base: "{knowledge}".

Based on the gaps or contradictions in the current knowledge, generate a single, novel, and testable hypothesis.
The hypothesis should be a concise statement that can be investigated. Avoid repeating previous hypotheses.
"""

DESIGN_PROMPT = """You are an experimental designer in a Perpetual Discovery Engine.
Your task is to design a simple, executable experiment to test a hypothesis.
The experiment will be a small DAG of 1-3 tasks.
The available task roles are:
- DataCollection: uses a search tool
- Simulation: uses pure reasoning to predict outcomes
- CrossReference: compares data from multiple sources

Hypothesis to test: "{hypothesis}"

Return a list of tasks. Each task needs a unique taskId (e.g. E{cycle}-T1, E{cycle}-T2), a role,
a brief description, and its dependencies within this experiment (dependsOn).
The first task should not have dependencies.
"""

SIMULATION_PROMPT = """Run a pure-thinking simulation.
Hypothesis: "{hypothesis}"
Task: "{brief}"
Available Data:
{data}

Based on the data, what is the logical conclusion or predicted outcome of this simulation?
"""

ANALYSIS_PROMPT = """Analyze the results of an experiment.
Hypothesis: "{hypothesis}"
Experiment Results:
{results}

1. Did the results confirm, refute, or are they inconclusive regarding the hypothesis? State this as the conclusion.
2. Most importantly, calculate a novelty_score from 0.0 to 1.0, where 1.0 means the result was completely
   unexpected and surprising given general knowledge.
"""

VALIDATION_PROMPT = """A potential discovery has been made with a high novelty score. As the final arbiter, you must validate it.
Hypothesis: "{hypothesis}"
Analysis Conclusion: "{conclusion}"
Novelty Score: {novelty_score}

Does this constitute a "Eureka" moment? Is it truly novel and significant enough to be considered a discovery and halt the engine?
Answer with is_discovery and a justification.
"""


class HypothesisStrategy:
    """Generates one testable hypothesis from the goal and the knowledge summary."""

    def __init__(self, reasoning):
        self.reasoning = reasoning

    async def execute(self, task_id, dependency_ids, run_state, graph, run_id, event_log) -> Dict[str, Any]:
        prompt = HYPOTHESIS_PROMPT.format(
            goal=run_state.goal,
            knowledge=run_state.knowledge.strip() or "No knowledge yet.",
        )
        result = await self.reasoning.generate_structured(prompt, HypothesisResult)
        return result.model_dump()


def normalize_plan(plan: ExperimentPlan, existing_ids) -> ExperimentPlan:
    """
    Make a generated plan safe to insert.

    Drops tasks with a blank id, an id repeated within the plan, an id
    already in the graph, or a fixed-phase id; then drops dependencies on
    ids outside the plan (and self-dependencies), which could never be
    satisfied.
    """
    kept = []
    seen: Set[str] = set()
    for task in plan.tasks:
        task_id = task.task_id.strip()
        if not task_id:
            logger.warning("[DESIGN] Dropping planned task with a blank id")
            continue
        if task_id in seen or task_id in existing_ids or FIXED_PHASE_ID.match(task_id):
            logger.warning(f"[DESIGN] Dropping duplicate planned task {task_id}")
            continue
        seen.add(task_id)
        kept.append(task.model_copy(update={"task_id": task_id, "role": task.role.strip()}))

    for task in kept:
        deps: List[str] = []
        for dep in dict.fromkeys(d.strip() for d in task.depends_on):
            if dep in seen and dep != task.task_id:
                deps.append(dep)
            else:
                logger.warning(f"[DESIGN] Dropping dependency {dep!r} of {task.task_id}: not part of the plan")
        task.depends_on = deps

    return ExperimentPlan(tasks=kept)


class ExperimentDesignStrategy:
    """Designs a small experiment sub-DAG for the parent hypothesis."""

    def __init__(self, reasoning):
        self.reasoning = reasoning

    async def execute(self, task_id, dependency_ids, run_state, graph, run_id, event_log) -> Dict[str, Any]:
        hypothesis = require_ancestor_result(graph, run_state, task_id, ROLE_HYPOTHESIZE, HypothesisResult)
        cycle = sum(1 for node in graph if node.role == ROLE_DESIGN)

        plan = await self.reasoning.generate_structured(
            DESIGN_PROMPT.format(hypothesis=hypothesis.hypothesis, cycle=cycle),
            ExperimentPlan,
        )
        plan = normalize_plan(plan, graph)
        logger.info(f"[DESIGN] {task_id} planned {len(plan.tasks)} task(s)")
        return plan.model_dump(by_alias=True)


class SimulationStrategy:
    """Reasons over the results of the node's dependencies."""

    def __init__(self, reasoning):
        self.reasoning = reasoning

    async def execute(self, task_id, dependency_ids, run_state, graph, run_id, event_log) -> Dict[str, Any]:
        hypothesis = require_ancestor_result(graph, run_state, task_id, ROLE_HYPOTHESIZE, HypothesisResult)
        results = dependency_results(run_state, dependency_ids, exclude_roles=(ROLE_HYPOTHESIZE, ROLE_DESIGN))

        prompt = SIMULATION_PROMPT.format(
            hypothesis=hypothesis.hypothesis,
            brief=node_brief(graph, task_id),
            data=format_results(results),
        )
        text = await self.reasoning.generate_text(prompt)
        return SimulationResult(simulation_result=text).model_dump()


class AnalysisStrategy:
    """Draws a conclusion from the experiment results and scores its novelty."""

    def __init__(self, reasoning):
        self.reasoning = reasoning

    async def execute(self, task_id, dependency_ids, run_state, graph, run_id, event_log) -> Dict[str, Any]:
        hypothesis = require_ancestor_result(graph, run_state, task_id, ROLE_HYPOTHESIZE, HypothesisResult)
        results = dependency_results(run_state, dependency_ids, exclude_roles=(ROLE_HYPOTHESIZE, ROLE_DESIGN))

        analysis = await self.reasoning.generate_structured(
            ANALYSIS_PROMPT.format(hypothesis=hypothesis.hypothesis, results=format_results(results)),
            AnalysisResult,
        )
        return analysis.model_dump()


class ValidationStrategy:
    """Final arbiter on whether a high-novelty analysis is a discovery."""

    def __init__(self, reasoning):
        self.reasoning = reasoning

    async def execute(self, task_id, dependency_ids, run_state, graph, run_id, event_log) -> Dict[str, Any]:
        hypothesis = require_ancestor_result(graph, run_state, task_id, ROLE_HYPOTHESIZE, HypothesisResult)
        analysis = require_ancestor_result(graph, run_state, task_id, ROLE_ANALYZE, AnalysisResult)

        verdict = await self.reasoning.generate_structured(
            VALIDATION_PROMPT.format(
                hypothesis=hypothesis.hypothesis,
                conclusion=analysis.conclusion,
                novelty_score=analysis.novelty_score,
            ),
            ValidationResult,
        )
        return verdict.model_dump()
