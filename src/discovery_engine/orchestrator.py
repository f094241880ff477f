"""
Discovery Engine — Orchestrator
===============================
Version 1.0 — October 2026

Drives a discovery run. Each cycle grows the task graph by one
hypothesize -> design -> experiment -> analyze (-> validate) slice:

    H{i}  Hypothesize        (no deps)
    D{i}  ExperimentDesign   (H{i})
    ...   planned experiment (their own deps + D{i} + H{i}), drained in waves
    A{i}  Analyze            (every experiment node + H{i})
    V{i}  Validate           (A{i} + H{i}), only when novelty > threshold

A wave dispatches every runnable node concurrently and waits for all of
them before asking the graph again.

Every node dispatch is wrapped in failure handling: a failed node is
paused (REPAIRING), a repair is proposed by the RepairMechanism, vetted
by the GovernancePolicy and applied, either as a replacement result
(artifact repair) or as a catalogued alternative strategy followed by a
single retry (code patch). Anything that cannot be repaired raises a
FatalNodeError out of run().
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .config import EngineConfig
from .errors import (
    NodeRejectedError,
    PatchedRetryError,
    RepairExhaustedError,
    RepairProposalError,
    RepairVetoedError,
    ResultContractError,
)
from .events import (
    EventLog,
    NODE_RESULT,
    NODE_START,
    NODE_STATUS_UPDATE,
    REPAIR_APPLY_CODE_PATCH,
    REPAIR_FAILED,
    REPAIR_FAILED_PERMANENT,
    REPAIR_START,
    REPAIR_SUCCESS,
    REPAIR_VET_START,
    REPAIR_VET_SUCCESS,
    RUN_DONE,
    RUN_START,
    RUN_STOPPED,
)
from .governance import GovernancePolicy
from .graph import DAGNode, TaskGraph
from .metrics import node_metrics, repair_metrics, run_metrics
from .orchestrator_types import (
    AnalysisResult,
    CancellationToken,
    DiscoveryReport,
    ExperimentPlan,
    HypothesisResult,
    ModificationType,
    NodeStatus,
    RepairContext,
    RepairProposal,
    ValidationResult,
    ROLE_ANALYZE,
    ROLE_DATA_COLLECTION,
    ROLE_DESIGN,
    ROLE_HYPOTHESIZE,
    ROLE_RESULT_MODELS,
    ROLE_VALIDATE,
)
from .repair import RepairMechanism
from .run_state import RunState
from .strategies import StrategyRegistry, PatchCatalog, default_patch_catalog, default_registry, normalize_plan
from .tools import TavilySearchTool

logger = logging.getLogger(__name__)


class DiscoveryOrchestrator:
    """
    Runs the discovery loop for one run at a time.

    Args:
        reasoning: ReasoningService (or MockReasoningService)
        event_log: EventLog every progress event is emitted to
        config: Engine configuration (cycle budget, threshold, wave cap, ...)
        governance: Repair gate; defaults to allowing the patch catalog's ids
        registry: Role -> strategy registry; defaults to the built-in roles
        patch_catalog: Alternative strategies for code-patch repairs
        search_tool: Tool used by the default DataCollection strategies
    """

    def __init__(
        self,
        reasoning,
        event_log: EventLog,
        config: Optional[EngineConfig] = None,
        governance: Optional[GovernancePolicy] = None,
        registry: Optional[StrategyRegistry] = None,
        patch_catalog: Optional[PatchCatalog] = None,
        search_tool=None,
    ):
        self.reasoning = reasoning
        self.event_log = event_log
        self.config = config or EngineConfig()
        self.search_tool = search_tool or TavilySearchTool(max_results=self.config.search_max_results)
        self.registry = registry or default_registry(reasoning, self.search_tool)
        self.patch_catalog = patch_catalog or default_patch_catalog(reasoning, self.search_tool)
        self.governance = governance or GovernancePolicy(allowed_patches=self.patch_catalog.names())
        self.repair = RepairMechanism(reasoning, self.patch_catalog.names())

        self.graph = TaskGraph()
        self.run_state = RunState()
        self._cancel_token = CancellationToken()
        self._stop_emitted = False
        # Owned by the orchestrator only; strategies never see these
        self._repair_attempts: Dict[str, int] = {}

    # =========================================================================
    # RUN CONTROL
    # =========================================================================

    def stop(self) -> None:
        """Request a cooperative stop; in-flight nodes are allowed to finish."""
        self._cancel_token.cancel()

    def _stopped(self, run_id: str) -> bool:
        """Poll the cancellation token; emits run.stopped the first time it is seen set."""
        if not self._cancel_token.cancelled:
            return False
        if not self._stop_emitted:
            self._stop_emitted = True
            logger.info(f"[RUN] {run_id} stopped: {self._cancel_token.reason}")
            self.event_log.emit(RUN_STOPPED, run_id, data={"comment": self._cancel_token.reason})
            run_metrics.runs_total.labels(outcome="stopped").inc()
        return True

    # =========================================================================
    # RUN LOOP
    # =========================================================================

    async def run(
        self,
        goal: str,
        run_id: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[DiscoveryReport]:
        """
        Run up to config.max_cycles discovery cycles for a goal.

        Returns:
            DiscoveryReport, or None if the run was stopped

        Raises:
            FatalNodeError: A node failed and could not be repaired
        """
        self._cancel_token = cancel_token or CancellationToken()
        self._stop_emitted = False
        self._repair_attempts = {}
        self.graph = TaskGraph()
        self.run_state = RunState(goal)

        inject_failures = self.config.failure_injection_phrase.upper() in goal.upper()

        logger.info(f"[RUN] Starting {run_id}: {goal}")
        self.event_log.emit(RUN_START, run_id, data={"goal": goal})

        report: Optional[DiscoveryReport] = None
        last_hypothesis: Optional[HypothesisResult] = None
        last_analysis: Optional[AnalysisResult] = None
        cycles_completed = 0

        for cycle in range(1, self.config.max_cycles + 1):
            if self._stopped(run_id):
                return None
            run_metrics.cycles_total.inc()
            logger.info(f"[RUN] Cycle {cycle}/{self.config.max_cycles}")

            # 1. Hypothesize
            hypo_node = self._add_node(f"H{cycle}", ROLE_HYPOTHESIZE, "Generate hypothesis for domain")
            await self._execute_node(hypo_node, run_id)
            last_hypothesis = self.run_state.result(hypo_node.id, HypothesisResult)

            # 2. Experiment design
            if self._stopped(run_id):
                return None
            design_node = self._add_node(
                f"D{cycle}", ROLE_DESIGN, f"Design experiment for {hypo_node.id}", [hypo_node.id]
            )
            await self._execute_node(design_node, run_id)

            plan = normalize_plan(self.run_state.result(design_node.id, ExperimentPlan), self.graph)
            if not plan.tasks:
                logger.warning(f"[RUN] {design_node.id} produced an empty plan, skipping cycle {cycle}")
                cycles_completed = cycle
                continue

            experiment_nodes = []
            for task in plan.tasks:
                node = self._add_node(
                    task.task_id,
                    task.role,
                    task.brief,
                    [*task.depends_on, design_node.id, hypo_node.id],
                )
                if inject_failures and task.role == ROLE_DATA_COLLECTION:
                    node.inject_failure()
                experiment_nodes.append(node)

            # 3. Drain the experiment in waves
            if not await self._drain(experiment_nodes, run_id):
                return None

            stalled = [n.id for n in experiment_nodes if n.status != NodeStatus.COMPLETED]
            if stalled:
                logger.warning(f"[RUN] Experiment nodes never ran: {stalled}")

            # 4. Analyze
            if self._stopped(run_id):
                return None
            analysis_node = self._add_node(
                f"A{cycle}",
                ROLE_ANALYZE,
                f"Analyze results for {hypo_node.id}",
                [n.id for n in experiment_nodes] + [hypo_node.id],
            )
            await self._execute_node(analysis_node, run_id)

            last_analysis = self.run_state.result(analysis_node.id, AnalysisResult)
            self.run_state.append_knowledge(
                f"Hypothesis: {last_hypothesis.hypothesis}. Conclusion: {last_analysis.conclusion}."
            )
            cycles_completed = cycle

            # 5. Validate when the result is surprising enough
            if last_analysis.novelty_score > self.config.eureka_threshold:
                if self._stopped(run_id):
                    return None
                validation_node = self._add_node(
                    f"V{cycle}",
                    ROLE_VALIDATE,
                    f"Validate potential discovery from {hypo_node.id}",
                    [analysis_node.id, hypo_node.id],
                )
                await self._execute_node(validation_node, run_id)

                verdict = self.run_state.result(validation_node.id, ValidationResult)
                if verdict.is_discovery:
                    report = DiscoveryReport(
                        discovered=True,
                        cycles_completed=cycles_completed,
                        final_message="",
                        hypothesis=last_hypothesis.hypothesis,
                        conclusion=last_analysis.conclusion,
                        novelty_score=last_analysis.novelty_score,
                        justification=verdict.justification,
                    )
                    break

        if report is None:
            report = DiscoveryReport(
                discovered=False,
                cycles_completed=cycles_completed,
                final_message="",
                hypothesis=last_hypothesis.hypothesis if last_hypothesis else None,
                conclusion=last_analysis.conclusion if last_analysis else None,
                novelty_score=last_analysis.novelty_score if last_analysis else None,
            )
        report.final_message = self._final_message(goal, report)

        self.event_log.emit(RUN_DONE, run_id, data={
            "approved": report.discovered,
            "comment": "Discovery Validated" if report.discovered else "No discovery found",
            "finalMessage": report.final_message,
        })
        run_metrics.runs_total.labels(outcome="discovered" if report.discovered else "exhausted").inc()
        logger.info(f"[RUN] {run_id} done after {report.cycles_completed} cycle(s), discovered={report.discovered}")
        return report

    def _add_node(self, node_id: str, role: str, brief: str, depends_on: Optional[List[str]] = None) -> DAGNode:
        node = DAGNode(
            id=node_id,
            role=role,
            brief=brief,
            strategy=self.registry.create(role),
            depends_on=list(depends_on or []),
        )
        return self.graph.add(node)

    async def _drain(self, experiment_nodes: List[DAGNode], run_id: str) -> bool:
        """
        Dispatch the cycle's runnable experiment nodes wave by wave until none are left.

        Nodes still PENDING when the wave cap is hit belong to this cycle only
        and are never dispatched later.

        Returns False if the run was stopped before a wave.
        """
        cycle_ids = {node.id for node in experiment_nodes}
        waves = 0
        while True:
            runnable = [node for node in self.graph.runnable() if node.id in cycle_ids]
            if not runnable:
                break
            if waves >= self.config.max_waves_per_cycle:
                logger.warning(
                    f"[RUN] Wave cap of {self.config.max_waves_per_cycle} reached with "
                    f"{len(runnable)} node(s) still runnable"
                )
                break
            if self._stopped(run_id):
                return False

            waves += 1
            logger.debug(f"[RUN] Wave {waves}: {[n.id for n in runnable]}")
            outcomes = await asyncio.gather(
                *(self._execute_node(node, run_id) for node in runnable),
                return_exceptions=True,
            )
            # The whole wave has settled; surface the first fatal outcome
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome

        run_metrics.waves_per_cycle.observe(waves)
        return True

    @staticmethod
    def _final_message(goal: str, report: DiscoveryReport) -> str:
        if report.discovered:
            return (
                f'!!! EUREKA !!! A discovery has been made in the domain of "{goal}".\n\n'
                f"**Hypothesis:** {report.hypothesis}\n"
                f"**Conclusion:** {report.conclusion}\n"
                f"**Justification:** {report.justification}"
            )
        return (
            f"The discovery engine completed {report.cycles_completed} cycles without a breakthrough. "
            "The final knowledge base has been updated."
        )

    # =========================================================================
    # NODE EXECUTION AND REPAIR
    # =========================================================================

    async def _execute_node(self, node: DAGNode, run_id: str) -> None:
        """Execute a node, routing any strategy failure through the repair cycle."""
        self.event_log.emit(NODE_START, run_id, node_id=node.id, data={"role": node.role, "brief": node.brief})
        try:
            await self._attempt(node, run_id)
        except Exception as error:
            await self._handle_failure(node, error, run_id)

    async def _attempt(self, node: DAGNode, run_id: str) -> None:
        """One execution: run the strategy, check the result, then record it."""
        with node_metrics.track_execution(node.role):
            result = await node.execute(self.run_state, self.graph, run_id, self.event_log)
            if node.status != NodeStatus.COMPLETED:
                raise NodeRejectedError(f"Node {node.id} ({node.role}) failed during execution.")
            self._check_result(node, result)

        self.run_state.record(node.id, result)
        self.event_log.emit(NODE_RESULT, run_id, node_id=node.id, data=result)

    def _check_result(self, node: DAGNode, result: Dict[str, Any]) -> None:
        model = ROLE_RESULT_MODELS.get(node.role)
        if model is None:
            return
        try:
            model.model_validate(result)
        except ValidationError as e:
            node.status = NodeStatus.FAILED
            raise ResultContractError(
                f"Result of {node.id} does not match {model.__name__}: {e.error_count()} error(s)"
            ) from e

    def _mark_failed(self, node: DAGNode, run_id: str) -> None:
        node.status = NodeStatus.FAILED
        self.event_log.emit(NODE_STATUS_UPDATE, run_id, node_id=node.id, data={"status": NodeStatus.FAILED.value})

    async def _handle_failure(self, node: DAGNode, error: Exception, run_id: str) -> None:
        """
        Pause, repair and resume a failed node.

        Raises:
            RepairExhaustedError: The node used up its repair attempts
            RepairProposalError: No usable proposal came back
            RepairVetoedError: Governance rejected the proposal
            PatchedRetryError: The patched strategy failed too
        """
        logger.warning(f"[REPAIR] Node {node.id} ({node.role}) failed: {error}")
        node.status = NodeStatus.FAILED
        self.event_log.emit(
            NODE_STATUS_UPDATE, run_id, node_id=node.id,
            data={"status": NodeStatus.FAILED.value, "error": str(error)},
        )

        attempts = self._repair_attempts.get(node.id, 0)
        if attempts >= self.governance.max_repair_attempts:
            logger.error(f"[REPAIR] Max repair attempts reached for {node.id}")
            self.event_log.emit(
                REPAIR_FAILED_PERMANENT, run_id, node_id=node.id,
                data={"reason": "Max repair attempts reached"},
            )
            repair_metrics.outcomes_total.labels(outcome="exhausted").inc()
            raise RepairExhaustedError(node.id) from error
        self._repair_attempts[node.id] = attempts + 1

        node.status = NodeStatus.REPAIRING
        self.event_log.emit(NODE_STATUS_UPDATE, run_id, node_id=node.id, data={"status": NodeStatus.REPAIRING.value})
        self.event_log.emit(REPAIR_START, run_id, node_id=node.id, data={"message": "Repair cycle activated."})

        context = RepairContext(
            error=str(error),
            node=node,
            dependency_state=self.run_state.subset(node.depends_on),
        )

        # Diagnose and propose
        proposal = await self.repair.propose_repair(context, run_id, self.event_log)
        if proposal is None:
            logger.error(f"[REPAIR] No repair proposal for {node.id}")
            self.event_log.emit(
                REPAIR_FAILED, run_id, node_id=node.id,
                data={"notes": ["The repair mechanism itself failed to generate a proposal."]},
            )
            self._mark_failed(node, run_id)
            repair_metrics.outcomes_total.labels(outcome="no_proposal").inc()
            raise RepairProposalError(
                node.id, f"Self-repair for node {node.id} failed at proposal stage."
            ) from error

        # Vet
        self.event_log.emit(
            REPAIR_VET_START, run_id, node_id=node.id,
            data={"message": "Submitting repair to governance for approval."},
        )
        verdict = self.governance.vet(proposal, ROLE_RESULT_MODELS.get(node.role))
        if not verdict.approved:
            logger.error(f"[REPAIR] Repair for {node.id} vetoed: {verdict.comment}")
            self.event_log.emit(REPAIR_FAILED, run_id, node_id=node.id, data={"notes": [verdict.comment]})
            self._mark_failed(node, run_id)
            repair_metrics.outcomes_total.labels(outcome="vetoed").inc()
            raise RepairVetoedError(
                node.id, f"Self-repair for node {node.id} was vetoed by governance: {verdict.comment}"
            ) from error
        self.event_log.emit(REPAIR_VET_SUCCESS, run_id, node_id=node.id, data={"comment": verdict.comment})

        # Apply and resume
        if proposal.modification_type == ModificationType.CODE_PATCH:
            await self._apply_code_patch(node, proposal, run_id)
        else:
            self._apply_artifact_repair(node, proposal, run_id)

    async def _apply_code_patch(self, node: DAGNode, proposal: RepairProposal, run_id: str) -> None:
        patch_id = proposal.code_patch.strip()
        self.event_log.emit(
            REPAIR_APPLY_CODE_PATCH, run_id, node_id=node.id,
            data={"codePatch": patch_id, "notes": list(proposal.notes)},
        )

        try:
            node.replace_strategy(self.patch_catalog.build(patch_id, node, node.strategy))
            self.event_log.emit(
                REPAIR_SUCCESS, run_id, node_id=node.id,
                data={"message": "Code patched. Retrying node execution."},
            )
            node.status = NodeStatus.PENDING
            self.event_log.emit(NODE_STATUS_UPDATE, run_id, node_id=node.id, data={"status": NodeStatus.PENDING.value})
            # Single retry; a failure here is not eligible for another repair
            await self._attempt(node, run_id)
        except Exception as patch_error:
            self._fail_patched_retry(node, patch_error, run_id)

        repair_metrics.outcomes_total.labels(outcome="code_patch").inc()
        logger.info(f"[REPAIR] {node.id} recovered with patch {patch_id}")

    def _fail_patched_retry(self, node: DAGNode, patch_error: Exception, run_id: str) -> None:
        logger.error(f"[REPAIR] Patched strategy for {node.id} failed: {patch_error}")
        self.event_log.emit(
            REPAIR_FAILED, run_id, node_id=node.id,
            data={"notes": ["The patched strategy failed on execution.", str(patch_error)]},
        )
        self._mark_failed(node, run_id)
        repair_metrics.outcomes_total.labels(outcome="patch_failed").inc()
        raise PatchedRetryError(
            node.id, f"Failed to execute patched strategy for node {node.id}: {patch_error}"
        ) from patch_error

    def _apply_artifact_repair(self, node: DAGNode, proposal: RepairProposal, run_id: str) -> None:
        entry = {
            **proposal.artifact_payload(),
            "taskId": node.id,
            "role": node.role,
            "status": NodeStatus.COMPLETED.value,
            "repaired": True,
        }
        self.event_log.emit(REPAIR_SUCCESS, run_id, node_id=node.id)
        node.status = NodeStatus.COMPLETED
        self.run_state.record(node.id, entry, replace=True)
        self.event_log.emit(NODE_RESULT, run_id, node_id=node.id, data=entry)
        repair_metrics.outcomes_total.labels(outcome="artifact_repair").inc()
        logger.info(f"[REPAIR] {node.id} completed from repaired artifact")
