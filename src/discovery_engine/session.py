"""
Discovery Engine — Session
==========================
Version 1.0 — October 2026

The caller of the orchestrator. A session validates configuration before
anything runs, wires the reasoning service and search tool, starts a run
and translates its outcome into a terminal status and a user-facing
message. A fatal node error never escapes start(); it becomes FAILED plus
a run.failed event.

Usage:
    session = DiscoverySession(EngineConfig.from_env())
    status = await session.start("Find a new superconducting material")
    print(status, session.message)
"""

import logging
import time
from enum import Enum
from typing import Optional

from .config import EngineConfig, validate_config
from .errors import ConfigurationError, FatalNodeError
from .events import EventLog, NDJSONFileSink, RUN_FAILED
from .governance import GovernancePolicy
from .llm_client import MockReasoningService, ReasoningService, get_llm
from .metrics import run_metrics
from .orchestrator import DiscoveryOrchestrator
from .orchestrator_types import CancellationToken, DiscoveryReport
from .tools import StaticSearchTool, TavilySearchTool

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    """Lifecycle of a session."""
    IDLE = "IDLE"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"          # run.done was emitted
    FAILED = "FAILED"                # fatal node error or unexpected exception
    STOPPED = "STOPPED"              # cooperative stop honoured
    CANNOT_START = "CANNOT_START"    # configuration problem, nothing ran


TERMINAL_STATUSES = frozenset({
    SessionStatus.COMPLETED,
    SessionStatus.FAILED,
    SessionStatus.STOPPED,
    SessionStatus.CANNOT_START,
})


class DiscoverySession:
    """
    Starts and stops discovery runs for a single caller.

    Args:
        config: Engine configuration
        event_log: Shared event log (a new one if omitted)
        reasoning: Reasoning service override (otherwise built from config)
        search_tool: Search tool override (otherwise built from config)
        governance: Governance policy override
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        event_log: Optional[EventLog] = None,
        reasoning=None,
        search_tool=None,
        governance: Optional[GovernancePolicy] = None,
    ):
        self.config = config or EngineConfig()
        self.event_log = event_log or EventLog()
        self.reasoning = reasoning
        self.search_tool = search_tool
        self.governance = governance

        self.status = SessionStatus.IDLE
        self.message: Optional[str] = None
        self.report: Optional[DiscoveryReport] = None
        self.run_id: Optional[str] = None
        self.orchestrator: Optional[DiscoveryOrchestrator] = None
        self._cancel_token: Optional[CancellationToken] = None

    def _build_services(self):
        """Reasoning service and search tool for this run."""
        reasoning = self.reasoning
        if reasoning is None:
            if self.config.mock_mode:
                reasoning = MockReasoningService()
            else:
                model = self.config.reasoning_model
                reasoning = ReasoningService(get_llm(model, self.config.retry_config), model)

        search_tool = self.search_tool
        if search_tool is None:
            if self.config.mock_mode:
                search_tool = StaticSearchTool()
            else:
                search_tool = TavilySearchTool(max_results=self.config.search_max_results)

        return reasoning, search_tool

    async def start(self, goal: str, run_id: Optional[str] = None) -> SessionStatus:
        """
        Run the discovery loop to a terminal status.

        Returns:
            The terminal SessionStatus; details are in .message and .report
        """
        self.status = SessionStatus.STARTING
        self.message = None
        self.report = None
        self.run_id = run_id or f"run_{int(time.time() * 1000)}"
        self._cancel_token = CancellationToken()

        try:
            validate_config(self.config)
            reasoning, search_tool = self._build_services()
        except ConfigurationError as e:
            self.status = SessionStatus.CANNOT_START
            self.message = f"ERROR: {e}. The engine cannot start without it."
            logger.error(f"[SESSION] Cannot start: {e}")
            return self.status

        unsubscribe = None
        if self.config.events_file:
            unsubscribe = self.event_log.subscribe(NDJSONFileSink(self.config.events_file))

        self.orchestrator = DiscoveryOrchestrator(
            reasoning,
            self.event_log,
            config=self.config,
            governance=self.governance,
            search_tool=search_tool,
        )

        self.status = SessionStatus.RUNNING
        logger.info(f"[SESSION] Run {self.run_id} started")
        try:
            report = await self.orchestrator.run(goal, self.run_id, self._cancel_token)
        except FatalNodeError as e:
            self._fail(e, node_id=e.node_id)
        except Exception as e:
            logger.exception(f"[SESSION] Orchestration failed unexpectedly: {e}")
            self._fail(e)
        else:
            if report is None:
                self.status = SessionStatus.STOPPED
                self.message = "Session terminated by user."
            else:
                self.status = SessionStatus.COMPLETED
                self.report = report
                self.message = report.final_message
        finally:
            if unsubscribe is not None:
                unsubscribe()

        logger.info(f"[SESSION] Run {self.run_id} finished with status {self.status.value}")
        return self.status

    def _fail(self, error: Exception, node_id: Optional[str] = None) -> None:
        self.status = SessionStatus.FAILED
        self.message = f"Error: {error}"
        logger.error(f"[SESSION] Run {self.run_id} failed: {error}")
        self.event_log.emit(RUN_FAILED, self.run_id, node_id=node_id, data={
            "reason": getattr(error, "reason", type(error).__name__),
            "error": str(error),
        })
        run_metrics.runs_total.labels(outcome="failed").inc()

    def stop(self) -> None:
        """Ask the running loop to stop at its next checkpoint."""
        if self._cancel_token is not None and self.status not in TERMINAL_STATUSES:
            logger.info(f"[SESSION] Stop requested for {self.run_id}")
            self._cancel_token.cancel()
