"""
Discovery Engine
================
Version 1.0 — October 2026

Autonomous task-graph scheduler for hypothesis-driven discovery, with
reasoning-service driven repair of failed nodes, a governance gate on
every repair and a strictly ordered event log.
"""

from .config import EngineConfig, ModelConfig, RetryConfig, validate_config
from .errors import (
    DiscoveryEngineError,
    ConfigurationError,
    StrategyError,
    FatalNodeError,
)
from .events import EventLog, NDJSONFileSink, LoggingObserver
from .governance import GovernancePolicy
from .graph import DAGNode, TaskGraph
from .llm_client import ReasoningService, MockReasoningService, get_llm
from .orchestrator import DiscoveryOrchestrator
from .orchestrator_types import CancellationToken, DiscoveryReport, Event, NodeStatus
from .repair import RepairMechanism
from .replay import replay
from .run_state import RunState
from .session import DiscoverySession, SessionStatus

__version__ = "1.0.0"

__all__ = [
    "EngineConfig",
    "ModelConfig",
    "RetryConfig",
    "validate_config",
    "DiscoveryEngineError",
    "ConfigurationError",
    "StrategyError",
    "FatalNodeError",
    "EventLog",
    "NDJSONFileSink",
    "LoggingObserver",
    "GovernancePolicy",
    "DAGNode",
    "TaskGraph",
    "ReasoningService",
    "MockReasoningService",
    "get_llm",
    "DiscoveryOrchestrator",
    "CancellationToken",
    "DiscoveryReport",
    "Event",
    "NodeStatus",
    "RepairMechanism",
    "replay",
    "RunState",
    "DiscoverySession",
    "SessionStatus",
]
