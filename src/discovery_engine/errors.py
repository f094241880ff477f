"""
Discovery Engine - Errors
=========================

Exception taxonomy for the scheduler.

Strategy failures are recoverable and go through the repair path.
FatalNodeError subclasses end the run and must be handled by the caller.
"""

from typing import Any, Optional


class DiscoveryEngineError(Exception):
    """Base class for every error raised by the engine."""


class ConfigurationError(DiscoveryEngineError):
    """The engine cannot start with the given configuration."""

    def __init__(self, problems):
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class DuplicateNodeError(DiscoveryEngineError):
    """A node with the same id is already part of the graph."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' already exists in the graph")


class StrategyReplacementError(DiscoveryEngineError):
    """A node's strategy may only be replaced once."""


# =============================================================================
# STRATEGY FAILURES (recoverable through repair)
# =============================================================================

class StrategyError(DiscoveryEngineError):
    """A strategy could not produce a result for its node."""


class ReasoningServiceError(StrategyError):
    """The reasoning service failed or returned a malformed response."""


class ToolError(StrategyError):
    """A tool call returned ok=False."""

    def __init__(self, tool_name: str, detail: Any):
        self.tool_name = tool_name
        self.detail = detail
        super().__init__(f"Tool {tool_name} failed: {detail}")


class ResultContractError(StrategyError):
    """A result does not match the typed model of its role."""


class NodeRejectedError(StrategyError):
    """The strategy returned a result that was not approved or did not pass validation."""


class InjectedFailureError(StrategyError):
    """Raised on the first execution of a node carrying the failure-injection marker."""


# =============================================================================
# FATAL OUTCOMES (end the run)
# =============================================================================

class FatalNodeError(DiscoveryEngineError):
    """A node failed and could not be repaired."""

    reason = "fatal"

    def __init__(self, node_id: str, message: Optional[str] = None):
        self.node_id = node_id
        super().__init__(message or f"Node {node_id} failed permanently ({self.reason})")


class RepairExhaustedError(FatalNodeError):
    reason = "max repair attempts reached"


class RepairProposalError(FatalNodeError):
    reason = "repair mechanism produced no proposal"


class RepairVetoedError(FatalNodeError):
    reason = "repair vetoed by governance"


class PatchedRetryError(FatalNodeError):
    reason = "patched strategy failed on retry"
