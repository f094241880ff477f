"""
Discovery Engine — Type Definitions
===================================
Version 1.0 — October 2026

Core data structures shared by the scheduler, the strategies and the
repair subsystem. Internal records are dataclasses; everything that
crosses the reasoning-service boundary is a pydantic model so it can be
used both as a structured-output schema and as a validator.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================

class NodeStatus(str, Enum):
    """All possible states a node can be in."""
    PENDING = "PENDING"       # Created, waiting for its dependencies
    RUNNING = "RUNNING"       # Strategy currently executing
    COMPLETED = "COMPLETED"   # Result written to run state
    FAILED = "FAILED"         # Strategy raised or returned an unapproved result
    REPAIRING = "REPAIRING"   # Failure handed to the repair mechanism


class ModificationType(str, Enum):
    """Kinds of repair the reasoning service may propose."""
    ARTIFACT_REPAIR = "artifact_repair"   # Supply the node's result directly
    CODE_PATCH = "code_patch"             # Swap in an alternative strategy


# Roles of the fixed discovery phases. Experiment roles come from generated plans.
ROLE_HYPOTHESIZE = "Hypothesize"
ROLE_DESIGN = "ExperimentDesign"
ROLE_DATA_COLLECTION = "DataCollection"
ROLE_SIMULATION = "Simulation"
ROLE_CROSS_REFERENCE = "CrossReference"
ROLE_ANALYZE = "Analyze"
ROLE_VALIDATE = "Validate"

# Keys every state entry written by the orchestrator must carry
OUTPUT_CONTRACT_KEYS = ("taskId", "role", "status")

# Well-known run state keys
STATE_GOAL = "domain"
STATE_KNOWLEDGE = "knowledge"


# =============================================================================
# RESULT MODELS (one per role)
# =============================================================================

class Source(BaseModel):
    """A web source backing collected data."""
    uri: str
    title: str = ""


class HypothesisResult(BaseModel):
    hypothesis: str = Field(min_length=1, description="A single, novel, testable hypothesis")


class TaskDefinition(BaseModel):
    """One task of a generated experiment plan. Serialized with the camelCase wire keys."""
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId", description="Unique id, e.g. E1-T1")
    role: str = Field(description="DataCollection, Simulation or CrossReference")
    brief: str = Field(description="What this task should do")
    depends_on: List[str] = Field(default_factory=list, alias="dependsOn", description="Ids of tasks in this plan")


class ExperimentPlan(BaseModel):
    tasks: List[TaskDefinition] = Field(default_factory=list)


class CollectedData(BaseModel):
    data: str
    sources: List[Source] = Field(default_factory=list)


class SimulationResult(BaseModel):
    simulation_result: str


class AnalysisResult(BaseModel):
    conclusion: str
    novelty_score: float = Field(ge=0.0, le=1.0, description="0.0 expected, 1.0 completely surprising")


class ValidationResult(BaseModel):
    is_discovery: bool
    justification: str


ROLE_RESULT_MODELS: Dict[str, Type[BaseModel]] = {
    ROLE_HYPOTHESIZE: HypothesisResult,
    ROLE_DESIGN: ExperimentPlan,
    ROLE_DATA_COLLECTION: CollectedData,
    ROLE_SIMULATION: SimulationResult,
    ROLE_CROSS_REFERENCE: SimulationResult,
    ROLE_ANALYZE: AnalysisResult,
    ROLE_VALIDATE: ValidationResult,
}


# =============================================================================
# REPAIR STRUCTURES
# =============================================================================

class RepairedArtifact(BaseModel):
    """
    Corrected output for a failed node.

    Lists the fields of every built-in result model so providers with strict
    schema support can fill them; anything else is kept as an extra field.
    """
    model_config = ConfigDict(extra="allow")

    hypothesis: Optional[str] = None
    tasks: Optional[List[TaskDefinition]] = None
    data: Optional[str] = None
    sources: Optional[List[Source]] = None
    simulation_result: Optional[str] = None
    conclusion: Optional[str] = None
    novelty_score: Optional[float] = None
    is_discovery: Optional[bool] = None
    justification: Optional[str] = None


class RepairProposal(BaseModel):
    """Repair proposed by the reasoning service for a failed node."""
    modification_type: ModificationType
    repaired_artifact: Optional[RepairedArtifact] = Field(
        default=None, description="Corrected node output (artifact_repair only)"
    )
    code_patch: Optional[str] = Field(
        default=None, description="Identifier of a catalogued alternative strategy (code_patch only)"
    )
    notes: List[str] = Field(
        default_factory=list, description="Diagnosis and justification for the proposed repair"
    )

    def artifact_payload(self) -> Dict[str, Any]:
        """Artifact as a plain dict, without unset fields."""
        if self.repaired_artifact is None:
            return {}
        return self.repaired_artifact.model_dump(by_alias=True, exclude_none=True)


@dataclass
class RepairContext:
    """Failure context handed to the repair mechanism."""
    error: str
    node: Any                     # DAGNode that failed
    dependency_state: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VetResult:
    """Governance decision on a repair proposal."""
    approved: bool
    comment: str


# =============================================================================
# EVENTS
# =============================================================================

@dataclass(frozen=True)
class Event:
    """Immutable record of something that happened during a run."""
    timestamp: datetime
    run_id: str
    type: str
    data: Dict[str, Any] = field(default_factory=dict)
    node_id: Optional[str] = None
    sequence: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Wire format consumed by observers outside the engine."""
        payload: Dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "runId": self.run_id,
            "type": self.type,
            "data": self.data,
            "seq": self.sequence,
        }
        if self.node_id is not None:
            payload["nodeId"] = self.node_id
        return payload


# =============================================================================
# RUN CONTROL
# =============================================================================

class CancellationToken:
    """
    Cooperative stop flag for one run.

    The orchestrator polls it at cycle boundaries and before every dispatch;
    work already dispatched is allowed to finish.
    """

    def __init__(self):
        self._cancelled = False
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "Discovery loop stopped by user.") -> None:
        if not self._cancelled:
            self._cancelled = True
            self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class DiscoveryReport:
    """Summary of a finished run."""
    discovered: bool
    cycles_completed: int
    final_message: str
    hypothesis: Optional[str] = None
    conclusion: Optional[str] = None
    novelty_score: Optional[float] = None
    justification: Optional[str] = None
