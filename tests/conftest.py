"""
Pytest configuration and shared fixtures for the discovery engine test suite.
"""
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from discovery_engine.config import EngineConfig
from discovery_engine.events import EventLog
from discovery_engine.llm_client import MockReasoningService
from discovery_engine.orchestrator_types import ExperimentPlan, TaskDefinition
from discovery_engine.tools import StaticSearchTool


class FakeStrategy:
    """Strategy returning a canned result; optionally raises on the first N calls."""

    def __init__(self, result=None, error=None, fail_times=0):
        self.result = result if result is not None else {"value": "ok"}
        self.error = error
        self.fail_times = fail_times
        self.calls = []

    async def execute(self, task_id, dependency_ids, run_state, graph, run_id, event_log):
        self.calls.append((task_id, list(dependency_ids)))
        if len(self.calls) <= self.fail_times:
            raise self.error or RuntimeError(f"{task_id} failed")
        return dict(self.result)


class FailingReasoningService:
    """Reasoning service whose every call fails."""

    async def generate_text(self, prompt):
        raise ConnectionError("reasoning service unavailable")

    async def generate_structured(self, prompt, schema):
        raise ConnectionError("reasoning service unavailable")


def single_task_plan(role="Simulation"):
    """Plan factory with one task per cycle."""
    def plan(n):
        return ExperimentPlan(tasks=[TaskDefinition(task_id=f"E{n}-T1", role=role, brief=f"Task for cycle {n}")])
    return plan


def event_types(event_log, node_id=None):
    return [e.type for e in event_log.events() if node_id is None or e.node_id == node_id]


@pytest.fixture
def event_log():
    return EventLog()


@pytest.fixture
def mock_reasoning():
    return MockReasoningService()


@pytest.fixture
def search_tool():
    return StaticSearchTool(data="Collected evidence.")


@pytest.fixture
def engine_config():
    return EngineConfig(mock_mode=True)
